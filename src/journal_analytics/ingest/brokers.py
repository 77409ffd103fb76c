from __future__ import annotations

import csv
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone, tzinfo
from pathlib import Path
from typing import Any, Iterable, Mapping
from zoneinfo import ZoneInfo

from journal_analytics.models import (
    SIDE_BUY,
    SIDE_SELL,
    STATUS_COMPLETE,
    STATUS_OTHER,
    Order,
)

logger = logging.getLogger(__name__)

CANONICAL_FIELDS = (
    "order_timestamp",
    "tradingsymbol",
    "quantity",
    "average_price",
    "transaction_type",
    "id",
    "status",
)

# canonical field -> broker field
BROKER_FIELD_MAP: dict[str, dict[str, str]] = {
    "zerodha": {
        "status": "status",
        "order_timestamp": "exchange_update_timestamp",
        "tradingsymbol": "tradingsymbol",
        "quantity": "filled_quantity",
        "average_price": "average_price",
        "transaction_type": "transaction_type",
        "id": "order_id",
    },
    "upstox": {
        "order_timestamp": "exchange_timestamp",
        "tradingsymbol": "tradingsymbol",
        "quantity": "filled_quantity",
        "average_price": "average_price",
        "transaction_type": "transaction_type",
        "id": "order_ref_id",
        "status": "status",
    },
    "dhan": {
        "order_timestamp": "exchangeTime",
        "tradingsymbol": "tradingSymbol",
        "quantity": "filledQty",
        "average_price": "averageTradedPrice",
        "transaction_type": "transactionType",
        "id": "orderId",
        "status": "orderStatus",
    },
    "fyers": {
        "order_timestamp": "orderDateTime",
        "tradingsymbol": "symbol",
        "quantity": "tradedQty",
        "average_price": "tradePrice",
        "transaction_type": "side",
        "id": "tradeNumber",
        "status": "ord_status",
    },
    "angel one": {
        "order_timestamp": "updatetime",
        "tradingsymbol": "tradingsymbol",
        "quantity": "filledshares",
        "average_price": "averageprice",
        "transaction_type": "transactiontype",
        "id": "orderid",
        "status": "status",
    },
    "groww": {
        "order_timestamp": "created_at",
        "tradingsymbol": "trading_symbol",
        "quantity": "filled_quantity",
        "average_price": "average_fill_price",
        "transaction_type": "transaction_type",
        "id": "groww_order_id",
        "status": "order_status",
    },
    "kotak neo": {
        "order_timestamp": "ordDtTm",
        "tradingsymbol": "sym",
        "quantity": "qty",
        "average_price": "avgPrc",
        "transaction_type": "trnsTp",
        "id": "nOrdNo",
        "status": "ordSt",
    },
    "delta exchange": {
        "order_timestamp": "created_at",
        "tradingsymbol": "product_symbol",
        "quantity": "size",
        "average_price": "price",
        "transaction_type": "side",
        "id": "order_id",
        "status": "status",
    },
}

_BROKER_ALIASES = {
    "angelone": "angel one",
    "angel_one": "angel one",
    "angel": "angel one",
    "kotakneo": "kotak neo",
    "kotak_neo": "kotak neo",
    "delta": "delta exchange",
    "deltaexchange": "delta exchange",
    "delta_exchange": "delta exchange",
    "kite": "zerodha",
}

_COMPLETE_STATUSES = {"COMPLETE", "TRADED", "FILLED", "PLACED", "CLOSED"}

_TIMESTAMP_FORMATS = (
    "%Y-%m-%d %H:%M:%S",
    "%d-%m-%Y %H:%M:%S",
    "%d-%b-%Y %H:%M:%S",
    "%d/%m/%Y %H:%M:%S",
    "%b %d, %Y, %I:%M:%S %p",
)


@dataclass(frozen=True)
class IngestResult:
    orders: list[Order]
    skipped: int = 0


def supported_brokers() -> list[str]:
    return sorted(BROKER_FIELD_MAP)


def resolve_broker(name: str | None) -> str | None:
    if name is None:
        return None
    key = str(name).strip().lower()
    key = _BROKER_ALIASES.get(key, key)
    return key if key in BROKER_FIELD_MAP else None


def normalize(broker: str | None, raw: Mapping[str, Any] | None) -> dict[str, Any]:
    """Project one broker record onto the canonical order fields.

    Unknown brokers produce an empty dict; callers validate before matching.
    """
    if not raw:
        return {}
    resolved = resolve_broker(broker)
    if resolved is None:
        return {}
    mapping = BROKER_FIELD_MAP[resolved]
    item = {canonical: raw.get(source) for canonical, source in mapping.items()}
    item["broker"] = resolved
    return item


def canonical_record(raw: Mapping[str, Any]) -> dict[str, Any]:
    """Read a record already stored in canonical shape (journal documents)."""
    return {
        "order_timestamp": _pick(raw, "order_timestamp", "timestamp", "date"),
        "tradingsymbol": _pick(raw, "tradingsymbol", "symbol"),
        "quantity": _pick(raw, "quantity", "filled_quantity"),
        "average_price": _pick(raw, "average_price", "price"),
        "transaction_type": _pick(raw, "transaction_type", "side"),
        "id": _pick(raw, "id", "order_id"),
        "status": _pick(raw, "status"),
        "broker": _pick(raw, "broker"),
    }


def to_order(
    canonical: Mapping[str, Any],
    *,
    broker: str | None = None,
    journal_key: str | None = None,
    raw: Mapping[str, Any] | None = None,
    tz: tzinfo | None = None,
) -> Order:
    symbol = canonical.get("tradingsymbol")
    if symbol in (None, ""):
        raise ValueError("Missing symbol")
    side = normalize_side(canonical.get("transaction_type"))
    quantity = _to_float(canonical.get("quantity"))
    if quantity <= 0:
        raise ValueError(f"Non-positive quantity: {quantity}")
    price = _to_float(canonical.get("average_price"), default=0.0)
    if price < 0:
        raise ValueError(f"Negative price: {price}")
    timestamp = parse_timestamp(canonical.get("order_timestamp"), tz=tz)
    order_id = canonical.get("id")
    if order_id in (None, ""):
        order_id = f"{symbol}-{side}-{timestamp.isoformat()}"

    return Order(
        order_id=str(order_id),
        symbol=str(symbol).strip(),
        side=side,
        quantity=quantity,
        average_price=price,
        timestamp=timestamp,
        status=normalize_status(canonical.get("status")),
        broker=str(broker or canonical.get("broker") or "") or None,
        journal_key=journal_key,
        raw=dict(raw if raw is not None else canonical),
    )


def normalize_orders(
    broker: str | None,
    records: Iterable[Mapping[str, Any]],
    *,
    journal_key: str | None = None,
    tz: tzinfo | None = None,
) -> IngestResult:
    orders: list[Order] = []
    skipped = 0
    resolved = resolve_broker(broker)
    if broker is not None and resolved is None:
        logger.warning("Unknown broker %r; records will not normalize", broker)
    for raw in records:
        if not isinstance(raw, Mapping):
            skipped += 1
            logger.warning("Skipping order record %r: not an object", raw)
            continue
        canonical = normalize(resolved, raw) if broker is not None else canonical_record(raw)
        try:
            orders.append(
                to_order(canonical, broker=resolved, journal_key=journal_key, raw=raw, tz=tz)
            )
        except ValueError as exc:
            skipped += 1
            logger.warning("Skipping order record %s: %s", _record_label(raw), exc)
    return IngestResult(orders=orders, skipped=skipped)


def read_payload(path: str | Path) -> Any:
    """Read an export file: parsed JSON, or a list of row dicts for csv/tsv."""
    source_path = Path(path)
    suffix = source_path.suffix.lower()
    if suffix == ".json":
        with source_path.open("r", encoding="utf-8") as handle:
            return json.load(handle)
    if suffix in {".csv", ".tsv"}:
        with source_path.open("r", encoding="utf-8", newline="") as handle:
            return list(csv.DictReader(handle, delimiter="\t" if suffix == ".tsv" else ","))
    raise ValueError(f"Unsupported file type: {source_path.suffix}")


def extract_records(payload: Any) -> list[Mapping[str, Any]]:
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for key in ("data", "orders", "orderBook", "tradeBook", "result"):
            if key in payload and isinstance(payload[key], list):
                return payload[key]
        data = payload.get("data")
        if isinstance(data, dict):
            for key in ("orders", "list", "trades"):
                if key in data and isinstance(data[key], list):
                    return data[key]
    raise ValueError("Unsupported JSON format for orders payload")


def normalize_status(value: Any) -> str:
    if value is None:
        return STATUS_OTHER
    text = str(value).strip().upper()
    if text in _COMPLETE_STATUSES:
        return STATUS_COMPLETE
    return STATUS_OTHER


def normalize_side(value: Any) -> str:
    if value is None:
        raise ValueError("Missing side")
    text = str(value).strip().upper()
    if text in {"BUY", "B", "1"}:
        return SIDE_BUY
    if text in {"SELL", "S", "-1"}:
        return SIDE_SELL
    raise ValueError(f"Unknown side: {value}")


def parse_timestamp(value: Any, *, tz: tzinfo | None = None) -> datetime:
    """Parse broker timestamps; naive values are read in ``tz`` (UTC if unset)."""
    if value in (None, ""):
        raise ValueError("Missing timestamp")
    local = tz or timezone.utc

    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=local)
    if isinstance(value, Mapping) and isinstance(value.get("seconds"), (int, float)):
        return _timestamp_from_number(float(value["seconds"]), milliseconds=False)
    if isinstance(value, bool):
        raise ValueError("Unsupported timestamp format")
    if isinstance(value, (int, float)):
        return _timestamp_from_number(float(value))

    text = str(value).strip()
    try:
        number = float(text)
    except ValueError:
        number = None
    if number is not None:
        return _timestamp_from_number(number)

    parsed: datetime | None = None
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        for fmt in _TIMESTAMP_FORMATS:
            try:
                parsed = datetime.strptime(text, fmt)
                break
            except ValueError:
                continue
    if parsed is None:
        raise ValueError(f"Unsupported timestamp format: {value}")
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=local)
    return parsed


def zone(name: str | None) -> tzinfo:
    if not name or name.strip().upper() == "UTC":
        return timezone.utc
    return ZoneInfo(name.strip())


def _timestamp_from_number(value: float, *, milliseconds: bool = True) -> datetime:
    seconds = value / 1000.0 if milliseconds and value > 1e12 else value
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError) as exc:
        raise ValueError(f"Timestamp out of range: {value}") from exc


def _pick(raw: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in raw and raw[key] not in (None, ""):
            return raw[key]
    return None


def _to_float(value: Any, default: float | None = None) -> float:
    if value in (None, ""):
        if default is None:
            raise ValueError("Missing numeric field")
        return default
    if isinstance(value, bool):
        raise ValueError("Invalid numeric field")
    try:
        number = float(str(value).replace(",", "")) if isinstance(value, str) else float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError("Invalid numeric field") from exc
    if number != number or number in (float("inf"), float("-inf")):
        raise ValueError("Invalid numeric field")
    return number


def _record_label(raw: Mapping[str, Any]) -> str:
    for key in ("id", "order_id", "orderId", "orderid", "tradeNumber", "nOrdNo", "order_ref_id"):
        value = raw.get(key) if isinstance(raw, Mapping) else None
        if value not in (None, ""):
            return str(value)
    return "<no id>"
