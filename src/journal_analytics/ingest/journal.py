from __future__ import annotations

from dataclasses import dataclass, field
from datetime import tzinfo
from typing import Any, Iterable, Mapping

from journal_analytics.ingest.brokers import normalize_orders
from journal_analytics.models import JournalEntry, Order


@dataclass(frozen=True)
class JournalIngestResult:
    orders: list[Order]
    journal: dict[str, JournalEntry] = field(default_factory=dict)
    skipped: int = 0


def flatten_journal(
    documents: Iterable[Mapping[str, Any]],
    *,
    broker: str | None = None,
    tz: tzinfo | None = None,
) -> JournalIngestResult:
    """Flatten per-day journal documents into orders plus their journal entries.

    Each document holds ``trades: {<group key>: {"orders": [...], ...metadata}}``
    next to a ``date`` entry. Orders keep a ``journal_key`` of
    ``"<document id>/<group key>"`` pointing into the returned mapping.
    """
    orders: list[Order] = []
    journal: dict[str, JournalEntry] = {}
    skipped = 0

    for index, document in enumerate(documents):
        if not isinstance(document, Mapping):
            continue
        groups = document.get("trades")
        if not isinstance(groups, Mapping):
            continue
        doc_id = str(document.get("id") or index)
        for group_key, group in groups.items():
            if group_key == "date" or not isinstance(group, Mapping):
                continue
            raw_orders = group.get("orders")
            if not isinstance(raw_orders, list):
                continue
            journal_key = f"{doc_id}/{group_key}"
            journal[journal_key] = JournalEntry.from_mapping(group)
            result = normalize_orders(
                broker,
                raw_orders,
                journal_key=journal_key,
                tz=tz,
            )
            orders.extend(result.orders)
            skipped += result.skipped

    return JournalIngestResult(orders=orders, journal=journal, skipped=skipped)


def is_journal_payload(payload: Any) -> bool:
    if isinstance(payload, Mapping):
        if "documents" in payload:
            return True
        payload = [payload]
    if not isinstance(payload, list) or not payload:
        return False
    first = payload[0]
    return isinstance(first, Mapping) and isinstance(first.get("trades"), Mapping)
