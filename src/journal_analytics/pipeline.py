from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, Mapping

from journal_analytics.config.app_config import AnalyticsSettings, default_analytics_settings
from journal_analytics.ingest.brokers import extract_records, normalize_orders, read_payload, zone
from journal_analytics.ingest.journal import flatten_journal, is_journal_payload
from journal_analytics.models import Trade
from journal_analytics.reconstruct.trades import MatchingPolicy, reconstruct_trades


@dataclass(frozen=True)
class PipelineResult:
    trades: list[Trade]
    skipped: int = 0


def trades_from_payload(
    payload: Any,
    *,
    broker: str | None = None,
    policy: MatchingPolicy | str | None = None,
    settings: AnalyticsSettings | None = None,
    now: datetime | None = None,
) -> PipelineResult:
    """Run ingest, matching and enrichment over an in-memory payload.

    Journal documents are flattened with their metadata; anything else is read
    as a broker order export.
    """
    settings = settings or default_analytics_settings()
    resolved_policy = MatchingPolicy.parse(policy or settings.matching_policy)
    tz = zone(settings.broker_timezone)

    if is_journal_payload(payload):
        documents = payload.get("documents", [payload]) if isinstance(payload, Mapping) else payload
        ingest = flatten_journal(documents, broker=broker, tz=tz)
        trades = reconstruct_trades(ingest.orders, policy=resolved_policy, journal=ingest.journal, now=now)
        return PipelineResult(trades=trades, skipped=ingest.skipped)

    result = normalize_orders(broker, extract_records(payload), tz=tz)
    trades = reconstruct_trades(result.orders, policy=resolved_policy, journal={}, now=now)
    return PipelineResult(trades=trades, skipped=result.skipped)


def trades_from_path(
    path: str | Path,
    *,
    broker: str | None = None,
    policy: MatchingPolicy | str | None = None,
    settings: AnalyticsSettings | None = None,
    now: datetime | None = None,
) -> PipelineResult:
    payload = read_payload(path)
    return trades_from_payload(payload, broker=broker, policy=policy, settings=settings, now=now)


def trades_to_dicts(trades: Iterable[Trade]) -> list[dict[str, Any]]:
    return [trade.to_dict() for trade in trades]
