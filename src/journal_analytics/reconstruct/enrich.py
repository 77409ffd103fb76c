from __future__ import annotations

from dataclasses import replace
from typing import Any, Iterable, Mapping

from journal_analytics.models import (
    DEFAULT_FEELINGS,
    DEFAULT_MISTAKE,
    DEFAULT_STRATEGY,
    JournalEntry,
    Trade,
)


def resolve_choice(value: Any, default: str) -> str:
    """Collapse a string-or-list journal field to one trimmed label."""
    if isinstance(value, str):
        text = value.strip()
        return text or default
    if isinstance(value, (list, tuple)):
        for item in value:
            if isinstance(item, str) and item.strip():
                return item.strip()
        return default
    return default


def resolve_text(value: Any, default: str = "") -> str:
    if isinstance(value, str):
        return value.strip() or default
    return default


def resolve_amount(value: Any) -> float:
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        number = float(str(value).replace(",", "")) if isinstance(value, str) else float(value)
    except (TypeError, ValueError):
        return 0.0
    if number != number or number in (float("inf"), float("-inf")):
        return 0.0
    return number


def enrich_trade(trade: Trade, entry: JournalEntry | None) -> Trade:
    entry = entry or JournalEntry()
    return replace(
        trade,
        strategy=resolve_choice(entry.strategy, DEFAULT_STRATEGY),
        mistake=resolve_text(entry.mistake, DEFAULT_MISTAKE),
        feelings=resolve_choice(entry.feelings, DEFAULT_FEELINGS),
        notes=resolve_text(entry.notes),
        stop_loss=resolve_amount(entry.stop_loss),
        target_price=resolve_amount(entry.target_price),
    )


def enrich_trades(trades: Iterable[Trade], journal: Mapping[str, JournalEntry]) -> list[Trade]:
    enriched = []
    for trade in trades:
        entry = journal.get(trade.journal_key) if trade.journal_key else None
        enriched.append(enrich_trade(trade, entry))
    return enriched
