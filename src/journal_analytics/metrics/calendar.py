from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Any, Iterable

from journal_analytics.ingest.brokers import zone
from journal_analytics.models import Trade
from journal_analytics.reconstruct.trades import round_money


def daily_pnl(trades: Iterable[Trade], tz_name: str = "UTC") -> dict[str, dict[str, Any]]:
    """Closed-trade P&L per exit date, keyed by ISO date in ascending order."""
    tz = zone(tz_name)
    buckets: dict[str, dict[str, Any]] = {}
    for trade in trades:
        if trade.exit_time is None:
            continue
        key = trade.exit_time.astimezone(tz).date().isoformat()
        bucket = buckets.setdefault(key, {"pnl": 0.0, "trades": 0, "wins": 0, "losses": 0})
        bucket["pnl"] += trade.pnl
        bucket["trades"] += 1
        if trade.pnl > 0:
            bucket["wins"] += 1
        elif trade.pnl < 0:
            bucket["losses"] += 1
    for bucket in buckets.values():
        bucket["pnl"] = round_money(bucket["pnl"])
    return dict(sorted(buckets.items()))


def calendar_month(
    trades: Iterable[Trade],
    month: str | None = None,
    tz_name: str = "UTC",
    *,
    today: date | None = None,
) -> dict[str, Any]:
    daily = daily_pnl(trades, tz_name)
    current = today or datetime.now(zone(tz_name)).date()
    month_start = parse_month(month) or date(current.year, current.month, 1)
    next_month = month_start.replace(day=28) + timedelta(days=4)
    month_end = next_month.replace(day=1) - timedelta(days=1)

    grid_start = month_start - timedelta(days=month_start.weekday())
    grid_end = month_end + timedelta(days=(6 - month_end.weekday()))

    max_abs = 0.0
    weeks = []
    cursor = grid_start
    while cursor <= grid_end:
        week = []
        for _ in range(7):
            key = cursor.isoformat()
            bucket = daily.get(key, {"pnl": 0.0, "trades": 0})
            in_month = cursor.month == month_start.month
            if in_month:
                max_abs = max(max_abs, abs(bucket["pnl"]))
            week.append(
                {
                    "date": key,
                    "day": cursor.day,
                    "in_month": in_month,
                    "pnl": bucket["pnl"],
                    "trades": bucket["trades"],
                }
            )
            cursor += timedelta(days=1)
        weeks.append(week)

    return {
        "month_label": month_start.strftime("%B %Y"),
        "month_key": month_start.strftime("%Y-%m"),
        "prev_month": (month_start - timedelta(days=1)).strftime("%Y-%m"),
        "next_month": (month_end + timedelta(days=1)).strftime("%Y-%m"),
        "weeks": weeks,
        "max_abs_pnl": max_abs,
    }


def parse_month(value: str | None) -> date | None:
    """Parse a ``YYYY-MM`` month key; empty values mean "no month given"."""
    if not value:
        return None
    try:
        parsed = datetime.strptime(value.strip(), "%Y-%m").date()
    except ValueError as exc:
        raise ValueError(f"Invalid month: {value!r} (expected YYYY-MM)") from exc
    return date(parsed.year, parsed.month, 1)
