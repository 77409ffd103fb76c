from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from enum import Enum
from typing import Any, Callable, Iterable, Mapping

from journal_analytics.config.app_config import (
    OUTSIDE_TRADING_HOURS,
    AnalyticsSettings,
    default_analytics_settings,
)
from journal_analytics.ingest.brokers import zone
from journal_analytics.models import LONG, SHORT, Trade
from journal_analytics.reconstruct.trades import round_money

WEEKDAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")


class GroupKey(str, Enum):
    STRATEGY = "strategy"
    MISTAKE = "mistake"
    DAY = "day"
    EMOTION = "emotion"
    SLOT = "slot"

    @classmethod
    def parse(cls, value: "GroupKey | str") -> "GroupKey":
        if isinstance(value, GroupKey):
            return value
        text = str(value).strip().lower()
        for member in cls:
            if member.value == text:
                return member
        raise ValueError(f"Unsupported group_by: {value!r}")


@dataclass(frozen=True)
class StrategyMetrics:
    total_trades: int
    win_count: int
    loss_count: int
    break_even_count: int
    win_rate: float
    total_pnl: float
    avg_win_size: float
    avg_loss_size: float
    risk_reward_ratio: float
    profit_factor: float
    avg_duration: float
    avg_return_pct: float
    long_trades: int
    short_trades: int
    long_win_rate: float
    short_win_rate: float
    winning_pnl: float
    losing_pnl: float
    avg_trade_size: float
    total_volume: float
    avg_volume: float

    def to_dict(self) -> dict[str, float | int]:
        return asdict(self)


@dataclass(frozen=True)
class PortfolioMetrics:
    total_groups: int
    total_trades: int
    overall_win_rate: float
    total_pnl: float
    best_group: str | None
    worst_group: str | None
    avg_trades_per_group: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


METRIC_NAMES = tuple(item.name for item in fields(StrategyMetrics))


def aggregate(
    trades: Iterable[Trade],
    group_by: GroupKey | str,
    *,
    settings: AnalyticsSettings | None = None,
) -> dict[str, StrategyMetrics]:
    """Group trades on one dimension and compute metrics per group.

    Iteration order of the result is the display order: Monday..Sunday for
    ``day``, otherwise total P&L descending with ties on the key.
    """
    key = GroupKey.parse(group_by)
    key_for = _key_function(key, settings or default_analytics_settings())

    buckets: dict[str, list[Trade]] = {}
    for trade in trades:
        buckets.setdefault(key_for(trade), []).append(trade)

    metrics = {name: compute_metrics(items) for name, items in buckets.items()}
    if key is GroupKey.DAY:
        ordered = sorted(metrics.items(), key=lambda item: _weekday_rank(item[0]))
    else:
        ordered = sorted(metrics.items(), key=lambda item: (-item[1].total_pnl, item[0]))
    return dict(ordered)


def compute_metrics(trades: Iterable[Trade]) -> StrategyMetrics:
    trade_list = list(trades)
    total = len(trade_list)

    wins = [trade for trade in trade_list if trade.pnl > 0]
    losses = [trade for trade in trade_list if trade.pnl < 0]
    break_evens = total - len(wins) - len(losses)
    longs = [trade for trade in trade_list if trade.side == LONG]
    shorts = [trade for trade in trade_list if trade.side == SHORT]

    total_pnl = sum(trade.pnl for trade in trade_list)
    winning_pnl = sum(trade.pnl for trade in wins)
    losing_pnl = abs(sum(trade.pnl for trade in losses))

    avg_win = _ratio(winning_pnl, len(wins))
    avg_loss = _ratio(losing_pnl, len(losses))
    total_volume = sum(trade.quantity * trade.entry_price for trade in trade_list)

    return StrategyMetrics(
        total_trades=total,
        win_count=len(wins),
        loss_count=len(losses),
        break_even_count=break_evens,
        win_rate=round_money(_ratio(len(wins), total) * 100.0),
        total_pnl=round_money(total_pnl),
        avg_win_size=round_money(avg_win),
        avg_loss_size=round_money(avg_loss),
        risk_reward_ratio=round_money(_ratio(avg_win, avg_loss)),
        profit_factor=round_money(_ratio(winning_pnl, losing_pnl)),
        avg_duration=round_money(_ratio(sum(trade.duration_minutes for trade in trade_list), total)),
        avg_return_pct=round_money(_ratio(sum(trade.return_pct for trade in trade_list), total)),
        long_trades=len(longs),
        short_trades=len(shorts),
        long_win_rate=round_money(_win_rate(longs)),
        short_win_rate=round_money(_win_rate(shorts)),
        winning_pnl=round_money(winning_pnl),
        losing_pnl=round_money(losing_pnl),
        avg_trade_size=round_money(_ratio(abs(total_pnl), total)),
        total_volume=round_money(total_volume),
        avg_volume=round_money(_ratio(total_volume, total)),
    )


def portfolio_metrics(groups: Mapping[str, StrategyMetrics]) -> PortfolioMetrics:
    if not groups:
        return PortfolioMetrics(
            total_groups=0,
            total_trades=0,
            overall_win_rate=0.0,
            total_pnl=0.0,
            best_group=None,
            worst_group=None,
            avg_trades_per_group=0.0,
        )

    items = list(groups.items())
    total_trades = sum(metrics.total_trades for _, metrics in items)
    total_wins = sum(metrics.win_count for _, metrics in items)
    best = items[0]
    worst = items[0]
    for item in items[1:]:
        if item[1].total_pnl > best[1].total_pnl:
            best = item
        if item[1].total_pnl < worst[1].total_pnl:
            worst = item

    return PortfolioMetrics(
        total_groups=len(items),
        total_trades=total_trades,
        overall_win_rate=round_money(_ratio(total_wins, total_trades) * 100.0),
        total_pnl=round_money(sum(metrics.total_pnl for _, metrics in items)),
        best_group=best[0],
        worst_group=worst[0],
        avg_trades_per_group=round_money(total_trades / len(items)),
    )


def top_groups(
    groups: Mapping[str, StrategyMetrics],
    metric: str = "total_pnl",
    limit: int = 5,
) -> list[tuple[str, StrategyMetrics]]:
    if metric not in METRIC_NAMES:
        raise ValueError(f"Unknown metric: {metric}")
    ranked = sorted(groups.items(), key=lambda item: getattr(item[1], metric), reverse=True)
    return ranked[: max(limit, 0)]


def filter_groups(
    groups: Mapping[str, StrategyMetrics],
    *,
    min_trades: int = 0,
    min_win_rate: float = 0.0,
    keys: Iterable[str] | None = None,
) -> dict[str, StrategyMetrics]:
    selected = set(keys) if keys else None
    return {
        name: metrics
        for name, metrics in groups.items()
        if metrics.total_trades >= min_trades
        and metrics.win_rate >= min_win_rate
        and (selected is None or name in selected)
    }


def weekday_name(trade: Trade, tz_name: str = "UTC") -> str:
    moment = trade.entry_time or trade.exit_time
    return WEEKDAYS[moment.astimezone(zone(tz_name)).weekday()]


def session_slot(trade: Trade, settings: AnalyticsSettings) -> str:
    moment = (trade.entry_time or trade.exit_time).astimezone(zone(settings.slot_timezone))
    minute = moment.hour * 60 + moment.minute
    for name, (start, end) in settings.slots.items():
        if start <= minute < end:
            return name
    return OUTSIDE_TRADING_HOURS


def _key_function(key: GroupKey, settings: AnalyticsSettings) -> Callable[[Trade], str]:
    if key is GroupKey.STRATEGY:
        return lambda trade: trade.strategy
    if key is GroupKey.MISTAKE:
        return lambda trade: trade.mistake
    if key is GroupKey.EMOTION:
        return lambda trade: trade.feelings
    if key is GroupKey.DAY:
        return lambda trade: weekday_name(trade, settings.day_timezone)
    return lambda trade: session_slot(trade, settings)


def _weekday_rank(name: str) -> tuple[int, str]:
    if name in WEEKDAYS:
        return WEEKDAYS.index(name), name
    return len(WEEKDAYS), name


def _win_rate(trades: list[Trade]) -> float:
    wins = sum(1 for trade in trades if trade.pnl > 0)
    return _ratio(wins, len(trades)) * 100.0


def _ratio(numerator: float, denominator: float) -> float:
    if not denominator:
        return 0.0
    return numerator / denominator
