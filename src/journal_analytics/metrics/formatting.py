from __future__ import annotations

from typing import Any, Mapping

from journal_analytics.metrics.grouped import GroupKey, StrategyMetrics

EMOTION_LABELS = {
    "calm": "Calm",
    "overconfident": "Over confident",
    "nervous": "Nervous",
    "confused": "Confused",
    "revenge": "Revenge mode",
    "happy": "Happy",
    "fear": "Fear",
    "lettinggo": "Letting go",
    "hardwork": "Hard work paid off",
    "wanttolearn": "Want to learn",
}


def format_group_label(key: str, group_by: GroupKey | str) -> str:
    dimension = GroupKey.parse(group_by)
    if dimension in (GroupKey.DAY, GroupKey.SLOT):
        return key
    if dimension is GroupKey.MISTAKE:
        if key == "no_mistake":
            return "No Mistake"
        if "_" in key:
            return " ".join(_capitalize(word) for word in key.split("_") if word)
        return _capitalize(key)
    if dimension is GroupKey.EMOTION and key in EMOTION_LABELS:
        return EMOTION_LABELS[key]
    return _capitalize(key)


def chart_rows(groups: Mapping[str, StrategyMetrics], group_by: GroupKey | str) -> list[dict[str, Any]]:
    """Flatten grouped metrics into chart records, keeping the given order."""
    rows = []
    for key, metrics in groups.items():
        row: dict[str, Any] = {
            "group": format_group_label(key, group_by),
            "group_key": key,
        }
        row.update(metrics.to_dict())
        rows.append(row)
    return rows


def comparison_rows(groups: Mapping[str, StrategyMetrics]) -> list[dict[str, Any]]:
    return [
        {
            "strategy": key,
            "win_rate": metrics.win_rate,
            "total_trades": metrics.total_trades,
            "total_pnl": metrics.total_pnl,
            "avg_win_size": metrics.avg_win_size,
            "avg_loss_size": metrics.avg_loss_size,
            "risk_reward": metrics.risk_reward_ratio,
            "profit_factor": metrics.profit_factor,
            "win_count": metrics.win_count,
            "loss_count": metrics.loss_count,
        }
        for key, metrics in groups.items()
    ]


def format_currency(value: float, symbol: str = "₹") -> str:
    sign = "-" if value < 0 else ""
    return f"{sign}{symbol}{abs(value):,.2f}"


def format_percent(value: float) -> str:
    return f"{value:.2f}%"


def _capitalize(text: str) -> str:
    return text[:1].upper() + text[1:]
