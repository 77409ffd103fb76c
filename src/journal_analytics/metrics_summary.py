from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

from journal_analytics.config.app_config import load_app_config
from journal_analytics.metrics.formatting import chart_rows, format_currency, format_percent
from journal_analytics.metrics.grouped import (
    GroupKey,
    StrategyMetrics,
    aggregate,
    compute_metrics,
    portfolio_metrics,
)
from journal_analytics.pipeline import trades_from_path


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Compute grouped trade metrics.")
    parser.add_argument("orders_path", type=Path, help="Path to orders export or journal documents (json/csv/tsv).")
    parser.add_argument("--broker", type=str, default=None, help="Broker field mapping to apply.")
    parser.add_argument("--policy", type=str, default=None, help="Matching policy (weighted_average or strict_fifo).")
    parser.add_argument(
        "--group-by",
        type=str,
        default=GroupKey.STRATEGY.value,
        choices=[key.value for key in GroupKey],
        help="Dimension to group trades by.",
    )
    parser.add_argument("--config", type=Path, default=None, help="Path to app.toml.")
    parser.add_argument("--json", action="store_true", help="Print JSON output.")
    parser.add_argument("--out", type=Path, default=None, help="Write output to a file instead of stdout.")
    args = parser.parse_args(argv)

    app_config = load_app_config(args.config)
    logging.basicConfig(level=app_config.app.log_level, format="%(levelname)s %(name)s: %(message)s")

    try:
        result = trades_from_path(
            args.orders_path,
            broker=args.broker,
            policy=args.policy,
            settings=app_config.analytics,
        )
    except (OSError, ValueError) as exc:
        print(f"Failed to load {args.orders_path}: {exc}", file=sys.stderr)
        return 1

    if result.skipped:
        print(f"Skipped {result.skipped} order rows during normalization.", file=sys.stderr)

    groups = aggregate(result.trades, args.group_by, settings=app_config.analytics)
    overall = compute_metrics(result.trades)

    if args.json or (args.out is not None and args.out.suffix.lower() == ".json"):
        payload: dict[str, Any] = {
            "group_by": args.group_by,
            "overall": overall.to_dict(),
            "portfolio": portfolio_metrics(groups).to_dict(),
            "groups": chart_rows(groups, args.group_by),
        }
        text = json.dumps(payload, indent=2, sort_keys=True, ensure_ascii=False)
    else:
        text = _format_groups(groups, overall, args.group_by, app_config.analytics.currency_symbol)

    if args.out is None:
        print(text)
    else:
        args.out.parent.mkdir(parents=True, exist_ok=True)
        args.out.write_text(text + "\n", encoding="utf-8")

    return 0


def _format_groups(
    groups: dict[str, StrategyMetrics],
    overall: StrategyMetrics,
    group_by: str,
    currency: str,
) -> str:
    lines = [f"group_by {group_by}"]
    for row in chart_rows(groups, group_by):
        lines.append(
            f"{row['group']}: trades {row['total_trades']} "
            f"win_rate {format_percent(row['win_rate'])} "
            f"pnl {format_currency(row['total_pnl'], currency)} "
            f"rr {row['risk_reward_ratio']:.2f} pf {row['profit_factor']:.2f} "
            f"avg_duration {row['avg_duration']:.1f}m"
        )
    lines.append(
        f"overall: trades {overall.total_trades} win_rate {format_percent(overall.win_rate)} "
        f"pnl {format_currency(overall.total_pnl, currency)} pf {overall.profit_factor:.2f}"
    )
    return "\n".join(lines)


if __name__ == "__main__":
    raise SystemExit(main())
