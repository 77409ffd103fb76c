from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from journal_analytics.config.app_config import load_app_config
from journal_analytics.ingest.brokers import supported_brokers
from journal_analytics.pipeline import trades_from_path
from journal_analytics.reconstruct.trades import MatchingPolicy


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Reconstruct round-trip trades from a broker order export.")
    parser.add_argument("orders_path", type=Path, help="Path to orders export or journal documents (json/csv/tsv).")
    parser.add_argument(
        "--broker",
        type=str,
        default=None,
        help=f"Broker field mapping to apply ({', '.join(supported_brokers())}). Omit for canonical records.",
    )
    parser.add_argument(
        "--policy",
        type=str,
        default=None,
        choices=[policy.value for policy in MatchingPolicy] + ["fifo", "weighted"],
        help="Matching policy; defaults to analytics.matching_policy from config.",
    )
    parser.add_argument("--config", type=Path, default=None, help="Path to app.toml.")
    parser.add_argument(
        "--utc",
        action="store_true",
        help="Print timestamps in UTC instead of local timezone.",
    )
    parser.add_argument("--out", type=Path, default=None, help="Write the table to a file instead of stdout.")
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

    if not result.trades:
        print("No trades reconstructed.")
        return 0

    output = ["id symbol side qty entry_px exit_px pnl return_pct entry_time exit_time duration_min strategy"]
    for trade in result.trades:
        entry_time = trade.entry_time if args.utc else trade.entry_time.astimezone()
        exit_time = "open"
        if trade.exit_time is not None:
            exit_time = (trade.exit_time if args.utc else trade.exit_time.astimezone()).isoformat()
        output.append(
            f"{trade.trade_id} {trade.symbol} {trade.side} {trade.quantity:.6g} "
            f"{trade.entry_price:.2f} {trade.exit_price:.2f} {trade.pnl:.2f} {trade.return_pct:.2f} "
            f"{entry_time.isoformat()} {exit_time} {trade.duration_minutes:.2f} {trade.strategy!r}"
        )

    if args.out is None:
        for line in output:
            print(line)
    else:
        args.out.parent.mkdir(parents=True, exist_ok=True)
        args.out.write_text("\n".join(output) + "\n", encoding="utf-8")

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
