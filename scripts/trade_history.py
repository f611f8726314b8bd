#!/usr/bin/env python3
import argparse

from updown.reporting.trade_reporter import TradeReporter


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Print the most recent switch attempts from the trade report."
    )
    parser.add_argument("--bot-id", default="updown_base", help="Bot ID to show.")
    parser.add_argument("--limit", type=int, default=20, help="Number of rows.")
    parser.add_argument(
        "--only-success",
        action="store_true",
        help="Hide failed attempts.",
    )
    parser.add_argument("--file", default="reports/trades/trades.csv")
    args = parser.parse_args()

    reporter = TradeReporter(args.file)
    rows = reporter.get_recent_trades(
        bot_id=args.bot_id,
        limit=args.limit,
        only_success=args.only_success,
    )
    if not rows:
        print("No trades recorded.")
        return 0

    for row in rows:
        action = row["action"] if row["success"] == "true" else f"FAILED {row['attempted_action']}"
        print(
            f"{row['timestamp']}  {action:<20} price={row['price']:<16} "
            f"qty={row['qty'] or '-':<16} pnl={row['cumulative_pnl'] or '-'}  {row['reason']}"
        )

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
