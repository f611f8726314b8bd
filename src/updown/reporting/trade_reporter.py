import csv
from datetime import datetime, timezone
from pathlib import Path
from collections import deque

from updown.service.bot_state import BotStats, TradeOutcome

FIELDNAMES = [
    "timestamp",
    "date",
    "bot_id",
    "action",
    "attempted_action",
    "success",
    "price",
    "price_source",
    "qty",
    "tx_ref",
    "reason",
    "last_high",
    "last_low",
    "trade_pnl",
    "cumulative_pnl",
    "trade_count",
]


def _fmt(value: float | None) -> str:
    return "" if value is None else f"{value:.8f}"


class TradeReporter:
    """Append-only CSV audit of every attempted switch."""

    def __init__(self, file_path: str | Path = "reports/trades/trades.csv") -> None:
        self.file_path = Path(file_path)
        self.file_path.parent.mkdir(parents=True, exist_ok=True)

    def record_outcome(self, bot_id: str, outcome: TradeOutcome, stats: BotStats) -> None:
        ts = datetime.fromtimestamp(outcome.timestamp, tz=timezone.utc)

        row = {
            "timestamp": ts.isoformat(),
            "date": ts.strftime("%Y-%m-%d"),
            "bot_id": bot_id,
            "action": outcome.action.value,
            "attempted_action": outcome.attempted_action.value if outcome.attempted_action else "",
            "success": str(outcome.success).lower(),
            "price": _fmt(outcome.price),
            "price_source": outcome.price_source or "",
            "qty": _fmt(outcome.quantity),
            "tx_ref": outcome.tx_ref or "",
            "reason": outcome.reason or "",
            "last_high": _fmt(outcome.last_high),
            "last_low": _fmt(outcome.last_low),
            "trade_pnl": _fmt(outcome.pnl_stable),
            "cumulative_pnl": _fmt(stats.realized_pnl_stable),
            "trade_count": str(stats.trade_count),
        }

        file_exists = self.file_path.exists()
        with self.file_path.open("a", newline="") as f:
            writer = csv.DictWriter(f, fieldnames=FIELDNAMES)
            if not file_exists:
                writer.writeheader()
            writer.writerow(row)

    def get_recent_trades(
        self,
        *,
        bot_id: str,
        limit: int = 10,
        only_success: bool = False,
    ) -> list[dict]:
        if not self.file_path.exists():
            return []

        rows: deque[dict] = deque(maxlen=max(limit, 1))
        with self.file_path.open("r", newline="") as f:
            reader = csv.DictReader(f)
            for row in reader:
                if row.get("bot_id") != bot_id:
                    continue
                if only_success and row.get("success") != "true":
                    continue
                rows.append(row)

        return list(rows)
