# updown/service/bot_state.py
from __future__ import annotations

import copy
from dataclasses import asdict, dataclass, field
from typing import Any, Optional

from updown.utils.trading_mode import HoldingMode, TradeAction


@dataclass
class BotStats:
    trade_count: int = 0
    realized_pnl_stable: float = 0.0


@dataclass
class BotState:
    bot_id: str = "updown_base"

    # Position
    mode: HoldingMode = HoldingMode.HOLDING_STABLE
    entry_price: Optional[float] = None

    # Channel
    last_high: Optional[float] = None
    last_low: Optional[float] = None

    # Runtime
    cooldown_until: Optional[float] = None
    is_running: bool = False

    stats: BotStats = field(default_factory=BotStats)

    @property
    def bootstrapped(self) -> bool:
        return self.last_high is not None and self.last_low is not None

    def in_cooldown(self, now: float) -> bool:
        return self.cooldown_until is not None and now < self.cooldown_until

    def snapshot(self) -> "BotState":
        return copy.deepcopy(self)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["mode"] = self.mode.value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BotState":
        stats = data.get("stats") or {}
        return cls(
            bot_id=data.get("bot_id", "updown_base"),
            mode=HoldingMode(data.get("mode", HoldingMode.HOLDING_STABLE.value)),
            entry_price=data.get("entry_price"),
            last_high=data.get("last_high"),
            last_low=data.get("last_low"),
            cooldown_until=data.get("cooldown_until"),
            is_running=bool(data.get("is_running", False)),
            stats=BotStats(
                trade_count=int(stats.get("trade_count", 0)),
                realized_pnl_stable=float(stats.get("realized_pnl_stable", 0.0)),
            ),
        )


@dataclass(frozen=True)
class TradeOutcome:
    """Audit record of one breakout decision."""

    success: bool
    action: TradeAction
    price: float
    last_high: Optional[float]
    last_low: Optional[float]
    timestamp: float
    quantity: Optional[float] = None
    tx_ref: Optional[str] = None
    reason: Optional[str] = None
    attempted_action: Optional[TradeAction] = None
    price_source: Optional[str] = None
    pnl_stable: Optional[float] = None
