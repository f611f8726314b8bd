from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Enum, Float, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from updown.utils.trading_mode import HoldingMode

from .db import Base


class BotStateRecord(Base):
    __tablename__ = "bot_state"

    bot_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    mode: Mapped[HoldingMode] = mapped_column(Enum(HoldingMode))
    entry_price: Mapped[float | None] = mapped_column(Float, nullable=True)

    last_high: Mapped[float | None] = mapped_column(Float, nullable=True)
    last_low: Mapped[float | None] = mapped_column(Float, nullable=True)

    cooldown_until: Mapped[float | None] = mapped_column(Float, nullable=True)
    is_running: Mapped[bool] = mapped_column(Boolean, default=False)

    trade_count: Mapped[int] = mapped_column(Integer, default=0)
    realized_pnl_stable: Mapped[float] = mapped_column(Float, default=0.0)

    updated_at: Mapped[datetime] = mapped_column(DateTime)
