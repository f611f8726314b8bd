from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session, sessionmaker

from updown.persistence.models import BotStateRecord
from updown.state.trade_state import StateStore
from updown.service.bot_state import BotState, BotStats
from updown.utils.trading_mode import HoldingMode


class StateRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, bot_id: str) -> Optional[BotStateRecord]:
        return self.session.get(BotStateRecord, bot_id)

    def upsert(self, state: BotState) -> BotStateRecord:
        record = BotStateRecord(
            bot_id=state.bot_id,
            mode=state.mode,
            entry_price=state.entry_price,
            last_high=state.last_high,
            last_low=state.last_low,
            cooldown_until=state.cooldown_until,
            is_running=state.is_running,
            trade_count=state.stats.trade_count,
            realized_pnl_stable=state.stats.realized_pnl_stable,
            updated_at=datetime.now(timezone.utc).replace(tzinfo=None),
        )

        merged = self.session.merge(record)
        self.session.commit()

        return merged


def _to_state(record: BotStateRecord) -> BotState:
    return BotState(
        bot_id=record.bot_id,
        mode=HoldingMode(record.mode.value),
        entry_price=record.entry_price,
        last_high=record.last_high,
        last_low=record.last_low,
        cooldown_until=record.cooldown_until,
        is_running=bool(record.is_running),
        stats=BotStats(
            trade_count=record.trade_count or 0,
            realized_pnl_stable=record.realized_pnl_stable or 0.0,
        ),
    )


class SqlStateStore(StateStore):
    """BotState persisted as one row per bot_id."""

    def __init__(self, session_factory: sessionmaker, bot_id: str) -> None:
        self.session_factory = session_factory
        self.bot_id = bot_id

    def load(self) -> Optional[BotState]:
        with self.session_factory() as session:
            record = StateRepository(session).get(self.bot_id)
            if record is None:
                return None
            return _to_state(record)

    def save(self, state: BotState) -> None:
        with self.session_factory() as session:
            StateRepository(session).upsert(state)
