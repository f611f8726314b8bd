# updown/service/breakout_engine.py
from __future__ import annotations

import threading
import time
from dataclasses import replace
from typing import Callable, Optional

from loguru import logger

from updown.config.config_store import ConfigStore
from updown.providers.market_data import BalanceSource, PriceSample, PriceSource
from updown.reporting.trade_reporter import TradeReporter
from updown.service.bot_state import BotState, BotStats, TradeOutcome
from updown.service.trade_executor import ExecutionResult, TradeExecutor
from updown.service.trade_sizer import calculate_trade_amount
from updown.state.trade_state import StateStore
from updown.utils.bot_config import BotConfig
from updown.utils.timeouts import call_with_timeout
from updown.utils.trading_mode import HoldingMode, TradeAction


def is_price_stable(current: float, previous: float, max_deviation_pct: float) -> bool:
    deviation = abs((current - previous) / previous) * 100
    if deviation > max_deviation_pct:
        logger.warning("Price deviation too high: {:.2f}%", deviation)
        return False
    return True


def breakout_levels(last_high: float, last_low: float, buffer_bps: int) -> tuple[float, float]:
    """Prices a sample must exceed (up) or undercut (down) to count as a breakout."""
    buffer = buffer_bps / 10000
    return last_high * (1 + buffer), last_low * (1 - buffer)


class BreakoutEngine:
    """
    Owns BotState and evaluates one tick at a time.

    Two locks:
    - _tick_lock: at most one tick in flight; a second caller is turned away.
    - _state_lock: guards reads and commits of the state. It is never held
      across an external call, so snapshots stay cheap during a slow tick.
    """

    def __init__(
        self,
        config_store: ConfigStore,
        price_source: PriceSource,
        balance_source: BalanceSource,
        executor: TradeExecutor,
        state_store: StateStore,
        wallet_address: str,
        reporter: Optional[TradeReporter] = None,
        initial_state: Optional[BotState] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config_store = config_store
        self.price_source = price_source
        self.balance_source = balance_source
        self.executor = executor
        self.state_store = state_store
        self.wallet_address = wallet_address
        self.reporter = reporter
        self.clock = clock

        self._state = initial_state or BotState(bot_id=config_store.get().bot_id)
        self._last_price: Optional[float] = None

        self._tick_lock = threading.Lock()
        self._state_lock = threading.Lock()

    # =========================
    # State access
    # =========================
    def snapshot(self) -> BotState:
        with self._state_lock:
            return self._state.snapshot()

    def _commit(self, **changes) -> BotState:
        """Apply changes to the owned state and persist before returning."""
        with self._state_lock:
            self._state = replace(self._state, **changes)
            persisted = self._state.snapshot()
        self.state_store.save(persisted)
        return persisted

    def set_running(self, running: bool) -> BotState:
        return self._commit(is_running=running)

    # =========================
    # Tick
    # =========================
    def tick(self) -> Optional[TradeOutcome]:
        """
        Run one evaluation. Returns None when the tick was skipped silently
        (cooldown, another tick in flight, or an unexpected error).
        """
        if not self._tick_lock.acquire(blocking=False):
            logger.warning("Tick already in flight, skipping")
            return None

        try:
            return self._tick()
        except Exception:
            logger.exception("💥 Error in tick")
            return None
        finally:
            self._tick_lock.release()

    def _tick(self) -> Optional[TradeOutcome]:
        config = self.config_store.get()
        state = self.snapshot()
        now = self.clock()

        # 1) Cooldown
        if state.in_cooldown(now):
            return None
        if state.cooldown_until is not None:
            state = self._commit(cooldown_until=None)

        # 2) Price + stability
        sample = self.price_source.get_price()
        if sample.is_fallback:
            logger.warning("⚠️ FALLBACK PRICE driving this tick | price={}", sample.price)

        previous = self._last_price
        self._last_price = sample.price
        if previous is not None and not is_price_stable(
            sample.price, previous, config.max_price_deviation_pct
        ):
            logger.warning("Price instability detected, skipping tick")
            return self._skip(state, sample, "Price instability")

        # 3) Bootstrap
        if not state.bootstrapped:
            state = self._commit(last_high=sample.price, last_low=sample.price)
            logger.info("📍 Bootstrap: set initial high/low to {}", sample.price)
            return self._skip(state, sample, "Bootstrap")

        # 4) Breakout detection
        upper, lower = breakout_levels(state.last_high, state.last_low, config.break_buffer_bps)
        up_breakout = sample.price > upper
        down_breakout = sample.price < lower

        if up_breakout and state.mode == HoldingMode.HOLDING_STABLE:
            outcome = self._attempt(TradeAction.BUY_VOLATILE, state, sample, config)
        elif down_breakout and state.mode == HoldingMode.HOLDING_VOLATILE:
            outcome = self._attempt(TradeAction.SELL_VOLATILE, state, sample, config)
        else:
            return self._skip(state, sample, None)

        if self.reporter is not None:
            self.reporter.record_outcome(state.bot_id, outcome, self.snapshot().stats)

        logger.info(
            "Trade result | action={} | success={} | price={:.2f} | qty={} | tx={} | reason={}",
            outcome.action.value,
            outcome.success,
            outcome.price,
            outcome.quantity,
            outcome.tx_ref,
            outcome.reason,
        )
        return outcome

    # =========================
    # Transitions
    # =========================
    def _attempt(
        self,
        action: TradeAction,
        state: BotState,
        sample: PriceSample,
        config: BotConfig,
    ) -> TradeOutcome:
        price = sample.price

        try:
            balances = call_with_timeout(
                self.balance_source.get_balances,
                config.call_timeout_sec,
                self.wallet_address,
                price,
            )
        except Exception as e:
            logger.error("Failed to get balances: {}", e)
            return self._failed(state, sample, action, f"Balance lookup failed: {e}")

        decision = calculate_trade_amount(balances, state.mode, config.trade_pct, config.min_trade_usd)
        if not decision.is_valid:
            logger.info("Sizing rejected {} | {}", action.value, decision.reason)
            return self._failed(state, sample, action, decision.reason)

        result = self.executor.execute(action, decision, price, config)
        if not result.success:
            return self._failed(state, sample, action, result.reason, tx_ref=result.tx_ref)

        return self._apply_success(action, state, sample, config, result)

    def _apply_success(
        self,
        action: TradeAction,
        state: BotState,
        sample: PriceSample,
        config: BotConfig,
        result: ExecutionResult,
    ) -> TradeOutcome:
        price = sample.price
        cooldown_until = self.clock() + config.cooldown_sec
        stats = BotStats(
            trade_count=state.stats.trade_count + 1,
            realized_pnl_stable=state.stats.realized_pnl_stable,
        )
        pnl = None

        if action == TradeAction.BUY_VOLATILE:
            # Breakout price becomes the new floor
            committed = self._commit(
                mode=HoldingMode.HOLDING_VOLATILE,
                last_low=price,
                entry_price=price,
                cooldown_until=cooldown_until,
                stats=stats,
            )
        else:
            if state.entry_price is not None:
                pnl = result.quantity * (price - state.entry_price)
                stats.realized_pnl_stable += pnl
            committed = self._commit(
                mode=HoldingMode.HOLDING_STABLE,
                last_high=price,
                entry_price=None,
                cooldown_until=cooldown_until,
                stats=stats,
            )

        return TradeOutcome(
            success=True,
            action=action,
            price=price,
            quantity=result.quantity,
            tx_ref=result.tx_ref,
            reason=result.reason,
            last_high=committed.last_high,
            last_low=committed.last_low,
            timestamp=self.clock(),
            price_source=sample.source,
            pnl_stable=pnl,
        )

    def _failed(
        self,
        state: BotState,
        sample: PriceSample,
        action: TradeAction,
        reason: Optional[str],
        tx_ref: Optional[str] = None,
    ) -> TradeOutcome:
        return TradeOutcome(
            success=False,
            action=TradeAction.SKIP,
            attempted_action=action,
            reason=reason,
            tx_ref=tx_ref,
            price=sample.price,
            last_high=state.last_high,
            last_low=state.last_low,
            timestamp=self.clock(),
            price_source=sample.source,
        )

    def _skip(self, state: BotState, sample: PriceSample, reason: Optional[str]) -> TradeOutcome:
        return TradeOutcome(
            success=False,
            action=TradeAction.SKIP,
            reason=reason,
            price=sample.price,
            last_high=state.last_high,
            last_low=state.last_low,
            timestamp=self.clock(),
            price_source=sample.source,
        )
