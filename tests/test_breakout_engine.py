import pytest

from updown.reporting.trade_reporter import TradeReporter
from updown.service.bot_state import BotState, BotStats
from updown.service.breakout_engine import breakout_levels, is_price_stable
from updown.utils.trading_mode import HoldingMode, TradeAction


def channel(high=3500.0, low=3500.0, mode=HoldingMode.HOLDING_STABLE, **kwargs) -> BotState:
    return BotState(bot_id="updown_base", mode=mode, last_high=high, last_low=low, **kwargs)


def test_bootstrap_sets_channel_to_first_price(make_engine, prices, store, venue):
    engine = make_engine()
    prices.push(3421.5)

    outcome = engine.tick()

    state = engine.snapshot()
    assert state.last_high == state.last_low == 3421.5
    assert state.mode == HoldingMode.HOLDING_STABLE
    assert state.stats.trade_count == 0
    assert outcome.action == TradeAction.SKIP
    assert outcome.reason == "Bootstrap"
    assert store.state.last_high == 3421.5
    assert not venue.touched


def test_buffer_suppresses_breakout_just_above_high(make_engine, prices, balances):
    engine = make_engine(state=channel(high=3500.0, low=3400.0), break_buffer_bps=10)
    prices.push(3503.0)

    outcome = engine.tick()

    assert outcome.action == TradeAction.SKIP
    assert outcome.attempted_action is None
    assert balances.calls == []
    assert engine.snapshot().mode == HoldingMode.HOLDING_STABLE


def test_breakout_past_buffer_buys(make_engine, prices, clock):
    engine = make_engine(state=channel(high=3500.0, low=3400.0), break_buffer_bps=10)
    prices.push(3504.0)

    outcome = engine.tick()

    assert outcome.success
    assert outcome.action == TradeAction.BUY_VOLATILE
    state = engine.snapshot()
    assert state.mode == HoldingMode.HOLDING_VOLATILE
    assert state.last_low == 3504.0
    assert state.last_high == 3500.0
    assert state.entry_price == 3504.0
    assert state.cooldown_until == clock.now + 15
    assert state.stats.trade_count == 1


def test_down_breakout_sells_and_moves_high(make_engine, prices):
    engine = make_engine(
        state=channel(high=3600.0, low=3500.0, mode=HoldingMode.HOLDING_VOLATILE, entry_price=3520.0),
    )
    prices.push(3490.0)

    outcome = engine.tick()

    assert outcome.success
    assert outcome.action == TradeAction.SELL_VOLATILE
    state = engine.snapshot()
    assert state.mode == HoldingMode.HOLDING_STABLE
    assert state.last_high == 3490.0
    assert state.last_low == 3500.0
    assert outcome.quantity == pytest.approx(0.25)
    assert state.stats.realized_pnl_stable == pytest.approx(0.25 * (3490.0 - 3520.0))


def test_breakout_in_wrong_mode_is_ignored(make_engine, prices):
    engine = make_engine(state=channel(high=3500.0, low=3400.0, mode=HoldingMode.HOLDING_VOLATILE))
    prices.push(3510.0)

    outcome = engine.tick()

    assert outcome.action == TradeAction.SKIP
    assert engine.snapshot().last_high == 3500.0


def test_cooldown_blocks_evaluation_until_elapsed(make_engine, prices, clock):
    engine = make_engine(state=channel(high=3500.0, low=3400.0), cooldown_sec=30)
    prices.push(3510.0)
    assert engine.tick().action == TradeAction.BUY_VOLATILE

    # Down breakout conditions hold, but cooldown is active
    clock.advance(29)
    calls_before = prices.calls
    assert engine.tick() is None
    assert prices.calls == calls_before
    assert engine.snapshot().mode == HoldingMode.HOLDING_VOLATILE

    clock.advance(2)
    prices.push(3480.0)
    outcome = engine.tick()
    assert outcome.action == TradeAction.SELL_VOLATILE
    assert engine.snapshot().stats.trade_count == 2


def test_elapsed_cooldown_is_cleared(make_engine, prices, clock):
    engine = make_engine(state=channel(cooldown_until=clock.now - 1))
    prices.push(3500.0)

    engine.tick()

    assert engine.snapshot().cooldown_until is None


def test_failed_execution_leaves_state_untouched(make_engine, prices, venue, store):
    venue.success = False
    venue.error = "execution reverted"
    start = channel(high=3500.0, low=3400.0)
    engine = make_engine(state=start, safe_mode=False)
    prices.push(3600.0)

    outcome = engine.tick()

    assert not outcome.success
    assert outcome.action == TradeAction.SKIP
    assert outcome.attempted_action == TradeAction.BUY_VOLATILE
    assert outcome.reason == "execution reverted"
    state = engine.snapshot()
    assert state.mode == start.mode
    assert (state.last_high, state.last_low) == (3500.0, 3400.0)
    assert state.cooldown_until is None
    assert state.stats.trade_count == 0
    assert store.saves == 0


def test_sizing_rejection_skips_without_trading(make_engine, prices, balances, venue):
    balances.stable_qty = 50.0
    engine = make_engine(state=channel(high=3500.0, low=3400.0), safe_mode=False)
    prices.push(3600.0)

    outcome = engine.tick()

    assert outcome.action == TradeAction.SKIP
    assert outcome.attempted_action == TradeAction.BUY_VOLATILE
    assert "below minimum" in outcome.reason
    assert not venue.touched
    assert engine.snapshot().mode == HoldingMode.HOLDING_STABLE


def test_balance_timeout_fails_the_tick_only(make_engine, prices, balances):
    balances.delay = 0.5
    engine = make_engine(state=channel(high=3500.0, low=3400.0), call_timeout_sec=0.05)
    prices.push(3600.0)

    outcome = engine.tick()

    assert not outcome.success
    assert "Balance lookup failed" in outcome.reason
    assert engine.snapshot().mode == HoldingMode.HOLDING_STABLE


def test_simulation_counts_trades_without_venue_calls(make_engine, prices, venue):
    engine = make_engine(state=channel(high=3500.0, low=3400.0), safe_mode=True)
    prices.push(3600.0)

    outcome = engine.tick()

    assert outcome.success
    assert outcome.quantity == pytest.approx(250.0)
    assert engine.snapshot().stats.trade_count == 1
    assert not venue.touched


def test_unstable_price_is_discarded(make_engine, prices):
    engine = make_engine(state=channel(high=3500.0, low=3400.0))
    prices.push(3450.0, 3600.0)

    engine.tick()
    outcome = engine.tick()

    assert outcome.reason == "Price instability"
    assert engine.snapshot().mode == HoldingMode.HOLDING_STABLE


def test_level_shift_is_accepted_on_the_following_tick(make_engine, prices):
    engine = make_engine(state=channel(high=3500.0, low=3400.0))
    prices.push(3450.0, 3600.0, 3601.0)

    engine.tick()
    engine.tick()
    outcome = engine.tick()

    assert outcome.action == TradeAction.BUY_VOLATILE


def test_trailing_floor_never_drops_while_holding_volatile(make_engine, prices, clock):
    engine = make_engine(state=channel(high=3500.0, low=3400.0), cooldown_sec=0)
    prices.push(3510.0)
    engine.tick()

    floors = [engine.snapshot().last_low]
    for price in (3515.0, 3530.0, 3520.0, 3540.0, 3512.0):
        clock.advance(1)
        prices.push(price)
        engine.tick()
        state = engine.snapshot()
        assert state.mode == HoldingMode.HOLDING_VOLATILE
        floors.append(state.last_low)

    assert floors == sorted(floors)


def test_fallback_price_still_drives_decisions(make_engine, prices):
    prices.source = "fallback"
    engine = make_engine(state=channel(high=3400.0, low=3300.0))
    prices.push(3500.0)

    outcome = engine.tick()

    assert outcome.action == TradeAction.BUY_VOLATILE
    assert outcome.price_source == "fallback"


def test_unexpected_error_is_contained(make_engine, prices):
    engine = make_engine(state=channel(high=3500.0, low=3400.0))

    # Empty price list -> IndexError inside the tick
    assert engine.tick() is None
    assert engine.snapshot().last_high == 3500.0

    prices.push(3600.0)
    assert engine.tick().action == TradeAction.BUY_VOLATILE


def test_tick_in_flight_turns_away_second_caller(make_engine, prices):
    engine = make_engine(state=channel())
    engine._tick_lock.acquire()
    try:
        assert engine.tick() is None
        assert prices.calls == 0
    finally:
        engine._tick_lock.release()


def test_snapshot_is_a_copy(make_engine):
    engine = make_engine(state=channel(stats=BotStats(trade_count=3)))

    snap = engine.snapshot()
    snap.stats.trade_count = 99
    snap.last_high = 1.0

    assert engine.snapshot().stats.trade_count == 3
    assert engine.snapshot().last_high == 3500.0


def test_breakout_levels_are_symmetric():
    upper, lower = breakout_levels(3500.0, 3400.0, 10)
    assert upper == pytest.approx(3503.5)
    assert lower == pytest.approx(3396.6)


def test_price_stability_threshold():
    assert is_price_stable(3534.0, 3500.0, 1.0)
    assert not is_price_stable(3536.0, 3500.0, 1.0)


def test_only_attempts_reach_the_trade_report(make_engine, prices, tmp_path):
    engine = make_engine(state=channel(high=3500.0, low=3400.0), cooldown_sec=0)
    engine.reporter = TradeReporter(tmp_path / "trades.csv")
    prices.push(3450.0, 3504.0)

    engine.tick()
    engine.tick()

    rows = engine.reporter.get_recent_trades(bot_id="updown_base")
    assert [row["action"] for row in rows] == ["BUY_VOLATILE"]
    assert rows[0]["trade_count"] == "1"


def test_slow_live_swap_is_recorded_once(make_engine, prices, venue):
    venue.delay = 0.2
    engine = make_engine(
        state=channel(high=3500.0, low=3400.0), safe_mode=False, call_timeout_sec=0.05, cooldown_sec=0
    )
    prices.push(3600.0, 3610.0)

    first = engine.tick()
    second = engine.tick()

    assert first.success
    assert first.tx_ref == "0xswap1"
    assert second.action == TradeAction.SKIP
    assert len(venue.swaps) == 1
    state = engine.snapshot()
    assert state.mode == HoldingMode.HOLDING_VOLATILE
    assert state.stats.trade_count == 1


def test_unconfirmed_swap_still_switches_and_keeps_hash(make_engine, prices, venue):
    venue.pending = True
    engine = make_engine(state=channel(high=3500.0, low=3400.0), safe_mode=False)
    prices.push(3600.0)

    outcome = engine.tick()

    assert outcome.success
    assert outcome.tx_ref == "0xswap1"
    assert outcome.reason == "Submitted, confirmation pending"
    assert engine.snapshot().mode == HoldingMode.HOLDING_VOLATILE
