import time
from typing import Optional

import pytest

from updown.config.config_store import ConfigStore
from updown.providers.market_data import (
    BalanceSource,
    Balances,
    PriceSample,
    PriceSource,
    SwapRequest,
    SwapResult,
    SwapVenue,
)
from updown.service.bot_state import BotState
from updown.service.breakout_engine import BreakoutEngine
from updown.service.trade_executor import TradeExecutor
from updown.state.trade_state import StateStore
from updown.utils.bot_config import BotConfig

USDC = "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913"
WALLET = "0x000000000000000000000000000000000000dEaD"


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakePriceSource(PriceSource):
    def __init__(self, prices=(), source: str = "uniswap_v3"):
        self.prices = list(prices)
        self.source = source
        self.calls = 0

    def push(self, *prices: float) -> None:
        self.prices.extend(prices)

    def get_price(self) -> PriceSample:
        self.calls += 1
        return PriceSample(price=self.prices.pop(0), timestamp=time.time(), source=self.source)


class FakeBalanceSource(BalanceSource):
    def __init__(self, volatile_qty: float = 1.0, stable_qty: float = 1000.0, delay: float = 0.0):
        self.volatile_qty = volatile_qty
        self.stable_qty = stable_qty
        self.delay = delay
        self.calls = []

    def get_balances(self, address: str, price: float) -> Balances:
        self.calls.append((address, price))
        if self.delay:
            time.sleep(self.delay)
        return Balances(
            volatile_qty=self.volatile_qty,
            stable_qty=self.stable_qty,
            volatile_usd=self.volatile_qty * price,
            stable_usd=self.stable_qty,
        )


class FakeVenue(SwapVenue):
    def __init__(
        self,
        success: bool = True,
        error: Optional[str] = None,
        allowance: float = 0.0,
        delay: float = 0.0,
        pending: bool = False,
    ):
        self.success = success
        self.error = error
        self.current_allowance = allowance
        self.delay = delay
        self.pending = pending
        self.swaps: list[SwapRequest] = []
        self.approvals: list[tuple[str, float]] = []
        self.allowance_queries = 0

    @property
    def touched(self) -> bool:
        return bool(self.swaps or self.approvals or self.allowance_queries)

    def allowance(self, token: str, owner: str) -> float:
        self.allowance_queries += 1
        return self.current_allowance

    def approve(self, token: str, amount: float) -> str:
        self.approvals.append((token, amount))
        self.current_allowance = amount
        return "0xapprove"

    def swap(self, request: SwapRequest) -> SwapResult:
        self.swaps.append(request)
        if self.delay:
            time.sleep(self.delay)
        if not self.success:
            return SwapResult(success=False, error=self.error)
        return SwapResult(success=True, tx_ref=f"0xswap{len(self.swaps)}", pending=self.pending)


class MemoryStateStore(StateStore):
    def __init__(self, state: Optional[BotState] = None):
        self.state = state
        self.saves = 0

    def load(self) -> Optional[BotState]:
        return self.state.snapshot() if self.state else None

    def save(self, state: BotState) -> None:
        self.saves += 1
        self.state = state.snapshot()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def prices():
    return FakePriceSource()


@pytest.fixture
def balances():
    return FakeBalanceSource()


@pytest.fixture
def venue():
    return FakeVenue()


@pytest.fixture
def store():
    return MemoryStateStore()


@pytest.fixture
def make_engine(clock, prices, balances, venue, store):
    def _make(state: Optional[BotState] = None, **config_overrides) -> BreakoutEngine:
        config = BotConfig(**config_overrides)
        return BreakoutEngine(
            config_store=ConfigStore(config),
            price_source=prices,
            balance_source=balances,
            executor=TradeExecutor(venue, WALLET, stable_token=USDC),
            state_store=store,
            wallet_address=WALLET,
            initial_state=state,
            clock=clock,
        )

    return _make
