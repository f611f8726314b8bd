from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

PRIMARY_SOURCE = "uniswap_v3"
FALLBACK_SOURCE = "fallback"


@dataclass(frozen=True)
class PriceSample:
    price: float
    timestamp: float
    source: str

    @property
    def is_fallback(self) -> bool:
        return self.source == FALLBACK_SOURCE


@dataclass(frozen=True)
class Balances:
    volatile_qty: float
    stable_qty: float
    volatile_usd: float
    stable_usd: float


@dataclass(frozen=True)
class SwapRequest:
    token_in: str
    token_out: str
    amount_in: float
    max_slippage_bps: int
    recipient: str
    amount_out_min: float = 0.0


@dataclass(frozen=True)
class SwapResult:
    success: bool
    tx_ref: Optional[str] = None
    amount_out: Optional[float] = None
    error: Optional[str] = None
    pending: bool = False


class PriceSource:
    def get_price(self) -> PriceSample:
        raise NotImplementedError


class BalanceSource:
    def get_balances(self, address: str, price: float) -> Balances:
        raise NotImplementedError


class SwapVenue:
    def allowance(self, token: str, owner: str) -> float:
        raise NotImplementedError

    def approve(self, token: str, amount: float) -> str:
        raise NotImplementedError

    def swap(self, request: SwapRequest) -> SwapResult:
        raise NotImplementedError
