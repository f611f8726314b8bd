from __future__ import annotations

import time
from fractions import Fraction
from typing import Callable, Optional, Protocol, Sequence

from loguru import logger

from updown.errors import OracleDegradation
from updown.providers.chain import STABLE_DECIMALS, VOLATILE_DECIMALS
from updown.providers.market_data import (
    FALLBACK_SOURCE,
    PRIMARY_SOURCE,
    PriceSample,
    PriceSource,
)
from updown.utils.timeouts import call_with_timeout

# 0.05%, 0.3%, 1%; tried in this order, first pool with a price wins
FEE_TIERS: tuple[int, ...] = (500, 3000, 10000)
FALLBACK_PRICE = 3500.0
Q96 = 2 ** 96


class PoolReader(Protocol):
    def get_pool(self, token_a: str, token_b: str, fee: int) -> Optional[str]: ...

    def read_slot0(self, pool_address: str) -> tuple[int, str]: ...


def price_from_sqrt_price_x96(
    sqrt_price_x96: int,
    token0_is_volatile: bool,
    volatile_decimals: int = VOLATILE_DECIMALS,
    stable_decimals: int = STABLE_DECIMALS,
) -> float:
    """
    Decode a Uniswap V3 sqrtPriceX96 into stable units per volatile unit.

    The pool price (sqrtPriceX96 / 2**96) ** 2 is token1 per token0 in raw
    units. Scaling by 10 ** (decimals0 - decimals1) gives the human price,
    which is inverted when token0 is the stable asset.
    """
    if sqrt_price_x96 <= 0:
        raise ValueError("sqrtPriceX96 must be positive")

    raw = Fraction(sqrt_price_x96 * sqrt_price_x96, Q96 * Q96)

    if token0_is_volatile:
        price = raw * Fraction(10) ** (volatile_decimals - stable_decimals)
    else:
        price = 1 / (raw * Fraction(10) ** (stable_decimals - volatile_decimals))

    return float(price)


class UniswapV3PriceOracle(PriceSource):
    """
    Volatile/stable price from the first Uniswap V3 fee tier that has a pool
    with a positive price. Never raises: when no pool can be priced, or the
    lookup times out, a sample tagged FALLBACK_SOURCE is returned instead.
    """

    def __init__(
        self,
        reader: PoolReader,
        volatile_token: str,
        stable_token: str,
        fee_tiers: Sequence[int] = FEE_TIERS,
        fallback_price: float = FALLBACK_PRICE,
        timeout: float = 10.0,
        clock: Callable[[], float] = time.time,
    ):
        self.reader = reader
        self.volatile_token = volatile_token
        self.stable_token = stable_token
        self.fee_tiers = tuple(fee_tiers)
        self.fallback_price = fallback_price
        self.timeout = timeout
        self.clock = clock

    def get_price(self) -> PriceSample:
        try:
            price = call_with_timeout(self._pool_price, self.timeout)
            return PriceSample(price=price, timestamp=self.clock(), source=PRIMARY_SOURCE)
        except Exception as e:
            logger.error("Failed to fetch price from Uniswap V3: {}", e)
            logger.warning(
                "⚠️ FALLBACK PRICE in use | price={} | this is degraded data",
                self.fallback_price,
            )
            return PriceSample(
                price=self.fallback_price,
                timestamp=self.clock(),
                source=FALLBACK_SOURCE,
            )

    def _pool_price(self) -> float:
        for fee in self.fee_tiers:
            try:
                pool = self.reader.get_pool(self.volatile_token, self.stable_token, fee)
                if pool is None:
                    continue

                sqrt_price_x96, token0 = self.reader.read_slot0(pool)
                if sqrt_price_x96 <= 0:
                    continue

                price = price_from_sqrt_price_x96(
                    sqrt_price_x96,
                    token0.lower() == self.volatile_token.lower(),
                )
            except Exception as e:
                logger.debug("Failed to read pool for fee tier {}: {}", fee, e)
                continue

            if price > 0:
                logger.debug("Pool price | fee={} | price={:.4f}", fee, price)
                return price

        raise OracleDegradation("No valid Uniswap V3 pool found for the pair")
