from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from updown.providers.market_data import Balances
from updown.utils.trading_mode import HoldingMode

# Volatile units always left in the wallet to pay for gas
GAS_RESERVE_VOLATILE = 0.001


@dataclass(frozen=True)
class TradeDecision:
    amount: float
    is_valid: bool
    reason: Optional[str] = None
    notional_usd: float = 0.0


def calculate_trade_amount(
    balances: Balances,
    mode: HoldingMode,
    trade_pct: float,
    min_trade_usd: float,
    gas_reserve: float = GAS_RESERVE_VOLATILE,
) -> TradeDecision:
    """
    Size the next switch as a fraction of whatever is currently held.

    HOLDING_STABLE spends stable units (valued 1:1 in USD); HOLDING_VOLATILE
    sells volatile units. The minimum notional and, for sells, the gas
    reserve are checked independently and either one rejects.
    """
    if mode == HoldingMode.HOLDING_STABLE:
        amount = balances.stable_qty * trade_pct
        notional = amount
    else:
        amount = balances.volatile_qty * trade_pct
        notional = balances.volatile_usd * trade_pct

    if notional < min_trade_usd:
        return TradeDecision(
            amount=0.0,
            is_valid=False,
            reason=f"Trade value ${notional:.2f} below minimum ${min_trade_usd}",
            notional_usd=notional,
        )

    if mode == HoldingMode.HOLDING_VOLATILE and balances.volatile_qty - amount < gas_reserve:
        return TradeDecision(
            amount=0.0,
            is_valid=False,
            reason=f"Insufficient volatile balance (must keep {gas_reserve} for gas)",
            notional_usd=notional,
        )

    return TradeDecision(amount=amount, is_valid=True, notional_usd=notional)
