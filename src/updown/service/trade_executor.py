from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from loguru import logger

from updown.errors import SizingRejection
from updown.providers.chain import NATIVE_TOKEN, is_native
from updown.providers.market_data import SwapRequest, SwapVenue
from updown.service.trade_sizer import TradeDecision
from updown.utils.bot_config import BotConfig
from updown.utils.timeouts import call_with_timeout
from updown.utils.trading_mode import TradeAction


@dataclass(frozen=True)
class ExecutionResult:
    success: bool
    quantity: float = 0.0
    tx_ref: Optional[str] = None
    reason: Optional[str] = None
    simulated: bool = False
    pending: bool = False


def min_amount_out(amount: float, slippage_bps: int) -> float:
    return amount * (10000 - slippage_bps) / 10000


def expected_amount_out(action: TradeAction, amount_in: float, price: float) -> float:
    if action == TradeAction.BUY_VOLATILE:
        return amount_in / price
    return amount_in * price


class TradeExecutor:
    """
    Turns a valid sizing decision into a swap.

    Safe mode returns a synthetic success and never touches the venue.
    Live mode tops up the router allowance for ERC-20 inputs, bounds the
    output by the configured slippage and submits once; failures are
    returned, not retried.

    Only the allowance read runs under call_timeout_sec. Approvals and swaps
    are bounded by the chain client (RPC request timeout, receipt wait).
    A swap broadcast without a receipt counts as executed, pending.
    """

    def __init__(
        self,
        venue: Optional[SwapVenue],
        wallet_address: str,
        volatile_token: str = NATIVE_TOKEN,
        stable_token: str = "",
    ):
        self.venue = venue
        self.wallet_address = wallet_address
        self.volatile_token = volatile_token
        self.stable_token = stable_token

    def build_request(
        self,
        action: TradeAction,
        decision: TradeDecision,
        price: float,
        slippage_bps: int,
    ) -> SwapRequest:
        if action == TradeAction.BUY_VOLATILE:
            token_in, token_out = self.stable_token, self.volatile_token
        elif action == TradeAction.SELL_VOLATILE:
            token_in, token_out = self.volatile_token, self.stable_token
        else:
            raise ValueError(f"Cannot build a swap for {action}")

        expected = expected_amount_out(action, decision.amount, price)
        return SwapRequest(
            token_in=token_in,
            token_out=token_out,
            amount_in=decision.amount,
            max_slippage_bps=slippage_bps,
            recipient=self.wallet_address,
            amount_out_min=min_amount_out(expected, slippage_bps),
        )

    def execute(
        self,
        action: TradeAction,
        decision: TradeDecision,
        price: float,
        config: BotConfig,
    ) -> ExecutionResult:
        if not decision.is_valid:
            raise SizingRejection(decision.reason or "Invalid trade decision")

        if config.safe_mode:
            logger.info(
                "🧪 SAFE_MODE: would execute {} | amount={:.6f} | price={:.2f}",
                action.value,
                decision.amount,
                price,
            )
            return ExecutionResult(
                success=True,
                quantity=decision.amount,
                reason="Safe mode - trade simulated",
                simulated=True,
            )

        if self.venue is None:
            return ExecutionResult(success=False, reason="No swap venue configured for live mode")

        request = self.build_request(action, decision, price, config.slippage_bps)

        try:
            self._ensure_allowance(request, config.call_timeout_sec)
            result = self.venue.swap(request)
        except Exception as e:
            logger.error("Error executing {}: {}", action.value, e)
            return ExecutionResult(success=False, reason=str(e) or type(e).__name__)

        if not result.success:
            logger.error("{} failed: {}", action.value, result.error)
            return ExecutionResult(success=False, tx_ref=result.tx_ref, reason=result.error)

        if result.pending:
            logger.warning("{} submitted, confirmation pending: {}", action.value, result.tx_ref)
            return ExecutionResult(
                success=True,
                quantity=decision.amount,
                tx_ref=result.tx_ref,
                reason="Submitted, confirmation pending",
                pending=True,
            )

        logger.info("{} executed: {}", action.value, result.tx_ref)
        return ExecutionResult(success=True, quantity=decision.amount, tx_ref=result.tx_ref)

    def _ensure_allowance(self, request: SwapRequest, timeout: float) -> None:
        if is_native(request.token_in):
            return

        current = call_with_timeout(
            self.venue.allowance, timeout, request.token_in, self.wallet_address
        )
        if current >= request.amount_in:
            return

        logger.info("Approving {} tokens for swap", request.amount_in)
        self.venue.approve(request.token_in, request.amount_in)
        logger.info("Token approval completed")
