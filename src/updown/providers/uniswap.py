from __future__ import annotations

import time
from typing import Optional

from loguru import logger
from web3 import Web3

from updown.errors import ExecutionFailure, TransactionPending
from updown.providers.chain import (
    STABLE_DECIMALS,
    VOLATILE_DECIMALS,
    ZERO_ADDRESS,
    ChainClient,
    ChainInfo,
    from_raw,
    is_native,
    to_raw,
)
from updown.providers.market_data import SwapRequest, SwapResult, SwapVenue

# SwapRouter02 sentinel meaning "keep the output inside the router"
ADDRESS_THIS = "0x0000000000000000000000000000000000000002"
DEFAULT_SWAP_FEE = 500

FACTORY_ABI = [
    {
        "name": "getPool",
        "type": "function",
        "stateMutability": "view",
        "inputs": [
            {"name": "tokenA", "type": "address"},
            {"name": "tokenB", "type": "address"},
            {"name": "fee", "type": "uint24"},
        ],
        "outputs": [{"name": "pool", "type": "address"}],
    }
]

POOL_ABI = [
    {
        "name": "slot0",
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [
            {"name": "sqrtPriceX96", "type": "uint160"},
            {"name": "tick", "type": "int24"},
            {"name": "observationIndex", "type": "uint16"},
            {"name": "observationCardinality", "type": "uint16"},
            {"name": "observationCardinalityNext", "type": "uint16"},
            {"name": "feeProtocol", "type": "uint8"},
            {"name": "unlocked", "type": "bool"},
        ],
    },
    {
        "name": "token0",
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "address"}],
    },
]

ROUTER_ABI = [
    {
        "name": "exactInputSingle",
        "type": "function",
        "stateMutability": "payable",
        "inputs": [
            {
                "name": "params",
                "type": "tuple",
                "components": [
                    {"name": "tokenIn", "type": "address"},
                    {"name": "tokenOut", "type": "address"},
                    {"name": "fee", "type": "uint24"},
                    {"name": "recipient", "type": "address"},
                    {"name": "amountIn", "type": "uint256"},
                    {"name": "amountOutMinimum", "type": "uint256"},
                    {"name": "sqrtPriceLimitX96", "type": "uint160"},
                ],
            }
        ],
        "outputs": [{"name": "amountOut", "type": "uint256"}],
    },
    {
        "name": "unwrapWETH9",
        "type": "function",
        "stateMutability": "payable",
        "inputs": [
            {"name": "amountMinimum", "type": "uint256"},
            {"name": "recipient", "type": "address"},
        ],
        "outputs": [],
    },
    {
        "name": "multicall",
        "type": "function",
        "stateMutability": "payable",
        "inputs": [{"name": "data", "type": "bytes[]"}],
        "outputs": [{"name": "results", "type": "bytes[]"}],
    },
]


class Web3PoolReader:
    """Reads Uniswap V3 pool addresses and slot0 through the factory."""

    def __init__(self, client: ChainClient, chain: ChainInfo):
        self.client = client
        self.factory = client.contract(chain.uniswap_v3_factory, FACTORY_ABI)

    def get_pool(self, token_a: str, token_b: str, fee: int) -> Optional[str]:
        pool = self.factory.functions.getPool(
            Web3.to_checksum_address(token_a),
            Web3.to_checksum_address(token_b),
            fee,
        ).call()
        if not pool or pool.lower() == ZERO_ADDRESS:
            return None
        return pool

    def read_slot0(self, pool_address: str) -> tuple[int, str]:
        pool = self.client.contract(pool_address, POOL_ABI)
        slot0 = pool.functions.slot0().call()
        token0 = pool.functions.token0().call()
        return int(slot0[0]), token0


def _decimals_for(token: str, chain: ChainInfo) -> int:
    if is_native(token) or token.lower() == chain.weth.lower():
        return VOLATILE_DECIMALS
    if token.lower() == chain.usdc.lower():
        return STABLE_DECIMALS
    raise ValueError(f"Unknown token {token}")


class UniswapV3Router(SwapVenue):
    """
    Swaps through SwapRouter02 exactInputSingle.

    Native ETH in: tokenIn is WETH and the amount is sent as value.
    Native ETH out: the swap keeps WETH in the router and unwrapWETH9
    pays the recipient in the same multicall.
    """

    def __init__(self, client: ChainClient, chain: ChainInfo, fee: int = DEFAULT_SWAP_FEE):
        self.client = client
        self.chain = chain
        self.fee = fee
        self.router = client.contract(chain.swap_router, ROUTER_ABI)

    def _encode(self, fn_name: str, args: list) -> bytes:
        # encode_abi in web3 v7, encodeABI before
        encoder = getattr(self.router, "encode_abi", None) or self.router.encodeABI
        return encoder(fn_name, args=args)

    def allowance(self, token: str, owner: str) -> float:
        raw = self.client.erc20_allowance(token, owner, self.chain.swap_router)
        return from_raw(raw, _decimals_for(token, self.chain))

    def approve(self, token: str, amount: float) -> str:
        raw = to_raw(amount, _decimals_for(token, self.chain))
        logger.info("🔓 Approving {} of {} for router", amount, token)
        return self.client.approve(token, self.chain.swap_router, raw)

    def swap(self, request: SwapRequest) -> SwapResult:
        native_in = is_native(request.token_in)
        native_out = is_native(request.token_out)

        token_in = self.chain.weth if native_in else request.token_in
        token_out = self.chain.weth if native_out else request.token_out

        amount_in_raw = to_raw(request.amount_in, _decimals_for(request.token_in, self.chain))
        min_out_raw = to_raw(request.amount_out_min, _decimals_for(request.token_out, self.chain))
        if amount_in_raw <= 0:
            return SwapResult(success=False, error="Amount rounds to zero")

        params = (
            Web3.to_checksum_address(token_in),
            Web3.to_checksum_address(token_out),
            self.fee,
            ADDRESS_THIS if native_out else Web3.to_checksum_address(request.recipient),
            amount_in_raw,
            min_out_raw,
            0,
        )
        value = amount_in_raw if native_in else 0

        logger.info(
            "🔁 Executing swap | in={} {} | min_out={} {} | slippage_bps={}",
            request.amount_in,
            request.token_in,
            request.amount_out_min,
            request.token_out,
            request.max_slippage_bps,
        )

        try:
            if native_out:
                calls = [
                    self._encode("exactInputSingle", [params]),
                    self._encode(
                        "unwrapWETH9",
                        [min_out_raw, Web3.to_checksum_address(request.recipient)],
                    ),
                ]
                fn = self.router.functions.multicall(calls)
            else:
                fn = self.router.functions.exactInputSingle(params)

            tx = fn.build_transaction(self.client.build_tx(value=value))
            started = time.monotonic()
            tx_ref = self.client.send(tx)
        except TransactionPending as e:
            logger.warning("⏳ Swap broadcast but unconfirmed | tx={} | {}", e.tx_ref, e)
            return SwapResult(success=True, tx_ref=e.tx_ref, pending=True)
        except ExecutionFailure as e:
            return SwapResult(success=False, tx_ref=e.tx_ref, error=str(e))

        logger.info("✅ Swap confirmed | tx={} | {:.1f}s", tx_ref, time.monotonic() - started)
        return SwapResult(success=True, tx_ref=tx_ref)
