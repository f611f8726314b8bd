from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_DOWN
from typing import Any

from loguru import logger
from web3 import Web3
from web3.exceptions import TimeExhausted

from updown.errors import ConfigurationError, ExecutionFailure, TransactionPending
from updown.providers.market_data import BalanceSource, Balances

NATIVE_TOKEN = "0xEeeeeEeeeEeEeeEeEeEeeEEEeeeeEeeeeeeeEEeE"
ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

VOLATILE_DECIMALS = 18
STABLE_DECIMALS = 6

ERC20_ABI = [
    {
        "name": "balanceOf",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "owner", "type": "address"}],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "name": "allowance",
        "type": "function",
        "stateMutability": "view",
        "inputs": [
            {"name": "owner", "type": "address"},
            {"name": "spender", "type": "address"},
        ],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "name": "approve",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "spender", "type": "address"},
            {"name": "amount", "type": "uint256"},
        ],
        "outputs": [{"name": "", "type": "bool"}],
    },
]


@dataclass(frozen=True)
class ChainInfo:
    name: str
    chain_id: int
    uniswap_v3_factory: str
    swap_router: str
    weth: str
    usdc: str


CHAINS: dict[str, ChainInfo] = {
    "base": ChainInfo(
        name="base",
        chain_id=8453,
        uniswap_v3_factory="0x33128a8fC17869897dcE68Ed026d694621f6FDfD",
        swap_router="0x2626664c2603336E57B271c5C0b26F421741e481",
        weth="0x4200000000000000000000000000000000000006",
        usdc="0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913",
    ),
}


def get_chain(name: str) -> ChainInfo:
    try:
        return CHAINS[name.lower()]
    except KeyError:
        raise ConfigurationError(
            [f"chain {name!r} is not supported (known: {', '.join(sorted(CHAINS))})"],
            {"chain"},
        ) from None


def is_native(token: str) -> bool:
    return token.lower() == NATIVE_TOKEN.lower()


def to_raw(amount: float, decimals: int) -> int:
    """Convert a human amount to integer token units, rounding down."""
    scaled = Decimal(str(amount)) * (Decimal(10) ** decimals)
    return int(scaled.to_integral_value(rounding=ROUND_DOWN))


def from_raw(amount: int, decimals: int) -> float:
    return float(Decimal(amount) / (Decimal(10) ** decimals))


class ChainClient:
    """
    Thin web3 wrapper owning the signing account.
    """

    def __init__(self, w3: Web3, private_key: str, receipt_timeout: float = 120.0):
        self.w3 = w3
        self.account = w3.eth.account.from_key(private_key)
        self.receipt_timeout = receipt_timeout

    @classmethod
    def connect(cls, rpc_url: str, private_key: str, request_timeout: float = 10.0) -> "ChainClient":
        logger.debug("Connecting to RPC endpoint")
        w3 = Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": request_timeout}))
        return cls(w3, private_key)

    @property
    def address(self) -> str:
        return self.account.address

    def contract(self, address: str, abi: list[dict]) -> Any:
        return self.w3.eth.contract(address=Web3.to_checksum_address(address), abi=abi)

    # =========================
    # Reads
    # =========================

    def native_balance(self, owner: str) -> int:
        return self.w3.eth.get_balance(Web3.to_checksum_address(owner))

    def erc20_balance(self, token: str, owner: str) -> int:
        erc20 = self.contract(token, ERC20_ABI)
        return erc20.functions.balanceOf(Web3.to_checksum_address(owner)).call()

    def erc20_allowance(self, token: str, owner: str, spender: str) -> int:
        erc20 = self.contract(token, ERC20_ABI)
        return erc20.functions.allowance(
            Web3.to_checksum_address(owner),
            Web3.to_checksum_address(spender),
        ).call()

    # =========================
    # Writes
    # =========================

    def build_tx(self, value: int = 0) -> dict:
        return {
            "from": self.address,
            "nonce": self.w3.eth.get_transaction_count(self.address, "pending"),
            "value": value,
            "chainId": self.w3.eth.chain_id,
        }

    def send(self, tx: dict) -> str:
        """
        Sign, broadcast and wait for the receipt.
        Raises ExecutionFailure when the transaction reverts and
        TransactionPending when no receipt arrives within receipt_timeout.
        """
        signed = self.w3.eth.account.sign_transaction(tx, private_key=self.account.key)
        # web3 v7 renamed rawTransaction
        raw_tx = getattr(signed, "raw_transaction", None) or getattr(signed, "rawTransaction", None)

        tx_hash = self.w3.eth.send_raw_transaction(raw_tx)
        tx_ref = Web3.to_hex(tx_hash)
        logger.info("📤 Transaction sent | tx={}", tx_ref)

        try:
            receipt = self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self.receipt_timeout)
        except TimeExhausted:
            raise TransactionPending(
                f"Transaction {tx_ref} not confirmed after {self.receipt_timeout}s", tx_ref
            ) from None

        if receipt["status"] != 1:
            raise ExecutionFailure(f"Transaction {tx_ref} reverted", tx_ref)
        return tx_ref

    def approve(self, token: str, spender: str, raw_amount: int) -> str:
        erc20 = self.contract(token, ERC20_ABI)
        tx = erc20.functions.approve(
            Web3.to_checksum_address(spender), raw_amount
        ).build_transaction(self.build_tx())
        return self.send(tx)


class WalletBalanceSource(BalanceSource):
    """
    Native ETH is the volatile holding, USDC the stable one.
    USDC is valued 1:1 in USD.
    """

    def __init__(self, client: ChainClient, chain: ChainInfo):
        self.client = client
        self.chain = chain

    def get_balances(self, address: str, price: float) -> Balances:
        volatile = from_raw(self.client.native_balance(address), VOLATILE_DECIMALS)
        stable = from_raw(self.client.erc20_balance(self.chain.usdc, address), STABLE_DECIMALS)

        logger.debug("Balances | volatile={:.6f} | stable={:.2f}", volatile, stable)
        return Balances(
            volatile_qty=volatile,
            stable_qty=stable,
            volatile_usd=volatile * price,
            stable_usd=stable,
        )
