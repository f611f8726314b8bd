from types import SimpleNamespace

import pytest
from web3.exceptions import TimeExhausted

from conftest import WALLET
from updown.errors import ExecutionFailure, TransactionPending
from updown.providers.chain import ChainClient

TX_HASH = b"\xab" * 32


class StubEth:
    def __init__(self, receipt=None, error=None):
        self.receipt = receipt
        self.error = error
        self.sent = []
        self.account = SimpleNamespace(
            from_key=lambda key: SimpleNamespace(address=WALLET, key=key),
            sign_transaction=lambda tx, private_key: SimpleNamespace(raw_transaction=b"\x01"),
        )

    def send_raw_transaction(self, raw):
        self.sent.append(raw)
        return TX_HASH

    def wait_for_transaction_receipt(self, tx_hash, timeout):
        if self.error is not None:
            raise self.error
        return self.receipt


def client(eth: StubEth) -> ChainClient:
    return ChainClient(SimpleNamespace(eth=eth), "0x01", receipt_timeout=1.0)


def test_confirmed_transaction_returns_hash():
    eth = StubEth(receipt={"status": 1})
    assert client(eth).send({}) == "0x" + "ab" * 32
    assert eth.sent == [b"\x01"]


def test_reverted_transaction_keeps_hash():
    with pytest.raises(ExecutionFailure) as exc:
        client(StubEth(receipt={"status": 0})).send({})

    assert not isinstance(exc.value, TransactionPending)
    assert exc.value.tx_ref == "0x" + "ab" * 32


def test_missing_receipt_is_reported_as_pending():
    with pytest.raises(TransactionPending) as exc:
        client(StubEth(error=TimeExhausted("no receipt"))).send({})

    assert exc.value.tx_ref == "0x" + "ab" * 32
