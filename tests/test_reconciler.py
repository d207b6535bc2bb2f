from __future__ import annotations

from typing import List

import pytest
from eth_abi import encode as abi_encode

from pyusd_invoice.config import ProtocolConfig
from pyusd_invoice.invoice.abi import PAYMENT_RECEIVED_TOPIC
from pyusd_invoice.invoice.reconciler import EventReconciler, address_topic, decode_payment_log

from conftest import INVOICE_ID, MERCHANT, PAYER, ROUTER, TOKEN


def _log(amount: int, timestamp: int, block: int, tx: str) -> dict:
    data = abi_encode(["address", "uint256", "uint256"], [TOKEN, amount, timestamp])
    return {
        "address": ROUTER,
        "topics": [
            PAYMENT_RECEIVED_TOPIC,
            INVOICE_ID,
            address_topic(MERCHANT),
            address_topic(PAYER),
        ],
        "data": "0x" + data.hex(),
        "blockNumber": hex(block),
        "transactionHash": tx,
    }


class FakeRpc:
    def __init__(self, latest: int, logs: List[dict]) -> None:
        self.latest = latest
        self.logs = logs
        self.queries: List[dict] = []

    def block_number(self) -> int:
        return self.latest

    def get_logs(self, address, topics, from_block, to_block="latest"):
        self.queries.append(
            {"address": address, "topics": topics, "from": from_block, "to": to_block}
        )
        return self.logs


def test_topic_matches_event_signature() -> None:
    assert PAYMENT_RECEIVED_TOPIC.startswith("0x")
    assert len(PAYMENT_RECEIVED_TOPIC) == 66


def test_decode_payment_log() -> None:
    record = decode_payment_log(_log(12_500_000, 1_700_000_000, 42, "0xfeed"))
    assert record.invoice_id == INVOICE_ID
    assert record.merchant == MERCHANT
    assert record.payer == PAYER
    assert record.token == TOKEN
    assert record.amount == 12_500_000
    assert record.block_number == 42
    assert record.paid_at.year == 2023


def test_decode_rejects_foreign_log() -> None:
    log = _log(1, 1, 1, "0x1")
    log["topics"] = log["topics"][:2]
    with pytest.raises(ValueError):
        decode_payment_log(log)


def test_fetch_payments_filters_merchant_within_lookback() -> None:
    rpc = FakeRpc(
        latest=25_000,
        logs=[_log(1_000_000, 100, 10, "0x1"), _log(2_500_000, 200, 20, "0x2")],
    )
    reconciler = EventReconciler(rpc, ProtocolConfig())

    records = reconciler.fetch_payments(MERCHANT)

    assert [record.transaction_hash for record in records] == ["0x2", "0x1"]
    query = rpc.queries[0]
    assert query["address"] == ROUTER
    assert query["from"] == 15_001
    assert query["topics"] == [PAYMENT_RECEIVED_TOPIC, None, address_topic(MERCHANT)]


def test_short_chain_scans_from_genesis() -> None:
    rpc = FakeRpc(latest=500, logs=[])
    assert EventReconciler(rpc).fetch_payments(MERCHANT) == []
    assert rpc.queries[0]["from"] == 0


def test_router_and_lookback_come_from_config() -> None:
    other_router = "0x" + "11" * 20
    rpc = FakeRpc(latest=1_000, logs=[])
    config = ProtocolConfig(router_address=other_router, log_lookback_blocks=100)

    EventReconciler(rpc, config).fetch_payments(MERCHANT)

    assert rpc.queries[0]["address"] == other_router
    assert rpc.queries[0]["from"] == 901


def test_removed_and_undecodable_logs_are_skipped() -> None:
    removed = _log(1, 1, 1, "0x1")
    removed["removed"] = True
    broken = _log(1, 1, 2, "0x2")
    broken["data"] = "0x1234"
    rpc = FakeRpc(latest=10, logs=[removed, broken, _log(3, 3, 3, "0x3")])
    records = EventReconciler(rpc).fetch_payments(MERCHANT)
    assert [record.transaction_hash for record in records] == ["0x3"]


def test_ledger_rows() -> None:
    reconciler = EventReconciler(FakeRpc(latest=1, logs=[]))
    record = decode_payment_log(_log(12_500_000, 0, 1, "0xabc"))
    (row,) = reconciler.ledger_rows([record])
    assert row["amount"] == "12.5"
    assert row["invoiceId"] == "0xabab...0000"
    assert row["payer"] == PAYER[:6] + "..." + PAYER[-4:]
    assert row["txLink"] == "https://sepolia.etherscan.io/tx/0xabc"
    assert row["timestamp"].startswith("1970-01-01")
