"""
Read-only ledger of ``PaymentReceived`` events emitted by the router.
"""

import logging
from typing import Any, Dict, List

from eth_abi import decode as abi_decode
from eth_abi.exceptions import DecodingError
from eth_utils import to_checksum_address

from ..config import DEFAULT_CONFIG, ProtocolConfig
from .abi import PAYMENT_RECEIVED_DATA_TYPES, PAYMENT_RECEIVED_TOPIC
from .encoding import checksum_address, from_atomic, shorten
from .eth_rpc import EthRpcClient
from .models import PaymentRecord

logger = logging.getLogger(__name__)


def address_topic(address: str) -> str:
    return "0x" + checksum_address(address)[2:].lower().rjust(64, "0")


def _topic_address(topic: str) -> str:
    return to_checksum_address("0x" + topic[-40:])


def decode_payment_log(log: Dict[str, Any]) -> PaymentRecord:
    topics = log.get("topics") or []
    if len(topics) != 4 or topics[0].lower() != PAYMENT_RECEIVED_TOPIC:
        raise ValueError(f"Log is not a PaymentReceived event: {topics!r}")

    data = log.get("data") or "0x"
    try:
        token, amount, timestamp = abi_decode(
            PAYMENT_RECEIVED_DATA_TYPES, bytes.fromhex(data[2:])
        )
    except DecodingError as exc:
        raise ValueError(f"Malformed PaymentReceived data: {exc}") from exc
    block_number = log.get("blockNumber")
    return PaymentRecord(
        invoice_id=topics[1],
        merchant=_topic_address(topics[2]),
        payer=_topic_address(topics[3]),
        token=to_checksum_address(token),
        amount=amount,
        timestamp=timestamp,
        transaction_hash=log.get("transactionHash", ""),
        block_number=int(block_number, 16) if block_number else 0,
    )


class EventReconciler:
    def __init__(self, rpc: EthRpcClient, config: ProtocolConfig = DEFAULT_CONFIG):
        self._rpc = rpc
        self._config = config

    def fetch_payments(self, merchant: str) -> List[PaymentRecord]:
        latest = self._rpc.block_number()
        lookback = self._config.log_lookback_blocks
        from_block = max(latest - (lookback - 1), 0)

        logs = self._rpc.get_logs(
            address=self._config.router_address,
            topics=[PAYMENT_RECEIVED_TOPIC, None, address_topic(merchant)],
            from_block=from_block,
            to_block="latest",
        )
        records: List[PaymentRecord] = []
        for log in logs:
            if log.get("removed"):
                continue
            try:
                records.append(decode_payment_log(log))
            except ValueError as exc:
                logger.warning(
                    "Skipping undecodable log tx=%s: %s", log.get("transactionHash"), exc
                )

        records.sort(key=lambda record: (record.block_number, record.timestamp), reverse=True)
        logger.info(
            "Fetched %d payments for merchant=%s blocks=%s..%s",
            len(records),
            merchant,
            from_block,
            latest,
        )
        return records

    def ledger_rows(self, records: List[PaymentRecord]) -> List[Dict[str, str]]:
        return [
            {
                "timestamp": record.paid_at.isoformat(),
                "invoiceId": shorten(record.invoice_id),
                "payer": shorten(record.payer),
                "amount": from_atomic(record.amount, self._config.token_decimals),
                "txLink": f"{self._config.explorer_tx_url}{record.transaction_hash}",
            }
            for record in records
        ]
