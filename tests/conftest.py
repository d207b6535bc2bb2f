from __future__ import annotations

import pytest

from pyusd_invoice.config import ProtocolConfig
from pyusd_invoice.invoice.models import Invoice

MERCHANT = "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed"
PAYER = "0xfB6916095ca1df60bB79Ce92cE3Ea74c37c5d359"
TOKEN = "0xCaC524BcA292aaade2DF8A05cC58F0a65B1B3bB9"
ROUTER = "0xBEdA19E852341961789eF4d684098f80f155dCc7"
INVOICE_ID = "0x" + "ab" * 16 + "00" * 16


def make_invoice(**overrides: object) -> Invoice:
    fields = {
        "protocol_version": "pyusd-invoice-1",
        "chain_id": 11155111,
        "token_address": TOKEN,
        "merchant_address": MERCHANT,
        "display_amount": "12.5",
        "atomic_amount": "12500000",
        "invoice_id": INVOICE_ID,
        "note": "table 4",
        "expires_at": 0,
    }
    fields.update(overrides)
    return Invoice(**fields)


@pytest.fixture
def invoice() -> Invoice:
    return make_invoice()


@pytest.fixture
def config() -> ProtocolConfig:
    return ProtocolConfig(receipt_poll_attempts=3, receipt_poll_interval_sec=0.0)
