"""
Transport encodings for invoices.

Two forms are produced for every invoice:

* JSON, carrying every field. This is the only form :func:`decode` accepts.
* A token-transfer URI
  (``<scheme>:<token>/transfer?address=<merchant>&uint256=<amountWei>&chain_id=<chainId>``)
  for generic wallet scanners. It drops ``invoiceId``, ``note``, ``expiresAt``
  and ``version``, so a URI is payment-routing data only and never a full
  invoice.
"""

import json
import logging
import time
from typing import Any, Dict, NamedTuple, Optional, Tuple

from ..config import DEFAULT_CONFIG
from .encoding import is_atomic_amount, is_bytes32_hex, is_valid_address, to_atomic
from .exceptions import (
    InvalidAddress,
    InvalidAmount,
    InvoiceDecodeError,
    MalformedPayload,
    UnsupportedVersion,
)
from .models import Invoice
from .validator import validate

logger = logging.getLogger(__name__)


class EncodedInvoice(NamedTuple):
    json: str
    uri: str


def encode_json(invoice: Invoice) -> str:
    return json.dumps(invoice.to_payload(), separators=(",", ":"))


def encode_uri(invoice: Invoice, scheme: str = DEFAULT_CONFIG.uri_scheme) -> str:
    return (
        f"{scheme}:{invoice.token_address}/transfer"
        f"?address={invoice.merchant_address}"
        f"&uint256={invoice.atomic_amount}"
        f"&chain_id={invoice.chain_id}"
    )


def encode(invoice: Invoice, scheme: str = DEFAULT_CONFIG.uri_scheme) -> EncodedInvoice:
    return EncodedInvoice(json=encode_json(invoice), uri=encode_uri(invoice, scheme))


def _require_str(payload: Dict[str, Any], key: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str):
        raise MalformedPayload(f"'{key}' must be a string")
    return value


def _require_int(payload: Dict[str, Any], key: str, default: Optional[int] = None) -> int:
    value = payload.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int):
        raise MalformedPayload(f"'{key}' must be an integer")
    return value


def decode(
    text: str,
    expected_version: str = DEFAULT_CONFIG.protocol_version,
    decimals: int = DEFAULT_CONFIG.token_decimals,
) -> Invoice:
    """
    Parse JSON transport text into an :class:`Invoice`.

    Raises the specific :class:`InvoiceDecodeError` subclass for the first
    problem found. URI text is not accepted.
    """
    if not isinstance(text, str):
        raise MalformedPayload("Invoice payload must be text")

    stripped = text.strip()
    try:
        payload = json.loads(stripped)
    except json.JSONDecodeError as exc:
        if ":" in stripped and "/transfer?" in stripped:
            raise MalformedPayload(
                "Transfer URIs carry routing data only; paste the invoice JSON instead"
            ) from exc
        raise MalformedPayload(f"Invoice payload is not valid JSON: {exc.msg}") from exc

    if not isinstance(payload, dict):
        raise MalformedPayload("Invoice payload must be a JSON object")

    version = payload.get("version")
    if version != expected_version:
        raise UnsupportedVersion(f"Unsupported invoice version {version!r}")

    merchant = payload.get("merchant")
    if not is_valid_address(merchant):
        raise InvalidAddress(f"Invalid merchant address {merchant!r}")

    amount_wei = payload.get("amountWei")
    if not is_atomic_amount(amount_wei):
        raise InvalidAmount(f"Invalid atomic amount {amount_wei!r}")

    token = payload.get("token")
    if not is_valid_address(token):
        raise InvalidAddress(f"Invalid token address {token!r}")

    chain_id = _require_int(payload, "chainId")
    display_amount = _require_str(payload, "amount")
    try:
        expected_atomic = to_atomic(display_amount, decimals)
    except ValueError as exc:
        raise InvalidAmount(f"Invalid display amount {display_amount!r}") from exc
    if expected_atomic != int(amount_wei):
        raise InvalidAmount(
            f"amountWei {amount_wei} does not match amount {display_amount!r} "
            f"at {decimals} decimals"
        )

    invoice_id = _require_str(payload, "invoiceId")
    if not is_bytes32_hex(invoice_id):
        raise MalformedPayload("'invoiceId' must be a 0x-prefixed 32-byte hex string")

    note = payload.get("note", "")
    if note is None:
        note = ""
    if not isinstance(note, str):
        raise MalformedPayload("'note' must be a string")

    expires_at = _require_int(payload, "expiresAt", default=0)
    if expires_at < 0:
        raise MalformedPayload("'expiresAt' must not be negative")

    return Invoice(
        protocol_version=version,
        chain_id=chain_id,
        token_address=token,
        merchant_address=merchant,
        display_amount=display_amount,
        atomic_amount=amount_wei,
        invoice_id=invoice_id,
        note=note,
        expires_at=expires_at,
    )


def decode_or_reason(
    text: str,
    current_time: Optional[float] = None,
    expected_version: str = DEFAULT_CONFIG.protocol_version,
    decimals: int = DEFAULT_CONFIG.token_decimals,
) -> Tuple[Optional[Invoice], Optional[str]]:
    """
    Decode and validate scanned or pasted text for display.

    Returns ``(invoice, None)`` on success or ``(None, reason)`` when the text
    cannot be accepted. Never raises for bad input.
    """
    try:
        invoice = decode(text, expected_version, decimals)
    except InvoiceDecodeError as exc:
        logger.info("Rejected invoice payload kind=%s reason=%s", exc.kind, exc.reason)
        return None, exc.reason

    now = time.time() if current_time is None else current_time
    result = validate(invoice, now, expected_version)
    if not result.ok:
        logger.info(
            "Rejected invoice invoice_id=%s kind=%s reason=%s",
            invoice.invoice_id,
            result.error,
            result.reason,
        )
        return None, result.reason

    logger.debug("Accepted invoice invoice_id=%s", invoice.invoice_id)
    return invoice, None
