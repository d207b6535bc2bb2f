"""
Semantic checks applied to an invoice independent of how it was transported.
"""

from typing import Dict, Type

from ..config import DEFAULT_CONFIG
from .encoding import is_atomic_amount, is_valid_address
from .exceptions import (
    Expired,
    InvalidAddress,
    InvalidAmount,
    InvoiceError,
    UnsupportedVersion,
)
from .models import Invoice, ValidationResult

VALIDATION_ERRORS: Dict[str, Type[InvoiceError]] = {
    error.kind: error
    for error in (UnsupportedVersion, InvalidAddress, InvalidAmount, Expired)
}


def validate(
    invoice: Invoice,
    current_time: float,
    expected_version: str = DEFAULT_CONFIG.protocol_version,
) -> ValidationResult:
    """
    Check ``invoice`` at ``current_time`` and report the first failing check.

    Checks run in order: protocol version, merchant address, atomic amount,
    expiry. An ``expires_at`` of 0 never expires.
    """
    if invoice.protocol_version != expected_version:
        return ValidationResult.failure(
            UnsupportedVersion.kind,
            f"Unsupported invoice version {invoice.protocol_version!r}",
        )

    if not is_valid_address(invoice.merchant_address):
        return ValidationResult.failure(
            InvalidAddress.kind,
            f"Invalid merchant address {invoice.merchant_address!r}",
        )

    if not is_atomic_amount(invoice.atomic_amount):
        return ValidationResult.failure(
            InvalidAmount.kind,
            f"Invalid atomic amount {invoice.atomic_amount!r}",
        )

    if invoice.expires_at != 0 and current_time >= invoice.expires_at:
        return ValidationResult.failure(
            Expired.kind,
            f"Invoice expired at {invoice.expires_at}",
        )

    return ValidationResult.success()


def ensure_valid(
    invoice: Invoice,
    current_time: float,
    expected_version: str = DEFAULT_CONFIG.protocol_version,
) -> None:
    result = validate(invoice, current_time, expected_version)
    if not result.ok:
        raise VALIDATION_ERRORS[result.error](result.reason)
