import re
import secrets
from decimal import Decimal, InvalidOperation

from eth_utils import is_address, to_checksum_address

_ATOMIC_AMOUNT_PATTERN = re.compile(r"^[0-9]+$")
_BYTES32_PATTERN = re.compile(r"^0x[0-9a-fA-F]{64}$")

UINT256_MAX = 2 ** 256 - 1
INVOICE_ID_RANDOM_BYTES = 16
BYTES32_LENGTH = 32


def is_valid_address(value: object) -> bool:
    return isinstance(value, str) and is_address(value)


def checksum_address(value: str) -> str:
    if not is_valid_address(value):
        raise ValueError(f"Invalid address: {value!r}")
    return to_checksum_address(value)


def is_atomic_amount(value: object) -> bool:
    if not isinstance(value, str) or not _ATOMIC_AMOUNT_PATTERN.match(value):
        return False
    return int(value) <= UINT256_MAX


def is_bytes32_hex(value: object) -> bool:
    return isinstance(value, str) and bool(_BYTES32_PATTERN.match(value))


def new_invoice_id() -> str:
    """
    Return 16 random bytes right-padded to a 0x-prefixed bytes32 hex string.
    """
    raw = secrets.token_bytes(INVOICE_ID_RANDOM_BYTES)
    return "0x" + raw.ljust(BYTES32_LENGTH, b"\x00").hex()


def parse_display_amount(value: str) -> Decimal:
    try:
        amount = Decimal(value.strip())
    except (InvalidOperation, AttributeError) as exc:
        raise ValueError(f"Amount is not a decimal number: {value!r}") from exc
    if not amount.is_finite():
        raise ValueError(f"Amount must be finite: {value!r}")
    return amount


def to_atomic(value: str, decimals: int) -> int:
    """
    Scale a display amount to the token's smallest unit.

    Fractional digits beyond ``decimals`` are refused rather than rounded.
    """
    scaled = parse_display_amount(value).scaleb(decimals)
    integral = scaled.to_integral_value()
    if scaled != integral:
        raise ValueError(
            f"Amount {value!r} has more than {decimals} fractional digits"
        )
    return int(integral)


def from_atomic(amount: int, decimals: int) -> str:
    whole, remainder = divmod(abs(amount), 10 ** decimals)
    sign = "-" if amount < 0 else ""
    fraction = str(remainder).rjust(decimals, "0").rstrip("0")
    if fraction:
        return f"{sign}{whole}.{fraction}"
    return f"{sign}{whole}"


def shorten(value: str, head: int = 6, tail: int = 4) -> str:
    if len(value) <= head + tail:
        return value
    return f"{value[:head]}...{value[-tail:]}"
