class InvoiceError(Exception):
    """Base class for invoice protocol errors."""

    kind = "InvoiceError"

    @property
    def reason(self) -> str:
        return str(self) or self.kind


class InvoiceDecodeError(InvoiceError):
    """Raised when an invoice cannot be accepted from transport text."""

    kind = "InvoiceDecodeError"


class MalformedPayload(InvoiceDecodeError):
    """Raised when transport text is not a structured invoice payload."""

    kind = "MalformedPayload"


class UnsupportedVersion(InvoiceDecodeError):
    """Raised when the payload carries an unknown protocol version."""

    kind = "UnsupportedVersion"


class InvalidAddress(InvoiceDecodeError):
    """Raised when an address fails format or checksum validation."""

    kind = "InvalidAddress"


class InvalidAmount(InvoiceDecodeError):
    """Raised when the atomic amount is not a non-negative integer string."""

    kind = "InvalidAmount"


class Expired(InvoiceDecodeError):
    """Raised when the invoice expiry has passed."""

    kind = "Expired"


class WrongNetwork(InvoiceError):
    """Raised when the connected network differs from the invoice chain."""

    kind = "WrongNetwork"


class InvalidInput(InvoiceError):
    """Raised when merchant input cannot produce an invoice."""

    kind = "InvalidInput"


class SettlementError(InvoiceError):
    """Base class for failures while settling an invoice on-chain."""

    kind = "SettlementError"


class UserRejected(SettlementError):
    """Raised when the wallet user declines a transaction."""

    kind = "UserRejected"


class SubmissionFailed(SettlementError):
    """Raised when a transaction cannot be submitted."""

    kind = "SubmissionFailed"


class ConfirmationFailed(SettlementError):
    """Raised when a submitted transaction reverts or is never observed."""

    kind = "ConfirmationFailed"
