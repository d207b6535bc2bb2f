"""
PYUSD invoice protocol: codec, validation, generation and two-step settlement.
"""

from .client import PaymentClient  # noqa: F401
from .codec import EncodedInvoice, decode, decode_or_reason, encode, encode_json, encode_uri  # noqa: F401,E501
from .exceptions import (  # noqa: F401
    ConfirmationFailed,
    Expired,
    InvalidAddress,
    InvalidAmount,
    InvalidInput,
    InvoiceDecodeError,
    InvoiceError,
    MalformedPayload,
    SettlementError,
    SubmissionFailed,
    UnsupportedVersion,
    UserRejected,
    WrongNetwork,
)
from .generator import InvoiceGenerator, generate  # noqa: F401
from .models import Invoice, PaymentAttempt, PaymentRecord, Phase, ValidationResult  # noqa: F401
from .reconciler import EventReconciler  # noqa: F401
from .settlement import SettlementStateMachine, StartOutcome  # noqa: F401
from .validator import ensure_valid, validate  # noqa: F401
