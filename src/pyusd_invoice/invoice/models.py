from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class Invoice:
    protocol_version: str
    chain_id: int
    token_address: str
    merchant_address: str
    display_amount: str
    atomic_amount: str
    invoice_id: str
    note: str = ""
    expires_at: int = 0

    def to_payload(self) -> Dict[str, Any]:
        return {
            "version": self.protocol_version,
            "chainId": self.chain_id,
            "token": self.token_address,
            "merchant": self.merchant_address,
            "amount": self.display_amount,
            "amountWei": self.atomic_amount,
            "invoiceId": self.invoice_id,
            "note": self.note,
            "expiresAt": self.expires_at,
        }


@dataclass(frozen=True)
class ValidationResult:
    ok: bool
    error: Optional[str] = None
    reason: Optional[str] = None

    def __bool__(self) -> bool:
        return self.ok

    @classmethod
    def success(cls) -> "ValidationResult":
        return cls(ok=True)

    @classmethod
    def failure(cls, error: str, reason: str) -> "ValidationResult":
        return cls(ok=False, error=error, reason=reason)


class Phase(str, Enum):
    IDLE = "idle"
    APPROVING = "approving"
    AWAITING_APPROVE_CONFIRMATION = "awaiting_approve_confirmation"
    PAYING = "paying"
    AWAITING_PAY_CONFIRMATION = "awaiting_pay_confirmation"
    SUCCESS = "success"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (Phase.SUCCESS, Phase.ERROR)


class Step(str, Enum):
    APPROVE = "approve"
    PAY = "pay"


@dataclass(frozen=True)
class Submitted:
    step: Step
    tx_ref: str


@dataclass(frozen=True)
class Confirmed:
    step: Step
    tx_ref: str


@dataclass(frozen=True)
class Failed:
    step: Step
    reason: str
    kind: str = "SubmissionFailed"
    tx_ref: Optional[str] = None


@dataclass(frozen=True)
class ApproveRequest:
    token: str
    spender: str
    amount: int


@dataclass(frozen=True)
class PayRequest:
    token: str
    merchant: str
    amount: int
    invoice_id: str
    expires_at: int


@dataclass(frozen=True)
class SettlementFailure:
    kind: str
    reason: str
    phase: Phase

    def describe(self) -> str:
        return f"{self.kind} during {self.phase.value}: {self.reason}"


@dataclass
class PaymentAttempt:
    invoice: Invoice
    phase: Phase = Phase.IDLE
    approve_tx: Optional[str] = None
    pay_tx: Optional[str] = None
    error: Optional[SettlementFailure] = None
    allowance_granted: bool = False

    @property
    def failed_phase(self) -> Optional[Phase]:
        if self.error is None:
            return None
        return self.error.phase


@dataclass(frozen=True)
class PaymentRecord:
    invoice_id: str
    merchant: str
    payer: str
    token: str
    amount: int
    timestamp: int
    transaction_hash: str
    block_number: int = 0

    @property
    def paid_at(self) -> datetime:
        return datetime.fromtimestamp(self.timestamp, tz=timezone.utc)
