"""
Payer-side settlement of a single invoice.

Settlement is two independently failable transactions: an ``approve`` on the
token granting the router an allowance, then ``pay`` on the router. The
machine below sequences them from explicit events so it does not depend on
any particular concurrency primitive::

    IDLE -> APPROVING -> AWAITING_APPROVE_CONFIRMATION
         -> PAYING -> AWAITING_PAY_CONFIRMATION -> SUCCESS

``ERROR`` is reachable from every non-terminal phase. ``SUCCESS`` and
``ERROR`` are terminal; a retry builds a fresh machine for the same invoice.
The pay request is only issued after the approve transaction is confirmed,
since the router call reverts without a sufficient allowance.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple, Type, Union

from ..config import DEFAULT_CONFIG
from .exceptions import (
    ConfirmationFailed,
    SettlementError,
    WrongNetwork,
)
from .models import (
    ApproveRequest,
    Confirmed,
    Failed,
    Invoice,
    PayRequest,
    PaymentAttempt,
    Phase,
    SettlementFailure,
    Step,
    Submitted,
)
from .validator import validate

logger = logging.getLogger(__name__)

CANCELLED = "Cancelled"

SettlementEvent = Union[Submitted, Confirmed, Failed]

_EXPECTED: Dict[Phase, Tuple[Step, Type]] = {
    Phase.APPROVING: (Step.APPROVE, Submitted),
    Phase.AWAITING_APPROVE_CONFIRMATION: (Step.APPROVE, Confirmed),
    Phase.PAYING: (Step.PAY, Submitted),
    Phase.AWAITING_PAY_CONFIRMATION: (Step.PAY, Confirmed),
}


@dataclass(frozen=True)
class StartOutcome:
    started: bool
    error: Optional[str] = None
    reason: Optional[str] = None

    def __bool__(self) -> bool:
        return self.started


class SettlementStateMachine:
    def __init__(
        self,
        invoice: Invoice,
        router_address: str,
        on_request_approve: Callable[[ApproveRequest], None],
        on_request_pay: Callable[[PayRequest], None],
        on_switch_network: Optional[Callable[[int], None]] = None,
        clock: Callable[[], float] = time.time,
        expected_version: str = DEFAULT_CONFIG.protocol_version,
    ):
        self._router_address = router_address
        self._on_request_approve = on_request_approve
        self._on_request_pay = on_request_pay
        self._on_switch_network = on_switch_network
        self._clock = clock
        self._expected_version = expected_version
        self._attempt = PaymentAttempt(invoice=invoice)

    @property
    def attempt(self) -> PaymentAttempt:
        return self._attempt

    @property
    def invoice(self) -> Invoice:
        return self._attempt.invoice

    @property
    def phase(self) -> Phase:
        return self._attempt.phase

    @property
    def is_terminal(self) -> bool:
        return self._attempt.phase.is_terminal

    @property
    def outstanding_allowance(self) -> bool:
        """True when the attempt failed after the allowance was granted."""
        return self._attempt.phase is Phase.ERROR and self._attempt.allowance_granted

    def start(self, connected_chain_id: int, now: Optional[float] = None) -> StartOutcome:
        if self._attempt.phase is not Phase.IDLE:
            logger.warning(
                "Ignoring pay request for invoice_id=%s in phase=%s",
                self.invoice.invoice_id,
                self._attempt.phase.value,
            )
            return StartOutcome(
                started=False,
                reason=f"Payment already {self._attempt.phase.value}",
            )

        current_time = self._clock() if now is None else now
        result = validate(self.invoice, current_time, self._expected_version)
        if not result.ok:
            logger.info(
                "Refusing to pay invoice_id=%s kind=%s reason=%s",
                self.invoice.invoice_id,
                result.error,
                result.reason,
            )
            return StartOutcome(started=False, error=result.error, reason=result.reason)

        if connected_chain_id != self.invoice.chain_id:
            logger.info(
                "Wrong network for invoice_id=%s connected=%s expected=%s",
                self.invoice.invoice_id,
                connected_chain_id,
                self.invoice.chain_id,
            )
            if self._on_switch_network is not None:
                self._on_switch_network(self.invoice.chain_id)
            return StartOutcome(
                started=False,
                error=WrongNetwork.kind,
                reason=f"Switch to chain {self.invoice.chain_id} to pay this invoice",
            )

        self._transition(Phase.APPROVING)
        request = ApproveRequest(
            token=self.invoice.token_address,
            spender=self._router_address,
            amount=int(self.invoice.atomic_amount),
        )
        self._issue(self._on_request_approve, request)
        return StartOutcome(started=True)

    def handle(self, event: SettlementEvent) -> Phase:
        phase = self._attempt.phase
        if phase.is_terminal:
            logger.debug(
                "Ignoring %s for invoice_id=%s in terminal phase=%s",
                event,
                self.invoice.invoice_id,
                phase.value,
            )
            return phase
        if phase is Phase.IDLE:
            logger.warning(
                "Ignoring %s for invoice_id=%s before payment started",
                event,
                self.invoice.invoice_id,
            )
            return phase

        if isinstance(event, Failed):
            self._fail(event.kind, event.reason)
            return self._attempt.phase

        expected_step, expected_type = _EXPECTED[phase]
        if event.step is not expected_step or not isinstance(event, expected_type):
            self._fail(
                ConfirmationFailed.kind,
                f"Unexpected {type(event).__name__}({event.step.value}) "
                f"while {phase.value}",
            )
            return self._attempt.phase

        if isinstance(event, Submitted):
            self._record_submission(event)
        else:
            self._record_confirmation(event)
        return self._attempt.phase

    def cancel(self) -> None:
        """Stop waiting on the chain; submitted transactions are left unobserved."""
        if self._attempt.phase is Phase.IDLE or self.is_terminal:
            return
        self._fail(CANCELLED, "Payment cancelled before confirmation")

    def retry(self) -> "SettlementStateMachine":
        if self._attempt.phase is not Phase.ERROR:
            raise RuntimeError("Only a failed payment attempt can be retried")
        logger.info("Retrying payment for invoice_id=%s", self.invoice.invoice_id)
        return SettlementStateMachine(
            self.invoice,
            self._router_address,
            self._on_request_approve,
            self._on_request_pay,
            on_switch_network=self._on_switch_network,
            clock=self._clock,
            expected_version=self._expected_version,
        )

    # Internal helpers -----------------------------------------------------

    def _record_submission(self, event: Submitted) -> None:
        if event.step is Step.APPROVE:
            self._attempt.approve_tx = event.tx_ref
            self._transition(Phase.AWAITING_APPROVE_CONFIRMATION)
        else:
            self._attempt.pay_tx = event.tx_ref
            self._transition(Phase.AWAITING_PAY_CONFIRMATION)

    def _record_confirmation(self, event: Confirmed) -> None:
        recorded = (
            self._attempt.approve_tx if event.step is Step.APPROVE else self._attempt.pay_tx
        )
        if event.tx_ref != recorded:
            self._fail(
                ConfirmationFailed.kind,
                f"Confirmation for unknown {event.step.value} transaction {event.tx_ref}",
            )
            return

        if event.step is Step.APPROVE:
            self._attempt.allowance_granted = True
            self._transition(Phase.PAYING)
            request = PayRequest(
                token=self.invoice.token_address,
                merchant=self.invoice.merchant_address,
                amount=int(self.invoice.atomic_amount),
                invoice_id=self.invoice.invoice_id,
                expires_at=self.invoice.expires_at,
            )
            self._issue(self._on_request_pay, request)
            return

        self._transition(Phase.SUCCESS)
        logger.info(
            "Invoice paid invoice_id=%s pay_tx=%s",
            self.invoice.invoice_id,
            self._attempt.pay_tx,
        )

    def _issue(self, callback: Callable, request: Union[ApproveRequest, PayRequest]) -> None:
        try:
            callback(request)
        except SettlementError as exc:
            self._fail(exc.kind, exc.reason)

    def _transition(self, phase: Phase) -> None:
        logger.debug(
            "Settlement invoice_id=%s %s -> %s",
            self.invoice.invoice_id,
            self._attempt.phase.value,
            phase.value,
        )
        self._attempt.phase = phase

    def _fail(self, kind: str, reason: str) -> None:
        failure = SettlementFailure(kind=kind, reason=reason, phase=self._attempt.phase)
        self._attempt.error = failure
        self._attempt.phase = Phase.ERROR
        logger.error(
            "Settlement failed invoice_id=%s %s allowance_granted=%s",
            self.invoice.invoice_id,
            failure.describe(),
            self._attempt.allowance_granted,
        )
