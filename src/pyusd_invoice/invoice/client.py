import logging
from collections import deque
from typing import Callable, Deque, Optional, Union

from ..config import DEFAULT_CONFIG, ProtocolConfig
from .eth_rpc import EthRpcClient, RpcError
from .exceptions import ConfirmationFailed, InvalidInput, SettlementError, WrongNetwork
from .models import (
    ApproveRequest,
    Confirmed,
    Failed,
    Invoice,
    PayRequest,
    Step,
    Submitted,
)
from .settlement import SettlementStateMachine, StartOutcome
from .transaction_sender import ContractTransactionSender
from .validator import VALIDATION_ERRORS

logger = logging.getLogger(__name__)

_SettlementRequest = Union[ApproveRequest, PayRequest]


class PaymentClient:
    """
    Drives a settlement state machine against a live node.

    Each request the machine issues is submitted, reported as ``Submitted``,
    then polled for a receipt and reported as ``Confirmed`` or ``Failed``.
    Requests are executed strictly one at a time, in the order issued.
    """

    def __init__(
        self,
        config: ProtocolConfig = DEFAULT_CONFIG,
        rpc: Optional[EthRpcClient] = None,
        sender: Optional[ContractTransactionSender] = None,
    ):
        self._config = config
        self._rpc = rpc or EthRpcClient(endpoint=config.rpc_endpoint)
        self._sender = sender

    @property
    def config(self) -> ProtocolConfig:
        return self._config

    @property
    def rpc(self) -> EthRpcClient:
        return self._rpc

    def set_payer(self, account: str) -> None:
        self._sender = ContractTransactionSender(
            self._rpc.endpoint, account, self._config.router_address
        )

    def connected_chain_id(self) -> int:
        return self._rpc.chain_id()

    def pay(
        self,
        invoice: Invoice,
        connected_chain_id: Optional[int] = None,
        now: Optional[float] = None,
        on_switch_network: Optional[Callable[[int], None]] = None,
    ) -> SettlementStateMachine:
        """
        Settle ``invoice`` and return the machine in its terminal phase.

        Raises the matching :class:`InvoiceError` if the payment cannot start
        (invalid or expired invoice, wrong network). Settlement failures do
        not raise; inspect ``machine.attempt.error`` instead.
        """
        if self._sender is None:
            raise InvalidInput("Payer account is not configured.")

        pending: Deque[_SettlementRequest] = deque()
        machine = SettlementStateMachine(
            invoice,
            self._config.router_address,
            on_request_approve=pending.append,
            on_request_pay=pending.append,
            on_switch_network=on_switch_network,
            expected_version=self._config.protocol_version,
        )

        chain_id = self.connected_chain_id() if connected_chain_id is None else connected_chain_id
        outcome = machine.start(chain_id, now=now)
        if not outcome.started:
            self._raise_rejection(outcome)

        logger.info(
            "Started payment invoice_id=%s merchant=%s amount=%s payer=%s",
            invoice.invoice_id,
            invoice.merchant_address,
            invoice.atomic_amount,
            self._sender.account,
        )

        while pending and not machine.is_terminal:
            self._execute(machine, pending.popleft())

        return machine

    @staticmethod
    def _raise_rejection(outcome: StartOutcome) -> None:
        if outcome.error == WrongNetwork.kind:
            raise WrongNetwork(outcome.reason)
        error_cls = VALIDATION_ERRORS.get(outcome.error or "")
        if error_cls is not None:
            raise error_cls(outcome.reason)
        raise InvalidInput(outcome.reason or "Payment could not be started.")

    def _execute(self, machine: SettlementStateMachine, request: _SettlementRequest) -> None:
        step = Step.APPROVE if isinstance(request, ApproveRequest) else Step.PAY
        try:
            if step is Step.APPROVE:
                tx_hash = self._sender.approve(request)
            else:
                tx_hash = self._sender.pay(request)
        except SettlementError as exc:
            machine.handle(Failed(step, exc.reason, exc.kind))
            return

        machine.handle(Submitted(step, tx_hash))
        machine.handle(self._await_confirmation(step, tx_hash))

    def _await_confirmation(self, step: Step, tx_hash: str) -> Union[Confirmed, Failed]:
        try:
            receipt = self._rpc.wait_for_receipt(
                tx_hash,
                max_attempts=self._config.receipt_poll_attempts,
                delay_seconds=self._config.receipt_poll_interval_sec,
            )
        except (RpcError, OSError, ValueError) as exc:
            return Failed(
                step,
                f"Could not watch {step.value} transaction {tx_hash}: {exc}",
                ConfirmationFailed.kind,
                tx_hash,
            )

        if receipt is None:
            return Failed(
                step,
                f"{step.value} transaction {tx_hash} not confirmed after "
                f"{self._config.receipt_poll_attempts} checks",
                ConfirmationFailed.kind,
                tx_hash,
            )

        if int(receipt.get("status", "0x0"), 16) != 1:
            return Failed(
                step,
                f"{step.value} transaction {tx_hash} reverted",
                ConfirmationFailed.kind,
                tx_hash,
            )

        logger.info(
            "Confirmed %s transaction hash=%s block=%s",
            step.value,
            tx_hash,
            receipt.get("blockNumber"),
        )
        return Confirmed(step, tx_hash)
