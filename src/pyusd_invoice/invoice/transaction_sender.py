import logging
from typing import Any, Callable, Optional

from web3 import Web3

from .abi import ERC20_APPROVE_ABI, PAYMENT_ROUTER_ABI
from .exceptions import SettlementError, SubmissionFailed, UserRejected
from .models import ApproveRequest, PayRequest

logger = logging.getLogger(__name__)

USER_REJECTED_CODE = 4001
_REJECTION_MARKERS = ("user rejected", "user denied", "rejected by user")


def _error_code(exc: Exception) -> Optional[int]:
    rpc_response = getattr(exc, "rpc_response", None)
    if isinstance(rpc_response, dict):
        error = rpc_response.get("error") or {}
        if isinstance(error, dict):
            return error.get("code")
    if exc.args and isinstance(exc.args[0], dict):
        return exc.args[0].get("code")
    return None


def classify_wallet_error(exc: Exception, action: str) -> SettlementError:
    message = str(exc)
    if _error_code(exc) == USER_REJECTED_CODE or any(
        marker in message.lower() for marker in _REJECTION_MARKERS
    ):
        return UserRejected(f"{action} was rejected in the wallet.")
    return SubmissionFailed(f"Failed to submit {action} transaction: {message}")


class ContractTransactionSender:
    """
    Submits token ``approve`` and router ``pay`` transactions from ``account``.

    Signing is left to the node or wallet behind ``rpc_endpoint``; this class
    never handles private keys.
    """

    def __init__(
        self,
        rpc_endpoint: str,
        account: str,
        router_address: str,
        web3: Optional[Web3] = None,
    ) -> None:
        if not Web3.is_address(account):
            raise SubmissionFailed(f"Invalid payer account {account!r}.")
        self._web3 = web3 or Web3(Web3.HTTPProvider(rpc_endpoint))
        self._account = Web3.to_checksum_address(account)
        self._router = self._web3.eth.contract(
            address=Web3.to_checksum_address(router_address), abi=PAYMENT_ROUTER_ABI
        )

    @property
    def account(self) -> str:
        return self._account

    def approve(self, request: ApproveRequest) -> str:
        if request.amount <= 0:
            raise SubmissionFailed("Approval amount must be positive.")

        def build() -> Any:
            token = self._web3.eth.contract(
                address=Web3.to_checksum_address(request.token), abi=ERC20_APPROVE_ABI
            )
            return token.functions.approve(
                Web3.to_checksum_address(request.spender), request.amount
            )

        tx_hash = self._transact("approve", build)
        logger.info(
            "Submitted approve transaction hash=%s token=%s spender=%s amount=%s",
            tx_hash,
            request.token,
            request.spender,
            request.amount,
        )
        return tx_hash

    def pay(self, request: PayRequest) -> str:
        if request.amount <= 0:
            raise SubmissionFailed("Payment amount must be positive.")

        def build() -> Any:
            return self._router.functions.pay(
                Web3.to_checksum_address(request.token),
                Web3.to_checksum_address(request.merchant),
                request.amount,
                bytes.fromhex(request.invoice_id[2:]),
                request.expires_at,
            )

        tx_hash = self._transact("pay", build)
        logger.info(
            "Submitted pay transaction hash=%s merchant=%s amount=%s invoice_id=%s",
            tx_hash,
            request.merchant,
            request.amount,
            request.invoice_id,
        )
        return tx_hash

    def _transact(self, action: str, build: Callable[[], Any]) -> str:
        # ABI argument checks happen while building the call
        try:
            tx_hash = build().transact({"from": self._account})
        except Exception as exc:  # pylint: disable=broad-except
            raise classify_wallet_error(exc, action) from exc
        return Web3.to_hex(tx_hash)
