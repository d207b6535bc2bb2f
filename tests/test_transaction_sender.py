from __future__ import annotations

from types import SimpleNamespace
from typing import Any, Dict, List, Optional, Tuple

import pytest
from web3 import Web3

from pyusd_invoice.invoice.abi import ERC20_APPROVE_ABI, PAYMENT_ROUTER_ABI
from pyusd_invoice.invoice.exceptions import SubmissionFailed, UserRejected
from pyusd_invoice.invoice.models import ApproveRequest, PayRequest
from pyusd_invoice.invoice.transaction_sender import ContractTransactionSender, classify_wallet_error

from conftest import INVOICE_ID, MERCHANT, PAYER, ROUTER, TOKEN

TX_HASH = b"\x01" * 32


class RpcResponseError(Exception):
    def __init__(self, message: str, rpc_response: dict) -> None:
        super().__init__(message)
        self.rpc_response = rpc_response


class FakeFunction:
    def __init__(self, contract: "FakeContract", name: str, args: Tuple[Any, ...]) -> None:
        self.contract = contract
        self.name = name
        self.args = args

    def transact(self, tx: Dict[str, Any]) -> bytes:
        self.contract.transactions.append((self.name, self.args, tx))
        if self.contract.transact_error is not None:
            raise self.contract.transact_error
        return TX_HASH


class FakeFunctions:
    def __init__(self, contract: "FakeContract") -> None:
        self._contract = contract

    def __getattr__(self, name: str):
        def build(*args: Any) -> FakeFunction:
            if self._contract.build_error is not None:
                raise self._contract.build_error
            return FakeFunction(self._contract, name, args)

        return build


class FakeContract:
    def __init__(self, address: str, abi: list) -> None:
        self.address = address
        self.abi = abi
        self.transactions: List[Tuple[str, Tuple[Any, ...], Dict[str, Any]]] = []
        self.build_error: Optional[Exception] = None
        self.transact_error: Optional[Exception] = None
        self.functions = FakeFunctions(self)


class FakeWeb3:
    def __init__(self) -> None:
        self.contracts: Dict[str, FakeContract] = {}
        self.eth = SimpleNamespace(contract=self._contract)

    def _contract(self, address: str, abi: list) -> FakeContract:
        if address not in self.contracts:
            self.contracts[address] = FakeContract(address, abi)
        return self.contracts[address]


@pytest.fixture
def web3() -> FakeWeb3:
    return FakeWeb3()


@pytest.fixture
def sender(web3: FakeWeb3) -> ContractTransactionSender:
    return ContractTransactionSender("http://localhost:8545", PAYER.lower(), ROUTER.lower(), web3=web3)


def _approve_request(amount: int = 12_500_000) -> ApproveRequest:
    return ApproveRequest(token=TOKEN.lower(), spender=ROUTER.lower(), amount=amount)


def _pay_request(amount: int = 12_500_000) -> PayRequest:
    return PayRequest(
        token=TOKEN.lower(),
        merchant=MERCHANT.lower(),
        amount=amount,
        invoice_id=INVOICE_ID,
        expires_at=1_900_000_000,
    )


def test_rejection_code_maps_to_user_rejected() -> None:
    error = classify_wallet_error(ValueError({"code": 4001, "message": "nope"}), "approve")
    assert isinstance(error, UserRejected)


def test_rpc_response_code_maps_to_user_rejected() -> None:
    exc = RpcResponseError("failed", {"error": {"code": 4001, "message": "nope"}})
    assert isinstance(classify_wallet_error(exc, "pay"), UserRejected)


def test_rejection_message_maps_to_user_rejected() -> None:
    exc = RuntimeError("MetaMask Tx Signature: User denied transaction signature.")
    assert isinstance(classify_wallet_error(exc, "pay"), UserRejected)


def test_other_errors_are_submission_failures() -> None:
    error = classify_wallet_error(RuntimeError("nonce too low"), "approve")
    assert isinstance(error, SubmissionFailed)
    assert "nonce too low" in error.reason


def test_invalid_payer_account() -> None:
    with pytest.raises(SubmissionFailed):
        ContractTransactionSender("http://localhost:8545", "not-an-address", ROUTER)


def test_account_is_checksummed(sender: ContractTransactionSender, web3: FakeWeb3) -> None:
    assert sender.account == PAYER
    assert web3.contracts[ROUTER].abi == PAYMENT_ROUTER_ABI


def test_approve_targets_token_with_checksummed_spender(
    sender: ContractTransactionSender, web3: FakeWeb3
) -> None:
    tx_hash = sender.approve(_approve_request())

    assert tx_hash == "0x" + "01" * 32
    token = web3.contracts[TOKEN]
    assert token.abi == ERC20_APPROVE_ABI
    assert token.transactions == [("approve", (ROUTER, 12_500_000), {"from": PAYER})]


def test_pay_sends_bytes32_invoice_id(sender: ContractTransactionSender, web3: FakeWeb3) -> None:
    tx_hash = sender.pay(_pay_request())

    assert tx_hash == "0x" + "01" * 32
    [(name, args, tx)] = web3.contracts[ROUTER].transactions
    assert name == "pay"
    assert tx == {"from": PAYER}
    token, merchant, amount, invoice_id, expires_at = args
    assert (token, merchant, amount, expires_at) == (TOKEN, MERCHANT, 12_500_000, 1_900_000_000)
    assert isinstance(invoice_id, bytes)
    assert len(invoice_id) == 32
    assert invoice_id == bytes.fromhex(INVOICE_ID[2:])


@pytest.mark.parametrize("amount", [0, -1])
def test_non_positive_amounts_are_refused(
    sender: ContractTransactionSender, web3: FakeWeb3, amount: int
) -> None:
    with pytest.raises(SubmissionFailed):
        sender.approve(_approve_request(amount))
    with pytest.raises(SubmissionFailed):
        sender.pay(_pay_request(amount))
    assert web3.contracts[ROUTER].transactions == []
    assert TOKEN not in web3.contracts


def test_argument_errors_become_submission_failures(
    sender: ContractTransactionSender, web3: FakeWeb3
) -> None:
    web3.contracts[ROUTER].build_error = ValueError("Could not identify the intended function")

    with pytest.raises(SubmissionFailed) as exc_info:
        sender.pay(_pay_request())

    assert "intended function" in exc_info.value.reason


def test_wallet_rejection_on_transact(sender: ContractTransactionSender, web3: FakeWeb3) -> None:
    web3.contracts[ROUTER].transact_error = ValueError({"code": 4001, "message": "denied"})
    with pytest.raises(UserRejected):
        sender.pay(_pay_request())


def test_oversized_amount_fails_before_reaching_the_node() -> None:
    # uint256 arguments are range checked against the ABI
    real = Web3(Web3.HTTPProvider("http://127.0.0.1:1"))
    sender = ContractTransactionSender("http://127.0.0.1:1", PAYER, ROUTER, web3=real)

    with pytest.raises(SubmissionFailed):
        sender.pay(_pay_request(2 ** 256))
    with pytest.raises(SubmissionFailed):
        sender.approve(_approve_request(2 ** 256))
