import json
import logging
import time
import urllib.error
import urllib.request
from typing import Any, Dict, List, Optional, Union

from .exceptions import InvoiceError

logger = logging.getLogger(__name__)


class RpcError(InvoiceError):
    """Raised when the node answers a JSON-RPC call with an error object."""

    kind = "RpcError"

    def __init__(self, message: str, code: Optional[int] = None):
        super().__init__(message)
        self.code = code


def _hex(value: Union[int, str]) -> str:
    if isinstance(value, int):
        return hex(value)
    return value


_RETRYABLE_STATUS = frozenset({429, 502, 503, 504})


def _is_transient(exc: urllib.error.URLError) -> bool:
    if isinstance(exc, urllib.error.HTTPError):
        return exc.code in _RETRYABLE_STATUS
    return True


class EthRpcClient:
    def __init__(
        self,
        endpoint: str,
        timeout: int = 10,
        max_retries: int = 3,
        backoff_factor: float = 0.2,
    ):
        self._endpoint = endpoint
        self._timeout = timeout
        self._request_id = 0
        self._max_retries = max_retries
        self._backoff_factor = backoff_factor

    @property
    def endpoint(self) -> str:
        return self._endpoint

    def _next_id(self) -> int:
        self._request_id += 1
        return self._request_id

    def _backoff(self, failures: int) -> float:
        return self._backoff_factor * (2 ** (failures - 1))

    def call(self, method: str, params: Optional[list] = None) -> Any:
        """
        POST one JSON-RPC request and return its ``result``.

        Transport failures and throttling statuses are retried up to
        ``max_retries`` times with exponential backoff; the last failure is
        re-raised unchanged.
        """
        body = {"jsonrpc": "2.0", "id": self._next_id(), "method": method, "params": params or []}
        request = urllib.request.Request(
            self._endpoint,
            data=json.dumps(body).encode("utf-8"),
            headers={"Content-Type": "application/json"},
        )

        failures = 0
        while True:
            try:
                with urllib.request.urlopen(request, timeout=self._timeout) as response:
                    raw = response.read()
            except urllib.error.URLError as exc:
                failures += 1
                if not _is_transient(exc) or failures > self._max_retries:
                    logger.error("%s to %s gave up after %d tries: %s", method, self._endpoint, failures, exc)
                    raise
                delay = self._backoff(failures)
                logger.warning(
                    "%s to %s failed (%s); retry %d of %d in %.2fs",
                    method,
                    self._endpoint,
                    exc,
                    failures,
                    self._max_retries,
                    delay,
                )
                time.sleep(delay)
                continue

            logger.debug("%s -> %d bytes", method, len(raw))
            return self._unwrap(method, json.loads(raw.decode("utf-8")))

    @staticmethod
    def _unwrap(method: str, response: Dict[str, Any]) -> Any:
        error = response.get("error")
        if error:
            code = error.get("code") if isinstance(error, dict) else None
            message = error.get("message") if isinstance(error, dict) else str(error)
            logger.error("%s returned error %s: %s", method, code, message)
            raise RpcError(f"{method} failed: {message}", code=code)
        return response.get("result")

    def chain_id(self) -> int:
        return int(self.call("eth_chainId"), 16)

    def block_number(self) -> int:
        return int(self.call("eth_blockNumber"), 16)

    def get_logs(
        self,
        address: str,
        topics: List[Optional[str]],
        from_block: Union[int, str],
        to_block: Union[int, str] = "latest",
    ) -> List[Dict[str, Any]]:
        return self.call(
            "eth_getLogs",
            [
                {
                    "address": address,
                    "topics": topics,
                    "fromBlock": _hex(from_block),
                    "toBlock": _hex(to_block),
                }
            ],
        ) or []

    def get_transaction_receipt(self, tx_hash: str) -> Optional[Dict[str, Any]]:
        return self.call("eth_getTransactionReceipt", [tx_hash])

    def wait_for_receipt(
        self, tx_hash: str, max_attempts: int = 60, delay_seconds: float = 2.0
    ) -> Optional[Dict[str, Any]]:
        for attempt in range(max_attempts):
            receipt = self.get_transaction_receipt(tx_hash)
            if receipt:
                return receipt
            logger.debug("Waiting for receipt %s (attempt %d)", tx_hash, attempt + 1)
            time.sleep(delay_seconds)
        return None
