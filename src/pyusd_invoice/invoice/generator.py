import logging
import time
from typing import Callable, Optional

from ..config import DEFAULT_CONFIG, ProtocolConfig
from .encoding import checksum_address, is_valid_address, new_invoice_id, to_atomic
from .exceptions import InvalidInput
from .models import Invoice

logger = logging.getLogger(__name__)


class InvoiceGenerator:
    def __init__(
        self,
        config: ProtocolConfig = DEFAULT_CONFIG,
        id_factory: Callable[[], str] = new_invoice_id,
        clock: Callable[[], float] = time.time,
    ):
        self._config = config
        self._id_factory = id_factory
        self._clock = clock

    @property
    def config(self) -> ProtocolConfig:
        return self._config

    def generate(
        self,
        merchant_address: str,
        display_amount: str,
        note: str = "",
        expires_at: int = 0,
        expires_in: Optional[int] = None,
    ) -> Invoice:
        merchant = (merchant_address or "").strip()
        if not merchant:
            raise InvalidInput("Merchant address is required.")
        if not is_valid_address(merchant):
            raise InvalidInput(f"Merchant address {merchant!r} is not a valid address.")

        amount_text = (display_amount or "").strip()
        if not amount_text:
            raise InvalidInput("Amount is required.")
        try:
            atomic = to_atomic(amount_text, self._config.token_decimals)
        except ValueError as exc:
            raise InvalidInput(str(exc)) from exc
        if atomic <= 0:
            raise InvalidInput("Amount must be greater than zero.")

        if expires_in is not None:
            if expires_at:
                raise InvalidInput("Pass either expires_at or expires_in, not both.")
            if expires_in <= 0:
                raise InvalidInput("expires_in must be positive.")
            expires_at = int(self._clock()) + int(expires_in)
        if expires_at < 0:
            raise InvalidInput("expires_at must not be negative.")

        invoice = Invoice(
            protocol_version=self._config.protocol_version,
            chain_id=self._config.chain_id,
            token_address=checksum_address(self._config.token_address),
            merchant_address=checksum_address(merchant),
            display_amount=amount_text,
            atomic_amount=str(atomic),
            invoice_id=self._id_factory(),
            note=note or "",
            expires_at=int(expires_at),
        )
        logger.info(
            "Generated invoice invoice_id=%s merchant=%s amount=%s %s expires_at=%s",
            invoice.invoice_id,
            invoice.merchant_address,
            invoice.display_amount,
            self._config.token_symbol,
            invoice.expires_at,
        )
        return invoice


def generate(
    merchant_address: str,
    display_amount: str,
    note: str = "",
    expires_at: int = 0,
) -> Invoice:
    return InvoiceGenerator().generate(merchant_address, display_amount, note, expires_at)
