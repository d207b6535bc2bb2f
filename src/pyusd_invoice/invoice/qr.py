"""QR rendering for encoded invoices."""

import base64
import io
from typing import TextIO

import qrcode  # type: ignore[import-untyped]


def _build(payload: str) -> qrcode.QRCode:
    qr = qrcode.QRCode(
        version=None,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=8,
        border=2,
    )
    qr.add_data(payload)
    qr.make(fit=True)
    return qr


def write_png(payload: str, path: str) -> None:
    image = _build(payload).make_image(fill_color="black", back_color="white")
    image.save(path)


def to_data_uri(payload: str) -> str:
    """Return ``payload`` as a ``data:image/png;base64,...`` string."""
    image = _build(payload).make_image(fill_color="black", back_color="white")
    buf = io.BytesIO()
    image.save(buf, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buf.getvalue()).decode()


def print_terminal(payload: str, out: TextIO) -> None:
    # invert so dark modules read as dark on a light-on-dark terminal
    _build(payload).print_ascii(out=out, invert=True)
