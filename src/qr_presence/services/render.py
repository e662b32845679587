"""Render token strings as QR codes (error correction level M)."""

from __future__ import annotations

import io

import qrcode
import qrcode.constants
from qrcode.image.svg import SvgPathImage

QR_BOX_SIZE = 10
QR_BORDER = 4


def _build(token: str) -> qrcode.QRCode:
    qr = qrcode.QRCode(
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=QR_BOX_SIZE,
        border=QR_BORDER,
    )
    qr.add_data(token)
    qr.make(fit=True)
    return qr


def render_svg(token: str) -> bytes:
    """Return the token as a standalone SVG document."""
    img = _build(token).make_image(image_factory=SvgPathImage)
    buf = io.BytesIO()
    img.save(buf)
    return buf.getvalue()


def render_ascii(token: str) -> str:
    """Return the token as a terminal-printable QR block."""
    out = io.StringIO()
    _build(token).print_ascii(out=out, invert=True)
    return out.getvalue()
