"""QR rendering for join URLs."""
from __future__ import annotations

import base64
import io

import qrcode
from qrcode.constants import ERROR_CORRECT_M


def render_qr_png(data: str) -> bytes:
    """Encode data as a QR code and return PNG bytes."""
    qr = qrcode.QRCode(error_correction=ERROR_CORRECT_M, box_size=8, border=4)
    qr.add_data(data)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def qr_data_url(data: str) -> str:
    encoded = base64.b64encode(render_qr_png(data)).decode("ascii")
    return f"data:image/png;base64,{encoded}"
