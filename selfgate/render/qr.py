import io

import qrcode
from qrcode.constants import ERROR_CORRECT_H

TARGET_WIDTH_PX = 512
BORDER = 4


def render_png(data: str, width: int = TARGET_WIDTH_PX) -> bytes:
    """Render `data` as a PNG QR code about `width` pixels wide."""
    qr = qrcode.QRCode(error_correction=ERROR_CORRECT_H, border=BORDER)
    qr.add_data(data)
    qr.make(fit=True)
    # Universal links are long; pick the largest box size that stays within width
    qr.box_size = max(1, width // (qr.modules_count + 2 * BORDER))
    img = qr.make_image(fill_color="black", back_color="white")
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def attachment_name(session_id: str) -> str:
    return f"self-qr-{session_id}.png"
