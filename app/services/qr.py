import base64
import io

import qrcode
import qrcode.image.svg


def render_qr_data_uri(uri: str) -> str:
    """Render an otpauth:// URI as an SVG QR code data URI."""
    img = qrcode.make(uri, image_factory=qrcode.image.svg.SvgPathImage)
    buf = io.BytesIO()
    img.save(buf)
    return "data:image/svg+xml;base64," + base64.b64encode(buf.getvalue()).decode("ascii")
