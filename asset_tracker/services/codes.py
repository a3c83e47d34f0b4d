from __future__ import annotations

import base64
import io

import barcode
import qrcode
from barcode.writer import ImageWriter

from ..errors import GenerationError


def _png_data_url(png: bytes) -> str:
    return "data:image/png;base64," + base64.b64encode(png).decode("ascii")


class CodeGenerator:
    """Renders the QR code and Code128 barcode attached to every asset record."""

    barcode_options = {"module_height": 10.0, "write_text": True, "quiet_zone": 2.0}

    def qr_data_url(self, payload: str) -> str:
        try:
            image = qrcode.make(payload)
            buffer = io.BytesIO()
            image.save(buffer)
        except Exception as exc:
            raise GenerationError(kind="qr", reason=str(exc)) from exc
        return _png_data_url(buffer.getvalue())

    def barcode_data_url(self, payload: str) -> str:
        try:
            code = barcode.get("code128", payload, writer=ImageWriter())
            buffer = io.BytesIO()
            code.write(buffer, options=self.barcode_options)
        except Exception as exc:
            raise GenerationError(kind="barcode", reason=str(exc)) from exc
        return _png_data_url(buffer.getvalue())


def qr_payload(
    name: str, category: str, serial_number: str | None, employee_name: str | None
) -> str:
    return f"{name}-{category}-{serial_number or ''}-{employee_name or ''}"
