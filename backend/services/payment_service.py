"""
Payment service — pairs the PIX codec with QR image rendering.

The codec is pure; rendering is delegated to a QRRenderer so the raster
step can be swapped (or faked in tests). Rendering runs in the shared
thread pool because PIL work is blocking.
"""

from __future__ import annotations

import base64
import io
import logging
from dataclasses import dataclass
from typing import Protocol

import qrcode
import qrcode.constants
import qrcode.image.pil

from domain.errors import PaymentEncodingError
from services import pix_codec
from services.async_executor import run_blocking

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PaymentCode:
    payload: str
    image: str  # data URL
    transaction_id: str
    merchant_key: str

    def to_dict(self) -> dict:
        return {
            "payload": self.payload,
            "image": self.image,
            "transactionId": self.transaction_id,
            "merchantKey": self.merchant_key,
        }


class QRRenderer(Protocol):
    async def render(self, payload: str) -> str:
        """Return an image artifact encoding exactly `payload`."""
        ...


class QrcodeRenderer:
    """PNG data-URL renderer backed by the `qrcode` library."""

    def __init__(
        self,
        error_correction: int = qrcode.constants.ERROR_CORRECT_M,
        box_size: int = 8,
        border: int = 4,
    ):
        self.error_correction = error_correction
        self.box_size = box_size
        self.border = border

    def render_png(self, payload: str) -> bytes:
        qr = qrcode.QRCode(
            error_correction=self.error_correction,
            box_size=self.box_size,
            border=self.border,
            image_factory=qrcode.image.pil.PilImage,
        )
        qr.add_data(payload)
        qr.make(fit=True)
        buf = io.BytesIO()
        qr.make_image().save(buf)
        return buf.getvalue()

    async def render(self, payload: str) -> str:
        try:
            png = await run_blocking(self.render_png, payload)
        except Exception as e:
            raise PaymentEncodingError(f"QR rendering failed: {e}") from e
        return "data:image/png;base64," + base64.b64encode(png).decode("ascii")


class PaymentService:
    """Generates PaymentCode values for a fixed merchant."""

    def __init__(self, merchant: pix_codec.MerchantConfig, renderer: QRRenderer):
        self.merchant = merchant
        self.renderer = renderer

    @property
    def merchant_key(self) -> str:
        return "".join((self.merchant.key or "").split())

    async def generate(self, amount, transaction_id: str) -> PaymentCode:
        """
        Encode and render a payment code.

        Raises:
            InvalidPaymentInput: rejected by the codec.
            PaymentEncodingError: rendering failed.
        """
        payload = pix_codec.encode(self.merchant, amount, transaction_id)
        image = await self.renderer.render(payload)
        return PaymentCode(
            payload=payload,
            image=image,
            transaction_id=pix_codec.normalize_transaction_id(transaction_id),
            merchant_key=self.merchant_key,
        )
