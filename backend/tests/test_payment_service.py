"""
Tests for PaymentService and the qrcode-backed renderer.
"""
import base64

import pytest

from domain.errors import InvalidPaymentInput, PaymentEncodingError
from services.payment_service import PaymentService, QrcodeRenderer
from services.pix_codec import MerchantConfig, is_valid_payload

PNG_MAGIC = b"\x89PNG\r\n\x1a\n"


@pytest.mark.asyncio
async def test_generate_returns_payload_and_image(payment_service, renderer):
    code = await payment_service.generate("25.50", "PED1")

    assert is_valid_payload(code.payload)
    assert renderer.calls == [code.payload]
    assert code.image == f"data:image/png;base64,FAKE-{len(code.payload)}"
    assert code.to_dict() == {
        "payload": code.payload,
        "image": code.image,
        "transactionId": "PED1",
        "merchantKey": "+5599991842200",
    }


@pytest.mark.asyncio
async def test_invalid_amount_never_reaches_renderer(payment_service, renderer):
    with pytest.raises(InvalidPaymentInput):
        await payment_service.generate("0", "PED1")
    assert renderer.calls == []


@pytest.mark.unit
def test_merchant_key_whitespace_removed(renderer):
    service = PaymentService(MerchantConfig(key=" 99 9918 ", name="Shop", city="Recife"), renderer)
    assert service.merchant_key == "999918"


@pytest.mark.asyncio
async def test_qrcode_renderer_png_data_url():
    renderer = QrcodeRenderer()
    url = await renderer.render("000201010211")
    prefix = "data:image/png;base64,"
    assert url.startswith(prefix)
    assert base64.b64decode(url[len(prefix):]).startswith(PNG_MAGIC)
    assert await renderer.render("000201010211") == url


@pytest.mark.asyncio
async def test_qrcode_renderer_failure_wrapped(monkeypatch):
    renderer = QrcodeRenderer()

    def broken(payload):
        raise OSError("no PIL backend")

    monkeypatch.setattr(renderer, "render_png", broken)
    with pytest.raises(PaymentEncodingError) as exc_info:
        await renderer.render("000201")
    assert exc_info.value.status_code == 500
