"""
Ad-hoc PIX payment codes, outside the order flow.

Endpoints:
    GET  /payment-code/{amount}                  — Code with a generated transaction id
    GET  /payment-code/{amount}/{transaction_id} — Code for a caller-chosen id
    GET  /payment-key                            — Merchant identity in use
"""
import logging
import time

from fastapi import APIRouter, Depends, Response

from deps import get_payment_service
from domain.constants import ADHOC_TXID_PREFIX, PIX_MAX_TXID
from services.payment_service import PaymentService

logger = logging.getLogger(__name__)
router = APIRouter(tags=["payment"])


def generated_transaction_id() -> str:
    return f"{ADHOC_TXID_PREFIX}{int(time.time() * 1000)}"[:PIX_MAX_TXID]


@router.get("/payment-code/{amount}")
@router.get("/payment-code/{amount}/{transaction_id}")
async def get_payment_code(
    amount: str,
    response: Response,
    transaction_id: str | None = None,
    payment_service: PaymentService = Depends(get_payment_service),
):
    """
    Generate a payment code for `amount` ("25.50" or "25,50").

    400 invalid_payment_input when the amount is below 0.01 or the
    transaction id is not alphanumeric.
    """
    code = await payment_service.generate(amount, transaction_id or generated_transaction_id())
    response.headers["Cache-Control"] = "no-store"
    return code.to_dict()


@router.get("/payment-key")
async def get_payment_key(payment_service: PaymentService = Depends(get_payment_service)):
    merchant = payment_service.merchant
    return {
        "key": payment_service.merchant_key,
        "name": merchant.name,
        "city": merchant.city,
    }
