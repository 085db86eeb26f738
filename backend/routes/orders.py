"""
Order endpoints.

Endpoints:
    POST    /orders                — Finalize a new order (payment code + stock + notify)
    GET     /orders                — List orders, newest first
    GET     /orders/{id}           — Fetch one order
    PUT     /orders/{id}/status    — Overwrite status (any text, no transitions)
    DELETE  /orders/{id}           — Remove an order record
"""
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from db_models import Order
from deps import Pagination, get_notifier, get_order_pipeline, pagination_params
from models import OrderCreateRequest, StatusUpdateRequest
from services import order_service
from services.notification_service import Notifier
from services.order_service import OrderPipeline
from utils.validators import order_id_path

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/orders", tags=["orders"])


def _iso(dt: datetime | None) -> str | None:
    if dt is None:
        return None
    if dt.tzinfo is None:  # SQLite hands back naive UTC
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.isoformat()


def order_to_dict(order: Order) -> dict:
    payment_code = None
    if order.payment_payload is not None:
        payment_code = {
            "payload": order.payment_payload,
            "image": order.payment_image,
            "transactionId": order.payment_transaction_id,
            "merchantKey": order.payment_merchant_key,
        }
    return {
        "id": order.id,
        "customer": {
            "name": order.customer_name,
            "address": order.customer_address,
            "phone": order.customer_phone,
        },
        "items": [
            {
                "productId": i.product_id,
                "name": i.name,
                "quantity": i.quantity,
                "unitPrice": float(i.unit_price),
            }
            for i in order.items
        ],
        "total": float(order.total),
        "status": order.status,
        "paymentCode": payment_code,
        "createdAt": _iso(order.created_at),
    }


@router.post("")
async def create_order(
    request: OrderCreateRequest,
    pipeline: OrderPipeline = Depends(get_order_pipeline),
    db: AsyncSession = Depends(get_db),
):
    """
    Finalize an order.

    200 even when the payment code could not be generated (paymentCode is
    null then). 400 for an empty cart, 404 for an unknown product,
    503 if the transaction could not be committed.
    """
    order_input = order_service.normalize_order_input(request)
    order = await pipeline.create_order(db, order_input)
    return order_to_dict(order)


@router.get("")
async def list_orders(
    page: Pagination = Depends(pagination_params),
    db: AsyncSession = Depends(get_db),
):
    orders = await order_service.list_orders(db, limit=page["limit"], offset=page["offset"])
    return [order_to_dict(o) for o in orders]


@router.get("/{order_id}")
async def get_order(
    order_id: str = Depends(order_id_path),
    db: AsyncSession = Depends(get_db),
):
    order = await order_service.get_order(db, order_id)
    return order_to_dict(order)


@router.put("/{order_id}/status")
async def update_order_status(
    request: StatusUpdateRequest,
    order_id: str = Depends(order_id_path),
    notifier: Notifier = Depends(get_notifier),
    db: AsyncSession = Depends(get_db),
):
    order = await order_service.set_status(db, order_id=order_id, status=request.status)
    notifier.dispatch_status_change(order.id, order.status)
    return order_to_dict(order)


@router.delete("/{order_id}")
async def delete_order(
    order_id: str = Depends(order_id_path),
    db: AsyncSession = Depends(get_db),
):
    await order_service.delete_order(db, order_id=order_id)
    return {"success": True, "id": order_id}
