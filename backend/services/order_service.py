"""
Order service — the order finalization pipeline and admin order operations.

create_order() runs these steps strictly in order:

    1. normalize      request body → OrderInput (ValidationError, no side effects)
    2. allocate id    uuid4 hex, fixed for the life of the order
    3. payment code   PIX payload + QR image; any PaymentEncodingError is
                      logged and the order continues with no payment code
    4. commit         order row, line items and stock decrements in ONE
                      transaction; any storage failure rolls all of it back
    5. return         the persisted Order
    6. notify         fan-out started as a detached task, never awaited here

Stock is clamped at zero rather than rejecting an oversized order.
Order status is free text: there is no state machine, and the only
post-creation mutation is set_status().
"""
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from db_models import Order, OrderItem
from domain.constants import ORDER_TXID_PREFIX, PIX_MAX_TXID
from domain.errors import NotFoundError, PaymentEncodingError, PersistenceError, ValidationError
from models import OrderCreateRequest
from services import catalog_service, stock_ledger
from services.notification_service import Notifier, OrderSummary
from services.payment_service import PaymentCode, PaymentService
from utils.validators import validate_money

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LineItemInput:
    product_id: int
    quantity: int
    name: str | None = None
    unit_price: Decimal | None = None


@dataclass(frozen=True)
class OrderInput:
    """Validated order request; the only shape the pipeline accepts."""
    items: tuple[LineItemInput, ...]
    customer_name: str = ""
    customer_address: str = ""
    customer_phone: str = ""
    total: Decimal | None = None


def normalize_order_input(request: OrderCreateRequest) -> OrderInput:
    """
    Step 1. Missing contact info is never an error; an empty cart or a
    non-numeric/negative total is.
    """
    if not request.items:
        raise ValidationError("order must contain at least one line item", field="items")

    total = None
    if request.total is not None and str(request.total).strip() != "":
        total = validate_money(request.total, field="total")

    return OrderInput(
        items=tuple(
            LineItemInput(
                product_id=i.product_id,
                quantity=i.quantity,
                name=(i.name or "").strip() or None,
                unit_price=validate_money(i.unit_price, field="unitPrice") if i.unit_price is not None else None,
            )
            for i in request.items
        ),
        customer_name=request.customer.name.strip(),
        customer_address=request.customer.address.strip(),
        customer_phone=request.customer.phone.strip(),
        total=total,
    )


def allocate_order_id() -> str:
    return uuid.uuid4().hex


def transaction_id_for(order_id: str) -> str:
    return (ORDER_TXID_PREFIX + order_id)[:PIX_MAX_TXID]


def summarize(order: Order) -> OrderSummary:
    return OrderSummary(
        order_id=order.id,
        customer_name=order.customer_name,
        customer_address=order.customer_address,
        items=[(i.name, i.quantity) for i in order.items],
        total=order.total,
        paid_with_pix=order.payment_payload is not None,
    )


class OrderPipeline:
    """Finalizes orders. Holds no state beyond its collaborators."""

    def __init__(self, payment_service: PaymentService, notifier: Notifier, default_status: str = "pending"):
        self.payment_service = payment_service
        self.notifier = notifier
        self.default_status = default_status

    async def _payment_code(self, total: Decimal, transaction_id: str) -> PaymentCode | None:
        """Step 3. Never fails the order."""
        try:
            return await self.payment_service.generate(total, transaction_id)
        except PaymentEncodingError as e:
            logger.warning(f"Payment code skipped for {transaction_id}: {e.message}")
            return None

    async def create_order(self, db: AsyncSession, order_input: OrderInput) -> Order:
        if not order_input.items:
            raise ValidationError("order must contain at least one line item", field="items")

        # Catalog snapshot for names/prices the client did not send
        product_ids = sorted({i.product_id for i in order_input.items})
        try:
            catalog = await catalog_service.get_products(db, product_ids)
        except SQLAlchemyError as e:
            logger.error(f"Catalog lookup failed: {e}")
            raise PersistenceError("Catalog unavailable") from e
        for pid in product_ids:
            if pid not in catalog:
                raise NotFoundError("Product", str(pid))

        lines = []
        for position, item in enumerate(order_input.items):
            product = catalog[item.product_id]
            lines.append(OrderItem(
                position=position,
                product_id=item.product_id,
                name=item.name or product.name,
                quantity=item.quantity,
                unit_price=item.unit_price if item.unit_price is not None else Decimal(product.price),
            ))

        total = order_input.total
        if total is None:
            total = sum((line.unit_price * line.quantity for line in lines), Decimal("0.00"))

        # Step 2
        order_id = allocate_order_id()

        # Step 3
        payment = await self._payment_code(total, transaction_id_for(order_id))

        order = Order(
            id=order_id,
            customer_name=order_input.customer_name,
            customer_address=order_input.customer_address,
            customer_phone=order_input.customer_phone,
            total=total,
            status=self.default_status,
            payment_payload=payment.payload if payment else None,
            payment_image=payment.image if payment else None,
            payment_transaction_id=payment.transaction_id if payment else None,
            payment_merchant_key=payment.merchant_key if payment else None,
            created_at=datetime.now(timezone.utc),
            items=lines,
        )

        # Step 4: order insert + stock decrements, one transaction
        try:
            db.add(order)
            await stock_ledger.decrement_for_order(
                db, [(line.product_id, line.quantity) for line in lines]
            )
            await db.commit()
        except NotFoundError:
            await db.rollback()
            raise
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(f"Order {order_id} rolled back: {e}")
            raise PersistenceError("Order could not be saved") from e

        logger.info(
            f"Order {order_id} created: {len(lines)} item(s), total {total}, "
            f"payment_code={'yes' if payment else 'no'}"
        )

        # Step 6: detached, the response does not wait on it
        self.notifier.dispatch_new_order(summarize(order))
        return order


# ── Admin operations ────────────────────────────────────────────────

async def list_orders(db: AsyncSession, *, limit: int = 50, offset: int = 0) -> list[Order]:
    res = await db.execute(
        select(Order)
        .order_by(Order.created_at.desc(), Order.id)
        .limit(limit)
        .offset(offset)
    )
    return list(res.scalars().all())


async def get_order(db: AsyncSession, order_id: str) -> Order:
    order = await db.get(Order, order_id)
    if not order:
        raise NotFoundError("Order", order_id)
    return order


async def set_status(db: AsyncSession, *, order_id: str, status: str) -> Order:
    """Overwrite the status verbatim. No allowed-value or transition checks."""
    order = await get_order(db, order_id)
    order.status = status
    await db.commit()
    return order


async def delete_order(db: AsyncSession, *, order_id: str) -> None:
    order = await get_order(db, order_id)
    await db.delete(order)
    await db.commit()
