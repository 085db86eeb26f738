"""
Stock ledger — atomic per-product stock decrements.

Each decrement is one server-side UPDATE:

    stock_quantity = CASE WHEN stock_quantity > n THEN stock_quantity - n ELSE 0 END

so the application never reads a quantity and writes it back. The caller
owns the transaction: decrement_for_order() must run in the same session
transaction as the order insert, and any failure rolls both back.

Rows are updated in ascending product id order so two orders touching the
same products always take row locks in the same order. Orders on disjoint
products touch disjoint rows.
"""
import logging
from collections import OrderedDict
from typing import Iterable

from sqlalchemy import case, update
from sqlalchemy.ext.asyncio import AsyncSession

from db_models import Product
from domain.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)


def aggregate_quantities(items: Iterable[tuple[int, int]]) -> "OrderedDict[int, int]":
    """Sum quantities per product id, keyed in ascending id order."""
    totals: dict[int, int] = {}
    for product_id, quantity in items:
        if quantity < 1:
            raise ValidationError("Quantity must be at least 1", field="quantity")
        totals[product_id] = totals.get(product_id, 0) + quantity
    return OrderedDict(sorted(totals.items()))


async def decrement_stock(db: AsyncSession, *, product_id: int, quantity: int) -> None:
    """Clamp-at-zero decrement of a single product, executed in the database."""
    result = await db.execute(
        update(Product)
        .where(Product.id == product_id)
        .values(
            stock_quantity=case(
                (Product.stock_quantity > quantity, Product.stock_quantity - quantity),
                else_=0,
            )
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise NotFoundError("Product", str(product_id))


async def decrement_for_order(db: AsyncSession, items: Iterable[tuple[int, int]]) -> None:
    """
    Decrement stock for every (product_id, quantity) pair of an order.

    Does not commit. Raises NotFoundError for an unknown product; the
    caller is expected to roll back.
    """
    for product_id, quantity in aggregate_quantities(items).items():
        await decrement_stock(db, product_id=product_id, quantity=quantity)
    logger.debug("Stock decremented for order items")
