"""
Catalog service — products and their stock.

Thin CRUD used by the admin screens; stock is otherwise only changed by
the stock ledger when an order is finalized.
"""

from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from db_models import Product
from domain.errors import NotFoundError


async def create_product(
    db: AsyncSession,
    *,
    name: str,
    price: Decimal,
    stock_quantity: int,
    image_url: str | None,
) -> Product:
    product = Product(
        name=name,
        price=price,
        stock_quantity=stock_quantity,
        image_url=image_url,
    )
    db.add(product)
    await db.flush()
    return product


async def list_products(db: AsyncSession) -> list[Product]:
    res = await db.execute(select(Product).order_by(Product.id))
    return list(res.scalars().all())


async def get_products(db: AsyncSession, product_ids: list[int]) -> dict[int, Product]:
    """Batch-load products by id; missing ids are simply absent."""
    if not product_ids:
        return {}
    res = await db.execute(select(Product).where(Product.id.in_(product_ids)))
    return {p.id: p for p in res.scalars().all()}


async def delete_product(db: AsyncSession, *, product_id: int) -> None:
    product = await db.get(Product, product_id)
    if not product:
        raise NotFoundError("Product", str(product_id))
    await db.delete(product)
    await db.flush()
