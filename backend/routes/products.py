"""
Catalog endpoints (admin CRUD, no business rules).
"""
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from db_models import Product
from models import ProductCreateRequest
from services import catalog_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/products", tags=["products"])


def product_to_dict(p: Product) -> dict:
    return {
        "id": p.id,
        "name": p.name,
        "price": float(p.price),
        "stockQuantity": p.stock_quantity,
        "imageUrl": p.image_url,
    }


@router.get("")
async def list_products(db: AsyncSession = Depends(get_db)):
    products = await catalog_service.list_products(db)
    return [product_to_dict(p) for p in products]


@router.post("")
async def create_product(request: ProductCreateRequest, db: AsyncSession = Depends(get_db)):
    product = await catalog_service.create_product(
        db,
        name=request.name,
        price=request.price,
        stock_quantity=request.stock_quantity,
        image_url=request.image_url,
    )
    await db.commit()
    await db.refresh(product)
    return product_to_dict(product)


@router.delete("/{product_id}")
async def delete_product(product_id: int, db: AsyncSession = Depends(get_db)):
    await catalog_service.delete_product(db, product_id=product_id)
    await db.commit()
    return {"success": True, "id": product_id}
