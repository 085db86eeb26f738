"""
SQLAlchemy ORM models for the storefront backend.

Tables:
    products            — catalog entries with their stock quantity
    orders              — finalized orders, customer block and payment code
    order_items         — line items with name/price captured at order time
    push_subscriptions  — web push delivery targets registered by staff devices
"""
from datetime import datetime, timezone

from sqlalchemy import (
    Column, Integer, String, Numeric, DateTime, Text, ForeignKey, Index,
)
from sqlalchemy.orm import relationship

from database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ════════════════════════════════════════════════════════════════════
# Catalog
# ════════════════════════════════════════════════════════════════════

class Product(Base):
    """Catalog product. stock_quantity is only decremented by the stock ledger."""
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    price = Column(Numeric(12, 2), nullable=False, default=0)
    stock_quantity = Column(Integer, nullable=False, default=0)
    image_url = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow)


# ════════════════════════════════════════════════════════════════════
# Orders
# ════════════════════════════════════════════════════════════════════

class Order(Base):
    """
    A finalized order.

    The id is allocated by the order pipeline before insert and never changes.
    status is free text; it is the only column rewritten after creation.
    The payment_* columns are all NULL when payment-code generation failed.
    """
    __tablename__ = "orders"

    id = Column(String(32), primary_key=True)
    customer_name = Column(String(200), nullable=False, default="")
    customer_address = Column(Text, nullable=False, default="")
    customer_phone = Column(String(50), nullable=False, default="")
    total = Column(Numeric(12, 2), nullable=False)
    status = Column(Text, nullable=False)

    # Payment code (immutable once written)
    payment_payload = Column(Text, nullable=True)
    payment_image = Column(Text, nullable=True)  # data:image/png;base64,...
    payment_transaction_id = Column(String(25), nullable=True, index=True)
    payment_merchant_key = Column(String(100), nullable=True)

    created_at = Column(DateTime, default=utcnow, index=True)

    items = relationship(
        "OrderItem",
        back_populates="order",
        order_by="OrderItem.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class OrderItem(Base):
    """Line item. name and unit_price are snapshots, not live catalog values."""
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(String(32), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    product_id = Column(Integer, nullable=False, index=True)
    name = Column(String(200), nullable=False, default="")
    quantity = Column(Integer, nullable=False, default=1)
    unit_price = Column(Numeric(12, 2), nullable=False, default=0)

    order = relationship("Order", back_populates="items")

    __table_args__ = (
        Index("ix_order_items_order_position", "order_id", "position"),
    )


# ════════════════════════════════════════════════════════════════════
# Notifications
# ════════════════════════════════════════════════════════════════════

class PushSubscription(Base):
    """
    Web push target registered by a client.

    Removed only by an explicit unsubscribe or when a delivery attempt
    reports the endpoint gone (404/410).
    """
    __tablename__ = "push_subscriptions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    endpoint = Column(String(1000), unique=True, nullable=False, index=True)
    p256dh = Column(String(255), nullable=True)
    auth = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=utcnow)
