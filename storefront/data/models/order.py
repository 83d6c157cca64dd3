# storefront/data/models/order.py
from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from storefront.data.database import Base
from storefront.domain.enums import OrderStatus


def _now():
    return datetime.now(timezone.utc)


class OrderModel(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True)
    order_number = Column(String(32), nullable=False, unique=True)
    user_id = Column(String(64), nullable=True, index=True)  # null for guest orders

    status = Column(String(20), nullable=False, default=OrderStatus.PENDING.value, index=True)
    subtotal = Column(Integer, nullable=False)
    tax = Column(Integer, nullable=False, default=0)
    shipping = Column(Integer, nullable=False, default=0)
    discount = Column(Integer, nullable=False, default=0)
    total = Column(Integer, nullable=False)

    shipping_address = Column(JSON, nullable=False)
    billing_address = Column(JSON, nullable=True)

    tracking_number = Column(String(100), nullable=True)
    carrier = Column(String(50), nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_now, index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_now, onupdate=_now)

    items = relationship(
        "OrderItemModel",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItemModel.id",
    )


class OrderItemModel(Base):
    """Point-in-time copy of a purchased line; never follows later product edits."""

    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, nullable=False)

    name = Column(String(200), nullable=False)
    sku = Column(String(50), nullable=True)
    price = Column(Integer, nullable=False)
    quantity = Column(Integer, nullable=False)
    variant = Column(JSON, nullable=False, default=dict)

    order = relationship("OrderModel", back_populates="items")


class OrderSequenceModel(Base):
    """Per-day order counter, bumped inside the order's own transaction."""

    __tablename__ = "order_sequences"

    day = Column(String(8), primary_key=True)  # YYYYMMDD
    last_value = Column(Integer, nullable=False, default=0)
