"""
Sales Order Models
"""
from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Text, Uuid
from sqlalchemy.orm import relationship
from app.core import Base
from .base import UUIDMixin, TimestampMixin

class SalesOrder(Base, UUIDMixin, TimestampMixin):
    """Sales Order Header"""
    __tablename__ = "sales_order"

    order_number = Column(String(20), unique=True, nullable=False, index=True)  # SO-0001

    customer_name = Column(String(200))
    notes = Column(Text)

    # Status
    status = Column(String(30), default="pending", nullable=False, index=True)  # pending, confirmed, dispatch, dispatched, delivered, confirmed_delivered, expected_return, returned, cancelled
    delivered_at = Column(DateTime(timezone=True))

    created_by = Column(Uuid(as_uuid=True))

    # Relationships
    items = relationship("SalesOrderItem", back_populates="order", cascade="all, delete-orphan")
    expected_returns = relationship("ExpectedReturn", back_populates="sales_order")

class SalesOrderItem(Base, UUIDMixin):
    """Sales Order Line"""
    __tablename__ = "sales_order_item"

    order_id = Column(Uuid(as_uuid=True), ForeignKey("sales_order.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Uuid(as_uuid=True), ForeignKey("product.id"), nullable=False)
    variant_id = Column(Uuid(as_uuid=True), ForeignKey("product_variant.id"))
    quantity = Column(Integer, nullable=False)

    # Relationships
    order = relationship("SalesOrder", back_populates="items")
    product = relationship("Product")
    variant = relationship("ProductVariant")
