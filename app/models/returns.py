"""
Expected Return Models
"""
from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Text, Uuid
from sqlalchemy.orm import relationship
from app.core import Base
from .base import UUIDMixin, TimestampMixin

class ExpectedReturn(Base, UUIDMixin, TimestampMixin):
    """Anticipated customer return, holding expected_returns on a warehouse"""
    __tablename__ = "expected_return"

    return_number = Column(String(20), unique=True, nullable=False, index=True)  # RET-0001
    sales_order_id = Column(Uuid(as_uuid=True), ForeignKey("sales_order.id", ondelete="SET NULL"), index=True)
    warehouse_id = Column(Uuid(as_uuid=True), ForeignKey("warehouse.id"), nullable=False)

    status = Column(String(20), default="pending", nullable=False, index=True)  # pending, in_transit, received, cancelled
    expected_date = Column(DateTime(timezone=True))
    received_at = Column(DateTime(timezone=True))
    reason = Column(String(200))
    notes = Column(Text)

    created_by = Column(Uuid(as_uuid=True))

    # Relationships
    sales_order = relationship("SalesOrder", back_populates="expected_returns")
    warehouse = relationship("Warehouse")
    items = relationship("ExpectedReturnItem", back_populates="expected_return", cascade="all, delete-orphan")

class ExpectedReturnItem(Base, UUIDMixin):
    """Expected Return Line"""
    __tablename__ = "expected_return_item"

    expected_return_id = Column(Uuid(as_uuid=True), ForeignKey("expected_return.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Uuid(as_uuid=True), ForeignKey("product.id"), nullable=False)
    variant_id = Column(Uuid(as_uuid=True), ForeignKey("product_variant.id"))
    quantity = Column(Integer, nullable=False)
    reason = Column(String(20), default="other")  # defective, damaged, wrong_item, not_needed, quality_issue, other
    condition = Column(String(20), default="unopened")  # unopened, opened, damaged, defective

    # Relationships
    expected_return = relationship("ExpectedReturn", back_populates="items")
    product = relationship("Product")
