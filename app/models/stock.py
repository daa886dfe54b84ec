"""
Stock & Inventory Models
"""
from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Text, Index, UniqueConstraint, Uuid, JSON, text
from sqlalchemy.orm import relationship
from app.core import Base
from .base import UUIDMixin, TimestampMixin, utcnow

# Counter columns held on StockEntry, in lifecycle order
STOCK_COUNTERS = (
    "quantity",
    "reserved_quantity",
    "delivered_quantity",
    "confirmed_delivered_quantity",
    "expected_returns",
    "returned_quantity",
)

class StockEntry(Base, UUIDMixin, TimestampMixin):
    """Current counters for one product/variant inside one warehouse"""
    __tablename__ = "stock_entry"
    __table_args__ = (
        UniqueConstraint("warehouse_id", "product_id", "variant_id", name="uq_stock_entry_key"),
        # NULL variant ids never collide in the key above
        Index(
            "uq_stock_entry_key_no_variant", "warehouse_id", "product_id",
            unique=True,
            sqlite_where=text("variant_id IS NULL"),
            postgresql_where=text("variant_id IS NULL")
        ),
    )

    warehouse_id = Column(Uuid(as_uuid=True), ForeignKey("warehouse.id"), nullable=False, index=True)
    product_id = Column(Uuid(as_uuid=True), ForeignKey("product.id"), nullable=False, index=True)
    variant_id = Column(Uuid(as_uuid=True), ForeignKey("product_variant.id"), nullable=True)

    # Counters
    quantity = Column(Integer, default=0, nullable=False)  # Physical units stored
    reserved_quantity = Column(Integer, default=0, nullable=False)
    delivered_quantity = Column(Integer, default=0, nullable=False)  # Left warehouse, unconfirmed
    confirmed_delivered_quantity = Column(Integer, default=0, nullable=False)
    expected_returns = Column(Integer, default=0, nullable=False)
    returned_quantity = Column(Integer, default=0, nullable=False)

    tags = Column(JSON, default=list, nullable=False)  # returned, damaged, expired, opened, defective, unopened
    returned_at = Column(DateTime(timezone=True))

    # Optimistic concurrency stamp
    version = Column(Integer, default=1, nullable=False)

    # Relationships
    warehouse = relationship("Warehouse", back_populates="stock_entries")
    product = relationship("Product")
    variant = relationship("ProductVariant")

    @property
    def available_quantity(self) -> int:
        available = (self.quantity or 0) - (self.reserved_quantity or 0) \
            - (self.delivered_quantity or 0) - (self.confirmed_delivered_quantity or 0)
        return max(0, available)

    def counters(self) -> dict:
        return {name: getattr(self, name) or 0 for name in STOCK_COUNTERS}

class StockMovement(Base, UUIDMixin):
    """Stock Movement Ledger (append-only)"""
    __tablename__ = "stock_movement"
    __table_args__ = (
        Index("ix_stock_movement_product_wh_ts", "product_id", "warehouse_id", "timestamp"),
        Index("ix_stock_movement_reference", "reference_type", "reference_id"),
    )

    warehouse_id = Column(Uuid(as_uuid=True), ForeignKey("warehouse.id"), nullable=False, index=True)
    product_id = Column(Uuid(as_uuid=True), ForeignKey("product.id"), nullable=False)
    variant_id = Column(Uuid(as_uuid=True), nullable=True)

    # Movement info
    movement_type = Column(String(30), nullable=False)  # in, out, transfer_in, transfer_out, adjustment, reserved, unreserved, return, confirmed_delivery, expected_return_hold, expected_return_release
    quantity = Column(Integer, nullable=False)  # Magnitude of the movement
    counter = Column(String(40), nullable=False)  # Counter that previous/new refer to
    previous_quantity = Column(Integer, nullable=False)
    new_quantity = Column(Integer, nullable=False)

    # Signed deltas per counter, folded by ledger replay
    quantity_delta = Column(Integer, default=0, nullable=False)
    reserved_delta = Column(Integer, default=0, nullable=False)
    delivered_delta = Column(Integer, default=0, nullable=False)
    confirmed_delivered_delta = Column(Integer, default=0, nullable=False)
    expected_returns_delta = Column(Integer, default=0, nullable=False)
    returned_delta = Column(Integer, default=0, nullable=False)

    # Reference (weak, survives parent deletion)
    reference_type = Column(String(30))  # sales_order, transfer, adjustment, purchase, expected_return
    reference_id = Column(String(50))
    counterpart_warehouse_id = Column(Uuid(as_uuid=True))  # Other side of a transfer

    # Metadata
    notes = Column(Text)
    timestamp = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    actor_id = Column(Uuid(as_uuid=True))

    # Relationships
    warehouse = relationship("Warehouse")
    product = relationship("Product")
