"""
Product & Variant Models
"""
from sqlalchemy import Column, String, Boolean, ForeignKey, Text, Uuid
from sqlalchemy.orm import relationship
from app.core import Base
from .base import UUIDMixin, TimestampMixin

class Product(Base, UUIDMixin, TimestampMixin):
    """Product Master"""
    __tablename__ = "product"

    sku = Column(String(100), unique=True, nullable=False, index=True)
    name = Column(String(300), nullable=False)
    description = Column(Text)
    is_active = Column(Boolean, default=True, nullable=False)

    # Relationships
    variants = relationship("ProductVariant", back_populates="product", cascade="all, delete-orphan")

class ProductVariant(Base, UUIDMixin):
    """Product Variant (size, color, ...)"""
    __tablename__ = "product_variant"

    product_id = Column(Uuid(as_uuid=True), ForeignKey("product.id"), nullable=False, index=True)
    sku = Column(String(100), unique=True, nullable=False)
    name = Column(String(200), nullable=False)

    # Relationships
    product = relationship("Product", back_populates="variants")
