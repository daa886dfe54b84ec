"""
Master Data Models - Warehouse
"""
from sqlalchemy import Column, String, Integer, Boolean, Text
from sqlalchemy.orm import relationship
from app.core import Base
from .base import UUIDMixin, TimestampMixin

class Warehouse(Base, UUIDMixin, TimestampMixin):
    """Warehouse"""
    __tablename__ = "warehouse"

    code = Column(String(20), nullable=False, unique=True)
    name = Column(String(200), nullable=False)
    location = Column(Text)
    capacity = Column(Integer, nullable=False)  # Max total physical units
    is_active = Column(Boolean, default=True, nullable=False)

    # Relationships
    stock_entries = relationship("StockEntry", back_populates="warehouse")
