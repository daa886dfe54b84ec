from .base import TimestampMixin, UUIDMixin
from .master import Warehouse
from .product import Product, ProductVariant
from .order import SalesOrder, SalesOrderItem
from .stock import StockEntry, StockMovement, STOCK_COUNTERS
from .returns import ExpectedReturn, ExpectedReturnItem
from .audit import AuditLog

__all__ = [
    # Base
    "TimestampMixin", "UUIDMixin",
    # Master
    "Warehouse",
    # Product
    "Product", "ProductVariant",
    # Order
    "SalesOrder", "SalesOrderItem",
    # Stock
    "StockEntry", "StockMovement", "STOCK_COUNTERS",
    # Returns
    "ExpectedReturn", "ExpectedReturnItem",
    # Audit
    "AuditLog",
]
