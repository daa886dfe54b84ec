# Services Package
from .ledger_service import LedgerService
from .stock_service import StockService
from .product_service import ProductService
from .fulfillment_service import FulfillmentService
from .return_service import ReturnService
from .order_service import OrderService
from .transfer_service import TransferService
from .warehouse_service import WarehouseService
from .reconciliation_service import ReconciliationService

__all__ = [
    "LedgerService",
    "StockService",
    "ProductService",
    "FulfillmentService",
    "ReturnService",
    "OrderService",
    "TransferService",
    "WarehouseService",
    "ReconciliationService",
]
