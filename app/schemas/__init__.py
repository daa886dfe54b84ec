# Pydantic Schemas Package
from .order import SalesOrderCreate, SalesOrderItemCreate, StatusUpdate, SalesOrderResponse
from .product import ProductCreate, VariantCreate, ProductResponse
from .stock import (
    StockEntryResponse, StockMovementResponse, MovementFilter,
    TransferLine, TransferRequest, AdjustRequest, ReceiveRequest
)
from .warehouse import WarehouseCreate, WarehouseUpdate, WarehouseResponse
from .return_schema import ReturnItem, ReturnRequest, ReturnStatusUpdate, ReturnResponse

__all__ = [
    "SalesOrderCreate", "SalesOrderItemCreate", "StatusUpdate", "SalesOrderResponse",
    "ProductCreate", "VariantCreate", "ProductResponse",
    "StockEntryResponse", "StockMovementResponse", "MovementFilter",
    "TransferLine", "TransferRequest", "AdjustRequest", "ReceiveRequest",
    "WarehouseCreate", "WarehouseUpdate", "WarehouseResponse",
    "ReturnItem", "ReturnRequest", "ReturnStatusUpdate", "ReturnResponse",
]
