"""
Sales Order Schemas
"""
from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from uuid import UUID

class SalesOrderItemCreate(BaseModel):
    product_id: UUID
    variant_id: Optional[UUID] = None
    quantity: int = Field(gt=0)

class SalesOrderCreate(BaseModel):
    customer_name: Optional[str] = None
    notes: Optional[str] = None
    items: List[SalesOrderItemCreate] = Field(min_length=1)

class StatusUpdate(BaseModel):
    status: str
    notes: Optional[str] = None
    warehouse_priority: Optional[List[UUID]] = None
    return_warehouse_id: Optional[UUID] = None

class SalesOrderItemResponse(BaseModel):
    id: UUID
    product_id: UUID
    variant_id: Optional[UUID]
    quantity: int

    class Config:
        from_attributes = True

class SalesOrderResponse(BaseModel):
    id: UUID
    order_number: str
    status: str
    customer_name: Optional[str]
    notes: Optional[str]
    delivered_at: Optional[datetime]
    created_at: datetime
    items: List[SalesOrderItemResponse] = []

    class Config:
        from_attributes = True
