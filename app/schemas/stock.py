"""
Stock Schemas
"""
from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from uuid import UUID

class StockEntryResponse(BaseModel):
    id: UUID
    warehouse_id: UUID
    product_id: UUID
    variant_id: Optional[UUID]
    quantity: int
    reserved_quantity: int
    delivered_quantity: int
    confirmed_delivered_quantity: int
    expected_returns: int
    returned_quantity: int
    available_quantity: int
    tags: List[str] = []
    returned_at: Optional[datetime] = None
    version: int

    class Config:
        from_attributes = True

class StockMovementResponse(BaseModel):
    id: UUID
    warehouse_id: UUID
    product_id: UUID
    variant_id: Optional[UUID]
    movement_type: str  # in, out, transfer_in, transfer_out, adjustment, reserved, unreserved, return, confirmed_delivery, expected_return_hold, expected_return_release
    quantity: int
    counter: str
    previous_quantity: int
    new_quantity: int
    reference_type: Optional[str]
    reference_id: Optional[str]
    counterpart_warehouse_id: Optional[UUID] = None
    notes: Optional[str]
    timestamp: datetime
    actor_id: Optional[UUID]

    class Config:
        from_attributes = True

class MovementFilter(BaseModel):
    product_id: Optional[UUID] = None
    warehouse_id: Optional[UUID] = None
    reference_type: Optional[str] = None
    reference_id: Optional[str] = None
    movement_type: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    page: int = Field(1, ge=1)
    per_page: int = Field(50, ge=1)

class TransferLine(BaseModel):
    product_id: UUID
    variant_id: Optional[UUID] = None
    quantity: int = Field(gt=0)

class TransferRequest(BaseModel):
    from_warehouse_id: UUID
    to_warehouse_id: UUID
    items: List[TransferLine] = Field(min_length=1)
    notes: Optional[str] = None

class AdjustRequest(BaseModel):
    warehouse_id: UUID
    product_id: UUID
    variant_id: Optional[UUID] = None
    quantity_delta: int
    reason: str

class ReceiveRequest(BaseModel):
    warehouse_id: UUID
    product_id: UUID
    variant_id: Optional[UUID] = None
    quantity: int = Field(gt=0)
    reference_type: str = "purchase"
    reference_id: Optional[str] = None
    notes: Optional[str] = None
