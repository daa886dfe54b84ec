from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime
from uuid import UUID

class ReturnItem(BaseModel):
    product_id: UUID
    variant_id: Optional[UUID] = None
    quantity: int = Field(gt=0)
    reason: str = Field("other", pattern="^(defective|damaged|wrong_item|not_needed|quality_issue|other)$")
    condition: str = Field("unopened", pattern="^(unopened|opened|damaged|defective)$")

class ReturnRequest(BaseModel):
    sales_order_id: Optional[UUID] = None
    warehouse_id: Optional[UUID] = None
    items: List[ReturnItem] = []
    expected_date: Optional[datetime] = None
    reason: Optional[str] = None
    notes: Optional[str] = None

class ReturnStatusUpdate(BaseModel):
    status: str = Field(..., pattern="^(pending|in_transit|received|cancelled)$")
    notes: Optional[str] = None
    warehouse_id: Optional[UUID] = None  # Receiving warehouse override, received only

class ReturnItemResponse(BaseModel):
    id: UUID
    product_id: UUID
    variant_id: Optional[UUID]
    quantity: int
    reason: Optional[str]
    condition: Optional[str]

    class Config:
        from_attributes = True

class ReturnResponse(BaseModel):
    id: UUID
    return_number: str
    sales_order_id: Optional[UUID]
    warehouse_id: UUID
    status: str
    expected_date: Optional[datetime]
    received_at: Optional[datetime]
    reason: Optional[str]
    notes: Optional[str]
    items: List[ReturnItemResponse] = []

    class Config:
        from_attributes = True
