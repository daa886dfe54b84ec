"""
Warehouse Schemas
"""
from pydantic import BaseModel, Field
from typing import Optional
from uuid import UUID

class WarehouseCreate(BaseModel):
    code: str = Field(min_length=1, max_length=20)
    name: str = Field(min_length=1)
    location: Optional[str] = None
    capacity: int = Field(ge=1)
    is_active: bool = True

class WarehouseUpdate(BaseModel):
    name: Optional[str] = None
    location: Optional[str] = None
    capacity: Optional[int] = Field(None, ge=1)
    is_active: Optional[bool] = None

class WarehouseResponse(BaseModel):
    id: UUID
    code: str
    name: str
    location: Optional[str]
    capacity: int
    is_active: bool

    class Config:
        from_attributes = True
