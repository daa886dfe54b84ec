"""
Product Schemas
"""
from pydantic import BaseModel
from typing import Optional, List
from uuid import UUID

class VariantCreate(BaseModel):
    sku: str
    name: str

class ProductCreate(BaseModel):
    sku: str
    name: str
    description: Optional[str] = None
    variants: List[VariantCreate] = []

class VariantResponse(BaseModel):
    id: UUID
    sku: str
    name: str

    class Config:
        from_attributes = True

class ProductResponse(BaseModel):
    id: UUID
    sku: str
    name: str
    description: Optional[str]
    is_active: bool
    variants: List[VariantResponse] = []

    class Config:
        from_attributes = True
