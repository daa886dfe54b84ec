"""
API Router - JSON Endpoints
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional
from uuid import UUID
from datetime import datetime

from app.core import get_db, settings
from app.core.exceptions import NotFoundError
from app.services import ProductService
from app.schemas.product import ProductCreate, ProductResponse
from app.api.deps import page_info

# Import sub-routers
from app.api.warehouses import router as warehouses_router
from app.api.stock import router as stock_router
from app.api.orders import router as orders_router
from app.api.returns import router as returns_router
from app.api.reconciliation import router as reconciliation_router

api_router = APIRouter(tags=["API"])

# Include sub-routers
api_router.include_router(warehouses_router)
api_router.include_router(stock_router)
api_router.include_router(orders_router)
api_router.include_router(returns_router)
api_router.include_router(reconciliation_router)

# ===================== HEALTH & STATUS =====================

@api_router.get("/status")
async def api_status():
    return {"status": "ok", "version": "1.0.0", "timestamp": datetime.now().isoformat()}

# ===================== PRODUCTS =====================

@api_router.get("/products")
def list_products(
    search: Optional[str] = Query(None),
    active_only: bool = Query(True),
    page: int = Query(1, ge=1),
    per_page: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    db: Session = Depends(get_db)
):
    products, total = ProductService.get_products(db, search, active_only, page, per_page)
    return {
        "products": [ProductResponse.model_validate(p) for p in products],
        **page_info(total, page, per_page)
    }


@api_router.post("/products", status_code=201)
def create_product(product_data: ProductCreate, db: Session = Depends(get_db)):
    product = ProductService.create_product(db, product_data)
    return ProductResponse.model_validate(product)


@api_router.get("/products/{product_id}")
def get_product(product_id: UUID, db: Session = Depends(get_db)):
    product = ProductService.get_product_by_id(db, product_id)
    if not product:
        raise NotFoundError(f"Product {product_id} not found")
    return ProductResponse.model_validate(product)
