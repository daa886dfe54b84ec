"""
Expected Return API
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional
from uuid import UUID

from app.core import get_db, settings
from app.api.deps import get_actor_id, serialize_movements, page_info
from app.schemas.return_schema import ReturnRequest, ReturnResponse, ReturnStatusUpdate
from app.services.return_service import ReturnService

router = APIRouter(prefix="/returns", tags=["Returns"])


@router.post("")
def create_return(
    return_data: ReturnRequest,
    db: Session = Depends(get_db),
    actor_id: Optional[UUID] = Depends(get_actor_id)
):
    """Open an expected return; an existing pending return for the same order is returned as-is"""
    result = ReturnService.create(db, return_data, actor_id)
    return {
        "expected_return": ReturnResponse.model_validate(result["expected_return"]),
        "created": result["created"],
        "movements": serialize_movements(result["movements"]),
    }


@router.get("")
def list_returns(
    status: Optional[str] = Query(None),
    sales_order_id: Optional[UUID] = Query(None),
    page: int = Query(1, ge=1),
    per_page: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    db: Session = Depends(get_db)
):
    returns, total = ReturnService.list_returns(db, status, sales_order_id, page, per_page)
    return {
        "returns": [ReturnResponse.model_validate(r) for r in returns],
        **page_info(total, page, per_page)
    }


@router.get("/by-product")
def returns_by_product(
    product_id: Optional[UUID] = Query(None),
    db: Session = Depends(get_db)
):
    """Open expected returns for one product, or a per-product summary when no product is given"""
    if product_id:
        return [ReturnResponse.model_validate(r) for r in ReturnService.list_by_product(db, product_id)]
    return ReturnService.summary_by_product(db)


@router.get("/{return_id}")
def get_return(return_id: UUID, db: Session = Depends(get_db)):
    return ReturnResponse.model_validate(ReturnService.get_return(db, return_id))


@router.post("/{return_id}/status")
def update_return_status(
    return_id: UUID,
    update: ReturnStatusUpdate,
    db: Session = Depends(get_db),
    actor_id: Optional[UUID] = Depends(get_actor_id)
):
    result = ReturnService.update_status(
        db, return_id, update.status, actor_id, update.notes, warehouse_id=update.warehouse_id
    )
    return {
        "expected_return": ReturnResponse.model_validate(result["expected_return"]),
        "movements": serialize_movements(result["movements"]),
    }
