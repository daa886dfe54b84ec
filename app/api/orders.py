"""
Sales Order API - Order lifecycle driving stock reservation and fulfillment
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional
from uuid import UUID

from app.core import get_db, settings
from app.api.deps import get_actor_id, serialize_movements, page_info
from app.schemas.order import SalesOrderCreate, SalesOrderResponse, StatusUpdate
from app.schemas.return_schema import ReturnResponse
from app.services.order_service import OrderService

router = APIRouter(prefix="/orders", tags=["Orders"])


@router.get("")
def list_orders(
    status: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    per_page: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    db: Session = Depends(get_db)
):
    orders, total = OrderService.get_orders(db, status, page, per_page)
    return {
        "orders": [SalesOrderResponse.model_validate(o) for o in orders],
        **page_info(total, page, per_page)
    }


@router.post("", status_code=201)
def create_order(
    order_data: SalesOrderCreate,
    db: Session = Depends(get_db),
    actor_id: Optional[UUID] = Depends(get_actor_id)
):
    order = OrderService.create_order(db, order_data, actor_id)
    return SalesOrderResponse.model_validate(order)


@router.get("/{order_id}")
def get_order(order_id: UUID, db: Session = Depends(get_db)):
    return SalesOrderResponse.model_validate(OrderService.get_order(db, order_id))


@router.post("/{order_id}/status")
def update_order_status(
    order_id: UUID,
    update: StatusUpdate,
    db: Session = Depends(get_db),
    actor_id: Optional[UUID] = Depends(get_actor_id)
):
    """
    Advance an order through its lifecycle.
    dispatch reserves stock, delivered ships it, expected_return opens a return hold.
    """
    result = OrderService.advance_order_status(
        db, order_id, update.status,
        actor_id=actor_id,
        warehouse_priority=update.warehouse_priority,
        return_warehouse_id=update.return_warehouse_id,
        notes=update.notes
    )

    response = {
        "order": SalesOrderResponse.model_validate(result["order"]),
        "movements": serialize_movements(result["movements"]),
    }
    if "allocations" in result:
        response["allocations"] = result["allocations"]
    if result.get("expected_return") is not None:
        response["expected_return"] = ReturnResponse.model_validate(result["expected_return"])
    return response


@router.delete("/{order_id}")
def delete_order(
    order_id: UUID,
    db: Session = Depends(get_db),
    actor_id: Optional[UUID] = Depends(get_actor_id)
):
    result = OrderService.delete_order(db, order_id, actor_id)
    return {
        "message": f"Order {result['order_number']} deleted",
        "movements": serialize_movements(result["movements"]),
    }
