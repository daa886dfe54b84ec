"""
Stock API - Levels, movements, transfers, adjustments and receiving
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional
from uuid import UUID
from datetime import datetime

from app.core import get_db, settings
from app.api.deps import get_actor_id, serialize_movements, serialize_entry, page_info
from app.schemas.stock import MovementFilter, TransferRequest, AdjustRequest, ReceiveRequest
from app.services.ledger_service import LedgerService
from app.services.stock_service import StockService
from app.services.transfer_service import TransferService
from app.services.warehouse_service import WarehouseService

router = APIRouter(prefix="/stock", tags=["Stock"])

# ===================== READ =====================

@router.get("/levels")
def stock_levels(
    product_id: Optional[UUID] = Query(None),
    warehouse_id: Optional[UUID] = Query(None),
    grouped: bool = Query(False, description="Group entries per warehouse with utilization"),
    db: Session = Depends(get_db)
):
    if grouped:
        groups = WarehouseService.get_stock_by_warehouse(db, product_id, warehouse_id)
        for group in groups:
            group["entries"] = [serialize_entry(e) for e in group["entries"]]
        return groups
    return [serialize_entry(e) for e in StockService.get_stock_levels(db, product_id, warehouse_id)]


@router.get("/alerts")
def stock_alerts(
    days_threshold: Optional[int] = Query(None, ge=0),
    db: Session = Depends(get_db)
):
    return WarehouseService.get_stock_alerts(db, days_threshold)


@router.get("/movements")
def movement_history(
    product_id: Optional[UUID] = Query(None),
    warehouse_id: Optional[UUID] = Query(None),
    reference_type: Optional[str] = Query(None),
    reference_id: Optional[str] = Query(None),
    movement_type: Optional[str] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    page: int = Query(1, ge=1),
    per_page: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    db: Session = Depends(get_db)
):
    filters = MovementFilter(
        product_id=product_id,
        warehouse_id=warehouse_id,
        reference_type=reference_type,
        reference_id=reference_id,
        movement_type=movement_type,
        start_date=start_date,
        end_date=end_date,
        page=page,
        per_page=per_page
    )
    movements, total = LedgerService.get_movement_history(db, filters)
    return {"movements": serialize_movements(movements), **page_info(total, page, per_page)}


@router.get("/movements/product/{product_id}")
def product_movements(
    product_id: UUID,
    warehouse_id: Optional[UUID] = Query(None),
    page: int = Query(1, ge=1),
    per_page: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    db: Session = Depends(get_db)
):
    movements, total = LedgerService.find_by_product(db, product_id, warehouse_id, page, per_page)
    return {"movements": serialize_movements(movements), **page_info(total, page, per_page)}


@router.get("/movements/warehouse/{warehouse_id}")
def warehouse_movements(
    warehouse_id: UUID,
    page: int = Query(1, ge=1),
    per_page: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    db: Session = Depends(get_db)
):
    movements, total = LedgerService.find_by_warehouse(db, warehouse_id, page, per_page)
    return {"movements": serialize_movements(movements), **page_info(total, page, per_page)}

# ===================== WRITE =====================

@router.post("/transfer")
def transfer_stock(
    request: TransferRequest,
    db: Session = Depends(get_db),
    actor_id: Optional[UUID] = Depends(get_actor_id)
):
    result = TransferService.transfer_stock(db, request, actor_id)
    return {
        "message": "Stock transferred successfully",
        "transfer_id": result["transfer_id"],
        "movements": serialize_movements(result["movements"]),
    }


@router.post("/adjust")
def adjust_stock(
    request: AdjustRequest,
    db: Session = Depends(get_db),
    actor_id: Optional[UUID] = Depends(get_actor_id)
):
    result = TransferService.adjust_stock(
        db, request.warehouse_id, request.product_id, request.variant_id,
        request.quantity_delta, request.reason, actor_id
    )
    return {
        "message": "Stock adjusted successfully",
        "entry": serialize_entry(result["entry"]),
        "movements": serialize_movements([result["movement"]]),
    }


@router.post("/receive")
def receive_stock(
    request: ReceiveRequest,
    db: Session = Depends(get_db),
    actor_id: Optional[UUID] = Depends(get_actor_id)
):
    result = TransferService.receive_stock(
        db, request.warehouse_id, request.product_id, request.variant_id, request.quantity,
        reference_type=request.reference_type,
        reference_id=request.reference_id,
        actor_id=actor_id,
        notes=request.notes
    )
    return {
        "message": "Stock received successfully",
        "entry": serialize_entry(result["entry"]),
        "movements": serialize_movements([result["movement"]]),
    }
