"""
Warehouse API - Warehouse master data and capacity
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from uuid import UUID

from app.core import get_db
from app.schemas.warehouse import WarehouseCreate, WarehouseUpdate, WarehouseResponse
from app.services.warehouse_service import WarehouseService

router = APIRouter(prefix="/warehouses", tags=["Warehouses"])


@router.get("")
def list_warehouses(active_only: bool = False, db: Session = Depends(get_db)):
    warehouses = WarehouseService.get_warehouses(db, active_only)
    return [WarehouseResponse.model_validate(w) for w in warehouses]


@router.post("", status_code=201)
def create_warehouse(data: WarehouseCreate, db: Session = Depends(get_db)):
    warehouse = WarehouseService.create_warehouse(db, data)
    return WarehouseResponse.model_validate(warehouse)


@router.get("/{warehouse_id}")
def get_warehouse(warehouse_id: UUID, db: Session = Depends(get_db)):
    return WarehouseResponse.model_validate(WarehouseService.get_warehouse(db, warehouse_id))


@router.patch("/{warehouse_id}")
def update_warehouse(warehouse_id: UUID, data: WarehouseUpdate, db: Session = Depends(get_db)):
    warehouse = WarehouseService.update_warehouse(db, warehouse_id, data)
    return WarehouseResponse.model_validate(warehouse)


@router.delete("/{warehouse_id}")
def delete_warehouse(warehouse_id: UUID, db: Session = Depends(get_db)):
    WarehouseService.delete_warehouse(db, warehouse_id)
    return {"message": "Warehouse deleted successfully"}


@router.get("/{warehouse_id}/capacity")
def warehouse_capacity(warehouse_id: UUID, db: Session = Depends(get_db)):
    """
    Capacity usage: total stock, free capacity and utilization percentage
    """
    return WarehouseService.get_capacity_usage(db, warehouse_id)
