"""
Warehouse Service
Warehouse master data and stock read-models:
- Warehouse CRUD with capacity validation
- Capacity usage / utilization
- Stock levels grouped by warehouse
- Low stock alerts from outbound velocity
"""
import logging
from sqlalchemy.orm import Session
from sqlalchemy import func
from datetime import datetime, timedelta, timezone
from typing import List, Dict, Optional
from uuid import UUID

from app.core.config import settings
from app.core.exceptions import NotFoundError, ValidationError
from app.models import Warehouse, StockEntry, StockMovement, Product
from app.schemas.warehouse import WarehouseCreate, WarehouseUpdate
from app.services.stock_service import StockService

logger = logging.getLogger(__name__)

ALERT_LEVEL_ORDER = {"critical": 0, "warning": 1, "low": 2}


class WarehouseService:

    @staticmethod
    def get_warehouses(db: Session, active_only: bool = False) -> List[Warehouse]:
        query = db.query(Warehouse)
        if active_only:
            query = query.filter(Warehouse.is_active == True)
        return query.order_by(Warehouse.code).all()

    @staticmethod
    def get_warehouse(db: Session, warehouse_id: UUID) -> Warehouse:
        warehouse = db.query(Warehouse).filter(Warehouse.id == warehouse_id).first()
        if not warehouse:
            raise NotFoundError(f"Warehouse {warehouse_id} not found")
        return warehouse

    @staticmethod
    def create_warehouse(db: Session, data: WarehouseCreate) -> Warehouse:
        if db.query(Warehouse).filter(Warehouse.code == data.code).first():
            raise ValidationError(f"Warehouse code {data.code} already exists", status_code=409)

        warehouse = Warehouse(
            code=data.code,
            name=data.name,
            location=data.location,
            capacity=data.capacity,
            is_active=data.is_active
        )
        db.add(warehouse)
        db.commit()
        db.refresh(warehouse)
        logger.info(f"Created warehouse {warehouse.code} (capacity {warehouse.capacity})")
        return warehouse

    @staticmethod
    def update_warehouse(db: Session, warehouse_id: UUID, data: WarehouseUpdate) -> Warehouse:
        warehouse = WarehouseService.get_warehouse(db, warehouse_id)
        changes = data.model_dump(exclude_unset=True)

        if changes.get("capacity") is not None:
            total = StockService.warehouse_total_stock(db, warehouse.id)
            if changes["capacity"] < total:
                raise ValidationError(
                    f"Capacity {changes['capacity']} is below current stock {total} in {warehouse.code}"
                )

        for field, value in changes.items():
            if value is not None:
                setattr(warehouse, field, value)

        db.commit()
        db.refresh(warehouse)
        return warehouse

    @staticmethod
    def delete_warehouse(db: Session, warehouse_id: UUID) -> None:
        """Delete an empty warehouse; warehouses still holding units are rejected"""
        warehouse = WarehouseService.get_warehouse(db, warehouse_id)

        held = db.query(func.count(StockEntry.id)).filter(
            StockEntry.warehouse_id == warehouse.id,
            (StockEntry.quantity > 0) | (StockEntry.reserved_quantity > 0) |
            (StockEntry.delivered_quantity > 0) | (StockEntry.expected_returns > 0)
        ).scalar()
        if held:
            raise ValidationError(
                f"Cannot delete warehouse {warehouse.code} with stock. Transfer or adjust stock first.",
                status_code=409
            )
        movements = db.query(func.count(StockMovement.id)).filter(StockMovement.warehouse_id == warehouse.id).scalar()
        if movements:
            raise ValidationError(
                f"Cannot delete warehouse {warehouse.code} with ledger history. Deactivate it instead.",
                status_code=409
            )

        db.query(StockEntry).filter(StockEntry.warehouse_id == warehouse.id).delete(synchronize_session=False)
        db.delete(warehouse)
        db.commit()
        logger.info(f"Deleted warehouse {warehouse.code}")

    @staticmethod
    def get_capacity_usage(db: Session, warehouse_id: UUID) -> Dict:
        warehouse = WarehouseService.get_warehouse(db, warehouse_id)
        total = StockService.warehouse_total_stock(db, warehouse.id)
        return {
            "warehouse_id": warehouse.id,
            "warehouse_code": warehouse.code,
            "capacity": warehouse.capacity,
            "total_stock": total,
            "free_capacity": max(0, warehouse.capacity - total),
            "utilization": round(total / warehouse.capacity * 100) if warehouse.capacity else 0,
        }

    @staticmethod
    def get_stock_by_warehouse(
        db: Session,
        product_id: Optional[UUID] = None,
        warehouse_id: Optional[UUID] = None
    ) -> List[Dict]:
        """Current stock levels grouped per warehouse, with utilization"""
        query = db.query(Warehouse)
        if warehouse_id:
            query = query.filter(Warehouse.id == warehouse_id)

        results = []
        for warehouse in query.order_by(Warehouse.code).all():
            entries = StockService.get_stock_levels(db, product_id=product_id, warehouse_id=warehouse.id)
            total = StockService.warehouse_total_stock(db, warehouse.id)
            results.append({
                "warehouse_id": warehouse.id,
                "warehouse_code": warehouse.code,
                "warehouse_name": warehouse.name,
                "location": warehouse.location,
                "capacity": warehouse.capacity,
                "total_stock": total,
                "utilization": round(total / warehouse.capacity * 100) if warehouse.capacity else 0,
                "entries": entries,
            })
        return results

    @staticmethod
    def get_stock_alerts(db: Session, days_threshold: Optional[int] = None) -> Dict:
        """
        Products whose available stock covers fewer than days_threshold days
        of outbound demand over the lookback window.
        """
        days_threshold = days_threshold if days_threshold is not None else settings.ALERT_DAYS_THRESHOLD
        lookback = settings.ALERT_LOOKBACK_DAYS
        since = datetime.now(timezone.utc) - timedelta(days=lookback)

        outbound = dict(
            db.query(StockMovement.product_id, func.sum(StockMovement.quantity))
            .filter(StockMovement.movement_type == "out", StockMovement.timestamp >= since)
            .group_by(StockMovement.product_id)
            .all()
        )

        entries_by_product: Dict[UUID, List[StockEntry]] = {}
        for entry in db.query(StockEntry).join(Warehouse).filter(Warehouse.is_active == True).all():
            entries_by_product.setdefault(entry.product_id, []).append(entry)

        alerts = []
        for product in db.query(Product).order_by(Product.sku).all():
            entries = entries_by_product.get(product.id, [])
            current_stock = sum(e.available_quantity for e in entries)
            daily_rate = float(outbound.get(product.id) or 0) / lookback
            days_of_inventory = int(current_stock // daily_rate) if daily_rate > 0 else 999

            if days_of_inventory <= days_threshold and current_stock > 0:
                if days_of_inventory <= 7:
                    level = "critical"
                elif days_of_inventory <= 15:
                    level = "warning"
                else:
                    level = "low"

                alerts.append({
                    "product_id": product.id,
                    "sku": product.sku,
                    "product_name": product.name,
                    "current_stock": current_stock,
                    "daily_sales_rate": round(daily_rate, 2),
                    "days_of_inventory": days_of_inventory,
                    "alert_level": level,
                    "warehouses": [
                        {"warehouse_id": e.warehouse_id, "available": e.available_quantity}
                        for e in entries
                    ],
                })

        alerts.sort(key=lambda a: (ALERT_LEVEL_ORDER[a["alert_level"]], a["days_of_inventory"]))
        return {
            "alerts": alerts,
            "total_alerts": len(alerts),
            "critical_alerts": sum(1 for a in alerts if a["alert_level"] == "critical"),
            "warning_alerts": sum(1 for a in alerts if a["alert_level"] == "warning"),
            "low_alerts": sum(1 for a in alerts if a["alert_level"] == "low"),
        }
