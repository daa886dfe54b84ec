"""
Transfer Service - Transfers, adjustments and receiving

Side-channel stock operations outside the order lifecycle. Each public
operation is one transaction.
"""
import logging
import uuid
from sqlalchemy.orm import Session
from typing import List, Optional, Dict
from uuid import UUID

from app.core.exceptions import ValidationError, InsufficientStockError
from app.models import Warehouse
from app.schemas.stock import TransferLine, TransferRequest
from app.services.product_service import ProductService
from app.services.stock_service import StockService

logger = logging.getLogger(__name__)


class TransferService:
    """Transfer & adjustment engine"""

    @staticmethod
    def _active_warehouse(db: Session, warehouse_id: UUID) -> Warehouse:
        warehouse = StockService.lock_warehouse(db, warehouse_id)
        if not warehouse.is_active:
            raise ValidationError(f"Warehouse {warehouse.code} is not active")
        return warehouse

    # ===================== TRANSFER =====================

    @staticmethod
    def transfer_items(
        db: Session,
        from_warehouse_id: UUID,
        to_warehouse_id: UUID,
        items: List[TransferLine],
        actor_id: Optional[UUID] = None,
        notes: Optional[str] = None
    ) -> Dict:
        """Move physical units between warehouses; all lines succeed or none do"""
        if from_warehouse_id == to_warehouse_id:
            raise ValidationError("Source and target warehouse must be different")
        if not items:
            raise ValidationError("Transfer needs at least one item")

        try:
            # Opposite transfers take the row locks in the same order
            locked = {
                warehouse_id: TransferService._active_warehouse(db, warehouse_id)
                for warehouse_id in sorted((from_warehouse_id, to_warehouse_id), key=str)
            }
            source = locked[from_warehouse_id]
            target = locked[to_warehouse_id]

            for line in items:
                if line.quantity <= 0:
                    raise ValidationError("Transfer quantity must be positive")
                ProductService.resolve(db, line.product_id, line.variant_id)

                entry = StockService.get_entry(db, source.id, line.product_id, line.variant_id)
                available = StockService.available_quantity(entry)
                if line.quantity > available:
                    raise InsufficientStockError(
                        f"Insufficient stock in {source.code}. Available: {available}, Required: {line.quantity}",
                        available=available,
                        required=line.quantity
                    )

            StockService.check_capacity(db, target, sum(line.quantity for line in items))

            transfer_id = str(uuid.uuid4())
            movements = []
            for line in items:
                _, out_movement = StockService.apply(
                    db, source.id, line.product_id, line.variant_id,
                    {"quantity": -line.quantity},
                    movement_type="transfer_out",
                    counter="quantity",
                    reference_type="transfer",
                    reference_id=transfer_id,
                    actor_id=actor_id,
                    notes=notes or f"Transfer to {target.code}",
                    remove_if_empty=True,
                    counterpart_warehouse_id=target.id
                )
                _, in_movement = StockService.apply(
                    db, target.id, line.product_id, line.variant_id,
                    {"quantity": line.quantity},
                    movement_type="transfer_in",
                    counter="quantity",
                    reference_type="transfer",
                    reference_id=transfer_id,
                    actor_id=actor_id,
                    notes=notes or f"Transfer from {source.code}",
                    counterpart_warehouse_id=source.id
                )
                movements += [out_movement, in_movement]

            db.commit()
        except Exception:
            db.rollback()
            raise

        logger.info(
            f"Transfer {transfer_id}: {sum(line.quantity for line in items)} units "
            f"{source.code} -> {target.code}"
        )
        return {"transfer_id": transfer_id, "movements": movements}

    @staticmethod
    def transfer(
        db: Session,
        from_warehouse_id: UUID,
        to_warehouse_id: UUID,
        product_id: UUID,
        variant_id: Optional[UUID],
        quantity: int,
        actor_id: Optional[UUID] = None,
        notes: Optional[str] = None
    ) -> Dict:
        """Single-line transfer"""
        line = TransferLine(product_id=product_id, variant_id=variant_id, quantity=quantity)
        return TransferService.transfer_items(db, from_warehouse_id, to_warehouse_id, [line], actor_id, notes)

    @staticmethod
    def transfer_stock(db: Session, request: TransferRequest, actor_id: Optional[UUID] = None) -> Dict:
        return TransferService.transfer_items(
            db, request.from_warehouse_id, request.to_warehouse_id, request.items, actor_id, request.notes
        )

    # ===================== ADJUST =====================

    @staticmethod
    def adjust_stock(
        db: Session,
        warehouse_id: UUID,
        product_id: UUID,
        variant_id: Optional[UUID],
        quantity_delta: int,
        reason: str,
        actor_id: Optional[UUID] = None
    ) -> Dict:
        """
        Manual correction: quantity = max(0, quantity + delta).
        Quantity never drops below the units committed to orders; the clamp is
        noted on the movement.
        """
        if quantity_delta == 0:
            raise ValidationError("Adjustment delta must not be zero")
        if not reason:
            raise ValidationError("Adjustment reason is required")

        try:
            warehouse = StockService.lock_warehouse(db, warehouse_id)
            ProductService.resolve(db, product_id, variant_id)

            entry, movement = StockService.apply(
                db, warehouse.id, product_id, variant_id,
                {"quantity": quantity_delta},
                movement_type="adjustment",
                counter="quantity",
                reference_type="adjustment",
                reference_id=str(uuid.uuid4()),
                actor_id=actor_id,
                notes=reason,
                clamp=True
            )
            db.commit()
        except Exception:
            db.rollback()
            raise

        if entry is not None:
            db.refresh(entry)
        logger.info(f"Adjusted product {product_id} in {warehouse.code} by {quantity_delta:+d}: {reason}")
        return {"entry": entry, "movement": movement}

    # ===================== RECEIVE =====================

    @staticmethod
    def receive_stock(
        db: Session,
        warehouse_id: UUID,
        product_id: UUID,
        variant_id: Optional[UUID],
        quantity: int,
        reference_type: str = "purchase",
        reference_id: Optional[str] = None,
        actor_id: Optional[UUID] = None,
        notes: Optional[str] = None
    ) -> Dict:
        """Inbound physical stock (purchase receipt, processed return); capacity-checked"""
        if quantity <= 0:
            raise ValidationError("Received quantity must be positive")

        try:
            warehouse = TransferService._active_warehouse(db, warehouse_id)
            product, variant = ProductService.resolve(db, product_id, variant_id)
            StockService.check_capacity(db, warehouse, quantity)

            entry, movement = StockService.apply(
                db, warehouse.id, product_id, variant_id,
                {"quantity": quantity},
                movement_type="in",
                counter="quantity",
                reference_type=reference_type,
                reference_id=reference_id,
                actor_id=actor_id,
                notes=notes or f"Received {ProductService.describe(product, variant)}"
            )
            db.commit()
        except Exception:
            db.rollback()
            raise

        db.refresh(entry)
        logger.info(f"Received {quantity} x {product.sku} into {warehouse.code}")
        return {"entry": entry, "movement": movement}
