"""
Return Service - Expected-Return Tracker

An ExpectedReturn holds `expected_returns` on one warehouse until the goods
arrive (received) or the return is called off (cancelled).
"""
import logging
from sqlalchemy.orm import Session
from sqlalchemy import func
from typing import List, Optional, Dict, Tuple, Iterable
from uuid import UUID
from datetime import datetime, timezone, timedelta

from app.core.config import settings
from app.core.exceptions import NotFoundError, ValidationError, InvalidTransitionError
from app.models import (
    ExpectedReturn, ExpectedReturnItem, SalesOrder, Product, StockMovement, Warehouse
)
from app.schemas.return_schema import ReturnRequest
from app.services.common import record_audit, next_document_number, ordered_warehouses
from app.services.fulfillment_service import FulfillmentService, ORDER_REFERENCE
from app.services.ledger_service import LedgerService, StockKey
from app.services.product_service import ProductService
from app.services.stock_service import StockService

logger = logging.getLogger(__name__)

RETURN_REFERENCE = "expected_return"

OPEN_STATUSES = ("pending", "in_transit")

# Orders that may have a return opened against them
RETURNABLE_ORDER_STATUSES = ("delivered", "confirmed_delivered", "expected_return")


class ReturnService:
    """Expected-return tracker"""

    STATUS_TRANSITIONS = {
        "pending": ["in_transit", "received", "cancelled"],
        "in_transit": ["received", "cancelled"],
        "received": [],
        "cancelled": [],
    }

    # ===================== QUERIES =====================

    @staticmethod
    def get_return(db: Session, return_id: UUID) -> ExpectedReturn:
        expected_return = db.query(ExpectedReturn).filter(ExpectedReturn.id == return_id).first()
        if not expected_return:
            raise NotFoundError(f"Expected return {return_id} not found")
        return expected_return

    @staticmethod
    def list_returns(
        db: Session,
        status: Optional[str] = None,
        sales_order_id: Optional[UUID] = None,
        page: int = 1,
        per_page: int = 50
    ) -> Tuple[List[ExpectedReturn], int]:
        query = db.query(ExpectedReturn)
        if status:
            query = query.filter(ExpectedReturn.status == status)
        if sales_order_id:
            query = query.filter(ExpectedReturn.sales_order_id == sales_order_id)

        total = query.count()
        returns = query.order_by(ExpectedReturn.created_at.desc())\
            .offset((page - 1) * per_page)\
            .limit(per_page)\
            .all()
        return returns, total

    @staticmethod
    def find_open_for_order(db: Session, sales_order_id: UUID, statuses: Iterable[str] = OPEN_STATUSES) -> Optional[ExpectedReturn]:
        return db.query(ExpectedReturn).filter(
            ExpectedReturn.sales_order_id == sales_order_id,
            ExpectedReturn.status.in_(list(statuses))
        ).order_by(ExpectedReturn.created_at.asc()).first()

    @staticmethod
    def list_by_product(
        db: Session,
        product_id: UUID,
        statuses: Iterable[str] = OPEN_STATUSES
    ) -> List[ExpectedReturn]:
        """Returns carrying the product, used to net expected inbound units against purchasing"""
        return db.query(ExpectedReturn).join(ExpectedReturnItem).filter(
            ExpectedReturnItem.product_id == product_id,
            ExpectedReturn.status.in_(list(statuses))
        ).order_by(ExpectedReturn.expected_date.asc()).distinct().all()

    @staticmethod
    def summary_by_product(db: Session, statuses: Iterable[str] = OPEN_STATUSES) -> List[Dict]:
        """Expected return quantities grouped by product"""
        rows = db.query(
            ExpectedReturnItem.product_id,
            Product.sku,
            Product.name,
            func.sum(ExpectedReturnItem.quantity).label("expected_quantity"),
            func.count(func.distinct(ExpectedReturn.id)).label("return_count")
        ).join(ExpectedReturn, ExpectedReturn.id == ExpectedReturnItem.expected_return_id)\
            .join(Product, Product.id == ExpectedReturnItem.product_id)\
            .filter(ExpectedReturn.status.in_(list(statuses)))\
            .group_by(ExpectedReturnItem.product_id, Product.sku, Product.name)\
            .order_by(Product.sku)\
            .all()

        return [
            {
                "product_id": r.product_id,
                "sku": r.sku,
                "product_name": r.name,
                "expected_quantity": int(r.expected_quantity or 0),
                "return_count": int(r.return_count or 0),
            }
            for r in rows
        ]

    # ===================== CREATE =====================

    @staticmethod
    def _designate_warehouse(db: Session, order: Optional[SalesOrder], warehouse_id: Optional[UUID]) -> Warehouse:
        if warehouse_id:
            warehouse = db.query(Warehouse).filter(Warehouse.id == warehouse_id).first()
            if not warehouse:
                raise NotFoundError(f"Warehouse {warehouse_id} not found")
            if not warehouse.is_active:
                raise ValidationError(f"Warehouse {warehouse.code} is not active")
            return warehouse

        if order is not None:
            for candidate_id in FulfillmentService.delivered_warehouses(db, order):
                warehouse = db.query(Warehouse).filter(Warehouse.id == candidate_id).first()
                if warehouse and warehouse.is_active:
                    return warehouse

        warehouses = ordered_warehouses(db)
        if not warehouses:
            raise NotFoundError("No active warehouse available to receive the return")
        return warehouses[0]

    @staticmethod
    def open_return(
        db: Session,
        order: Optional[SalesOrder],
        items: List[Dict],
        warehouse_id: Optional[UUID] = None,
        expected_date: Optional[datetime] = None,
        reason: Optional[str] = None,
        notes: Optional[str] = None,
        actor_id: Optional[UUID] = None
    ) -> Tuple[ExpectedReturn, List[StockMovement], bool]:
        """
        Create the return and place its expected_returns hold, without committing.
        Idempotent per order: an existing pending return is returned as is.
        Returns (expected_return, movements, created).
        """
        if order is not None:
            existing = ReturnService.find_open_for_order(db, order.id, statuses=("pending",))
            if existing:
                logger.info(f"Pending return {existing.return_number} already open for order {order.order_number}")
                return existing, [], False

        if not items:
            raise ValidationError("Expected return needs at least one item")

        warehouse = ReturnService._designate_warehouse(db, order, warehouse_id)

        expected_return = ExpectedReturn(
            return_number=next_document_number(db, ExpectedReturn.return_number, "RET"),
            sales_order_id=order.id if order is not None else None,
            warehouse_id=warehouse.id,
            status="pending",
            expected_date=expected_date or datetime.now(timezone.utc) + timedelta(days=settings.EXPECTED_RETURN_DAYS),
            reason=reason,
            notes=notes,
            created_by=actor_id
        )
        for item in items:
            ProductService.resolve(db, item["product_id"], item.get("variant_id"))
            expected_return.items.append(ExpectedReturnItem(
                product_id=item["product_id"],
                variant_id=item.get("variant_id"),
                quantity=item["quantity"],
                reason=item.get("reason") or "other",
                condition=item.get("condition") or "unopened"
            ))
        db.add(expected_return)
        db.flush()

        movements = []
        for item in expected_return.items:
            _, movement = StockService.apply(
                db, warehouse.id, item.product_id, item.variant_id,
                {"expected_returns": item.quantity},
                movement_type="expected_return_hold",
                counter="expected_returns",
                reference_type=RETURN_REFERENCE,
                reference_id=str(expected_return.id),
                actor_id=actor_id,
                notes=f"Expected return {expected_return.return_number}"
            )
            if movement is not None:
                movements.append(movement)

        record_audit(
            db, "expected_return", expected_return.id, "INSERT", actor_id,
            after_data={"return_number": expected_return.return_number, "status": "pending"}
        )
        logger.info(
            f"Opened expected return {expected_return.return_number} at warehouse {warehouse.code}"
        )
        return expected_return, movements, True

    @staticmethod
    def create(db: Session, return_data: ReturnRequest, actor_id: Optional[UUID] = None) -> Dict:
        """
        Return-intake workflow. Linked to an order, it defaults the items to the
        order lines and moves a delivered order to expected_return.
        """
        try:
            order = None
            if return_data.sales_order_id:
                order = db.query(SalesOrder).filter(SalesOrder.id == return_data.sales_order_id).first()
                if not order:
                    raise NotFoundError(f"Sales order {return_data.sales_order_id} not found")
                if order.status not in RETURNABLE_ORDER_STATUSES:
                    raise InvalidTransitionError(
                        f"Cannot open a return for order {order.order_number} in status {order.status}"
                    )

            items = [item.model_dump() for item in return_data.items]
            if not items and order is not None:
                items = [
                    {"product_id": i.product_id, "variant_id": i.variant_id, "quantity": i.quantity}
                    for i in order.items
                ]

            expected_return, movements, created = ReturnService.open_return(
                db, order, items,
                warehouse_id=return_data.warehouse_id,
                expected_date=return_data.expected_date,
                reason=return_data.reason,
                notes=return_data.notes,
                actor_id=actor_id
            )

            if order is not None and order.status != "expected_return":
                released = FulfillmentService.release_reservations(db, order, actor_id)
                movements = released + movements
                record_audit(
                    db, "sales_order", order.id, "STATUS_CHANGE", actor_id,
                    before_data={"status": order.status},
                    after_data={"status": "expected_return"}
                )
                order.status = "expected_return"

            db.commit()
        except Exception:
            db.rollback()
            raise

        db.refresh(expected_return)
        return {"expected_return": expected_return, "movements": movements, "created": created}

    # ===================== STATUS =====================

    @staticmethod
    def _order_delivered_outstanding(db: Session, order: SalesOrder) -> Dict[StockKey, int]:
        """Delivered units the order still holds, net of what its received returns took back"""
        outstanding = {
            key: held["delivered_quantity"]
            for key, held in LedgerService.holdings_for_reference(db, ORDER_REFERENCE, str(order.id)).items()
        }
        return_ids = db.query(ExpectedReturn.id).filter(ExpectedReturn.sales_order_id == order.id).all()
        for (return_id,) in return_ids:
            for key, held in LedgerService.holdings_for_reference(db, RETURN_REFERENCE, str(return_id)).items():
                if key in outstanding:
                    outstanding[key] += held["delivered_quantity"]
        return outstanding

    @staticmethod
    def _receive(db: Session, expected_return: ExpectedReturn, actor_id: Optional[UUID] = None) -> List[StockMovement]:
        """
        expected_returns -> returned_quantity on the receiving warehouse.
        A return linked to an order only takes back delivered units that order
        still holds there; other orders' deliveries on the same entry stay put.
        """
        now = datetime.now(timezone.utc)
        movements = []

        order = expected_return.sales_order
        delivered_left = None
        if order is not None:
            delivered_left = ReturnService._order_delivered_outstanding(db, order)
        hold_left = {
            key: held["expected_returns"]
            for key, held in LedgerService.holdings_for_reference(
                db, RETURN_REFERENCE, str(expected_return.id)
            ).items()
        }

        for item in expected_return.items:
            key = (expected_return.warehouse_id, item.product_id, item.variant_id)
            tags = ["returned"]
            if item.condition:
                tags.append(item.condition)
            notes = f"Received return {expected_return.return_number} ({item.condition})"

            expected_units = min(item.quantity, max(hold_left.get(key, 0), 0))
            hold_left[key] = hold_left.get(key, 0) - expected_units

            delivered_units = item.quantity
            settlements = []
            if delivered_left is not None:
                delivered_units = min(item.quantity, max(delivered_left.get(key, 0), 0))
                delivered_left[key] = delivered_left.get(key, 0) - delivered_units

                # Delivered from another warehouse than the one receiving
                shortfall = item.quantity - delivered_units
                for other_key, units in delivered_left.items():
                    if shortfall <= 0:
                        break
                    if other_key == key or other_key[1:] != key[1:] or units <= 0:
                        continue
                    take = min(units, shortfall)
                    delivered_left[other_key] -= take
                    shortfall -= take
                    settlements.append((other_key[0], take))

                if shortfall > 0:
                    notes += (
                        f"; delivered decrement capped at {item.quantity - shortfall} "
                        f"held by order {order.order_number}"
                    )

            _, movement = StockService.apply(
                db, expected_return.warehouse_id, item.product_id, item.variant_id,
                {
                    "expected_returns": -expected_units,
                    "delivered_quantity": -delivered_units,
                    "returned_quantity": item.quantity,
                },
                movement_type="return",
                counter="returned_quantity",
                reference_type=RETURN_REFERENCE,
                reference_id=str(expected_return.id),
                actor_id=actor_id,
                notes=notes,
                clamp=True,
                add_tags=tags,
                extra_values={"returned_at": now}
            )
            if movement is not None:
                movements.append(movement)

            for warehouse_id, units in settlements:
                _, movement = StockService.apply(
                    db, warehouse_id, item.product_id, item.variant_id,
                    {"delivered_quantity": -units},
                    movement_type="return",
                    counter="delivered_quantity",
                    reference_type=RETURN_REFERENCE,
                    reference_id=str(expected_return.id),
                    actor_id=actor_id,
                    notes=f"Return {expected_return.return_number} received at another warehouse",
                    clamp=True
                )
                if movement is not None:
                    movements.append(movement)

        expected_return.received_at = now

        if order is not None and order.status == "expected_return":
            record_audit(
                db, "sales_order", order.id, "STATUS_CHANGE", actor_id,
                before_data={"status": order.status},
                after_data={"status": "returned"}
            )
            order.status = "returned"
        return movements

    @staticmethod
    def _release_hold(
        db: Session,
        expected_return: ExpectedReturn,
        actor_id: Optional[UUID] = None,
        note: str = "cancelled"
    ) -> List[StockMovement]:
        """Drop whatever expected_returns this return still holds"""
        movements = []
        holdings = LedgerService.holdings_for_reference(db, RETURN_REFERENCE, str(expected_return.id))
        for (warehouse_id, product_id, variant_id), held in holdings.items():
            units = held["expected_returns"]
            if units <= 0:
                continue
            _, movement = StockService.apply(
                db, warehouse_id, product_id, variant_id,
                {"expected_returns": -units},
                movement_type="expected_return_release",
                counter="expected_returns",
                reference_type=RETURN_REFERENCE,
                reference_id=str(expected_return.id),
                actor_id=actor_id,
                notes=f"Expected return {expected_return.return_number} {note}",
                clamp=True
            )
            if movement is not None:
                movements.append(movement)
        return movements

    @staticmethod
    def _relocate(
        db: Session,
        expected_return: ExpectedReturn,
        warehouse_id: UUID,
        actor_id: Optional[UUID] = None
    ) -> List[StockMovement]:
        """Point the return at another receiving warehouse, releasing the old hold"""
        warehouse = ReturnService._designate_warehouse(db, None, warehouse_id)
        if warehouse.id == expected_return.warehouse_id:
            return []

        previous = expected_return.warehouse
        movements = ReturnService._release_hold(
            db, expected_return, actor_id, note=f"relocated to {warehouse.code}"
        )
        expected_return.warehouse = warehouse
        db.flush()
        logger.info(
            f"Expected return {expected_return.return_number} relocated "
            f"{previous.code if previous else '-'} -> {warehouse.code}"
        )
        return movements

    @staticmethod
    def apply_status(
        db: Session,
        expected_return: ExpectedReturn,
        new_status: str,
        actor_id: Optional[UUID] = None,
        notes: Optional[str] = None,
        warehouse_id: Optional[UUID] = None
    ) -> List[StockMovement]:
        """
        Validate and apply a return status change without committing.
        On receipt `warehouse_id` lands the goods somewhere other than the
        designated warehouse.
        """
        current_status = expected_return.status
        allowed = ReturnService.STATUS_TRANSITIONS.get(current_status, [])
        if new_status not in allowed:
            raise InvalidTransitionError(
                f"Cannot transition return {expected_return.return_number} from {current_status} to {new_status}"
            )
        if warehouse_id and new_status != "received":
            raise ValidationError("A receiving warehouse can only be given when the return is received")

        movements = []
        if new_status == "received":
            if warehouse_id:
                movements = ReturnService._relocate(db, expected_return, warehouse_id, actor_id)
            movements += ReturnService._receive(db, expected_return, actor_id)
        elif new_status == "cancelled":
            movements = ReturnService._release_hold(db, expected_return, actor_id)

        expected_return.status = new_status
        if notes:
            expected_return.notes = notes

        record_audit(
            db, "expected_return", expected_return.id, "STATUS_CHANGE", actor_id,
            before_data={"status": current_status},
            after_data={"status": new_status, "warehouse_id": str(expected_return.warehouse_id)}
        )
        logger.info(f"Expected return {expected_return.return_number}: {current_status} -> {new_status}")
        return movements

    @staticmethod
    def update_status(
        db: Session,
        return_id: UUID,
        new_status: str,
        actor_id: Optional[UUID] = None,
        notes: Optional[str] = None,
        warehouse_id: Optional[UUID] = None
    ) -> Dict:
        try:
            expected_return = ReturnService.get_return(db, return_id)
            movements = ReturnService.apply_status(
                db, expected_return, new_status, actor_id, notes, warehouse_id=warehouse_id
            )
            db.commit()
        except Exception:
            db.rollback()
            raise

        db.refresh(expected_return)
        return {"expected_return": expected_return, "movements": movements}
