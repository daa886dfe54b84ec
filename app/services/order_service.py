"""
Order Service - Sales order status machine
"""
import logging
from sqlalchemy.orm import Session
from typing import List, Optional, Tuple, Dict
from uuid import UUID
from datetime import datetime, timezone

from app.core.exceptions import NotFoundError, InvalidTransitionError
from app.models import SalesOrder, SalesOrderItem, StockMovement
from app.schemas.order import SalesOrderCreate
from app.services.common import record_audit, next_document_number
from app.services.fulfillment_service import FulfillmentService
from app.services.product_service import ProductService
from app.services.return_service import ReturnService, OPEN_STATUSES

logger = logging.getLogger(__name__)


class OrderService:
    """Sales order lifecycle"""

    # Valid status transitions
    STATUS_TRANSITIONS = {
        "pending": ["confirmed", "cancelled"],
        "confirmed": ["dispatch", "dispatched", "cancelled"],
        "dispatch": ["dispatched", "delivered", "cancelled"],
        "dispatched": ["delivered", "cancelled"],
        "delivered": ["confirmed_delivered", "expected_return"],
        "confirmed_delivered": ["expected_return"],
        "expected_return": ["returned"],
        "returned": [],
        "cancelled": [],
    }

    DELETABLE_STATUSES = ("pending", "confirmed", "cancelled")

    @staticmethod
    def get_orders(
        db: Session,
        status: Optional[str] = None,
        page: int = 1,
        per_page: int = 50
    ) -> Tuple[List[SalesOrder], int]:
        """Get orders with filters and pagination"""
        query = db.query(SalesOrder)

        if status and status != "all":
            query = query.filter(SalesOrder.status == status)

        total = query.count()

        orders = query.order_by(SalesOrder.created_at.desc())\
            .offset((page - 1) * per_page)\
            .limit(per_page)\
            .all()

        return orders, total

    @staticmethod
    def get_order(db: Session, order_id: UUID) -> SalesOrder:
        order = db.query(SalesOrder).filter(SalesOrder.id == order_id).first()
        if not order:
            raise NotFoundError(f"Sales order {order_id} not found")
        return order

    @staticmethod
    def create_order(db: Session, order_data: SalesOrderCreate, created_by: Optional[UUID] = None) -> SalesOrder:
        """Create a pending order after checking stock availability; nothing is reserved yet"""
        for item in order_data.items:
            ProductService.resolve(db, item.product_id, item.variant_id)
        FulfillmentService.check_availability(db, order_data.items)

        try:
            order = SalesOrder(
                order_number=next_document_number(db, SalesOrder.order_number, "SO"),
                customer_name=order_data.customer_name,
                notes=order_data.notes,
                status="pending",
                created_by=created_by
            )
            for item in order_data.items:
                order.items.append(SalesOrderItem(
                    product_id=item.product_id,
                    variant_id=item.variant_id,
                    quantity=item.quantity
                ))

            db.add(order)
            db.flush()
            record_audit(
                db, "sales_order", order.id, "INSERT", created_by,
                after_data={"order_number": order.order_number, "status": "pending"}
            )
            db.commit()
        except Exception:
            db.rollback()
            raise

        db.refresh(order)
        logger.info(f"Created sales order {order.order_number} with {len(order.items)} items")
        return order

    @staticmethod
    def _apply_transition(
        db: Session,
        order: SalesOrder,
        current_status: str,
        new_status: str,
        actor_id: Optional[UUID],
        warehouse_priority: Optional[List[UUID]],
        return_warehouse_id: Optional[UUID]
    ) -> Dict:
        movements: List[StockMovement] = []
        extra = {}

        if new_status in ("dispatch", "dispatched"):
            if current_status in ("pending", "confirmed"):
                reservation = FulfillmentService.reserve_for_order(db, order, actor_id, warehouse_priority)
                movements += reservation["movements"]
                extra["allocations"] = reservation["allocations"]

        elif new_status == "delivered":
            movements += FulfillmentService.deliver_order(db, order, actor_id, warehouse_priority)
            order.delivered_at = datetime.now(timezone.utc)

        elif new_status == "confirmed_delivered":
            movements += FulfillmentService.confirm_delivery(db, order, actor_id, warehouse_priority)

        elif new_status == "cancelled":
            movements += FulfillmentService.release_reservations(
                db, order, actor_id, reason="Reservation released, cancelled sales order"
            )

        elif new_status == "expected_return":
            movements += FulfillmentService.release_reservations(db, order, actor_id)
            items = [
                {"product_id": i.product_id, "variant_id": i.variant_id, "quantity": i.quantity}
                for i in order.items
            ]
            expected_return, hold_movements, _ = ReturnService.open_return(
                db, order, items, warehouse_id=return_warehouse_id, actor_id=actor_id
            )
            movements += hold_movements
            extra["expected_return"] = expected_return

        elif new_status == "returned":
            expected_return = ReturnService.find_open_for_order(db, order.id)
            if expected_return is None:
                raise InvalidTransitionError(
                    f"Order {order.order_number} has no open expected return to receive"
                )
            # Receiving the return moves the order to returned
            movements += ReturnService.apply_status(db, expected_return, "received", actor_id)
            extra["expected_return"] = expected_return

        return {"movements": movements, **extra}

    @staticmethod
    def advance_order_status(
        db: Session,
        order_id: UUID,
        new_status: str,
        actor_id: Optional[UUID] = None,
        warehouse_priority: Optional[List[UUID]] = None,
        return_warehouse_id: Optional[UUID] = None,
        notes: Optional[str] = None
    ) -> Dict:
        """
        Move an order to new_status and apply the stock effects of the transition.
        All counter changes, movements and the audit row commit together or not at all.
        """
        try:
            order = OrderService.get_order(db, order_id)
            current_status = order.status
            allowed = OrderService.STATUS_TRANSITIONS.get(current_status, [])

            if new_status not in allowed:
                raise InvalidTransitionError(f"Cannot transition from {current_status} to {new_status}")

            result = OrderService._apply_transition(
                db, order, current_status, new_status, actor_id, warehouse_priority, return_warehouse_id
            )

            if order.status == current_status:
                order.status = new_status
                record_audit(
                    db, "sales_order", order.id, "STATUS_CHANGE", actor_id,
                    before_data={"status": current_status},
                    after_data={"status": new_status}
                )
            if notes:
                order.notes = notes

            db.commit()
        except Exception:
            db.rollback()
            raise

        db.refresh(order)
        logger.info(
            f"Order {order.order_number}: {current_status} -> {new_status} "
            f"({len(result['movements'])} movements)"
        )
        return {"order": order, **result}

    @staticmethod
    def delete_order(db: Session, order_id: UUID, actor_id: Optional[UUID] = None) -> Dict:
        """Hard delete; releases reserved stock and open expected returns first. Movements stay."""
        try:
            order = OrderService.get_order(db, order_id)
            if order.status not in OrderService.DELETABLE_STATUSES:
                raise InvalidTransitionError(
                    f"Cannot delete order {order.order_number} in status {order.status}"
                )

            movements = FulfillmentService.release_reservations(
                db, order, actor_id, reason="Reservation released, deleted sales order"
            )
            for expected_return in list(order.expected_returns):
                if expected_return.status in OPEN_STATUSES:
                    movements += ReturnService.apply_status(db, expected_return, "cancelled", actor_id)

            order_number = order.order_number
            record_audit(
                db, "sales_order", order.id, "DELETE", actor_id,
                before_data={
                    "order_number": order.order_number,
                    "status": order.status,
                    "items": [
                        {
                            "product_id": str(i.product_id),
                            "variant_id": str(i.variant_id) if i.variant_id else None,
                            "quantity": i.quantity,
                        }
                        for i in order.items
                    ],
                }
            )
            db.delete(order)
            db.commit()
        except Exception:
            db.rollback()
            raise

        logger.info(f"Deleted sales order {order_number}, released {len(movements)} holds")
        return {"order_number": order_number, "movements": movements}
