"""
Fulfillment Service - Reservation and delivery of order stock

Moves order units between stock counters:
reserve (available -> reserved), deliver (reserved -> delivered),
confirm (delivered -> confirmed delivered), release (reserved -> available).
Warehouses are visited in the selection-policy order. Nothing here commits;
the order status machine owns the transaction.
"""
import logging
from sqlalchemy.orm import Session
from typing import List, Optional, Dict, Tuple
from uuid import UUID

from app.core.exceptions import InsufficientStockError
from app.models import SalesOrder, StockMovement
from app.services.common import ordered_warehouses
from app.services.ledger_service import LedgerService
from app.services.product_service import ProductService
from app.services.stock_service import StockService

logger = logging.getLogger(__name__)

ORDER_REFERENCE = "sales_order"


class FulfillmentService:
    """Reservation/fulfillment engine"""

    @staticmethod
    def check_availability(db: Session, items: List) -> List[Dict]:
        """
        Validate that available stock covers every product, with repeated lines
        of the same product and variant summed; no mutation
        """
        requested: Dict[Tuple, int] = {}
        for item in items:
            key = (item.product_id, item.variant_id)
            requested[key] = requested.get(key, 0) + item.quantity

        checks = []
        for (product_id, variant_id), quantity in requested.items():
            available = StockService.total_available(db, product_id, variant_id)
            if available < quantity:
                product, variant = ProductService.resolve(db, product_id, variant_id)
                raise InsufficientStockError(
                    f"Insufficient stock for product {ProductService.describe(product, variant)}. "
                    f"Available: {available}, Required: {quantity}",
                    available=available,
                    required=quantity
                )
            checks.append({
                "product_id": product_id,
                "variant_id": variant_id,
                "available_stock": available,
                "required_stock": quantity,
            })
        return checks

    @staticmethod
    def reserve_for_order(
        db: Session,
        order: SalesOrder,
        actor_id: Optional[UUID] = None,
        warehouse_priority: Optional[List[UUID]] = None
    ) -> Dict:
        """
        Reserve every order item across warehouses, first-fit in policy order.
        Raises InsufficientStockError if any item cannot be fully reserved; the
        caller rolls back the partial reservations.
        """
        warehouses = ordered_warehouses(db, warehouse_priority)
        movements: List[StockMovement] = []
        allocations: List[Dict] = []

        FulfillmentService.check_availability(db, order.items)

        for item in order.items:
            remaining = item.quantity

            for warehouse in warehouses:
                if remaining <= 0:
                    break

                wanted = remaining
                _, movement = StockService.apply(
                    db, warehouse.id, item.product_id, item.variant_id,
                    lambda e, wanted=wanted: {"reserved_quantity": min(e.available_quantity, wanted)},
                    movement_type="reserved",
                    counter="reserved_quantity",
                    reference_type=ORDER_REFERENCE,
                    reference_id=str(order.id),
                    actor_id=actor_id,
                    notes=f"Reserved for sales order {order.order_number}"
                )
                if movement is None:
                    continue

                remaining -= movement.quantity
                movements.append(movement)
                allocations.append({
                    "order_item_id": item.id,
                    "warehouse_id": warehouse.id,
                    "product_id": item.product_id,
                    "variant_id": item.variant_id,
                    "quantity": movement.quantity,
                })

            if remaining > 0:
                raise InsufficientStockError(
                    f"Could not reserve {item.quantity} units of product {item.product_id} "
                    f"for order {order.order_number}; {remaining} short",
                    available=item.quantity - remaining,
                    required=item.quantity
                )

        logger.info(f"Reserved stock for order {order.order_number}: {len(allocations)} allocations")
        return {"movements": movements, "allocations": allocations}

    @staticmethod
    def _holdings(db: Session, order: SalesOrder, warehouse_priority: Optional[List[UUID]] = None) -> List:
        """Order holdings sorted by the warehouse selection policy"""
        holdings = LedgerService.holdings_for_reference(db, ORDER_REFERENCE, str(order.id))
        rank = {
            w.id: i for i, w in enumerate(ordered_warehouses(db, warehouse_priority, include_inactive=True))
        }
        return sorted(holdings.items(), key=lambda kv: (rank.get(kv[0][0], len(rank)), str(kv[0][1])))

    @staticmethod
    def _shift(
        db: Session,
        order: SalesOrder,
        source: str,
        target: Optional[str],
        movement_type: str,
        note: str,
        actor_id: Optional[UUID] = None,
        warehouse_priority: Optional[List[UUID]] = None
    ) -> List[StockMovement]:
        """Move everything the order holds in `source` into `target` (or release it)"""
        movements = []
        for key, held in FulfillmentService._holdings(db, order, warehouse_priority):
            units = held[source]
            if units <= 0:
                continue

            warehouse_id, product_id, variant_id = key
            deltas = {source: -units}
            if target:
                deltas[target] = units

            _, movement = StockService.apply(
                db, warehouse_id, product_id, variant_id, deltas,
                movement_type=movement_type,
                counter=target or source,
                reference_type=ORDER_REFERENCE,
                reference_id=str(order.id),
                actor_id=actor_id,
                notes=f"{note} {order.order_number}"
            )
            if movement is not None:
                movements.append(movement)
        return movements

    @staticmethod
    def deliver_order(db: Session, order: SalesOrder, actor_id: Optional[UUID] = None,
                      warehouse_priority: Optional[List[UUID]] = None) -> List[StockMovement]:
        """reserved -> delivered for everything the order holds"""
        return FulfillmentService._shift(
            db, order, "reserved_quantity", "delivered_quantity", "out",
            "Dispatched for sales order", actor_id, warehouse_priority
        )

    @staticmethod
    def confirm_delivery(db: Session, order: SalesOrder, actor_id: Optional[UUID] = None,
                         warehouse_priority: Optional[List[UUID]] = None) -> List[StockMovement]:
        """delivered -> confirmed delivered"""
        return FulfillmentService._shift(
            db, order, "delivered_quantity", "confirmed_delivered_quantity", "confirmed_delivery",
            "Delivery confirmed for sales order", actor_id, warehouse_priority
        )

    @staticmethod
    def release_reservations(db: Session, order: SalesOrder, actor_id: Optional[UUID] = None,
                             reason: str = "Reservation released for sales order") -> List[StockMovement]:
        """reserved -> available"""
        return FulfillmentService._shift(
            db, order, "reserved_quantity", None, "unreserved", reason, actor_id
        )

    @staticmethod
    def delivered_warehouses(db: Session, order: SalesOrder, warehouse_priority: Optional[List[UUID]] = None) -> List[UUID]:
        """Warehouses where the order holds delivered or confirmed units, in policy order"""
        result = []
        for (warehouse_id, _, _), held in FulfillmentService._holdings(db, order, warehouse_priority):
            if held["delivered_quantity"] > 0 or held["confirmed_delivered_quantity"] > 0:
                if warehouse_id not in result:
                    result.append(warehouse_id)
        return result
