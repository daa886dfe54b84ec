"""
Ledger Service - Append-only Stock Movement Ledger

Every counter change on a StockEntry is written here in the same transaction
as the change itself. Movements are never updated or deleted; corrections are
new `adjustment` movements. Each movement stores the signed delta it applied to
every counter, so summing the deltas of an entry reproduces its counters.
"""
import logging
from sqlalchemy.orm import Session
from sqlalchemy import func
from typing import List, Optional, Dict, Tuple
from uuid import UUID
from datetime import datetime

from app.core.config import settings
from app.models import StockMovement, STOCK_COUNTERS
from app.schemas.stock import MovementFilter

logger = logging.getLogger(__name__)

MOVEMENT_TYPES = (
    "in", "out", "transfer_in", "transfer_out", "adjustment",
    "reserved", "unreserved", "return", "confirmed_delivery",
    "expected_return_hold", "expected_return_release",
)

# Ledger delta column for each StockEntry counter
DELTA_COLUMNS = {
    "quantity": "quantity_delta",
    "reserved_quantity": "reserved_delta",
    "delivered_quantity": "delivered_delta",
    "confirmed_delivered_quantity": "confirmed_delivered_delta",
    "expected_returns": "expected_returns_delta",
    "returned_quantity": "returned_delta",
}

# Counters an order or return can hold on an entry
HOLDING_COUNTERS = (
    "reserved_quantity",
    "delivered_quantity",
    "confirmed_delivered_quantity",
    "expected_returns",
)

StockKey = Tuple[UUID, UUID, Optional[UUID]]


def match_variant(column, variant_id: Optional[UUID]):
    """Filter clause for a nullable variant column"""
    if variant_id is None:
        return column.is_(None)
    return column == variant_id


class LedgerService:
    """Stock movement ledger"""

    @staticmethod
    def record(
        db: Session,
        movement_type: str,
        product_id: UUID,
        warehouse_id: UUID,
        quantity: int,
        previous_quantity: int,
        new_quantity: int,
        counter: str,
        variant_id: Optional[UUID] = None,
        reference_type: Optional[str] = None,
        reference_id: Optional[str] = None,
        actor_id: Optional[UUID] = None,
        notes: Optional[str] = None,
        deltas: Optional[Dict[str, int]] = None,
        counterpart_warehouse_id: Optional[UUID] = None
    ) -> StockMovement:
        """Append one movement; flushed in the caller's transaction"""
        if movement_type not in MOVEMENT_TYPES:
            raise ValueError(f"Unknown movement type: {movement_type}")
        if counter not in DELTA_COLUMNS:
            raise ValueError(f"Unknown stock counter: {counter}")

        movement = StockMovement(
            warehouse_id=warehouse_id,
            product_id=product_id,
            variant_id=variant_id,
            movement_type=movement_type,
            quantity=quantity,
            counter=counter,
            previous_quantity=previous_quantity,
            new_quantity=new_quantity,
            reference_type=reference_type,
            reference_id=reference_id,
            counterpart_warehouse_id=counterpart_warehouse_id,
            actor_id=actor_id,
            notes=notes,
        )
        for name, delta in (deltas or {}).items():
            setattr(movement, DELTA_COLUMNS[name], delta)

        db.add(movement)
        db.flush()
        logger.debug(
            f"Ledger {movement_type} {quantity} product={product_id} warehouse={warehouse_id} "
            f"{counter}: {previous_quantity} -> {new_quantity}"
        )
        return movement

    # ===================== QUERIES =====================

    @staticmethod
    def _paginate(query, page: int = 1, per_page: Optional[int] = None) -> Tuple[List[StockMovement], int]:
        per_page = min(per_page or settings.DEFAULT_PAGE_SIZE, settings.MAX_PAGE_SIZE)
        page = max(page, 1)
        total = query.count()
        items = query.order_by(StockMovement.timestamp.asc(), StockMovement.id.asc())\
            .offset((page - 1) * per_page)\
            .limit(per_page)\
            .all()
        return items, total

    @staticmethod
    def find_by_product(
        db: Session,
        product_id: UUID,
        warehouse_id: Optional[UUID] = None,
        page: int = 1,
        per_page: Optional[int] = None
    ) -> Tuple[List[StockMovement], int]:
        query = db.query(StockMovement).filter(StockMovement.product_id == product_id)
        if warehouse_id:
            query = query.filter(StockMovement.warehouse_id == warehouse_id)
        return LedgerService._paginate(query, page, per_page)

    @staticmethod
    def find_by_warehouse(
        db: Session,
        warehouse_id: UUID,
        page: int = 1,
        per_page: Optional[int] = None
    ) -> Tuple[List[StockMovement], int]:
        query = db.query(StockMovement).filter(StockMovement.warehouse_id == warehouse_id)
        return LedgerService._paginate(query, page, per_page)

    @staticmethod
    def find_by_reference(
        db: Session,
        reference_type: str,
        reference_id: str,
        page: int = 1,
        per_page: Optional[int] = None
    ) -> Tuple[List[StockMovement], int]:
        query = db.query(StockMovement).filter(
            StockMovement.reference_type == reference_type,
            StockMovement.reference_id == str(reference_id)
        )
        return LedgerService._paginate(query, page, per_page)

    @staticmethod
    def get_movement_history(db: Session, filters: MovementFilter) -> Tuple[List[StockMovement], int]:
        """Paginated movement history with any combination of filters"""
        query = db.query(StockMovement)

        if filters.product_id:
            query = query.filter(StockMovement.product_id == filters.product_id)
        if filters.warehouse_id:
            query = query.filter(StockMovement.warehouse_id == filters.warehouse_id)
        if filters.reference_type:
            query = query.filter(StockMovement.reference_type == filters.reference_type)
        if filters.reference_id:
            query = query.filter(StockMovement.reference_id == filters.reference_id)
        if filters.movement_type:
            query = query.filter(StockMovement.movement_type == filters.movement_type)
        if filters.start_date:
            query = query.filter(StockMovement.timestamp >= filters.start_date)
        if filters.end_date:
            query = query.filter(StockMovement.timestamp <= filters.end_date)

        return LedgerService._paginate(query, filters.page, filters.per_page)

    # ===================== REPLAY =====================

    @staticmethod
    def _delta_sums():
        return [
            func.coalesce(func.sum(getattr(StockMovement, DELTA_COLUMNS[name])), 0).label(name)
            for name in STOCK_COUNTERS
        ]

    @staticmethod
    def replay(
        db: Session,
        warehouse_id: UUID,
        product_id: UUID,
        variant_id: Optional[UUID] = None,
        as_of: Optional[datetime] = None
    ) -> Dict[str, int]:
        """Fold movements into entry counters, optionally as of a point in time"""
        query = db.query(*LedgerService._delta_sums()).filter(
            StockMovement.warehouse_id == warehouse_id,
            StockMovement.product_id == product_id,
            match_variant(StockMovement.variant_id, variant_id)
        )
        if as_of:
            query = query.filter(StockMovement.timestamp <= as_of)

        row = query.one()
        return {name: int(getattr(row, name)) for name in STOCK_COUNTERS}

    @staticmethod
    def replay_all(db: Session) -> Dict[StockKey, Dict[str, int]]:
        """Fold every movement, grouped by stock entry key"""
        rows = db.query(
            StockMovement.warehouse_id,
            StockMovement.product_id,
            StockMovement.variant_id,
            *LedgerService._delta_sums()
        ).group_by(
            StockMovement.warehouse_id,
            StockMovement.product_id,
            StockMovement.variant_id
        ).all()

        return {
            (r.warehouse_id, r.product_id, r.variant_id): {name: int(getattr(r, name)) for name in STOCK_COUNTERS}
            for r in rows
        }

    @staticmethod
    def holdings_for_reference(db: Session, reference_type: str, reference_id: str) -> Dict[StockKey, Dict[str, int]]:
        """
        Units a single order or return currently holds, per stock entry.
        Only keys with a non-zero holding are returned.
        """
        rows = db.query(
            StockMovement.warehouse_id,
            StockMovement.product_id,
            StockMovement.variant_id,
            *[
                func.coalesce(func.sum(getattr(StockMovement, DELTA_COLUMNS[name])), 0).label(name)
                for name in HOLDING_COUNTERS
            ]
        ).filter(
            StockMovement.reference_type == reference_type,
            StockMovement.reference_id == str(reference_id)
        ).group_by(
            StockMovement.warehouse_id,
            StockMovement.product_id,
            StockMovement.variant_id
        ).all()

        holdings = {}
        for r in rows:
            held = {name: int(getattr(r, name)) for name in HOLDING_COUNTERS}
            if any(held.values()):
                holdings[(r.warehouse_id, r.product_id, r.variant_id)] = held
        return holdings
