"""
Stock Service - Warehouse Stock Table

All counter writes go through StockService.apply, which reads a snapshot,
validates the new counters, writes them with a version check and appends the
matching ledger movement.
"""
import logging
from sqlalchemy.orm import Session
from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from typing import List, Optional, Dict, Tuple, Callable, Union, Iterable
from uuid import UUID

from app.core.config import settings
from app.core.exceptions import (
    InsufficientStockError, CapacityExceededError, ConcurrencyConflictError, NotFoundError
)
from app.models import StockEntry, StockMovement, Warehouse, STOCK_COUNTERS
from app.services.ledger_service import LedgerService, match_variant

logger = logging.getLogger(__name__)

Deltas = Union[Dict[str, int], Callable[[StockEntry], Dict[str, int]]]

# Counters that hold units out of the available pool
COMMITTED_COUNTERS = ("reserved_quantity", "delivered_quantity", "confirmed_delivered_quantity")


class StockService:
    """Per-warehouse stock counters"""

    @staticmethod
    def get_entry(
        db: Session,
        warehouse_id: UUID,
        product_id: UUID,
        variant_id: Optional[UUID] = None
    ) -> Optional[StockEntry]:
        """Lookup by composite key; None means zero stock"""
        return db.query(StockEntry).filter(
            StockEntry.warehouse_id == warehouse_id,
            StockEntry.product_id == product_id,
            match_variant(StockEntry.variant_id, variant_id)
        ).populate_existing().first()

    @staticmethod
    def available_quantity(entry: Optional[StockEntry]) -> int:
        if entry is None:
            return 0
        return entry.available_quantity

    @staticmethod
    def total_available(
        db: Session,
        product_id: UUID,
        variant_id: Optional[UUID] = None,
        warehouse_ids: Optional[Iterable[UUID]] = None
    ) -> int:
        """Available units across active warehouses (or the given ones)"""
        query = db.query(StockEntry).join(Warehouse).filter(
            StockEntry.product_id == product_id,
            match_variant(StockEntry.variant_id, variant_id),
            Warehouse.is_active == True
        )
        if warehouse_ids is not None:
            query = query.filter(StockEntry.warehouse_id.in_(list(warehouse_ids)))
        return sum(entry.available_quantity for entry in query.all())

    @staticmethod
    def warehouse_total_stock(db: Session, warehouse_id: UUID) -> int:
        total = db.query(func.coalesce(func.sum(StockEntry.quantity), 0)).filter(
            StockEntry.warehouse_id == warehouse_id
        ).scalar()
        return int(total or 0)

    @staticmethod
    def lock_warehouse(db: Session, warehouse_id: UUID) -> Warehouse:
        """Load a warehouse row for update (no-op lock on SQLite)"""
        warehouse = db.query(Warehouse).filter(Warehouse.id == warehouse_id).with_for_update().first()
        if not warehouse:
            raise NotFoundError(f"Warehouse {warehouse_id} not found")
        return warehouse

    @staticmethod
    def check_capacity(db: Session, warehouse: Warehouse, incoming: int) -> int:
        """Raise CapacityExceededError when incoming units would overflow the warehouse"""
        total = StockService.warehouse_total_stock(db, warehouse.id)
        if total + incoming > warehouse.capacity:
            raise CapacityExceededError(
                f"Warehouse {warehouse.code} capacity exceeded. "
                f"Current: {total}, Incoming: {incoming}, Capacity: {warehouse.capacity}"
            )
        return total

    @staticmethod
    def get_stock_levels(
        db: Session,
        product_id: Optional[UUID] = None,
        warehouse_id: Optional[UUID] = None
    ) -> List[StockEntry]:
        query = db.query(StockEntry).join(Warehouse)
        if product_id:
            query = query.filter(StockEntry.product_id == product_id)
        if warehouse_id:
            query = query.filter(StockEntry.warehouse_id == warehouse_id)
        return query.order_by(Warehouse.code.asc(), StockEntry.created_at.asc()).all()

    @staticmethod
    def upsert_entry(
        db: Session,
        warehouse_id: UUID,
        product_id: UUID,
        variant_id: Optional[UUID],
        movement_type: str,
        counter: str,
        **deltas
    ) -> Tuple[Optional[StockEntry], Optional[StockMovement]]:
        """Create the entry if absent, then apply the counter deltas"""
        return StockService.apply(
            db, warehouse_id, product_id, variant_id, deltas,
            movement_type=movement_type, counter=counter
        )

    # ===================== WRITE PATH =====================

    @staticmethod
    def _create_entry(db: Session, warehouse_id: UUID, product_id: UUID, variant_id: Optional[UUID]) -> StockEntry:
        entry = StockEntry(
            warehouse_id=warehouse_id,
            product_id=product_id,
            variant_id=variant_id,
            tags=[],
            version=1,
            **{name: 0 for name in STOCK_COUNTERS}
        )
        db.add(entry)
        try:
            db.flush()
        except IntegrityError:
            db.rollback()
            raise ConcurrencyConflictError(
                f"Stock entry for product {product_id} in warehouse {warehouse_id} was created concurrently"
            )
        return entry

    @staticmethod
    def apply(
        db: Session,
        warehouse_id: UUID,
        product_id: UUID,
        variant_id: Optional[UUID],
        deltas: Deltas,
        movement_type: str,
        counter: str,
        reference_type: Optional[str] = None,
        reference_id: Optional[str] = None,
        actor_id: Optional[UUID] = None,
        notes: Optional[str] = None,
        clamp: bool = False,
        add_tags: Optional[List[str]] = None,
        extra_values: Optional[Dict] = None,
        remove_if_empty: bool = False,
        counterpart_warehouse_id: Optional[UUID] = None
    ) -> Tuple[Optional[StockEntry], Optional[StockMovement]]:
        """
        Apply counter deltas to one entry and record the movement.

        `deltas` is a dict of counter -> signed change, or a callable that
        computes it from the freshly read entry (re-evaluated on every retry).
        With clamp=False a counter going negative, or quantity dropping below
        the committed units, raises InsufficientStockError. With clamp=True the
        counter is floored instead and the clamp is noted on the movement.

        Returns (entry, movement); movement is None when nothing changed.
        """
        retries = max(settings.STOCK_WRITE_MAX_RETRIES, 1)

        for attempt in range(1, retries + 1):
            entry = StockService.get_entry(db, warehouse_id, product_id, variant_id)
            snapshot = entry if entry is not None else StockEntry(
                warehouse_id=warehouse_id, product_id=product_id, variant_id=variant_id,
                tags=[], version=0, **{name: 0 for name in STOCK_COUNTERS}
            )

            wanted = deltas(snapshot) if callable(deltas) else dict(deltas)
            wanted = {name: delta for name, delta in wanted.items() if delta}
            new_tags = [t for t in (add_tags or []) if t not in (snapshot.tags or [])]
            if not wanted and not new_tags:
                return entry, None

            before = snapshot.counters()
            after, clamped = StockService._compute(before, wanted, clamp)
            applied = {name: after[name] - before[name] for name in STOCK_COUNTERS if after[name] != before[name]}

            if entry is None:
                if not any(value > 0 for value in applied.values()):
                    # Nothing to create: a clamped decrement on absent stock
                    return None, None
                entry = StockService._create_entry(db, warehouse_id, product_id, variant_id)

            values = {name: after[name] for name in applied}
            if new_tags:
                values["tags"] = list(entry.tags or []) + new_tags
            if extra_values:
                values.update(extra_values)
            values["version"] = entry.version + 1

            result = db.execute(
                update(StockEntry)
                .where(StockEntry.id == entry.id, StockEntry.version == entry.version)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                logger.warning(
                    f"Stock entry {entry.id} changed concurrently, retrying ({attempt}/{retries})"
                )
                continue

            movement_notes = notes
            if clamped:
                clamp_note = "clamped: " + ", ".join(clamped)
                movement_notes = f"{notes}; {clamp_note}" if notes else clamp_note
                logger.warning(f"Stock entry {entry.id} {movement_type} {clamp_note}")

            movement = LedgerService.record(
                db,
                movement_type=movement_type,
                product_id=product_id,
                warehouse_id=warehouse_id,
                variant_id=variant_id,
                quantity=abs(after[counter] - before[counter]),
                previous_quantity=before[counter],
                new_quantity=after[counter],
                counter=counter,
                reference_type=reference_type,
                reference_id=str(reference_id) if reference_id is not None else None,
                actor_id=actor_id,
                notes=movement_notes,
                deltas=applied,
                counterpart_warehouse_id=counterpart_warehouse_id
            )

            db.refresh(entry)
            if remove_if_empty and not any(entry.counters().values()):
                db.delete(entry)
                db.flush()
                return None, movement
            return entry, movement

        raise ConcurrencyConflictError(
            f"Could not update stock for product {product_id} in warehouse {warehouse_id} "
            f"after {retries} attempts"
        )

    @staticmethod
    def _compute(before: Dict[str, int], wanted: Dict[str, int], clamp: bool) -> Tuple[Dict[str, int], List[str]]:
        after = dict(before)
        clamped = []

        for name, delta in wanted.items():
            value = before[name] + delta
            if value < 0:
                if not clamp:
                    raise InsufficientStockError(
                        f"Insufficient {name.replace('_', ' ')}. Current: {before[name]}, Change: {delta}",
                        available=before[name],
                        required=-delta
                    )
                clamped.append(f"{name} floored at 0 (requested {delta:+d})")
                value = 0
            after[name] = value

        committed_before = sum(before[name] for name in COMMITTED_COUNTERS)
        committed_after = sum(after[name] for name in COMMITTED_COUNTERS)
        available_before = before["quantity"] - committed_before
        available_after = after["quantity"] - committed_after

        # Conservation: quantity must cover reserved + delivered + confirmed
        if available_after < 0 and available_after < available_before:
            if clamp and wanted.get("quantity", 0) < 0:
                floor = min(before["quantity"], committed_after)
                clamped.append(f"quantity floored at {floor} committed units (requested {wanted['quantity']:+d})")
                after["quantity"] = max(after["quantity"], floor)
            else:
                raise InsufficientStockError(
                    f"Insufficient available stock. Available: {max(0, available_before)}, "
                    f"Required: {available_before - available_after}",
                    available=max(0, available_before),
                    required=available_before - available_after
                )

        return after, clamped
