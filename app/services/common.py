"""
Shared helpers for services: audit trail, document numbering, warehouse selection
"""
from sqlalchemy.orm import Session
from sqlalchemy import func
from typing import List, Optional
from uuid import UUID

from app.models import AuditLog, Warehouse


def record_audit(
    db: Session,
    table_name: str,
    record_id,
    action: str,
    performed_by: Optional[UUID] = None,
    before_data: Optional[dict] = None,
    after_data: Optional[dict] = None
) -> AuditLog:
    audit = AuditLog(
        table_name=table_name,
        record_id=str(record_id),
        action=action,
        performed_by=performed_by,
        before_data=before_data,
        after_data=after_data
    )
    db.add(audit)
    return audit


def next_document_number(db: Session, column, prefix: str, width: int = 4) -> str:
    """Next sequential number like SO-0001 for the given column"""
    last = db.query(column).filter(column.like(f"{prefix}-%"))\
        .order_by(func.length(column).desc(), column.desc())\
        .first()

    next_seq = 1
    if last:
        try:
            next_seq = int(last[0].split("-")[-1]) + 1
        except ValueError:
            next_seq = 1
    return f"{prefix}-{next_seq:0{width}d}"


def ordered_warehouses(
    db: Session,
    warehouse_priority: Optional[List[UUID]] = None,
    include_inactive: bool = False
) -> List[Warehouse]:
    """
    Warehouse selection policy.
    Ascending warehouse code; ids listed in warehouse_priority move to the
    front in the order given.
    """
    query = db.query(Warehouse)
    if not include_inactive:
        query = query.filter(Warehouse.is_active == True)
    warehouses = query.order_by(Warehouse.code.asc()).all()

    if not warehouse_priority:
        return warehouses

    rank = {wid: i for i, wid in enumerate(warehouse_priority)}
    return sorted(warehouses, key=lambda w: rank.get(w.id, len(rank)))
