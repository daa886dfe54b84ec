"""
Reconciliation API - Ledger replay vs stored stock counters
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional
from uuid import UUID

from app.core import get_db
from app.services.reconciliation_service import ReconciliationService

router = APIRouter(prefix="/reconciliation", tags=["Reconciliation"])


@router.get("/stock")
def check_stock(
    warehouse_id: Optional[UUID] = Query(None, description="Limit the check to one warehouse"),
    db: Session = Depends(get_db)
):
    """
    Replay the movement ledger and compare with stored counters.
    Any difference is listed under drift.
    """
    return ReconciliationService.check_stock(db, warehouse_id)
