"""
Shared API dependencies and serializers
"""
from fastapi import Header
from typing import Optional, List, Iterable
from uuid import UUID

from app.schemas.stock import StockEntryResponse, StockMovementResponse


def get_actor_id(x_actor_id: Optional[UUID] = Header(None)) -> Optional[UUID]:
    """Acting user for attribution; anonymous/system when the header is absent"""
    return x_actor_id


def serialize_movements(movements: Iterable) -> List[dict]:
    return [
        StockMovementResponse.model_validate(m).model_dump(mode="json")
        for m in movements if m is not None
    ]


def serialize_entry(entry) -> Optional[dict]:
    if entry is None:
        return None
    return StockEntryResponse.model_validate(entry).model_dump(mode="json")


def page_info(total: int, page: int, per_page: int) -> dict:
    return {
        "total": total,
        "page": page,
        "per_page": per_page,
        "total_pages": (total + per_page - 1) // per_page if per_page else 0,
    }
