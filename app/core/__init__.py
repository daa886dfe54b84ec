from .config import settings
from .database import engine, SessionLocal, get_db, Base
from .exceptions import (
    StockLedgerError, NotFoundError, ValidationError, InsufficientStockError,
    InvalidTransitionError, CapacityExceededError, ConcurrencyConflictError
)

__all__ = [
    "settings", "engine", "SessionLocal", "get_db", "Base",
    "StockLedgerError", "NotFoundError", "ValidationError", "InsufficientStockError",
    "InvalidTransitionError", "CapacityExceededError", "ConcurrencyConflictError",
]
