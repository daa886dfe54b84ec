"""
Stock Ledger Exceptions
"""


class StockLedgerError(Exception):
    """Base exception for stock ledger operations"""
    status_code = 400

    def __init__(self, message: str, status_code: int = None):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class NotFoundError(StockLedgerError):
    """Missing warehouse, product, order or return"""
    status_code = 404


class ValidationError(StockLedgerError):
    """Request is well-formed but not acceptable"""
    status_code = 400


class InsufficientStockError(StockLedgerError):
    """Requested quantity cannot be satisfied from available stock"""
    status_code = 400

    def __init__(self, message: str, available: int = 0, required: int = 0):
        self.available = available
        self.required = required
        super().__init__(message)


class InvalidTransitionError(StockLedgerError):
    """Requested status is not reachable from the current status"""
    status_code = 400


class CapacityExceededError(StockLedgerError):
    """Receive or transfer would overflow the warehouse capacity"""
    status_code = 400


class ConcurrencyConflictError(StockLedgerError):
    """Optimistic write retries exhausted"""
    status_code = 409
