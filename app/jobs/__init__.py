# Jobs Package - Scheduled background tasks
from .stock_reconciliation import StockReconciliationScheduler, start_scheduler, stop_scheduler

__all__ = ["StockReconciliationScheduler", "start_scheduler", "stop_scheduler"]
