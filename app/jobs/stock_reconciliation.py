"""
Stock Reconciliation Scheduler - Periodic ledger replay vs stored counters
"""
from datetime import datetime
from typing import Optional
import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from app.core.config import settings
from app.core.database import SessionLocal
from app.services.reconciliation_service import ReconciliationService

logger = logging.getLogger(__name__)

# Global scheduler instance
_scheduler = None

JOB_ID = "stock_reconciliation"


class StockReconciliationScheduler:
    """
    Runs the stock reconciliation check on a fixed interval
    """

    def __init__(self, interval_minutes: Optional[int] = None):
        self.scheduler = AsyncIOScheduler()
        self.interval_minutes = interval_minutes or settings.RECONCILIATION_INTERVAL_MINUTES
        self.is_running = False

    def start(self):
        """Start the scheduler"""
        if not self.is_running:
            self.scheduler.add_job(
                func=self.run_check,
                trigger=IntervalTrigger(minutes=self.interval_minutes),
                id=JOB_ID,
                name="Stock ledger reconciliation",
                next_run_time=datetime.now(),
                replace_existing=True,
                max_instances=1,  # Prevent overlapping checks
            )
            self.scheduler.start()
            self.is_running = True
            logger.info(f"Stock reconciliation scheduler started (every {self.interval_minutes} minutes)")

    def stop(self):
        """Stop the scheduler"""
        if self.is_running:
            self.scheduler.shutdown(wait=False)
            self.is_running = False
            logger.info("Stock reconciliation scheduler stopped")

    @staticmethod
    def run_check() -> dict:
        """Execute one reconciliation pass"""
        db = SessionLocal()
        try:
            report = ReconciliationService.check_stock(db)
            for item in report["drift"]:
                logger.error(
                    f"Stock drift warehouse={item['warehouse_id']} product={item['product_id']} "
                    f"variant={item['variant_id']}: {item['differences']}"
                )
            return report
        finally:
            db.close()


# ========== Global Functions ==========

def get_scheduler() -> "StockReconciliationScheduler":
    """Get or create the global scheduler instance"""
    global _scheduler
    if _scheduler is None:
        _scheduler = StockReconciliationScheduler()
    return _scheduler


def start_scheduler():
    """Start the global scheduler"""
    scheduler = get_scheduler()
    scheduler.start()


def stop_scheduler():
    """Stop the global scheduler"""
    global _scheduler
    if _scheduler:
        _scheduler.stop()
        _scheduler = None
