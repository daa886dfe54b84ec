"""
StockLedger - Multi-warehouse inventory ledger
FastAPI Application Entry Point
"""
import logging
import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager

from app.core import settings, engine, Base, StockLedgerError
from app.api.router import api_router
from app.jobs import start_scheduler, stop_scheduler

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
)
logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
logger = logging.getLogger(__name__)

# Lifespan for startup/shutdown
@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: Create tables if not exist
    Base.metadata.create_all(bind=engine)
    logger.info(f"{settings.APP_NAME} starting on port {settings.APP_PORT}")

    # Start background scheduler for ledger reconciliation
    if settings.RECONCILIATION_ENABLED:
        try:
            start_scheduler()
        except Exception as e:
            logger.warning(f"Could not start reconciliation scheduler: {e}")

    yield

    # Shutdown
    if settings.RECONCILIATION_ENABLED:
        stop_scheduler()
    logger.info(f"{settings.APP_NAME} shutting down")

# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    description="Multi-warehouse stock ledger, fulfillment & returns",
    version="1.0.0",
    lifespan=lifespan
)


@app.exception_handler(StockLedgerError)
async def stock_ledger_error_handler(request: Request, exc: StockLedgerError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

# Include routers
app.include_router(api_router, prefix="/api")

# Health check
@app.get("/health")
async def health_check():
    return {"status": "healthy", "app": settings.APP_NAME}

if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=settings.APP_PORT,
        reload=settings.DEBUG
    )
