from pydantic_settings import BaseSettings
from functools import lru_cache

class Settings(BaseSettings):
    # Application
    APP_NAME: str = "StockLedger"
    APP_PORT: int = 9210
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = "sqlite:///./stockledger.db"

    # Stock writes
    STOCK_WRITE_MAX_RETRIES: int = 5

    # Pagination
    DEFAULT_PAGE_SIZE: int = 50
    MAX_PAGE_SIZE: int = 200

    # Alerts
    ALERT_LOOKBACK_DAYS: int = 90
    ALERT_DAYS_THRESHOLD: int = 30

    # Returns
    EXPECTED_RETURN_DAYS: int = 7

    # Reconciliation job
    RECONCILIATION_ENABLED: bool = True
    RECONCILIATION_INTERVAL_MINUTES: int = 60

    class Config:
        env_file = ".env"
        extra = "ignore"

@lru_cache()
def get_settings() -> Settings:
    return Settings()

settings = get_settings()
