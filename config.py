from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    # License Server Configuration
    LICENSE_API_URL: str = "https://3ag.app/api/v3"
    LICENSE_API_TIMEOUT: int = 30
    PRODUCT_SLUG: str = "woo-stock-sync-from-csv"

    # Installation Info
    SITE_URL: str = ""  # Falls back to the machine hostname
    SERVICE_NAME: str = "license-reconciler"
    APP_VERSION: str = "1.0.0"

    # Storefront links
    RENEWAL_URL: str = "https://3ag.app/products/woo-stock-sync-from-csv"
    ACCOUNT_URL: str = "https://3ag.app/account"

    # Database
    DATABASE_URL: str = "sqlite:///./license_state.db"

    # Scheduled reconciliation
    CHECK_INTERVAL_HOURS: int = 24
    LICENSE_CHECK_JOB_ID: str = "license_check"
    SYNC_JOB_ID: str = "stock_sync"

    # Logging
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"

settings = Settings()
