"""
Core Configuration using Pydantic BaseSettings
Centralizes all environment variables and configuration
"""

from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    """Application Settings"""

    # Application
    APP_NAME: str = "AdsOPS"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    BACKEND_URL: str = "http://localhost:8000"
    FRONTEND_URL: str = "http://localhost:5173"

    # Supabase
    SUPABASE_URL: str
    SUPABASE_KEY: Optional[str] = None  # anon key, used for user-scoped clients
    SUPABASE_SERVICE_ROLE_KEY: str

    # Meta Ads
    META_ADS_APP_ID: str = ""
    META_ADS_APP_SECRET: str = ""
    META_ADS_REDIRECT_URI: str = ""
    META_API_VERSION: str = "v19.0"

    # Google Ads
    GOOGLE_ADS_CLIENT_ID: str = ""
    GOOGLE_ADS_CLIENT_SECRET: str = ""
    GOOGLE_ADS_DEVELOPER_TOKEN: str = ""
    GOOGLE_ADS_LOGIN_CUSTOMER_ID: Optional[str] = None
    GOOGLE_ADS_REDIRECT_URI: str = ""
    GOOGLE_ADS_API_VERSION: str = "v17"

    # Token storage (Fernet key, urlsafe base64, 32 bytes)
    TOKEN_ENCRYPTION_KEY: str = ""

    # Sync
    GOOGLE_DAILY_REQUEST_LIMIT: int = 15000
    META_HOURLY_REQUEST_LIMIT: int = 200
    SYNC_REQUEST_DELAY_MS: int = 200
    SYNC_MAX_RETRIES: int = 3
    SYNC_RETRY_DELAY_MS: int = 1000
    META_SYNC_DAYS_BACK: int = 30
    GOOGLE_QUICK_SYNC_DAYS: int = 7
    HTTP_TIMEOUT_SECONDS: int = 30

    # Sync worker
    SYNC_WORKER_ENABLED: bool = True
    SYNC_INTERVAL_HOURS: int = 6

    # CORS
    CORS_ORIGINS: str = "http://localhost:5173,http://localhost:8000"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


# Export settings instance
settings = get_settings()
