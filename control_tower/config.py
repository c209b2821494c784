from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    APP_NAME: str = "Financial Control Tower"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    PORT: int = 8000

    DATABASE_URL: str = "postgresql+asyncpg://localhost:5432/control_tower"
    DATABASE_SYNC_URL: str = ""
    DATABASE_SSL: bool = False
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 5
    DB_POOL_RECYCLE: int = 300

    # Tokens are issued by the identity service; this service only verifies them.
    JWT_PUBLIC_KEY_PATH: Optional[str] = "keys/public.pem"
    JWT_SECRET: Optional[str] = None  # used instead of the key file for HS* algorithms
    JWT_ALGORITHM: str = "RS256"

    DEFAULT_CURRENCY: str = "USD"
    AUDIT_LOG_DEFAULT_LIMIT: int = 100
    AUDIT_LOG_MAX_LIMIT: int = 500
    FORECAST_HISTORY_MONTHS: int = 12
    FORECAST_HORIZON_MONTHS: int = 3
    FORECAST_TRAILING_MONTHS: int = 3
    BURN_WINDOW_MONTHS: int = 3

    CORS_ORIGINS: str = "http://localhost:3000"
    CORS_ORIGIN_REGEX: Optional[str] = None

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",")]

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
