"""
Stock Reconciliation Configuration
Core settings for the stock reconciliation engine
"""
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional
from pathlib import Path


class Settings(BaseSettings):
    """Application settings"""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True)

    # Application Info
    APP_NAME: str = "Stock Reconciliation API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # Database Configuration
    DATABASE_URL: str = "postgresql://localhost:5432/stockrecon"
    DATABASE_POOL_SIZE: int = 10
    DATABASE_MAX_OVERFLOW: int = 20

    # Security (token verification at the auth boundary)
    SECRET_KEY: str = "change-me-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # CORS
    CORS_ORIGINS: list = [
        "http://localhost:3000",
        "http://localhost:3001",
    ]

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_DIR: Path = Path("logs")
    LOG_FILE: str = "app.log"
    ERROR_LOG_FILE: str = "error.log"
    LOG_TO_FILE: bool = True

    # Financial Precision
    CURRENCY_DECIMAL_PLACES: int = 2
    DEFAULT_EXCHANGE_RATE: float = 1.0

    # Count documents
    REFERENCE_PREFIX: str = "PI"

    # Pagination
    DEFAULT_PAGE_SIZE: int = 10
    MAX_PAGE_SIZE: int = 100

    # API Configuration
    API_V1_STR: str = "/api/v1"
    DOCS_URL: str = "/docs"
    OPENAPI_URL: str = "/openapi.json"

    @field_validator("LOG_DIR", mode="before")
    @classmethod
    def coerce_log_dir(cls, v) -> Path:
        """Accept plain strings for the log directory"""
        return Path(v) if isinstance(v, str) else v

    @field_validator("DEFAULT_EXCHANGE_RATE")
    @classmethod
    def positive_default_rate(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("DEFAULT_EXCHANGE_RATE must be positive")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def normalise_log_level(cls, v: Optional[str]) -> str:
        return (v or "INFO").upper()


# Global settings instance
settings = Settings()
