import logging
from logging.config import dictConfig
from pathlib import Path
from typing import List, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Application
    ENVIRONMENT: str = "local"
    FRONTEND_URL: str = "http://localhost:5173"
    CORS_ORIGINS: List[str] = ["http://localhost:5173", "http://localhost:3000"]

    # JWT
    JWT_SECRET: str = "change-me"
    JWT_ALGORITHM: str = "HS256"
    JWT_ACCESS_TOKEN_EXPIRY: int = 3600
    JWT_REFRESH_TOKEN_EXPIRY: int = 604800
    PASSWORD_RESET_TOKEN_EXPIRY: int = 1800
    COOKIE_SECURE: bool = True

    # API SERVER
    API_SERVER_PORT: int = 8000
    API_SERVER_HOST: str = "0.0.0.0"

    # Main DB
    DATABASE_URL: Optional[str] = None
    POSTGRES_DRIVER: str = "postgresql+asyncpg"
    POSTGRES_USER: str = "postgres"
    REVISION_DB: str = "revision_planner"
    REVISION_DB_PASSWORD: str = "postgres"
    REVISION_DB_PORT: int = 5432
    REVISION_DB_HOST_PROD: str = "db"

    # Redis
    REDIS_HOST_PROD: str = "redis"
    REDIS_PORT: int = 6379
    REDIS_PASSWORD: Optional[str] = None

    # Rate limiting
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_REQUESTS: int = 100
    RATE_LIMIT_WINDOW: int = 60

    # Problem stores
    STORE_IDLE_TIMEOUT: int = 1800

    # Federated sign-in
    GOOGLE_CLIENT_ID: str = ""
    GOOGLE_JWKS_URL: str = "https://www.googleapis.com/oauth2/v3/certs"

    # Mail
    SMTP_HOST: Optional[str] = None
    SMTP_PORT: int = 587
    SMTP_USER: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    MAIL_FROM: str = "no-reply@revision-planner.local"

    # Scheduling
    REVISION_INTERVALS: List[int] = [1, 3, 7, 15, 30]
    TIMEZONE: str = "UTC"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = "logs/app.log"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("REVISION_INTERVALS")
    @classmethod
    def check_intervals(cls, value: List[int]) -> List[int]:
        if not value:
            raise ValueError("REVISION_INTERVALS must not be empty")
        if any(days <= 0 for days in value):
            raise ValueError("REVISION_INTERVALS must be positive day counts")
        if len(set(value)) != len(value):
            raise ValueError("REVISION_INTERVALS must not repeat a day value")
        return sorted(value)

    @property
    def REVISION_DB_URL(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return f"{self.POSTGRES_DRIVER}://{self.POSTGRES_USER}:{self.REVISION_DB_PASSWORD}@{self.REVISION_DB_HOST}:{self.REVISION_DB_PORT}/{self.REVISION_DB}"

    @property
    def API_BASE_URL(self) -> str:
        return f"http://{self.API_SERVER_HOST}:{self.API_SERVER_PORT}"

    @property
    def REDIS_HOST(self) -> str:
        if self.ENVIRONMENT == "local":
            return "localhost"
        return self.REDIS_HOST_PROD

    @property
    def REVISION_DB_HOST(self) -> str:
        if self.ENVIRONMENT == "local":
            return "localhost"
        return self.REVISION_DB_HOST_PROD


Config = Settings()

# Ensure logs directory exists
log_dir = Path(Config.LOG_FILE).parent
log_dir.mkdir(parents=True, exist_ok=True)


def configure_logging():
    """Configure logging for the application."""
    log_config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            },
            "detailed": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(module)s - %(funcName)s - %(lineno)d - %(message)s",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "level": Config.LOG_LEVEL,
            },
            "file": {
                "class": "logging.handlers.RotatingFileHandler",
                "formatter": "detailed",
                "filename": Config.LOG_FILE,
                "maxBytes": 10485760,  # 10MB
                "backupCount": 5,
                "level": Config.LOG_LEVEL,
            },
        },
        "loggers": {
            "app": {
                "handlers": ["console", "file"],
                "level": Config.LOG_LEVEL,
                "propagate": False,
            },
            "db": {
                "handlers": ["console", "file"],
                "level": Config.LOG_LEVEL,
                "propagate": False,
            },
        },
        "root": {
            "handlers": ["console", "file"],
            "level": Config.LOG_LEVEL,
        },
    }
    dictConfig(log_config)
    return logging.getLogger("app")


# Initialize logger
logger = configure_logging()
