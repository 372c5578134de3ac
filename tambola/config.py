"""Environment-based configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass

from sqlalchemy.engine import URL


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name) or default)
    except ValueError:
        return default


def resolve_database_url() -> str:
    """Resolve DB connection string.

    Priority:
      1) DATABASE_URL (explicit)
      2) Build from PG* env vars (the hosted platform is Postgres)
      3) Fallback to local sqlite
    """

    explicit = os.getenv("DATABASE_URL")
    if explicit:
        return explicit

    host = os.getenv("PGHOST")
    user = os.getenv("PGUSER")
    database = os.getenv("PGDATABASE")
    port_raw = os.getenv("PGPORT")

    if host and user and database:
        password = os.getenv("PGPASSWORD")
        sslmode = os.getenv("PGSSLMODE", "require")

        try:
            port = int(port_raw) if port_raw else 5432
        except ValueError:
            port = 5432

        query = {"sslmode": sslmode} if sslmode else {}
        url = URL.create(
            drivername="postgresql+psycopg2",
            username=user,
            password=password,
            host=host,
            port=port,
            database=database,
            query=query,
        )
        return url.render_as_string(hide_password=False)

    return "sqlite:///./tambola.db"


@dataclass(frozen=True)
class BaseConfig:
    """Base configuration shared by all environments."""

    APP_ENV: str = os.getenv("APP_ENV", "development")
    SECRET_KEY: str = os.getenv("SECRET_KEY", "dev-secret")
    DATABASE_URL: str = resolve_database_url()
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    PUBLIC_BASE_URL: str = os.getenv("PUBLIC_BASE_URL", "http://localhost:8000")

    # Ticket engine
    TICKET_SORT_COLUMNS: bool = _env_bool("TICKET_SORT_COLUMNS", True)
    TICKET_MAX_RETRIES: int = _env_int("TICKET_MAX_RETRIES", 1000)

    # Hosted auth
    AUTH_URL: str = os.getenv("AUTH_URL", "")
    AUTH_API_KEY: str = os.getenv("AUTH_API_KEY", "")
    HTTP_RETRIES: int = _env_int("HTTP_RETRIES", 3)
    HTTP_BACKOFF: float = float(os.getenv("HTTP_BACKOFF", "0.5"))
    HTTP_TIMEOUT: float = float(os.getenv("HTTP_TIMEOUT", "10"))
    # Comma-separated user ids allowed to settle withdrawals
    ADMIN_USER_IDS: str = os.getenv("ADMIN_USER_IDS", "")

    # Payment gateway
    RAZORPAY_KEY_ID: str = os.getenv("RAZORPAY_KEY_ID", "")
    RAZORPAY_KEY_SECRET: str = os.getenv("RAZORPAY_KEY_SECRET", "")
    RAZORPAY_WEBHOOK_SECRET: str = os.getenv("RAZORPAY_WEBHOOK_SECRET", "")
    CURRENCY: str = os.getenv("CURRENCY", "INR")

    # File store
    FILE_STORE_BUCKET: str = os.getenv("FILE_STORE_BUCKET", "tambola-assets")
    FILE_STORE_PUBLIC_URL: str = os.getenv("FILE_STORE_PUBLIC_URL", "")
    AWS_REGION: str = os.getenv("AWS_REGION", "ap-south-1")
    S3_ENDPOINT_URL: str = os.getenv("S3_ENDPOINT_URL", "")
    MAX_UPLOAD_BYTES: int = _env_int("MAX_UPLOAD_BYTES", 2 * 1024 * 1024)

    # Realtime
    EVENT_STREAM_KEEPALIVE: int = _env_int("EVENT_STREAM_KEEPALIVE", 15)
    EVENT_QUEUE_SIZE: int = _env_int("EVENT_QUEUE_SIZE", 256)


@dataclass(frozen=True)
class DevelopmentConfig(BaseConfig):
    """Development configuration."""

    DEBUG: bool = True


@dataclass(frozen=True)
class ProductionConfig(BaseConfig):
    """Production configuration."""

    DEBUG: bool = False


def get_config() -> type[BaseConfig]:
    """Resolve configuration class based on APP_ENV."""

    env = os.getenv("APP_ENV", "development").lower().strip()
    if env == "production":
        return ProductionConfig
    return DevelopmentConfig
