# backend/sparfinder/core/config.py
import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def is_running_tests() -> bool:
    """
    Detect if code is running under pytest.

    PYTEST_CURRENT_TEST is set automatically by pytest during test runs, and is
    not expected to be present in production environments.
    """
    return os.getenv("PYTEST_CURRENT_TEST") is not None


logger = logging.getLogger(__name__)

# Load .env file only if not in CI
if not os.getenv("CI"):
    env_path = Path(__file__).parent.parent.parent / ".env"  # Goes up to backend/.env
    logger.debug(f"[CONFIG] Looking for .env at: {env_path}")
    load_dotenv(env_path)


_DEV_SECRET_KEY = "dev-secret-key-not-for-production"


class Settings(BaseSettings):
    environment: str = Field(default="development", alias="ENVIRONMENT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    is_testing: bool = False

    # Database
    database_url: str = Field(
        default="sqlite:///./sparfinder.db",
        alias="DATABASE_URL",
        description="SQLAlchemy URL for the primary database",
    )
    database_echo: bool = Field(default=False, description="Echo SQL statements to the log")
    auto_create_tables: bool = Field(
        default=True,
        alias="AUTO_CREATE_TABLES",
        description="Create missing tables on startup (local/dev convenience)",
    )

    # Auth
    secret_key: SecretStr = Field(
        default=SecretStr(_DEV_SECRET_KEY),
        description="Secret key for JWT tokens",
    )
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 720  # 12 hours

    # Messaging
    history_page_size: int = Field(
        default=50,
        ge=1,
        description="Messages sent with conversation_history on join and default REST page size",
    )
    max_page_size: int = Field(default=100, ge=1, description="Largest REST page size accepted")
    background_task_concurrency: int = Field(
        default=16,
        ge=1,
        description="Max fire-and-forget tasks (notifications, read cursors) running at once",
    )

    # Web push
    vapid_public_key: Optional[str] = Field(default=None, alias="VAPID_PUBLIC_KEY")
    vapid_private_key: Optional[SecretStr] = Field(default=None, alias="VAPID_PRIVATE_KEY")
    vapid_claims_email: str = Field(
        default="mailto:support@sparfinder.app",
        alias="VAPID_CLAIMS_EMAIL",
    )
    push_ttl_seconds: int = Field(default=86400, ge=0)

    frontend_url: str = Field(default="http://localhost:3000", alias="FRONTEND_URL")
    # Comma-separated list of allowed origins
    cors_origins_raw: str = Field(default="http://localhost:3000", alias="CORS_ORIGINS")

    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("frontend_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @model_validator(mode="after")
    def _warn_on_dev_secret(self) -> "Settings":
        if (
            self.environment.strip().lower() == "production"
            and self.secret_key.get_secret_value() == _DEV_SECRET_KEY
        ):
            raise ValueError("SECRET_KEY must be set in production")
        return self

    @property
    def cors_origins(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins_raw.split(",") if origin.strip()]

    @property
    def push_configured(self) -> bool:
        return bool(self.vapid_public_key and self.vapid_private_key)


settings = Settings()
if is_running_tests():
    settings.is_testing = True
