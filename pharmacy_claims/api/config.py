"""
Application Configuration
Pydantic Settings for environment-based configuration
Source: https://docs.pydantic.dev/latest/concepts/pydantic_settings/
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from pharmacy_claims.core.enums import AuditSinkType


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Values come from the process environment first and then from a ``.env``
    file in the working directory. Every setting has a default, so the
    service starts against a local PostgreSQL without any configuration.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ============================================================================
    # Application Settings
    # ============================================================================
    ENVIRONMENT: Literal["development", "staging", "production", "testing"] = Field(
        default="development", description="Environment: development, staging, production, testing"
    )
    DEBUG: bool = Field(default=False, description="Echo SQL statements")
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_FILE: str | None = Field(default=None, description="Optional application log file")

    # ============================================================================
    # Database Configuration
    # ============================================================================
    POSTGRES_HOST: str = Field(default="localhost", description="PostgreSQL host")
    POSTGRES_PORT: int = Field(default=5432, description="PostgreSQL port")
    POSTGRES_DB: str = Field(default="pharmacy_claims", description="Database name")
    POSTGRES_USER: str = Field(default="pharmacy_user", description="Database user")
    POSTGRES_PASSWORD: str = Field(default="pharmacy_password", description="Database password")

    DATABASE_URL: str | None = Field(default=None, description="Full async database URL")

    DB_POOL_SIZE: int = Field(default=25, description="Database connection pool size")
    DB_MAX_OVERFLOW: int = Field(default=10, description="Max overflow connections")
    DB_POOL_TIMEOUT: int = Field(default=30, description="Connection timeout (seconds)")

    DB_CONNECT_RETRIES: int = Field(default=10, ge=1, description="Readiness attempts at startup")
    DB_CONNECT_INTERVAL: float = Field(
        default=2.0, ge=0.0, description="Seconds between readiness attempts"
    )
    DB_CREATE_SCHEMA: bool = Field(default=True, description="Create missing tables at startup")

    @property
    def database_url(self) -> str:
        """Construct DATABASE_URL if not explicitly provided"""
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    # ============================================================================
    # Bulk Loader Configuration
    # ============================================================================
    DATA_DIR: str = Field(default="./data", description="Seed data root directory")
    LOAD_ON_STARTUP: bool = Field(default=True, description="Run the bulk loader at startup")
    LOADER_BATCH_SIZE: int = Field(
        default=1000, description="Records per insert batch (invalid values use the default)"
    )
    LOADER_MAX_WORKERS: int = Field(default=10, ge=1, description="Max concurrent file parsers")

    # ============================================================================
    # Audit Configuration
    # ============================================================================
    AUDIT_SINK: AuditSinkType = Field(default=AuditSinkType.FILE, description="file or database")
    AUDIT_LOG_DIR: str = Field(default="./logs", description="Directory for file audit events")

    # ============================================================================
    # FastAPI Configuration
    # ============================================================================
    API_HOST: str = Field(default="0.0.0.0", description="API host")  # nosec B104
    API_PORT: int = Field(default=8080, description="API port")

    @field_validator("LOG_LEVEL")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        """Loguru level names are upper case."""
        return v.upper()

    @field_validator("AUDIT_SINK", mode="before")
    @classmethod
    def normalize_audit_sink(cls, v: object) -> object:
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @property
    def is_production(self) -> bool:
        """Check if running in production"""
        return self.ENVIRONMENT == "production"

    @property
    def is_testing(self) -> bool:
        """Check if running in testing mode"""
        return self.ENVIRONMENT == "testing"


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Example:
        >>> from pharmacy_claims.api.config import get_settings
        >>> settings = get_settings()
        >>> print(settings.database_url)
    """
    return Settings()


# Global settings instance
settings = get_settings()
