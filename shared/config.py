"""
Shared Configuration Module

Settings for the enrollment service, read from environment variables or a .env file.
Capacity limits (students and instructors per section, sections per grade) are
domain constants in shared.domain and are not configurable here.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Enrollment service settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    environment: Literal["development", "test", "staging", "production"] = "development"
    debug: bool = Field(default=True, description="Echo SQL and expose tracebacks")

    # PostgreSQL
    postgres_user: str = "postgres"
    postgres_password: str = "postgres"
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_db: str = "school_enrollment"
    db_pool_size: int = 10
    db_max_overflow: int = 20

    # Admin tokens
    secret_key: str = Field(
        default="local-development-secret-key-please-rotate",
        min_length=32,
        description="HMAC key used to verify admin bearer tokens",
    )
    jwt_algorithm: str = "HS256"
    admin_role: str = "admin"

    # HTTP
    service_host: str = "0.0.0.0"
    service_port: int = 8002

    # Notices to parents
    notification_service_url: str = Field(
        default="",
        description="Base URL of the notification service; empty logs notices instead",
    )
    notification_timeout_seconds: float = Field(default=10.0, gt=0)
    school_name: str = "Elementary School"
    school_contact_phone: str = "(02) 239 8307"
    school_contact_email: str = "registrar@example.edu"

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_format: Literal["json", "text"] = "json"

    def _postgres_dsn(self, scheme: str) -> str:
        return (
            f"{scheme}://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    @property
    def database_url(self) -> str:
        """Synchronous PostgreSQL URL (migrations, psql)."""
        return self._postgres_dsn("postgresql")

    @property
    def async_database_url(self) -> str:
        """PostgreSQL URL for the async engine (psycopg 3 driver)."""
        return self._postgres_dsn("postgresql+psycopg")


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return Settings()


settings = get_settings()
