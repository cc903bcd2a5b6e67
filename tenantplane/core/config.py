"""
Application configuration using Pydantic Settings
"""

from pathlib import Path
from typing import Optional
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

PACKAGED_TENANT_MIGRATIONS = str(Path(__file__).resolve().parent.parent / "migrations" / "tenant")


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application
    APP_NAME: str = "Tenant Control Plane"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False

    # Central registry database
    DATABASE_URL: str = "sqlite:///./central.sqlite"
    DATABASE_ECHO: bool = False

    # Tenant databases
    TENANT_DATABASE_PREFIX: str = "tenant_"
    TENANT_DATABASE_DIR: str = "./tenant_databases"  # SQLite backends only
    TENANT_MIGRATION_PATHS: list[str] = [PACKAGED_TENANT_MIGRATIONS]

    # Lifecycle
    TENANT_TRIAL_DAYS: int = 14
    TENANT_RETENTION_DAYS: int = 30
    TENANT_PURGE_LIMIT: int = 200
    TENANT_METRICS_LIMIT: int = 500
    RESERVED_SLUGS: list[str] = [
        "admin", "api", "system", "app", "www", "mail", "ftp", "localhost", "central",
    ]

    # Signup endpoint guard (disabled when empty)
    PROVISIONING_TOKEN: Optional[str] = None

    # JWT (onboarding tokens)
    JWT_SECRET_KEY: str = "jwt-secret-key-change-in-production"
    JWT_ALGORITHM: str = "HS256"
    JWT_ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24  # 24 hours

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
