from __future__ import annotations

from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """
    Application-level settings for the FastAPI service.

    This is separate from src.db.config.Settings, which focuses on the database layer.
    """

    # FastAPI metadata
    APP_NAME: str = Field(default="Business Management API")
    APP_DESCRIPTION: str = Field(
        default=(
            "Backend API for a multi-tenant business-management platform. "
            "Provides leads, inquiries, orders and delivery challans scoped by "
            "role listing criteria and the reporting hierarchy."
        )
    )
    APP_VERSION: str = Field(default="0.1.0")

    # CORS
    CORS_ORIGINS: List[str] = Field(
        default_factory=lambda: ["*"],
        description="Comma-separated list or JSON array of allowed origins. Default: *",
    )
    CORS_ALLOW_CREDENTIALS: bool = Field(default=True)
    CORS_ALLOW_METHODS: List[str] = Field(default_factory=lambda: ["*"])
    CORS_ALLOW_HEADERS: List[str] = Field(default_factory=lambda: ["*"])

    # Auth
    JWT_SECRET_KEY: str = Field(
        default="change-me",
        description="HMAC secret used to sign access tokens.",
    )
    JWT_ALGORITHM: str = Field(default="HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(default=60)

    # Visibility engine
    VISIBILITY_CACHE_ENABLED: bool = Field(
        default=True,
        description=(
            "If false, team hierarchies are recomputed from the user directory on every "
            "request instead of being memoized per tenant and root user."
        ),
    )

    # Startup behavior
    RUN_MIGRATIONS_ON_STARTUP: bool = Field(
        default=True,
        description="If true, run Alembic migrations (upgrade head) at app startup.",
    )
    AUTO_SEED: bool = Field(
        default=False,
        description="If true, seed default roles, modules and role-module policies after migrations.",
    )

    # Seeding defaults
    DEFAULT_TENANT_SLUG: str = Field(default="acme")
    SEED_ADMIN_EMAIL: str = Field(default="admin@acme.com")
    SEED_ADMIN_PASSWORD: str = Field(default="change-me-now")

    # Environment label
    ENVIRONMENT: Optional[str] = Field(
        default=None, description="Environment label (dev/test/prod)"
    )

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def _parse_cors_origins(cls, v):
        """
        Accept both JSON array format and comma-separated formats for CORS origins.
        """
        if v is None:
            return ["*"]
        if isinstance(v, str):
            parts = [p.strip() for p in v.split(",") if p.strip()]
            return parts or ["*"]
        if isinstance(v, list):
            return v or ["*"]
        return ["*"]


# PUBLIC_INTERFACE
def get_app_settings() -> AppSettings:
    """
    Return a new AppSettings instance populated from environment variables.

    Note:
      A new instance is built on each call so tests can patch the environment.
    """
    return AppSettings()
