"""Centralized, typed configuration using pydantic-settings.

Provides a single ``Settings`` class backed by ``.env`` file and environment
variables, a cached ``get_settings()`` accessor, and a ``validate_credentials()``
startup gate that enforces credential presence in production mode.

IMPORTANT: This module has ZERO imports from the ``dealflow`` package to
prevent circular imports.  Only stdlib, pydantic, pydantic_settings, and
structlog are used.
"""

from __future__ import annotations

import sys
from decimal import Decimal
from functools import lru_cache
from pathlib import Path
from typing import Literal

import structlog
from pydantic import SecretStr, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = structlog.get_logger()


class Settings(BaseSettings):
    """Application settings loaded from environment variables and ``.env`` file.

    ``SecretStr`` fields prevent accidental leaks in logs or error output.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # -- General ---------------------------------------------------------------
    production: bool = False
    port: int = 8000
    public_app_url: str = "http://localhost:5173"

    # -- Persistence -----------------------------------------------------------
    database_path: Path = Path("data/dealflow.db")
    audit_db_path: Path = Path("data/audit.db")

    # -- Blob storage ----------------------------------------------------------
    blob_backend: Literal["local", "supabase"] = "local"
    blob_local_root: Path = Path("data/blobs")
    blob_public_base_url: str = "http://localhost:8000/files"
    supabase_url: str = ""
    supabase_service_key: SecretStr = SecretStr("")
    contracts_bucket: str = "creator-assets"

    # -- Email (Resend) --------------------------------------------------------
    resend_api_key: SecretStr = SecretStr("")
    email_from: str = "Dealflow <noreply@dealflow.local>"
    ops_email: str = ""

    # -- Sessions --------------------------------------------------------------
    session_secret: SecretStr = SecretStr("")
    session_algorithm: str = "HS256"

    # -- Tokens and OTP --------------------------------------------------------
    action_token_ttl_days: int = 7
    signing_token_ttl_days: int = 7
    otp_ttl_minutes: int = 10
    otp_max_attempts: int = 5
    otp_resend_cooldown_seconds: int = 30

    # -- Counter suggestions ---------------------------------------------------
    counter_min_lead_days: int = 10
    low_barter_value_threshold: Decimal = Decimal("1000")
    budget_uplift: Decimal = Decimal("1.2")

    # -- Observability ---------------------------------------------------------
    sentry_dsn: str = ""
    sentry_environment: str = "development"


@lru_cache
def get_settings() -> Settings:
    """Return a cached ``Settings`` instance.

    The ``@lru_cache`` decorator ensures environment variables are parsed
    exactly once.  Call ``get_settings.cache_clear()`` in tests to reset.

    Returns:
        The application ``Settings``.
    """
    try:
        return Settings()
    except ValidationError as exc:
        # Log only the structured errors list -- never the full exception
        # which may contain raw SecretStr values.
        logger.error("settings_validation_failed", errors=exc.errors())
        sys.exit(1)


def validate_credentials(settings: Settings) -> None:
    """Enforce credential presence at startup.

    In **production** mode (``settings.production is True``), the application
    exits with a clear error block if any required credential is missing.

    In **development** mode, each missing credential is logged as a warning
    but the application continues to start.

    Args:
        settings: The loaded application settings.
    """
    errors: list[str] = []

    if not settings.session_secret.get_secret_value():
        errors.append("SESSION_SECRET is empty or not set")

    if not settings.resend_api_key.get_secret_value():
        errors.append("RESEND_API_KEY is empty or not set")

    if settings.blob_backend == "supabase":
        if not settings.supabase_url:
            errors.append("SUPABASE_URL is empty or not set")
        if not settings.supabase_service_key.get_secret_value():
            errors.append("SUPABASE_SERVICE_KEY is empty or not set")

    if not errors:
        logger.info("credential_validation_passed")
        return

    if settings.production:
        for err in errors:
            logger.error("credential_missing", detail=err)
        print("\n=== STARTUP FAILED ===", file=sys.stderr)
        print("Missing required credentials for production mode:", file=sys.stderr)
        for err in errors:
            print(f"  - {err}", file=sys.stderr)
        print("======================\n", file=sys.stderr)
        sys.exit(1)
    else:
        for err in errors:
            logger.warning("credential_missing_dev", detail=err)
