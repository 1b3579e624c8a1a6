"""Tests for centralized Settings, credential validation, and get_settings cache.

Covers: defaults, env-override, production credential gate, dev-mode warnings,
and lru_cache behavior.
"""

from __future__ import annotations

from decimal import Decimal
from pathlib import Path

import pytest

from dealflow.config import Settings, get_settings, validate_credentials

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _clear_settings_cache() -> None:
    """Clear get_settings lru_cache before each test."""
    get_settings.cache_clear()


def _production(**overrides) -> Settings:
    values = {
        "production": True,
        "session_secret": "s3cret",
        "resend_api_key": "re_live",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)  # type: ignore[call-arg]


# ---------------------------------------------------------------------------
# Settings defaults
# ---------------------------------------------------------------------------


class TestSettingsDefaults:
    def test_settings_defaults(self) -> None:
        s = Settings(_env_file=None)  # type: ignore[call-arg]

        assert s.production is False
        assert s.port == 8000
        assert s.database_path == Path("data/dealflow.db")
        assert s.audit_db_path == Path("data/audit.db")
        assert s.blob_backend == "local"
        assert s.contracts_bucket == "creator-assets"
        assert s.action_token_ttl_days == 7
        assert s.otp_ttl_minutes == 10
        assert s.otp_max_attempts == 5
        assert s.otp_resend_cooldown_seconds == 30
        assert s.budget_uplift == Decimal("1.2")

    def test_settings_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PRODUCTION", "true")
        monkeypatch.setenv("PORT", "9090")
        monkeypatch.setenv("RESEND_API_KEY", "re_test")
        monkeypatch.setenv("BLOB_BACKEND", "supabase")

        s = Settings(_env_file=None)  # type: ignore[call-arg]

        assert s.production is True
        assert s.port == 9090
        assert s.resend_api_key.get_secret_value() == "re_test"
        assert s.blob_backend == "supabase"

    def test_secrets_are_masked(self) -> None:
        s = Settings(_env_file=None, session_secret="s3cret")  # type: ignore[call-arg]
        assert "s3cret" not in repr(s)


# ---------------------------------------------------------------------------
# Credential validation
# ---------------------------------------------------------------------------


class TestValidateCredentials:
    def test_production_missing_exits(self, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit) as exc_info:
            validate_credentials(_production(session_secret=""))
        assert exc_info.value.code == 1
        assert "SESSION_SECRET" in capsys.readouterr().err

    def test_production_valid(self) -> None:
        validate_credentials(_production())

    def test_supabase_requires_keys(self, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit):
            validate_credentials(_production(blob_backend="supabase"))
        err = capsys.readouterr().err
        assert "SUPABASE_URL" in err
        assert "SUPABASE_SERVICE_KEY" in err

    def test_supabase_configured(self) -> None:
        validate_credentials(
            _production(
                blob_backend="supabase",
                supabase_url="https://x.supabase.co",
                supabase_service_key="k",
            )
        )

    def test_development_only_warns(self) -> None:
        validate_credentials(Settings(_env_file=None))  # type: ignore[call-arg]


# ---------------------------------------------------------------------------
# get_settings cache
# ---------------------------------------------------------------------------


class TestGetSettings:
    def test_is_cached(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.chdir(tmp_path)
        assert get_settings() is get_settings()

    def test_invalid_env_exits(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("PORT", "not-a-number")
        with pytest.raises(SystemExit):
            get_settings()
