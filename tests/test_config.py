"""Tests for settings and logging helpers"""
import pytest

from storefront.config import DEFAULT_ALLOWED_COUNTRIES, Settings, get_settings
from storefront.errors import (
    ConfigurationError,
    NotFoundError,
    SignatureError,
    UpstreamError,
    ValidationError,
)
from storefront.logging import describe_secret, sanitize_id_for_logging, sanitize_string_for_logging
from storefront.routers.deps import reset_services


@pytest.fixture
def clean_env(monkeypatch):
    for name in (
        "STRIPE_SECRET_KEY", "STRIPE_PUBLISHABLE_KEY", "STRIPE_WEBHOOK_SECRET", "FRONTEND_URL",
        "ALLOWED_COUNTRIES", "STRIPE_TIMEOUT_SECONDS", "RATE_LIMIT_MAX_REQUESTS",
        "RATE_LIMIT_WINDOW_SECONDS", "STATIC_DIR", "CORS_ORIGINS",
    ):
        monkeypatch.delenv(name, raising=False)
    yield monkeypatch
    reset_services()


def test_defaults(clean_env):
    """Test defaults."""
    settings = Settings.from_env()
    assert settings.stripe_secret_key == ""
    assert settings.base_url == "http://localhost:3000"
    assert settings.allowed_countries == DEFAULT_ALLOWED_COUNTRIES
    assert settings.rate_limit_max_requests == 100
    assert settings.rate_limit_window_seconds == 900
    assert settings.cors_origins == ("*",)


def test_from_env(clean_env):
    """Test from env."""
    clean_env.setenv("STRIPE_SECRET_KEY", "sk_test_x")
    clean_env.setenv("FRONTEND_URL", "https://art.example.com/")
    clean_env.setenv("ALLOWED_COUNTRIES", "fr, be ,")
    clean_env.setenv("RATE_LIMIT_MAX_REQUESTS", "not-a-number")
    clean_env.setenv("CORS_ORIGINS", "https://a.example.com, https://b.example.com")

    settings = Settings.from_env()

    assert settings.stripe_secret_key == "sk_test_x"
    assert settings.base_url == "https://art.example.com"
    assert settings.allowed_countries == ("FR", "BE")
    assert settings.rate_limit_max_requests == 100
    assert settings.cors_origins == ("https://a.example.com", "https://b.example.com")


def test_get_settings_cached(clean_env):
    """Test get settings cached."""
    reset_services()
    clean_env.setenv("STRIPE_PUBLISHABLE_KEY", "pk_test_first")
    first = get_settings()
    clean_env.setenv("STRIPE_PUBLISHABLE_KEY", "pk_test_second")
    assert get_settings() is first

    reset_services()
    assert get_settings().stripe_publishable_key == "pk_test_second"


@pytest.mark.parametrize("error,status,reason", [
    (ValidationError("bad"), 400, "invalid_request"),
    (NotFoundError("missing"), 404, "not_found"),
    (ConfigurationError(), 500, "not_configured"),
    (UpstreamError(), 500, "upstream_error"),
    (SignatureError("nope"), 400, "invalid_signature"),
])
def test_error_taxonomy(error, status, reason):
    """Test error taxonomy."""
    assert error.status_code == status
    assert error.to_dict()["reason"] == reason
    assert error.to_dict()["error"] == error.message


def test_sanitize_id_for_logging():
    """Test sanitize id for logging."""
    assert sanitize_id_for_logging(None) == "N/A"
    assert sanitize_id_for_logging("cs_test_a1b2c3d4e5f6g7h8") == "cs_test_a1b2c3d4"


@pytest.mark.parametrize("value,expected", [
    ("", "MISSING"),
    (None, "MISSING"),
    ("sk_test_abc", "configured (test)"),
    ("pk_live_abc", "configured (live)"),
    ("whsec_abc", "configured"),
])
def test_describe_secret(value, expected):
    """Test key descriptions never include the key."""
    assert describe_secret(value) == expected


def test_sanitize_string_for_logging():
    """Test sanitize string for logging."""
    assert sanitize_string_for_logging("line1\nline2") == "line1\\nline2"
    assert sanitize_string_for_logging("x" * 60) == "x" * 50 + "..."
    assert sanitize_string_for_logging("") == "N/A"
