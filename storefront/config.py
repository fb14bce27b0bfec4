"""Storefront configuration read from the environment."""
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Tuple

from storefront.logging import describe_secret, get_logger

logger = get_logger(__name__)

DEFAULT_FRONTEND_URL = "http://localhost:3000"
DEFAULT_ALLOWED_COUNTRIES: Tuple[str, ...] = ("FR", "BE", "CH", "DE", "IT", "ES", "NL", "LU")

# Single fixed currency
CURRENCY = "EUR"


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"{name}={raw!r} is not an integer, using {default}")
        return default


def _env_list(name: str, default: Tuple[str, ...]) -> Tuple[str, ...]:
    raw = os.environ.get(name)
    if not raw:
        return default
    return tuple(part.strip().upper() for part in raw.split(",") if part.strip())


@dataclass(frozen=True)
class Settings:
    """Runtime settings. Secrets may be empty; callers decide whether that is fatal."""
    stripe_secret_key: str = ""
    stripe_publishable_key: str = ""
    stripe_webhook_secret: str = ""
    frontend_url: str = DEFAULT_FRONTEND_URL
    allowed_countries: Tuple[str, ...] = DEFAULT_ALLOWED_COUNTRIES
    stripe_timeout_seconds: int = 20
    rate_limit_max_requests: int = 100
    rate_limit_window_seconds: int = 900
    static_dir: str = "static"
    cors_origins: Tuple[str, ...] = ("*",)

    @property
    def base_url(self) -> str:
        return self.frontend_url.rstrip("/")

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            stripe_secret_key=os.environ.get("STRIPE_SECRET_KEY", ""),
            stripe_publishable_key=os.environ.get("STRIPE_PUBLISHABLE_KEY", ""),
            stripe_webhook_secret=os.environ.get("STRIPE_WEBHOOK_SECRET", ""),
            frontend_url=os.environ.get("FRONTEND_URL") or DEFAULT_FRONTEND_URL,
            allowed_countries=_env_list("ALLOWED_COUNTRIES", DEFAULT_ALLOWED_COUNTRIES),
            stripe_timeout_seconds=_env_int("STRIPE_TIMEOUT_SECONDS", 20),
            rate_limit_max_requests=_env_int("RATE_LIMIT_MAX_REQUESTS", 100),
            rate_limit_window_seconds=_env_int("RATE_LIMIT_WINDOW_SECONDS", 900),
            static_dir=os.environ.get("STATIC_DIR") or "static",
            cors_origins=tuple(
                origin.strip()
                for origin in os.environ.get("CORS_ORIGINS", "*").split(",")
                if origin.strip()
            ),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get settings (read once per process)."""
    settings = Settings.from_env()
    logger.info(
        "Stripe configuration: secret key %s, publishable key %s, webhook secret %s",
        describe_secret(settings.stripe_secret_key),
        describe_secret(settings.stripe_publishable_key),
        describe_secret(settings.stripe_webhook_secret),
    )
    return settings
