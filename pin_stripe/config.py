"""Stripe client and webhook configuration.

Settings are loaded once by the host application and passed explicitly to
``StripeClient.from_settings()`` / ``WebhookGateway.from_settings()``.  Library
components never read the environment on their own.
"""

from __future__ import annotations

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings

from pin_stripe.errors import ConfigurationError

WEBHOOK_SECRET_PREFIX = "whsec_"

_TEST_KEY_PREFIXES = ("sk_test_", "rk_test_")
_LIVE_KEY_PREFIXES = ("sk_live_", "rk_live_")


class StripeSettings(BaseSettings):
    """Environment-driven settings (``STRIPE_*``)."""

    api_key: str = Field(
        default="",
        validation_alias=AliasChoices("STRIPE_API_KEY", "STRIPE_SECRET_KEY"),
    )
    webhook_secret: str = ""
    base_url: str = "https://api.stripe.com"
    api_version: str | None = None
    timeout_seconds: float = 30.0
    list_limit: int | None = None
    webhook_tolerance_seconds: int = 300

    model_config = {
        "env_prefix": "STRIPE_",
        "env_file": ".env",
        "extra": "ignore",
        "populate_by_name": True,
    }

    @field_validator("webhook_secret")
    @classmethod
    def _check_webhook_secret(cls, value: str) -> str:
        # Empty means "webhooks not configured"; anything else must look like a secret.
        if value and not value.startswith(WEBHOOK_SECRET_PREFIX):
            raise ValueError(f"webhook_secret must start with {WEBHOOK_SECRET_PREFIX!r}")
        return value

    @field_validator("timeout_seconds")
    @classmethod
    def _check_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("timeout_seconds must be > 0")
        return value

    @field_validator("list_limit")
    @classmethod
    def _check_list_limit(cls, value: int | None) -> int | None:
        if value is not None and not 1 <= value <= 100:
            raise ValueError("list_limit must be between 1 and 100")
        return value


def api_key_mode(api_key: str) -> str | None:
    """Return ``"test"`` or ``"live"`` for a secret/restricted key, else None."""
    if api_key.startswith(_TEST_KEY_PREFIXES):
        return "test"
    if api_key.startswith(_LIVE_KEY_PREFIXES):
        return "live"
    return None


def ensure_test_mode_key(api_key: str | None) -> str:
    """Guard for tooling that writes to the account (fixture generation, seeding).

    Raises:
        ConfigurationError: no key, a live-mode key, or an unrecognized format.
    """
    if not api_key:
        raise ConfigurationError(
            "No Stripe API key configured. Set STRIPE_API_KEY or STRIPE_SECRET_KEY."
        )
    mode = api_key_mode(api_key)
    if mode == "live":
        raise ConfigurationError(
            "DANGER: Live mode API key detected. Only test mode keys (sk_test_...) are allowed."
        )
    if mode is None:
        raise ConfigurationError("Invalid API key format. Expected a key starting with sk_test_.")
    return api_key
