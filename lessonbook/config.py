"""
Centralized configuration with environment variable overrides.

Backend endpoints, checkout thresholds, pricing constants, and storage
locations are configurable here. Nothing is hardcoded in wizard or
resolver logic.
"""

import logging
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from lessonbook.logging_context import configure_logging

load_dotenv()

logger = logging.getLogger(__name__)


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


def _safe_float(env_var: str, default: str) -> float:
    """Parse a float from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return float(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid float for {env_var}: {raw!r}"
        ) from None


@dataclass(frozen=True)
class BackendConfig:
    """REST backend connection settings."""

    api_base_url: str = os.getenv("API_BASE_URL", "http://localhost:5001/api")
    timeout_seconds: float = _safe_float("API_TIMEOUT_SECONDS", "30.0")


@dataclass(frozen=True)
class CheckoutConfig:
    """Checkout thresholds and pricing constants."""

    session_ttl_hours: int = _safe_int("SESSION_TTL_HOURS", "24")
    verification_poll_seconds: float = _safe_float("VERIFICATION_POLL_SECONDS", "5.0")
    processing_fee_rate: float = _safe_float("PROCESSING_FEE_RATE", "0.03")
    currency: str = os.getenv("CURRENCY", "aud")
    default_hourly_rate: float = _safe_float("DEFAULT_HOURLY_RATE", "80")
    min_password_length: int = _safe_int("MIN_PASSWORD_LENGTH", "6")
    availability_window_days: int = _safe_int("AVAILABILITY_WINDOW_DAYS", "60")
    installment_count: int = _safe_int("INSTALLMENT_COUNT", "4")
    instructor_timezone: str = os.getenv("INSTRUCTOR_TIMEZONE", "Australia/Brisbane")


@dataclass(frozen=True)
class StorageConfig:
    """Durable client-side storage locations."""

    session_dir: str = os.getenv("SESSION_STORAGE_DIR", ".lessonbook")
    checkout_key: str = os.getenv("CHECKOUT_STORAGE_KEY", "booking_flow_state")
    auth_key: str = os.getenv("AUTH_STORAGE_KEY", "eazydriving_session")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    backend: BackendConfig = field(default_factory=BackendConfig)
    checkout: CheckoutConfig = field(default_factory=CheckoutConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    if not config.backend.api_base_url.startswith(("http://", "https://")):
        raise ValueError(
            f"API_BASE_URL must be an http(s) URL, got {config.backend.api_base_url!r}"
        )
    if config.backend.timeout_seconds <= 0:
        raise ValueError(
            f"API_TIMEOUT_SECONDS must be > 0, got {config.backend.timeout_seconds}"
        )
    if config.checkout.session_ttl_hours < 1:
        raise ValueError(
            f"SESSION_TTL_HOURS must be >= 1, got {config.checkout.session_ttl_hours}"
        )
    if config.checkout.verification_poll_seconds <= 0:
        raise ValueError(
            "VERIFICATION_POLL_SECONDS must be > 0, "
            f"got {config.checkout.verification_poll_seconds}"
        )
    if not 0.0 <= config.checkout.processing_fee_rate < 1.0:
        raise ValueError(
            "PROCESSING_FEE_RATE must be between 0.0 and 1.0, "
            f"got {config.checkout.processing_fee_rate}"
        )
    if config.checkout.default_hourly_rate <= 0:
        raise ValueError(
            f"DEFAULT_HOURLY_RATE must be > 0, got {config.checkout.default_hourly_rate}"
        )
    if config.checkout.min_password_length < 1:
        raise ValueError(
            f"MIN_PASSWORD_LENGTH must be >= 1, got {config.checkout.min_password_length}"
        )
    if config.checkout.availability_window_days < 1:
        raise ValueError(
            "AVAILABILITY_WINDOW_DAYS must be >= 1, "
            f"got {config.checkout.availability_window_days}"
        )
    if config.checkout.installment_count < 1:
        raise ValueError(
            f"INSTALLMENT_COUNT must be >= 1, got {config.checkout.installment_count}"
        )


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    configure_logging(config.log_level)
    logger.debug("Configuration loaded for backend '%s'", config.backend.api_base_url)
    return config


# Singleton instance
settings = load_config()
