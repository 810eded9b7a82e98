"""
ReviewPulse Configuration Module
================================

Centralized configuration management using environment variables.
Supports both .env files and system environment variables.

Environment Variables:
    LOG_LEVEL: Root log level (default: INFO)
    LOG_JSON: Emit JSON log lines (default: false)
    LOG_FILE: Optional rotating log file path
    LOG_MODULE_LEVELS: Per-logger levels, e.g. "src.cache=DEBUG,src.alerts=WARNING"

    CACHE_ENABLED: Memoize computed summaries (default: true)
    CACHE_TTL_SECONDS: Summary cache lifetime (default: 600)
    CACHE_PREFIX: Cache key prefix (default: reviewpulse)
    REDIS_URL: Full Redis URL; overrides the host/port/db/password settings
    REDIS_HOST / REDIS_PORT / REDIS_DB / REDIS_PASSWORD

    ALERT_STORE_PATH: JSON file holding alert history and rules (in-memory if unset)
    THRESHOLDS_FILE: JSON threshold overrides (built-in defaults if unset)

    HEALTH_WEIGHT_RATING: Rating weight of the health score (default: 0.4)
    HEALTH_WEIGHT_SENTIMENT: Sentiment weight (default: 0.3)
    HEALTH_WEIGHT_RESPONSE: Response-rate weight (default: 0.3)
    HEALTH_NEGATIVE_PENALTY: Negative-sentiment penalty (default: 0.5)

    SLACK_WEBHOOK_URL: Slack incoming webhook
    ENABLE_NOTIFICATIONS: Enable Slack delivery (default: false)
    SMTP_HOST / SMTP_PORT / SMTP_USER / SMTP_PASSWORD / SMTP_SENDER
    ALERT_EMAIL_RECIPIENTS: Comma-separated default recipients
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from ..analytics.analytics_config import HealthWeights
from ..core.errors import ConfigError


# Load environment variables from .env file if present
env_path = Path(__file__).parent.parent.parent / ".env"
if env_path.exists():
    load_dotenv(env_path)


def get_env(key: str, default: Optional[str] = None, required: bool = False) -> Optional[str]:
    """
    Get environment variable with optional default and required validation.

    Raises:
        ValueError: If required=True and variable is not set
    """
    value = os.getenv(key, default)
    if required and value is None:
        raise ValueError(f"Required environment variable '{key}' is not set")
    return value


def get_env_int(key: str, default: int) -> int:
    """Get environment variable as integer."""
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"Environment variable '{key}' must be an integer, got: {value}")


def get_env_float(key: str, default: float) -> float:
    """Get environment variable as float."""
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"Environment variable '{key}' must be a float, got: {value}")


def get_env_bool(key: str, default: bool) -> bool:
    """Get environment variable as boolean."""
    value = os.getenv(key)
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


def get_env_list(key: str) -> List[str]:
    """Comma-separated environment variable as a list of non-empty items."""
    value = os.getenv(key, "")
    return [item.strip() for item in value.split(",") if item.strip()]


@dataclass
class LoggingConfig:
    level: str = field(default_factory=lambda: get_env("LOG_LEVEL", "INFO"))
    json_output: bool = field(default_factory=lambda: get_env_bool("LOG_JSON", False))
    log_file: Optional[str] = field(default_factory=lambda: get_env("LOG_FILE"))
    module_levels: str = field(default_factory=lambda: get_env("LOG_MODULE_LEVELS", ""))

    def __post_init__(self):
        if self.level.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ConfigError(f"Invalid LOG_LEVEL: {self.level}")


@dataclass
class CacheConfig:
    """Summary cache (Redis with in-memory fallback)."""

    enabled: bool = field(default_factory=lambda: get_env_bool("CACHE_ENABLED", True))
    ttl_seconds: int = field(default_factory=lambda: get_env_int("CACHE_TTL_SECONDS", 600))
    prefix: str = field(default_factory=lambda: get_env("CACHE_PREFIX", "reviewpulse"))

    redis_url: Optional[str] = field(default_factory=lambda: get_env("REDIS_URL"))
    host: Optional[str] = field(default_factory=lambda: get_env("REDIS_HOST"))
    port: int = field(default_factory=lambda: get_env_int("REDIS_PORT", 6379))
    db: int = field(default_factory=lambda: get_env_int("REDIS_DB", 0))
    password: Optional[str] = field(default_factory=lambda: get_env("REDIS_PASSWORD"))

    def __post_init__(self):
        if self.ttl_seconds <= 0:
            raise ConfigError("CACHE_TTL_SECONDS must be positive")

    @property
    def url(self) -> Optional[str]:
        """Redis URL, or None when no Redis is configured (memory only)."""
        if self.redis_url:
            return self.redis_url
        if not self.host:
            return None
        auth = f":{self.password}@" if self.password else ""
        return f"redis://{auth}{self.host}:{self.port}/{self.db}"


@dataclass
class AlertConfig:
    store_path: Optional[str] = field(default_factory=lambda: get_env("ALERT_STORE_PATH"))
    thresholds_file: Optional[str] = field(default_factory=lambda: get_env("THRESHOLDS_FILE"))


@dataclass
class HealthConfig:
    rating_weight: float = field(default_factory=lambda: get_env_float("HEALTH_WEIGHT_RATING", 0.4))
    sentiment_weight: float = field(default_factory=lambda: get_env_float("HEALTH_WEIGHT_SENTIMENT", 0.3))
    response_weight: float = field(default_factory=lambda: get_env_float("HEALTH_WEIGHT_RESPONSE", 0.3))
    negative_penalty: float = field(default_factory=lambda: get_env_float("HEALTH_NEGATIVE_PENALTY", 0.5))

    def weights(self) -> HealthWeights:
        """Raises ConfigError when the weights do not sum to 1."""
        return HealthWeights(
            rating=self.rating_weight,
            sentiment=self.sentiment_weight,
            response=self.response_weight,
            negative_penalty=self.negative_penalty,
        )


@dataclass
class NotificationConfig:
    slack_webhook_url: str = field(default_factory=lambda: get_env("SLACK_WEBHOOK_URL", ""))
    slack_enabled: bool = field(default_factory=lambda: get_env_bool("ENABLE_NOTIFICATIONS", False))

    smtp_host: str = field(default_factory=lambda: get_env("SMTP_HOST", ""))
    smtp_port: int = field(default_factory=lambda: get_env_int("SMTP_PORT", 587))
    smtp_user: str = field(default_factory=lambda: get_env("SMTP_USER", ""))
    smtp_password: str = field(default_factory=lambda: get_env("SMTP_PASSWORD", ""))
    smtp_sender: str = field(default_factory=lambda: get_env("SMTP_SENDER", "alerts@reviewpulse.local"))
    email_recipients: List[str] = field(default_factory=lambda: get_env_list("ALERT_EMAIL_RECIPIENTS"))


@dataclass
class AppConfig:
    """Main application configuration container."""

    logging: LoggingConfig = field(default_factory=LoggingConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    alerts: AlertConfig = field(default_factory=AlertConfig)
    health: HealthConfig = field(default_factory=HealthConfig)
    notifications: NotificationConfig = field(default_factory=NotificationConfig)


def load_config() -> AppConfig:
    """Read the configuration from the environment. Raises ValueError on bad values."""
    return AppConfig()
