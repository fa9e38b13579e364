"""Gateway configuration resolved once from the environment.

Configuration is read at process start (after loading a .env file if one is
present) and frozen. Components receive the GatewayConfig instance explicitly;
nothing below the HTTP layer reads os.environ on its own.

Environment Variables:
    - API_KEY: The single accepted credential. Unset or empty means no key is
      configured (development bypass or always-reject, see src.auth.auth)
    - APP_ENV: Runtime mode; falls back to NODE_ENV. "development" enables the
      development conveniences
    - RATE_LIMIT_WINDOW_MS: Sliding window length (default 900000)
    - RATE_LIMIT_MAX_REQUESTS: Requests admitted per window (default 100)
    - GLOBAL_RATE_LIMIT_ENABLED: Per-IP throttle in front of all routes
    - ALLOWED_ORIGINS: Comma-separated CORS origins; "*" entries are prefixes
    - LOG_LEVEL: Logging level name (default INFO)
    - API_HOST / API_PORT / API_RELOAD: uvicorn settings for __main__

Dependencies:
    - pydantic: Frozen settings model
    - python-dotenv: .env loading
    - structlog: Warnings for unusable values
"""

import os
from collections.abc import Mapping
from typing import Optional

import structlog
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

from .security.redaction import DEFAULT_SENSITIVE_FIELDS

logger = structlog.get_logger()

DEFAULT_RATE_LIMIT_WINDOW_MS = 15 * 60 * 1000
DEFAULT_RATE_LIMIT_MAX_REQUESTS = 100
DEFAULT_ALLOWED_ORIGINS = ("http://localhost:3000", "chrome-extension://*")
DEVELOPMENT = "development"


def _positive_int(env: Mapping[str, str], name: str, default: int) -> int:
    """Parse a positive integer setting, falling back to the default."""
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Ignoring non-numeric setting", setting=name, value=raw, default=default)
        return default
    if value <= 0:
        logger.warning("Ignoring non-positive setting", setting=name, value=value, default=default)
        return default
    return value


def _flag(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class GatewayConfig(BaseModel):
    """Read-only gateway settings.

    Attributes:
        valid_api_key: Configured credential, None when unset
        environment: Runtime mode name ("development", "production", ...)
        rate_limit_window_ms: Sliding window size in milliseconds
        rate_limit_max_requests: Requests admitted per key per window
        global_rate_limit_enabled: Enables the per-IP throttle on every route
        allowed_origins: CORS origins; entries containing "*" match by prefix
        sensitive_fields: Body fields replaced with a placeholder in logs
        log_level: Logging level name
    """

    model_config = ConfigDict(frozen=True)

    valid_api_key: Optional[str] = None
    environment: str = "production"
    rate_limit_window_ms: int = Field(DEFAULT_RATE_LIMIT_WINDOW_MS, gt=0)
    rate_limit_max_requests: int = Field(DEFAULT_RATE_LIMIT_MAX_REQUESTS, gt=0)
    global_rate_limit_enabled: bool = True
    allowed_origins: tuple[str, ...] = DEFAULT_ALLOWED_ORIGINS
    sensitive_fields: frozenset[str] = DEFAULT_SENSITIVE_FIELDS
    log_level: str = "INFO"

    @property
    def development_mode(self) -> bool:
        return self.environment == DEVELOPMENT

    @property
    def has_api_key(self) -> bool:
        return bool(self.valid_api_key)

    @property
    def rate_limit_window_seconds(self) -> int:
        """Window length rounded to whole seconds, as shown to clients."""
        return round(self.rate_limit_window_ms / 1000)

    @property
    def global_rate_limit(self) -> str:
        """slowapi limit string for the per-IP throttle."""
        seconds = max(1, self.rate_limit_window_seconds)
        return f"{self.rate_limit_max_requests} per {seconds} seconds"

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "GatewayConfig":
        """Build the configuration from environment variables.

        Args:
            env: Mapping to read instead of os.environ (tests pass dicts here)

        Returns:
            GatewayConfig: Frozen configuration
        """
        if env is None:
            load_dotenv()
            env = os.environ

        origins = env.get("ALLOWED_ORIGINS")
        allowed_origins = (
            tuple(o.strip() for o in origins.split(",") if o.strip())
            if origins
            else DEFAULT_ALLOWED_ORIGINS
        )

        return cls(
            valid_api_key=env.get("API_KEY") or None,
            environment=(env.get("APP_ENV") or env.get("NODE_ENV") or "production").strip().lower(),
            rate_limit_window_ms=_positive_int(env, "RATE_LIMIT_WINDOW_MS", DEFAULT_RATE_LIMIT_WINDOW_MS),
            rate_limit_max_requests=_positive_int(
                env, "RATE_LIMIT_MAX_REQUESTS", DEFAULT_RATE_LIMIT_MAX_REQUESTS
            ),
            global_rate_limit_enabled=_flag(env, "GLOBAL_RATE_LIMIT_ENABLED", True),
            allowed_origins=allowed_origins,
            log_level=(env.get("LOG_LEVEL") or "INFO").upper(),
        )


# Process-wide configuration, resolved on first use
_config: Optional[GatewayConfig] = None


def get_config() -> GatewayConfig:
    """Get the process-wide configuration (singleton pattern)."""
    global _config
    if _config is None:
        _config = GatewayConfig.from_env()
        logger.info(
            "Gateway configuration loaded",
            environment=_config.environment,
            api_key_configured=_config.has_api_key,
            rate_limit_window_ms=_config.rate_limit_window_ms,
            rate_limit_max_requests=_config.rate_limit_max_requests,
        )
    return _config


def reset_config() -> None:
    """Forget the cached configuration so the next get_config() re-reads it."""
    global _config
    _config = None
