"""Config schema and accessor."""

from __future__ import annotations

import os
from typing import Any

from loguru import logger

from gymrelay.core.errors import ConfigurationError

DEFAULT_PORT = 3001
DEFAULT_WEBHOOK_URL = "https://example.com/api/webhooks/hardware"

BACKOFF_MODES = ("linear", "exponential")
BRIDGE_POLICIES = ("replace", "primary", "reject")

# (key, Config attribute, lower bound, bound itself allowed, error code)
_NUMERIC_LIMITS = (
    ("server.ping_interval", "ping_interval", 0, False, "invalid_ping_interval"),
    ("server.ping_timeout", "ping_timeout", 0, False, "invalid_ping_timeout"),
    ("server.outbound_queue_size", "outbound_queue_size", 1, True, "invalid_outbound_queue_size"),
    ("persistence.max_retries", "persistence_max_retries", 1, True, "invalid_max_retries"),
    ("persistence.timeout", "persistence_timeout", 0, False, "invalid_timeout"),
    ("persistence.base_delay", "persistence_base_delay", 0, True, "invalid_base_delay"),
    ("persistence.max_in_flight", "persistence_max_in_flight", 1, True, "invalid_max_in_flight"),
    ("persistence.drain_timeout", "persistence_drain_timeout", 0, True, "invalid_drain_timeout"),
)

# Env keys that override config (loaded once per reload)
_ENV_OVERRIDE_KEYS = (
    "HOST",
    "PORT",
    "ADMIN_SECRET",
    "WEBHOOK_URL",
    "WEBHOOK_SECRET",
)


def _load_env_overrides() -> dict[str, str]:
    """Load env overrides once per reload."""
    return {k: os.environ.get(k, "") for k in _ENV_OVERRIDE_KEYS}


def _parse_bool(val: Any) -> bool:
    if isinstance(val, str):
        return val.strip().lower() in ("1", "true", "yes", "on")
    return bool(val)


class Config:
    """Config accessor with attribute-style access for nested keys."""

    def __init__(self, data: dict[str, Any] | None = None) -> None:
        self._data = data or {}
        self._env: dict[str, str] = _load_env_overrides()

    def reload(self, data: dict[str, Any], *, validate: bool = True) -> None:
        """Replace config data and re-read env overrides."""
        self._data = data or {}
        self._env = _load_env_overrides()
        if validate:
            self._validate()
        logger.debug("Config reloaded: port={} webhook={}", self.port, self.webhook_url)

    def _validate(self) -> None:
        """Validate config; raise ConfigurationError on failure."""
        if not self.admin_secret:
            raise ConfigurationError(
                "ADMIN_SECRET is missing",
                code="missing_admin_secret",
            )
        try:
            port = self.port
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(
                "server.port must be an integer",
                code="invalid_port",
                original_error=exc,
            ) from exc
        if not 0 < port < 65536:
            raise ConfigurationError(
                f"server.port out of range: {port}",
                code="invalid_port",
                details={"port": port},
            )
        for key, attr, floor, floor_allowed, code in _NUMERIC_LIMITS:
            try:
                value = getattr(self, attr)
            except (TypeError, ValueError) as exc:
                raise ConfigurationError(
                    f"{key} must be a number",
                    code=code,
                    details={key: self.get(key)},
                    original_error=exc,
                ) from exc
            if value < floor or (value == floor and not floor_allowed):
                bound = "at least" if floor_allowed else "greater than"
                raise ConfigurationError(
                    f"{key} must be {bound} {floor}, got {value}",
                    code=code,
                    details={key: value},
                )
        if self.persistence_backoff not in BACKOFF_MODES:
            raise ConfigurationError(
                f"persistence.backoff must be one of {BACKOFF_MODES}",
                code="invalid_backoff",
                details={"backoff": self.persistence_backoff},
            )
        if self.duplicate_bridge_policy not in BRIDGE_POLICIES:
            raise ConfigurationError(
                f"presence.duplicate_bridge_policy must be one of {BRIDGE_POLICIES}",
                code="invalid_bridge_policy",
                details={"policy": self.duplicate_bridge_policy},
            )

    def get(self, key: str, default: Any = None) -> Any:
        """Get value by dot-separated path (e.g. 'persistence.max_retries')."""
        parts = key.split(".")
        obj: Any = self._data
        for part in parts:
            if isinstance(obj, dict) and part in obj:
                obj = obj[part]
            else:
                return default
        return obj

    # Server

    @property
    def host(self) -> str:
        return self._env.get("HOST") or str(self.get("server.host", "0.0.0.0"))

    @property
    def port(self) -> int:
        env_val = self._env.get("PORT", "")
        if env_val:
            return int(env_val)
        return int(self.get("server.port", DEFAULT_PORT))

    @property
    def cors_origins(self) -> list[str]:
        val = self.get("server.cors_origins")
        if isinstance(val, list):
            return [str(o) for o in val]
        return ["*"]

    @property
    def ping_interval(self) -> float:
        """Seconds between keep-alive pings."""
        return float(self.get("server.ping_interval", 25))

    @property
    def ping_timeout(self) -> float:
        """Seconds to wait for a pong before dropping a slow connection."""
        return float(self.get("server.ping_timeout", 60))

    @property
    def outbound_queue_size(self) -> int:
        """Frames buffered per connection before new ones are dropped."""
        return int(self.get("server.outbound_queue_size", 1000))

    # Auth

    @property
    def admin_secret(self) -> str:
        return self._env.get("ADMIN_SECRET") or str(self._data.get("admin_secret") or "")

    # Persistence

    @property
    def webhook_url(self) -> str:
        return self._env.get("WEBHOOK_URL") or str(self.get("persistence.url") or DEFAULT_WEBHOOK_URL)

    @property
    def webhook_secret(self) -> str:
        return self._env.get("WEBHOOK_SECRET") or str(self.get("persistence.secret") or "")

    @property
    def persistence_max_retries(self) -> int:
        return int(self.get("persistence.max_retries", 3))

    @property
    def persistence_timeout(self) -> float:
        return float(self.get("persistence.timeout", 5.0))

    @property
    def persistence_base_delay(self) -> float:
        return float(self.get("persistence.base_delay", 1.0))

    @property
    def persistence_backoff(self) -> str:
        return str(self.get("persistence.backoff", "linear")).lower()

    @property
    def persistence_max_in_flight(self) -> int:
        return int(self.get("persistence.max_in_flight", 100))

    @property
    def persistence_drain_timeout(self) -> float:
        return float(self.get("persistence.drain_timeout", 10.0))

    # Presence / relay

    @property
    def duplicate_bridge_policy(self) -> str:
        return str(self.get("presence.duplicate_bridge_policy", "replace")).lower()

    @property
    def strict_validation(self) -> bool:
        return _parse_bool(self.get("relay.strict_validation", False))


cfg: Config = Config({})
