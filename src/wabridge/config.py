"""Environment-sourced configuration."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import ClassVar

from pydantic import BaseModel, Field, ValidationError, field_validator

from wabridge.core.errors import ConfigError
from wabridge.models.connection import ReconnectPolicy
from wabridge.models.enums import UnresolvedPolicy
from wabridge.providers.http.config import WebhookConfig

DEFAULT_WEBHOOK_URL = "http://localhost:3000/api/auth/whatsapp/webhook"

# pino level names accepted alongside the stdlib ones
_LEVEL_ALIASES = {"TRACE": "DEBUG", "WARN": "WARNING", "FATAL": "CRITICAL"}

# Turns all logging off, critical records included
SILENT = "SILENT"


class BridgeConfig(BaseModel):
    """Runtime configuration for the bridge.

    Every field has a default; :meth:`from_env` overrides them from the
    ``WA_*`` environment variables listed in :attr:`ENV_VARS`.
    """

    ENV_VARS: ClassVar[dict[str, str]] = {
        "webhook_url": "WA_WEBHOOK_URL",
        "session_dir": "WA_SESSION_DIR",
        "identity_cache_path": "WA_IDENTITY_CACHE",
        "log_level": "WA_LOG_LEVEL",
        "require_code": "WA_REQUIRE_CODE",
        "unresolved_policy": "WA_UNRESOLVED_POLICY",
        "reset_identities_on_logout": "WA_RESET_IDENTITIES_ON_LOGOUT",
        "forward_own_messages": "WA_FORWARD_OWN_MESSAGES",
        "directory_lookup": "WA_DIRECTORY_LOOKUP",
        "reconnect_delay": "WA_RECONNECT_DELAY",
        "max_reconnect_attempts": "WA_MAX_RECONNECT_ATTEMPTS",
        "keepalive_interval": "WA_KEEPALIVE_INTERVAL",
        "webhook_timeout": "WA_WEBHOOK_TIMEOUT",
        "device_name": "WA_DEVICE_NAME",
    }

    webhook_url: str = DEFAULT_WEBHOOK_URL
    session_dir: Path = Path("./data/session")
    identity_cache_path: Path = Path("./data/lid-map.json")
    log_level: str = "INFO"
    require_code: bool = True
    unresolved_policy: UnresolvedPolicy = UnresolvedPolicy.FORWARD_DEGRADED
    reset_identities_on_logout: bool = False
    forward_own_messages: bool = False
    directory_lookup: bool = False
    reconnect_delay: float = Field(default=3.0, ge=0.0)
    max_reconnect_attempts: int | None = Field(default=None, ge=0)
    keepalive_interval: float = Field(default=20.0, gt=0.0)
    webhook_timeout: float = Field(default=5.0, gt=0.0)
    device_name: str = "wabridge"

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        level = _LEVEL_ALIASES.get(level, level)
        if level == SILENT:
            return level
        if not isinstance(logging.getLevelNamesMapping().get(level), int):
            raise ValueError(f"unknown log level {v!r}")
        return level

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> BridgeConfig:
        """Build a config from ``WA_*`` variables; blank values keep the default.

        Raises:
            ConfigError: A variable holds an invalid value.
        """
        env = os.environ if environ is None else environ
        values = {
            field: env[var] for field, var in cls.ENV_VARS.items() if env.get(var, "").strip()
        }
        try:
            return cls.model_validate(values)
        except ValidationError as exc:
            raise ConfigError(str(exc)) from exc

    def webhook(self) -> WebhookConfig:
        try:
            return WebhookConfig(webhook_url=self.webhook_url, timeout=self.webhook_timeout)
        except ValidationError as exc:
            raise ConfigError(str(exc)) from exc

    def reconnect_policy(self) -> ReconnectPolicy:
        return ReconnectPolicy(
            base_delay_seconds=self.reconnect_delay,
            max_retries=self.max_reconnect_attempts,
        )
