"""Exception hierarchy for wabridge."""

from __future__ import annotations


class BridgeError(Exception):
    """Base exception for all wabridge errors."""


class ConfigError(BridgeError):
    """Configuration value missing or invalid."""


class StartupError(BridgeError):
    """The first session could not be established."""


class ReconnectExhaustedError(BridgeError):
    """Consecutive reconnect attempts exceeded the reconnect policy."""

    def __init__(self, attempts: int) -> None:
        super().__init__(f"Gave up reconnecting after {attempts} attempts")
        self.attempts = attempts


class TransportUnavailableError(BridgeError, ImportError):
    """The transport's optional dependency is not installed."""
