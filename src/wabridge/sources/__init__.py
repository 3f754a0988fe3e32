"""Messaging transports for wabridge."""

from typing import Any

from wabridge.sources.base import (
    ConnectionUpdateCallback,
    CredentialsCallback,
    FileCredentialTransport,
    MessageBatchCallback,
    Transport,
    TransportSession,
)
from wabridge.sources.mock import MockSession, MockTransport

__all__ = [
    "ConnectionUpdateCallback",
    "CredentialsCallback",
    "FileCredentialTransport",
    "MessageBatchCallback",
    "MockSession",
    "MockTransport",
    "Transport",
    "TransportSession",
    # Lazy imports for optional transports
    "NeonizeTransport",
]


def __getattr__(name: str) -> Any:
    """Lazy import for optional transports."""
    if name == "NeonizeTransport":
        from wabridge.sources.neonize import NeonizeTransport

        return NeonizeTransport
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
