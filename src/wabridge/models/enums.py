"""All string and integer enums for wabridge."""

from __future__ import annotations

from enum import IntEnum, StrEnum, unique


@unique
class JidKind(StrEnum):
    CANONICAL = "canonical"
    ALIAS = "alias"
    GROUP = "group"
    BROADCAST = "broadcast"
    UNKNOWN = "unknown"


@unique
class ResolutionStatus(StrEnum):
    RESOLVED = "resolved"
    CACHED = "cached"
    DEGRADED = "degraded"
    SKIPPED = "skipped"


@unique
class UnresolvedPolicy(StrEnum):
    """What to do with an alias no heuristic could resolve."""

    FORWARD_DEGRADED = "forward-degraded"
    DROP_UNRESOLVED = "drop-unresolved"


@unique
class ConnectionState(StrEnum):
    STOPPED = "stopped"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


@unique
class DisconnectReason(IntEnum):
    """Close status codes surfaced by the transport.

    Only ``LOGGED_OUT`` is terminal for a session; every other code is
    treated as a transient drop and recovered by reconnecting.
    """

    CONNECTION_CLOSED = 428
    CONNECTION_LOST = 408
    CONNECTION_REPLACED = 440
    LOGGED_OUT = 401
    BAD_SESSION = 500
    RESTART_REQUIRED = 515
    MULTIDEVICE_MISMATCH = 411
    FORBIDDEN = 403
    UNAVAILABLE_SERVICE = 503
