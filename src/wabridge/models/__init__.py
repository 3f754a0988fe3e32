"""Pydantic models and enums shared across wabridge."""

from wabridge.models.connection import ConnectionUpdate, ReconnectPolicy
from wabridge.models.enums import (
    ConnectionState,
    DisconnectReason,
    JidKind,
    ResolutionStatus,
    UnresolvedPolicy,
)
from wabridge.models.identity import Jid, Resolution
from wabridge.models.message import (
    ForwardRequest,
    ForwardResult,
    InboundMessage,
    MessageContent,
)

__all__ = [
    "ConnectionState",
    "ConnectionUpdate",
    "DisconnectReason",
    "ForwardRequest",
    "ForwardResult",
    "InboundMessage",
    "Jid",
    "JidKind",
    "MessageContent",
    "ReconnectPolicy",
    "Resolution",
    "ResolutionStatus",
    "UnresolvedPolicy",
]
