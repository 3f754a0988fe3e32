"""wabridge - Forward WhatsApp verification codes to an HTTP webhook."""

from wabridge._version import __version__
from wabridge.app import Bridge
from wabridge.config import BridgeConfig
from wabridge.core.errors import (
    BridgeError,
    ConfigError,
    ReconnectExhaustedError,
    StartupError,
    TransportUnavailableError,
)
from wabridge.core.lifecycle import ConnectionLifecycleManager, extract_status_code
from wabridge.core.pipeline import MessageIntakePipeline
from wabridge.identity import (
    IdentityCache,
    InMemoryIdentityCache,
    JidIdentityResolver,
    JSONFileIdentityCache,
    parse_jid,
)
from wabridge.models import (
    ConnectionState,
    ConnectionUpdate,
    DisconnectReason,
    ForwardRequest,
    ForwardResult,
    InboundMessage,
    MessageContent,
    ReconnectPolicy,
    Resolution,
    ResolutionStatus,
    UnresolvedPolicy,
)
from wabridge.providers.http import WebhookConfig, WebhookForwarder

__all__ = [
    "Bridge",
    "BridgeConfig",
    "BridgeError",
    "ConfigError",
    "ConnectionLifecycleManager",
    "ConnectionState",
    "ConnectionUpdate",
    "DisconnectReason",
    "ForwardRequest",
    "ForwardResult",
    "IdentityCache",
    "InMemoryIdentityCache",
    "InboundMessage",
    "JSONFileIdentityCache",
    "JidIdentityResolver",
    "MessageContent",
    "MessageIntakePipeline",
    "ReconnectExhaustedError",
    "ReconnectPolicy",
    "Resolution",
    "ResolutionStatus",
    "StartupError",
    "TransportUnavailableError",
    "UnresolvedPolicy",
    "WebhookConfig",
    "WebhookForwarder",
    "__version__",
    "extract_status_code",
]
