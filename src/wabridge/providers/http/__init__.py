"""HTTP webhook forwarding."""

from wabridge.providers.http.config import WebhookConfig
from wabridge.providers.http.forwarder import WebhookForwarder

__all__ = [
    "WebhookConfig",
    "WebhookForwarder",
]
