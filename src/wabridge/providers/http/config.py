"""Webhook forwarder configuration."""

from __future__ import annotations

from urllib.parse import urlparse

from pydantic import BaseModel, Field, field_validator


class WebhookConfig(BaseModel):
    """Configuration for the webhook forwarder."""

    webhook_url: str
    timeout: float = Field(default=5.0, gt=0.0)
    headers: dict[str, str] = Field(default_factory=dict)

    @field_validator("webhook_url")
    @classmethod
    def validate_webhook_url(cls, v: str) -> str:
        """Require an absolute http(s) URL."""
        parsed = urlparse(v)
        if not parsed.scheme or not parsed.hostname:
            raise ValueError("webhook_url must be a valid URL with scheme and host")
        if parsed.scheme not in ("http", "https"):
            raise ValueError(f"webhook_url scheme must be http or https, got {parsed.scheme!r}")
        return v
