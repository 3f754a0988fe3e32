"""Connection lifecycle models."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class ConnectionUpdate(BaseModel):
    """A connection-state event emitted by a transport session.

    ``last_disconnect`` carries whatever error object the transport attached
    to the close; its status code is read with
    :func:`wabridge.core.lifecycle.extract_status_code`.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    connection: Literal["connecting", "open", "close"] | None = None
    last_disconnect: Any = None
    qr: str | None = None


class ReconnectPolicy(BaseModel):
    """Configures the delay between reconnect attempts after a transient close."""

    max_retries: int | None = Field(default=None, ge=0)
    base_delay_seconds: float = Field(default=3.0, ge=0.0)
    max_delay_seconds: float = Field(default=60.0, ge=0.0)
    exponential_base: float = Field(default=1.0, ge=1.0)

    def delay_for(self, attempt: int) -> float:
        """Delay before reconnect *attempt* (1-based)."""
        delay = self.base_delay_seconds * (self.exponential_base ** max(attempt - 1, 0))
        return min(delay, self.max_delay_seconds)

    def exhausted(self, attempt: int) -> bool:
        return self.max_retries is not None and attempt > self.max_retries
