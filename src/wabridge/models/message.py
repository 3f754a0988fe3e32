"""Inbound message and forward request models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class MessageContent(BaseModel):
    """Text-bearing body variants of a WhatsApp message."""

    conversation: str | None = None
    extended_text: str | None = None
    document_caption: str | None = None

    def text(self) -> str:
        """Return the first present body variant, or ``""``."""
        for value in (self.conversation, self.extended_text, self.document_caption):
            if value is not None:
                return value
        return ""


class InboundMessage(BaseModel):
    """A single message observed on the session.

    The identifier fields keep the raw ``user@server`` form emitted by the
    network so the resolver can inspect their domain tags.
    """

    id: str | None = None
    sender: str | None = None
    sender_alt: str | None = None
    participant: str | None = None
    quoted_participant: str | None = None
    is_from_me: bool = False
    push_name: str | None = None
    timestamp: int | None = None
    content: MessageContent | None = None


class ForwardRequest(BaseModel):
    """Normalized payload delivered to the webhook."""

    model_config = ConfigDict(populate_by_name=True)

    from_: str = Field(alias="from")
    body: str

    def payload(self) -> dict[str, str]:
        return self.model_dump(by_alias=True)


class ForwardResult(BaseModel):
    """Outcome of a webhook delivery attempt."""

    success: bool
    status_code: int | None = None
    error: str | None = None
