"""Shared test fixtures and helpers."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Coroutine
from typing import Any

import pytest

from wabridge.identity.cache import InMemoryIdentityCache
from wabridge.models.message import ForwardRequest, ForwardResult, InboundMessage, MessageContent


@pytest.fixture
def advance() -> Callable[[int], Coroutine[Any, Any, None]]:
    """Yield control to let pending tasks run without real delay.

        await advance()       # 5 yields (default)
        await advance(10)     # 10 yields for heavier workloads
    """

    async def _advance(n: int = 5) -> None:
        for _ in range(n):
            await asyncio.sleep(0)

    return _advance


@pytest.fixture
def cache() -> InMemoryIdentityCache:
    return InMemoryIdentityCache()


def make_message(
    sender: str | None = "5511999@s.whatsapp.net",
    body: str | None = "Your code is 482913, expires soon",
    *,
    sender_alt: str | None = None,
    participant: str | None = None,
    quoted_participant: str | None = None,
    is_from_me: bool = False,
    extended_text: str | None = None,
    document_caption: str | None = None,
    empty: bool = False,
) -> InboundMessage:
    content = None
    if not empty:
        content = MessageContent(
            conversation=body,
            extended_text=extended_text,
            document_caption=document_caption,
        )
    return InboundMessage(
        id="msg-001",
        sender=sender,
        sender_alt=sender_alt,
        participant=participant,
        quoted_participant=quoted_participant,
        is_from_me=is_from_me,
        content=content,
    )


@pytest.fixture
def message_factory() -> Callable[..., InboundMessage]:
    return make_message


class RecordingForwarder:
    """Forwarder double that records every request."""

    def __init__(self, result: ForwardResult | None = None) -> None:
        self.requests: list[ForwardRequest] = []
        self._result = result or ForwardResult(success=True, status_code=200)
        self.closed = False

    async def forward(self, request: ForwardRequest) -> ForwardResult:
        self.requests.append(request)
        return self._result

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def forwarder() -> RecordingForwarder:
    return RecordingForwarder()
