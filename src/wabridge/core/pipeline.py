"""Inbound message intake: filter, resolve the sender, and forward."""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Protocol

from wabridge.identity.base import IdentityResolver
from wabridge.models.message import ForwardRequest, ForwardResult, InboundMessage

logger = logging.getLogger("wabridge.pipeline")

CODE_PATTERN = re.compile(r"\b\d{6}\b")


class Forwarder(Protocol):
    async def forward(self, request: ForwardRequest) -> ForwardResult: ...


def contains_code(text: str, pattern: re.Pattern[str] = CODE_PATTERN) -> bool:
    """Return True if *text* holds a standalone verification code."""
    return pattern.search(text) is not None


class MessageIntakePipeline:
    """Turns inbound message batches into webhook deliveries.

    Each message is dropped when it has no content, comes from this account
    (unless *forward_own_messages*), has no sender, resolves to a skip, has
    blank text, or, with *require_code*, holds no standalone 6-digit code.
    Messages within a batch are handled concurrently and independently.
    """

    def __init__(
        self,
        resolver: IdentityResolver,
        forwarder: Forwarder,
        *,
        require_code: bool = True,
        forward_own_messages: bool = False,
        code_pattern: re.Pattern[str] = CODE_PATTERN,
    ) -> None:
        self._resolver = resolver
        self._forwarder = forwarder
        self._require_code = require_code
        self._forward_own_messages = forward_own_messages
        self._code_pattern = code_pattern

    async def handle_batch(self, batch: list[InboundMessage]) -> list[ForwardResult | None]:
        """Process every message of *batch*; one result per message, ``None`` if skipped."""
        results = await asyncio.gather(
            *(self._handle_safely(message) for message in batch),
        )
        return list(results)

    async def _handle_safely(self, message: InboundMessage) -> ForwardResult | None:
        try:
            return await self.handle(message)
        except Exception:
            logger.error(
                "Failed to process message %s",
                message.id,
                exc_info=True,
                extra={"message_id": message.id},
            )
            return None

    async def handle(self, message: InboundMessage) -> ForwardResult | None:
        request = await self.build_request(message)
        if request is None:
            return None
        return await self._forwarder.forward(request)

    async def build_request(self, message: InboundMessage) -> ForwardRequest | None:
        """Apply the intake filters and return the request to forward, if any."""
        if message.content is None:
            return None
        if message.is_from_me and not self._forward_own_messages:
            return None
        if not message.sender:
            return None

        resolution = await self._resolver.resolve(message.sender, message)
        if resolution.skipped or not resolution.address:
            logger.debug(
                "Skipping message from %s (%s)",
                message.sender,
                resolution.via,
                extra={"sender": message.sender, "via": resolution.via},
            )
            return None

        text = message.content.text().strip()
        if not text:
            return None
        if self._require_code and not contains_code(text, self._code_pattern):
            logger.debug("No verification code in message %s, skipping", message.id)
            return None

        return ForwardRequest(from_=resolution.address, body=text)
