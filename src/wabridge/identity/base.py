"""Abstract base classes for sender identity resolution."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Protocol, runtime_checkable

from wabridge.models.identity import Resolution
from wabridge.models.message import InboundMessage


class IdentityResolver(ABC):
    """Resolves the sender of an inbound message to a canonical address."""

    @abstractmethod
    async def resolve(self, raw_identifier: str, message: InboundMessage) -> Resolution:
        """Resolve *raw_identifier* using fields carried on *message*.

        Args:
            raw_identifier: Sender identifier in ``user@server`` form.
            message: The message the identifier came from; its alternate,
                participant and reply-context fields are used as fallbacks.

        Returns:
            A resolution carrying the canonical address, or a skipped
            resolution when the sender is out of scope.
        """
        ...


@runtime_checkable
class Directory(Protocol):
    """Best-effort lookup of the canonical identifier for an address.

    Implementations return a ``user@s.whatsapp.net`` string, or ``None``
    when the directory has no answer.
    """

    async def lookup(self, jid: str) -> str | None: ...
