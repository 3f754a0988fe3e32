"""Base abstractions for the messaging transport and its sessions."""

from __future__ import annotations

import asyncio
import json
import logging
import shutil
import uuid
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from wabridge.models.connection import ConnectionUpdate
from wabridge.models.message import InboundMessage

logger = logging.getLogger("wabridge.sources")

# Callback type aliases
ConnectionUpdateCallback = Callable[[ConnectionUpdate], Awaitable[None]]
MessageBatchCallback = Callable[[list[InboundMessage]], Awaitable[None]]
CredentialsCallback = Callable[[dict[str, Any]], Awaitable[None]]


class TransportSession(ABC):
    """A single live connection to the messaging network.

    Sessions are never reused: every reconnect or reset builds a new one.
    The owner subscribes its callbacks with :meth:`subscribe` before calling
    :meth:`connect`; the session then reports connection changes, message
    batches, and credential updates through them.

    Lifecycle:
        1. ``transport.create_session()`` builds the session
        2. ``session.subscribe(...)`` binds the owner's callbacks
        3. ``await session.connect()`` starts the handshake
        4. ``await session.close()`` tears it down
    """

    def __init__(self) -> None:
        self._session_id = uuid.uuid4().hex
        self._on_update: ConnectionUpdateCallback | None = None
        self._on_messages: MessageBatchCallback | None = None
        self._on_credentials: CredentialsCallback | None = None

    @property
    def session_id(self) -> str:
        return self._session_id

    def subscribe(
        self,
        *,
        on_connection_update: ConnectionUpdateCallback,
        on_messages: MessageBatchCallback,
        on_credentials_update: CredentialsCallback,
    ) -> None:
        """Bind the owner's callbacks, replacing any earlier binding."""
        self._on_update = on_connection_update
        self._on_messages = on_messages
        self._on_credentials = on_credentials_update

    @abstractmethod
    async def connect(self) -> None:
        """Start connecting. Returns once the handshake has been initiated."""
        ...

    @abstractmethod
    async def ping(self) -> None:
        """Send a no-op keepalive signal over the connection."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Disconnect and release resources. Safe to call more than once."""
        ...

    # -- emit helpers for subclasses ------------------------------------------

    async def _emit_update(self, update: ConnectionUpdate) -> None:
        if self._on_update is not None:
            await self._on_update(update)

    async def _emit_messages(self, batch: list[InboundMessage]) -> None:
        if self._on_messages is not None and batch:
            await self._on_messages(batch)

    async def _emit_credentials(self, creds: dict[str, Any]) -> None:
        if self._on_credentials is not None:
            await self._on_credentials(creds)


class Transport(ABC):
    """Factory for sessions plus owner of the persisted credentials."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Descriptive identifier, e.g. ``"neonize:data/session"``."""
        ...

    @abstractmethod
    async def create_session(self) -> TransportSession:
        """Build a new session from the persisted credentials.

        With no credentials on disk the session starts a fresh pairing.
        """
        ...

    @abstractmethod
    def has_credentials(self) -> bool:
        """Return True if persisted credentials exist."""
        ...

    @abstractmethod
    async def save_credentials(self, creds: dict[str, Any]) -> None:
        """Persist credential updates reported by a session."""
        ...

    @abstractmethod
    async def clear_credentials(self) -> None:
        """Delete all persisted credentials so the next session must pair again."""
        ...


class FileCredentialTransport(Transport):
    """Transport whose credentials live in a session directory.

    Provides:
    - Directory creation
    - ``device.json`` written from credential updates
    - Full wipe on logout
    """

    DEVICE_FILE = "device.json"

    def __init__(self, session_dir: str | Path) -> None:
        self._session_dir = Path(session_dir)

    @property
    def session_dir(self) -> Path:
        return self._session_dir

    @property
    def device_file(self) -> Path:
        return self._session_dir / self.DEVICE_FILE

    def ensure_session_dir(self) -> None:
        try:
            self._session_dir.mkdir(parents=True, exist_ok=True)
        except OSError:
            logger.warning("Could not create session dir %s", self._session_dir, exc_info=True)

    def has_credentials(self) -> bool:
        return self.device_file.exists()

    def load_credentials(self) -> dict[str, Any]:
        try:
            data = json.loads(self.device_file.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            return {}
        return data if isinstance(data, dict) else {}

    async def save_credentials(self, creds: dict[str, Any]) -> None:
        merged = {**self.load_credentials(), **creds, "updated_at": datetime.now(UTC).isoformat()}
        body = json.dumps(merged, indent=2, sort_keys=True)
        await asyncio.to_thread(self._write_device_file, body)

    def _write_device_file(self, body: str) -> None:
        self.ensure_session_dir()
        self.device_file.write_text(body, encoding="utf-8")

    async def clear_credentials(self) -> None:
        await asyncio.to_thread(shutil.rmtree, self._session_dir, True)
        self.ensure_session_dir()
        logger.info("Cleared session credentials in %s", self._session_dir)
