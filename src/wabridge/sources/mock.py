"""In-process transport for tests and local development."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

from wabridge.models.connection import ConnectionUpdate
from wabridge.models.enums import DisconnectReason
from wabridge.models.message import InboundMessage
from wabridge.sources.base import FileCredentialTransport, TransportSession


class MockSession(TransportSession):
    """Session driven by the test: call the ``emit_*`` helpers to simulate the network."""

    def __init__(self, credentials: dict[str, Any], *, fail_ping: bool = False) -> None:
        super().__init__()
        self.credentials = credentials
        self.connected = False
        self.closed = False
        self.pings = 0
        self._fail_ping = fail_ping

    async def connect(self) -> None:
        self.connected = True
        await self._emit_update(ConnectionUpdate(connection="connecting"))

    async def ping(self) -> None:
        self.pings += 1
        if self._fail_ping:
            raise ConnectionError("ping failed")

    async def close(self) -> None:
        self.closed = True
        self.connected = False

    async def emit_open(self) -> None:
        await self._emit_update(ConnectionUpdate(connection="open"))

    async def emit_qr(self, code: str) -> None:
        await self._emit_update(ConnectionUpdate(qr=code))

    async def emit_close(
        self, status_code: int | None = DisconnectReason.CONNECTION_CLOSED
    ) -> None:
        error = None
        if status_code is not None:
            error = {"error": {"output": {"statusCode": int(status_code)}}}
        await self._emit_update(ConnectionUpdate(connection="close", last_disconnect=error))

    async def emit_messages(self, batch: list[InboundMessage]) -> None:
        await self._emit_messages(batch)

    async def emit_credentials(self, creds: dict[str, Any]) -> None:
        await self._emit_credentials(creds)


class MockTransport(FileCredentialTransport):
    """Transport that hands out :class:`MockSession` objects.

    Credentials are kept in ``device.json`` under *session_dir*, so logout
    handling can be checked against real files.

    Example:
        transport = MockTransport(tmp_path / "session")
        manager = ConnectionLifecycleManager(transport, on_messages=handler)
        task = asyncio.create_task(manager.run())
        session = await transport.wait_for_session(1)
        await session.emit_open()
    """

    def __init__(
        self,
        session_dir: str | Path,
        *,
        fail_creates: int = 0,
        fail_ping: bool = False,
    ) -> None:
        super().__init__(session_dir)
        self.sessions: list[MockSession] = []
        self.create_calls = 0
        self._fail_creates = fail_creates
        self._fail_ping = fail_ping
        self.ensure_session_dir()

    @property
    def name(self) -> str:
        return f"mock:{self.session_dir}"

    @property
    def latest(self) -> MockSession:
        return self.sessions[-1]

    async def create_session(self) -> MockSession:
        self.create_calls += 1
        if self.create_calls <= self._fail_creates:
            raise ConnectionError(f"create_session failure #{self.create_calls}")
        session = MockSession(self.load_credentials(), fail_ping=self._fail_ping)
        self.sessions.append(session)
        return session

    async def wait_for_session(self, count: int, timeout: float = 1.0) -> MockSession:
        """Wait until the *count*-th session exists and has been connected."""
        async with asyncio.timeout(timeout):
            while len(self.sessions) < count or not self.sessions[count - 1].connected:
                await asyncio.sleep(0)
        return self.sessions[count - 1]
