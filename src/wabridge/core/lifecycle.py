"""Connection lifecycle: connect, keep alive, reconnect, and reset on logout."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from functools import partial
from typing import Any

from pydantic import BaseModel

from wabridge.core.errors import ReconnectExhaustedError, StartupError
from wabridge.identity.cache import IdentityCache
from wabridge.models.connection import ConnectionUpdate, ReconnectPolicy
from wabridge.models.enums import ConnectionState, DisconnectReason
from wabridge.models.message import InboundMessage
from wabridge.sources.base import Transport, TransportSession

logger = logging.getLogger("wabridge.lifecycle")

MessageHandler = Callable[[list[InboundMessage]], Awaitable[None]]
QRHandler = Callable[[str], Awaitable[None] | None]


# ---------------------------------------------------------------------------
# Status code extraction
# ---------------------------------------------------------------------------


def _field(obj: Any, name: str) -> Any:
    if obj is None:
        return None
    if isinstance(obj, Mapping):
        return obj.get(name)
    return getattr(obj, name, None)


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def _from_output_status_code(error: Any) -> int | None:
    return _as_int(_field(_field(error, "output"), "statusCode"))


def _from_output_status_code_snake(error: Any) -> int | None:
    return _as_int(_field(_field(error, "output"), "status_code"))


def _from_status(error: Any) -> int | None:
    return _as_int(_field(error, "status"))


def _from_status_code(error: Any) -> int | None:
    return _as_int(_field(error, "status_code"))


def _from_code(error: Any) -> int | None:
    return _as_int(_field(error, "code"))


STATUS_CODE_EXTRACTORS: tuple[Callable[[Any], int | None], ...] = (
    _from_output_status_code,
    _from_output_status_code_snake,
    _from_status,
    _from_status_code,
    _from_code,
)


def extract_status_code(error: Any) -> int | None:
    """Return the close status code carried by a disconnect error.

    *error* is either the ``{error: ...}`` wrapper reported with a close or
    the error itself. The wrapped error is tried first, then the value as
    given. For each, the known shapes are tried in order and the first
    integer found wins. Each shape may be an attribute or a mapping key.
    """
    if error is None:
        return None
    for candidate in (_field(error, "error"), error):
        if candidate is None:
            continue
        direct = _as_int(candidate)
        if direct is not None:
            return direct
        for extract in STATUS_CODE_EXTRACTORS:
            code = extract(candidate)
            if code is not None:
                return code
    return None


# ---------------------------------------------------------------------------
# Manager
# ---------------------------------------------------------------------------


class ConnectionHealth(BaseModel):
    """Health information for the managed connection."""

    state: ConnectionState = ConnectionState.STOPPED
    session_id: str | None = None
    connected_at: datetime | None = None
    last_message_at: datetime | None = None
    batches_received: int = 0
    reconnects: int = 0
    resets: int = 0


@dataclass(eq=False)
class _SessionHandle:
    session: TransportSession
    closed: asyncio.Future[int | None]
    opened: bool = False
    keepalive: asyncio.Task[None] | None = field(default=None, repr=False)


class ConnectionLifecycleManager:
    """Owns the transport session and drives its state machine.

    States move ``connecting → open → closed`` and back to ``connecting``:

    * a close with :attr:`DisconnectReason.LOGGED_OUT` wipes the persisted
      credentials (and the identity cache, if configured) and immediately
      builds a fresh session that must be paired again;
    * any other close waits for the :class:`ReconnectPolicy` delay and then
      builds a new session from the existing credentials.

    Every session is new: callbacks are bound per session and events from a
    session that is no longer current are ignored. While ``open``, a
    keepalive task pings the session every *keepalive_interval* seconds.

    Example:
        manager = ConnectionLifecycleManager(
            transport,
            on_messages=pipeline.handle_batch,
            identity_cache=cache,
        )
        await manager.run()
    """

    def __init__(
        self,
        transport: Transport,
        *,
        on_messages: MessageHandler,
        identity_cache: IdentityCache | None = None,
        policy: ReconnectPolicy | None = None,
        keepalive_interval: float | None = 20.0,
        reset_identities_on_logout: bool = False,
        on_qr: QRHandler | None = None,
    ) -> None:
        self._transport = transport
        self._on_messages = on_messages
        self._identity_cache = identity_cache
        self._policy = policy or ReconnectPolicy()
        self._keepalive_interval = keepalive_interval
        self._reset_identities_on_logout = reset_identities_on_logout
        self._on_qr = on_qr
        self._state = ConnectionState.STOPPED
        self._current: _SessionHandle | None = None
        self._stop_event = asyncio.Event()
        self._failures = 0
        self._health = ConnectionHealth()

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def session(self) -> TransportSession | None:
        """The current session, if any."""
        return self._current.session if self._current is not None else None

    def health(self) -> ConnectionHealth:
        return self._health.model_copy(
            update={
                "state": self._state,
                "session_id": self.session.session_id if self.session is not None else None,
            }
        )

    # -- main loop -----------------------------------------------------------

    async def run(self) -> None:
        """Connect and keep the session alive until :meth:`stop` is called.

        Raises:
            StartupError: The very first session could not be created.
            ReconnectExhaustedError: The reconnect policy gave up.
        """
        self._stop_event.clear()
        self._failures = 0
        started = False
        try:
            while not self._stop_event.is_set():
                self._set_state(ConnectionState.CONNECTING)
                try:
                    handle = await self._open_session()
                except Exception as exc:
                    if not started:
                        raise StartupError(f"Failed to start session: {exc}") from exc
                    self._failures += 1
                    logger.warning(
                        "Failed to create session (attempt %d)",
                        self._failures,
                        exc_info=True,
                        extra={"attempt": self._failures},
                    )
                    await self._backoff()
                    continue

                started = True
                # stop() arrived while the session was being created
                if self._stop_event.is_set():
                    await self._teardown(handle)
                    break

                status = await handle.closed
                await self._teardown(handle)
                if self._stop_event.is_set():
                    break

                if status == DisconnectReason.LOGGED_OUT:
                    logger.error("Session logged out, clearing credentials and re-pairing")
                    await self._reset_session()
                    continue

                self._failures += 1
                self._health.reconnects += 1
                await self._backoff()
        finally:
            if self._current is not None:
                await self._teardown(self._current)
            self._set_state(ConnectionState.STOPPED)

    async def stop(self) -> None:
        """Tear down the current session and make :meth:`run` return."""
        self._stop_event.set()
        handle = self._current
        if handle is not None and not handle.closed.done():
            handle.closed.set_result(None)

    # -- transitions ---------------------------------------------------------

    async def _open_session(self) -> _SessionHandle:
        session = await self._transport.create_session()
        handle = _SessionHandle(session, asyncio.get_running_loop().create_future())
        self._current = handle
        session.subscribe(
            on_connection_update=partial(self._handle_update, handle),
            on_messages=partial(self._handle_messages, handle),
            on_credentials_update=partial(self._handle_credentials, handle),
        )
        try:
            await session.connect()
        except BaseException:
            await self._teardown(handle)
            raise
        logger.debug("Session %s connecting via %s", session.session_id, self._transport.name)
        return handle

    async def _backoff(self) -> None:
        if self._policy.exhausted(self._failures):
            raise ReconnectExhaustedError(self._failures)
        delay = self._policy.delay_for(self._failures)
        logger.info(
            "Reconnecting in %.1fs (attempt %d)",
            delay,
            self._failures,
            extra={"attempt": self._failures, "delay": delay},
        )
        with contextlib.suppress(TimeoutError):
            await asyncio.wait_for(self._stop_event.wait(), timeout=delay)

    async def _reset_session(self) -> None:
        try:
            await self._transport.clear_credentials()
        except Exception:
            logger.error("Failed to clear session credentials", exc_info=True)
        if self._reset_identities_on_logout and self._identity_cache is not None:
            self._identity_cache.clear()
            logger.warning("Identity cache cleared after logout")
        self._failures = 0
        self._health.resets += 1

    async def _teardown(self, handle: _SessionHandle) -> None:
        if self._current is handle:
            self._current = None
        task = handle.keepalive
        handle.keepalive = None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        try:
            await handle.session.close()
        except Exception:
            logger.debug("Error closing session %s", handle.session.session_id, exc_info=True)

    def _set_state(self, state: ConnectionState) -> None:
        if state != self._state:
            logger.debug("Connection state %s -> %s", self._state, state)
        self._state = state
        if state == ConnectionState.OPEN:
            self._health.connected_at = datetime.now(UTC)

    # -- session callbacks ---------------------------------------------------

    async def _handle_update(self, handle: _SessionHandle, update: ConnectionUpdate) -> None:
        if handle is not self._current:
            logger.debug("Ignoring update from stale session %s", handle.session.session_id)
            return

        if update.qr:
            logger.info("Scan QR to authenticate WhatsApp")
            await self._emit_qr(update.qr)

        if update.connection == "open":
            handle.opened = True
            self._failures = 0
            self._set_state(ConnectionState.OPEN)
            logger.info("WhatsApp connected and ready")
            if self._keepalive_interval and handle.keepalive is None:
                handle.keepalive = asyncio.create_task(self._keepalive(handle))
        elif update.connection == "close":
            status = extract_status_code(update.last_disconnect)
            self._set_state(ConnectionState.CLOSED)
            logger.warning(
                "WhatsApp connection closed (status %s)",
                status,
                extra={"status_code": status},
            )
            if not handle.closed.done():
                handle.closed.set_result(status)

    async def _handle_messages(self, handle: _SessionHandle, batch: list[InboundMessage]) -> None:
        if handle is not self._current:
            return
        self._health.batches_received += 1
        self._health.last_message_at = datetime.now(UTC)
        try:
            await self._on_messages(batch)
        except Exception:
            logger.error("Message handler failed", exc_info=True)

    async def _handle_credentials(self, handle: _SessionHandle, creds: dict[str, Any]) -> None:
        if handle is not self._current:
            return
        try:
            await self._transport.save_credentials(creds)
        except Exception:
            logger.error("Failed to save session credentials", exc_info=True)

    async def _emit_qr(self, code: str) -> None:
        if self._on_qr is None:
            return
        try:
            result = self._on_qr(code)
            if asyncio.iscoroutine(result) or asyncio.isfuture(result):
                await result
        except Exception:
            logger.warning("QR handler failed", exc_info=True)

    async def _keepalive(self, handle: _SessionHandle) -> None:
        assert self._keepalive_interval
        while True:
            await asyncio.sleep(self._keepalive_interval)
            if handle is not self._current or self._state != ConnectionState.OPEN:
                return
            try:
                await handle.session.ping()
            except Exception:
                logger.debug("Keepalive ping failed", exc_info=True)
