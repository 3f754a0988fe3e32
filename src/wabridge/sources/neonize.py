"""WhatsApp multidevice transport backed by neonize.

Uses neonize (Python wrapper around whatsmeow) for the WhatsApp Web
multidevice protocol. The session database lives in the transport's session
directory; deleting that directory forces a new pairing.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any

from wabridge.core.errors import TransportUnavailableError
from wabridge.identity.jid import format_jid, parse_jid
from wabridge.models.connection import ConnectionUpdate
from wabridge.models.enums import DisconnectReason
from wabridge.models.message import InboundMessage, MessageContent
from wabridge.sources.base import FileCredentialTransport, TransportSession

# Optional dependency --------------------------------------------------------
try:
    from neonize.aioze.client import NewAClient  # type: ignore[import-untyped]

    HAS_NEONIZE = True
except ImportError:
    NewAClient = None  # type: ignore[assignment, misc]
    HAS_NEONIZE = False

logger = logging.getLogger("wabridge.sources.neonize")

NeonizeMessageParser = Callable[[Any], InboundMessage | None]


# ---------------------------------------------------------------------------
# Message parsing
# ---------------------------------------------------------------------------


def _has(msg: Any, name: str) -> bool:
    # protobuf3 sub-messages are always truthy even when unset, so presence
    # must go through HasField().
    if msg is None:
        return False
    try:
        return bool(msg.HasField(name))
    except (AttributeError, ValueError):
        return False


def _is_empty(msg: Any) -> bool:
    if msg is None:
        return True
    try:
        return msg.ByteSize() == 0
    except AttributeError:
        return False


def _document_message(msg: Any) -> Any:
    if not _has(msg, "documentWithCaptionMessage"):
        return None
    inner = msg.documentWithCaptionMessage.message
    return inner.documentMessage if _has(inner, "documentMessage") else None


def parse_content(msg: Any) -> MessageContent | None:
    """Extract the text-bearing body variants of a neonize ``Message``."""
    if _is_empty(msg):
        return None
    conversation = getattr(msg, "conversation", None) or None
    extended = msg.extendedTextMessage.text if _has(msg, "extendedTextMessage") else None
    document = _document_message(msg)
    caption = getattr(document, "caption", None) if document is not None else None
    return MessageContent(
        conversation=conversation,
        extended_text=extended,
        document_caption=caption or None,
    )


def quoted_participant(msg: Any) -> str | None:
    """Sender of the quoted message, when *msg* is a reply."""
    for holder in (
        msg.extendedTextMessage if _has(msg, "extendedTextMessage") else None,
        _document_message(msg),
    ):
        if holder is None or not _has(holder, "contextInfo"):
            continue
        participant = getattr(holder.contextInfo, "participant", "")
        if participant:
            return str(participant)
    return None


def default_message_parser(event: Any) -> InboundMessage | None:
    """Convert a neonize ``MessageEv`` into an :class:`InboundMessage`.

    The chat identifier plays the role of the raw sender: for direct chats
    it is the other party, for groups it is the group. The sending device's
    identifier is kept as ``participant`` when it differs from the chat.
    """
    try:
        info = event.Info
        src = info.MessageSource
        msg = event.Message

        chat = format_jid(getattr(src, "Chat", None))
        sender = format_jid(getattr(src, "Sender", None))
        sender_alt = format_jid(getattr(src, "SenderAlt", None))
        participant = sender if sender and sender != chat else None

        return InboundMessage(
            id=getattr(info, "ID", None) or None,
            sender=chat or sender or None,
            sender_alt=sender_alt or None,
            participant=participant,
            quoted_participant=quoted_participant(msg) if msg is not None else None,
            is_from_me=bool(getattr(src, "IsFromMe", False)),
            push_name=getattr(info, "Pushname", None) or None,
            timestamp=int(getattr(info, "Timestamp", 0) or 0) or None,
            content=parse_content(msg),
        )
    except Exception:
        logger.debug("Failed to parse neonize message", exc_info=True)
        return None


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


class NeonizeSession(TransportSession):
    """One neonize client, built fresh for every connection attempt."""

    # Platform type names that map to neonize DeviceProps enum values.
    PLATFORMS: dict[str, int] = {
        "chrome": 1,
        "firefox": 2,
        "safari": 5,
        "edge": 6,
        "desktop": 7,
    }

    def __init__(
        self,
        db: str,
        *,
        device_name: str = "wabridge",
        device_platform: str = "chrome",
        parser: NeonizeMessageParser | None = None,
    ) -> None:
        super().__init__()
        self._db = db
        self._device_name = device_name
        self._device_platform = device_platform.lower()
        self._parser = parser or default_message_parser
        self._client: Any = None

    @property
    def client(self) -> Any:
        """The underlying neonize client, once connected."""
        return self._client

    async def connect(self) -> None:  # noqa: C901
        if not HAS_NEONIZE:
            raise TransportUnavailableError(
                "neonize is required for NeonizeTransport. "
                "Install it with: pip install wabridge[neonize]"
            )

        import neonize.aioze.client as _neonize_client  # type: ignore[import-untyped]
        import neonize.aioze.events as _neonize_events  # type: ignore[import-untyped]
        from neonize.aioze.events import (  # type: ignore[import-untyped]
            ConnectedEv,
            DisconnectedEv,
            LoggedOutEv,
            MessageEv,
            PairStatusEv,
        )
        from neonize.proto.waCompanionReg.WAWebProtobufsCompanionReg_pb2 import (  # type: ignore[import-untyped]  # noqa: E501
            DeviceProps,
        )

        # neonize creates its own event loop but never starts it, so
        # callbacks dispatched with run_coroutine_threadsafe would never run.
        # Both modules hold their own binding and must point at ours.
        running_loop = asyncio.get_running_loop()
        _neonize_events.event_global_loop = running_loop
        _neonize_client.event_global_loop = running_loop

        platform_type = self.PLATFORMS.get(self._device_platform, DeviceProps.CHROME)
        props = DeviceProps(os=self._device_name, platformType=platform_type)
        client = NewAClient(self._db, props=props)
        self._client = client

        @client.qr
        async def _on_qr(_: Any, data_qr: bytes) -> None:
            code = data_qr.decode(errors="replace") if data_qr else ""
            if code:
                await self._emit_update(ConnectionUpdate(qr=code))

        @client.event(PairStatusEv)
        async def _on_paired(_: Any, event: Any) -> None:
            jid_obj = getattr(event, "ID", None)
            await self._emit_credentials(
                {
                    "jid": format_jid(jid_obj),
                    "user": getattr(jid_obj, "User", "") if jid_obj else "",
                    "device": str(getattr(jid_obj, "Device", "")) if jid_obj else "",
                    "platform": str(getattr(event, "Platform", "") or ""),
                }
            )

        @client.event(ConnectedEv)
        async def _on_connected(_: Any, __: Any) -> None:
            await self._emit_update(ConnectionUpdate(connection="open"))

        @client.event(LoggedOutEv)
        async def _on_logged_out(_: Any, event: Any) -> None:
            error = {
                "output": {"statusCode": int(DisconnectReason.LOGGED_OUT)},
                "reason": getattr(event, "Reason", None),
            }
            await self._emit_update(
                ConnectionUpdate(connection="close", last_disconnect={"error": error})
            )

        @client.event(DisconnectedEv)
        async def _on_disconnected(_: Any, __: Any) -> None:
            error = {"output": {"statusCode": int(DisconnectReason.CONNECTION_CLOSED)}}
            await self._emit_update(
                ConnectionUpdate(connection="close", last_disconnect={"error": error})
            )

        @client.event(MessageEv)
        async def _on_message(_: Any, event: Any) -> None:
            try:
                message = self._parser(event)
                if message is not None:
                    await self._emit_messages([message])
            except Exception:
                logger.warning("Error processing message", exc_info=True)

        await self._emit_update(ConnectionUpdate(connection="connecting"))
        await client.connect()

    async def ping(self) -> None:
        if self._client is None:
            raise RuntimeError("neonize session not connected")
        from neonize.utils.enum import Presence  # type: ignore[import-untyped]

        await self._client.send_presence(Presence.AVAILABLE)

    async def close(self) -> None:
        if self._client is None:
            return
        client, self._client = self._client, None
        try:
            await client.disconnect()
        except Exception:
            logger.debug("Error disconnecting neonize client", exc_info=True)


# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------


class NeonizeTransport(FileCredentialTransport):
    """Builds :class:`NeonizeSession` objects over a shared session directory.

    Example:
        transport = NeonizeTransport("data/session", device_name="wabridge")
        manager = ConnectionLifecycleManager(transport, on_messages=pipeline.handle_batch)
        await manager.run()
    """

    DB_FILE = "whatsmeow.db"

    def __init__(
        self,
        session_dir: str | Path,
        *,
        device_name: str = "wabridge",
        device_platform: str = "chrome",
        parser: NeonizeMessageParser | None = None,
    ) -> None:
        super().__init__(session_dir)
        self._device_name = device_name
        self._device_platform = device_platform
        self._parser = parser
        self._latest: NeonizeSession | None = None

    @property
    def name(self) -> str:
        return f"neonize:{self.session_dir}"

    @property
    def db_path(self) -> Path:
        return self.session_dir / self.DB_FILE

    @property
    def latest(self) -> NeonizeSession | None:
        return self._latest

    def has_credentials(self) -> bool:
        return self.db_path.exists() or super().has_credentials()

    async def create_session(self) -> NeonizeSession:
        if not HAS_NEONIZE:
            raise TransportUnavailableError(
                "neonize is required for NeonizeTransport. "
                "Install it with: pip install wabridge[neonize]"
            )
        self.ensure_session_dir()
        session = NeonizeSession(
            str(self.db_path),
            device_name=self._device_name,
            device_platform=self._device_platform,
            parser=self._parser,
        )
        self._latest = session
        return session

    def directory(self) -> NeonizeDirectory:
        return NeonizeDirectory(self)


class NeonizeDirectory:
    """Looks up canonical identifiers with ``is_on_whatsapp`` on the latest session."""

    def __init__(self, transport: NeonizeTransport) -> None:
        self._transport = transport

    async def lookup(self, jid: str) -> str | None:
        session = self._transport.latest
        client = session.client if session is not None else None
        if client is None:
            return None
        user = parse_jid(jid).user
        if not user:
            return None
        responses = await client.is_on_whatsapp(user)
        for response in responses or ():
            if getattr(response, "IsIn", False):
                return format_jid(getattr(response, "JID", None)) or None
        return None
