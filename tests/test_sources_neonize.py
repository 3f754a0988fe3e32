"""Tests for the neonize transport: event parsing and optional-dependency handling."""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path
from types import SimpleNamespace
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from wabridge.core.errors import TransportUnavailableError
from wabridge.sources import neonize as neonize_mod
from wabridge.sources.neonize import (
    NeonizeDirectory,
    NeonizeSession,
    NeonizeTransport,
    default_message_parser,
    parse_content,
    quoted_participant,
)


def _proto(fields: Iterable[str] = (), *, empty: bool = False, **attrs: Any) -> MagicMock:
    """A protobuf-like mock where only *fields* report as set."""
    present = set(fields)
    msg = MagicMock()
    msg.HasField.side_effect = lambda name: name in present
    msg.ByteSize.return_value = 0 if empty else 1
    for key, value in attrs.items():
        setattr(msg, key, value)
    return msg


def _jid(user: str, server: str) -> SimpleNamespace:
    return SimpleNamespace(User=user, Server=server)


def _event(
    message: Any,
    *,
    chat: Any = None,
    sender: Any = None,
    sender_alt: Any = None,
    is_from_me: bool = False,
) -> SimpleNamespace:
    chat = chat if chat is not None else _jid("5511999", "s.whatsapp.net")
    source = SimpleNamespace(
        Chat=chat,
        Sender=sender if sender is not None else chat,
        SenderAlt=sender_alt,
        IsFromMe=is_from_me,
    )
    info = SimpleNamespace(
        ID="3EB0ABC", Pushname="Ana", Timestamp=1700000000, MessageSource=source
    )
    return SimpleNamespace(Info=info, Message=message)


class TestParseContent:
    def test_conversation(self) -> None:
        msg = _proto(conversation="Your code is 482913")

        content = parse_content(msg)

        assert content is not None
        assert content.text() == "Your code is 482913"

    def test_extended_text(self) -> None:
        msg = _proto(
            {"extendedTextMessage"},
            conversation="",
            extendedTextMessage=_proto(text="Code 123456"),
        )

        content = parse_content(msg)

        assert content is not None
        assert content.conversation is None
        assert content.text() == "Code 123456"

    def test_document_caption(self) -> None:
        document = _proto(caption="Code 654321 attached")
        msg = _proto(
            {"documentWithCaptionMessage"},
            conversation="",
            documentWithCaptionMessage=SimpleNamespace(
                message=_proto({"documentMessage"}, documentMessage=document)
            ),
        )

        content = parse_content(msg)

        assert content is not None
        assert content.text() == "Code 654321 attached"

    def test_empty_message(self) -> None:
        assert parse_content(_proto(empty=True)) is None
        assert parse_content(None) is None

    def test_non_text_message_has_blank_text(self) -> None:
        content = parse_content(_proto({"imageMessage"}, conversation=""))

        assert content is not None
        assert content.text() == ""


class TestQuotedParticipant:
    def test_reply_in_extended_text(self) -> None:
        msg = _proto(
            {"extendedTextMessage"},
            extendedTextMessage=_proto(
                {"contextInfo"},
                text="yes",
                contextInfo=SimpleNamespace(participant="777@lid"),
            ),
        )

        assert quoted_participant(msg) == "777@lid"

    def test_no_context(self) -> None:
        msg = _proto({"extendedTextMessage"}, extendedTextMessage=_proto(text="hi"))

        assert quoted_participant(msg) is None

    def test_plain_conversation(self) -> None:
        assert quoted_participant(_proto(conversation="hi")) is None


class TestDefaultMessageParser:
    def test_direct_canonical_chat(self) -> None:
        message = default_message_parser(_event(_proto(conversation="Code 482913")))

        assert message is not None
        assert message.id == "3EB0ABC"
        assert message.sender == "5511999@s.whatsapp.net"
        assert message.participant is None
        assert message.sender_alt is None
        assert message.push_name == "Ana"
        assert message.timestamp == 1700000000
        assert message.content is not None
        assert message.content.text() == "Code 482913"

    def test_alias_chat_with_alt_and_participant(self) -> None:
        event = _event(
            _proto(conversation="Code 482913"),
            chat=_jid("123456", "lid"),
            sender=_jid("5511999", "s.whatsapp.net"),
            sender_alt=_jid("5511999", "s.whatsapp.net"),
        )

        message = default_message_parser(event)

        assert message is not None
        assert message.sender == "123456@lid"
        assert message.sender_alt == "5511999@s.whatsapp.net"
        assert message.participant == "5511999@s.whatsapp.net"

    def test_own_message_flag(self) -> None:
        message = default_message_parser(_event(_proto(conversation="x"), is_from_me=True))

        assert message is not None
        assert message.is_from_me is True

    def test_reply_carries_quoted_participant(self) -> None:
        msg = _proto(
            {"extendedTextMessage"},
            conversation="",
            extendedTextMessage=_proto(
                {"contextInfo"},
                text="thanks",
                contextInfo=SimpleNamespace(participant="777@lid"),
            ),
        )

        message = default_message_parser(_event(msg))

        assert message is not None
        assert message.quoted_participant == "777@lid"

    def test_malformed_event_returns_none(self) -> None:
        assert default_message_parser(SimpleNamespace()) is None


class TestSessionCallbacks:
    async def test_close_before_connect_is_noop(self) -> None:
        session = NeonizeSession("/tmp/unused.db")

        await session.close()

        assert session.client is None

    async def test_ping_without_client_raises(self) -> None:
        session = NeonizeSession("/tmp/unused.db")

        with pytest.raises(RuntimeError):
            await session.ping()

    async def test_close_disconnects_client(self) -> None:
        session = NeonizeSession("/tmp/unused.db")
        client = MagicMock()
        client.disconnect = AsyncMock()
        session._client = client

        await session.close()

        client.disconnect.assert_awaited_once()
        assert session.client is None


class TestNeonizeTransport:
    def test_paths(self, tmp_path: Path) -> None:
        transport = NeonizeTransport(tmp_path / "session")

        assert transport.db_path == tmp_path / "session" / "whatsmeow.db"
        assert transport.name.startswith("neonize:")
        assert transport.has_credentials() is False

    def test_has_credentials_from_db(self, tmp_path: Path) -> None:
        transport = NeonizeTransport(tmp_path)
        transport.db_path.write_bytes(b"sqlite")

        assert transport.has_credentials() is True

    async def test_create_session_without_neonize(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr(neonize_mod, "HAS_NEONIZE", False)
        transport = NeonizeTransport(tmp_path)

        with pytest.raises(TransportUnavailableError, match="neonize is required"):
            await transport.create_session()

    async def test_create_session_builds_session(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr(neonize_mod, "HAS_NEONIZE", True)
        transport = NeonizeTransport(tmp_path / "session", device_name="bridge")

        session = await transport.create_session()

        assert isinstance(session, NeonizeSession)
        assert transport.latest is session
        assert (tmp_path / "session").is_dir()

    def test_unavailable_error_is_import_error(self) -> None:
        assert issubclass(TransportUnavailableError, ImportError)


class TestNeonizeDirectory:
    async def test_lookup_without_session(self, tmp_path: Path) -> None:
        directory = NeonizeTransport(tmp_path).directory()

        assert await directory.lookup("5511999@s.whatsapp.net") is None

    async def test_lookup_returns_registered_jid(self, tmp_path: Path) -> None:
        transport = NeonizeTransport(tmp_path)
        session = NeonizeSession(str(transport.db_path))
        client = MagicMock()
        client.is_on_whatsapp = AsyncMock(
            return_value=[SimpleNamespace(IsIn=True, JID=_jid("5511999", "s.whatsapp.net"))]
        )
        session._client = client
        transport._latest = session

        result = await NeonizeDirectory(transport).lookup("11999@s.whatsapp.net")

        assert result == "5511999@s.whatsapp.net"
        client.is_on_whatsapp.assert_awaited_once_with("11999")

    async def test_lookup_not_registered(self, tmp_path: Path) -> None:
        transport = NeonizeTransport(tmp_path)
        session = NeonizeSession(str(transport.db_path))
        client = MagicMock()
        client.is_on_whatsapp = AsyncMock(return_value=[SimpleNamespace(IsIn=False, JID=None)])
        session._client = client
        transport._latest = session

        assert await transport.directory().lookup("5511999@s.whatsapp.net") is None
