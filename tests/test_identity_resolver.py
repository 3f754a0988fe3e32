"""Tests for sender identity resolution."""

from __future__ import annotations

import logging
from collections.abc import Callable
from unittest.mock import AsyncMock

import pytest

from wabridge.identity.cache import InMemoryIdentityCache
from wabridge.identity.jid import format_jid, parse_jid
from wabridge.identity.resolver import JidIdentityResolver
from wabridge.models.enums import JidKind, ResolutionStatus, UnresolvedPolicy
from wabridge.models.message import InboundMessage

MessageFactory = Callable[..., InboundMessage]


class TestParseJid:
    def test_canonical(self) -> None:
        jid = parse_jid("5511999@s.whatsapp.net")

        assert jid.user == "5511999"
        assert jid.server == "s.whatsapp.net"
        assert jid.kind == JidKind.CANONICAL
        assert str(jid) == "5511999@s.whatsapp.net"

    def test_device_suffix_is_split(self) -> None:
        jid = parse_jid("5511999:12@s.whatsapp.net")

        assert jid.user == "5511999"
        assert jid.device == 12

    @pytest.mark.parametrize(
        ("raw", "kind"),
        [
            ("123456@lid", JidKind.ALIAS),
            ("5511999@c.us", JidKind.CANONICAL),
            ("120363@g.us", JidKind.GROUP),
            ("status@broadcast", JidKind.BROADCAST),
            ("1203@newsletter", JidKind.BROADCAST),
            ("abc@example.org", JidKind.UNKNOWN),
            ("5511999", JidKind.UNKNOWN),
        ],
    )
    def test_kinds(self, raw: str, kind: JidKind) -> None:
        assert parse_jid(raw).kind == kind

    def test_format_jid_from_object(self) -> None:
        class _Jid:
            User = "5511999"
            Server = "s.whatsapp.net"

        assert format_jid(_Jid()) == "5511999@s.whatsapp.net"
        assert format_jid(None) == ""
        assert format_jid("x@lid") == "x@lid"


class TestCanonicalAndSkip:
    async def test_canonical_returns_numeric_part(
        self, cache: InMemoryIdentityCache, message_factory: MessageFactory
    ) -> None:
        resolver = JidIdentityResolver(cache)

        result = await resolver.resolve("5511999@s.whatsapp.net", message_factory())

        assert result.status == ResolutionStatus.RESOLVED
        assert result.address == "5511999"
        assert result.via == "canonical"

    async def test_canonical_strips_device(
        self, cache: InMemoryIdentityCache, message_factory: MessageFactory
    ) -> None:
        resolver = JidIdentityResolver(cache)

        result = await resolver.resolve("5511999:3@s.whatsapp.net", message_factory())

        assert result.address == "5511999"

    @pytest.mark.parametrize("raw", ["120363@g.us", "status@broadcast", "99@newsletter"])
    async def test_group_and_broadcast_always_skip(
        self, raw: str, cache: InMemoryIdentityCache, message_factory: MessageFactory
    ) -> None:
        resolver = JidIdentityResolver(cache)
        message = message_factory(
            sender=raw,
            sender_alt="5511999@s.whatsapp.net",
            participant="5511888@s.whatsapp.net",
        )

        result = await resolver.resolve(raw, message)

        assert result.skipped
        assert result.address is None
        assert len(cache) == 0

    async def test_unrecognized_tag_skips_with_warning(
        self,
        cache: InMemoryIdentityCache,
        message_factory: MessageFactory,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        resolver = JidIdentityResolver(cache)

        with caplog.at_level(logging.WARNING, logger="wabridge.identity"):
            result = await resolver.resolve("abc@example.org", message_factory())

        assert result.skipped
        assert any(r.levelno == logging.WARNING for r in caplog.records)

    async def test_reply_to_alias_learns_mapping(
        self, cache: InMemoryIdentityCache, message_factory: MessageFactory
    ) -> None:
        resolver = JidIdentityResolver(cache)
        message = message_factory(quoted_participant="777@lid")

        result = await resolver.resolve("5511999@s.whatsapp.net", message)

        assert result.address == "5511999"
        assert cache.get("777") == "5511999"

    async def test_reply_does_not_overwrite_known_alias(
        self, message_factory: MessageFactory
    ) -> None:
        cache = InMemoryIdentityCache({"777": "5500000"})
        resolver = JidIdentityResolver(cache)

        await resolver.resolve(
            "5511999@s.whatsapp.net", message_factory(quoted_participant="777@lid")
        )

        assert cache.get("777") == "5500000"

    async def test_reply_to_canonical_learns_nothing(
        self, cache: InMemoryIdentityCache, message_factory: MessageFactory
    ) -> None:
        resolver = JidIdentityResolver(cache)

        await resolver.resolve(
            "5511999@s.whatsapp.net",
            message_factory(quoted_participant="5511888@s.whatsapp.net"),
        )

        assert len(cache) == 0


class TestAliasResolution:
    async def test_sender_alt_resolves_and_caches(
        self, cache: InMemoryIdentityCache, message_factory: MessageFactory
    ) -> None:
        resolver = JidIdentityResolver(cache)
        message = message_factory(sender="123456@lid", sender_alt="5511999@s.whatsapp.net")

        result = await resolver.resolve("123456@lid", message)

        assert result.status == ResolutionStatus.RESOLVED
        assert result.address == "5511999"
        assert result.via == "sender_alt"
        assert cache.get("123456") == "5511999"

    async def test_cache_hit(self, message_factory: MessageFactory) -> None:
        cache = InMemoryIdentityCache({"123456": "5511999"})
        resolver = JidIdentityResolver(cache)

        result = await resolver.resolve("123456@lid", message_factory(sender="123456@lid"))

        assert result.status == ResolutionStatus.CACHED
        assert result.address == "5511999"

    async def test_participant_fallback(
        self, cache: InMemoryIdentityCache, message_factory: MessageFactory
    ) -> None:
        resolver = JidIdentityResolver(cache)
        message = message_factory(
            sender="123456@lid",
            sender_alt="123456@lid",
            participant="5511777:4@s.whatsapp.net",
        )

        result = await resolver.resolve("123456@lid", message)

        assert result.address == "5511777"
        assert result.via == "participant"

    async def test_quoted_participant_fallback(
        self, cache: InMemoryIdentityCache, message_factory: MessageFactory
    ) -> None:
        resolver = JidIdentityResolver(cache)
        message = message_factory(
            sender="123456@lid",
            quoted_participant="5511666@s.whatsapp.net",
        )

        result = await resolver.resolve("123456@lid", message)

        assert result.address == "5511666"
        assert result.via == "quoted_participant"

    async def test_extractor_precedence(
        self, cache: InMemoryIdentityCache, message_factory: MessageFactory
    ) -> None:
        resolver = JidIdentityResolver(cache)
        message = message_factory(
            sender="123456@lid",
            sender_alt="5511111@s.whatsapp.net",
            participant="5522222@s.whatsapp.net",
            quoted_participant="5533333@s.whatsapp.net",
        )

        result = await resolver.resolve("123456@lid", message)

        assert result.address == "5511111"

    async def test_first_resolution_wins(
        self, cache: InMemoryIdentityCache, message_factory: MessageFactory
    ) -> None:
        resolver = JidIdentityResolver(cache)
        await resolver.resolve(
            "123456@lid",
            message_factory(sender="123456@lid", participant="5511999@s.whatsapp.net"),
        )

        later = await resolver.resolve(
            "123456@lid",
            message_factory(sender="123456@lid", sender_alt="5500000@s.whatsapp.net"),
        )

        assert later.address == "5511999"
        assert cache.get("123456") == "5511999"

    async def test_unresolved_forwards_alias_by_default(
        self,
        cache: InMemoryIdentityCache,
        message_factory: MessageFactory,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        resolver = JidIdentityResolver(cache)

        with caplog.at_level(logging.ERROR, logger="wabridge.identity"):
            result = await resolver.resolve("123456@lid", message_factory(sender="123456@lid"))

        assert result.status == ResolutionStatus.DEGRADED
        assert result.address == "123456"
        assert len(cache) == 0
        assert any(r.levelno == logging.ERROR for r in caplog.records)

    async def test_unresolved_drop_policy_skips(
        self, cache: InMemoryIdentityCache, message_factory: MessageFactory
    ) -> None:
        resolver = JidIdentityResolver(cache, unresolved_policy=UnresolvedPolicy.DROP_UNRESOLVED)

        result = await resolver.resolve("123456@lid", message_factory(sender="123456@lid"))

        assert result.skipped

    async def test_custom_extractors(
        self, cache: InMemoryIdentityCache, message_factory: MessageFactory
    ) -> None:
        resolver = JidIdentityResolver(
            cache,
            extractors=[("fixed", lambda _message: "5599999@s.whatsapp.net")],
        )

        result = await resolver.resolve("123456@lid", message_factory(sender="123456@lid"))

        assert result.address == "5599999"
        assert result.via == "fixed"


class TestDirectoryLookup:
    async def test_directory_normalizes_canonical(
        self, cache: InMemoryIdentityCache, message_factory: MessageFactory
    ) -> None:
        directory = AsyncMock()
        directory.lookup = AsyncMock(return_value="5511999@s.whatsapp.net")
        resolver = JidIdentityResolver(cache, directory=directory)

        result = await resolver.resolve("11999@s.whatsapp.net", message_factory())

        assert result.address == "5511999"
        directory.lookup.assert_awaited_once_with("11999@s.whatsapp.net")

    async def test_directory_failure_falls_back(
        self, cache: InMemoryIdentityCache, message_factory: MessageFactory
    ) -> None:
        directory = AsyncMock()
        directory.lookup = AsyncMock(side_effect=RuntimeError("offline"))
        resolver = JidIdentityResolver(cache, directory=directory)

        result = await resolver.resolve("5511999@s.whatsapp.net", message_factory())

        assert result.address == "5511999"

    async def test_directory_not_used_for_alias(
        self, cache: InMemoryIdentityCache, message_factory: MessageFactory
    ) -> None:
        directory = AsyncMock()
        directory.lookup = AsyncMock(return_value="5500000@s.whatsapp.net")
        resolver = JidIdentityResolver(cache, directory=directory)

        await resolver.resolve(
            "123456@lid",
            message_factory(sender="123456@lid", sender_alt="5511999@s.whatsapp.net"),
        )

        directory.lookup.assert_not_awaited()
        assert cache.get("123456") == "5511999"
