"""Sender identity resolution over canonical, alias, and group identifiers."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence

from wabridge.identity.base import Directory, IdentityResolver
from wabridge.identity.cache import IdentityCache
from wabridge.identity.jid import parse_jid
from wabridge.models.enums import JidKind, UnresolvedPolicy
from wabridge.models.identity import Resolution
from wabridge.models.message import InboundMessage

logger = logging.getLogger("wabridge.identity")

AliasExtractor = Callable[[InboundMessage], str | None]


# ---------------------------------------------------------------------------
# Alias fallback extractors
# ---------------------------------------------------------------------------


def from_sender_alt(message: InboundMessage) -> str | None:
    """Alternate address attached to the message key."""
    return message.sender_alt


def from_participant(message: InboundMessage) -> str | None:
    """Participant field, populated in group and relay contexts."""
    return message.participant


def from_quoted_participant(message: InboundMessage) -> str | None:
    """Sender of the quoted message when this message is a reply."""
    return message.quoted_participant


DEFAULT_EXTRACTORS: tuple[tuple[str, AliasExtractor], ...] = (
    ("sender_alt", from_sender_alt),
    ("participant", from_participant),
    ("quoted_participant", from_quoted_participant),
)


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------


class JidIdentityResolver(IdentityResolver):
    """Resolve WhatsApp sender identifiers to bare phone numbers.

    Rules, first match wins:

    1. Group and broadcast identifiers are skipped.
    2. Canonical identifiers resolve to their user part. When the message
       replies to an uncached alias, that alias is mapped to this sender.
    3. Alias identifiers resolve from the cache, then from the extractors in
       order. The first canonically tagged candidate is cached and returned.
       With no candidate, ``unresolved_policy`` decides between forwarding
       the alias token itself and skipping.
    4. Anything else is skipped with a warning.

    Example:
        cache = JSONFileIdentityCache("data/lid-map.json")
        cache.load_all()
        resolver = JidIdentityResolver(cache)
        result = await resolver.resolve("123456@lid", message)
    """

    def __init__(
        self,
        cache: IdentityCache,
        *,
        unresolved_policy: UnresolvedPolicy = UnresolvedPolicy.FORWARD_DEGRADED,
        extractors: Sequence[tuple[str, AliasExtractor]] = DEFAULT_EXTRACTORS,
        directory: Directory | None = None,
        directory_timeout: float = 2.0,
    ) -> None:
        self._cache = cache
        self._unresolved_policy = unresolved_policy
        self._extractors = tuple(extractors)
        self._directory = directory
        self._directory_timeout = directory_timeout

    @property
    def cache(self) -> IdentityCache:
        return self._cache

    async def resolve(self, raw_identifier: str, message: InboundMessage) -> Resolution:
        jid = parse_jid(raw_identifier)

        if jid.kind in (JidKind.GROUP, JidKind.BROADCAST):
            return Resolution.skip(jid.kind.value)

        if jid.kind == JidKind.CANONICAL:
            address = await self._normalize(raw_identifier, jid.user)
            self._learn_from_reply(message, address)
            return Resolution.resolved(address, "canonical")

        if jid.kind == JidKind.ALIAS:
            return self._resolve_alias(jid.user, raw_identifier, message)

        logger.warning(
            "Unrecognized sender identifier %s, skipping",
            raw_identifier,
            extra={"sender": raw_identifier},
        )
        return Resolution.skip("unrecognized")

    def _resolve_alias(
        self, alias: str, raw_identifier: str, message: InboundMessage
    ) -> Resolution:
        cached = self._cache.get(alias)
        if cached:
            return Resolution.cached(cached)

        for name, extract in self._extractors:
            candidate = extract(message)
            if not candidate:
                continue
            parsed = parse_jid(candidate)
            if parsed.kind != JidKind.CANONICAL or not parsed.user:
                continue
            if self._cache.put(alias, parsed.user):
                logger.info(
                    "Learned %s -> %s via %s",
                    alias,
                    parsed.user,
                    name,
                    extra={"alias": alias, "address": parsed.user, "via": name},
                )
            # A concurrent put may have won; the stored value is authoritative.
            return Resolution.resolved(self._cache.get(alias) or parsed.user, name)

        logger.error(
            "CRITICAL: could not resolve alias %s to a phone number",
            raw_identifier,
            extra={"alias": alias, "message_id": message.id, "policy": self._unresolved_policy},
        )
        if self._unresolved_policy == UnresolvedPolicy.DROP_UNRESOLVED:
            return Resolution.skip("unresolved")
        return Resolution.degraded(alias)

    def _learn_from_reply(self, message: InboundMessage, address: str) -> None:
        quoted = message.quoted_participant
        if not quoted:
            return
        parsed = parse_jid(quoted)
        if parsed.kind != JidKind.ALIAS or not parsed.user:
            return
        if self._cache.put(parsed.user, address):
            logger.info(
                "Learned %s -> %s via reply context",
                parsed.user,
                address,
                extra={"alias": parsed.user, "address": address, "via": "reply"},
            )

    async def _normalize(self, raw_identifier: str, user: str) -> str:
        """Ask the directory for the canonical form of a direct address."""
        if self._directory is None:
            return user
        try:
            found = await asyncio.wait_for(
                self._directory.lookup(raw_identifier), timeout=self._directory_timeout
            )
        except Exception:
            logger.debug("Directory lookup failed for %s", raw_identifier, exc_info=True)
            return user
        if not found:
            return user
        parsed = parse_jid(found)
        if parsed.kind != JidKind.CANONICAL or not parsed.user:
            return user
        return parsed.user
