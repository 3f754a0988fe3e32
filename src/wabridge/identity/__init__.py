"""Sender identity resolution and the learned alias cache."""

from wabridge.identity.base import Directory, IdentityResolver
from wabridge.identity.cache import IdentityCache, InMemoryIdentityCache, JSONFileIdentityCache
from wabridge.identity.jid import format_jid, kind_of, parse_jid
from wabridge.identity.resolver import DEFAULT_EXTRACTORS, AliasExtractor, JidIdentityResolver

__all__ = [
    "DEFAULT_EXTRACTORS",
    "AliasExtractor",
    "Directory",
    "IdentityCache",
    "IdentityResolver",
    "InMemoryIdentityCache",
    "JSONFileIdentityCache",
    "JidIdentityResolver",
    "format_jid",
    "kind_of",
    "parse_jid",
]
