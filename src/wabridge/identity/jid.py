"""Parsing of WhatsApp ``user[:device]@server`` identifiers."""

from __future__ import annotations

from wabridge.models.enums import JidKind
from wabridge.models.identity import Jid

CANONICAL_SERVERS = frozenset({"s.whatsapp.net", "c.us"})
ALIAS_SERVERS = frozenset({"lid"})
GROUP_SERVERS = frozenset({"g.us"})
BROADCAST_SERVERS = frozenset({"broadcast", "newsletter"})


def kind_of(server: str) -> JidKind:
    """Classify an identifier by its domain tag."""
    server = server.lower()
    if server in CANONICAL_SERVERS:
        return JidKind.CANONICAL
    if server in ALIAS_SERVERS:
        return JidKind.ALIAS
    if server in GROUP_SERVERS:
        return JidKind.GROUP
    if server in BROADCAST_SERVERS:
        return JidKind.BROADCAST
    return JidKind.UNKNOWN


def parse_jid(raw: str) -> Jid:
    """Parse ``raw`` into a :class:`Jid`.

    The device suffix (``5511999:12@s.whatsapp.net``) is split off the user
    part. An identifier without ``@`` has no domain tag and is ``UNKNOWN``.
    """
    user, sep, server = raw.strip().partition("@")
    device: int | None = None
    if ":" in user:
        user, _, device_part = user.partition(":")
        if device_part.isdigit():
            device = int(device_part)
    if not sep:
        return Jid(user=user, device=device)
    return Jid(user=user, server=server, device=device, kind=kind_of(server))


def format_jid(jid_obj: object) -> str:
    """Format a transport JID object (``User``/``Server`` attributes) as ``user@server``."""
    if jid_obj is None:
        return ""
    if isinstance(jid_obj, str):
        return jid_obj
    user = getattr(jid_obj, "User", "") or ""
    server = getattr(jid_obj, "Server", "") or ""
    if user and server:
        return f"{user}@{server}"
    return user
