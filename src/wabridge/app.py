"""Application wiring: cache, resolver, pipeline, forwarder, and lifecycle."""

from __future__ import annotations

import logging

import segno

from wabridge.config import SILENT, BridgeConfig
from wabridge.core.errors import BridgeError
from wabridge.core.lifecycle import ConnectionLifecycleManager
from wabridge.core.pipeline import Forwarder, MessageIntakePipeline
from wabridge.identity.cache import IdentityCache, JSONFileIdentityCache
from wabridge.identity.resolver import JidIdentityResolver
from wabridge.providers.http.forwarder import WebhookForwarder
from wabridge.sources.base import Transport

logger = logging.getLogger("wabridge.app")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s  %(message)s"


def configure_logging(level: str | int = logging.INFO) -> None:
    """Configure root logging and quiet whatsmeow's internal chatter.

    ``"SILENT"`` turns logging off entirely.
    """
    if level == SILENT:
        logging.disable(logging.CRITICAL)
        return
    logging.disable(logging.NOTSET)
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger("whatsmeow").setLevel(logging.ERROR)
    logging.getLogger("Whatsmeow").setLevel(logging.ERROR)


def render_qr(code: str) -> None:
    """Print a pairing QR code to the terminal."""
    print()
    segno.make(code).terminal(compact=True)
    print()


class Bridge:
    """The assembled WhatsApp → webhook bridge.

    Components not passed in are built from *config*: a neonize transport
    over ``session_dir``, a JSON-file identity cache, and an httpx webhook
    forwarder.
    """

    def __init__(
        self,
        config: BridgeConfig,
        *,
        transport: Transport | None = None,
        cache: IdentityCache | None = None,
        forwarder: Forwarder | None = None,
    ) -> None:
        self.config = config
        self.cache = cache or JSONFileIdentityCache(config.identity_cache_path)
        self.forwarder = forwarder or WebhookForwarder(config.webhook())

        directory = None
        if transport is None:
            from wabridge.sources.neonize import NeonizeTransport

            transport = NeonizeTransport(config.session_dir, device_name=config.device_name)
            if config.directory_lookup:
                directory = transport.directory()
        self.transport = transport

        self.resolver = JidIdentityResolver(
            self.cache,
            unresolved_policy=config.unresolved_policy,
            directory=directory,
        )
        self.pipeline = MessageIntakePipeline(
            self.resolver,
            self.forwarder,
            require_code=config.require_code,
            forward_own_messages=config.forward_own_messages,
        )
        self.manager = ConnectionLifecycleManager(
            transport,
            on_messages=self.pipeline.handle_batch,
            identity_cache=self.cache,
            policy=config.reconnect_policy(),
            keepalive_interval=config.keepalive_interval,
            reset_identities_on_logout=config.reset_identities_on_logout,
            on_qr=render_qr,
        )

    async def run(self) -> None:
        """Load the identity cache, then run the session until stopped."""
        self.cache.load_all()
        logger.info(
            "Forwarding WhatsApp messages to %s",
            self.config.webhook_url,
            extra={"transport": self.transport.name},
        )
        try:
            await self.manager.run()
        finally:
            close = getattr(self.forwarder, "close", None)
            if close is not None:
                await close()

    async def stop(self) -> None:
        await self.manager.stop()


async def run(config: BridgeConfig) -> int:
    """Run a bridge for *config*; return the process exit status."""
    try:
        bridge = Bridge(config)
        await bridge.run()
    except BridgeError:
        logger.exception("Failed to start WhatsApp listener")
        return 1
    return 0
