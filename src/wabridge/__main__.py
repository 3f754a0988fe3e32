"""Entry point: ``python -m wabridge``."""

from __future__ import annotations

import asyncio
import logging
import sys

from wabridge.app import configure_logging, run
from wabridge.config import BridgeConfig
from wabridge.core.errors import ConfigError

logger = logging.getLogger("wabridge")


def main() -> None:
    try:
        config = BridgeConfig.from_env()
    except ConfigError as exc:
        configure_logging()
        logger.error("Invalid configuration: %s", exc)
        sys.exit(1)

    configure_logging(config.log_level)
    try:
        code = asyncio.run(run(config))
    except KeyboardInterrupt:
        code = 0
    sys.exit(code)


if __name__ == "__main__":
    main()
