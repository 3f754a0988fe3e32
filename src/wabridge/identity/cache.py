"""Alias → canonical address mapping, learned at runtime and persisted."""

from __future__ import annotations

import json
import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path

logger = logging.getLogger("wabridge.identity.cache")


class IdentityCache(ABC):
    """Store of learned ``alias token → canonical address`` pairs.

    Keys are bare alias tokens (the user part of ``<token>@lid``), values are
    bare phone numbers. A mapping is never overwritten once written.

    All methods are synchronous so that a lookup followed by a write inside a
    single resolution can never interleave with another coroutine.
    """

    def __init__(self) -> None:
        self._entries: dict[str, str] = {}

    def get(self, alias: str) -> str | None:
        """Return the canonical address learned for *alias*, if any."""
        return self._entries.get(alias)

    def put(self, alias: str, address: str) -> bool:
        """Record *alias* → *address* unless *alias* is already mapped.

        Returns ``True`` when a new entry was written. A new entry is
        persisted immediately.
        """
        if not alias or not address or alias in self._entries:
            return False
        self._entries[alias] = address
        self.persist()
        return True

    def __contains__(self, alias: object) -> bool:
        return alias in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def snapshot(self) -> dict[str, str]:
        """Return a copy of the full mapping."""
        return dict(self._entries)

    def clear(self) -> None:
        """Drop every entry, in memory and in durable storage."""
        self._entries.clear()
        self.persist()

    @abstractmethod
    def load_all(self) -> dict[str, str]:
        """Replace the in-memory mapping with the stored one and return it."""
        ...

    @abstractmethod
    def persist(self) -> bool:
        """Write the full mapping to durable storage.

        Returns ``False`` on failure. Failures are logged, never raised; the
        in-memory mapping stays authoritative.
        """
        ...


class InMemoryIdentityCache(IdentityCache):
    """Dict-only cache for development and testing."""

    def __init__(self, entries: dict[str, str] | None = None) -> None:
        super().__init__()
        self._entries.update(entries or {})

    def load_all(self) -> dict[str, str]:
        return self.snapshot()

    def persist(self) -> bool:
        return True


class JSONFileIdentityCache(IdentityCache):
    """Cache backed by a single JSON object file.

    The file is read fully by :meth:`load_all` and rewritten fully on every
    new entry, through a temporary file and :func:`os.replace`.
    """

    def __init__(self, path: str | os.PathLike[str]) -> None:
        super().__init__()
        self._path = Path(path)
        self._readable = True

    @property
    def path(self) -> Path:
        return self._path

    def load_all(self) -> dict[str, str]:
        self._readable = True
        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.info("No identity cache at %s, starting empty", self._path)
            self._entries = {}
            return {}
        except OSError:
            # The file may still hold mappings; never overwrite what we could not read.
            logger.error(
                "Failed to read identity cache %s, new mappings will not be persisted",
                self._path,
                exc_info=True,
            )
            self._readable = False
            self._entries = {}
            return {}

        try:
            data = json.loads(raw) if raw.strip() else {}
        except json.JSONDecodeError:
            logger.warning("Identity cache %s is not valid JSON, starting empty", self._path)
            data = {}
        if not isinstance(data, dict):
            logger.warning("Identity cache %s is not a JSON object, starting empty", self._path)
            data = {}

        self._entries = {str(k): str(v) for k, v in data.items() if k and v}
        logger.info(
            "Loaded %d identity mappings from %s",
            len(self._entries),
            self._path,
            extra={"entries": len(self._entries)},
        )
        return self.snapshot()

    def persist(self) -> bool:
        if not self._readable:
            logger.warning(
                "Not persisting identity cache: %s could not be read at load", self._path
            )
            return False
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(json.dumps(self._entries, indent=2, sort_keys=True), encoding="utf-8")
            os.replace(tmp, self._path)
        except OSError:
            logger.error("Failed to persist identity cache to %s", self._path, exc_info=True)
            return False
        return True
