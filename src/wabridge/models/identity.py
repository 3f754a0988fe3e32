"""Identity resolution models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from wabridge.models.enums import JidKind, ResolutionStatus


class Jid(BaseModel):
    """A parsed ``user[:device]@server`` identifier."""

    model_config = ConfigDict(frozen=True)

    user: str
    server: str = ""
    device: int | None = None
    kind: JidKind = JidKind.UNKNOWN

    def __str__(self) -> str:
        if not self.server:
            return self.user
        return f"{self.user}@{self.server}"


class Resolution(BaseModel):
    """Result of resolving a sender identifier.

    ``address`` is ``None`` exactly when ``status`` is ``SKIPPED``.
    ``via`` names the rule or heuristic that produced the result.
    """

    status: ResolutionStatus
    address: str | None = None
    via: str | None = None

    @property
    def skipped(self) -> bool:
        return self.status == ResolutionStatus.SKIPPED

    @classmethod
    def skip(cls, via: str) -> Resolution:
        return cls(status=ResolutionStatus.SKIPPED, via=via)

    @classmethod
    def resolved(cls, address: str, via: str) -> Resolution:
        return cls(status=ResolutionStatus.RESOLVED, address=address, via=via)

    @classmethod
    def cached(cls, address: str) -> Resolution:
        return cls(status=ResolutionStatus.CACHED, address=address, via="cache")

    @classmethod
    def degraded(cls, address: str) -> Resolution:
        return cls(status=ResolutionStatus.DEGRADED, address=address, via="alias")
