from __future__ import annotations

from datetime import datetime, timezone
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class FeedSource(StrEnum):
    REMOTE = "remote"
    CACHE = "cache"
    BUNDLED = "bundled"
    NONE = "none"


class NavigationAction(StrEnum):
    ALLOW = "allow"
    BLOCK = "block"


class MatchPolicy(StrEnum):
    FIRST_INSERTED = "first_inserted"
    MOST_SPECIFIC = "most_specific"


class RiskEntry(BaseModel):
    """One flagged domain from the risk list."""

    model_config = ConfigDict(frozen=True)

    domain: str = Field(min_length=1)
    reason: str


class LookupResult(BaseModel):
    """Outcome of matching one canonical hostname against the risk index."""

    model_config = ConfigDict(frozen=True)

    matched: bool = False
    reason: str | None = None
    matched_domain: str | None = None


class Verdict(BaseModel):
    """Decision for a single candidate URL or domain.

    Computed on demand from the index snapshot and the override set; never stored.
    ``matched_domain`` and ``reason`` stay populated for overridden matches so the
    UI can still explain why the domain was listed.
    """

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    domain: str = ""
    is_risky: bool = False
    is_overridden: bool = False
    matched_domain: str | None = None
    reason: str | None = None


class RiskSnapshot(BaseModel):
    """Persisted copy of the risk list, written after every successful reload."""

    model_config = ConfigDict(populate_by_name=True)

    scam_domains: list[tuple[str, str]] = Field(default_factory=list, alias="scamDomains")
    last_update: str | None = Field(default=None, alias="lastUpdate")

    @field_validator("scam_domains", mode="before")
    @classmethod
    def _pairs(cls, value: object) -> object:
        # JSON stores pairs as lists
        if isinstance(value, list):
            return [tuple(pair) for pair in value]
        return value

    def as_mapping(self) -> dict[str, str]:
        return {domain: reason for domain, reason in self.scam_domains}


class LoadResult(BaseModel):
    """Summary of one feed reload."""

    source: FeedSource
    count: int = 0
    last_update: datetime | None = None
    loaded_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class NavigationDecision(BaseModel):
    """What the tab layer should do with a navigation event."""

    action: NavigationAction
    verdict: Verdict | None = None
    redirect_url: str | None = None
