"""In-memory risk list with exact and subdomain lookup."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from datetime import datetime, timezone
from types import MappingProxyType

import structlog

from .models import LookupResult, MatchPolicy, RiskEntry, RiskSnapshot

log = structlog.get_logger()

_NO_MATCH = LookupResult()


class RiskIndex:
    """Holds the current ``domain -> reason`` snapshot.

    The snapshot is swapped as a whole by :meth:`replace`; lookups read the
    reference once, so they see either the old or the new list, never a mix.

    With ``MatchPolicy.FIRST_INSERTED`` a candidate that is a subdomain of
    several listed domains matches the one that appeared first in the feed.
    That depends on feed order and can change between reloads.
    ``MatchPolicy.MOST_SPECIFIC`` picks the longest listed suffix instead and
    only looks up the candidate's own parent domains.
    """

    def __init__(
        self,
        entries: Mapping[str, str] | None = None,
        policy: MatchPolicy = MatchPolicy.FIRST_INSERTED,
    ) -> None:
        self.policy = MatchPolicy(policy)
        self._entries: Mapping[str, str] = MappingProxyType({})
        self._last_update: datetime | None = None
        if entries:
            self.replace(entries)

    def replace(self, entries: Mapping[str, str], last_update: datetime | None = None) -> None:
        """Swap in a new snapshot built entirely before the swap."""
        fresh = MappingProxyType(dict(entries))
        self._entries = fresh
        self._last_update = last_update or datetime.now(timezone.utc)
        log.info("risk_index_replaced", entries=len(fresh))

    def lookup(self, domain: str) -> LookupResult:
        """Match a canonical hostname against the list.

        ``domain`` is expected to be normalized already.
        """
        entries = self._entries
        if not domain:
            return _NO_MATCH

        reason = entries.get(domain)
        if reason is not None:
            return LookupResult(matched=True, reason=reason, matched_domain=domain)

        if self.policy is MatchPolicy.MOST_SPECIFIC:
            return self._lookup_parents(entries, domain)

        # O(n) in list size
        for listed, reason in entries.items():
            if domain.endswith("." + listed):
                return LookupResult(matched=True, reason=reason, matched_domain=listed)
        return _NO_MATCH

    @staticmethod
    def _lookup_parents(entries: Mapping[str, str], domain: str) -> LookupResult:
        labels = domain.split(".")
        for i in range(1, len(labels)):
            parent = ".".join(labels[i:])
            reason = entries.get(parent)
            if reason is not None:
                return LookupResult(matched=True, reason=reason, matched_domain=parent)
        return _NO_MATCH

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, domain: object) -> bool:
        return domain in self._entries

    @property
    def size(self) -> int:
        return len(self._entries)

    @property
    def last_update(self) -> datetime | None:
        return self._last_update

    def domains(self) -> list[str]:
        return list(self._entries)

    def entries(self) -> Iterator[RiskEntry]:
        for domain, reason in self._entries.items():
            yield RiskEntry(domain=domain, reason=reason)

    def snapshot(self) -> RiskSnapshot:
        """Persistable copy of the current list, in feed order."""
        return RiskSnapshot(
            scam_domains=list(self._entries.items()),
            last_update=self._last_update.isoformat() if self._last_update else None,
        )
