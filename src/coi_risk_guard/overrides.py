"""Domains the user chose to visit despite a warning, for this session only."""

from __future__ import annotations

import structlog

from .normalizer import normalize

log = structlog.get_logger()


class SessionOverrides:
    """Exact-match approval set.

    Approving ``scam.cz`` does not approve ``shop.scam.cz``: the user only saw
    a warning for the host they approved. The set is never persisted.
    """

    def __init__(self) -> None:
        self._approved: set[str] = set()

    def approve(self, domain: str) -> str:
        """Add ``domain`` (normalized). Returns the stored key, ``""`` if none."""
        key = normalize(domain)
        if not key:
            return ""
        if key not in self._approved:
            self._approved.add(key)
            log.info("domain_allowed", domain=key)
        return key

    def is_approved(self, domain: str) -> bool:
        key = normalize(domain)
        return bool(key) and key in self._approved

    def reset(self) -> None:
        if self._approved:
            log.info("overrides_cleared", count=len(self._approved))
        self._approved = set()

    def __len__(self) -> int:
        return len(self._approved)

    def __contains__(self, domain: object) -> bool:
        return isinstance(domain, str) and self.is_approved(domain)
