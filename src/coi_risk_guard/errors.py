"""Exception taxonomy for the risk-evaluation core.

None of these are fatal: each is caught at the boundary that owns the
recovery (source chain, parser loop, engine, store helpers) and logged.
"""

from __future__ import annotations


class GuardError(Exception):
    """Base class for all coi_risk_guard errors."""


class FeedUnavailable(GuardError):
    """A feed source could not produce a usable risk list."""

    def __init__(self, source: str, detail: str) -> None:
        super().__init__(f"{source}: {detail}")
        self.source = source
        self.detail = detail


class ParseRowError(GuardError):
    """A single feed row could not be turned into an entry."""

    def __init__(self, line_no: int, line: str, detail: str) -> None:
        super().__init__(f"line {line_no}: {detail}")
        self.line_no = line_no
        self.line = line
        self.detail = detail


class MalformedInput(GuardError):
    """A candidate URL or domain could not be normalized."""


class StorageUnavailable(GuardError):
    """The key/value store could not be read or written."""
