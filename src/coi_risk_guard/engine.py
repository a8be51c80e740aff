"""Verdict engine: combine the risk index, overrides and protection flag."""

from __future__ import annotations

from dataclasses import dataclass, field

import structlog

from .config import settings
from .errors import MalformedInput
from .models import Verdict
from .normalizer import normalize
from .overrides import SessionOverrides
from .protection import ProtectionState
from .risk_index import RiskIndex
from .storage import InMemoryStore

log = structlog.get_logger()


@dataclass
class CoreState:
    """The three mutable components, owned together and passed explicitly."""

    index: RiskIndex = field(default_factory=lambda: RiskIndex(policy=settings.suffix_match_policy))
    overrides: SessionOverrides = field(default_factory=SessionOverrides)
    protection: ProtectionState = field(default_factory=lambda: ProtectionState(InMemoryStore()))

    async def init(self) -> None:
        """Session start: no approvals, protection on."""
        self.overrides.reset()
        await self.protection.reset()

    async def reset(self) -> None:
        """Session end: drop session-scoped state."""
        self.overrides.reset()
        await self.protection.reset()


class VerdictEngine:
    def __init__(self, state: CoreState) -> None:
        self.state = state

    def evaluate(self, candidate: str | None) -> Verdict:
        """Decide whether ``candidate`` (URL or domain) is on the risk list.

        Fails open: input that cannot be reduced to a hostname is not risky.
        The protection flag is not part of the verdict; callers use
        :meth:`should_block` to decide whether to act on it.
        """
        try:
            domain = self._normalize(candidate)
        except MalformedInput:
            log.warning("evaluate_malformed_input", candidate=str(candidate)[:200])
            return Verdict()
        if not domain:
            return Verdict()

        match = self.state.index.lookup(domain)
        if not match.matched:
            return Verdict(domain=domain)

        # exact host the user approved, not the listed parent
        if self.state.overrides.is_approved(domain):
            return Verdict(
                domain=domain,
                is_risky=False,
                is_overridden=True,
                matched_domain=match.matched_domain,
                reason=match.reason,
            )
        return Verdict(
            domain=domain,
            is_risky=True,
            is_overridden=False,
            matched_domain=match.matched_domain,
            reason=match.reason,
        )

    def should_block(self, verdict: Verdict) -> bool:
        return verdict.is_risky and self.state.protection.is_enabled()

    @staticmethod
    def _normalize(candidate: str | None) -> str:
        try:
            return normalize(candidate)
        except Exception as exc:
            raise MalformedInput(str(exc)) from exc
