"""Background service: session lifecycle, navigation checks and message dispatch."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any
from urllib.parse import quote, urlsplit

import structlog
from pydantic import ValidationError

from .config import settings
from .engine import CoreState, VerdictEngine
from .loader import FeedLoader
from .messages import (
    AllowDomainRequest,
    BlacklistResponse,
    CheckDomainRequest,
    CheckDomainResponse,
    GetBlacklistRequest,
    MessageSender,
    ProtectionChangedNotice,
    RefreshBlacklistRequest,
    RefreshResponse,
    Response,
    SetProtectionRequest,
    SetProtectionResponse,
    SuccessResponse,
    request_adapter,
)
from .models import FeedSource, LoadResult, NavigationAction, NavigationDecision
from .normalizer import extract_domain, is_valid_hostname, normalize
from .protection import ProtectionState
from .storage import InMemoryStore, KeyValueStore

log = structlog.get_logger()

INTERNAL_URL_PREFIXES = ("chrome://", "chrome-extension://", "about:", "edge://", "moz-extension://")
EXTENSION_URL_PREFIXES = ("chrome-extension://", "moz-extension://")


class TabBroadcaster(ABC):
    """Delivers a message to every open tab."""

    @abstractmethod
    async def broadcast(self, message: dict[str, Any]) -> None: ...


class NullBroadcaster(TabBroadcaster):
    async def broadcast(self, message: dict[str, Any]) -> None:
        pass


class GuardService:
    def __init__(
        self,
        local_store: KeyValueStore,
        state: CoreState | None = None,
        loader: FeedLoader | None = None,
        broadcaster: TabBroadcaster | None = None,
        session_store: KeyValueStore | None = None,
        extension_id: str | None = None,
    ) -> None:
        self.state = state or CoreState(protection=ProtectionState(session_store or InMemoryStore()))
        self.engine = VerdictEngine(self.state)
        self.loader = loader or FeedLoader(self.state.index, local_store)
        self.broadcaster = broadcaster or NullBroadcaster()
        self.extension_id = extension_id or settings.extension_id
        self.state.protection.subscribe(self._broadcast_protection)

    async def start_session(self) -> LoadResult:
        """Browser start or install: clear approvals, protection on, load the list."""
        log.info("session_started")
        await self.state.init()
        return await self.loader.reload()

    async def resume(self) -> LoadResult:
        """Worker restarted mid-session: restore the protection flag and the list.

        Approvals are not persisted and stay empty. The list comes from the
        cached snapshot (or the bundled file), never from the network.
        """
        enabled = await self.state.protection.load()
        result = await self.loader.restore()
        log.info("session_resumed", protection_enabled=enabled, source=result.source, count=result.count)
        return result

    async def end_session(self) -> None:
        await self.state.reset()
        log.info("session_ended")

    async def _broadcast_protection(self, enabled: bool) -> None:
        notice = ProtectionChangedNotice(protection_enabled=enabled)
        await self.broadcaster.broadcast(notice.model_dump(by_alias=True))

    def on_navigation(self, url: str) -> NavigationDecision:
        """Check a tab that started loading ``url``."""
        if not url or url.startswith(INTERNAL_URL_PREFIXES):
            return NavigationDecision(action=NavigationAction.ALLOW)
        if not self.state.protection.is_enabled():
            return NavigationDecision(action=NavigationAction.ALLOW)

        domain = extract_domain(url)
        if not domain:
            return NavigationDecision(action=NavigationAction.ALLOW)

        verdict = self.engine.evaluate(domain)
        if not self.engine.should_block(verdict):
            return NavigationDecision(action=NavigationAction.ALLOW, verdict=verdict)

        log.warning("risky_shop_detected", domain=domain, matched=verdict.matched_domain)
        redirect = f"{settings.blocked_page_url}?url={quote(url, safe='')}"
        return NavigationDecision(action=NavigationAction.BLOCK, verdict=verdict, redirect_url=redirect)

    def is_trusted_sender(self, sender: MessageSender) -> bool:
        """Our own extension pages, or the blocked page shown in a tab."""
        if not sender.id or sender.id != self.extension_id:
            log.warning("message_rejected_foreign_extension", sender_id=sender.id)
            return False
        tab_url = sender.tab_url
        if not tab_url or tab_url.startswith(EXTENSION_URL_PREFIXES):
            return True
        try:
            is_blocked_page = urlsplit(tab_url).path == urlsplit(settings.blocked_page_url).path
        except ValueError:
            is_blocked_page = False
        if not is_blocked_page:
            log.warning("message_rejected_untrusted_tab", tab_url=tab_url[:200])
        return is_blocked_page

    async def handle_message(self, message: Any, sender: MessageSender | dict[str, Any] | None) -> dict[str, Any]:
        """Dispatch one raw message; invalid input gets ``{success: false}``."""
        try:
            origin = sender if isinstance(sender, MessageSender) else MessageSender.model_validate(sender)
        except ValidationError:
            origin = None
        if origin is None or not self.is_trusted_sender(origin):
            return SuccessResponse(success=False, error="Unauthorized").model_dump(by_alias=True)

        try:
            request = request_adapter.validate_python(message)
        except ValidationError as exc:
            log.warning("invalid_message", errors=exc.error_count())
            return SuccessResponse(success=False, error="Invalid message").model_dump(by_alias=True)

        response: Response
        match request:
            case CheckDomainRequest(url=url):
                response = self._check_domain(url)
            case AllowDomainRequest(domain=domain):
                response = self._allow_domain(domain)
            case SetProtectionRequest(enabled=enabled):
                await self.state.protection.set_enabled(enabled)
                response = SetProtectionResponse(protection_enabled=self.state.protection.is_enabled())
            case GetBlacklistRequest():
                response = self._blacklist()
            case RefreshBlacklistRequest():
                response = await self._refresh()
        return response.model_dump(by_alias=True)

    def _check_domain(self, url: str | None) -> CheckDomainResponse:
        protection = self.state.protection.is_enabled()
        verdict = self.engine.evaluate(url)
        return CheckDomainResponse(
            is_risky=verdict.is_risky,
            is_overridden=verdict.is_overridden,
            protection_enabled=protection,
            domain=verdict.domain,
            reason=verdict.reason,
            matched_domain=verdict.matched_domain,
        )

    def _allow_domain(self, domain: str) -> SuccessResponse:
        key = normalize(domain)
        if not is_valid_hostname(key):
            log.warning("allow_domain_rejected", domain=domain[:200])
            return SuccessResponse(success=False, error="Invalid domain format")
        self.state.overrides.approve(key)
        return SuccessResponse(success=True)

    def _blacklist(self) -> BlacklistResponse:
        index = self.state.index
        return BlacklistResponse(
            blacklist=index.domains(),
            protection_enabled=self.state.protection.is_enabled(),
            last_update=index.last_update.isoformat() if index.last_update else None,
        )

    async def _refresh(self) -> RefreshResponse:
        result = await self.loader.reload()
        return RefreshResponse(
            success=result.source is not FeedSource.NONE,
            count=result.count,
            last_update=result.last_update.isoformat() if result.last_update else None,
            error="All feed sources failed" if result.source is FeedSource.NONE else None,
        )
