from __future__ import annotations

from typing import Any

import pytest

from coi_risk_guard.engine import CoreState
from coi_risk_guard.loader import FeedLoader
from coi_risk_guard.messages import MessageSender
from coi_risk_guard.models import FeedSource, NavigationAction, RiskSnapshot
from coi_risk_guard.protection import ProtectionState
from coi_risk_guard.service import GuardService, TabBroadcaster
from coi_risk_guard.sources import SourceResult, SourceStrategy
from coi_risk_guard.storage import PROTECTION_KEY, InMemoryStore, write_snapshot

EXTENSION_ID = "test-extension"
POPUP = MessageSender(id=EXTENSION_ID)


class RecordingBroadcaster(TabBroadcaster):
    def __init__(self) -> None:
        self.messages: list[dict[str, Any]] = []

    async def broadcast(self, message: dict[str, Any]) -> None:
        self.messages.append(message)


class StaticSource(SourceStrategy):
    def __init__(self, kind: FeedSource, entries: dict[str, str]) -> None:
        self.kind = kind
        self.entries = entries

    async def load(self) -> SourceResult:
        return SourceResult(self.kind, dict(self.entries))


@pytest.fixture
def broadcaster() -> RecordingBroadcaster:
    return RecordingBroadcaster()


@pytest.fixture
async def service(broadcaster: RecordingBroadcaster) -> GuardService:
    store = InMemoryStore()
    state = CoreState()
    loader = FeedLoader(
        state.index,
        store,
        remote=StaticSource(FeedSource.REMOTE, {"scam.com": "Fraud", "fake.cz": "Fake"}),
        bundled=StaticSource(FeedSource.BUNDLED, {}),
        min_fetch_interval=0,
    )
    svc = GuardService(store, state=state, loader=loader, broadcaster=broadcaster, extension_id=EXTENSION_ID)
    await svc.start_session()
    return svc


class TestSession:
    async def test_start_session_loads_list(self, service: GuardService) -> None:
        assert service.state.index.size == 2

    async def test_start_session_resets_overrides_and_protection(self, service: GuardService) -> None:
        service.state.overrides.approve("scam.com")
        await service.state.protection.set_enabled(False)

        await service.start_session()

        assert len(service.state.overrides) == 0
        assert service.state.protection.is_enabled()


class TestNavigation:
    async def test_risky_page_is_redirected(self, service: GuardService) -> None:
        decision = service.on_navigation("https://www.scam.com/offer?x=1")
        assert decision.action is NavigationAction.BLOCK
        assert decision.redirect_url is not None
        assert decision.redirect_url.endswith("?url=https%3A%2F%2Fwww.scam.com%2Foffer%3Fx%3D1")
        assert decision.verdict is not None and decision.verdict.matched_domain == "scam.com"

    @pytest.mark.parametrize("url", ["chrome://settings", "chrome-extension://abc/popup.html", "about:blank", ""])
    async def test_internal_pages_are_skipped(self, service: GuardService, url: str) -> None:
        assert service.on_navigation(url).action is NavigationAction.ALLOW

    async def test_safe_page_is_allowed(self, service: GuardService) -> None:
        assert service.on_navigation("https://example.cz/").action is NavigationAction.ALLOW

    async def test_disabled_protection_allows_risky_page(self, service: GuardService) -> None:
        await service.state.protection.set_enabled(False)
        assert service.on_navigation("https://scam.com/").action is NavigationAction.ALLOW

    async def test_approved_domain_is_allowed(self, service: GuardService) -> None:
        service.state.overrides.approve("scam.com")
        decision = service.on_navigation("https://scam.com/")
        assert decision.action is NavigationAction.ALLOW
        assert decision.verdict is not None and decision.verdict.is_overridden


class TestMessages:
    async def test_check_domain(self, service: GuardService) -> None:
        response = await service.handle_message({"action": "checkDomain", "url": "https://SCAM.com/x"}, POPUP)
        assert response == {
            "isRisky": True,
            "isOverridden": False,
            "protectionEnabled": True,
            "domain": "scam.com",
            "reason": "Fraud",
            "matchedDomain": "scam.com",
        }

    async def test_check_domain_without_url(self, service: GuardService) -> None:
        response = await service.handle_message({"action": "checkDomain"}, POPUP)
        assert response["isRisky"] is False
        assert response["domain"] == ""

    async def test_allow_domain_then_check(self, service: GuardService) -> None:
        assert await service.handle_message({"action": "allowDomain", "domain": "scam.com"}, POPUP) == {
            "success": True,
            "error": None,
        }
        response = await service.handle_message({"action": "checkDomain", "url": "https://scam.com"}, POPUP)
        assert response["isRisky"] is False
        assert response["isOverridden"] is True
        assert response["reason"] == "Fraud"

    @pytest.mark.parametrize("domain", ["localhost", "a", "bad domain!"])
    async def test_allow_domain_rejects_invalid(self, service: GuardService, domain: str) -> None:
        response = await service.handle_message({"action": "allowDomain", "domain": domain}, POPUP)
        assert response["success"] is False
        assert len(service.state.overrides) == 0

    async def test_set_protection_broadcasts(self, service: GuardService, broadcaster: RecordingBroadcaster) -> None:
        response = await service.handle_message({"action": "setProtection", "enabled": False}, POPUP)
        assert response == {"success": True, "protectionEnabled": False}
        assert broadcaster.messages == [{"action": "protectionChanged", "protectionEnabled": False}]

        check = await service.handle_message({"action": "checkDomain", "url": "scam.com"}, POPUP)
        assert check["isRisky"] is True
        assert check["protectionEnabled"] is False

    async def test_set_protection_requires_boolean(self, service: GuardService) -> None:
        response = await service.handle_message({"action": "setProtection", "enabled": "no"}, POPUP)
        assert response["success"] is False
        assert service.state.protection.is_enabled()

    async def test_get_blacklist(self, service: GuardService) -> None:
        response = await service.handle_message({"action": "getBlacklist"}, POPUP)
        assert response["blacklist"] == ["scam.com", "fake.cz"]
        assert response["protectionEnabled"] is True
        assert response["lastUpdate"] is not None

    async def test_refresh_blacklist(self, service: GuardService) -> None:
        response = await service.handle_message({"action": "refreshBlacklist"}, POPUP)
        assert response["success"] is True
        assert response["count"] == 2

    @pytest.mark.parametrize("message", [None, "checkDomain", {}, {"action": "closeTab"}, {"action": "allowDomain"}])
    async def test_invalid_messages(self, service: GuardService, message: Any) -> None:
        response = await service.handle_message(message, POPUP)
        assert response == {"success": False, "error": "Invalid message"}


class TestSenderCheck:
    @pytest.mark.parametrize(
        "sender",
        [
            None,
            "popup",
            {},
            {"id": "someone-else"},
            MessageSender(id="someone-else", tab_url="chrome-extension://other/popup.html"),
            MessageSender(id=EXTENSION_ID, tab_url="https://evil.example/"),
            MessageSender(id=EXTENSION_ID, tab_url="https://evil.example/?page=blocked.html"),
            {"id": EXTENSION_ID, "tabUrl": "http://[broken/pages/blocked.html"},
        ],
    )
    async def test_untrusted_sender_cannot_allow_domain(self, service: GuardService, sender: Any) -> None:
        response = await service.handle_message({"action": "allowDomain", "domain": "scam.com"}, sender)
        assert response == {"success": False, "error": "Unauthorized"}
        assert len(service.state.overrides) == 0

    async def test_untrusted_sender_cannot_switch_protection_off(
        self, service: GuardService, broadcaster: RecordingBroadcaster
    ) -> None:
        sender = MessageSender(id=EXTENSION_ID, tab_url="https://scam.com/")
        response = await service.handle_message({"action": "setProtection", "enabled": False}, sender)
        assert response["error"] == "Unauthorized"
        assert service.state.protection.is_enabled()
        assert broadcaster.messages == []

    async def test_sender_is_checked_before_the_message(self, service: GuardService) -> None:
        response = await service.handle_message({"action": "closeTab"}, {"id": "someone-else"})
        assert response == {"success": False, "error": "Unauthorized"}

    @pytest.mark.parametrize(
        "sender",
        [
            POPUP,
            {"id": EXTENSION_ID},
            {"id": EXTENSION_ID, "tabUrl": "chrome-extension://abc/pages/blocked.html?url=https%3A%2F%2Fscam.com"},
            MessageSender(id=EXTENSION_ID, tab_url="moz-extension://abc/popup.html"),
        ],
    )
    async def test_extension_pages_are_trusted(self, service: GuardService, sender: Any) -> None:
        response = await service.handle_message({"action": "allowDomain", "domain": "scam.com"}, sender)
        assert response == {"success": True, "error": None}
        assert "scam.com" in service.state.overrides


class TestResume:
    async def test_resume_restores_protection_and_cached_list(self) -> None:
        local, session = InMemoryStore(), InMemoryStore()
        await write_snapshot(local, RiskSnapshot(scam_domains=[("cached.cz", "Old")], last_update="2026-10-01T00:00:00+00:00"))
        await session.set({PROTECTION_KEY: False})

        svc = GuardService(local, session_store=session, extension_id=EXTENSION_ID)
        result = await svc.resume()

        assert result.source is FeedSource.CACHE
        assert svc.state.index.domains() == ["cached.cz"]
        assert not svc.state.protection.is_enabled()
        assert svc.on_navigation("https://cached.cz/").action is NavigationAction.ALLOW

    async def test_resume_without_stored_flag_means_enabled(self) -> None:
        local = InMemoryStore()
        await write_snapshot(local, RiskSnapshot(scam_domains=[("cached.cz", "Old")]))

        svc = GuardService(local, session_store=InMemoryStore(), extension_id=EXTENSION_ID)
        await svc.resume()

        assert svc.state.protection.is_enabled()
        assert svc.on_navigation("https://cached.cz/").action is NavigationAction.BLOCK

    async def test_flag_set_by_message_survives_worker_restart(self) -> None:
        local, session = InMemoryStore(), InMemoryStore()
        await write_snapshot(local, RiskSnapshot(scam_domains=[("cached.cz", "Old")]))
        first = GuardService(local, session_store=session, extension_id=EXTENSION_ID)
        await first.resume()
        await first.handle_message({"action": "setProtection", "enabled": False}, POPUP)

        restarted = GuardService(local, session_store=session, extension_id=EXTENSION_ID)
        await restarted.resume()

        assert not restarted.state.protection.is_enabled()

    async def test_start_session_after_resume_turns_protection_back_on(self) -> None:
        session = InMemoryStore()
        await session.set({PROTECTION_KEY: False})
        state = CoreState(protection=ProtectionState(session))
        loader = FeedLoader(
            state.index,
            InMemoryStore(),
            remote=StaticSource(FeedSource.REMOTE, {"scam.com": "Fraud"}),
            bundled=StaticSource(FeedSource.BUNDLED, {}),
        )
        svc = GuardService(InMemoryStore(), state=state, loader=loader, extension_id=EXTENSION_ID)

        await svc.resume()
        assert not svc.state.protection.is_enabled()
        await svc.start_session()

        assert svc.state.protection.is_enabled()
        assert await session.get([PROTECTION_KEY]) == {PROTECTION_KEY: True}
