from __future__ import annotations

import pytest

from coi_risk_guard.engine import CoreState, VerdictEngine
from coi_risk_guard.overrides import SessionOverrides
from coi_risk_guard.protection import ProtectionState
from coi_risk_guard.risk_index import RiskIndex
from coi_risk_guard.storage import InMemoryStore

SAMPLE_ENTRIES = {
    "scam.com": "Fraud",
    "fake.cz": "Neexistující zboží",
    "vintedworld.store": "Anonymní provozovatel",
}


@pytest.fixture
def session_store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def index() -> RiskIndex:
    return RiskIndex(SAMPLE_ENTRIES)


@pytest.fixture
def state(index: RiskIndex, session_store: InMemoryStore) -> CoreState:
    return CoreState(index=index, overrides=SessionOverrides(), protection=ProtectionState(session_store))


@pytest.fixture
def engine(state: CoreState) -> VerdictEngine:
    return VerdictEngine(state)
