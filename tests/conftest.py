"""Global test fixtures for the ethr-did test suite."""

from __future__ import annotations

import os

import pytest

from ethr_did.core.config import IdentitySettings, clear_config_cache
from ethr_did.identity.controller import IdentityController
from ethr_did.identity.keys import LocalSigner
from ethr_did.registry.memory import InMemoryRegistry
from ethr_did.resolution.resolver import EventLogResolver

START_TIME = 1_700_000_000

# Fixed keys so failures are reproducible
OWNER_KEY = "0x" + "a1" * 32
RELAYER_KEY = "0x" + "b2" * 32
DELEGATE_KEY = "0x" + "c3" * 32
OTHER_KEY = "0x" + "d4" * 32


class FakeClock:
    """Controllable clock for the in-memory registry."""

    def __init__(self, now: int = START_TIME) -> None:
        self.now = now

    def __call__(self) -> float:
        return float(self.now)

    def advance(self, seconds: int) -> None:
        self.now += seconds


# ============================================================================
# Environment Fixtures
# ============================================================================


@pytest.fixture
def clean_env(monkeypatch):
    """Remove all ETHR_DID_ environment variables and reset cached config."""
    for key in list(os.environ.keys()):
        if key.startswith("ETHR_DID_"):
            monkeypatch.delenv(key, raising=False)
    clear_config_cache()
    yield
    clear_config_cache()


@pytest.fixture
def settings(clean_env) -> IdentitySettings:
    return IdentitySettings()


# ============================================================================
# Keys
# ============================================================================


@pytest.fixture
def owner() -> LocalSigner:
    return LocalSigner(OWNER_KEY)


@pytest.fixture
def relayer() -> LocalSigner:
    return LocalSigner(RELAYER_KEY)


@pytest.fixture
def delegate() -> LocalSigner:
    return LocalSigner(DELEGATE_KEY)


@pytest.fixture
def other() -> LocalSigner:
    return LocalSigner(OTHER_KEY)


# ============================================================================
# Registry and Controller
# ============================================================================


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def registry(clock: FakeClock) -> InMemoryRegistry:
    return InMemoryRegistry(clock=clock)


@pytest.fixture
def resolver(registry: InMemoryRegistry) -> EventLogResolver:
    return EventLogResolver(registry)


@pytest.fixture
def controller(registry, owner, relayer, settings) -> IdentityController:
    """Controller for the owner's identity, relaying signed calls through ``relayer``."""
    return IdentityController(
        owner.address,
        registry,
        private_key=OWNER_KEY,
        tx_sender=relayer.address,
        settings=settings,
    )
