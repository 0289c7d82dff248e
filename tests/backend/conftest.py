# tests/backend/conftest.py

import os

os.environ.setdefault("MONGODB_URL", "mongodb://localhost:27017")
os.environ.setdefault("MONGO_DATABASE", "options_test")
os.environ.setdefault("NONCE_SECRET", "test-secret-not-for-production")
os.environ.setdefault("PLUGIN_NAME", "akamai")

from typing import Any

import pytest
from fastapi.testclient import TestClient
from plugins.core.options.defaults import AkamaiOptions
from plugins.core.options.nonce import NonceGate
from plugins.core.options.service import OptionsService
from plugins.core.options.store import OptionsStore
from utils.nonces import NonceManager

PLUGIN_NAME = "akamai"
FIXED_NOW = 1_700_000_000.0


class InMemoryOptionsBackend:
    """Dict-backed stand-in for OptionsRepository that counts calls."""

    def __init__(self, stored: dict[str, dict[str, Any]] | None = None):
        self.stored = stored or {}
        self.reads: list[str] = []
        self.writes: list[tuple[str, dict[str, Any]]] = []

    async def read(self, key: str) -> dict[str, Any] | None:
        self.reads.append(key)
        value = self.stored.get(key)
        return dict(value) if value is not None else None

    async def write(self, key: str, options: dict[str, Any]) -> bool:
        self.writes.append((key, dict(options)))
        self.stored[key] = dict(options)
        return True


class FrozenClock:
    def __init__(self, now: float = FIXED_NOW):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def backend() -> InMemoryOptionsBackend:
    return InMemoryOptionsBackend()


@pytest.fixture
def store(backend: InMemoryOptionsBackend) -> OptionsStore:
    return OptionsStore(PLUGIN_NAME, backend, AkamaiOptions())


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def nonces(clock: FrozenClock) -> NonceManager:
    return NonceManager(secret="test-secret-not-for-production", clock=clock)


@pytest.fixture
def gate(nonces: NonceManager) -> NonceGate:
    return NonceGate(PLUGIN_NAME, nonces)


@pytest.fixture
def options_service(store: OptionsStore, gate: NonceGate) -> OptionsService:
    return OptionsService(store, gate, PLUGIN_NAME, "0.7.0")


@pytest.fixture
def test_client(options_service: OptionsService) -> TestClient:
    """
    A TestClient for the real application with the options service wired to
    an in-memory backend. The lifespan is not run, so no MongoDB is needed.
    """
    from main import app

    app.state.options_service = options_service
    client = TestClient(app)
    yield client
    del app.state.options_service
