from __future__ import annotations

import pytest

from chat.core.storage import InMemoryStore
from chat.session import SessionController
from chat.surface import HtmlSurface
from config.settings import Settings

from tests.fakes import FakeBackend, FakeClock, FakeSpeech


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def surface(clock: FakeClock) -> HtmlSurface:
    return HtmlSurface(error_display_seconds=5.0, clock=clock)


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def speech() -> FakeSpeech:
    return FakeSpeech()


@pytest.fixture
def session(backend, surface, store, speech) -> SessionController:
    return SessionController(
        backend=backend,
        view=surface,
        store=store,
        history_limit=100,
        speech_output=speech,
    )


@pytest.fixture
def settings(monkeypatch) -> Settings:
    monkeypatch.setenv("GEMINI_API_KEY", "test-key")
    monkeypatch.setenv("GEMINI_API_BASE", "https://gemini.test/v1beta")
    monkeypatch.setenv("GEMINI_MODEL", "gemini-test")
    monkeypatch.delenv("FRONTEND_DIR", raising=False)
    return Settings()


@pytest.fixture
def settings_without_key(monkeypatch) -> Settings:
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.delenv("FRONTEND_DIR", raising=False)
    return Settings()
