"""Pytest configuration and fixtures."""

import asyncio
from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient

from marginalia.ai.protocol import AIRequestProtocol
from marginalia.api.deps import get_ai_protocol, get_store
from marginalia.config import Settings
from marginalia.main import app
from marginalia.store import BrainStore, DocumentStore, MemoryStore, ThreadStore


class FakeProvider:
    """Language model stand-in: returns canned text, raises, or stalls."""

    def __init__(self, reply: str = "Looks good.", error: Exception | None = None, delay: float = 0.0):
        self.reply = reply
        self.error = error
        self.delay = delay
        self.calls: list[dict] = []

    async def complete(self, *, system: str, user: str, max_tokens: int) -> str:
        self.calls.append({"system": system, "user": user, "max_tokens": max_tokens})
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.reply


@pytest.fixture
def settings() -> Settings:
    """Settings with a dummy credential and short debounce windows."""
    return Settings(
        anthropic_api_key="test-key",
        ai_timeout_seconds=0.2,
        content_save_delay=0.02,
        title_save_delay=0.02,
        thread_cleanup_delay=0.04,
    )


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def threads(store: MemoryStore) -> ThreadStore:
    return ThreadStore(store)


@pytest.fixture
def brains(store: MemoryStore) -> BrainStore:
    return BrainStore(store)


@pytest.fixture
def documents(store: MemoryStore) -> DocumentStore:
    return DocumentStore(store)


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def protocol(settings: Settings, provider: FakeProvider) -> AIRequestProtocol:
    return AIRequestProtocol(settings, provider=provider)


@pytest.fixture
async def client(store: MemoryStore, protocol: AIRequestProtocol) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client for testing FastAPI endpoints."""
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_ai_protocol] = lambda: protocol
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
    app.dependency_overrides.clear()
