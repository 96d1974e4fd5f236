"""Shared fixtures for the storegate test suite."""

import pytest
from starlette.requests import Request

from storegate.config.settings import get_settings
from storegate.stores.store import CounterStore, MemoryCounterStore, StoreError


class FakeClock:
    """Manually advanced time source for MemoryCounterStore."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class UnreachableStore(CounterStore):
    """Store whose every call fails, as if the backend were down."""

    async def increment(self, key, window_seconds):
        raise StoreError("connection refused")

    async def get(self, key):
        raise StoreError("connection refused")

    async def delete(self, key):
        raise StoreError("connection refused")

    async def delete_prefix(self, prefix):
        raise StoreError("connection refused")

    async def ping(self):
        return False


def make_request(
    client_host: str | None = "192.168.1.1",
    headers: dict[str, str] | None = None,
    cookies: dict[str, str] | None = None,
    path: str = "/api/test",
) -> Request:
    """Build a bare Starlette request from an ASGI scope."""
    raw_headers = [
        (name.lower().encode("latin-1"), value.encode("latin-1"))
        for name, value in (headers or {}).items()
    ]
    if cookies:
        cookie_header = "; ".join(f"{name}={value}" for name, value in cookies.items())
        raw_headers.append((b"cookie", cookie_header.encode("latin-1")))

    scope = {
        "type": "http",
        "method": "POST",
        "scheme": "http",
        "path": path,
        "query_string": b"",
        "headers": raw_headers,
        "client": (client_host, 51234) if client_host else None,
        "server": ("testserver", 80),
    }
    return Request(scope)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def memory_store(clock) -> MemoryCounterStore:
    return MemoryCounterStore(clock=clock)


@pytest.fixture
def unreachable_store() -> UnreachableStore:
    return UnreachableStore()


@pytest.fixture
def override_settings(monkeypatch):
    """Factory fixture: set env vars and clear settings cache.

    Usage:
        override_settings(ADMIN_API_KEYS="key1,key2", RATE_LIMIT_ENABLED="false")
    """
    def _override(**kwargs):
        for key, value in kwargs.items():
            monkeypatch.setenv(key.upper(), str(value))
        # Clear lru_cache so Settings re-reads env
        get_settings.cache_clear()

    yield _override

    # Always clear cache on teardown so other tests get fresh settings
    get_settings.cache_clear()
