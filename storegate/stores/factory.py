"""Factory for counter store backends."""

from storegate.config.settings import get_settings
from storegate.stores.store import CounterStore, MemoryCounterStore

_store: CounterStore | None = None


def get_counter_store_from_settings() -> CounterStore:
    """Get the counter store singleton for the configured backend."""
    global _store
    if _store is not None:
        return _store

    settings = get_settings()
    backend = settings.counter_store_backend

    if backend == "memory":
        _store = MemoryCounterStore()
        return _store

    if backend == "redis":
        # Lazy import so memory-backed runs never load the redis client
        from storegate.stores.redis_store import RedisCounterStore
        _store = RedisCounterStore(
            url=settings.redis_url,
            socket_timeout=settings.redis_socket_timeout,
            connect_timeout=settings.redis_connect_timeout,
        )
        return _store

    raise ValueError(f"Unknown counter store backend: {backend}")


async def close_counter_store() -> None:
    """Close and forget the singleton on shutdown."""
    global _store
    if _store is not None:
        await _store.close()
        _store = None
