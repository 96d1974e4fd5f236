"""Fixed-window rate limiting over a shared counter store.

Each (key_prefix, identifier) pair owns one counter. The first request in
a window creates it with a TTL of ``window_seconds``; later requests only
increment it, so the window is anchored to the first request and ends when
the store expires the key.

The store is always passed in by the caller. When it fails, the mutating
check fails OPEN: the request is allowed, the result is marked
``degraded`` and the failure is logged. The read-only status query
returns None instead.

Returns standard rate limit metadata for response headers:
- X-RateLimit-Limit
- X-RateLimit-Remaining
- X-RateLimit-Reset
"""

import logging
import math
import time
from dataclasses import dataclass

from starlette.requests import HTTPConnection

from storegate.logging.audit import log_rate_limit_event
from storegate.security.identity import get_client_identifier
from storegate.stores.models import WindowCounter
from storegate.stores.store import CounterStore


@dataclass(frozen=True)
class RateLimitConfig:
    max_requests: int
    window_seconds: int
    key_prefix: str
    use_user_id: bool = False


@dataclass
class RateLimitResult:
    allowed: bool
    remaining: int
    limit: int
    reset_at: int  # Unix seconds when the current window counter expires
    degraded: bool = False  # True when the store failed and we failed open

    @property
    def retry_after(self) -> int:
        """Seconds until reset, never below 1 (for the Retry-After header)."""
        return max(1, self.reset_at - int(time.time()))


@dataclass
class StoreDegraded:
    """Degraded outcome of a store call: the error that prevented an answer."""

    error: Exception


def build_key(key_prefix: str, identifier: str) -> str:
    return f"{key_prefix}:{identifier}"


def _reset_at(now: float, ttl: int, window_seconds: int) -> int:
    # Negative TTL means the key vanished or has no expiry; assume a full window
    if ttl < 0:
        ttl = window_seconds
    return math.floor(now) + ttl


def _decide(counter: WindowCounter, config: RateLimitConfig, now: float) -> RateLimitResult:
    return RateLimitResult(
        allowed=counter.count <= config.max_requests,
        remaining=max(0, config.max_requests - counter.count),
        limit=config.max_requests,
        reset_at=_reset_at(now, counter.ttl, config.window_seconds),
    )


async def _increment(store: CounterStore, key: str, window_seconds: int) -> WindowCounter | StoreDegraded:
    """Run the atomic increment, turning any store failure into a value."""
    try:
        return await store.increment(key, window_seconds)
    except Exception as e:
        return StoreDegraded(error=e)


async def check_identifier(store: CounterStore, identifier: str, config: RateLimitConfig) -> RateLimitResult:
    """Count one request for an already-derived identifier."""
    now = time.time()

    # A zero quota blocks unconditionally, without touching the store
    if config.max_requests <= 0:
        return RateLimitResult(
            allowed=False,
            remaining=0,
            limit=config.max_requests,
            reset_at=math.floor(now) + config.window_seconds,
        )

    key = build_key(config.key_prefix, identifier)
    outcome = await _increment(store, key, config.window_seconds)

    if isinstance(outcome, StoreDegraded):
        log_rate_limit_event(
            logging.WARNING,
            "Rate limit store unavailable, failing open",
            config.key_prefix,
            identifier,
            error_type=type(outcome.error).__name__,
            error=str(outcome.error),
        )
        return RateLimitResult(
            allowed=True,
            remaining=max(0, config.max_requests - 1),
            limit=config.max_requests,
            reset_at=math.floor(now) + config.window_seconds,
            degraded=True,
        )

    return _decide(outcome, config, now)


async def check_rate_limit(store: CounterStore, request: HTTPConnection, config: RateLimitConfig) -> RateLimitResult:
    """Check and count the current request against a profile.

    Args:
        store: Counter store wired at startup.
        request: Incoming request (address, headers, cookies).
        config: Profile to enforce.

    Never raises: a store failure yields an allowed, ``degraded`` result.
    """
    identifier = get_client_identifier(request, use_user_id=config.use_user_id)
    return await check_identifier(store, identifier, config)


async def rate_limit(store: CounterStore, request: HTTPConnection, config: RateLimitConfig) -> RateLimitResult:
    """Call-site alias for check_rate_limit."""
    return await check_rate_limit(store, request, config)


async def reset_rate_limit(store: CounterStore, identifier: str, key_prefix: str) -> None:
    """Drop an identifier's counter immediately. Safe to call on absent keys."""
    await store.delete(build_key(key_prefix, identifier))


async def get_rate_limit_status(
    store: CounterStore, identifier: str, config: RateLimitConfig
) -> RateLimitResult | None:
    """Inspect an identifier's window without counting a request.

    ``allowed`` answers "would the next request be admitted". Returns None
    when the store cannot be read.
    """
    now = time.time()
    key = build_key(config.key_prefix, identifier)
    try:
        counter = await store.get(key)
    except Exception as e:
        log_rate_limit_event(
            logging.WARNING,
            "Rate limit status unavailable",
            config.key_prefix,
            identifier,
            error_type=type(e).__name__,
        )
        return None

    count = counter.count if counter is not None else 0
    ttl = counter.ttl if counter is not None else config.window_seconds
    return RateLimitResult(
        allowed=count < config.max_requests,
        remaining=max(0, config.max_requests - count),
        limit=config.max_requests,
        reset_at=_reset_at(now, ttl, config.window_seconds),
    )
