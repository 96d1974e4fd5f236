"""FastAPI dependencies that enforce a rate limit profile on a route.

Usage:
    @app.post("/api/search", dependencies=[Depends(require_rate_limit(RateLimitProfiles.SEARCH))])
"""

import logging

from fastapi import Depends, HTTPException, Request, Response

from storegate.config.settings import get_settings
from storegate.logging.audit import log_rate_limit_event
from storegate.security.identity import get_client_identifier
from storegate.security.ratelimit import RateLimitConfig, RateLimitResult, check_identifier
from storegate.stores.store import CounterStore


def get_counter_store(request: Request) -> CounterStore:
    """The store wired onto app.state at startup."""
    return request.app.state.counter_store


def rate_limit_headers(result: RateLimitResult) -> dict[str, str]:
    return {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(result.reset_at),
    }


def require_rate_limit(profile: RateLimitConfig):
    """Build a dependency that counts the request against profile.

    Allowed requests get X-RateLimit-* headers on the response; rejected
    ones raise HTTP 429 with the same headers plus Retry-After.
    """

    async def enforce(
        request: Request,
        response: Response,
        store: CounterStore = Depends(get_counter_store),
    ) -> RateLimitResult | None:
        if not get_settings().rate_limit_enabled:
            return None

        identifier = get_client_identifier(request, use_user_id=profile.use_user_id)
        result = await check_identifier(store, identifier, profile)

        if result.allowed:
            response.headers.update(rate_limit_headers(result))
            return result

        retry_after = result.retry_after
        log_rate_limit_event(
            logging.WARNING,
            "Rate limit exceeded",
            profile.key_prefix,
            identifier,
            path=request.url.path,
            rate_limit=result.limit,
            reset_at=result.reset_at,
            retry_after=retry_after,
        )
        raise HTTPException(
            status_code=429,
            detail={
                "error": "Too many requests. Please try again later.",
                "code": "RATE_LIMIT_EXCEEDED",
                "reset_at": result.reset_at,
                "retry_after": retry_after,
            },
            headers={**rate_limit_headers(result), "Retry-After": str(retry_after)},
        )

    return enforce
