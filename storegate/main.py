"""storegate: FastAPI application entry point.

Hosts the shared counter store wiring, a health probe and the admin API
support staff use to inspect and lift rate limits. Route handlers elsewhere
on the platform enforce profiles through storegate.security.guard.
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import asdict

from fastapi import Depends, FastAPI, HTTPException, Request, Response

from storegate.logging.audit import (
    RequestTimer,
    generate_request_id,
    get_audit_logger,
    log_rate_limit_event,
    request_id_var,
    setup_logging,
)
from storegate.security.auth import verify_admin_key
from storegate.security.guard import get_counter_store, require_rate_limit
from storegate.security.profiles import RateLimitProfiles, all_profiles, get_profile
from storegate.security.ratelimit import RateLimitConfig, get_rate_limit_status, reset_rate_limit
from storegate.stores.factory import close_counter_store, get_counter_store_from_settings
from storegate.stores.store import CounterStore, StoreError

VERSION = "0.1.0"

# Throttle before the key check so failed key guesses are counted too
ADMIN_DEPENDENCIES = [
    Depends(require_rate_limit(RateLimitProfiles.ADMIN)),
    Depends(verify_admin_key),
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle hooks."""
    setup_logging()
    app.state.counter_store = get_counter_store_from_settings()
    get_audit_logger().info("storegate started")
    yield
    await close_counter_store()
    get_audit_logger().info("storegate stopped")


app = FastAPI(
    title="storegate",
    description="Rate limiting service for the storefront platform",
    version=VERSION,
    lifespan=lifespan,
)


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    """Tag every request with an id for log correlation and echo it back."""
    rid = request.headers.get("x-request-id") or generate_request_id()
    token = request_id_var.set(rid)
    try:
        with RequestTimer() as timer:
            response = await call_next(request)
    finally:
        request_id_var.reset(token)

    response.headers["X-Request-Id"] = rid
    response.headers["X-Request-Duration-ms"] = str(timer.elapsed_ms)
    return response


@app.get("/health")
async def health(store: CounterStore = Depends(get_counter_store)):
    store_ok = await store.ping()
    return {
        "status": "healthy" if store_ok else "degraded",
        "version": VERSION,
        "store": "ok" if store_ok else "unreachable",
    }


@app.get("/admin/rate-limits/profiles", dependencies=ADMIN_DEPENDENCIES)
async def list_profiles():
    return {"profiles": {name: asdict(config) for name, config in all_profiles().items()}}


@app.get("/admin/rate-limits/{profile}/{identifier}", dependencies=ADMIN_DEPENDENCIES)
async def rate_limit_status(profile: str, identifier: str, store: CounterStore = Depends(get_counter_store)):
    config = _resolve_profile(profile)
    status = await get_rate_limit_status(store, identifier, config)
    if status is None:
        raise HTTPException(status_code=503, detail="Rate limit store unavailable")

    return {
        "key_prefix": config.key_prefix,
        "identifier": identifier,
        "allowed": status.allowed,
        "remaining": status.remaining,
        "limit": status.limit,
        "reset_at": status.reset_at,
    }


@app.delete("/admin/rate-limits/{profile}/{identifier}", status_code=204, dependencies=ADMIN_DEPENDENCIES)
async def reset_identifier(profile: str, identifier: str, store: CounterStore = Depends(get_counter_store)):
    config = _resolve_profile(profile)
    try:
        await reset_rate_limit(store, identifier, config.key_prefix)
    except StoreError as e:
        raise HTTPException(status_code=503, detail="Rate limit store unavailable") from e

    log_rate_limit_event(logging.INFO, "Rate limit reset", config.key_prefix, identifier)
    return Response(status_code=204)


@app.delete("/admin/rate-limits/{profile}", dependencies=ADMIN_DEPENDENCIES)
async def clear_profile(profile: str, store: CounterStore = Depends(get_counter_store)):
    """Drop every counter under a profile, e.g. after a bad deploy locked users out."""
    config = _resolve_profile(profile)
    try:
        deleted = await store.delete_prefix(f"{config.key_prefix}:")
    except StoreError as e:
        raise HTTPException(status_code=503, detail="Rate limit store unavailable") from e

    log_rate_limit_event(logging.INFO, "Rate limit profile cleared", config.key_prefix, deleted=deleted)
    return {"key_prefix": config.key_prefix, "deleted": deleted}


def _resolve_profile(name: str) -> RateLimitConfig:
    try:
        return get_profile(name)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Unknown rate limit profile: {name}") from None
