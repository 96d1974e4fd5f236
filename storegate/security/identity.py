"""Requester identifier derivation for rate limiting.

Identifiers are ``ip:<address>`` or ``user:<session id>``. Derivation never
fails: a request with no address information lands in ``ip:unknown``.
"""

from starlette.requests import HTTPConnection

from storegate.config.settings import get_settings

UNKNOWN_ADDRESS = "unknown"


def get_client_ip(request: HTTPConnection) -> str:
    """Best-effort client address.

    Order: connection peer, first X-Forwarded-For hop, X-Real-IP.
    """
    if request.client and request.client.host:
        return request.client.host

    forwarded = request.headers.get("x-forwarded-for", "")
    first_hop = forwarded.split(",")[0].strip()
    if first_hop:
        return first_hop

    real_ip = request.headers.get("x-real-ip", "").strip()
    if real_ip:
        return real_ip

    return UNKNOWN_ADDRESS


def get_client_identifier(request: HTTPConnection, use_user_id: bool = False) -> str:
    if use_user_id:
        session_id = request.cookies.get(get_settings().session_cookie_name)
        if session_id:
            return f"user:{session_id}"

    return f"ip:{get_client_ip(request)}"
