"""API key authentication for the admin endpoints.

Validates the X-API-Key header against the configured admin keys.
"""

import hmac

from fastapi import HTTPException, Security
from fastapi.security import APIKeyHeader

from storegate.config.settings import get_settings

api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


async def verify_admin_key(api_key: str | None = Security(api_key_header)) -> str:
    """FastAPI dependency that validates an admin API key.

    Compares against every configured key so lookup time does not depend
    on which key matched. Returns the matched key.
    """
    if api_key is None:
        raise HTTPException(status_code=401, detail="Missing API key")

    match: str | None = None
    for valid_key in get_settings().admin_api_keys_list:
        if hmac.compare_digest(api_key, valid_key):
            match = valid_key

    if match is None:
        raise HTTPException(status_code=403, detail="Invalid API key")
    return match
