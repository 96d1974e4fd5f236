"""Named rate limit profiles used across the platform's endpoints."""

from storegate.security.ratelimit import RateLimitConfig


class RateLimitProfiles:
    # Login and password change: brute-force protection
    AUTH = RateLimitConfig(max_requests=5, window_seconds=900, key_prefix="rl:auth")
    PASSWORD_RESET = RateLimitConfig(max_requests=3, window_seconds=3600, key_prefix="rl:password")
    EMAIL_VERIFY = RateLimitConfig(max_requests=3, window_seconds=3600, key_prefix="rl:email-verify")
    # Card-testing protection
    CHECKOUT = RateLimitConfig(max_requests=10, window_seconds=60, key_prefix="rl:checkout")
    # Scraping protection
    SEARCH = RateLimitConfig(max_requests=30, window_seconds=60, key_prefix="rl:search")
    UPLOAD = RateLimitConfig(max_requests=10, window_seconds=600, key_prefix="rl:upload")
    API = RateLimitConfig(max_requests=100, window_seconds=60, key_prefix="rl:api")
    ADMIN = RateLimitConfig(max_requests=200, window_seconds=60, key_prefix="rl:admin", use_user_id=True)
    CART = RateLimitConfig(max_requests=100, window_seconds=3600, key_prefix="rl:cart")
    DATA_EXPORT = RateLimitConfig(max_requests=5, window_seconds=3600, key_prefix="rl:gdpr-export")
    DATA_DELETION = RateLimitConfig(
        max_requests=3, window_seconds=86400, key_prefix="rl:gdpr-delete", use_user_id=True
    )


def all_profiles() -> dict[str, RateLimitConfig]:
    return {
        name: value
        for name, value in vars(RateLimitProfiles).items()
        if isinstance(value, RateLimitConfig)
    }


def get_profile(name: str) -> RateLimitConfig:
    """Look up a profile by name, case-insensitive. Raises KeyError if unknown."""
    profiles = all_profiles()
    key = name.upper().replace("-", "_")
    if key not in profiles:
        raise KeyError(name)
    return profiles[key]
