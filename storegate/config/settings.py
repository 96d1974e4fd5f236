"""Application settings loaded from environment variables."""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Counter store
    counter_store_backend: str = "redis"  # "redis" | "memory"
    redis_url: str = "redis://localhost:6379/0"
    redis_socket_timeout: float = 2.0  # seconds; a timeout counts as a store error
    redis_connect_timeout: float = 2.0

    # Rate limiting
    rate_limit_enabled: bool = True
    session_cookie_name: str = "session_id"

    # Admin API authentication
    # Comma-separated list of keys accepted on the admin endpoints
    admin_api_keys: str = "dev-admin-key"

    # Logging
    log_level: str = "INFO"
    audit_log_file: str = ""  # Empty = stdout only

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    @property
    def admin_api_keys_list(self) -> list[str]:
        """Parse comma-separated admin keys into a list."""
        return [k.strip() for k in self.admin_api_keys.split(",") if k.strip()]


@lru_cache
def get_settings() -> Settings:
    return Settings()
