from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="MUTEX_", case_sensitive=False)

    redis_url: str = "redis://redis:6379/0"

    # Keying / behavior
    key_prefix: Optional[str] = None
    # Use SET NX and a compare-and-delete script instead of check-then-set.
    atomic: bool = True
    # Seconds; applied when a lock request does not pass its own ttl. 0 disables.
    default_ttl: int = 60
    check_period_ms: int = 100

    log_level: str = "INFO"

    # HTTP server
    host: str = "0.0.0.0"
    port: int = 8000


settings = Settings()
