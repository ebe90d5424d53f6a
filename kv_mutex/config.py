from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class RedisConfig:
    host: str = "localhost"
    port: int = 6379
    db: int = 0

    socket_connect_timeout_s: float = 1.0
    socket_timeout_s: float = 1.0

    def redis_url(self) -> str:
        return f"redis://{self.host}:{self.port}/{self.db}"
