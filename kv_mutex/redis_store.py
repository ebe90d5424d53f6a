from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import redis

from .config import RedisConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _LuaScript:
    source: str
    sha: Optional[str] = None


def _load_script_text(path: Path) -> str:
    return path.read_text(encoding="utf-8")


class RedisStore:
    """Key-value store on top of redis-py.

    Values are stored as JSON text and TTLs are passed as ``SET ... EX``.
    Connection and timeout errors propagate to the caller.
    """

    def __init__(
        self,
        redis_config: RedisConfig | None = None,
        client: redis.Redis | None = None,
    ) -> None:
        redis_config = redis_config or RedisConfig()
        self._redis_cfg = redis_config
        self._redis = client or redis.Redis.from_url(
            redis_config.redis_url(),
            decode_responses=True,
            socket_connect_timeout=redis_config.socket_connect_timeout_s,
            socket_timeout=redis_config.socket_timeout_s,
            retry_on_timeout=True,
        )

        lua_path = Path(__file__).with_name("lua") / "compare_and_delete.lua"
        self._script = _LuaScript(source=_load_script_text(lua_path))

    @property
    def client(self) -> redis.Redis:
        return self._redis

    @staticmethod
    def _ttl(ttl: Optional[int]) -> Optional[int]:
        if ttl is None:
            return None
        if ttl <= 0:
            raise ValueError("ttl must be > 0")
        return int(ttl)

    def get(self, key: str, default: Any = None) -> Any:
        raw = self._redis.get(key)
        if raw is None:
            return default
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        return json.loads(raw)

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        self._redis.set(key, json.dumps(value), ex=self._ttl(ttl))

    def delete(self, key: str) -> bool:
        # DEL returns the number of removed keys; an absent key is still "unlocked".
        removed = self._redis.delete(key)
        logger.debug("DEL %s removed=%s", key, removed)
        return True

    def add(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        return bool(self._redis.set(key, json.dumps(value), ex=self._ttl(ttl), nx=True))

    def compare_and_delete(self, key: str, owner: str) -> bool:
        try:
            if self._script.sha is None:
                object.__setattr__(self._script, "sha", self._redis.script_load(self._script.source))
            result = self._redis.evalsha(self._script.sha, 1, key, owner)
        except redis.exceptions.NoScriptError:
            logger.debug("compare_and_delete script missing from cache, falling back to EVAL")
            result = self._redis.eval(self._script.source, 1, key, owner)
            object.__setattr__(self._script, "sha", self._redis.script_load(self._script.source))
        return bool(int(result))

    def ping(self) -> bool:
        return bool(self._redis.ping())
