from __future__ import annotations

import logging
import uuid
from typing import Optional

from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse
import redis

from app.settings import Settings, settings
from kv_mutex import AtomicMutex, DoubleLockError, KeyValueStore, Mutex, MutexTimeoutError
from kv_mutex.redis_store import RedisStore

logger = logging.getLogger(__name__)


def request_token() -> str:
    # One token per lock request; the process id is shared by every request.
    return uuid.uuid4().hex


def create_app(store: Optional[KeyValueStore] = None, config: Settings = settings) -> FastAPI:
    app = FastAPI(title="Distributed Mutex", version="0.1.0")

    if store is None:
        store = RedisStore(
            client=redis.Redis.from_url(
                config.redis_url,
                decode_responses=True,
                socket_connect_timeout=1,
                socket_timeout=1,
                retry_on_timeout=True,
            )
        )

    mutex_cls = AtomicMutex if config.atomic else Mutex
    mutex = mutex_cls(store, config.key_prefix, token_factory=request_token)
    app.state.mutex = mutex

    @app.exception_handler(DoubleLockError)
    def double_lock(request: Request, exc: DoubleLockError) -> JSONResponse:
        return JSONResponse(
            status_code=409,
            content={"detail": "already locked", "event": exc.event, "owner": exc.owner},
        )

    @app.exception_handler(MutexTimeoutError)
    def wait_timeout(request: Request, exc: MutexTimeoutError) -> JSONResponse:
        return JSONResponse(
            status_code=408,
            content={"detail": "still locked", "event": exc.event, "max_wait": exc.max_wait},
        )

    @app.exception_handler(redis.exceptions.ConnectionError)
    @app.exception_handler(redis.exceptions.TimeoutError)
    def store_unavailable(request: Request, exc: Exception) -> JSONResponse:
        logger.warning("store unavailable: %s", exc)
        return JSONResponse(
            status_code=503,
            content={"detail": "store unavailable", "error": str(exc)},
        )

    @app.get("/health")
    def health() -> dict:
        try:
            store_ok = bool(store.ping())  # type: ignore[attr-defined]
        except Exception:
            store_ok = False
        return {"status": "ok", "store": store_ok}

    @app.get("/locks/{event}")
    def status(event: str) -> dict:
        return {
            "event": event,
            "locked": mutex.is_locked(event),
            "owner": mutex.get_owner(event),
        }

    @app.post("/locks/{event}")
    def acquire(
        event: str,
        ttl: Optional[int] = Query(default=None, gt=0),
        owner: Optional[str] = Query(default=None, min_length=1),
    ) -> dict:
        if ttl is None and config.default_ttl > 0:
            ttl = config.default_ttl
        token = mutex.lock(event, ttl=ttl, owner=owner)
        return {"event": event, "owner": token}

    @app.delete("/locks/{event}")
    def release(event: str, owner: Optional[str] = Query(default=None, min_length=1)):
        if not mutex.unlock(event, owner):
            return JSONResponse(
                status_code=409,
                content={"detail": "not the owner", "event": event},
            )
        return {"event": event, "released": True}

    @app.post("/locks/{event}/wait")
    def wait(
        event: str,
        max_wait: float = Query(default=0, ge=0),
        check_period_ms: int = Query(default=config.check_period_ms, gt=0),
    ) -> dict:
        mutex.wait_until_unlocked(event, max_wait=max_wait, check_period_us=check_period_ms * 1000)
        return {"event": event, "locked": False}

    return app


app = create_app()
