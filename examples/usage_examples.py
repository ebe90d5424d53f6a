from __future__ import annotations

import threading
import time

from kv_mutex import (
    AtomicMutex,
    DoubleLockError,
    InMemoryStore,
    Mutex,
    MutexTimeoutError,
    RedisConfig,
    RedisStore,
)


def in_memory_lock_unlock() -> None:
    print("== In-memory lock / unlock ==")
    mutex = Mutex(InMemoryStore(), prefix="demo")

    token = mutex.lock("build", ttl=5)
    print("locked by", token, "key", mutex.key_for("build"))
    try:
        mutex.lock("build")
    except DoubleLockError as exc:
        print("second lock refused:", exc)

    print("unlock with wrong owner:", mutex.unlock("build", "not-me"))
    print("unlock with owner:", mutex.unlock("build", token))
    print("locked now?", mutex.is_locked("build"))


def in_memory_ttl() -> None:
    print("== In-memory TTL ==")
    mutex = Mutex(InMemoryStore())
    mutex.lock("report", ttl=1)
    print("locked?", mutex.is_locked("report"))
    time.sleep(1.1)
    print("locked after ttl?", mutex.is_locked("report"))


def wait_for_release() -> None:
    print("== Waiting for another holder ==")
    mutex = Mutex(InMemoryStore())
    token = mutex.lock("deploy", owner="worker-a")

    threading.Timer(0.3, mutex.unlock, args=("deploy", token)).start()
    start = time.monotonic()
    mutex.wait_until_unlocked("deploy", max_wait=2, check_period_us=50_000)
    print(f"released after {time.monotonic() - start:.2f}s")

    mutex.lock("deploy", owner="worker-a")
    try:
        mutex.wait_until_unlocked("deploy", max_wait=1, check_period_us=100_000)
    except MutexTimeoutError as exc:
        print("timed out:", exc)


def redis_atomic() -> None:
    print("== Redis atomic mutex ==")
    mutex = AtomicMutex(RedisStore(RedisConfig(host="localhost", port=6379)), prefix="demo")

    with mutex.hold("nightly-etl", ttl=30, max_wait=5, check_period_us=200_000) as token:
        print("holding", mutex.key_for("nightly-etl"), "as", token)
        print("owner from redis:", mutex.get_owner("nightly-etl"))
    print("locked after block?", mutex.is_locked("nightly-etl"))


if __name__ == "__main__":
    in_memory_lock_unlock()
    in_memory_ttl()
    wait_for_release()
    # Uncomment if Redis is running locally
    # redis_atomic()
