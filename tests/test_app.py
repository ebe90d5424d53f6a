from __future__ import annotations

import threading

import pytest
import redis
from fastapi.testclient import TestClient

from app.main import create_app
from app.settings import Settings
from kv_mutex import AtomicMutex, InMemoryStore, Mutex


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def client(store: InMemoryStore) -> TestClient:
    return TestClient(create_app(store, Settings(key_prefix="svc", default_ttl=30)))


def test_health(client: TestClient) -> None:
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok", "store": True}


def test_lock_status_unlock_cycle(client: TestClient, store: InMemoryStore) -> None:
    r = client.post("/locks/build")
    assert r.status_code == 200
    owner = r.json()["owner"]
    assert owner
    assert store.get("svc:mutex:build") == {"owner": owner, "locked": True}

    r = client.get("/locks/build")
    assert r.json() == {"event": "build", "locked": True, "owner": owner}

    r = client.post("/locks/build")
    assert r.status_code == 409
    assert r.json()["owner"] == owner

    r = client.delete("/locks/build", params={"owner": "999"})
    assert r.status_code == 409

    r = client.delete("/locks/build", params={"owner": owner})
    assert r.status_code == 200
    assert r.json() == {"event": "build", "released": True}
    assert client.get("/locks/build").json()["locked"] is False


def test_each_request_gets_its_own_token(client: TestClient) -> None:
    first = client.post("/locks/a").json()["owner"]
    second = client.post("/locks/b").json()["owner"]
    assert first != second


def test_caller_supplied_owner_and_force_unlock(client: TestClient) -> None:
    r = client.post("/locks/build", params={"owner": "ci-42", "ttl": 5})
    assert r.json() == {"event": "build", "owner": "ci-42"}

    r = client.delete("/locks/build")
    assert r.status_code == 200
    assert client.get("/locks/build").json() == {"event": "build", "locked": False, "owner": None}


def test_invalid_ttl_is_rejected(client: TestClient) -> None:
    assert client.post("/locks/build", params={"ttl": 0}).status_code == 422


def test_wait_returns_when_unlocked(client: TestClient) -> None:
    r = client.post("/locks/build/wait", params={"max_wait": 1})
    assert r.status_code == 200
    assert r.json() == {"event": "build", "locked": False}


def test_wait_times_out(client: TestClient) -> None:
    client.post("/locks/build")

    r = client.post("/locks/build/wait", params={"max_wait": 0.2, "check_period_ms": 50})
    assert r.status_code == 408
    assert r.json()["event"] == "build"


def test_wait_sees_release_from_other_caller(client: TestClient, store: InMemoryStore) -> None:
    client.post("/locks/build")
    timer = threading.Timer(0.1, store.delete, args=("svc:mutex:build",))
    timer.start()

    r = client.post("/locks/build/wait", params={"max_wait": 2, "check_period_ms": 20})
    timer.join()
    assert r.status_code == 200


def test_mutex_variant_follows_settings(store: InMemoryStore) -> None:
    atomic = create_app(store, Settings(atomic=True))
    plain = create_app(store, Settings(atomic=False))

    assert isinstance(atomic.state.mutex, AtomicMutex)
    assert type(plain.state.mutex) is Mutex


def test_store_outage_maps_to_503() -> None:
    class DownStore(InMemoryStore):
        def get(self, key, default=None):
            raise redis.exceptions.ConnectionError("connection refused")

        def ping(self) -> bool:
            raise redis.exceptions.ConnectionError("connection refused")

    client = TestClient(create_app(DownStore()))

    assert client.get("/health").json() == {"status": "ok", "store": False}
    r = client.get("/locks/build")
    assert r.status_code == 503
    assert r.json()["detail"] == "store unavailable"
