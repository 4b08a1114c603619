"""
Auth dependency against a stubbed Firebase: token check, profile mapping, and
that the blocking profile lookup stays off the event loop.
"""
import asyncio
import inspect
import time

import httpx
import pytest
from fastapi.testclient import TestClient

import core.deps
from core.deps import get_current_user, require_manager_role
from main import app

PROFILE_DELAY_SECONDS = 0.3


class _Snapshot:
    def __init__(self, data):
        self._data = data
        self.exists = data is not None

    def to_dict(self):
        return dict(self._data)


class _SlowFirestore:
    """Just enough of the Firestore client for users/{uid} reads."""

    def __init__(self, profiles, delay=0.0):
        self.profiles = profiles
        self.delay = delay

    def collection(self, name):
        assert name == "users"
        return self

    def document(self, uid):
        return _Document(self, uid)


class _Document:
    def __init__(self, store, uid):
        self.store = store
        self.uid = uid

    def get(self):
        time.sleep(self.store.delay)
        return _Snapshot(self.store.profiles.get(self.uid))


@pytest.fixture
def firebase(monkeypatch):
    profiles = {
        "worker-a": {"displayName": "Ana", "email": "ana@example.com", "role": "worker"},
        "boss": {"displayName": "Bo", "email": "bo@example.com", "role": "owner"},
    }
    firestore = _SlowFirestore(profiles)

    def fake_verify(token):
        if token == "bad":
            raise ValueError("token expired")
        return {"uid": token}

    monkeypatch.setattr(core.deps, "verify_id_token", fake_verify)
    monkeypatch.setattr(core.deps, "get_firestore_client", lambda: firestore)
    app.dependency_overrides.clear()
    yield firestore
    app.dependency_overrides.clear()


def test_auth_dependencies_are_sync():
    # Plain defs run in the threadpool, so the Firestore read cannot stall the loop
    assert not inspect.iscoroutinefunction(get_current_user)
    assert not inspect.iscoroutinefunction(require_manager_role)


def test_missing_bearer_is_unauthorized(firebase):
    with TestClient(app) as client:
        res = client.get("/visits/active")
    assert res.status_code == 401
    assert res.headers["WWW-Authenticate"] == "Bearer"


def test_invalid_token_is_unauthorized(firebase):
    with TestClient(app) as client:
        res = client.get("/visits/active", headers={"Authorization": "Bearer bad"})
    assert res.status_code == 401
    assert res.json()["detail"] == "Invalid or expired token"


def test_unknown_profile_is_not_found(firebase):
    with TestClient(app) as client:
        res = client.get("/visits/active", headers={"Authorization": "Bearer ghost"})
    assert res.status_code == 404


def test_profile_role_gates_admin_routes(firebase):
    with TestClient(app) as client:
        worker = client.get("/admin/visits", headers={"Authorization": "Bearer worker-a"})
        owner = client.get("/admin/visits", headers={"Authorization": "Bearer boss"})
    assert worker.status_code == 403
    assert owner.status_code == 200


def test_slow_profile_lookups_run_concurrently(firebase):
    firebase.delay = PROFILE_DELAY_SECONDS
    requests = 4

    async def hit_active_concurrently():
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            return await asyncio.gather(
                *(
                    client.get("/visits/active", headers={"Authorization": "Bearer worker-a"})
                    for _ in range(requests)
                )
            )

    started = time.perf_counter()
    responses = asyncio.run(hit_active_concurrently())
    elapsed = time.perf_counter() - started

    assert [r.status_code for r in responses] == [200] * requests
    # Serialized lookups would take requests * delay
    assert elapsed < PROFILE_DELAY_SECONDS * (requests - 1)
