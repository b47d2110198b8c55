from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterator, List, Optional, Tuple

import httpx
import pytest
from fastapi.testclient import TestClient

from nvc_backend.main import app
from nvc_backend.profile_routes import get_profile_store
from nvc_backend.profile_store import ProfileStore

SUPABASE_URL = "https://nvc-test.supabase.co"
SERVICE_KEY = "service-role-test-key"
CREATED_BASE = datetime(2026, 1, 1, tzinfo=timezone.utc)


class FakePostgrest:
    """In-memory ``user_profiles`` table speaking just enough PostgREST."""

    def __init__(self, table: str = "user_profiles") -> None:
        self.table = table
        self.rows: List[Dict[str, Any]] = []
        self.requests: List[httpx.Request] = []
        self.failure: Optional[Tuple[int, Any]] = None
        self._sequence = 0

    def seed(self, **row: Any) -> Dict[str, Any]:
        self._sequence += 1
        stored = {
            "id": self._sequence,
            "created_at": (CREATED_BASE + timedelta(minutes=self._sequence)).isoformat(),
            **row,
        }
        self.rows.append(stored)
        return stored

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.failure is not None:
            status_code, body = self.failure
            if isinstance(body, (dict, list)):
                return httpx.Response(status_code, json=body)
            return httpx.Response(status_code, text=body)
        if request.url.path != f"/rest/v1/{self.table}":
            return httpx.Response(404, json={"message": "relation does not exist", "code": "42P01"})

        params = request.url.params
        if request.method == "POST":
            if params.get("on_conflict") != "email":
                return httpx.Response(409, json={"message": "duplicate key value", "code": "23505"})
            body = json.loads(request.content)
            existing = next((row for row in self.rows if row["email"] == body["email"]), None)
            if existing is None:
                existing = self.seed(**body)
            else:
                existing.update(body)
            return httpx.Response(201, json=[dict(existing)])

        rows = list(self.rows)
        email_filter = params.get("email")
        if email_filter and email_filter.startswith("eq."):
            rows = [row for row in rows if row["email"] == email_filter[3:]]
        if params.get("order") == "created_at.desc":
            rows.sort(key=lambda row: row["created_at"], reverse=True)
        limit = params.get("limit")
        if limit is not None:
            rows = rows[: int(limit)]
        return httpx.Response(200, json=[dict(row) for row in rows])


@pytest.fixture()
def fake_postgrest() -> FakePostgrest:
    return FakePostgrest()


@pytest.fixture()
def store(fake_postgrest: FakePostgrest) -> Iterator[ProfileStore]:
    http_client = httpx.Client(transport=httpx.MockTransport(fake_postgrest.handler))
    yield ProfileStore(SUPABASE_URL, SERVICE_KEY, client=http_client)
    http_client.close()


@pytest.fixture()
def unconfigured_store() -> ProfileStore:
    return ProfileStore(None, None)


@pytest.fixture()
def client(store: ProfileStore) -> Iterator[TestClient]:
    app.dependency_overrides[get_profile_store] = lambda: store
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture()
def unconfigured_client(unconfigured_store: ProfileStore) -> Iterator[TestClient]:
    app.dependency_overrides[get_profile_store] = lambda: unconfigured_store
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
