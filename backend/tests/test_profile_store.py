from __future__ import annotations

import json
from datetime import datetime, timezone

import httpx
import pytest

from nvc_backend.profile_models import UserProfile
from nvc_backend.profile_store import (
    INVALID_PROFILE,
    MALFORMED_RESPONSE,
    NOT_CONFIGURED,
    ProfileStore,
    StoreResult,
)

from .conftest import SERVICE_KEY, SUPABASE_URL, FakePostgrest


def _store_for(handler) -> ProfileStore:
    return ProfileStore(SUPABASE_URL, SERVICE_KEY, client=httpx.Client(transport=httpx.MockTransport(handler)))


def test_upsert_applies_defaults(store: ProfileStore) -> None:
    result = store.upsert({"email": "ada@empathy.io", "total_xp": 50})

    assert result.ok
    assert result.data is not None and len(result.data) == 1
    fetched = store.get_by_email("ada@empathy.io")
    assert fetched.data is not None and len(fetched.data) == 1
    row = fetched.data[0]
    assert row.total_xp == 50
    assert row.level == 1
    assert row.streak == 0
    assert row.longest_streak == 0
    assert row.completed_exercises == 0
    assert row.name is None
    assert row.goals is None


def test_repeated_upsert_keeps_a_single_row(store: ProfileStore, fake_postgrest: FakePostgrest) -> None:
    store.upsert(UserProfile(email="ada@empathy.io", name="Ada", total_xp=10))
    second = store.upsert(UserProfile(email="ada@empathy.io", total_xp=40, streak=3))

    assert second.ok
    fetched = store.get_by_email("ada@empathy.io")
    assert fetched.data is not None
    assert len(fetched.data) == 1
    assert fetched.data[0].total_xp == 40
    assert fetched.data[0].streak == 3
    assert len(fake_postgrest.rows) == 1


def test_upsert_request_uses_merge_duplicates(store: ProfileStore, fake_postgrest: FakePostgrest) -> None:
    frozen = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)
    store._clock = lambda: frozen  # type: ignore[attr-defined]

    store.upsert({"email": "ada@empathy.io"})

    request = fake_postgrest.requests[-1]
    assert request.method == "POST"
    assert request.url.params["on_conflict"] == "email"
    assert request.headers["Prefer"] == "resolution=merge-duplicates,return=representation"
    assert request.headers["apikey"] == SERVICE_KEY
    assert request.headers["Authorization"] == f"Bearer {SERVICE_KEY}"
    body = json.loads(request.content)
    assert body["updated_at"] == frozen.isoformat()
    assert body["last_active_at"] == frozen.isoformat()
    assert "created_at" not in body


def test_get_all_orders_newest_first_and_honours_limit(store: ProfileStore, fake_postgrest: FakePostgrest) -> None:
    for index in range(5):
        fake_postgrest.seed(email=f"user{index}@empathy.io")

    everything = store.get_all()
    limited = store.get_all(limit=2)

    assert [row.email for row in everything.data or []] == [f"user{index}@empathy.io" for index in range(4, -1, -1)]
    assert [row.email for row in limited.data or []] == ["user4@empathy.io", "user3@empathy.io"]
    assert fake_postgrest.requests[-1].url.params["order"] == "created_at.desc"


def test_get_by_email_encodes_filter(store: ProfileStore, fake_postgrest: FakePostgrest) -> None:
    fake_postgrest.seed(email="ada+nvc@empathy.io")
    fake_postgrest.seed(email="ada@empathy.io")

    result = store.get_by_email("ada+nvc@empathy.io")

    assert [row.email for row in result.data or []] == ["ada+nvc@empathy.io"]
    assert "%2B" in str(fake_postgrest.requests[-1].url)


def test_get_by_email_missing_returns_empty_list(store: ProfileStore) -> None:
    result = store.get_by_email("nobody@empathy.io")
    assert result.ok
    assert result.data == []


def test_extra_columns_are_preserved(store: ProfileStore, fake_postgrest: FakePostgrest) -> None:
    fake_postgrest.seed(email="ada@empathy.io")
    row = (store.get_all().data or [])[0]
    assert row.model_dump()["id"] == 1


@pytest.mark.parametrize(
    ("url", "key", "expected"),
    [
        (SUPABASE_URL, SERVICE_KEY, True),
        (None, SERVICE_KEY, False),
        (SUPABASE_URL, None, False),
        (SUPABASE_URL, "   ", False),
        (SUPABASE_URL, "your_service_role_key_here", False),
    ],
)
def test_is_configured(url, key, expected) -> None:
    assert ProfileStore(url, key).is_configured() is expected


def test_unconfigured_store_short_circuits() -> None:
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json=[])

    store = ProfileStore(None, None, client=httpx.Client(transport=httpx.MockTransport(handler)))

    for result in (store.get_all(), store.get_by_email("a@empathy.io"), store.upsert({"email": "a@empathy.io"})):
        assert result.data is None
        assert result.error is not None
        assert result.error.code == NOT_CONFIGURED
    assert calls == []


def test_upstream_error_message_and_code(store: ProfileStore, fake_postgrest: FakePostgrest) -> None:
    fake_postgrest.failure = (401, {"message": "Invalid API key", "code": "PGRST301"})

    result = store.get_all()

    assert not result.ok
    assert result.data is None
    assert result.error is not None
    assert result.error.message == "Invalid API key"
    assert result.error.code == "PGRST301"


def test_upstream_error_field_is_used_when_message_missing(store: ProfileStore, fake_postgrest: FakePostgrest) -> None:
    fake_postgrest.failure = (400, {"error": "bad filter"})
    result = store.get_by_email("ada@empathy.io")
    assert result.error is not None
    assert result.error.message == "bad filter"
    assert result.error.code is None


def test_upstream_error_without_json_body(store: ProfileStore, fake_postgrest: FakePostgrest) -> None:
    fake_postgrest.failure = (502, "<html>Bad gateway</html>")
    result = store.upsert({"email": "ada@empathy.io"})
    assert result.error is not None
    assert result.error.message == "Request failed with status 502"


def test_malformed_success_body_is_an_error(store: ProfileStore, fake_postgrest: FakePostgrest) -> None:
    fake_postgrest.failure = (200, "not json at all")
    result = store.get_all()
    assert result.error is not None
    assert result.error.code == MALFORMED_RESPONSE


def test_unreadable_rows_are_skipped_not_fatal(caplog) -> None:
    store = _store_for(
        lambda request: httpx.Response(200, json=[{"name": "no email"}, {"email": "ada@empathy.io"}, "junk"])
    )

    result = store.get_all()

    assert result.ok
    assert [row.email for row in result.data or []] == ["ada@empathy.io"]
    assert "Skipping unreadable profile row 0" in caplog.text


def test_json_typed_goals_column_is_read(store: ProfileStore, fake_postgrest: FakePostgrest) -> None:
    fake_postgrest.seed(email="a@empathy.io", goals='["a"]')
    fake_postgrest.seed(email="b@empathy.io", goals=["b"])
    fake_postgrest.seed(email="c@empathy.io", goals={"not": "a list"})

    result = store.get_all()

    assert result.ok
    rows = {row.email: row for row in result.data or []}
    assert len(rows) == 3
    assert rows["b@empathy.io"].goals == '["b"]'
    assert rows["c@empathy.io"].goals is None


def test_empty_success_body_reads_as_no_rows() -> None:
    store = _store_for(lambda request: httpx.Response(200, text=""))
    result = store.get_all()
    assert result.ok
    assert result.data == []


def test_network_failure_is_returned_not_raised() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    result = _store_for(handler).get_all()

    assert result.data is None
    assert result.error is not None
    assert result.error.message == "connection refused"


@pytest.mark.parametrize(
    "profile",
    [
        {"name": "missing email"},
        {"email": "   "},
        {"email": "ada@empathy.io", "streak": -1},
    ],
)
def test_invalid_profiles_are_rejected_locally(store: ProfileStore, fake_postgrest: FakePostgrest, profile) -> None:
    result = store.upsert(profile)
    assert result.error is not None
    assert result.error.code == INVALID_PROFILE
    assert fake_postgrest.requests == []


def test_store_result_failure_helper() -> None:
    result: StoreResult[list] = StoreResult.failure("boom", "E1")
    assert not result.ok
    assert result.error is not None and result.error.code == "E1"
