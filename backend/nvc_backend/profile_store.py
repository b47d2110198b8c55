"""PostgREST-backed access to the ``user_profiles`` table.

Every operation returns a :class:`StoreResult` instead of raising: the remote
store is best-effort and may be unreachable or deliberately unconfigured, and
callers are expected to keep serving when it is.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Generic, List, Mapping, Optional, TypeVar, Union

import httpx
from pydantic import ValidationError

from .config import PLACEHOLDER_SERVICE_KEY, Settings
from .profile_models import PROFILE_DEFAULTS, UserProfile
from .telemetry import mask_email

logger = logging.getLogger(__name__)

T = TypeVar("T")

NOT_CONFIGURED = "not_configured"
MALFORMED_RESPONSE = "malformed_response"
INVALID_PROFILE = "invalid_profile"

UPSERT_PREFER = "resolution=merge-duplicates,return=representation"


@dataclass(frozen=True)
class StoreError:
    message: str
    code: Optional[str] = None


@dataclass(frozen=True)
class StoreResult(Generic[T]):
    data: Optional[T] = None
    error: Optional[StoreError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failure(cls, message: str, code: Optional[str] = None) -> "StoreResult[T]":
        return cls(data=None, error=StoreError(message=message, code=code))


ProfilesResult = StoreResult[List[UserProfile]]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ProfileStore:
    """Thin client over the PostgREST API for learner profiles.

    Instances are meant to live for one request (or one CLI run); pass an
    ``httpx.Client`` to share a connection pool or to stub the transport.
    """

    def __init__(
        self,
        url: Optional[str],
        service_key: Optional[str],
        *,
        table: str = "user_profiles",
        timeout_seconds: float = 10.0,
        client: Optional[httpx.Client] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.url = (url or "").strip().rstrip("/")
        self.service_key = (service_key or "").strip()
        self.table = table
        self._timeout_seconds = timeout_seconds
        self._client = client
        self._owns_client = client is None
        self._clock = clock or _utcnow

    @classmethod
    def from_settings(cls, settings: Settings, *, client: Optional[httpx.Client] = None) -> "ProfileStore":
        return cls(
            settings.supabase_url,
            settings.supabase_service_key,
            table=settings.profile_table,
            timeout_seconds=settings.profile_store_timeout_seconds,
            client=client,
        )

    def __enter__(self) -> "ProfileStore":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_client and self._client is not None:
            self._client.close()
            self._client = None

    def is_configured(self) -> bool:
        return bool(self.url) and bool(self.service_key) and self.service_key != PLACEHOLDER_SERVICE_KEY

    def upsert(self, profile: Union[UserProfile, Mapping[str, Any]]) -> ProfilesResult:
        """Insert or merge a profile keyed by email, applying counter defaults."""
        values = profile.model_dump() if isinstance(profile, UserProfile) else dict(profile)
        email = values.get("email")
        if not isinstance(email, str) or not email.strip():
            return StoreResult.failure("Profile email is required", INVALID_PROFILE)

        now = self._clock().isoformat()
        body: Dict[str, Any] = {
            "email": email,
            "name": values.get("name") or None,
            "gender": values.get("gender") or None,
            "age_range": values.get("age_range") or None,
            "goals": values.get("goals") or None,
        }
        for column, default in PROFILE_DEFAULTS.items():
            value = values.get(column)
            if value is None:
                value = default
            elif not isinstance(value, int) or value < 0:
                return StoreResult.failure(f"{column} must be a non-negative integer", INVALID_PROFILE)
            body[column] = value
        body["updated_at"] = now
        body["last_active_at"] = now

        return self._request(
            "POST",
            params={"on_conflict": "email"},
            json_body=body,
            headers={"Prefer": UPSERT_PREFER},
        )

    def get_all(self, limit: Optional[int] = None) -> ProfilesResult:
        """Every profile, newest first; ``limit`` caps the rows server-side."""
        params = {"order": "created_at.desc"}
        if limit is not None:
            params["limit"] = str(limit)
        return self._request("GET", params=params)

    def get_by_email(self, email: str) -> ProfilesResult:
        return self._request("GET", params={"email": f"eq.{email}"})

    def _http(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(timeout=self._timeout_seconds)
        return self._client

    def _headers(self, overrides: Optional[Dict[str, str]]) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "apikey": self.service_key,
            "Authorization": f"Bearer {self.service_key}",
            "Prefer": "return=representation",
        }
        if overrides:
            headers.update(overrides)
        return headers

    def _request(
        self,
        method: str,
        *,
        params: Optional[Dict[str, str]] = None,
        json_body: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> ProfilesResult:
        if not self.is_configured():
            return StoreResult.failure("Profile store is not configured", NOT_CONFIGURED)

        endpoint = f"{self.url}/rest/v1/{self.table}"
        try:
            response = self._http().request(
                method,
                endpoint,
                params=params,
                json=json_body,
                headers=self._headers(headers),
            )
        except httpx.HTTPError as exc:
            logger.warning("Profile store %s %s failed: %s", method, self.table, exc)
            return StoreResult.failure(str(exc) or "Network error")

        payload, decodable = _decode_body(response)
        if response.is_error:
            message = f"Request failed with status {response.status_code}"
            code: Optional[str] = None
            if isinstance(payload, dict):
                message = payload.get("message") or payload.get("error") or message
                raw_code = payload.get("code")
                code = str(raw_code) if raw_code is not None else None
            logger.warning(
                "Profile store %s %s returned %s: %s",
                method,
                self.table,
                response.status_code,
                message,
            )
            return StoreResult.failure(str(message), code)

        if not decodable:
            return StoreResult.failure("Malformed response from profile store", MALFORMED_RESPONSE)
        rows = _parse_rows(payload)
        if rows is None:
            return StoreResult.failure("Malformed response from profile store", MALFORMED_RESPONSE)
        if json_body is not None:
            logger.debug("Upserted profile for %s", mask_email(str(json_body.get("email", ""))))
        return StoreResult(data=rows)


def _decode_body(response: httpx.Response) -> tuple[Any, bool]:
    text = response.text
    if not text.strip():
        return None, True
    try:
        return json.loads(text), True
    except ValueError:
        return None, False


def _parse_rows(payload: Any) -> Optional[List[UserProfile]]:
    if payload is None:
        return []
    if isinstance(payload, dict):
        payload = [payload]
    if not isinstance(payload, list):
        return None
    rows: List[UserProfile] = []
    for index, row in enumerate(payload):
        try:
            rows.append(UserProfile.model_validate(row))
        except ValidationError as exc:
            logger.warning("Skipping unreadable profile row %s: %s", index, exc.errors(include_input=False))
    return rows


__all__ = [
    "INVALID_PROFILE",
    "MALFORMED_RESPONSE",
    "NOT_CONFIGURED",
    "ProfileStore",
    "ProfilesResult",
    "StoreError",
    "StoreResult",
]
