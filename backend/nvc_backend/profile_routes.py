"""Profile sync and admin analytics endpoints."""

from __future__ import annotations

import logging
from time import perf_counter
from typing import Iterator, Union

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool

from .analytics import build_summary
from .api_models import (
    AnalyticsPayload,
    ProfileRecordPayload,
    ProfileSyncRequest,
    ProfileSyncResponse,
    UserPayload,
    UsersPayload,
)
from .config import Settings, get_settings
from .profile_models import profile_record
from .profile_store import ProfileStore
from .telemetry import ANALYTICS_SUMMARY_EVENT, PROFILE_SYNC_EVENT, emit_event


router = APIRouter(prefix="/api/profile", tags=["profile"])
logger = logging.getLogger(__name__)

STORE_NOT_CONFIGURED = "Profile store not configured"


def get_profile_store(settings: Settings = Depends(get_settings)) -> Iterator[ProfileStore]:
    store = ProfileStore.from_settings(settings)
    try:
        yield store
    finally:
        store.close()


def _unavailable() -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"error": STORE_NOT_CONFIGURED},
    )


@router.post("/sync", response_model=ProfileSyncResponse, status_code=status.HTTP_200_OK)
async def sync_profile(request: Request, store: ProfileStore = Depends(get_profile_store)) -> JSONResponse:
    try:
        # No backend is a supported deployment mode, not a failure.
        if not store.is_configured():
            logger.info("Profile store not configured, skipping sync")
            emit_event(PROFILE_SYNC_EVENT, status="skipped")
            return JSONResponse(content={"success": True, "message": STORE_NOT_CONFIGURED})

        try:
            body = await request.json()
        except ValueError:
            body = None
        try:
            payload = ProfileSyncRequest.model_validate(body)
        except ValidationError as exc:
            logger.info("Rejected profile sync payload: %s", exc.errors(include_input=False))
            emit_event(PROFILE_SYNC_EVENT, status="invalid", error_count=exc.error_count())
            return JSONResponse(
                status_code=status.HTTP_400_BAD_REQUEST,
                content={"success": False, "error": "Invalid data"},
            )

        result = await run_in_threadpool(store.upsert, payload.to_profile())
        if result.error is not None:
            logger.error("Profile sync failed: %s (code=%s)", result.error.message, result.error.code)
            emit_event(
                PROFILE_SYNC_EVENT,
                status="failed",
                email=str(payload.email),
                error_code=result.error.code,
            )
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={"success": False, "error": result.error.message},
            )

        rows = result.data or []
        emit_event(PROFILE_SYNC_EVENT, status="success", email=str(payload.email))
        return JSONResponse(content={"success": True, "profile": rows[0].model_dump() if rows else None})
    except Exception:  # noqa: BLE001
        logger.exception("Unexpected failure syncing profile")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"success": False, "error": "Failed to sync profile"},
        )


@router.get("/analytics", response_model=AnalyticsPayload, status_code=status.HTTP_200_OK)
def get_analytics(store: ProfileStore = Depends(get_profile_store)) -> Union[AnalyticsPayload, JSONResponse]:
    started_at = perf_counter()
    if not store.is_configured():
        return _unavailable()
    try:
        summary = build_summary(store)
        payload = AnalyticsPayload.from_summary(summary)
    except Exception:  # noqa: BLE001
        logger.exception("Unexpected failure building analytics")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Failed to get analytics"},
        )
    emit_event(
        ANALYTICS_SUMMARY_EVENT,
        total_users=summary.total_users,
        active_users=summary.active_users_last_7_days,
        duration_ms=round((perf_counter() - started_at) * 1000.0, 2),
    )
    return payload


@router.get("/users", response_model=UsersPayload, status_code=status.HTTP_200_OK)
def list_users(
    store: ProfileStore = Depends(get_profile_store),
    settings: Settings = Depends(get_settings),
) -> Union[UsersPayload, JSONResponse]:
    if not store.is_configured():
        return _unavailable()
    try:
        limit = settings.profile_users_limit
        result = store.get_all(limit=limit)
        if result.error is not None:
            logger.error("Listing profiles failed: %s", result.error.message)
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={"error": result.error.message},
            )
        rows = (result.data or [])[:limit]
        return UsersPayload(users=[ProfileRecordPayload.model_validate(profile_record(row)) for row in rows])
    except Exception:  # noqa: BLE001
        logger.exception("Unexpected failure listing profiles")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Failed to get users"},
        )


@router.get("/users/{email}", response_model=UserPayload, status_code=status.HTTP_200_OK)
def get_user(email: str, store: ProfileStore = Depends(get_profile_store)) -> Union[UserPayload, JSONResponse]:
    if not store.is_configured():
        return _unavailable()
    try:
        result = store.get_by_email(email.strip())
        if result.error is not None:
            logger.error("Fetching profile failed: %s", result.error.message)
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={"error": result.error.message},
            )
        rows = result.data or []
        if not rows:
            return JSONResponse(
                status_code=status.HTTP_404_NOT_FOUND,
                content={"error": "Profile not found"},
            )
        return UserPayload(user=ProfileRecordPayload.model_validate(profile_record(rows[0])))
    except Exception:  # noqa: BLE001
        logger.exception("Unexpected failure fetching profile")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Failed to get user"},
        )


__all__ = ["STORE_NOT_CONFIGURED", "get_profile_store", "router"]
