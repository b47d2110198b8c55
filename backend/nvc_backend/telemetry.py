"""Structured telemetry for profile sync and analytics requests.

Events are logged as ``TELEMETRY {json}`` on ``nvc.telemetry`` and handed to
in-process subscribers. Emails never leave this module unmasked.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from threading import RLock
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Tuple

logger = logging.getLogger("nvc.telemetry")

PROFILE_SYNC_EVENT = "profile_sync"
ANALYTICS_SUMMARY_EVENT = "analytics_summary"

Listener = Callable[["TelemetryEvent"], None]


@dataclass(frozen=True)
class TelemetryEvent:
    name: str
    payload: Dict[str, Any]
    emitted_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def as_log_record(self) -> Dict[str, Any]:
        return {"event": self.name, "emitted_at": self.emitted_at.isoformat(), **self.payload}


# (listener, event names or None for all)
_subscriptions: List[Tuple[Listener, Optional[FrozenSet[str]]]] = []
_lock = RLock()


def register_listener(listener: Listener, *events: str) -> None:
    """Subscribe ``listener`` to the named events, or to all when none given."""
    with _lock:
        _subscriptions.append((listener, frozenset(events) or None))


def clear_listeners() -> None:
    with _lock:
        _subscriptions.clear()


def emit_event(name: str, **fields: Any) -> TelemetryEvent:
    event = TelemetryEvent(name=name, payload=_scrub(fields))

    with _lock:
        targets = [listener for listener, names in _subscriptions if names is None or name in names]

    for listener in targets:
        try:
            listener(event)
        except Exception:  # noqa: BLE001
            logger.exception("Telemetry listener failed for %s", name)

    logger.info("TELEMETRY %s", json.dumps(event.as_log_record(), default=str))
    return event


def mask_email(value: str) -> str:
    local, sep, domain = value.partition("@")
    if not sep:
        return "***"
    return f"{local[:1]}***@{domain}"


def _scrub(fields: Dict[str, Any]) -> Dict[str, Any]:
    scrubbed: Dict[str, Any] = {}
    for key, value in fields.items():
        if value is None:
            continue
        if key == "email" and isinstance(value, str):
            value = mask_email(value)
        elif isinstance(value, datetime):
            value = value.isoformat()
        scrubbed[key] = value
    return scrubbed


__all__ = [
    "ANALYTICS_SUMMARY_EVENT",
    "PROFILE_SYNC_EVENT",
    "TelemetryEvent",
    "clear_listeners",
    "emit_event",
    "mask_email",
    "register_listener",
]
