"""Row model for the ``user_profiles`` table and helpers for its columns."""

from __future__ import annotations

import json
from typing import Any, Dict, Iterable, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, field_validator

Gender = Literal["male", "female", "non-binary", "prefer-not-to-say"]
AgeRange = Literal["18-24", "25-34", "35-44", "45-54", "55+"]


# Applied on every upsert for counters the caller leaves out.
PROFILE_DEFAULTS: Dict[str, int] = {
    "total_xp": 0,
    "level": 1,
    "completed_exercises": 0,
    "streak": 0,
    "longest_streak": 0,
}


class UserProfile(BaseModel):
    """One learner profile as stored remotely.

    ``goals`` keeps the persisted JSON string; use :func:`decode_goals` to
    read it. Unknown server columns (``id`` and friends) are preserved.
    """

    model_config = ConfigDict(extra="allow")

    email: str
    name: Optional[str] = None
    gender: Optional[str] = None
    age_range: Optional[str] = None
    goals: Optional[str] = None
    total_xp: Optional[int] = None
    level: Optional[int] = None
    completed_exercises: Optional[int] = None
    streak: Optional[int] = None
    longest_streak: Optional[int] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    last_active_at: Optional[str] = None

    @field_validator("goals", mode="before")
    @classmethod
    def _goals_as_text(cls, value: Any) -> Any:
        # json-typed columns come back already decoded.
        if isinstance(value, list):
            return json.dumps(value)
        if value is not None and not isinstance(value, str):
            return None
        return value


def encode_goals(goals: Optional[Iterable[str]]) -> Optional[str]:
    if goals is None:
        return None
    return json.dumps(list(goals))


def decode_goals(raw: Optional[str]) -> List[str]:
    """Decode the stored goals column; anything malformed reads as no goals."""
    if not raw:
        return []
    try:
        parsed: Any = json.loads(raw)
    except (TypeError, ValueError):
        return []
    if not isinstance(parsed, list):
        return []
    return [goal for goal in parsed if isinstance(goal, str)]


def profile_record(profile: UserProfile) -> Dict[str, Any]:
    """Presentation form of a row with ``goals`` decoded to a list."""
    record = profile.model_dump()
    record["goals"] = decode_goals(profile.goals)
    return record


__all__ = [
    "AgeRange",
    "Gender",
    "PROFILE_DEFAULTS",
    "UserProfile",
    "decode_goals",
    "encode_goals",
    "profile_record",
]
