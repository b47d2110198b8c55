"""In-memory analytics over the learner profile collection."""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, List, Optional

from pydantic import TypeAdapter, ValidationError

from .profile_models import UserProfile, decode_goals
from .profile_store import ProfileStore

logger = logging.getLogger(__name__)

ACTIVE_WINDOW = timedelta(days=7)
TOP_GOALS_LIMIT = 10

# Accepts PostgREST output with trimmed fractional seconds on every Python.
_TIMESTAMP = TypeAdapter(datetime)


@dataclass(frozen=True)
class GoalCount:
    goal: str
    count: int


@dataclass(frozen=True)
class AnalyticsSummary:
    total_users: int = 0
    gender_distribution: Dict[str, int] = field(default_factory=dict)
    age_distribution: Dict[str, int] = field(default_factory=dict)
    top_goals: List[GoalCount] = field(default_factory=list)
    average_xp: int = 0
    average_level: float = 0
    average_streak: float = 0
    active_users_last_7_days: int = 0

    @classmethod
    def empty(cls) -> "AnalyticsSummary":
        return cls()


def _round_half_up(value: float, places: int = 0) -> Decimal:
    quantum = Decimal(1).scaleb(-places)
    return Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP)


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = _TIMESTAMP.validate_python(value)
    except ValidationError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def summarize(profiles: Iterable[UserProfile], now: Optional[datetime] = None) -> AnalyticsSummary:
    """Summarise profiles in a single pass.

    ``now`` is the reference point for the seven-day activity window. It is
    read from the wall clock once per call when omitted, so repeated calls
    are point-in-time snapshots rather than a pure function of ``profiles``.
    """
    reference = now or datetime.now(timezone.utc)
    if reference.tzinfo is None:
        reference = reference.replace(tzinfo=timezone.utc)
    active_since = reference - ACTIVE_WINDOW

    gender_distribution: Counter[str] = Counter()
    age_distribution: Counter[str] = Counter()
    goal_counts: Counter[str] = Counter()
    total_users = 0
    total_xp = 0
    total_level = 0
    total_streak = 0
    active_users = 0

    for profile in profiles:
        total_users += 1
        if profile.gender:
            gender_distribution[profile.gender] += 1
        if profile.age_range:
            age_distribution[profile.age_range] += 1
        goal_counts.update(decode_goals(profile.goals))

        total_xp += profile.total_xp or 0
        total_level += profile.level or 1
        total_streak += profile.streak or 0

        last_active = _parse_timestamp(profile.last_active_at)
        if last_active is not None and last_active >= active_since:
            active_users += 1

    if total_users == 0:
        return AnalyticsSummary.empty()

    # most_common keeps first-seen order among equal counts.
    top_goals = [GoalCount(goal=goal, count=count) for goal, count in goal_counts.most_common(TOP_GOALS_LIMIT)]
    return AnalyticsSummary(
        total_users=total_users,
        gender_distribution=dict(gender_distribution),
        age_distribution=dict(age_distribution),
        top_goals=top_goals,
        average_xp=int(_round_half_up(total_xp / total_users)),
        average_level=float(_round_half_up(total_level / total_users, 1)),
        average_streak=float(_round_half_up(total_streak / total_users, 1)),
        active_users_last_7_days=active_users,
    )


def build_summary(store: ProfileStore, now: Optional[datetime] = None) -> AnalyticsSummary:
    """Fetch every profile and summarise it, degrading to an empty summary.

    An unconfigured or failing store yields ``AnalyticsSummary.empty()``;
    callers that must tell "no data" apart from "no store" check
    ``store.is_configured()`` first.
    """
    if not store.is_configured():
        logger.info("Profile store not configured; returning empty analytics")
        return AnalyticsSummary.empty()
    result = store.get_all()
    if result.error is not None or result.data is None:
        logger.warning(
            "Profile read failed; returning empty analytics: %s",
            result.error.message if result.error else "no data",
        )
        return AnalyticsSummary.empty()
    return summarize(result.data, now)


__all__ = ["AnalyticsSummary", "GoalCount", "build_summary", "summarize"]
