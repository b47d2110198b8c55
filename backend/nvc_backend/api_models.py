"""Pydantic models for the mobile client and dashboard payloads."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from .analytics import AnalyticsSummary
from .profile_models import AgeRange, Gender, UserProfile, encode_goals

NOT_SPECIFIED = "not-specified"


class ProfileSyncRequest(BaseModel):
    """Body of ``POST /api/profile/sync`` as sent by the app (camelCase)."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    email: EmailStr
    name: Optional[str] = None
    gender: Optional[Gender] = None
    age_range: Optional[AgeRange] = Field(default=None, alias="ageRange")
    goals: Optional[List[str]] = None
    total_xp: Optional[int] = Field(default=None, ge=0, alias="totalXP")
    level: Optional[int] = Field(default=None, ge=0)
    completed_exercises: Optional[int] = Field(default=None, ge=0, alias="completedExercises")
    streak: Optional[int] = Field(default=None, ge=0)
    longest_streak: Optional[int] = Field(default=None, ge=0, alias="longestStreak")

    def to_profile(self) -> UserProfile:
        return UserProfile(
            email=str(self.email),
            name=self.name,
            gender=self.gender,
            age_range=self.age_range,
            goals=encode_goals(self.goals),
            total_xp=self.total_xp,
            level=self.level,
            completed_exercises=self.completed_exercises,
            streak=self.streak,
            longest_streak=self.longest_streak,
        )


class ProfileSyncResponse(BaseModel):
    success: bool
    profile: Optional[Dict[str, Any]] = None
    message: Optional[str] = None
    error: Optional[str] = None


class GenderBucket(BaseModel):
    gender: str
    count: int


class AgeRangeBucket(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    age_range: str = Field(alias="ageRange")
    count: int


class GoalCountPayload(BaseModel):
    goal: str
    count: int


class AverageStatsPayload(BaseModel):
    xp: int
    level: float
    streak: float


class AnalyticsPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total_users: int = Field(alias="totalUsers")
    active_users: int = Field(alias="activeUsers")
    gender_distribution: List[GenderBucket] = Field(default_factory=list, alias="genderDistribution")
    age_distribution: List[AgeRangeBucket] = Field(default_factory=list, alias="ageDistribution")
    average_stats: AverageStatsPayload = Field(alias="averageStats")
    top_goals: List[GoalCountPayload] = Field(default_factory=list, alias="topGoals")

    @classmethod
    def from_summary(cls, summary: AnalyticsSummary) -> "AnalyticsPayload":
        return cls(
            total_users=summary.total_users,
            active_users=summary.active_users_last_7_days,
            gender_distribution=[
                GenderBucket(gender=gender or NOT_SPECIFIED, count=count)
                for gender, count in summary.gender_distribution.items()
            ],
            age_distribution=[
                AgeRangeBucket(age_range=age_range or NOT_SPECIFIED, count=count)
                for age_range, count in summary.age_distribution.items()
            ],
            average_stats=AverageStatsPayload(
                xp=summary.average_xp,
                level=summary.average_level,
                streak=summary.average_streak,
            ),
            top_goals=[GoalCountPayload(goal=item.goal, count=item.count) for item in summary.top_goals],
        )


class ProfileRecordPayload(BaseModel):
    """A stored profile with goals decoded; extra server columns pass through."""

    model_config = ConfigDict(extra="allow")

    email: str
    name: Optional[str] = None
    gender: Optional[str] = None
    age_range: Optional[str] = None
    goals: List[str] = Field(default_factory=list)
    total_xp: Optional[int] = None
    level: Optional[int] = None
    completed_exercises: Optional[int] = None
    streak: Optional[int] = None
    longest_streak: Optional[int] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    last_active_at: Optional[str] = None


class UsersPayload(BaseModel):
    users: List[ProfileRecordPayload] = Field(default_factory=list)


class UserPayload(BaseModel):
    user: ProfileRecordPayload


__all__ = [
    "AgeRangeBucket",
    "AnalyticsPayload",
    "AverageStatsPayload",
    "GenderBucket",
    "GoalCountPayload",
    "NOT_SPECIFIED",
    "ProfileRecordPayload",
    "ProfileSyncRequest",
    "ProfileSyncResponse",
    "UserPayload",
    "UsersPayload",
]
