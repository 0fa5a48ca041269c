from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class SkillLevel(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class InterviewStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


STATUS_TRANSITIONS: Dict[InterviewStatus, frozenset] = {
    InterviewStatus.PENDING: frozenset({InterviewStatus.IN_PROGRESS, InterviewStatus.CANCELLED}),
    InterviewStatus.IN_PROGRESS: frozenset({InterviewStatus.COMPLETED, InterviewStatus.CANCELLED}),
    InterviewStatus.COMPLETED: frozenset(),
    InterviewStatus.CANCELLED: frozenset(),
}


def can_transition(current: InterviewStatus, target: InterviewStatus) -> bool:
    # Records built without validation may carry plain strings.
    current, target = InterviewStatus(current), InterviewStatus(target)
    return current == target or target in STATUS_TRANSITIONS[current]


class User(SQLModel, table=True):
    id: str = Field(default_factory=new_id, primary_key=True)
    email: str = Field(index=True, unique=True)
    password_hash: str
    full_name: Optional[str] = Field(default=None)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Profile(SQLModel, table=True):
    id: str = Field(primary_key=True)  # same as the owning user's id
    user_id: str = Field(foreign_key="user.id")
    email: str
    full_name: Optional[str] = Field(default=None)
    avatar_url: Optional[str] = Field(default=None)
    company: Optional[str] = Field(default=None)
    role: Optional[str] = Field(default=None)
    experience_level: Optional[str] = Field(default=SkillLevel.BEGINNER.value)
    bio: Optional[str] = Field(default=None)
    skill_level: SkillLevel = Field(default=SkillLevel.BEGINNER)
    preferred_industries: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    notification_preferences: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))
    interview_count: int = Field(default=0)
    total_practice_time: int = Field(default=0)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Interview(SQLModel, table=True):
    id: str = Field(default_factory=new_id, primary_key=True)
    user_id: str = Field(foreign_key="user.id", index=True)
    title: str = Field(default="Mock Interview")
    company: str = Field(default="")
    job_role: str = Field(default="")
    industry: str = Field(default="")
    difficulty: Difficulty = Field(default=Difficulty.MEDIUM)
    type: str = Field(default="general")
    duration_minutes: int = Field(default=0)
    score: Optional[float] = Field(default=None)
    feedback: Optional[Any] = Field(default=None, sa_column=Column(JSON))  # free text or structured AI output
    transcript: Optional[str] = Field(default=None)
    status: InterviewStatus = Field(default=InterviewStatus.IN_PROGRESS)
    overall_score: Optional[float] = Field(default=None)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    completed_at: Optional[datetime] = Field(default=None)


class Question(SQLModel, table=True):
    id: str = Field(default_factory=new_id, primary_key=True)
    interview_id: str = Field(foreign_key="interview.id", index=True)
    category: str = Field(default="general")
    industry: str = Field(default="")
    difficulty: Difficulty = Field(default=Difficulty.MEDIUM)
    question_text: str = Field(default="")
    expected_keywords: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    sample_answer: Optional[str] = Field(default=None)
    user_response: str = Field(default="")
    ai_feedback: str = Field(default="")
    score: Optional[float] = Field(default=None)
    expected_answer: str = Field(default="")
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Analytics(SQLModel, table=True):
    user_id: str = Field(primary_key=True, foreign_key="user.id")
    total_interviews: int = Field(default=0)
    average_score: float = Field(default=0.0)
    best_score: float = Field(default=0.0)
    last_interview_date: Optional[datetime] = Field(default=None)
    total_practice_time: int = Field(default=0)


class SessionRecord(SQLModel, table=True):
    id: str = Field(primary_key=True)  # opaque token carried in the session cookie
    user_id: str = Field(foreign_key="user.id", index=True)
    email: str
    created_at: datetime = Field(default_factory=utcnow)
    expires_at: datetime
