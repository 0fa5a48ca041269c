"""Request payloads. Each update model lists only the fields a client may change."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from prepwise.models import Difficulty, InterviewStatus, SkillLevel


class Payload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class SignupRequest(Payload):
    email: Optional[str] = None
    password: Optional[str] = None
    full_name: Optional[str] = Field(default=None, alias="fullName")


class LoginRequest(Payload):
    email: Optional[str] = None
    password: Optional[str] = None


class ChangePasswordRequest(Payload):
    old_password: Optional[str] = Field(default=None, alias="oldPassword")
    new_password: Optional[str] = Field(default=None, alias="newPassword")


class DeleteAccountRequest(Payload):
    password: Optional[str] = None


class ProfileUpdate(Payload):
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None
    company: Optional[str] = None
    role: Optional[str] = None
    experience_level: Optional[str] = None
    bio: Optional[str] = None
    skill_level: Optional[SkillLevel] = None
    preferred_industries: Optional[List[str]] = None
    notification_preferences: Optional[Dict[str, Any]] = None


class PrivacyUpdate(Payload):
    share_data: Optional[bool] = None
    data_retention_months: Optional[int] = Field(default=None, ge=1, le=120)


class InterviewCreate(Payload):
    title: Optional[str] = None
    company: Optional[str] = None
    job_role: Optional[str] = Field(default=None, alias="jobRole")
    industry: Optional[str] = None
    difficulty: Optional[Difficulty] = None
    type: Optional[str] = None
    duration_minutes: Optional[int] = Field(default=None, ge=0, alias="duration")
    status: Optional[InterviewStatus] = None


class InterviewUpdate(Payload):
    title: Optional[str] = None
    company: Optional[str] = None
    job_role: Optional[str] = Field(default=None, alias="jobRole")
    industry: Optional[str] = None
    difficulty: Optional[Difficulty] = None
    type: Optional[str] = None
    duration_minutes: Optional[int] = Field(default=None, ge=0, alias="duration")
    score: Optional[float] = None
    feedback: Optional[Any] = None
    transcript: Optional[str] = None
    status: Optional[InterviewStatus] = None
    overall_score: Optional[float] = None


class QuestionCreate(Payload):
    question_text: str = ""
    category: Optional[str] = None
    industry: Optional[str] = None
    difficulty: Optional[Difficulty] = None
    expected_keywords: List[str] = Field(default_factory=list)
    sample_answer: Optional[str] = None
    expected_answer: Optional[str] = None


class QuestionUpdate(Payload):
    category: Optional[str] = None
    industry: Optional[str] = None
    difficulty: Optional[Difficulty] = None
    question_text: Optional[str] = None
    expected_keywords: Optional[List[str]] = None
    sample_answer: Optional[str] = None
    user_response: Optional[str] = None
    ai_feedback: Optional[str] = None
    score: Optional[float] = Field(default=None, ge=0)
    expected_answer: Optional[str] = None


class FeedbackRequest(Payload):
    question: Optional[str] = None
    response: Optional[str] = None
    interview_id: Optional[str] = Field(default=None, alias="interviewId")


class QuestionsRequest(Payload):
    job_role: Optional[str] = Field(default=None, alias="jobRole")
    industry: Optional[str] = None
    difficulty: Optional[Difficulty] = None
    count: int = 5
    interview_id: Optional[str] = Field(default=None, alias="interviewId")


class VoiceEvent(Payload):
    type: Optional[str] = None
    data: Optional[Dict[str, Any]] = None
    metadata: Optional[Dict[str, Any]] = None
