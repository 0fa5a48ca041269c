"""
Interview and question operations shared by the HTTP API and the voice webhook.

Analytics are recomputed from every scored question the user owns rather
than maintained incrementally, so the stored average and best score always
match a fresh scan.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

from prepwise.ai import FeedbackResult, GeneratedQuestion
from prepwise.errors import BadRequest, Conflict, Forbidden, NotFound
from prepwise.models import (
    Analytics,
    Difficulty,
    Interview,
    InterviewStatus,
    Question,
    can_transition,
    utcnow,
)
from prepwise.schemas import InterviewCreate, InterviewUpdate, QuestionCreate, QuestionUpdate
from prepwise.store import RecordStore

LOG = logging.getLogger("prepwise.records")

INTERVIEW_NULLABLE = {"score", "feedback", "transcript", "overall_score"}
QUESTION_NULLABLE = {"sample_answer", "score"}


def coerce_difficulty(value: Any) -> Difficulty:
    try:
        return Difficulty(str(value).strip().lower())
    except ValueError:
        return Difficulty.MEDIUM


def _merge(record: Any, changes: Dict[str, Any], nullable: Iterable[str]) -> None:
    allowed_none = set(nullable)
    for field, value in changes.items():
        if value is None and field not in allowed_none:
            continue
        setattr(record, field, value)


def set_status(interview: Interview, target: InterviewStatus) -> None:
    if not can_transition(interview.status, target):
        raise Conflict(f"Cannot move interview from {InterviewStatus(interview.status).value} to {target.value}")
    if InterviewStatus(interview.status) == target:
        return
    interview.status = target
    if target == InterviewStatus.COMPLETED:
        interview.completed_at = utcnow()


async def create_interview(store: RecordStore, user_id: str, fields: InterviewCreate, default_title: str = "Mock Interview") -> Interview:
    if await store.users.get(user_id) is None:
        raise NotFound("User not found")
    status = fields.status or InterviewStatus.IN_PROGRESS
    if status not in (InterviewStatus.PENDING, InterviewStatus.IN_PROGRESS):
        raise BadRequest("A new interview must be pending or in_progress")

    interview = Interview(
        user_id=user_id,
        title=(fields.title or "").strip() or default_title,
        company=fields.company or "",
        job_role=fields.job_role or "",
        industry=fields.industry or "",
        difficulty=fields.difficulty or Difficulty.MEDIUM,
        type=fields.type or "general",
        duration_minutes=fields.duration_minutes or 0,
        status=status,
    )
    await store.interviews.add(interview)

    profile = await store.profiles.get(user_id)
    if profile is not None:
        profile.interview_count += 1
        profile.updated_at = utcnow()
        await store.profiles.save(profile)

    count = len(await store.interviews.list_for_user(user_id))

    async def bump(record: Analytics) -> None:
        record.total_interviews = count

    await store.analytics.update_with(user_id, bump)
    LOG.info("Interview created: id=%s user=%s", interview.id, user_id)
    return interview


async def get_owned_interview(store: RecordStore, user_id: str, interview_id: str) -> Interview:
    interview = await store.interviews.get(interview_id)
    if interview is None or interview.user_id != user_id:
        raise NotFound("Interview not found")
    return interview


async def require_interview(store: RecordStore, interview_id: Optional[str]) -> Interview:
    interview = await store.interviews.get(interview_id) if interview_id else None
    if interview is None:
        raise NotFound("Interview not found")
    return interview


async def list_interviews(store: RecordStore, user_id: str) -> List[Interview]:
    return await store.interviews.list_for_user(user_id)


async def update_interview(store: RecordStore, user_id: str, interview_id: str, patch: InterviewUpdate) -> Interview:
    interview = await get_owned_interview(store, user_id, interview_id)
    changes = patch.model_dump(exclude_unset=True)
    target = changes.pop("status", None)
    if target is not None:
        set_status(interview, InterviewStatus(target))
    _merge(interview, changes, INTERVIEW_NULLABLE)
    interview.updated_at = utcnow()
    await store.interviews.save(interview)
    return interview


async def list_questions(store: RecordStore, user_id: str, interview_id: str) -> List[Question]:
    await get_owned_interview(store, user_id, interview_id)
    return await store.questions.list_for_interview(interview_id)


async def create_question(store: RecordStore, interview: Interview, fields: QuestionCreate) -> Question:
    question = Question(
        interview_id=interview.id,
        category=(fields.category or "").strip() or "general",
        industry=fields.industry or "",
        difficulty=fields.difficulty or Difficulty.MEDIUM,
        question_text=fields.question_text or "",
        expected_keywords=list(fields.expected_keywords or []),
        sample_answer=fields.sample_answer,
        expected_answer=fields.expected_answer or "",
    )
    await store.questions.add(question)
    return question


async def persist_generated(
    store: RecordStore,
    interview: Interview,
    items: List[GeneratedQuestion],
    industry: Optional[str],
    difficulty: Optional[Difficulty],
) -> List[Question]:
    saved = []
    for item in items:
        saved.append(
            await create_question(
                store,
                interview,
                QuestionCreate(
                    question_text=item.question,
                    category=item.category,
                    industry=industry,
                    difficulty=difficulty,
                    expected_keywords=item.expected_keywords,
                    sample_answer=item.sample_answer,
                    expected_answer=item.expected_answer,
                ),
            )
        )
    LOG.info("Stored %d generated questions on interview %s", len(saved), interview.id)
    return saved


async def owned_question(store: RecordStore, user_id: str, question_id: Optional[str]) -> Question:
    question = await store.questions.get(question_id) if question_id else None
    if question is None:
        raise NotFound("Question not found")
    interview = await store.interviews.get(question.interview_id)
    if interview is None or interview.user_id != user_id:
        raise Forbidden("Not authorized")
    return question


async def update_question(store: RecordStore, user_id: str, question_id: str, patch: QuestionUpdate) -> Question:
    question = await owned_question(store, user_id, question_id)
    previous_score = question.score
    changes = patch.model_dump(exclude_unset=True)
    _merge(question, changes, QUESTION_NULLABLE)
    question.updated_at = utcnow()
    await store.questions.save(question)

    # Clearing a score also changes the aggregates.
    if changes.get("score") is not None or ("score" in changes and previous_score is not None):
        await recompute_analytics(store, user_id)
    return question


async def recompute_analytics(store: RecordStore, user_id: str) -> Optional[Analytics]:
    async def rebuild(record: Analytics) -> None:
        interviews = await store.interviews.list_for_user(user_id)
        questions = await store.questions.list_for_interviews(i.id for i in interviews)
        scores = [q.score for q in questions if q.score is not None]
        record.average_score = sum(scores) / len(scores) if scores else 0.0
        record.best_score = max(scores, default=0.0)
        record.total_interviews = len(interviews)
        record.total_practice_time = sum(i.duration_minutes or 0 for i in interviews)
        record.last_interview_date = utcnow()

    record = await store.analytics.update_with(user_id, rebuild)
    if record is None:
        LOG.warning("No analytics row for user %s; skipped recompute", user_id)
    return record


async def attach_feedback(store: RecordStore, interview: Interview, result: FeedbackResult) -> Interview:
    interview.feedback = result.feedback
    interview.score = result.score
    interview.updated_at = utcnow()
    await store.interviews.save(interview)
    return interview
