"""
Voice-call vendor webhook dispatch.

Events are tagged by ``type``. Every known tag has a handler; anything else
maps to ``VoiceEventType.UNKNOWN`` and is ignored. Handler failures are logged
and never reach the vendor.
"""

from __future__ import annotations

import hmac
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional

from prepwise import config
from prepwise.errors import Forbidden, Unauthorized
from prepwise.models import InterviewStatus, utcnow
from prepwise.records import (
    coerce_difficulty,
    create_interview,
    create_question,
    owned_question,
    recompute_analytics,
    require_interview,
    set_status,
)
from prepwise.schemas import InterviewCreate, QuestionCreate, VoiceEvent
from prepwise.store import RecordStore

LOG = logging.getLogger("prepwise.webhook")


class VoiceEventType(str, Enum):
    CALL_STARTED = "call-started"
    TRANSCRIPT = "transcript"
    QUESTION_ASKED = "question-asked"
    QUESTION_SCORED = "question-scored"
    CALL_ENDED = "call-ended"
    UNKNOWN = "unknown"

    @classmethod
    def _missing_(cls, value: object) -> "VoiceEventType":
        return cls.UNKNOWN


Handler = Callable[[RecordStore, Dict[str, Any], Dict[str, Any]], Awaitable[Optional[Dict[str, Any]]]]


def verify_signature(signature: Optional[str]) -> None:
    secret = config.VAPI_WEBHOOK_SECRET
    if not secret:
        return
    if not signature or not hmac.compare_digest(signature.encode("utf-8"), secret.encode("utf-8")):
        raise Unauthorized("Invalid signature")


async def _call_started(store: RecordStore, data: Dict[str, Any], meta: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    user_id = meta.get("userId")
    if not user_id or meta.get("interviewId"):
        return None
    interview = await create_interview(
        store,
        user_id,
        InterviewCreate(
            title=meta.get("jobTitle"),
            company=meta.get("company"),
            job_role=meta.get("jobTitle"),
            industry=meta.get("industry"),
            difficulty=coerce_difficulty(meta.get("difficulty") or "medium"),
            status=InterviewStatus.IN_PROGRESS,
        ),
        default_title="Voice Interview",
    )
    return {"interviewId": interview.id}


async def _transcript(store: RecordStore, data: Dict[str, Any], meta: Dict[str, Any]) -> None:
    text = str(data.get("transcript") or data.get("text") or "").strip()
    if not text or not meta.get("interviewId"):
        return None
    interview = await require_interview(store, meta.get("interviewId"))
    line = f"{data.get('role') or 'speaker'}: {text}"
    interview.transcript = f"{interview.transcript}\n{line}" if interview.transcript else line
    interview.updated_at = utcnow()
    await store.interviews.save(interview)
    return None


async def _question_asked(store: RecordStore, data: Dict[str, Any], meta: Dict[str, Any]) -> None:
    if not meta.get("interviewId"):
        return None
    interview = await require_interview(store, meta.get("interviewId"))
    await create_question(
        store,
        interview,
        QuestionCreate(
            question_text=str(data.get("question") or ""),
            category=data.get("category"),
            industry=data.get("industry"),
            difficulty=coerce_difficulty(data.get("difficulty") or "medium"),
        ),
    )
    return None


async def _question_scored(store: RecordStore, data: Dict[str, Any], meta: Dict[str, Any]) -> None:
    question_id = data.get("questionId")
    if not question_id:
        return None
    user_id = meta.get("userId")
    if user_id:
        question = await owned_question(store, user_id, question_id)
    else:
        question = await store.questions.get(question_id)
        if question is None:
            LOG.info("question-scored for unknown question %s", question_id)
            return None

    score = data.get("score")
    if score is not None and (isinstance(score, bool) or not isinstance(score, (int, float))):
        raise ValueError(f"non-numeric score {score!r}")
    previous_score = question.score
    question.score = score
    if "feedback" in data:
        question.ai_feedback = str(data.get("feedback") or "")
    for key in ("user_response", "userResponse"):
        if key in data:
            question.user_response = str(data.get(key) or "")
            break
    question.updated_at = utcnow()
    await store.questions.save(question)

    if user_id and (score is not None or previous_score is not None):
        await recompute_analytics(store, user_id)
    return None


async def _call_ended(store: RecordStore, data: Dict[str, Any], meta: Dict[str, Any]) -> None:
    if not meta.get("interviewId"):
        return None
    interview = await require_interview(store, meta.get("interviewId"))
    # A call may end on an interview nobody started.
    if InterviewStatus(interview.status) == InterviewStatus.PENDING:
        set_status(interview, InterviewStatus.IN_PROGRESS)
    set_status(interview, InterviewStatus.COMPLETED)
    interview.updated_at = utcnow()
    await store.interviews.save(interview)
    return None


async def _ignore(store: RecordStore, data: Dict[str, Any], meta: Dict[str, Any]) -> None:
    return None


HANDLERS: Dict[VoiceEventType, Handler] = {
    VoiceEventType.CALL_STARTED: _call_started,
    VoiceEventType.TRANSCRIPT: _transcript,
    VoiceEventType.QUESTION_ASKED: _question_asked,
    VoiceEventType.QUESTION_SCORED: _question_scored,
    VoiceEventType.CALL_ENDED: _call_ended,
    VoiceEventType.UNKNOWN: _ignore,
}


async def dispatch(store: RecordStore, event: VoiceEvent) -> Dict[str, Any]:
    """Apply one event; always returns an acknowledgement body."""
    kind = VoiceEventType(event.type) if event.type else VoiceEventType.UNKNOWN
    try:
        result = await HANDLERS[kind](store, event.data or {}, event.metadata or {})
    except Forbidden:
        LOG.warning("Voice event %s rejected: question not owned by caller", kind.value)
        result = None
    except Exception:
        LOG.exception("Voice event %s failed", kind.value)
        result = None
    return result or {"status": "ok"}
