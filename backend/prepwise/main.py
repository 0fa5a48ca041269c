"""
PrepWise backend: auth, interview records, AI question/feedback endpoints and
the voice-call webhook.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import uvicorn
from fastapi import Depends, FastAPI, File, Request, UploadFile
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from fastapi.staticfiles import StaticFiles
from pydantic import ValidationError

from prepwise import auth, config, profiles, records
from prepwise.ai import generate_questions, score_answer, validate_feedback_request, validate_question_request
from prepwise.errors import BadRequest, PrepWiseError
from prepwise.llm import GeminiClient, get_llm, run_unless_disconnected
from prepwise.models import SessionRecord
from prepwise.schemas import (
    ChangePasswordRequest,
    DeleteAccountRequest,
    FeedbackRequest,
    InterviewCreate,
    InterviewUpdate,
    LoginRequest,
    PrivacyUpdate,
    ProfileUpdate,
    QuestionCreate,
    QuestionsRequest,
    QuestionUpdate,
    SignupRequest,
    VoiceEvent,
)
from prepwise.store import RecordStore, get_store
from prepwise.webhook import dispatch, verify_signature

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="[%(asctime)s] %(name)s - %(levelname)s - %(message)s",
)
LOG = logging.getLogger("prepwise")

app = FastAPI(title="PrepWise API", version="1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.mount("/uploads", StaticFiles(directory=config.UPLOAD_DIR, check_dir=False), name="uploads")


@app.on_event("startup")
async def on_startup() -> None:
    os.makedirs(config.UPLOAD_DIR, exist_ok=True)
    LOG.info(
        "PrepWise starting: env=%s gemini=%s vapi_secret=%s uploads=%s",
        config.ENVIRONMENT,
        "configured" if config.GEMINI_API_KEY else "missing (fallback content only)",
        "set" if config.VAPI_WEBHOOK_SECRET else "unset",
        config.UPLOAD_DIR,
    )


@app.exception_handler(PrepWiseError)
async def prepwise_error_handler(request: Request, exc: PrepWiseError) -> JSONResponse:
    if exc.status_code >= 500:
        LOG.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.code, "detail": exc.message})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={"error": "validation_error", "detail": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    LOG.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": "internal_error", "detail": "Internal server error"})


def _user_view(session: SessionRecord) -> Dict[str, str]:
    return {"id": session.user_id, "email": session.email}


def _no_content() -> Response:
    return Response(status_code=204)


@app.get("/health")
@app.get("/api/health")
async def health() -> Dict[str, str]:
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}


# ------------------------------
# Auth
# ------------------------------


@app.post("/api/auth/signup")
async def signup(payload: SignupRequest, response: Response, store: RecordStore = Depends(get_store)) -> Dict[str, Any]:
    _, session = await auth.signup(store, payload.email or "", payload.password or "", payload.full_name)
    auth.set_session_cookie(response, session)
    return {"user": _user_view(session)}


@app.post("/api/auth/login")
async def login(payload: LoginRequest, response: Response, store: RecordStore = Depends(get_store)) -> Dict[str, Any]:
    _, session = await auth.login(store, payload.email or "", payload.password or "")
    auth.set_session_cookie(response, session)
    return {"user": _user_view(session)}


@app.post("/api/auth/logout", status_code=204)
async def logout(request: Request, store: RecordStore = Depends(get_store)) -> Response:
    await auth.logout(store, request.cookies.get(config.COOKIE_NAME))
    response = _no_content()
    auth.clear_session_cookie(response)
    return response


@app.get("/api/auth/me")
async def me(session: Optional[SessionRecord] = Depends(auth.optional_session)) -> Dict[str, Any]:
    return {"user": _user_view(session) if session else None}


@app.post("/api/auth/change-password", status_code=204)
async def change_password(
    payload: ChangePasswordRequest,
    session: SessionRecord = Depends(auth.require_session),
    store: RecordStore = Depends(get_store),
) -> Response:
    await auth.change_password(store, session.user_id, payload.old_password or "", payload.new_password or "")
    return _no_content()


@app.delete("/api/auth/delete-account", status_code=204)
async def delete_account(
    payload: DeleteAccountRequest,
    session: SessionRecord = Depends(auth.require_session),
    store: RecordStore = Depends(get_store),
) -> Response:
    await auth.delete_account(store, session.user_id, payload.password or "")
    response = _no_content()
    auth.clear_session_cookie(response)
    return response


# ------------------------------
# Profile, privacy, export
# ------------------------------


@app.get("/api/profile/{profile_id}")
async def get_profile(
    profile_id: str,
    session: SessionRecord = Depends(auth.require_session),
    store: RecordStore = Depends(get_store),
) -> Dict[str, Any]:
    profile = await profiles.get_own_profile(store, session.user_id, profile_id)
    return profile.model_dump()


@app.put("/api/profile/{profile_id}")
async def update_profile(
    profile_id: str,
    payload: ProfileUpdate,
    session: SessionRecord = Depends(auth.require_session),
    store: RecordStore = Depends(get_store),
) -> Dict[str, Any]:
    profile = await profiles.update_profile(store, session.user_id, profile_id, payload)
    return profile.model_dump()


@app.post("/api/profile/{profile_id}/photo")
async def upload_photo(
    profile_id: str,
    avatar: Optional[UploadFile] = File(default=None),
    session: SessionRecord = Depends(auth.require_session),
    store: RecordStore = Depends(get_store),
) -> Dict[str, Any]:
    if avatar is None:
        raise BadRequest("No file uploaded")
    profile = await profiles.save_avatar(store, session.user_id, profile_id, avatar)
    return {"success": True, "avatar_url": profile.avatar_url, "profile": profile.model_dump()}


@app.get("/api/privacy")
async def get_privacy(
    session: SessionRecord = Depends(auth.require_session), store: RecordStore = Depends(get_store)
) -> Dict[str, Any]:
    return await profiles.get_privacy(store, session.user_id)


@app.put("/api/privacy")
async def update_privacy(
    payload: PrivacyUpdate,
    session: SessionRecord = Depends(auth.require_session),
    store: RecordStore = Depends(get_store),
) -> Dict[str, Any]:
    return await profiles.update_privacy(store, session.user_id, payload)


@app.get("/api/account/export")
async def export_account(
    session: SessionRecord = Depends(auth.require_session), store: RecordStore = Depends(get_store)
) -> JSONResponse:
    data = await profiles.export_account(store, session.user_id)
    return JSONResponse(
        content=jsonable_encoder(data),
        headers={"Content-Disposition": 'attachment; filename="my_data.json"'},
    )


# ------------------------------
# Interviews and questions
# ------------------------------


@app.get("/api/interviews")
async def list_interviews(
    session: SessionRecord = Depends(auth.require_session), store: RecordStore = Depends(get_store)
) -> List[Dict[str, Any]]:
    return [i.model_dump() for i in await records.list_interviews(store, session.user_id)]


@app.post("/api/interviews")
async def create_interview(
    payload: InterviewCreate,
    session: SessionRecord = Depends(auth.require_session),
    store: RecordStore = Depends(get_store),
) -> Dict[str, Any]:
    interview = await records.create_interview(store, session.user_id, payload)
    return interview.model_dump()


@app.put("/api/interviews/{interview_id}")
async def update_interview(
    interview_id: str,
    payload: InterviewUpdate,
    session: SessionRecord = Depends(auth.require_session),
    store: RecordStore = Depends(get_store),
) -> Dict[str, Any]:
    interview = await records.update_interview(store, session.user_id, interview_id, payload)
    return interview.model_dump()


@app.get("/api/interviews/{interview_id}/questions")
async def list_questions(
    interview_id: str,
    session: SessionRecord = Depends(auth.require_session),
    store: RecordStore = Depends(get_store),
) -> List[Dict[str, Any]]:
    return [q.model_dump() for q in await records.list_questions(store, session.user_id, interview_id)]


@app.post("/api/interviews/{interview_id}/questions")
async def create_question(
    interview_id: str,
    payload: QuestionCreate,
    session: SessionRecord = Depends(auth.require_session),
    store: RecordStore = Depends(get_store),
) -> Dict[str, Any]:
    interview = await records.get_owned_interview(store, session.user_id, interview_id)
    question = await records.create_question(store, interview, payload)
    return question.model_dump()


@app.put("/api/questions/{question_id}")
async def update_question(
    question_id: str,
    payload: QuestionUpdate,
    session: SessionRecord = Depends(auth.require_session),
    store: RecordStore = Depends(get_store),
) -> Dict[str, Any]:
    question = await records.update_question(store, session.user_id, question_id, payload)
    return question.model_dump()


@app.get("/api/analytics")
async def get_analytics(
    session: SessionRecord = Depends(auth.require_session), store: RecordStore = Depends(get_store)
) -> Optional[Dict[str, Any]]:
    record = await store.analytics.get(session.user_id)
    return record.model_dump() if record else None


# ------------------------------
# AI coach
# ------------------------------


@app.post("/api/ai/questions")
async def ai_questions(
    payload: QuestionsRequest,
    request: Request,
    session: SessionRecord = Depends(auth.require_session),
    store: RecordStore = Depends(get_store),
    llm: GeminiClient = Depends(get_llm),
) -> List[Dict[str, Any]]:
    validate_question_request(payload.job_role, payload.count)
    interview = None
    if payload.interview_id:
        interview = await records.get_owned_interview(store, session.user_id, payload.interview_id)

    items = await generate_questions(
        llm,
        payload.job_role,
        industry=payload.industry,
        difficulty=payload.difficulty.value if payload.difficulty else None,
        count=payload.count,
        runner=lambda call: run_unless_disconnected(request, call),
    )
    if interview is not None:
        if await request.is_disconnected():
            LOG.info("Client left before questions were stored for interview %s", interview.id)
        else:
            await records.persist_generated(store, interview, items, payload.industry, payload.difficulty)
    return [item.model_dump() for item in items]


@app.post("/api/ai/feedback")
async def ai_feedback(
    payload: FeedbackRequest,
    request: Request,
    session: SessionRecord = Depends(auth.require_session),
    store: RecordStore = Depends(get_store),
    llm: GeminiClient = Depends(get_llm),
) -> Dict[str, Any]:
    validate_feedback_request(payload.question, payload.response)
    interview = None
    if payload.interview_id:
        interview = await records.get_owned_interview(store, session.user_id, payload.interview_id)

    result = await score_answer(
        llm,
        payload.question,
        payload.response,
        runner=lambda call: run_unless_disconnected(request, call),
    )
    if interview is not None:
        await records.attach_feedback(store, interview, result)
    return result.model_dump()


# ------------------------------
# Voice vendor
# ------------------------------


@app.post("/api/vapi/token")
async def vapi_token(session: SessionRecord = Depends(auth.require_session)) -> Dict[str, str]:
    return {"apiKey": config.VAPI_API_KEY}


@app.post("/api/vapi/webhook")
async def vapi_webhook(request: Request, store: RecordStore = Depends(get_store)) -> Dict[str, Any]:
    verify_signature(request.headers.get(config.VAPI_SIGNATURE_HEADER))
    try:
        event = VoiceEvent.model_validate(await request.json())
    except (ValueError, ValidationError) as exc:
        LOG.warning("Unreadable voice webhook body: %s", exc)
        return {"status": "ok"}
    return await dispatch(store, event)


if __name__ == "__main__":
    uvicorn.run(app, host=config.HOST, port=config.PORT)
