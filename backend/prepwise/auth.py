from __future__ import annotations

import asyncio
import logging
import secrets
from datetime import timedelta
from typing import Optional, Tuple

import bcrypt
from fastapi import Depends, Request, Response

from prepwise import config
from prepwise.errors import BadRequest, Conflict, NotFound, Unauthorized
from prepwise.models import Analytics, Profile, SessionRecord, User, utcnow
from prepwise.store import RecordStore, get_store

LOG = logging.getLogger("prepwise.auth")

# bcrypt only looks at the first 72 bytes of a password.
MAX_PASSWORD_BYTES = 72


def _check_password_length(password: str) -> None:
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise BadRequest(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")


def hash_password(password: str) -> str:
    salt = bcrypt.gensalt(rounds=config.BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    raw = password.encode("utf-8")
    if len(raw) > MAX_PASSWORD_BYTES:
        return False
    try:
        return bcrypt.checkpw(raw, password_hash.encode("utf-8"))
    except ValueError:
        LOG.warning("Stored password hash is malformed")
        return False


async def open_session(store: RecordStore, user: User) -> SessionRecord:
    now = utcnow()
    record = SessionRecord(
        id=secrets.token_urlsafe(32),
        user_id=user.id,
        email=user.email,
        created_at=now,
        expires_at=now + timedelta(seconds=config.SESSION_TTL_SECONDS),
    )
    await store.sessions.add(record)
    return record


async def resolve_session(store: RecordStore, token: Optional[str]) -> Optional[SessionRecord]:
    if not token:
        return None
    record = await store.sessions.get(token)
    if record is None:
        return None
    if record.expires_at <= utcnow():
        await store.sessions.delete(token)
        LOG.info("Expired session dropped for user %s", record.user_id)
        return None
    return record


async def signup(
    store: RecordStore, email: str, password: str, full_name: Optional[str] = None
) -> Tuple[User, SessionRecord]:
    """
    Create the user with its profile and analytics rows, then open a session.

    The four writes are separate; a crash between them can leave a partial
    account, which the in-memory store loses on restart anyway.
    """
    email = (email or "").strip()
    if not email or not password:
        raise BadRequest("Email and password required")
    _check_password_length(password)
    if await store.users.find_by_email(email):
        raise Conflict("User already exists")

    password_hash = await asyncio.to_thread(hash_password, password)
    user = User(email=email, password_hash=password_hash, full_name=full_name or None)
    # Re-check after the hash; another signup may have landed meanwhile.
    if not await store.users.add_if_email_free(user):
        raise Conflict("User already exists")

    await store.profiles.add(
        Profile(
            id=user.id,
            user_id=user.id,
            email=user.email,
            full_name=user.full_name,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )
    )
    await store.analytics.add(Analytics(user_id=user.id))
    session = await open_session(store, user)
    LOG.info("New account created: user=%s", user.id)
    return user, session


async def login(store: RecordStore, email: str, password: str) -> Tuple[User, SessionRecord]:
    user = await store.users.find_by_email(email or "")
    if user is None or not password:
        raise Unauthorized("Invalid credentials")
    ok = await asyncio.to_thread(verify_password, password, user.password_hash)
    if not ok:
        raise Unauthorized("Invalid credentials")
    return user, await open_session(store, user)


async def logout(store: RecordStore, token: Optional[str]) -> None:
    if token:
        await store.sessions.delete(token)


async def _authenticated_user(store: RecordStore, user_id: str, password: str, message: str) -> User:
    user = await store.users.get(user_id)
    if user is None:
        raise NotFound("User not found")
    ok = await asyncio.to_thread(verify_password, password, user.password_hash)
    if not ok:
        raise Unauthorized(message)
    return user


async def change_password(store: RecordStore, user_id: str, old_password: str, new_password: str) -> None:
    if not old_password or not new_password:
        raise BadRequest("Missing fields")
    _check_password_length(new_password)
    user = await _authenticated_user(store, user_id, old_password, "Invalid current password")
    user.password_hash = await asyncio.to_thread(hash_password, new_password)
    user.updated_at = utcnow()
    await store.users.save(user)


async def delete_account(store: RecordStore, user_id: str, password: str) -> None:
    if not password:
        raise BadRequest("Password required")
    await _authenticated_user(store, user_id, password, "Invalid password")

    await store.users.delete(user_id)
    await store.profiles.delete(user_id)
    await store.analytics.delete(user_id)
    await store.sessions.delete_for_user(user_id)
    removed = await store.interviews.delete_where(lambda i: i.user_id == user_id)
    removed_ids = {i.id for i in removed}
    questions = await store.questions.delete_where(lambda q: q.interview_id in removed_ids)
    LOG.info(
        "Account deleted: user=%s interviews=%d questions=%d", user_id, len(removed), len(questions)
    )


def set_session_cookie(response: Response, session: SessionRecord) -> None:
    response.set_cookie(
        config.COOKIE_NAME,
        session.id,
        max_age=config.SESSION_TTL_SECONDS,
        httponly=True,
        secure=config.COOKIE_SECURE,
        samesite=config.COOKIE_SAMESITE,
        path="/",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(config.COOKIE_NAME, path="/")


async def optional_session(
    request: Request, store: RecordStore = Depends(get_store)
) -> Optional[SessionRecord]:
    return await resolve_session(store, request.cookies.get(config.COOKIE_NAME))


async def require_session(
    request: Request, store: RecordStore = Depends(get_store)
) -> SessionRecord:
    token = request.cookies.get(config.COOKIE_NAME)
    if not token:
        raise Unauthorized("Not authenticated")
    session = await resolve_session(store, token)
    if session is None:
        raise Unauthorized("Invalid session")
    return session
