from __future__ import annotations

import logging
import os
import uuid
from typing import Any, Dict, Optional

from fastapi import UploadFile

from prepwise import config
from prepwise.errors import BadRequest, Forbidden, NotFound
from prepwise.models import Profile, utcnow
from prepwise.schemas import PrivacyUpdate, ProfileUpdate
from prepwise.store import RecordStore

LOG = logging.getLogger("prepwise.profiles")

PRIVACY_DEFAULTS: Dict[str, Any] = {"share_data": True, "data_retention_months": 12}
UPLOAD_CHUNK = 64 * 1024


async def get_own_profile(store: RecordStore, caller_id: str, profile_id: str) -> Profile:
    profile = await store.profiles.get(profile_id)
    if profile is None:
        raise NotFound("Profile not found")
    if profile.user_id != caller_id:
        raise Forbidden("Not authorized")
    return profile


async def update_profile(store: RecordStore, caller_id: str, profile_id: str, patch: ProfileUpdate) -> Profile:
    profile = await get_own_profile(store, caller_id, profile_id)
    changes = patch.model_dump(exclude_unset=True)
    if "preferred_industries" in changes:
        industries = changes["preferred_industries"] or []
        # Set semantics, first occurrence wins.
        changes["preferred_industries"] = list(dict.fromkeys(i.strip() for i in industries if i and i.strip()))
    if changes.get("notification_preferences") is None:
        changes.pop("notification_preferences", None)
    if changes.get("skill_level") is None:
        changes.pop("skill_level", None)
    for field, value in changes.items():
        setattr(profile, field, value)
    profile.updated_at = utcnow()
    await store.profiles.save(profile)
    return profile


async def _read_limited(upload: UploadFile, limit: int) -> bytes:
    chunks = []
    size = 0
    while True:
        chunk = await upload.read(UPLOAD_CHUNK)
        if not chunk:
            break
        size += len(chunk)
        if size > limit:
            raise BadRequest(f"File too large. Maximum size is {limit // (1024 * 1024)}MB.")
        chunks.append(chunk)
    return b"".join(chunks)


async def save_avatar(store: RecordStore, caller_id: str, profile_id: str, upload: UploadFile) -> Profile:
    profile = await get_own_profile(store, caller_id, profile_id)
    content_type = (upload.content_type or "").lower()
    if not content_type.startswith("image/"):
        raise BadRequest("Invalid file type. Only image files are allowed.")
    data = await _read_limited(upload, config.MAX_AVATAR_BYTES)
    if not data:
        raise BadRequest("No file uploaded")

    ext = os.path.splitext(upload.filename or "")[1].lower()[:10]
    filename = f"avatar-{uuid.uuid4().hex}{ext}"
    os.makedirs(config.UPLOAD_DIR, exist_ok=True)
    with open(os.path.join(config.UPLOAD_DIR, filename), "wb") as fh:
        fh.write(data)
    LOG.info("Stored avatar %s (%d bytes) for user %s", filename, len(data), caller_id)

    previous = profile.avatar_url
    profile.avatar_url = f"/uploads/{filename}"
    profile.updated_at = utcnow()
    await store.profiles.save(profile)
    _remove_old_avatar(previous)
    return profile


def _remove_old_avatar(avatar_url: Optional[str]) -> None:
    if not avatar_url or not avatar_url.startswith("/uploads/"):
        return
    path = os.path.join(config.UPLOAD_DIR, os.path.basename(avatar_url))
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as exc:
        LOG.warning("Could not remove old avatar %s: %s", path, exc)


def privacy_view(profile: Profile) -> Dict[str, Any]:
    prefs = profile.notification_preferences or {}
    return {key: prefs.get(key, default) for key, default in PRIVACY_DEFAULTS.items()}


async def get_privacy(store: RecordStore, user_id: str) -> Dict[str, Any]:
    profile = await get_own_profile(store, user_id, user_id)
    return privacy_view(profile)


async def update_privacy(store: RecordStore, user_id: str, patch: PrivacyUpdate) -> Dict[str, Any]:
    profile = await get_own_profile(store, user_id, user_id)
    changes = {k: v for k, v in patch.model_dump(exclude_unset=True).items() if v is not None}
    profile.notification_preferences = {**(profile.notification_preferences or {}), **changes}
    profile.updated_at = utcnow()
    await store.profiles.save(profile)
    return privacy_view(profile)


async def export_account(store: RecordStore, user_id: str) -> Dict[str, Any]:
    user = await store.users.get(user_id)
    if user is None:
        raise NotFound("User not found")
    profile = await store.profiles.get(user_id)
    interviews = await store.interviews.list_for_user(user_id)
    questions = await store.questions.list_for_interviews(i.id for i in interviews)
    analytics = await store.analytics.get(user_id)
    return {
        "user": user.model_dump(exclude={"password_hash"}),
        "profile": profile.model_dump() if profile else None,
        "interviews": [i.model_dump() for i in interviews],
        "questions": [q.model_dump() for q in questions],
        "analytics": analytics.model_dump() if analytics else None,
        "exported_at": utcnow().isoformat(),
    }
