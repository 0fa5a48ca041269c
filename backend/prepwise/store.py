"""
In-memory record store.

Each repository is an insertion-ordered dict guarded by its own asyncio lock.
Nothing here performs I/O, so no lock is ever held across an outbound call.
A durable backend would subclass ``MemoryRepo`` and keep the same methods.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Dict, Generic, Iterable, List, Optional, TypeVar

from prepwise.models import Analytics, Interview, Profile, Question, SessionRecord, User

T = TypeVar("T")


class MemoryRepo(Generic[T]):
    key_attr = "id"

    def __init__(self) -> None:
        self._items: Dict[str, T] = {}
        self.lock = asyncio.Lock()

    def _key(self, item: T) -> str:
        return getattr(item, self.key_attr)

    async def get(self, key: str) -> Optional[T]:
        async with self.lock:
            return self._items.get(key)

    async def add(self, item: T) -> T:
        async with self.lock:
            self._items[self._key(item)] = item
            return item

    # Records are mutated in place; saving re-registers them under their key.
    save = add

    async def delete(self, key: str) -> Optional[T]:
        async with self.lock:
            return self._items.pop(key, None)

    async def find(self, predicate: Callable[[T], bool]) -> List[T]:
        async with self.lock:
            return [item for item in self._items.values() if predicate(item)]

    async def values(self) -> List[T]:
        async with self.lock:
            return list(self._items.values())

    async def delete_where(self, predicate: Callable[[T], bool]) -> List[T]:
        async with self.lock:
            doomed = [key for key, item in self._items.items() if predicate(item)]
            return [self._items.pop(key) for key in doomed]


class UserRepo(MemoryRepo[User]):
    async def add_if_email_free(self, user: User) -> bool:
        async with self.lock:
            needle = user.email.lower()
            if any(u.email.lower() == needle for u in self._items.values()):
                return False
            self._items[user.id] = user
            return True

    async def find_by_email(self, email: str) -> Optional[User]:
        needle = email.strip().lower()
        matches = await self.find(lambda u: u.email.lower() == needle)
        return matches[0] if matches else None


class ProfileRepo(MemoryRepo[Profile]):
    pass


class InterviewRepo(MemoryRepo[Interview]):
    async def list_for_user(self, user_id: str) -> List[Interview]:
        return await self.find(lambda i: i.user_id == user_id)


class QuestionRepo(MemoryRepo[Question]):
    async def list_for_interview(self, interview_id: str) -> List[Question]:
        return await self.find(lambda q: q.interview_id == interview_id)

    async def list_for_interviews(self, interview_ids: Iterable[str]) -> List[Question]:
        wanted = set(interview_ids)
        return await self.find(lambda q: q.interview_id in wanted)


class AnalyticsRepo(MemoryRepo[Analytics]):
    key_attr = "user_id"

    async def update_with(
        self, user_id: str, build: Callable[[Analytics], Awaitable[None]]
    ) -> Optional[Analytics]:
        """Run ``build`` on the user's record while holding the lock, so concurrent recomputes serialize."""
        async with self.lock:
            record = self._items.get(user_id)
            if record is None:
                return None
            await build(record)
            return record


class SessionRepo(MemoryRepo[SessionRecord]):
    async def delete_for_user(self, user_id: str) -> List[SessionRecord]:
        return await self.delete_where(lambda s: s.user_id == user_id)


class RecordStore:
    def __init__(self) -> None:
        self.users = UserRepo()
        self.profiles = ProfileRepo()
        self.interviews = InterviewRepo()
        self.questions = QuestionRepo()
        self.analytics = AnalyticsRepo()
        self.sessions = SessionRepo()


_store: Optional[RecordStore] = None


def get_store() -> RecordStore:
    global _store
    if _store is None:
        _store = RecordStore()
    return _store
