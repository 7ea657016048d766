# services/session_store.py
"""
Per-user conversation state.

The dispatcher only talks to the SessionStore interface, so a Redis or
database-backed store can replace the in-memory one without touching the
dialogue code. State that sits idle longer than the TTL is dropped, either
when the user writes again or by the periodic purge started at app startup.
"""
import asyncio
import time
import weakref
from abc import ABC, abstractmethod
from typing import Dict, Optional, Tuple

from models.schemas import ConversationState
from utils.timezone_utils import get_user_now

DEFAULT_TTL_SECONDS = 1800
DEFAULT_PURGE_INTERVAL_SECONDS = 300


class SessionStore(ABC):
    @abstractmethod
    async def get(self, user_id: str) -> Optional[ConversationState]:
        ...

    @abstractmethod
    async def set(self, user_id: str, state: ConversationState) -> None:
        ...

    @abstractmethod
    async def clear(self, user_id: str) -> None:
        ...

    @abstractmethod
    def lock(self, user_id: str) -> asyncio.Lock:
        """Lock serializing event handling for one user"""


class InMemorySessionStore(SessionStore):
    def __init__(self, ttl_seconds: int = DEFAULT_TTL_SECONDS, clock=time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._states: Dict[str, Tuple[ConversationState, float]] = {}
        # A lock lives only while a handler holds or waits on it
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def _expired(self, touched_at: float) -> bool:
        return self.ttl_seconds > 0 and self._clock() - touched_at > self.ttl_seconds

    async def get(self, user_id: str) -> Optional[ConversationState]:
        entry = self._states.get(user_id)
        if entry is None:
            return None

        state, touched_at = entry
        if self._expired(touched_at):
            print(f"⚠️ Conversation state for {user_id} expired after {self.ttl_seconds}s idle")
            self._states.pop(user_id, None)
            return None
        return state

    async def set(self, user_id: str, state: ConversationState) -> None:
        self._states[user_id] = (state.model_copy(update={'updated_at': get_user_now()}), self._clock())

    async def clear(self, user_id: str) -> None:
        self._states.pop(user_id, None)

    def lock(self, user_id: str) -> asyncio.Lock:
        lock = self._locks.get(user_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[user_id] = lock
        return lock

    def purge_expired(self) -> int:
        """Drop all idle states; returns how many were removed"""
        expired = [user_id for user_id, (_, touched_at) in self._states.items() if self._expired(touched_at)]
        for user_id in expired:
            self._states.pop(user_id, None)
        if expired:
            print(f"🔍 Purged {len(expired)} idle conversation states")
        return len(expired)

    async def run_purge_loop(self, interval_seconds: float = DEFAULT_PURGE_INTERVAL_SECONDS) -> None:
        """Purge idle states every interval until cancelled"""
        while True:
            await asyncio.sleep(interval_seconds)
            try:
                self.purge_expired()
            except Exception as e:
                print(f"❌ Error purging conversation states: {e}")

    def active_locks(self) -> int:
        return len(self._locks)

    def __len__(self) -> int:
        return len(self._states)
