"""
In-memory conversation store keyed by the user's phone number.

Each session holds the OpenAI-format transcript, a last-activity timestamp, and a
turn lock. The map itself is guarded by a threading lock; sessions idle longer
than the threshold are evicted by a periodic sweep.
"""

import asyncio
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable

from govverify.core.config import SESSION_IDLE_SECONDS, SESSION_SWEEP_INTERVAL_SECONDS

logger = logging.getLogger(__name__)


@dataclass
class ConversationSession:
    user_id: str
    # list of {"role": "system"|"user"|"assistant"|"tool", ...}
    messages: list[dict[str, Any]]
    last_activity: float
    turn_lock: asyncio.Lock = field(default_factory=asyncio.Lock)


class SessionStore:
    """Keyed transcript store with idle eviction."""

    def __init__(
        self,
        system_prompt: str,
        idle_seconds: float = SESSION_IDLE_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.system_prompt = system_prompt
        self.idle_seconds = idle_seconds
        self._clock = clock
        self._sessions: dict[str, ConversationSession] = {}
        self._lock = threading.Lock()

    def get_or_create(self, user_id: str) -> ConversationSession:
        """Return the user's session, creating it (seeded with the system prompt) if missing."""
        now = self._clock()
        with self._lock:
            session = self._sessions.get(user_id)
            if session is not None:
                session.last_activity = now
                created = False
            else:
                session = ConversationSession(
                    user_id=user_id,
                    messages=[{"role": "system", "content": self.system_prompt}],
                    last_activity=now,
                )
                self._sessions[user_id] = session
                created = True
        if created:
            logger.info("[session_store:get_or_create] created session user=%s", user_id)
        else:
            logger.info(
                "[session_store:get_or_create] reusing session user=%s messages=%d",
                user_id, len(session.messages),
            )
        return session

    def get(self, user_id: str) -> ConversationSession | None:
        with self._lock:
            return self._sessions.get(user_id)

    def clear(self, user_id: str) -> bool:
        """Drop the user's transcript. Returns True if a session existed."""
        with self._lock:
            existed = self._sessions.pop(user_id, None) is not None
        if existed:
            logger.info("[session_store:clear] cleared session user=%s", user_id)
        return existed

    def active_count(self) -> int:
        with self._lock:
            return len(self._sessions)

    def sweep_idle(self) -> int:
        """
        Evict sessions whose last activity is older than the idle threshold.

        The cutoff is taken once, at sweep time. A session refreshed by a concurrent
        get_or_create after that point is newer than the cutoff and survives; a
        session whose turn is still running is skipped.
        """
        cutoff = self._clock() - self.idle_seconds
        evicted = 0
        with self._lock:
            for user_id in list(self._sessions):
                session = self._sessions[user_id]
                if session.last_activity < cutoff and not session.turn_lock.locked():
                    logger.info(
                        "[session_store:sweep_idle] evicting user=%s messages=%d",
                        user_id, len(session.messages),
                    )
                    del self._sessions[user_id]
                    evicted += 1
            remaining = len(self._sessions)
        if evicted:
            logger.info("[session_store:sweep_idle] evicted=%d remaining=%d", evicted, remaining)
        return evicted

    async def run_sweeper(self, interval_seconds: float = SESSION_SWEEP_INTERVAL_SECONDS) -> None:
        """Sweep on a fixed period until cancelled."""
        while True:
            await asyncio.sleep(interval_seconds)
            try:
                self.sweep_idle()
            except Exception:
                logger.exception("[session_store:run_sweeper] sweep failed")
