"""
Server-side session store for caption batches.

A session owns the two rotation registries (voices and pop culture
entities) so consecutive batches for the same client stay fresh without
the client tracking any rotation state. Sessions are keyed by a UUID that
the store returns on first use.

Features:
- In-memory session storage with TTL expiration
- One VoiceAssignmentRegistry and one EntityCooldownRegistry per session
- A bounded history of delivered lines per session
- A per-session lock held by the pipeline for the whole batch
- Automatic cleanup of expired sessions and oldest-first eviction at capacity
"""

from __future__ import annotations

import random
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone, timedelta
from typing import Any, Dict, Optional

from punchline.config.logger import app_logger
from punchline.config.settings import settings
from punchline.services.duplicate_history import DuplicateHistory
from punchline.services.entity_registry import EntityCooldownRegistry
from punchline.services.voice_registry import VoiceAssignmentRegistry


SESSION_TTL_MINUTES = settings.SESSION_TTL_MINUTES

MAX_SESSIONS = settings.MAX_SESSIONS


@dataclass
class CaptionSession:
    """
    Rotation state for one caption client.

    Tracks:
    - Voice rotation (recent history, least-recently-used ticks)
    - Entity cooldowns (batch ids)
    - Recently delivered lines, for repeat detection across batches
    - Batch count and activity timestamps
    """
    rng: random.Random = field(default_factory=lambda: random.Random(settings.RANDOM_SEED))
    voices: Optional[VoiceAssignmentRegistry] = None
    entities: Optional[EntityCooldownRegistry] = None
    history: DuplicateHistory = field(default_factory=DuplicateHistory)
    lock: threading.RLock = field(default_factory=threading.RLock)

    batch_count: int = 0
    last_state: Optional[str] = None

    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    last_activity: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self) -> None:
        if self.voices is None:
            self.voices = VoiceAssignmentRegistry(rng=self.rng)
        if self.entities is None:
            self.entities = EntityCooldownRegistry(rng=self.rng)

    @classmethod
    def seeded(cls, seed: int) -> "CaptionSession":
        """Session whose rotation choices are reproducible."""
        return cls(rng=random.Random(seed))

    def start_new_batch(self) -> int:
        """Open a batch on both registries. Returns the entity batch id."""
        with self.lock:
            self.voices.start_batch()
            batch_id = self.entities.start_new_batch()
            self.batch_count += 1
            return batch_id

    def touch(self) -> None:
        """Update last activity timestamp."""
        self.last_activity = datetime.now(timezone.utc)

    def is_expired(self, ttl_minutes: int = SESSION_TTL_MINUTES) -> bool:
        """Check if session has expired."""
        expiry = self.last_activity + timedelta(minutes=ttl_minutes)
        return datetime.now(timezone.utc) > expiry


class SessionStore:
    """
    Thread-safe session store with automatic expiration cleanup.
    """

    def __init__(self, ttl_minutes: int = SESSION_TTL_MINUTES, max_sessions: int = MAX_SESSIONS):
        self._sessions: Dict[str, CaptionSession] = {}
        self._lock = threading.RLock()
        self._ttl_minutes = ttl_minutes
        self._max_sessions = max_sessions

    def create_session(self, seed: Optional[int] = None) -> str:
        """Create a new session and return its ID."""
        with self._lock:
            # Cleanup expired sessions first if we're at capacity
            if len(self._sessions) >= self._max_sessions:
                self._cleanup_expired()

            # If still at capacity, remove oldest sessions
            if len(self._sessions) >= self._max_sessions:
                self._remove_oldest(count=max(1, len(self._sessions) - self._max_sessions + 1))

            sid = str(uuid.uuid4())
            self._sessions[sid] = CaptionSession.seeded(seed) if seed is not None else CaptionSession()
            app_logger.debug(f"Created new session: {sid}")
            return sid

    def get_session(self, session_id: Optional[str]) -> tuple[str, CaptionSession]:
        """
        Get or create a session.

        Returns tuple of (session_id, CaptionSession).
        If session_id is None, unknown or expired, creates a new session.
        """
        with self._lock:
            if session_id and session_id in self._sessions:
                session = self._sessions[session_id]
                if not session.is_expired(self._ttl_minutes):
                    session.touch()
                    return session_id, session
                else:
                    # Session expired, remove it
                    del self._sessions[session_id]
                    app_logger.debug(f"Session expired and removed: {session_id}")

            sid = self.create_session()
            return sid, self._sessions[sid]

    def drop_session(self, session_id: str) -> bool:
        """Forget a session. Returns False when it did not exist."""
        with self._lock:
            return self._sessions.pop(session_id, None) is not None

    def get_session_summary(self, session_id: str) -> Dict[str, Any]:
        """Get a summary of session state for debugging/logging."""
        with self._lock:
            session = self._sessions.get(session_id)
            if not session:
                return {"error": "Session not found"}

            return {
                "session_id": session_id,
                "batch_count": session.batch_count,
                "last_state": session.last_state,
                "voices": session.voices.status(),
                "entities": session.entities.status(),
                "history": session.history.status(),
                "created_at": session.created_at.isoformat(),
                "last_activity": session.last_activity.isoformat(),
            }

    def _cleanup_expired(self) -> int:
        """Remove expired sessions. Returns count of removed sessions."""
        removed = 0
        expired_ids = [
            sid for sid, session in self._sessions.items()
            if session.is_expired(self._ttl_minutes)
        ]
        for sid in expired_ids:
            del self._sessions[sid]
            removed += 1

        if removed:
            app_logger.debug(f"Cleaned up {removed} expired sessions")
        return removed

    def _remove_oldest(self, count: int = 100) -> None:
        """Remove the oldest sessions by last_activity."""
        sorted_sessions = sorted(
            self._sessions.items(),
            key=lambda x: x[1].last_activity
        )
        for sid, _ in sorted_sessions[:count]:
            del self._sessions[sid]
        app_logger.debug(f"Removed {count} oldest sessions")

    @property
    def session_count(self) -> int:
        """Get current number of active sessions."""
        with self._lock:
            return len(self._sessions)


# Global session store instance
_store = SessionStore()


def create_session(seed: Optional[int] = None) -> str:
    """Create a new session and return its ID."""
    return _store.create_session(seed)


def get_session(session_id: Optional[str]) -> tuple[str, CaptionSession]:
    """Get or create a session. Returns (session_id, CaptionSession)."""
    return _store.get_session(session_id)


def drop_session(session_id: str) -> bool:
    return _store.drop_session(session_id)


def get_session_summary(session_id: str) -> Dict[str, Any]:
    """Get a summary of session state for debugging/logging."""
    return _store.get_session_summary(session_id)


def get_session_count() -> int:
    """Get current number of active sessions."""
    return _store.session_count
