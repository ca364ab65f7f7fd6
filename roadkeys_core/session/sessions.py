"""RoadKeys Sessions - Expiring Multi-Device Sessions.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import logging
import math
import secrets
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from roadkeys_core._internal.clock import Clock, SystemClock, now_ms
from roadkeys_core.store.backend import KeyspaceStore
from roadkeys_core.store.namespace import NamespacedStore

logger = logging.getLogger(__name__)


@dataclass
class SessionConfig:
    """Session configuration.

    Attributes:
        ttl: Default session lifetime in seconds
        namespace: Namespace of session records
        user_namespace: Namespace of per-user session ID sets
    """

    ttl: int = 86400
    namespace: str = "session"
    user_namespace: str = "user_sessions"


@dataclass
class SessionData:
    """A stored session. Times are epoch milliseconds."""

    user_id: str
    data: Dict[str, Any] = field(default_factory=dict)
    created_at: int = 0
    last_activity_at: int = 0
    expires_at: int = 0
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None

    def is_expired(self, now: int) -> bool:
        return now > self.expires_at

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "data": self.data,
            "created_at": self.created_at,
            "last_activity_at": self.last_activity_at,
            "expires_at": self.expires_at,
            "ip_address": self.ip_address,
            "user_agent": self.user_agent,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SessionData":
        return cls(
            user_id=data["user_id"],
            data=data.get("data") or {},
            created_at=int(data.get("created_at", 0)),
            last_activity_at=int(data.get("last_activity_at", 0)),
            expires_at=int(data.get("expires_at", 0)),
            ip_address=data.get("ip_address"),
            user_agent=data.get("user_agent"),
        )


class SessionManager:
    """Session management with expiry and per-user tracking.

    Each session is a JSON record whose store TTL matches its expiry.
    Every user also has a set of session IDs, which is what makes
    "log out everywhere" possible.

    Example:
        sessions = SessionManager(store)
        session_id = sessions.create("user-123", {"name": "Alice"})
        session = sessions.validate(session_id)
    """

    def __init__(
        self,
        store: KeyspaceStore,
        config: Optional[SessionConfig] = None,
        clock: Optional[Clock] = None,
    ):
        self.config = config or SessionConfig()
        self._sessions = NamespacedStore(store, self.config.namespace)
        self._users = NamespacedStore(store, self.config.user_namespace)
        self._clock = clock or SystemClock()

    def _now(self) -> int:
        return now_ms(self._clock)

    def _load(self, session_id: str) -> Optional[SessionData]:
        data = self._sessions.get_json(session_id)
        if not isinstance(data, dict):
            return None
        try:
            return SessionData.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Discarding malformed session {session_id!r}: {e}")
            return None

    def _save(self, session_id: str, session: SessionData, now: int) -> bool:
        """Write a session with a TTL matching its remaining lifetime."""
        ttl = math.ceil((session.expires_at - now) / 1000)
        if ttl <= 0:
            return False
        self._sessions.set_json(session_id, session.to_dict(), ttl=ttl)
        return True

    @staticmethod
    def _generate_session_id() -> str:
        return secrets.token_urlsafe(24)

    def create(
        self,
        user_id: str,
        data: Optional[Dict[str, Any]] = None,
        ttl: Optional[int] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> str:
        """Create a session.

        Args:
            user_id: User identifier
            data: Session payload
            ttl: Lifetime in seconds
            ip_address: Client IP for security tracking
            user_agent: Client user agent for device identification

        Returns:
            Session ID

        Raises:
            ValueError: If ttl is not positive
        """
        ttl = self.config.ttl if ttl is None else ttl
        if ttl <= 0:
            raise ValueError(f"ttl must be positive, got {ttl}")

        session_id = self._generate_session_id()
        now = self._now()
        session = SessionData(
            user_id=user_id,
            data=data or {},
            created_at=now,
            last_activity_at=now,
            expires_at=now + ttl * 1000,
            ip_address=ip_address,
            user_agent=user_agent,
        )

        self._sessions.set_json(session_id, session.to_dict(), ttl=ttl)
        self._users.sadd(user_id, session_id)
        if self._users.ttl(user_id) < ttl:
            self._users.expire(user_id, ttl)

        logger.debug(f"Created session for user {user_id}")
        return session_id

    def get(self, session_id: str) -> Optional[SessionData]:
        """Get a live session, or None.

        A record found past its expiry is destroyed.
        """
        session = self._load(session_id)
        if session is None:
            return None

        if session.is_expired(self._now()):
            self.destroy(session_id)
            return None

        return session

    def validate(self, session_id: str) -> Optional[SessionData]:
        """Get a live session and record activity on it."""
        session = self.get(session_id)
        if session is None:
            return None

        now = self._now()
        session.last_activity_at = now
        if not self._save(session_id, session, now):
            return None
        return session

    def extend(self, session_id: str, additional_seconds: int) -> bool:
        """Push a session's expiry further out.

        Returns:
            False if the session is gone
        """
        session = self.get(session_id)
        if session is None:
            return False

        now = self._now()
        session.expires_at += additional_seconds * 1000
        if not self._save(session_id, session, now):
            return False

        remaining = math.ceil((session.expires_at - now) / 1000)
        if self._users.ttl(session.user_id) < remaining:
            self._users.expire(session.user_id, remaining)
        return True

    def destroy(self, session_id: str) -> bool:
        """Destroy a session.

        Returns:
            True if a session record was deleted
        """
        session = self._load(session_id)
        if session is not None:
            self._users.srem(session.user_id, session_id)
        return self._sessions.delete(session_id) > 0

    def destroy_all_for_user(self, user_id: str) -> int:
        """Destroy every session of a user (logout from all devices).

        Returns:
            Number of sessions destroyed
        """
        session_ids = self._users.smembers(user_id)
        if not session_ids:
            return 0

        self._sessions.delete(*session_ids)
        self._users.delete(user_id)

        logger.info(f"Destroyed {len(session_ids)} sessions for user {user_id}")
        return len(session_ids)

    def get_all_for_user(self, user_id: str) -> List[SessionData]:
        """Live sessions of a user, oldest first."""
        sessions = []
        for session_id in self._users.smembers(user_id):
            session = self.get(session_id)
            if session is not None:
                sessions.append(session)
        return sorted(sessions, key=lambda s: s.created_at)

    def get_session_count(self, user_id: str) -> int:
        """Number of tracked session IDs for a user."""
        return self._users.scard(user_id)

    def cleanup_expired(self) -> int:
        """Remove session records that are expired or unreadable.

        Returns:
            Number of sessions cleaned
        """
        now = self._now()
        cleaned = 0

        for session_id in self._sessions.scan_all():
            session = self._load(session_id)
            if session is None or session.is_expired(now):
                self.destroy(session_id)
                cleaned += 1

        if cleaned:
            logger.info(f"Cleaned up {cleaned} expired sessions")
        return cleaned


__all__ = ["SessionManager", "SessionData", "SessionConfig"]
