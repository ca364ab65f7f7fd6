"""Tests for SessionManager.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

import pytest

from roadkeys_core.session.sessions import SessionConfig, SessionManager


@pytest.fixture
def sessions(store, clock):
    return SessionManager(store, clock=clock)


class TestSessionLifecycle:
    """Tests for creating and reading sessions."""

    def test_create_and_get(self, sessions, clock):
        """Test a new session is readable."""
        session_id = sessions.create(
            "user-1", {"name": "Alice"},
            ip_address="10.0.0.1", user_agent="Mozilla/5.0",
        )
        session = sessions.get(session_id)

        now = int(clock.time() * 1000)
        assert session.user_id == "user-1"
        assert session.data == {"name": "Alice"}
        assert session.created_at == now
        assert session.expires_at == now + 86400 * 1000
        assert session.ip_address == "10.0.0.1"

    def test_ids_unique(self, sessions):
        """Test session IDs do not repeat."""
        ids = {sessions.create("user-1") for _ in range(20)}
        assert len(ids) == 20

    def test_expiry(self, sessions, clock):
        """Test sessions vanish after their TTL."""
        session_id = sessions.create("user-1", ttl=60)

        clock.advance(61)
        assert sessions.get(session_id) is None

    def test_invalid_ttl(self, sessions):
        """Test non-positive TTLs are rejected."""
        with pytest.raises(ValueError):
            sessions.create("user-1", ttl=0)

    def test_config_ttl(self, store, clock):
        """Test the configured default lifetime."""
        sessions = SessionManager(store, SessionConfig(ttl=120), clock=clock)
        session_id = sessions.create("user-1")

        assert store.ttl(f"session:{session_id}") == 120

    def test_validate_touches_activity(self, sessions, clock):
        """Test validate updates last activity but not expiry."""
        session_id = sessions.create("user-1", ttl=3600)
        created = sessions.get(session_id)

        clock.advance(100)
        session = sessions.validate(session_id)

        assert session.last_activity_at == created.last_activity_at + 100_000
        assert session.expires_at == created.expires_at
        assert sessions.get(session_id).last_activity_at == session.last_activity_at

    def test_last_second_still_live(self, sessions, clock, store):
        """Test a session with under a second left can be used and extended."""
        session_id = sessions.create("user-1", ttl=60)
        clock.advance(59.5)

        session = sessions.validate(session_id)
        assert session is not None
        assert session.last_activity_at == session.expires_at - 500
        assert store.ttl(f"session:{session_id}") == 1

        assert sessions.extend(session_id, 30)
        assert store.ttl(f"session:{session_id}") == 31

    def test_validate_missing(self, sessions):
        """Test validating an unknown session."""
        assert sessions.validate("nope") is None

    def test_extend(self, sessions, clock, store):
        """Test extending pushes expiry and TTL."""
        session_id = sessions.create("user-1", ttl=60)

        assert sessions.extend(session_id, 600)
        assert store.ttl(f"session:{session_id}") == 660

        clock.advance(300)
        assert sessions.get(session_id) is not None
        assert not sessions.extend("nope", 60)


class TestMultiDevice:
    """Tests for per-user session tracking."""

    def test_sessions_per_user(self, sessions, clock):
        """Test listing and counting a user's sessions."""
        sessions.create("user-1", {"device": "phone"})
        clock.advance(1)
        sessions.create("user-1", {"device": "laptop"})
        sessions.create("user-2")

        assert sessions.get_session_count("user-1") == 2
        devices = [s.data["device"] for s in sessions.get_all_for_user("user-1")]
        assert devices == ["phone", "laptop"]

    def test_destroy(self, sessions):
        """Test destroying one session."""
        session_id = sessions.create("user-1")
        other = sessions.create("user-1")

        assert sessions.destroy(session_id)
        assert sessions.get(session_id) is None
        assert sessions.get_session_count("user-1") == 1
        assert sessions.get(other) is not None
        assert not sessions.destroy(session_id)

    def test_destroy_all_for_user(self, sessions):
        """Test logging out everywhere."""
        ids = [sessions.create("user-1") for _ in range(3)]
        keep = sessions.create("user-2")

        assert sessions.destroy_all_for_user("user-1") == 3
        assert all(sessions.get(i) is None for i in ids)
        assert sessions.get_session_count("user-1") == 0
        assert sessions.get(keep) is not None
        assert sessions.destroy_all_for_user("user-1") == 0

    def test_cleanup_expired(self, sessions, store):
        """Test cleanup removes malformed records."""
        sessions.create("user-1")
        store.set("session:broken", "{not json")

        assert sessions.cleanup_expired() == 1
        assert store.get("session:broken") is None
