"""Session module - Expiring multi-device sessions."""

from roadkeys_core.session.sessions import SessionManager, SessionData, SessionConfig

__all__ = [
    "SessionManager",
    "SessionData",
    "SessionConfig",
]
