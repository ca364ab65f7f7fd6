"""Storage module - Namespaced JSON key-value storage."""

from roadkeys_core.storage.storage import Storage

__all__ = ["Storage"]
