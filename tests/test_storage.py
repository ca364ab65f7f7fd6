"""Tests for Storage.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

import pytest

from roadkeys_core.storage.storage import Storage


@pytest.fixture
def storage(store):
    return Storage(store, "settings")


class TestStorage:
    """Tests for JSON key-value storage."""

    def test_basic_operations(self, storage, store):
        """Test set/get/has/delete."""
        storage.set("theme", {"mode": "dark"})

        assert storage.get("theme") == {"mode": "dark"}
        assert store.get("settings:theme") == '{"mode": "dark"}'
        assert storage.has("theme")
        assert "theme" in storage
        assert storage.delete("theme")
        assert storage.get("theme", default="light") == "light"

    def test_ttl_and_persist(self, storage, clock):
        """Test expiry controls."""
        storage.set("token", "abc", ttl=60)
        assert storage.ttl("token") == 60

        assert storage.persist("token")
        assert storage.ttl("token") == -1
        assert storage.expire("token", 5)

        clock.advance(5)
        assert storage.get("token") is None

    def test_many(self, storage):
        """Test bulk operations."""
        assert storage.set_many({"a": 1, "b": [2]}) == 2

        assert storage.get_many("a", "b", "c") == {"a": 1, "b": [2], "c": None}
        assert storage.get_all() == {"a": 1, "b": [2]}
        assert storage.count() == 2
        assert storage.delete_many("a", "c") == 1
        assert storage.keys() == ["b"]

    def test_counters(self, storage):
        """Test increment and decrement."""
        assert storage.increment("visits") == 1
        assert storage.increment("visits", 4) == 5
        assert storage.decrement("visits", 2) == 3

    def test_clear_scoped(self, storage, store):
        """Test clear leaves other namespaces alone."""
        storage.set("a", 1)
        other = Storage(store)
        other.set("a", 2)

        assert storage.clear() == 1
        assert other.get("a") == 2


class TestDocumentUpdates:
    """Tests for in-place document updates."""

    def test_array_helpers(self, storage):
        """Test append and remove."""
        assert storage.append_to_array("tags", "a", "b") == 2
        assert storage.append_to_array("tags", "c") == 3

        assert storage.remove_from_array("tags", "b")
        assert not storage.remove_from_array("tags", "zzz")
        assert not storage.remove_from_array("missing", "a")
        assert storage.get("tags") == ["a", "c"]

    def test_append_keeps_ttl(self, storage):
        """Test document updates do not drop expiry."""
        storage.set("tags", [], ttl=60)
        storage.append_to_array("tags", "a")
        assert storage.ttl("tags") == 60

    def test_append_to_non_list(self, storage):
        """Test appending to a scalar is rejected."""
        storage.set("n", 1)
        with pytest.raises(ValueError):
            storage.append_to_array("n", 2)

    def test_update_property(self, storage):
        """Test nested property updates."""
        storage.update_property("user", "prefs.theme", "dark")
        storage.update_property("user", "prefs.lang", "en")
        storage.update_property("user", "name", "alice")

        assert storage.get("user") == {
            "prefs": {"theme": "dark", "lang": "en"},
            "name": "alice",
        }

    def test_update_property_through_scalar(self, storage):
        """Test paths cannot descend into scalars."""
        storage.set("user", {"name": "alice"})
        with pytest.raises(ValueError):
            storage.update_property("user", "name.first", "a")
