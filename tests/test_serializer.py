"""Tests for serializers.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from datetime import datetime

import pytest

from roadkeys_core.protocol.serializer import JSONSerializer


class TestJSONSerializer:
    """Tests for JSONSerializer."""

    def test_text_output(self):
        """Test values encode to text."""
        serializer = JSONSerializer(sort_keys=True)
        assert serializer.serialize({"b": 1, "a": [True, None]}) == '{"a": [true, null], "b": 1}'

    def test_non_json_values_stringified(self):
        """Test unknown types fall back to str."""
        when = datetime(2024, 1, 2, 3, 4, 5)
        assert JSONSerializer().serialize({"at": when}) == '{"at": "2024-01-02 03:04:05"}'

    def test_bytes_input(self):
        """Test bytes are decoded before parsing."""
        assert JSONSerializer().deserialize(b'{"a": 1}') == {"a": 1}

    def test_malformed_raises_value_error(self):
        """Test decode failures surface as ValueError."""
        with pytest.raises(ValueError):
            JSONSerializer().deserialize("{nope")
