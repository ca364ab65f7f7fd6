"""RoadKeys Serializer - Record and Value Serialization.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from typing import Any

logger = logging.getLogger(__name__)


class Serializer(ABC):
    """Abstract serializer for values kept in the keyspace.

    The keyspace stores text, so implementations encode to ``str``.
    A ``deserialize`` failure must raise ``ValueError`` (or a subclass)
    so callers can treat it as a decode error.
    """

    @property
    @abstractmethod
    def format_name(self) -> str:
        """Get format name."""
        pass

    @abstractmethod
    def serialize(self, value: Any) -> str:
        """Serialize value to text.

        Args:
            value: Value to serialize

        Returns:
            Serialized text
        """
        pass

    @abstractmethod
    def deserialize(self, data: str) -> Any:
        """Deserialize text to value.

        Args:
            data: Serialized text

        Returns:
            Deserialized value

        Raises:
            ValueError: If data is malformed
        """
        pass


class JSONSerializer(Serializer):
    """JSON serializer.

    Human-readable and interoperable with non-Python consumers of the
    same keyspace. Values that are not JSON-native fall back to ``str``.
    """

    def __init__(self, sort_keys: bool = False):
        self.sort_keys = sort_keys

    @property
    def format_name(self) -> str:
        return "json"

    def serialize(self, value: Any) -> str:
        return json.dumps(value, default=str, sort_keys=self.sort_keys)

    def deserialize(self, data: str) -> Any:
        if isinstance(data, bytes):
            data = data.decode("utf-8")
        return json.loads(data)


__all__ = [
    "Serializer",
    "JSONSerializer",
]
