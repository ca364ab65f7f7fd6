"""Protocol module - Serialization of records and cached values."""

from roadkeys_core.protocol.serializer import (
    Serializer,
    JSONSerializer,
)

__all__ = [
    "Serializer",
    "JSONSerializer",
]
