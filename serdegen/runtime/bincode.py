"""Non-canonical binary encoding compatible with bincode.

Lengths are fixed 8-byte little-endian integers and variant indices 4-byte
ones. Map entries are written in iteration order and the decoder performs no
ordering or minimality checks. Only meant for interop with bincode peers.
"""

from typing import Any

from .serialization import (
    Deserializer,
    MaxDepthExceeded,
    SerializationError,
    Serializer,
    container_stack,
    deserialize_value,
    serialize_value,
)

MAX_LENGTH = (1 << 64) - 1
MAX_U32 = (1 << 32) - 1
# Bounds the interpreter stack, not the wire format
MAX_CONTAINER_DEPTH = 500


class BincodeSerializer(Serializer):
    """Serializer for the bincode encoding."""

    def __init__(self, max_container_depth: int | None = MAX_CONTAINER_DEPTH) -> None:
        super().__init__(max_container_depth)

    def serialize_len(self, value: int) -> None:
        if value > MAX_LENGTH:
            raise SerializationError(f"length {value} exceeds {MAX_LENGTH}")
        self.serialize_u64(value)

    def serialize_variant_index(self, value: int) -> None:
        if not 0 <= value <= MAX_U32:
            raise SerializationError(f"variant index {value} is not a u32")
        self.serialize_u32(value)


class BincodeDeserializer(Deserializer):
    """Deserializer for the bincode encoding."""

    def __init__(
        self, content: bytes, max_container_depth: int | None = MAX_CONTAINER_DEPTH
    ) -> None:
        super().__init__(content, max_container_depth)

    def deserialize_len(self) -> int:
        return self.deserialize_u64()

    def deserialize_variant_index(self) -> int:
        return self.deserialize_u32()


def serialize(value: Any, fmt: Any = None) -> bytes:
    """Serialize a generated value, or any value given its format descriptor."""
    serializer = BincodeSerializer()
    with container_stack(MAX_CONTAINER_DEPTH, SerializationError):
        if fmt is None:
            value.serialize(serializer)
        else:
            serialize_value(serializer, fmt, value)
    return serializer.get_bytes()


def deserialize(content: bytes, target: Any) -> Any:
    """Deserialize ``content`` into a generated class or a format descriptor."""
    deserializer = BincodeDeserializer(content)
    with container_stack(MAX_CONTAINER_DEPTH, MaxDepthExceeded):
        if isinstance(target, type):
            value = target.deserialize(deserializer)
        else:
            value = deserialize_value(deserializer, target)
    deserializer.finish()
    return value
