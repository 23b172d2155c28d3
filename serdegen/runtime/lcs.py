"""Canonical binary encoding (LCS).

Every value has exactly one encoding: lengths and variant indices are
minimal ULEB128, map entries are sorted by their serialized key bytes, and
the decoder rejects any input that breaks these rules.
"""

from typing import Any

from .serialization import (
    Deserializer,
    DuplicateKey,
    IntegerOverflow,
    MapNotSorted,
    MaxDepthExceeded,
    NonMinimalEncoding,
    SerializationError,
    Serializer,
    container_stack,
    deserialize_value,
    serialize_value,
)

MAX_SEQUENCE_LENGTH = (1 << 31) - 1
MAX_CONTAINER_DEPTH = 500
MAX_U32 = (1 << 32) - 1


class LcsSerializer(Serializer):
    """Serializer for the canonical encoding."""

    def __init__(self, max_container_depth: int | None = MAX_CONTAINER_DEPTH) -> None:
        super().__init__(max_container_depth)

    def serialize_u32_as_uleb128(self, value: int) -> None:
        while value >> 7:
            self._output.append((value & 0x7F) | 0x80)
            value >>= 7
        self._output.append(value)

    def serialize_len(self, value: int) -> None:
        if value > MAX_SEQUENCE_LENGTH:
            raise SerializationError(f"length {value} exceeds {MAX_SEQUENCE_LENGTH}")
        self.serialize_u32_as_uleb128(value)

    def serialize_variant_index(self, value: int) -> None:
        if not 0 <= value <= MAX_U32:
            raise SerializationError(f"variant index {value} is not a u32")
        self.serialize_u32_as_uleb128(value)

    def sort_map_entries(self, offsets: list[int]) -> None:
        if len(offsets) <= 1:
            return
        ends = offsets[1:] + [len(self._output)]
        # Entries are self-delimiting, so ordering whole entries orders the keys.
        entries = sorted(bytes(self._output[start:end]) for start, end in zip(offsets, ends))
        self._output[offsets[0] :] = b"".join(entries)


class LcsDeserializer(Deserializer):
    """Deserializer for the canonical encoding."""

    def __init__(
        self, content: bytes, max_container_depth: int | None = MAX_CONTAINER_DEPTH
    ) -> None:
        super().__init__(content, max_container_depth)

    def deserialize_uleb128_as_u32(self) -> int:
        value = 0
        for shift in range(0, 32, 7):
            byte = self._read(1)[0]
            digit = byte & 0x7F
            value |= digit << shift
            if value > MAX_U32:
                raise IntegerOverflow("uleb128 value does not fit in a u32")
            if digit == byte:
                if shift > 0 and digit == 0:
                    raise NonMinimalEncoding("uleb128 value has a redundant trailing byte")
                return value
        raise IntegerOverflow("uleb128 value does not fit in a u32")

    def deserialize_len(self) -> int:
        """Read a sequence length, bounded only by ``MAX_SEQUENCE_LENGTH``.

        Elements of zero wire size, such as unit or empty tuples, consume
        no input, so a sequence of them may decode to a list much larger than
        the input. Callers decoding untrusted input of such shapes should
        bound it themselves.
        """
        value = self.deserialize_uleb128_as_u32()
        if value > MAX_SEQUENCE_LENGTH:
            raise IntegerOverflow(f"length {value} exceeds {MAX_SEQUENCE_LENGTH}")
        return value

    def deserialize_variant_index(self) -> int:
        return self.deserialize_uleb128_as_u32()

    def check_that_key_slices_are_increasing(
        self, key1: tuple[int, int], key2: tuple[int, int]
    ) -> None:
        first = self._input[key1[0] : key1[1]]
        second = self._input[key2[0] : key2[1]]
        if first == second:
            raise DuplicateKey(f"map key {first.hex()} appears twice")
        if first > second:
            raise MapNotSorted(f"map key {second.hex()} follows {first.hex()}")


def serialize(value: Any, fmt: Any = None) -> bytes:
    """Serialize a generated value, or any value given its format descriptor."""
    serializer = LcsSerializer()
    with container_stack(MAX_CONTAINER_DEPTH, SerializationError):
        if fmt is None:
            value.serialize(serializer)
        else:
            serialize_value(serializer, fmt, value)
    return serializer.get_bytes()


def deserialize(content: bytes, target: Any) -> Any:
    """Deserialize ``content`` into a generated class or a format descriptor.

    The whole input must be consumed.
    """
    deserializer = LcsDeserializer(content)
    with container_stack(MAX_CONTAINER_DEPTH, MaxDepthExceeded):
        if isinstance(target, type):
            value = target.deserialize(deserializer)
        else:
            value = deserialize_value(deserializer, target)
    deserializer.finish()
    return value
