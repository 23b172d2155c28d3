"""Serialization and deserialization for serdegen generated types."""

import struct as _struct
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import field, fields
from typing import Any, ClassVar, Self

from . import formats as st


class SerializationError(RuntimeError):
    """Raised when serialization or deserialization fails."""


class DeserializationError(SerializationError):
    """Raised when input bytes do not decode to a value.

    A failed decode never produces a partial value.
    """


class InvalidTag(DeserializationError):
    """A bool or option tag byte other than 0 or 1."""


class NonMinimalEncoding(DeserializationError):
    """A ULEB128 integer using more bytes than necessary."""


class IntegerOverflow(DeserializationError):
    """A decoded integer does not fit the width it is stored in."""


class UnknownVariant(DeserializationError):
    """An enum variant index that the enum does not define."""


class InvalidUtf8(DeserializationError):
    """String bytes that are not valid UTF-8."""


class MapNotSorted(DeserializationError):
    """Map keys are not in increasing order of their serialized bytes."""


class DuplicateKey(DeserializationError):
    """The same serialized map key appears twice."""


class TrailingBytes(DeserializationError):
    """Input remains after a complete top-level value."""


class MaxDepthExceeded(DeserializationError):
    """Containers are nested deeper than the decoder allows."""


class UnexpectedEndOfInput(DeserializationError):
    """The input ended in the middle of a value."""


# Wire width in bytes and signedness of each integer primitive
INTEGER_LAYOUT: dict[str, tuple[int, bool]] = {
    "u8": (1, False),
    "u16": (2, False),
    "u32": (4, False),
    "u64": (8, False),
    "u128": (16, False),
    "i8": (1, True),
    "i16": (2, True),
    "i32": (4, True),
    "i64": (8, True),
    "i128": (16, True),
}

# Upper bound on interpreter frames one nested container costs the codec
FRAMES_PER_CONTAINER = 16


@contextmanager
def container_stack(max_container_depth: int, error: type[SerializationError]) -> Iterator[None]:
    """Run a top-level encode or decode with stack room for ``max_container_depth`` levels.

    The interpreter recursion limit is raised for the duration of the call
    and restored afterwards. A ``RecursionError`` escaping the codec is
    reported as ``error``.
    """
    previous = sys.getrecursionlimit()
    sys.setrecursionlimit(previous + FRAMES_PER_CONTAINER * max_container_depth)
    try:
        yield
    except RecursionError as e:
        raise error(f"values nested deeper than the stack allows: {e}") from e
    finally:
        sys.setrecursionlimit(previous)


class Serializer:
    """Base class for binary serializers.

    Fixed-width values are shared by every encoding; subclasses decide how
    lengths and variant indices are written and whether map entries are
    sorted.
    """

    def __init__(self, max_container_depth: int | None = None) -> None:
        self._output = bytearray()
        self._max_container_depth = max_container_depth
        self._container_depth = 0

    def get_bytes(self) -> bytes:
        return bytes(self._output)

    def get_buffer_offset(self) -> int:
        return len(self._output)

    def increase_container_depth(self) -> None:
        if (
            self._max_container_depth is not None
            and self._container_depth >= self._max_container_depth
        ):
            raise SerializationError(
                f"exceeded maximum container depth {self._max_container_depth}"
            )
        self._container_depth += 1

    def decrease_container_depth(self) -> None:
        self._container_depth -= 1

    def _write_int(self, value: int, name: str) -> None:
        size, signed = INTEGER_LAYOUT[name]
        try:
            self._output.extend(int(value).to_bytes(size, "little", signed=signed))
        except OverflowError as e:
            raise SerializationError(f"{value} does not fit in {name}") from e

    def serialize_unit(self, value: Any = ()) -> None:
        pass

    def serialize_bool(self, value: bool) -> None:
        self._output.append(1 if value else 0)

    def serialize_u8(self, value: int) -> None:
        self._write_int(value, "u8")

    def serialize_u16(self, value: int) -> None:
        self._write_int(value, "u16")

    def serialize_u32(self, value: int) -> None:
        self._write_int(value, "u32")

    def serialize_u64(self, value: int) -> None:
        self._write_int(value, "u64")

    def serialize_u128(self, value: int) -> None:
        self._write_int(value, "u128")

    def serialize_i8(self, value: int) -> None:
        self._write_int(value, "i8")

    def serialize_i16(self, value: int) -> None:
        self._write_int(value, "i16")

    def serialize_i32(self, value: int) -> None:
        self._write_int(value, "i32")

    def serialize_i64(self, value: int) -> None:
        self._write_int(value, "i64")

    def serialize_i128(self, value: int) -> None:
        self._write_int(value, "i128")

    def serialize_f32(self, value: float) -> None:
        try:
            self._output.extend(_struct.pack("<f", value))
        except (_struct.error, OverflowError) as e:
            raise SerializationError(f"{value} does not fit in f32") from e

    def serialize_f64(self, value: float) -> None:
        self._output.extend(_struct.pack("<d", value))

    def serialize_bytes(self, value: bytes) -> None:
        self.serialize_len(len(value))
        self._output.extend(value)

    def serialize_str(self, value: str) -> None:
        try:
            encoded = value.encode("utf-8")
        except UnicodeEncodeError as e:
            raise SerializationError(f"string is not encodable as UTF-8: {e}") from e
        self.serialize_bytes(encoded)

    def serialize_option_tag(self, value: bool) -> None:
        self._output.append(1 if value else 0)

    def serialize_len(self, value: int) -> None:
        raise NotImplementedError("serialize_len() must be implemented by the encoding")

    def serialize_variant_index(self, value: int) -> None:
        raise NotImplementedError("serialize_variant_index() must be implemented by the encoding")

    def sort_map_entries(self, offsets: list[int]) -> None:
        """Reorder the map entries starting at ``offsets``. No-op by default."""


class Deserializer:
    """Base class for binary deserializers."""

    def __init__(self, content: bytes, max_container_depth: int | None = None) -> None:
        self._input = bytes(content)
        self._offset = 0
        self._max_container_depth = max_container_depth
        self._container_depth = 0

    def get_buffer_offset(self) -> int:
        return self._offset

    def remaining(self) -> int:
        return len(self._input) - self._offset

    def finish(self) -> None:
        """Check that the whole input was consumed."""
        if self._offset != len(self._input):
            raise TrailingBytes(f"{self.remaining()} bytes left after the value")

    def increase_container_depth(self) -> None:
        if (
            self._max_container_depth is not None
            and self._container_depth >= self._max_container_depth
        ):
            raise MaxDepthExceeded(
                f"exceeded maximum container depth {self._max_container_depth}"
            )
        self._container_depth += 1

    def decrease_container_depth(self) -> None:
        self._container_depth -= 1

    def _read(self, size: int) -> bytes:
        end = self._offset + size
        if end > len(self._input):
            raise UnexpectedEndOfInput(
                f"needed {size} bytes at offset {self._offset}, {self.remaining()} available"
            )
        data = self._input[self._offset : end]
        self._offset = end
        return data

    def _read_int(self, name: str) -> int:
        size, signed = INTEGER_LAYOUT[name]
        return int.from_bytes(self._read(size), "little", signed=signed)

    def _read_tag(self, what: str) -> bool:
        tag = self._read(1)[0]
        if tag == 0:
            return False
        if tag == 1:
            return True
        raise InvalidTag(f"invalid {what} tag {tag:#04x}")

    def deserialize_unit(self) -> tuple[()]:
        return ()

    def deserialize_bool(self) -> bool:
        return self._read_tag("bool")

    def deserialize_u8(self) -> int:
        return self._read_int("u8")

    def deserialize_u16(self) -> int:
        return self._read_int("u16")

    def deserialize_u32(self) -> int:
        return self._read_int("u32")

    def deserialize_u64(self) -> int:
        return self._read_int("u64")

    def deserialize_u128(self) -> int:
        return self._read_int("u128")

    def deserialize_i8(self) -> int:
        return self._read_int("i8")

    def deserialize_i16(self) -> int:
        return self._read_int("i16")

    def deserialize_i32(self) -> int:
        return self._read_int("i32")

    def deserialize_i64(self) -> int:
        return self._read_int("i64")

    def deserialize_i128(self) -> int:
        return self._read_int("i128")

    def deserialize_f32(self) -> float:
        return _struct.unpack("<f", self._read(4))[0]

    def deserialize_f64(self) -> float:
        return _struct.unpack("<d", self._read(8))[0]

    def deserialize_bytes(self) -> bytes:
        return self._read(self.deserialize_len())

    def deserialize_str(self) -> str:
        raw = self.deserialize_bytes()
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise InvalidUtf8(str(e)) from e

    def deserialize_option_tag(self) -> bool:
        return self._read_tag("option")

    def deserialize_len(self) -> int:
        raise NotImplementedError("deserialize_len() must be implemented by the encoding")

    def deserialize_variant_index(self) -> int:
        raise NotImplementedError("deserialize_variant_index() must be implemented by the encoding")

    def check_that_key_slices_are_increasing(
        self, key1: tuple[int, int], key2: tuple[int, int]
    ) -> None:
        """Check map key ordering given ``(start, end)`` offsets. No-op by default."""


def serialize_value(serializer: Serializer, fmt: Any, value: Any) -> None:
    """Serialize ``value`` according to a runtime format descriptor."""
    if isinstance(fmt, st.Primitive):
        getattr(serializer, f"serialize_{fmt.name}")(value)
    elif isinstance(fmt, st.TypeName):
        value.serialize(serializer)
    elif isinstance(fmt, st.Option):
        serializer.serialize_option_tag(value is not None)
        if value is not None:
            serialize_value(serializer, fmt.format, value)
    elif isinstance(fmt, st.Seq):
        serializer.serialize_len(len(value))
        for item in value:
            serialize_value(serializer, fmt.format, item)
    elif isinstance(fmt, st.Map):
        serializer.serialize_len(len(value))
        offsets = []
        for key, item in value.items():
            offsets.append(serializer.get_buffer_offset())
            serialize_value(serializer, fmt.key, key)
            serialize_value(serializer, fmt.value, item)
        serializer.sort_map_entries(offsets)
    elif isinstance(fmt, st.Tuple):
        if len(value) != len(fmt.formats):
            raise SerializationError(f"expected a tuple of {len(fmt.formats)} values")
        for item_fmt, item in zip(fmt.formats, value):
            serialize_value(serializer, item_fmt, item)
    elif isinstance(fmt, st.TupleArray):
        if len(value) != fmt.size:
            raise SerializationError(f"expected an array of {fmt.size} values, got {len(value)}")
        for item in value:
            serialize_value(serializer, fmt.content, item)
    else:
        raise SerializationError(f"unknown format {fmt!r}")


def deserialize_value(deserializer: Deserializer, fmt: Any) -> Any:
    """Deserialize a value according to a runtime format descriptor."""
    if isinstance(fmt, st.Primitive):
        return getattr(deserializer, f"deserialize_{fmt.name}")()
    if isinstance(fmt, st.TypeName):
        return fmt.resolve().deserialize(deserializer)
    if isinstance(fmt, st.Option):
        if deserializer.deserialize_option_tag():
            return deserialize_value(deserializer, fmt.format)
        return None
    if isinstance(fmt, st.Seq):
        length = deserializer.deserialize_len()
        return [deserialize_value(deserializer, fmt.format) for _ in range(length)]
    if isinstance(fmt, st.Map):
        length = deserializer.deserialize_len()
        result = {}
        previous: tuple[int, int] | None = None
        for _ in range(length):
            start = deserializer.get_buffer_offset()
            key = deserialize_value(deserializer, fmt.key)
            current = (start, deserializer.get_buffer_offset())
            if previous is not None:
                deserializer.check_that_key_slices_are_increasing(previous, current)
            previous = current
            result[key] = deserialize_value(deserializer, fmt.value)
        return result
    if isinstance(fmt, st.Tuple):
        return tuple([deserialize_value(deserializer, item_fmt) for item_fmt in fmt.formats])
    if isinstance(fmt, st.TupleArray):
        return [deserialize_value(deserializer, fmt.content) for _ in range(fmt.size)]
    raise SerializationError(f"unknown format {fmt!r}")


# Sentinel for missing default
_MISSING: Any = object()


def serde_field(
    format: Any,
    *,
    default: Any = _MISSING,
    default_factory: Any = _MISSING,
) -> Any:
    """Define a dataclass field with its wire format attached.

    Args:
        format: A descriptor from ``formats`` (e.g. ``st.U32``, ``st.Seq(st.STR)``).
        default: Default value for the field.
        default_factory: Factory function for default value.

    Returns:
        A dataclass field with serde metadata attached.
    """
    metadata = {"serde": format}

    if default is not _MISSING:
        return field(default=default, metadata=metadata)
    if default_factory is not _MISSING:
        return field(default_factory=default_factory, metadata=metadata)
    return field(metadata=metadata)


class Struct:
    """Base class for generated struct types.

    Subclasses are frozen dataclasses. In annotation mode every field is
    declared with ``serde_field()`` and the methods below walk those
    descriptors; in explicit mode generated code overrides them.

    Example:
        @dataclass(frozen=True)
        class Point(Struct):
            x: int = serde_field(st.U32)
            y: int = serde_field(st.U32)
    """

    def serialize(self, serializer: Serializer) -> None:
        serializer.increase_container_depth()
        for f in fields(self):  # type: ignore[arg-type]
            serialize_value(serializer, f.metadata["serde"], getattr(self, f.name))
        serializer.decrease_container_depth()

    @classmethod
    def deserialize(cls, deserializer: Deserializer) -> Self:
        deserializer.increase_container_depth()
        values = {
            f.name: deserialize_value(deserializer, f.metadata["serde"])
            for f in fields(cls)  # type: ignore[arg-type]
        }
        deserializer.decrease_container_depth()
        return cls(**values)


class Enum:
    """Base class for generated enum types.

    A generated enum is a subclass of ``Enum`` with one dataclass subclass
    per variant. Variant classes set ``INDEX`` and register themselves with
    their enum, which dispatches on the decoded index.

    Example:
        class Shape(Enum):
            pass

        @dataclass(frozen=True)
        class Shape__Circle(Shape):
            INDEX = 0
            value: int = serde_field(st.U32)
    """

    INDEX: ClassVar[int]
    _variants: ClassVar[dict[int, type["Enum"]]]

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        if "INDEX" not in cls.__dict__:
            cls._variants = {}
            return
        for base in cls.__mro__[1:]:
            if "_variants" in base.__dict__:
                base._variants[cls.INDEX] = cls
                break

    def serialize(self, serializer: Serializer) -> None:
        serializer.increase_container_depth()
        serializer.serialize_variant_index(self.INDEX)
        self.serialize_payload(serializer)
        serializer.decrease_container_depth()

    def serialize_payload(self, serializer: Serializer) -> None:
        for f in fields(self):  # type: ignore[arg-type]
            serialize_value(serializer, f.metadata["serde"], getattr(self, f.name))

    @classmethod
    def deserialize(cls, deserializer: Deserializer) -> "Enum":
        deserializer.increase_container_depth()
        index = deserializer.deserialize_variant_index()
        variant = cls._variants.get(index)
        if variant is None:
            raise UnknownVariant(f"unknown variant index {index} for {cls.__name__}")
        value = variant.deserialize_payload(deserializer)
        deserializer.decrease_container_depth()
        return value

    @classmethod
    def deserialize_payload(cls, deserializer: Deserializer) -> Self:
        values = {
            f.name: deserialize_value(deserializer, f.metadata["serde"])
            for f in fields(cls)  # type: ignore[arg-type]
        }
        return cls(**values)
