"""Type definitions for the format IR consumed by code generation.

A ``Format`` describes the shape of a value; a ``ContainerFormat`` describes a
named struct or enum held in a ``Registry``. Every node is an immutable
dataclass so a registry can be shared between backends without copying.
"""

from collections.abc import Iterator
from dataclasses import dataclass
from enum import StrEnum

from .errors import DuplicateName, ValidationError

MAX_VARIANT_INDEX = 2**32 - 1


class PrimitiveKind(StrEnum):
    """Primitive kinds, named as in the JSON interchange document."""

    UNIT = "UNIT"
    BOOL = "BOOL"
    I8 = "I8"
    I16 = "I16"
    I32 = "I32"
    I64 = "I64"
    I128 = "I128"
    U8 = "U8"
    U16 = "U16"
    U32 = "U32"
    U64 = "U64"
    U128 = "U128"
    F32 = "F32"
    F64 = "F64"
    STR = "STR"
    BYTES = "BYTES"


# Width in bytes of the fixed-size primitives
PRIMITIVE_SIZES: dict[PrimitiveKind, int] = {
    PrimitiveKind.UNIT: 0,
    PrimitiveKind.BOOL: 1,
    PrimitiveKind.I8: 1,
    PrimitiveKind.I16: 2,
    PrimitiveKind.I32: 4,
    PrimitiveKind.I64: 8,
    PrimitiveKind.I128: 16,
    PrimitiveKind.U8: 1,
    PrimitiveKind.U16: 2,
    PrimitiveKind.U32: 4,
    PrimitiveKind.U64: 8,
    PrimitiveKind.U128: 16,
    PrimitiveKind.F32: 4,
    PrimitiveKind.F64: 8,
}

FLOAT_KINDS = frozenset([PrimitiveKind.F32, PrimitiveKind.F64])


@dataclass(frozen=True)
class Primitive:
    """A primitive value such as ``u32`` or ``string``."""

    kind: PrimitiveKind


@dataclass(frozen=True)
class TypeName:
    """A reference to a container defined in the same registry."""

    name: str


@dataclass(frozen=True)
class Option:
    """An optional value."""

    format: "Format"


@dataclass(frozen=True)
class Seq:
    """A variable-length homogeneous sequence."""

    format: "Format"


@dataclass(frozen=True)
class Map:
    """A map; entries are ordered by their serialized key on the wire."""

    key: "Format"
    value: "Format"


@dataclass(frozen=True)
class Tuple:
    """A heterogeneous tuple of fixed arity."""

    formats: tuple["Format", ...]


@dataclass(frozen=True)
class TupleArray:
    """A homogeneous array of fixed arity ``size``."""

    content: "Format"
    size: int

    def __post_init__(self) -> None:
        if self.size < 0:
            raise ValidationError(f"array size must be non-negative, got {self.size}")


Format = Primitive | TypeName | Option | Seq | Map | Tuple | TupleArray

UNIT = Primitive(PrimitiveKind.UNIT)
BOOL = Primitive(PrimitiveKind.BOOL)
I8 = Primitive(PrimitiveKind.I8)
I16 = Primitive(PrimitiveKind.I16)
I32 = Primitive(PrimitiveKind.I32)
I64 = Primitive(PrimitiveKind.I64)
I128 = Primitive(PrimitiveKind.I128)
U8 = Primitive(PrimitiveKind.U8)
U16 = Primitive(PrimitiveKind.U16)
U32 = Primitive(PrimitiveKind.U32)
U64 = Primitive(PrimitiveKind.U64)
U128 = Primitive(PrimitiveKind.U128)
F32 = Primitive(PrimitiveKind.F32)
F64 = Primitive(PrimitiveKind.F64)
STR = Primitive(PrimitiveKind.STR)
BYTES = Primitive(PrimitiveKind.BYTES)


@dataclass(frozen=True)
class Named:
    """A named field of a struct or struct variant."""

    name: str
    format: Format


def _check_unique_fields(fields: tuple[Named, ...], scope: str) -> None:
    seen: set[str] = set()
    for named in fields:
        if named.name in seen:
            raise DuplicateName(named.name, scope)
        seen.add(named.name)


@dataclass(frozen=True)
class UnitStruct:
    """A struct without payload."""


@dataclass(frozen=True)
class NewTypeStruct:
    """A struct wrapping a single value."""

    format: Format


@dataclass(frozen=True)
class TupleStruct:
    """A struct with positional fields."""

    formats: tuple[Format, ...]


@dataclass(frozen=True)
class Struct:
    """A struct with named fields. Field order is the wire order."""

    fields: tuple[Named, ...]

    def __post_init__(self) -> None:
        _check_unique_fields(self.fields, "struct")


@dataclass(frozen=True)
class UnitVariant:
    """Variant payload without data."""


@dataclass(frozen=True)
class NewTypeVariant:
    """Variant payload wrapping a single value."""

    format: Format


@dataclass(frozen=True)
class TupleVariant:
    """Variant payload with positional values."""

    formats: tuple[Format, ...]


@dataclass(frozen=True)
class StructVariant:
    """Variant payload with named fields."""

    fields: tuple[Named, ...]

    def __post_init__(self) -> None:
        _check_unique_fields(self.fields, "struct variant")


VariantPayload = UnitVariant | NewTypeVariant | TupleVariant | StructVariant


@dataclass(frozen=True)
class Variant:
    """An enum variant. ``index`` is the tag written on the wire."""

    index: int
    name: str
    payload: VariantPayload


@dataclass(frozen=True)
class Enum:
    """A tagged union. Variants are kept in declaration order."""

    variants: tuple[Variant, ...]

    def __post_init__(self) -> None:
        indices: set[int] = set()
        names: set[str] = set()
        for variant in self.variants:
            if not 0 <= variant.index <= MAX_VARIANT_INDEX:
                raise ValidationError(
                    f"variant {variant.name} has index {variant.index} outside the u32 range"
                )
            if variant.index in indices:
                raise DuplicateName(str(variant.index), "enum variant indices")
            if variant.name in names:
                raise DuplicateName(variant.name, "enum")
            indices.add(variant.index)
            names.add(variant.name)

    def is_contiguous(self) -> bool:
        """Return True if the indices are exactly 0..n-1 in declaration order."""
        return [v.index for v in self.variants] == list(range(len(self.variants)))


ContainerFormat = UnitStruct | NewTypeStruct | TupleStruct | Struct | Enum


def is_primitive(fmt: Format) -> bool:
    """Check if a format is a primitive."""
    return isinstance(fmt, Primitive)


def children(fmt: Format) -> tuple[Format, ...]:
    """Return the formats directly nested in ``fmt``."""
    if isinstance(fmt, Option | Seq):
        return (fmt.format,)
    if isinstance(fmt, Map):
        return (fmt.key, fmt.value)
    if isinstance(fmt, Tuple):
        return fmt.formats
    if isinstance(fmt, TupleArray):
        return (fmt.content,)
    return ()


def references(fmt: Format, inline: bool = True) -> Iterator[tuple[str, bool]]:
    """Yield ``(name, inline)`` for every TypeName reachable in ``fmt``.

    A reference stops being inline once it is nested under a Seq or a Map.
    """
    if isinstance(fmt, TypeName):
        yield fmt.name, inline
        return
    nested_inline = inline and not isinstance(fmt, Seq | Map)
    for child in children(fmt):
        yield from references(child, nested_inline)


def payload_formats(payload: VariantPayload) -> Iterator[tuple[str, Format]]:
    """Yield ``(path, format)`` for each value in a variant payload."""
    if isinstance(payload, NewTypeVariant):
        yield "value", payload.format
    elif isinstance(payload, TupleVariant):
        for i, fmt in enumerate(payload.formats):
            yield str(i), fmt
    elif isinstance(payload, StructVariant):
        for named in payload.fields:
            yield named.name, named.format


def container_formats(container: ContainerFormat) -> Iterator[tuple[str, Format]]:
    """Yield ``(path, format)`` for each top-level format of a container."""
    if isinstance(container, NewTypeStruct):
        yield "value", container.format
    elif isinstance(container, TupleStruct):
        for i, fmt in enumerate(container.formats):
            yield str(i), fmt
    elif isinstance(container, Struct):
        for named in container.fields:
            yield named.name, named.format
    elif isinstance(container, Enum):
        for variant in container.variants:
            for path, fmt in payload_formats(variant.payload):
                yield f"{variant.name}.{path}", fmt
