"""Runtime format descriptors for serdegen serialization.

These dataclasses describe the wire shape of struct fields at runtime. Code
generated in annotation mode attaches them to dataclass fields with
``serde_field()``, and the reflective codec in ``serialization`` walks them.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True, slots=True)
class Primitive:
    """A primitive; ``name`` selects the ``serialize_<name>`` method."""

    name: str


@dataclass(frozen=True, slots=True)
class TypeName:
    """A generated container class, resolved lazily to allow cycles."""

    name: str
    resolve: Callable[[], Any] = field(compare=False, repr=False)


@dataclass(frozen=True, slots=True)
class Option:
    format: Any


@dataclass(frozen=True, slots=True)
class Seq:
    format: Any


@dataclass(frozen=True, slots=True)
class Map:
    key: Any
    value: Any


@dataclass(frozen=True, slots=True)
class Tuple:
    formats: tuple[Any, ...]


@dataclass(frozen=True, slots=True)
class TupleArray:
    content: Any
    size: int


UNIT = Primitive("unit")
BOOL = Primitive("bool")
I8 = Primitive("i8")
I16 = Primitive("i16")
I32 = Primitive("i32")
I64 = Primitive("i64")
I128 = Primitive("i128")
U8 = Primitive("u8")
U16 = Primitive("u16")
U32 = Primitive("u32")
U64 = Primitive("u64")
U128 = Primitive("u128")
F32 = Primitive("f32")
F64 = Primitive("f64")
STR = Primitive("str")
BYTES = Primitive("bytes")
