"""Schema definition parser using Lark."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any

from lark import Lark
from lark.exceptions import UnexpectedInput, VisitError
from lark.visitors import Transformer

from .errors import ValidationError
from .registry import Registry
from .types import (
    ContainerFormat,
    Enum,
    Format,
    Map,
    Named,
    NewTypeStruct,
    NewTypeVariant,
    Option,
    Primitive,
    PrimitiveKind,
    Seq,
    Struct,
    StructVariant,
    Tuple,
    TupleArray,
    TupleStruct,
    TupleVariant,
    TypeName,
    UnitStruct,
    UnitVariant,
    Variant,
    VariantPayload,
)

_g_parser: Lark | None = None

# Spelling of primitive kinds in the schema language
PRIMITIVE_NAMES: dict[str, PrimitiveKind] = {
    "unit": PrimitiveKind.UNIT,
    "bool": PrimitiveKind.BOOL,
    "i8": PrimitiveKind.I8,
    "i16": PrimitiveKind.I16,
    "i32": PrimitiveKind.I32,
    "i64": PrimitiveKind.I64,
    "i128": PrimitiveKind.I128,
    "u8": PrimitiveKind.U8,
    "u16": PrimitiveKind.U16,
    "u32": PrimitiveKind.U32,
    "u64": PrimitiveKind.U64,
    "u128": PrimitiveKind.U128,
    "f32": PrimitiveKind.F32,
    "f64": PrimitiveKind.F64,
    "string": PrimitiveKind.STR,
    "str": PrimitiveKind.STR,
    "bytes": PrimitiveKind.BYTES,
}


@dataclass
class _Index:
    value: int


@dataclass
class _VariantDecl:
    index: int | None
    name: str
    payload: VariantPayload


def _split_index(args: list[Any]) -> tuple[int | None, list[Any]]:
    if args and isinstance(args[0], _Index):
        return args[0].value, args[1:]
    return None, args


class TreeTransformer(Transformer):
    """Transform parse tree into registry entries."""

    def named(self, args: list[Any]) -> Format:
        name = str(args[0])
        if name in PRIMITIVE_NAMES:
            return Primitive(PRIMITIVE_NAMES[name])
        return TypeName(name)

    def option(self, args: list[Any]) -> Option:
        return Option(args[0])

    def seq(self, args: list[Any]) -> Seq:
        return Seq(args[0])

    def map(self, args: list[Any]) -> Map:
        return Map(args[0], args[1])

    def tuple(self, args: list[Any]) -> Tuple:
        return Tuple(tuple(args[0]))

    def array(self, args: list[Any]) -> TupleArray:
        return TupleArray(args[0], int(args[1]))

    def format_list(self, args: list[Any]) -> list[Format]:
        return list(args)

    def field(self, args: list[Any]) -> Named:
        return Named(str(args[0]), args[1])

    def unit_struct(self, args: list[Any]) -> tuple[str, ContainerFormat]:
        return str(args[0]), UnitStruct()

    def tuple_struct(self, args: list[Any]) -> tuple[str, ContainerFormat]:
        formats = args[1]
        if len(formats) == 1:
            return str(args[0]), NewTypeStruct(formats[0])
        return str(args[0]), TupleStruct(tuple(formats))

    def named_struct(self, args: list[Any]) -> tuple[str, ContainerFormat]:
        return str(args[0]), Struct(tuple(args[1:]))

    def variant_index(self, args: list[Any]) -> _Index:
        return _Index(int(args[0]))

    def unit_variant(self, args: list[Any]) -> _VariantDecl:
        index, rest = _split_index(args)
        return _VariantDecl(index, str(rest[0]), UnitVariant())

    def tuple_variant(self, args: list[Any]) -> _VariantDecl:
        index, rest = _split_index(args)
        formats = rest[1]
        payload: VariantPayload
        if len(formats) == 1:
            payload = NewTypeVariant(formats[0])
        else:
            payload = TupleVariant(tuple(formats))
        return _VariantDecl(index, str(rest[0]), payload)

    def struct_variant(self, args: list[Any]) -> _VariantDecl:
        index, rest = _split_index(args)
        return _VariantDecl(index, str(rest[0]), StructVariant(tuple(rest[1:])))

    def enum(self, args: list[Any]) -> tuple[str, ContainerFormat]:
        variants = []
        next_index = 0
        for decl in args[1:]:
            index = next_index if decl.index is None else decl.index
            variants.append(Variant(index, decl.name, decl.payload))
            next_index = index + 1
        return str(args[0]), Enum(tuple(variants))

    def start(self, args: list[Any]) -> list[tuple[str, ContainerFormat]]:
        return list(args)


def _get_parser() -> Lark:
    global _g_parser

    if not _g_parser:
        with open(f"{os.path.dirname(__file__)}/schema.lark", encoding="utf-8") as f:
            grammar = f.read()
        _g_parser = Lark(grammar)
    return _g_parser


def parse(text: str) -> Registry:
    """Parse a schema definition into a validated registry."""
    try:
        tree = _get_parser().parse(text)
    except UnexpectedInput as e:
        raise ValidationError(
            f"syntax error at line {e.line}, column {e.column}:\n{e.get_context(text)}"
        ) from e

    try:
        entries = TreeTransformer().transform(tree)
    except VisitError as e:
        if isinstance(e.orig_exc, ValidationError):
            raise e.orig_exc from None
        raise

    registry = Registry()
    for name, container in entries:
        if name in PRIMITIVE_NAMES:
            raise ValidationError(f"{name} is a primitive type and cannot be redefined")
        registry.register(name, container)
    registry.validate()
    return registry


def load(path: str) -> Registry:
    """Load a registry from a schema file or a JSON interchange document."""
    if path.endswith(".json"):
        return Registry.load(path)
    with open(path, encoding="utf-8") as f:
        return parse(f.read())
