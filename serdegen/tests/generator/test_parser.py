"""Tests for the schema parser"""

import os
import subprocess
import sys

from pytest import raises

from serdegen.generator import load, parse
from serdegen.generator.errors import DuplicateName, UnknownReference, ValidationError
from serdegen.generator.types import (
    BOOL,
    BYTES,
    F64,
    I32,
    STR,
    U8,
    U16,
    U32,
    Enum,
    Map,
    Named,
    NewTypeStruct,
    NewTypeVariant,
    Option,
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
)

FILE_DIR = os.path.dirname(os.path.realpath(__file__))


def describe_parser():
    def parses_the_shapes_schema(expect):
        registry = load(f"{FILE_DIR}/shapes.schema")
        expect(registry.names()) == [
            "Point",
            "Shape",
            "Blob",
            "Tree",
            "Node",
            "Marker",
            "Meters",
            "Pair",
            "Message",
        ]
        expect(registry["Point"]) == Struct((Named("x", U32), Named("y", U32)))

    def parses_every_format(expect):
        registry = load(f"{FILE_DIR}/shapes.schema")
        expect(registry["Blob"]) == Struct(
            (
                Named("name", STR),
                Named("data", BYTES),
                Named("tag", Option(U8)),
                Named("table", Map(U8, U8)),
                Named("pair", Tuple((U8, BOOL))),
                Named("arr", TupleArray(U16, 2)),
                Named("points", Seq(TypeName("Point"))),
            )
        )

    def struct_kinds(expect):
        registry = load(f"{FILE_DIR}/shapes.schema")
        expect(registry["Marker"]) == UnitStruct()
        expect(registry["Meters"]) == NewTypeStruct(F64)
        expect(registry["Pair"]) == TupleStruct((U8, STR))

    def enum_variants_keep_explicit_indices(expect):
        registry = load(f"{FILE_DIR}/shapes.schema")
        expect(registry["Message"]) == Enum(
            (
                Variant(0, "Empty", UnitVariant()),
                Variant(1, "Text", NewTypeVariant(STR)),
                Variant(2, "Move", StructVariant((Named("x", I32), Named("y", I32)))),
                Variant(5, "Pair", TupleVariant((U8, U8))),
            )
        )

    def implicit_indices_follow_the_previous_one(expect):
        registry = parse("enum E { A, 3: B, C }")
        expect([v.index for v in registry["E"].variants]) == [0, 3, 4]

    def string_alias(expect):
        registry = parse("struct S { a: str, b: string }")
        expect(registry["S"]) == Struct((Named("a", STR), Named("b", STR)))

    def comments_are_ignored(expect):
        registry = parse("# leading\nstruct S(u8) # trailing\n")
        expect(registry["S"]) == NewTypeStruct(U8)

    def loads_json_registries(expect):
        registry = load(f"{FILE_DIR}/shapes.json")
        expect(registry.names()) == ["Point", "Shape", "Line"]


def describe_parser_errors():
    def syntax_errors(expect):
        with raises(ValidationError) as e:
            parse("struct { x: u8 }")
        expect("syntax error" in str(e.value)) == True

    def undefined_references(expect):
        with raises(UnknownReference) as e:
            parse("struct S { other: option<Missing> }")
        expect(e.value.name) == "Missing"

    def duplicate_containers(expect):
        with raises(DuplicateName):
            parse("struct S(u8)\nstruct S(u16)")

    def duplicate_fields(expect):
        with raises(DuplicateName):
            parse("struct S { a: u8, a: u16 }")

    def duplicate_variant_indices(expect):
        with raises(DuplicateName):
            parse("enum E { 1: A, 1: B }")

    def primitives_cannot_be_redefined(expect):
        with raises(ValidationError):
            parse("struct u8 { x: u16 }")


def describe_module():
    def imports_in_a_fresh_interpreter(expect):
        result = subprocess.run(
            [sys.executable, "-c", "import serdegen.generator, serdegen.generator.cli"],
            capture_output=True,
            text=True,
            cwd=os.path.join(FILE_DIR, "..", "..", ".."),
        )
        expect(result.returncode) == 0
