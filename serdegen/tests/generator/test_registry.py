"""Tests for the registry and its JSON interchange form"""

import json
import os

from pytest import raises

from serdegen.generator.errors import DuplicateName, UnknownReference, ValidationError
from serdegen.generator.registry import Registry
from serdegen.generator.types import (
    U8,
    U32,
    Named,
    Struct,
    TupleArray,
    TupleStruct,
    TypeName,
    UnitStruct,
)

FILE_DIR = os.path.dirname(os.path.realpath(__file__))


def describe_registry():
    def keeps_insertion_order(expect):
        registry = Registry()
        registry.register("B", UnitStruct())
        registry.register("A", UnitStruct())
        expect(registry.names()) == ["B", "A"]
        expect(list(registry)) == ["B", "A"]
        expect(len(registry)) == 2
        expect("A" in registry) == True

    def rejects_duplicate_names(expect):
        registry = Registry()
        registry.register("A", UnitStruct())
        with raises(DuplicateName):
            registry.register("A", UnitStruct())

    def validate_finds_dangling_references(expect):
        registry = Registry()
        registry.register("A", Struct((Named("b", TypeName("B")),)))
        with raises(UnknownReference) as e:
            registry.validate()
        expect(e.value.name) == "B"
        expect(e.value.container) == "A"
        expect(e.value.path) == "b"


def describe_interchange():
    def loads_a_registry_document(expect):
        registry = Registry.load(f"{FILE_DIR}/shapes.json")
        expect(registry.names()) == ["Point", "Shape", "Line"]
        expect(registry["Point"]) == Struct((Named("x", U32), Named("y", U32)))
        expect(registry["Line"]) == TupleStruct((TypeName("Point"), TypeName("Point")))

    def writes_the_tagged_form(expect):
        registry = Registry.load(f"{FILE_DIR}/shapes.json")
        with open(f"{FILE_DIR}/shapes.json") as f:
            expect(registry.to_dict()) == json.load(f)

    def dumps_and_loads_back(expect):
        registry = Registry()
        registry.register("Unit", UnitStruct())
        registry.register("Grid", Struct((Named("cells", TupleArray(U8, 9)),)))
        expect(Registry.loads(registry.dumps())) == registry
        expect(registry.to_dict()["Grid"]) == {
            "STRUCT": [{"cells": {"TUPLEARRAY": {"CONTENT": "U8", "SIZE": 9}}}]
        }

    def unit_payloads_are_strings(expect):
        registry = Registry.from_dict(
            {"Unit": "UNITSTRUCT", "E": {"ENUM": {"0": {"A": "UNIT"}}}}
        )
        expect(registry.to_dict()) == {"Unit": "UNITSTRUCT", "E": {"ENUM": {"0": {"A": "UNIT"}}}}

    def rejects_unknown_references(expect):
        with raises(UnknownReference):
            Registry.from_dict({"A": {"NEWTYPESTRUCT": {"TYPENAME": "Missing"}}})

    def rejects_unknown_container_tags(expect):
        with raises(ValidationError) as e:
            Registry.from_dict({"A": {"CLASS": []}})
        expect("unknown container tag" in str(e.value)) == True

    def rejects_unknown_primitives(expect):
        with raises(ValidationError) as e:
            Registry.from_dict({"A": {"NEWTYPESTRUCT": "U7"}})
        expect("A.NEWTYPESTRUCT" in str(e.value)) == True

    def rejects_bad_variant_indices(expect):
        with raises(ValidationError):
            Registry.from_dict({"E": {"ENUM": {"first": {"A": "UNIT"}}}})

    def rejects_malformed_maps(expect):
        with raises(ValidationError):
            Registry.from_dict({"A": {"NEWTYPESTRUCT": {"MAP": {"KEY": "U8"}}}})

    def rejects_non_objects(expect):
        with raises(ValidationError):
            Registry.from_dict(["Point"])
        with raises(ValidationError):
            Registry.loads("{not json")
