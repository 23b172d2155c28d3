"""Tests for identifier sanitization"""

from pytest import raises

from serdegen.generator import CodeGeneratorConfig, Registry, Target, generate
from serdegen.generator.errors import NameCollision
from serdegen.generator.naming import cpp_context, python_context, rust_context


def describe_sanitize():
    def keywords_get_a_trailing_underscore(expect):
        expect(python_context().sanitize("class")) == "class_"
        expect(python_context().sanitize("match")) == "match_"
        expect(cpp_context().sanitize("namespace")) == "namespace_"
        expect(rust_context().sanitize("type")) == "type_"
        expect(rust_context().sanitize("Self")) == "Self_"

    def invalid_characters_become_underscores(expect):
        expect(python_context().sanitize("my-name")) == "my_name"
        expect(python_context().sanitize("a.b")) == "a_b"

    def leading_digits_are_prefixed(expect):
        expect(python_context().sanitize("1st")) == "_1st"
        expect(python_context().sanitize("")) == "_"
        expect(python_context().sanitize("_")) == "_"
        expect(python_context().sanitize("match")) == "match_"
        expect(rust_context().sanitize("")) == "__"

    def plain_names_are_untouched(expect):
        expect(rust_context().sanitize("Point")) == "Point"


def describe_scopes():
    def reserved_names_are_escaped(expect):
        expect(python_context().field("P", "serialize")) == "serialize_"
        expect(python_context().field("P", "INDEX")) == "INDEX_"
        expect(cpp_context().field("P", "serializer")) == "serializer_"
        expect(cpp_context().variant("E", "value")) == "value_"
        expect(rust_context().container("Box")) == "Box_"

    def reserved_names_only_apply_to_their_scope(expect):
        expect(python_context().container("serialize")) == "serialize"
        expect(cpp_context().field("P", "value")) == "value"

    def same_name_maps_to_same_identifier(expect):
        naming = python_context()
        expect(naming.container("A")) == "A"
        expect(naming.container("A")) == "A"

    def scopes_are_independent(expect):
        naming = python_context()
        expect(naming.field("A", "x")) == "x"
        expect(naming.field("B", "x")) == "x"
        expect(naming.variant_field("E", "V", "x")) == "x"

    def collisions_raise(expect):
        naming = python_context()
        naming.container("a-b")
        with raises(NameCollision) as e:
            naming.container("a_b")
        expect(e.value.sanitized) == "a_b"
        expect(e.value.first) == "a-b"
        expect(e.value.second) == "a_b"

    def keyword_escape_can_collide(expect):
        naming = rust_context()
        naming.field("S", "type")
        with raises(NameCollision):
            naming.field("S", "type_")


def describe_generation():
    def colliding_fields_fail_for_every_target(expect):
        registry = Registry.from_dict({"S": {"STRUCT": [{"a-b": "U8"}, {"a_b": "U8"}]}})
        for target in Target:
            with raises(NameCollision):
                generate(registry, target)

    def each_run_starts_fresh(expect):
        registry = Registry.from_dict({"S": {"STRUCT": [{"a-b": "U8"}]}})
        config = CodeGeneratorConfig(runtime_import="serdegen.runtime")
        expect(generate(registry, Target.PYTHON, config)) == generate(
            registry, Target.PYTHON, config
        )
