"""Tests for the backend dispatch table"""

import os

from pytest import raises

from serdegen.generator import BACKENDS, Registry, Target, generate, load, runtime
from serdegen.generator.errors import UnknownReference
from serdegen.generator.python import RUNTIME_FILES
from serdegen.generator.types import Named, Struct, TypeName

FILE_DIR = os.path.dirname(os.path.realpath(__file__))


def describe_backends():
    def cover_every_target(expect):
        expect(set(BACKENDS)) == set(Target)
        expect(BACKENDS[Target.PYTHON].extension) == ".py"
        expect(BACKENDS[Target.CPP].extension) == ".hpp"
        expect(BACKENDS[Target.RUST].extension) == ".rs"

    def render_the_same_registry(expect):
        registry = load(f"{FILE_DIR}/shapes.json")
        expect("class Line(" in generate(registry, Target.PYTHON)) == True
        expect("struct Line {" in generate(registry, Target.CPP)) == True
        expect("pub struct Line(pub Point, pub Point);" in generate(registry, Target.RUST)) == True

    def accept_target_names(expect):
        registry = load(f"{FILE_DIR}/shapes.json")
        expect(generate(registry, "rust")) == generate(registry, Target.RUST)

    def reject_unknown_targets(expect):
        with raises(ValueError):
            generate(Registry(), "cobol")

    def validate_before_rendering(expect):
        registry = Registry()
        registry.register("A", Struct((Named("b", TypeName("B")),)))
        for target in Target:
            with raises(UnknownReference):
                generate(registry, target)

    def render_an_empty_registry(expect):
        for target in Target:
            expect("Generated by serdegen for module schema" in generate(Registry(), target)) == True

    def ship_runtimes(expect):
        expect(sorted(runtime(Target.PYTHON))) == sorted(RUNTIME_FILES)
        expect("class LcsSerializer" in runtime("python")["lcs.py"]) == True
        expect(list(runtime(Target.CPP))) == ["serde.hpp"]
        expect(list(runtime(Target.RUST))) == ["serde_binary.rs"]
