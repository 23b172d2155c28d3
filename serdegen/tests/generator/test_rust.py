"""Tests for generated Rust code"""

import os

from pytest import raises

from serdegen.generator import CodeGeneratorConfig, Encoding, Target, generate, parse, runtime
from serdegen.generator.errors import UnsupportedShapeForTarget

FILE_DIR = os.path.dirname(os.path.realpath(__file__))

with open(f"{FILE_DIR}/shapes.schema") as f:
    SHAPES = f.read()

DERIVABLE = """
struct Point { x: u32, y: u32 }
enum Shape { Circle(u32), Square(u32) }
struct Blob { data: bytes, type: u8 }
"""

FULL_DERIVES = "#[derive(Clone, Debug, PartialEq, Eq, PartialOrd, Ord, Hash)]"
FLOAT_DERIVES = "#[derive(Clone, Debug, PartialEq, PartialOrd)]"


def gen_module(text, **options):
    return generate(parse(text), Target.RUST, CodeGeneratorConfig(**options))


def describe_explicit_mode():
    def declares_items(expect):
        module = gen_module(SHAPES)
        expect("use super::serde_binary::{self, Deserialize, Deserializer" in module) == True
        point = f"{FULL_DERIVES}\npub struct Point {{\n    pub x: u32,\n    pub y: u32,\n}}"
        expect(point in module) == True
        expect("pub struct Marker;" in module) == True
        expect("pub struct Pair(pub u8, pub String);" in module) == True
        expect("    pub table: BTreeMap<u8, u8>," in module) == True
        expect("    pub pair: (u8, bool)," in module) == True
        expect("    pub arr: [u16; 2]," in module) == True
        expect("    pub data: Vec<u8>," in module) == True

    def boxes_only_the_flagged_edges(expect):
        module = gen_module(SHAPES)
        expect("    pub next: Option<Box<Node>>," in module) == True
        expect("    pub children: Vec<Tree>," in module) == True
        expect("Box<Tree>" in module) == False

    def floats_drop_total_order(expect):
        module = gen_module(SHAPES)
        expect(f"{FLOAT_DERIVES}\npub struct Meters(pub f64);" in module) == True

    def floats_propagate_through_references(expect):
        module = gen_module("struct Meters(f64)\nstruct Walk { legs: seq<Meters> }")
        expect(f"{FLOAT_DERIVES}\npub struct Walk {{" in module) == True

    def enums(expect):
        module = gen_module(SHAPES)
        expect("pub enum Message {" in module) == True
        body = "    Empty,\n    Text(String),\n    Move { x: i32, y: i32 },\n    Pair(u8, u8),\n"
        expect(body in module) == True
        expect("            Message::Move { x: x0, y: x1 } => {" in module) == True
        expect("                serializer.serialize_variant_index(5)?;" in module) == True
        expect("            0 => Message::Empty," in module) == True
        expect("serde_binary::Error::UnknownVariant(index)" in module) == True

    def implements_the_codec(expect):
        module = gen_module(SHAPES)
        expect("impl Serialize for Point {" in module) == True
        expect("impl Deserialize for Point {" in module) == True
        expect("        self.x.serialize(serializer)?;" in module) == True
        expect("        let value = Pair(Deserialize::deserialize(deserializer)?" in module) == True
        expect("        serializer.increase_container_depth()?;" in module) == True

    def entry_points_follow_the_config(expect):
        module = gen_module(SHAPES, encodings=[Encoding.LCS, Encoding.BINCODE])
        expect("    pub fn lcs_serialize(&self) -> Result<Vec<u8>> {" in module) == True
        expect("        serde_binary::bincode_deserialize(input)" in module) == True
        module = gen_module(SHAPES, encodings=[])
        expect("lcs_serialize" in module) == False

    def empty_enums_match_on_deref(expect):
        module = gen_module("enum Never {}")
        expect("        match *self {" in module) == True

    def escapes_keywords_without_renames(expect):
        module = gen_module(DERIVABLE)
        expect("    pub type_: u8," in module) == True
        expect("#[serde(rename" in module) == False

    def single_element_tuples(expect):
        module = gen_module("struct W { t: (u8,) }")
        expect("    pub t: (u8,)," in module) == True

    def can_omit_serialization(expect):
        module = gen_module(SHAPES, serialization=False)
        expect("impl Serialize" in module) == False
        expect("use serde" in module) == False
        expect(f"{FULL_DERIVES}\npub struct Point {{" in module) == True

    def is_deterministic(expect):
        expect(gen_module(SHAPES)) == gen_module(SHAPES)


def describe_derive_mode():
    def derives_serde_traits(expect):
        module = gen_module(DERIVABLE, annotations=True)
        expect("use serde::{Deserialize, Serialize};" in module) == True
        derives = (
            "#[derive(Clone, Debug, PartialEq, Eq, PartialOrd, Ord, Hash, Serialize, Deserialize)]"
        )
        expect(f"{derives}\npub struct Point {{" in module) == True
        expect("impl Serialize for" in module) == False
        expect("lcs_serialize" in module) == False

    def bytes_use_serde_bytes(expect):
        module = gen_module(DERIVABLE, annotations=True)
        expect("    pub data: serde_bytes::ByteBuf," in module) == True

    def renames_escaped_identifiers(expect):
        module = gen_module(DERIVABLE, annotations=True)
        expect('    #[serde(rename = "type")] pub type_: u8,' in module) == True

    def requires_contiguous_indices(expect):
        with raises(UnsupportedShapeForTarget) as e:
            gen_module(SHAPES, annotations=True)
        expect(e.value.container) == "Message"

    def limits_array_sizes(expect):
        with raises(UnsupportedShapeForTarget):
            gen_module("struct A { a: [u8; 33] }", annotations=True)
        expect("    pub a: [u8; 33]," in gen_module("struct A { a: [u8; 33] }")) == True


def describe_unsupported_shapes():
    def float_map_keys(expect):
        with raises(UnsupportedShapeForTarget):
            gen_module("struct M { m: map<f32, u8> }")
        with raises(UnsupportedShapeForTarget):
            gen_module("struct Meters(f64)\nstruct M { m: map<Meters, u8> }")

    def long_tuples(expect):
        items = ", ".join(["u8"] * 13)
        with raises(UnsupportedShapeForTarget):
            gen_module(f"struct T {{ t: ({items}) }}")
        items = ", ".join(["u8"] * 12)
        expect(f"({items})" in gen_module(f"struct T {{ t: ({items}) }}")) == True


def describe_runtime():
    def ships_serde_binary(expect):
        files = runtime(Target.RUST)
        expect(list(files)) == ["serde_binary.rs"]
        expect("pub const MAX_CONTAINER_DEPTH: usize = 500;" in files["serde_binary.rs"]) == True
        expect("pub fn lcs_deserialize" in files["serde_binary.rs"]) == True
