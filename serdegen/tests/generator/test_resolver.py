"""Tests for emission order and cycle breaking"""

import os

from serdegen.generator import load, parse
from serdegen.generator.resolver import Edge, reference_graph, resolve

FILE_DIR = os.path.dirname(os.path.realpath(__file__))


def check_order(registry, resolution):
    """Every inline reference that is not boxed must already be defined."""
    position = {name: i for i, name in enumerate(resolution.order)}
    inline = reference_graph(registry, inline_only=True)
    for source, targets in inline.items():
        for target in targets:
            if not resolution.needs_indirection(source, target):
                assert position[target] < position[source], f"{target} after {source}"


def describe_reference_graph():
    def lists_successors_once_in_first_occurrence_order(expect):
        registry = parse(
            "struct A { c: C, b: seq<B>, c2: C }\nstruct B(u8)\nstruct C(u8)"
        )
        expect(reference_graph(registry)) == {"A": ["C", "B"], "B": [], "C": []}
        expect(reference_graph(registry, inline_only=True)) == {"A": ["C"], "B": [], "C": []}


def describe_resolve():
    def dependencies_come_first(expect):
        resolution = resolve(parse("struct A { b: B }\nstruct B { x: u8 }"))
        expect(resolution.order) == ["B", "A"]
        expect(resolution.indirections) == []
        expect(resolution.cycles) == []

    def independent_containers_keep_registry_order(expect):
        resolution = resolve(parse("struct A(u8)\nstruct B(u8)\nstruct C(u8)"))
        expect(resolution.order) == ["A", "B", "C"]

    def self_reference_through_option_needs_indirection(expect):
        resolution = resolve(parse("struct Node { value: u32, next: option<Node> }"))
        expect(resolution.order) == ["Node"]
        expect(resolution.indirections) == [Edge("Node", "Node")]
        expect(resolution.cycles) == [["Node"]]

    def self_reference_through_seq_needs_none(expect):
        resolution = resolve(parse("struct Tree { children: seq<Tree> }"))
        expect(resolution.indirections) == []
        expect(resolution.cycles) == [["Tree"]]

    def mutual_recursion_boxes_one_edge(expect):
        resolution = resolve(parse("struct A { b: option<B> }\nstruct B { a: option<A> }"))
        expect(resolution.indirections) == [Edge("B", "A")]
        expect(resolution.needs_indirection("B", "A")) == True
        expect(resolution.needs_indirection("A", "B")) == False
        expect(resolution.order) == ["B", "A"]
        expect(resolution.cycles) == [["A", "B"]]

    def enum_payloads_take_part(expect):
        registry = parse("enum E { Leaf, Wrap(F) }\nstruct F { e: option<E> }")
        resolution = resolve(registry)
        expect(resolution.indirections) == [Edge("F", "E")]
        expect(resolution.order) == ["F", "E"]

    def inline_edges_win_over_heap_edges(expect):
        registry = parse("struct A { items: seq<B> }\nstruct B { a: A }")
        resolution = resolve(registry)
        expect(resolution.indirections) == []
        expect(resolution.order) == ["A", "B"]
        expect(resolution.cycles) == [["A", "B"]]

    def orders_the_shapes_schema(expect):
        registry = load(f"{FILE_DIR}/shapes.schema")
        resolution = resolve(registry)
        expect(sorted(resolution.order)) == sorted(registry.names())
        expect(resolution.indirections) == [Edge("Node", "Node")]
        expect(resolution.cycles) == [["Tree"], ["Node"]]
        check_order(registry, resolution)

    def orders_tangled_graphs(expect):
        registry = parse(
            """
            struct A { b: option<B>, d: seq<D> }
            struct B { c: C, a: seq<A> }
            struct C { a: option<A>, d: D }
            struct D { b: map<u8, B> }
            """
        )
        resolution = resolve(registry)
        check_order(registry, resolution)
        for edge in resolution.indirections:
            expect(edge.target in reference_graph(registry)[edge.source]) == True
        expect(len(resolution.cycles)) == 1
        expect(sorted(resolution.cycles[0])) == ["A", "B", "C", "D"]

    def is_deterministic(expect):
        registry = load(f"{FILE_DIR}/shapes.schema")
        expect(resolve(registry)) == resolve(registry)

    def serializes_to_json(expect):
        resolution = resolve(parse("struct Node { next: option<Node> }"))
        expect(resolution.to_dict()) == {
            "order": ["Node"],
            "indirections": [{"source": "Node", "target": "Node"}],
            "cycles": [["Node"]],
        }
