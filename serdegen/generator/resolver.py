"""Emission order and cycle breaking over the container reference graph.

The resolver runs once per registry and its answer is shared by every
backend, so all targets break reference cycles at the same edges.
"""

import logging
from dataclasses import dataclass, field

from dataclasses_json import DataClassJsonMixin

from .registry import Registry
from .types import container_formats, references

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Edge(DataClassJsonMixin):
    """A reference from container ``source`` to container ``target``."""

    source: str
    target: str


@dataclass
class Resolution(DataClassJsonMixin):
    """Result of resolving a registry.

    - order: containers sorted so that definitions precede their uses,
      except across a cycle
    - indirections: references that targets must wrap (box, pointer, ...)
    - cycles: strongly connected components that contain a cycle
    """

    order: list[str]
    indirections: list[Edge] = field(default_factory=list)
    cycles: list[list[str]] = field(default_factory=list)

    def needs_indirection(self, source: str, target: str) -> bool:
        return Edge(source, target) in self.indirections


def reference_graph(registry: Registry, inline_only: bool = False) -> dict[str, list[str]]:
    """Return successors of each container, in first-occurrence order.

    With ``inline_only``, references nested under a Seq or a Map are skipped:
    those values live on the heap in every target and never make a type
    infinitely sized.
    """
    graph: dict[str, list[str]] = {}
    for name, container in registry.items():
        successors: list[str] = []
        for _path, fmt in container_formats(container):
            for ref, inline in references(fmt):
                if inline_only and not inline:
                    continue
                if ref not in successors:
                    successors.append(ref)
        graph[name] = successors
    return graph


def _back_edges(graph: dict[str, list[str]]) -> list[Edge]:
    """Return the back edges of a DFS seeded in graph insertion order."""
    visited: set[str] = set()
    on_stack: set[str] = set()
    back: list[Edge] = []

    for root in graph:
        if root in visited:
            continue
        visited.add(root)
        on_stack.add(root)
        stack = [(root, iter(graph[root]))]
        while stack:
            node, successors = stack[-1]
            for succ in successors:
                if succ in on_stack:
                    back.append(Edge(node, succ))
                elif succ not in visited:
                    visited.add(succ)
                    on_stack.add(succ)
                    stack.append((succ, iter(graph[succ])))
                    break
            else:
                stack.pop()
                on_stack.discard(node)
    return back


def _reaches(graph: dict[str, list[str]], source: str, target: str) -> bool:
    seen = {source}
    pending = [source]
    while pending:
        node = pending.pop()
        if node == target:
            return True
        for succ in graph[node]:
            if succ not in seen:
                seen.add(succ)
                pending.append(succ)
    return False


def _ordering_graph(
    graph: dict[str, list[str]], required: dict[str, list[str]]
) -> dict[str, list[str]]:
    """Return an acyclic subgraph of ``graph`` holding every ``required`` edge.

    The remaining edges are added in registry order unless they close a
    cycle. Successors keep their first-occurrence order.
    """
    result = {node: list(required[node]) for node in graph}
    for node, successors in graph.items():
        for succ in successors:
            if succ not in result[node] and not _reaches(result, succ, node):
                result[node].append(succ)
        result[node].sort(key=successors.index)
    return result


def _post_order(graph: dict[str, list[str]]) -> list[str]:
    """Return a DFS post-order of an acyclic graph."""
    visited: set[str] = set()
    order: list[str] = []

    for root in graph:
        if root in visited:
            continue
        visited.add(root)
        stack = [(root, iter(graph[root]))]
        while stack:
            node, successors = stack[-1]
            for succ in successors:
                if succ not in visited:
                    visited.add(succ)
                    stack.append((succ, iter(graph[succ])))
                    break
            else:
                stack.pop()
                order.append(node)
    return order


def _strongly_connected(graph: dict[str, list[str]]) -> list[list[str]]:
    """Tarjan's algorithm. Returns components that contain a cycle."""
    index: dict[str, int] = {}
    lowlink: dict[str, int] = {}
    on_stack: set[str] = set()
    component_stack: list[str] = []
    result: list[list[str]] = []
    counter = 0

    for root in graph:
        if root in index:
            continue
        index[root] = lowlink[root] = counter
        counter += 1
        component_stack.append(root)
        on_stack.add(root)
        work = [(root, iter(graph[root]))]
        while work:
            node, successors = work[-1]
            for succ in successors:
                if succ not in index:
                    index[succ] = lowlink[succ] = counter
                    counter += 1
                    component_stack.append(succ)
                    on_stack.add(succ)
                    work.append((succ, iter(graph[succ])))
                    break
                if succ in on_stack:
                    lowlink[node] = min(lowlink[node], index[succ])
            else:
                work.pop()
                if work:
                    parent = work[-1][0]
                    lowlink[parent] = min(lowlink[parent], lowlink[node])
                if lowlink[node] == index[node]:
                    members: list[str] = []
                    while True:
                        member = component_stack.pop()
                        on_stack.discard(member)
                        members.append(member)
                        if member == node:
                            break
                    if len(members) > 1 or node in graph[node]:
                        result.append(sorted(members, key=list(graph).index))
    return result


def resolve(registry: Registry) -> Resolution:
    """Compute emission order and indirection edges for a validated registry.

    Never fails: any registry becomes finite once the returned indirection
    edges are boxed.
    """
    graph = reference_graph(registry)
    inline_graph = reference_graph(registry, inline_only=True)

    indirections = _back_edges(inline_graph)
    # Inline edges that survive boxing are hard constraints on the order.
    required = {
        node: [succ for succ in successors if Edge(node, succ) not in indirections]
        for node, successors in inline_graph.items()
    }

    resolution = Resolution(
        order=_post_order(_ordering_graph(graph, required)),
        indirections=indirections,
        cycles=_strongly_connected(graph),
    )
    for edge in resolution.indirections:
        logger.debug("indirection required on %s -> %s", edge.source, edge.target)
    return resolution
