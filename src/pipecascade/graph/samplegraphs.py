"""
Small element graph fragments, as a planner would hand them over

Every function returns the list of fragments, one per unit of work. Fragments
share the elements through which they hand data to each other.
"""

from typing import Iterable

from pipecascade.tap import MemoryTap

from .element_graph import ElementGraph
from .elements import Extent, FlowElement, Group, Pipe


def empty() -> list[ElementGraph]:
    return []


def linear(nproc: int = 3) -> list[ElementGraph]:
    """Chain of fragments joined by temporary taps

    head -> tap-0 -> each-0 -> tap-1 | tap-1 -> each-1 -> tap-2 | ... -> tap-{nproc} -> tail
    """
    taps = [MemoryTap(f"tap-{i}", temporary=0 < i < nproc) for i in range(nproc + 1)]
    rv = []
    for i in range(nproc):
        path: list[FlowElement] = [taps[i], Pipe(f"each-{i}"), taps[i + 1]]
        if i == 0:
            path.insert(0, Extent.head)
        if i == nproc - 1:
            path.append(Extent.tail)
        rv.append(ElementGraph().add_path(*path))
    return rv


def two_process() -> list[ElementGraph]:
    """Two fragments sharing `B`

    head -> A -> B | head -> B -> C -> tail
    """
    a, b, c = FlowElement("A"), FlowElement("B"), FlowElement("C")
    return [
        ElementGraph().add_path(Extent.head, a, b),
        ElementGraph().add_path(Extent.head, b, c, Extent.tail),
    ]


def diamond() -> list[ElementGraph]:
    """One split into two branches, co-grouped back

    head -> in -> split -> left, right -[1]-> tail
    head -> left -> each-left -> left-out -> tail
    head -> right -> each-right -> right-out -> tail
    head -[1]-> right-out -[1]-> cogroup, left-out -> cogroup -> out -> tail

    Shared elements leave their producer and enter their consumer through the
    sentinels, the right branch on ordinal 1 where it crosses a boundary.
    """
    source, sink = MemoryTap("in"), MemoryTap("out")
    left, right = MemoryTap("left", temporary=True), MemoryTap("right", temporary=True)
    left_out, right_out = MemoryTap("left-out", temporary=True), MemoryTap("right-out", temporary=True)
    split = Pipe("split")
    cogroup = Group("cogroup")

    head = ElementGraph().add_path(Extent.head, source, split, left, Extent.tail)
    head.connect(split, right)
    head.connect(right, Extent.tail, ordinal=1)

    tail = ElementGraph().add_path(Extent.head, left_out, cogroup, sink, Extent.tail)
    tail.connect(Extent.head, right_out, ordinal=1)
    tail.connect(right_out, cogroup, ordinal=1)

    return [
        head,
        ElementGraph().add_path(Extent.head, left, Pipe("each-left"), left_out, Extent.tail),
        ElementGraph().add_path(Extent.head, right, Pipe("each-right"), right_out, Extent.tail),
        tail,
    ]


def disconnected(nchains: int = 2) -> list[ElementGraph]:
    """Independent fragments sharing nothing but the sentinels

    head -> reader-{i} -> each-{i} -> writer-{i} -> tail
    """
    return [
        ElementGraph().add_path(
            Extent.head, MemoryTap(f"reader-{i}"), Pipe(f"each-{i}"), MemoryTap(f"writer-{i}"), Extent.tail
        )
        for i in range(nchains)
    ]


def union(graphs: Iterable[ElementGraph]) -> ElementGraph:
    """Single graph holding every element and scope of the fragments"""
    rv = ElementGraph()
    for graph in graphs:
        for vertex in graph.vertex_set():
            rv.add_vertex(vertex)
        for edge in graph.edge_set():
            if not rv.contains_edge(edge):
                rv.add_edge(graph.edge_source(edge), graph.edge_target(edge), edge)
    return rv


def by_name(graphs: Iterable[ElementGraph], name: str) -> FlowElement:
    """Raises `KeyError` if no fragment holds an element of that name"""
    for graph in graphs:
        for vertex in graph.vertex_set():
            if vertex.name == name:
                return vertex
    raise KeyError(name)
