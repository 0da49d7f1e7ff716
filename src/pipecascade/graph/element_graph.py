"""
Element graphs -- the operator/resource graphs a planner hands over, one per
unit of work. Only membership and edge queries are interpreted here.
"""

from enum import Enum
from typing import Iterable, Mapping, TypeVar

from .digraph import DirectedMultigraph
from .elements import Extent, FlowElement, Scope

ElementAnnotations = dict[Enum, set[FlowElement]]

T = TypeVar("T", bound=FlowElement)


class ElementGraph(DirectedMultigraph[FlowElement, Scope]):
    """Directed multigraph of flow elements joined by scopes

    A plain element graph carries no annotations; see `AnnotatedElementGraph`.
    """

    def __init__(self) -> None:
        super().__init__(allow_loops=False, allow_parallel=True)

    @property
    def annotations(self) -> ElementAnnotations | None:
        return None

    def has_annotations(self) -> bool:
        return bool(self.annotations)

    def connect(
        self,
        source: FlowElement,
        target: FlowElement,
        ordinal: int = 0,
        name: str | None = None,
    ) -> Scope:
        """Add both elements if missing and join them with a fresh scope"""
        self.add_vertex(source)
        self.add_vertex(target)
        scope = Scope(ordinal=ordinal, name=name)
        self.add_edge(source, target, scope)
        return scope

    def add_path(self, *elements: FlowElement) -> "ElementGraph":
        for source, target in zip(elements, elements[1:]):
            self.connect(source, target)
        return self

    def sub_graph(self, vertices: Iterable[FlowElement]) -> "ElementGraph":
        """Induced sub-graph over the given vertices, sharing scope objects"""
        wanted = set(vertices)
        missing = [v for v in wanted if not self.contains_vertex(v)]
        if missing:
            raise ValueError(f"vertices not in graph: {missing}")
        rv = ElementGraph()
        for vertex in self.vertex_set():
            if vertex in wanted:
                rv.add_vertex(vertex)
        for edge in self.edge_set():
            source, target = self.edge_source(edge), self.edge_target(edge)
            if source in wanted and target in wanted:
                rv.add_edge(source, target, edge)
        return rv

    def elements(self) -> list[FlowElement]:
        """Vertices other than the head and tail sentinels"""
        return [v for v in self.vertex_set() if not isinstance(v, Extent)]

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {[str(v) for v in self.vertex_set()]}>"


class AnnotatedElementGraph(ElementGraph):
    """An element graph declaring annotations

    Shares vertex and edge storage with the graph it decorates, so annotations
    discovered at a finer grain can be exposed on a coarser graph without
    copying it.
    """

    def __init__(self, graph: ElementGraph, annotations: Mapping[Enum, Iterable[FlowElement]]):
        self.allow_loops = graph.allow_loops
        self.allow_parallel = graph.allow_parallel
        self._vertices = graph._vertices
        self._outgoing = graph._outgoing
        self._incoming = graph._incoming
        self._edges = graph._edges
        self.decorated = graph
        self._annotations: ElementAnnotations = {}
        merge_annotations(self._annotations, annotations)
        inherited = graph.annotations
        if inherited:
            merge_annotations(self._annotations, inherited)

    @property
    def annotations(self) -> ElementAnnotations:
        return self._annotations

    # insertion indices must stay unique across both views of the storage
    @property
    def _counter(self) -> int:
        return self.decorated._counter

    @_counter.setter
    def _counter(self, value: int) -> None:
        self.decorated._counter = value


def merge_annotations(
    target: ElementAnnotations, source: Mapping[Enum, Iterable[FlowElement]]
) -> ElementAnnotations:
    for key, values in source.items():
        target.setdefault(key, set()).update(values)
    return target


def annotations_of(graph: ElementGraph, element: FlowElement) -> set[Enum]:
    annotations = graph.annotations
    if not annotations:
        return set()
    return {key for key, values in annotations.items() if element in values}


def find_sources(graph: ElementGraph) -> list[FlowElement]:
    """Elements fed from outside the graph

    The successors of the head sentinel if the graph has one, otherwise every
    element without incoming edges.
    """
    if graph.contains_vertex(Extent.head):
        return [v for v in graph.successors(Extent.head) if not isinstance(v, Extent)]
    return [
        v
        for v in graph.vertex_set()
        if not isinstance(v, Extent)
        and all(isinstance(p, Extent) for p in graph.predecessors(v))
    ]


def find_sinks(graph: ElementGraph) -> list[FlowElement]:
    """Elements feeding outside the graph, the mirror of `find_sources`"""
    if graph.contains_vertex(Extent.tail):
        return [v for v in graph.predecessors(Extent.tail) if not isinstance(v, Extent)]
    return [
        v
        for v in graph.vertex_set()
        if not isinstance(v, Extent)
        and all(isinstance(s, Extent) for s in graph.successors(v))
    ]


def find_all(graph: ElementGraph, kind: type[T]) -> list[T]:
    return [v for v in graph.vertex_set() if isinstance(v, kind)]
