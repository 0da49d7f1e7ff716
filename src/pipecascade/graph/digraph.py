"""
Self-contained directed multigraph

Vertices are any hashable objects, kept in insertion order. Edges are payload
objects compared by identity, so the same pair of vertices may be joined by
several edges as long as each edge is a distinct object.
"""

import heapq
from typing import Any, Callable, Generic, Iterator, TypeVar

V = TypeVar("V")
E = TypeVar("E")


class DirectedMultigraph(Generic[V, E]):
    """Directed graph supporting parallel edges

    Parameters
    ----------
    allow_loops: bool
        If false, adding an edge from a vertex to itself raises `ValueError`
    allow_parallel: bool
        If false, adding a second edge between the same ordered pair of vertices
        is refused and `add_edge` returns None
    """

    def __init__(self, allow_loops: bool = False, allow_parallel: bool = True):
        self.allow_loops = allow_loops
        self.allow_parallel = allow_parallel
        self._vertices: dict[V, int] = {}
        self._outgoing: dict[V, list[E]] = {}
        self._incoming: dict[V, list[E]] = {}
        self._edges: dict[int, tuple[V, V, E]] = {}
        self._counter = 0

    def __len__(self) -> int:
        return len(self._vertices)

    def __contains__(self, vertex: object) -> bool:
        return vertex in self._vertices

    # vertices

    def add_vertex(self, vertex: V) -> bool:
        """Add a vertex, returns False if it was already present"""
        if vertex in self._vertices:
            return False
        self._vertices[vertex] = self._counter
        self._counter += 1
        self._outgoing[vertex] = []
        self._incoming[vertex] = []
        return True

    def remove_vertex(self, vertex: V) -> bool:
        """Remove a vertex and every edge touching it"""
        if vertex not in self._vertices:
            return False
        for edge in self._outgoing[vertex] + self._incoming[vertex]:
            self.remove_edge(edge)
        del self._vertices[vertex]
        del self._outgoing[vertex]
        del self._incoming[vertex]
        return True

    def contains_vertex(self, vertex: V) -> bool:
        return vertex in self._vertices

    def vertex_set(self) -> list[V]:
        return list(self._vertices)

    def vertex_count(self) -> int:
        return len(self._vertices)

    def insertion_index(self, vertex: V) -> int:
        return self._vertices[vertex]

    # edges

    def add_edge(self, source: V, target: V, edge: E) -> E | None:
        """Join two existing vertices with the given edge object"""
        if source not in self._vertices:
            raise ValueError(f"no such vertex: {source!r}")
        if target not in self._vertices:
            raise ValueError(f"no such vertex: {target!r}")
        if source == target and not self.allow_loops:
            raise ValueError(f"loops not allowed: {source!r}")
        if id(edge) in self._edges:
            raise ValueError(f"edge already in graph: {edge!r}")
        if not self.allow_parallel and self.get_edge(source, target) is not None:
            return None
        self._edges[id(edge)] = (source, target, edge)
        self._outgoing[source].append(edge)
        self._incoming[target].append(edge)
        return edge

    def remove_edge(self, edge: E) -> bool:
        record = self._edges.pop(id(edge), None)
        if record is None:
            return False
        source, target, _ = record
        self._outgoing[source] = [e for e in self._outgoing[source] if e is not edge]
        self._incoming[target] = [e for e in self._incoming[target] if e is not edge]
        return True

    def contains_edge(self, edge: E) -> bool:
        return id(edge) in self._edges

    def edge_set(self) -> list[E]:
        return [edge for _, _, edge in self._edges.values()]

    def edge_count(self) -> int:
        return len(self._edges)

    def edge_source(self, edge: E) -> V:
        return self._edges[id(edge)][0]

    def edge_target(self, edge: E) -> V:
        return self._edges[id(edge)][1]

    def get_edge(self, source: V, target: V) -> E | None:
        for edge in self._outgoing.get(source, []):
            if self._edges[id(edge)][1] == target:
                return edge
        return None

    def get_all_edges(self, source: V, target: V) -> list[E]:
        return [
            edge
            for edge in self._outgoing.get(source, [])
            if self._edges[id(edge)][1] == target
        ]

    def outgoing_edges_of(self, vertex: V) -> list[E]:
        return list(self._outgoing[vertex])

    def incoming_edges_of(self, vertex: V) -> list[E]:
        return list(self._incoming[vertex])

    def out_degree(self, vertex: V) -> int:
        return len(self._outgoing[vertex])

    def in_degree(self, vertex: V) -> int:
        return len(self._incoming[vertex])

    def successors(self, vertex: V) -> list[V]:
        rv: dict[V, None] = {}
        for edge in self._outgoing[vertex]:
            rv[self._edges[id(edge)][1]] = None
        return list(rv)

    def predecessors(self, vertex: V) -> list[V]:
        rv: dict[V, None] = {}
        for edge in self._incoming[vertex]:
            rv[self._edges[id(edge)][0]] = None
        return list(rv)

    # traversal

    def topological_iterator(
        self, key: Callable[[V], Any] | None = None
    ) -> Iterator[V]:
        """Iterate vertices so that no vertex precedes any of its predecessors

        Among vertices whose predecessors have all been yielded, the one with
        the smallest ``key`` goes first; equal keys fall back to insertion order.
        Vertices on a cycle are never yielded, so the iteration stops short of
        `vertex_count` on cyclic graphs.
        """
        remaining = {vertex: len(incoming) for vertex, incoming in self._incoming.items()}

        def entry(vertex: V) -> tuple:
            return (key(vertex) if key is not None else 0, self._vertices[vertex], vertex)

        # the insertion index is unique, so heapq never compares the vertices themselves
        frontier = [entry(vertex) for vertex, count in remaining.items() if count == 0]
        heapq.heapify(frontier)

        while frontier:
            *_, vertex = heapq.heappop(frontier)
            yield vertex
            for edge in self._outgoing[vertex]:
                target = self._edges[id(edge)][1]
                remaining[target] -= 1
                if remaining[target] == 0:
                    heapq.heappush(frontier, entry(target))

    def has_cycle(self) -> bool:
        visited = sum(1 for _ in self.topological_iterator())
        return visited != self.vertex_count()
