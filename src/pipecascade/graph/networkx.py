from typing import Any, Callable

import networkx as nx

from .digraph import DirectedMultigraph


def to_networkx(
    graph: DirectedMultigraph,
    vertex_key: Callable[[Any], Any] = str,
) -> nx.MultiDiGraph:
    """Convert to a networkx multigraph

    Vertices are keyed by ``vertex_key`` and keep the original object under the
    ``vertex`` attribute, edges keep theirs under ``edge``.
    """
    g = nx.MultiDiGraph()
    for vertex in graph.vertex_set():
        g.add_node(vertex_key(vertex), vertex=vertex)
    g.add_edges_from(
        (
            vertex_key(graph.edge_source(edge)),
            vertex_key(graph.edge_target(edge)),
            {"edge": edge},
        )
        for edge in graph.edge_set()
    )
    return g

