import networkx as nx
import pytest

from pipecascade.graph.digraph import DirectedMultigraph
from pipecascade.graph.networkx import to_networkx


class Edge:
    def __init__(self, label: str):
        self.label = label


def chain(*vertices: str) -> DirectedMultigraph[str, Edge]:
    g: DirectedMultigraph[str, Edge] = DirectedMultigraph()
    for v in vertices:
        g.add_vertex(v)
    for a, b in zip(vertices, vertices[1:]):
        g.add_edge(a, b, Edge(f"{a}{b}"))
    return g


def test_vertices():
    g: DirectedMultigraph[str, Edge] = DirectedMultigraph()
    assert g.add_vertex("a")
    assert not g.add_vertex("a")
    g.add_vertex("b")
    assert g.vertex_set() == ["a", "b"]
    assert "a" in g and "c" not in g
    assert len(g) == 2
    assert g.insertion_index("b") > g.insertion_index("a")


def test_parallel_edges():
    g = chain("a", "b")
    second = Edge("second")
    assert g.add_edge("a", "b", second) is second
    assert g.edge_count() == 2
    assert len(g.get_all_edges("a", "b")) == 2
    assert g.successors("a") == ["b"]
    assert g.out_degree("a") == 2
    assert g.in_degree("b") == 2

    with pytest.raises(ValueError):
        g.add_edge("a", "b", second)


def test_simple_mode_refuses_parallel():
    g: DirectedMultigraph[str, Edge] = DirectedMultigraph(allow_parallel=False)
    g.add_vertex("a")
    g.add_vertex("b")
    assert g.add_edge("a", "b", Edge("1")) is not None
    assert g.add_edge("a", "b", Edge("2")) is None
    assert g.edge_count() == 1


def test_loops():
    g = chain("a")
    with pytest.raises(ValueError):
        g.add_edge("a", "a", Edge("loop"))

    permissive: DirectedMultigraph[str, Edge] = DirectedMultigraph(allow_loops=True)
    permissive.add_vertex("a")
    permissive.add_edge("a", "a", Edge("loop"))
    assert permissive.has_cycle()


def test_missing_vertex():
    g = chain("a")
    with pytest.raises(ValueError):
        g.add_edge("a", "z", Edge("az"))


def test_remove():
    g = chain("a", "b", "c")
    edge = g.get_edge("a", "b")
    assert g.remove_edge(edge)
    assert not g.contains_edge(edge)
    assert g.predecessors("b") == []

    assert g.remove_vertex("c")
    assert g.edge_count() == 0
    assert g.vertex_set() == ["a", "b"]


def test_topological_order():
    g = chain("a", "b", "c")
    g.add_vertex("x")
    g.add_edge("x", "c", Edge("xc"))
    order = list(g.topological_iterator())
    assert set(order) == {"a", "b", "c", "x"}
    for edge in g.edge_set():
        assert order.index(g.edge_source(edge)) < order.index(g.edge_target(edge))


def test_topological_tie_break():
    g: DirectedMultigraph[str, Edge] = DirectedMultigraph()
    for v in ["c", "a", "b"]:
        g.add_vertex(v)

    # no key: insertion order
    assert list(g.topological_iterator()) == ["c", "a", "b"]
    assert list(g.topological_iterator(key=lambda v: v)) == ["a", "b", "c"]
    # equal keys fall back to insertion order
    assert list(g.topological_iterator(key=lambda v: 0)) == ["c", "a", "b"]


def test_cycle_is_cut_short():
    g = chain("a", "b", "c")
    g.add_edge("c", "b", Edge("cb"))
    assert g.has_cycle()
    assert list(g.topological_iterator()) == ["a"]


def test_to_networkx():
    g = chain("a", "b", "c")
    g.add_edge("a", "b", Edge("again"))
    nxg = to_networkx(g)
    assert nxg.number_of_nodes() == 3
    assert nxg.number_of_edges() == 3
    assert nx.is_directed_acyclic_graph(nxg)
    assert list(nx.topological_sort(nxg)) == ["a", "b", "c"]
