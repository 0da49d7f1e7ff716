import itertools

import networkx as nx
import pytest

from pipecascade.exceptions import PlannerException
from pipecascade.graph import samplegraphs
from pipecascade.graph.element_graph import ElementGraph
from pipecascade.graph.elements import Extent, FlowElement, Group, Pipe
from pipecascade.graph.networkx import to_networkx
from pipecascade.planner.factory import DefaultProcessFactory
from pipecascade.planner.node import FlowNode, FlowNodeGraph
from pipecascade.planner.process_graph import BaseProcessGraph, ordinal_key
from pipecascade.tap import MemoryTap

FIXTURES = [
    samplegraphs.empty,
    samplegraphs.linear,
    samplegraphs.two_process,
    samplegraphs.diamond,
    samplegraphs.disconnected,
]


def node_graph(fragments: list[ElementGraph]) -> FlowNodeGraph:
    return FlowNodeGraph(DefaultProcessFactory(), samplegraphs.union(fragments), fragments)


@pytest.mark.parametrize("fixture", FIXTURES)
def test_edge_totality(fixture):
    graph = node_graph(fixture())
    for a, b in itertools.product(graph.vertex_set(), repeat=2):
        shared = {e for e in a.sink_elements if e in b.source_elements}
        found = {edge.flow_element for edge in graph.get_all_edges(a, b)}
        if a is b:
            assert not found
        else:
            assert found == shared
            assert len(graph.get_all_edges(a, b)) == len(shared)


@pytest.mark.parametrize("fixture", FIXTURES)
def test_external_sets(fixture):
    graph = node_graph(fixture())
    for process in graph.vertex_set():
        assert not graph.source_elements & set(process.sink_elements)
        assert not graph.sink_elements & set(process.source_elements)


@pytest.mark.parametrize("fixture", FIXTURES)
def test_topological_validity(fixture):
    graph = node_graph(fixture())
    order = list(graph.ordinal_topological_iterator())
    assert len(order) == graph.vertex_count()
    assert [p.ordinal for p in order] == list(range(graph.vertex_count()))
    for edge in graph.edge_set():
        assert edge.source.ordinal < edge.sink.ordinal

    nxg = to_networkx(graph, vertex_key=lambda p: p.id)
    assert nx.is_directed_acyclic_graph(nxg)


@pytest.mark.parametrize("fixture", FIXTURES)
def test_tie_break_stability(fixture):
    fragments = fixture()
    first = [p.element_graph for p in node_graph(fragments).ordered_processes()]
    second = [p.element_graph for p in node_graph(fragments).ordered_processes()]
    assert first == second


def test_two_process_scenario():
    fragments = samplegraphs.two_process()
    graph = node_graph(fragments)
    a, b, c = (samplegraphs.by_name(fragments, n) for n in "ABC")

    assert graph.vertex_count() == 2
    assert graph.edge_count() == 1
    (edge,) = graph.edge_set()
    assert edge.flow_element is b
    assert edge.source.element_graph is fragments[0]
    assert edge.sink.element_graph is fragments[1]
    assert graph.source_elements == {a}
    assert graph.sink_elements == {c}
    assert [p.name for p in graph.ordered_processes()] == ["(1/2)", "(2/2)"]


def test_diamond_edges_carry_ordinals():
    fragments = samplegraphs.diamond()
    graph = node_graph(fragments)
    left, right, left_out, right_out = (
        samplegraphs.by_name(fragments, n) for n in ("left", "right", "left-out", "right-out")
    )

    assert graph.edge_count() == 4
    edges = {edge.flow_element: edge for edge in graph.edge_set()}
    assert edges[left].outgoing_ordinals == {0}
    assert edges[left].incoming_ordinals == {0}
    assert edges[right].outgoing_ordinals == {1}
    assert edges[right].incoming_ordinals == {0}
    assert edges[right_out].outgoing_ordinals == {0}
    assert edges[right_out].incoming_ordinals == {1}
    assert {t.identifier for t in graph.source_taps} == {"in"}
    assert {t.identifier for t in graph.sink_taps} == {"out"}

    head, *_, tail = graph.ordered_processes()
    assert head.element_graph is fragments[0]
    assert tail.element_graph is fragments[3]
    assert [g.name for g in tail.groups] == ["cogroup"]


def test_edge_ordinals_follow_boundary_scopes():
    # the shared group leaves the producer on 3 and enters the consumer on 5
    shared, every = Group("grp"), Pipe("every")
    producer = ElementGraph().add_path(Extent.head, Pipe("each"), shared)
    producer.connect(shared, Extent.tail, ordinal=3)
    consumer = ElementGraph().add_path(every, Extent.tail)
    consumer.connect(Extent.head, shared, ordinal=5)
    consumer.connect(shared, every, ordinal=1)

    graph = FlowNodeGraph(DefaultProcessFactory(), None, [producer, consumer])
    (edge,) = graph.edge_set()
    assert edge.flow_element is shared
    assert edge.outgoing_ordinals == {3}
    assert edge.incoming_ordinals == {5}


def test_empty_graph():
    graph = node_graph([])
    assert graph.vertex_count() == 0
    assert graph.source_elements == frozenset()
    assert graph.sink_elements == frozenset()


def test_pass_through_process_has_no_self_loop():
    # the same element is source and sink of the process
    tap = MemoryTap("tap")
    single = ElementGraph()
    single.add_vertex(tap)
    graph = node_graph([single])
    (process,) = graph.vertex_set()
    assert tap in process.source_elements and tap in process.sink_elements
    assert graph.edge_count() == 0


def test_identity_processes():
    source, sink = MemoryTap("source"), MemoryTap("sink")
    passing = ElementGraph().add_path(Extent.head, source, sink, Extent.tail)
    working = ElementGraph().add_path(MemoryTap("x"), Pipe("work"), MemoryTap("y"))
    graph = node_graph([passing, working])
    assert graph.identity_element_graphs() == [passing]


def test_duplicated_elements():
    shared = Pipe("shared")
    x, y, z = FlowElement("x"), FlowElement("y"), FlowElement("z")
    first = ElementGraph().add_path(Extent.head, x, shared, y)
    second = ElementGraph().add_path(y, shared, z, Extent.tail)
    graph = node_graph([first, second])
    assert graph.duplicated_elements(samplegraphs.union([first, second])) == {shared}
    assert graph.step_duplicated_elements() == {shared}


def test_element_queries():
    fragments = samplegraphs.linear(3)
    graph = node_graph(fragments)
    tap = samplegraphs.by_name(fragments, "tap-1")
    (producer,) = graph.element_source_processes(tap)
    (consumer,) = graph.element_sink_processes(tap)
    assert producer.ordinal == 0 and consumer.ordinal == 1
    assert set(graph.element_processes(tap)) == {producer, consumer}
    assert graph.scope_processes(fragments[2].edge_set()[0])[0].element_graph is fragments[2]


def test_edges_bound_once():
    graph = node_graph(samplegraphs.linear(2))
    with pytest.raises(PlannerException):
        graph.bind_edges()
    with pytest.raises(PlannerException):
        graph.add_vertex(FlowNode(ElementGraph()))


def test_taps_unknown_before_binding():
    source, middle, sink = MemoryTap("source"), MemoryTap("middle"), MemoryTap("sink")
    graph: BaseProcessGraph[FlowNode] = BaseProcessGraph()
    graph.add_vertex(FlowNode(ElementGraph().add_path(source, Pipe("f"), middle)))
    graph.add_vertex(FlowNode(ElementGraph().add_path(middle, Pipe("g"), sink)))
    with pytest.raises(PlannerException):
        graph.source_taps
    with pytest.raises(PlannerException):
        graph.sink_taps

    graph.bind_edges()
    assert graph.source_taps == {source}
    assert graph.sink_taps == {sink}


def test_ordinal_assigned_once():
    node = FlowNode(ElementGraph())
    node.assign("(1/1)", 0)
    with pytest.raises(PlannerException):
        node.assign("(1/1)", 1)
    assert node.ordinal == 0


def test_cycle_fails_ordinal_assignment():
    x, y = FlowElement("x"), FlowElement("y")
    graph: BaseProcessGraph[FlowNode] = BaseProcessGraph()
    graph.add_vertex(FlowNode(ElementGraph().add_path(x, Pipe("f"), y)))
    graph.add_vertex(FlowNode(ElementGraph().add_path(y, Pipe("g"), x)))
    graph.bind_edges()
    assert graph.edge_count() == 2
    with pytest.raises(PlannerException):
        graph._assign_ordinals(lambda p, total, i: str(i), ordinal_key)


def test_to_dot():
    fragments = samplegraphs.diamond()
    dot = node_graph(fragments).to_dot()
    assert "src:[in]" in dot
    assert "snk:[out]" in dot
    assert "grp:cogroup" in dot
    assert dot.count("->") == 4
