"""
Connecting flows into a cascade through the resources they share

Two graphs are derived from the flows. The identifier graph has the fully
qualified tap identifiers as vertices and one edge per flow and (source, sink)
pair. The flow graph has the flows as vertices and an edge Q -> P whenever Q
writes a resource P reads.
"""

import logging
from typing import Any, Iterable, Mapping

from pipecascade.cascade.core import Cascade
from pipecascade.cascade.definition import CascadeDef
from pipecascade.cascade.graphs import FlowEdge, FlowGraph, FlowHolder, IdentifierGraph
from pipecascade.config import CascadeProps
from pipecascade.exceptions import CascadeException
from pipecascade.flow.core import Flow
from pipecascade.tap import Tap

logger = logging.getLogger(__name__)


def unwrap_composite_taps(taps: Iterable[Tap]) -> list[Tap]:
    rv: list[Tap] = []
    for tap in taps:
        if tap.is_composite:
            rv.extend(unwrap_composite_taps(tap.child_taps()))
        else:
            rv.append(tap)
    return rv


def make_identifier_graph(flows: Iterable[Flow]) -> IdentifierGraph:
    graph = IdentifierGraph()
    for flow in flows:
        sources = unwrap_composite_taps(flow.sources.values())
        # NOTE checkpoints are written by the flow, so other flows may depend on them
        sinks = unwrap_composite_taps([*flow.sinks.values(), *flow.checkpoints.values()])

        source_ids = [tap.full_identifier(flow.config) for tap in sources]
        sink_ids = [tap.full_identifier(flow.config) for tap in sinks]
        for identifier in source_ids + sink_ids:
            graph.add_vertex(identifier)

        for source, source_id in zip(sources, source_ids):
            for sink, sink_id in zip(sinks, sink_ids):
                try:
                    graph.add_edge(source_id, sink_id, FlowHolder(flow))
                except ValueError as e:
                    raise CascadeException(
                        f"no loops allowed in cascade, flow: {flow.name}, source: {source}, sink: {sink}"
                    ) from e
    return graph


def make_flow_graph(identifier_graph: IdentifierGraph, flows: Iterable[Flow] = ()) -> FlowGraph:
    """Flows in `flows` are added even if they share no resource with any other"""
    graph = FlowGraph()
    for flow in flows:
        graph.add_vertex(flow)

    for identifier in identifier_graph.vertex_set():
        logger.debug(f"handling flow source: {identifier}")
        for holder in identifier_graph.outgoing_edges_of(identifier):
            flow = holder.flow
            graph.add_vertex(flow)
            for previous in identifier_graph.incoming_edges_of(identifier):
                previous_flow = previous.flow
                graph.add_vertex(previous_flow)
                if previous_flow is flow:
                    logger.debug(f"flow {flow.name} reads its own output: {identifier}")
                    continue
                if graph.get_edge(previous_flow, flow) is not None:
                    continue
                graph.add_edge(previous_flow, flow, FlowEdge(identifier))
    return graph


def verify_no_cycles(flow_graph: FlowGraph) -> None:
    visited = sum(1 for _ in flow_graph.topological_iterator())
    if visited != flow_graph.vertex_count():
        raise CascadeException(
            "there are likely cycles in the set of given flows, topological iterator cannot traverse flows with cycles"
        )


def make_name(flows: Iterable[Flow]) -> str:
    return "+".join(flow.name for flow in flows)


class CascadeConnector:
    """Builds verified, acyclic cascades out of flows

    Parameters
    ----------
    properties: Mapping[str, Any]
        Flat property map, see `pipecascade.config` for the recognised keys; also
        handed on to every cascade created
    """

    def __init__(self, properties: Mapping[str, Any] | None = None):
        self.properties: dict[str, Any] = dict(properties or {})

    def connect(self, *flows: Flow, name: str | None = None) -> Cascade:
        cascade_def = CascadeDef().set_name(name or make_name(flows)).add_flows(flows)
        return self.connect_def(cascade_def)

    def connect_def(self, cascade_def: CascadeDef) -> Cascade:
        flows = cascade_def.flow_list()
        identifier_graph = make_identifier_graph(flows)
        flow_graph = make_flow_graph(identifier_graph, flows)
        verify_no_cycles(flow_graph)

        props = CascadeProps.from_properties(self.properties)
        if cascade_def.max_concurrent_flows >= 0:
            props = props.model_copy(update={"max_concurrent_flows": cascade_def.max_concurrent_flows})

        return Cascade(
            cascade_def.name or make_name(flows),
            flow_graph,
            identifier_graph,
            props=props,
            properties=self.properties,
            tags=cascade_def.tags,
        )
