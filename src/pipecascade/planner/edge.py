from enum import Enum
from typing import Generic, TypeVar

from pipecascade.graph.element_graph import annotations_of
from pipecascade.graph.elements import FlowElement
from pipecascade.planner.process import ProcessModel

P = TypeVar("P", bound=ProcessModel)


class ProcessEdge(Generic[P]):
    """One shared element flowing from a producing process into a consuming one

    ``outgoing_ordinals`` are the ordinals of the scopes leaving the element
    inside the producer, ``incoming_ordinals`` those of the scopes entering it
    inside the consumer. Both are needed to reconnect streams across the
    process boundary.
    """

    def __init__(self, source: P, flow_element: FlowElement, sink: P):
        self.source = source
        self.sink = sink
        self.flow_element = flow_element

        source_graph = source.element_graph
        sink_graph = sink.element_graph
        self.outgoing_ordinals: frozenset[int] = frozenset(
            scope.ordinal for scope in source_graph.outgoing_edges_of(flow_element)
        )
        self.incoming_ordinals: frozenset[int] = frozenset(
            scope.ordinal for scope in sink_graph.incoming_edges_of(flow_element)
        )
        self.sink_annotations: set[Enum] = annotations_of(sink_graph, flow_element)
        self.source_annotations: set[Enum] = annotations_of(source_graph, flow_element)

    @property
    def id(self) -> str:
        return f"{self.source.id}-{self.flow_element.name}-{self.sink.id}"

    def __repr__(self) -> str:
        return f"<ProcessEdge {self.source!r} -[{self.flow_element}]-> {self.sink!r}>"
