from dataclasses import dataclass
from typing import Any, Callable, Iterator

from pipecascade.flow.core import Flow
from pipecascade.graph.digraph import DirectedMultigraph


@dataclass(eq=False)
class FlowHolder:
    """Edge of the identifier graph, one per flow and (source, sink) pair"""

    flow: Flow

    def __str__(self) -> str:
        return self.flow.name


@dataclass(eq=False)
class FlowEdge:
    """Edge of the flow graph, carrying the first resource found creating the dependency"""

    identifier: str

    def __str__(self) -> str:
        return self.identifier


class IdentifierGraph(DirectedMultigraph[str, FlowHolder]):
    def __init__(self) -> None:
        super().__init__(allow_loops=False, allow_parallel=True)

    def flows(self) -> list[Flow]:
        rv: dict[Flow, None] = {}
        for holder in self.edge_set():
            rv[holder.flow] = None
        return list(rv)


def flow_submit_priority(flow: Flow) -> int:
    return flow.submit_priority


class FlowGraph(DirectedMultigraph[Flow, FlowEdge]):
    def __init__(self) -> None:
        super().__init__(allow_loops=False, allow_parallel=False)

    def topological_iterator(self, key: Callable[[Flow], Any] | None = None) -> Iterator[Flow]:
        """Defaults to submitting flows of lower submit priority first"""
        return super().topological_iterator(key or flow_submit_priority)
