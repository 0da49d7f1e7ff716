"""
Creation and naming of nodes and steps during decomposition
"""

from typing import Any, Mapping, Protocol, Sequence

from pipecascade.graph.element_graph import ElementGraph, find_all
from pipecascade.graph.elements import Pipe
from pipecascade.planner.node import FlowNode, FlowNodeGraph
from pipecascade.planner.step import FlowStep
from pipecascade.tap import Tap


class ProcessFactory(Protocol):
    def create_node_graph(
        self,
        step_element_graph: ElementGraph,
        node_sub_graphs: Sequence[ElementGraph],
        pipeline_sub_graphs_map: Mapping[ElementGraph, Sequence[ElementGraph]],
    ) -> FlowNodeGraph:
        pass

    def create_node(self, node_sub_graph: ElementGraph, pipeline_graphs: Sequence[ElementGraph]) -> FlowNode:
        pass

    def create_step(self, step_sub_graph: ElementGraph, node_graph: FlowNodeGraph) -> FlowStep:
        pass

    def make_node_name(self, node: FlowNode, total: int, ordinal: int) -> str:
        pass

    def make_step_name(self, step: FlowStep, total: int, ordinal: int) -> str:
        pass


class DefaultProcessFactory:
    """Creates plain nodes and steps

    Parameters
    ----------
    traps: Mapping[str, Tap]
        Trap taps keyed by the name of the branch they guard; a process receives
        the traps of the branches found in its element graph
    submit_priority: int
        Priority given to every step
    config: Mapping[str, Any]
        Copied into every step
    """

    def __init__(
        self,
        traps: Mapping[str, Tap] | None = None,
        submit_priority: int = FlowStep.submit_priority,
        config: Mapping[str, Any] | None = None,
    ):
        self.traps = dict(traps or {})
        self.submit_priority = submit_priority
        self.config = dict(config or {})

    def trap_map_for(self, element_graph: ElementGraph) -> dict[str, Tap]:
        names = {pipe.name for pipe in find_all(element_graph, Pipe)}
        return {name: trap for name, trap in self.traps.items() if name in names}

    def create_node_graph(
        self,
        step_element_graph: ElementGraph,
        node_sub_graphs: Sequence[ElementGraph],
        pipeline_sub_graphs_map: Mapping[ElementGraph, Sequence[ElementGraph]],
    ) -> FlowNodeGraph:
        return FlowNodeGraph(self, step_element_graph, node_sub_graphs, pipeline_sub_graphs_map)

    def create_node(self, node_sub_graph: ElementGraph, pipeline_graphs: Sequence[ElementGraph]) -> FlowNode:
        return FlowNode(node_sub_graph, pipeline_graphs, self.trap_map_for(node_sub_graph))

    def create_step(self, step_sub_graph: ElementGraph, node_graph: FlowNodeGraph) -> FlowStep:
        return FlowStep(
            step_sub_graph,
            node_graph,
            trap_map=self.trap_map_for(step_sub_graph),
            submit_priority=self.submit_priority,
            config=self.config,
        )

    def make_node_name(self, node: FlowNode, total: int, ordinal: int) -> str:
        return f"({ordinal + 1}/{total})"

    def make_step_name(self, step: FlowStep, total: int, ordinal: int) -> str:
        sinks = [tap for tap in step.sink_taps if not tap.temporary]
        if not sinks:
            return f"({ordinal + 1}/{total})"

        identifier = sinks[0].identifier
        if len(identifier) > 25:
            identifier = f"...{identifier[-25:]}"

        return f"({ordinal + 1}/{total}) {identifier}"
