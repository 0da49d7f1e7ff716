from typing import TYPE_CHECKING, Mapping, Sequence

from pipecascade.graph.element_graph import ElementGraph, find_sources
from pipecascade.graph.elements import FlowElement
from pipecascade.planner.process import ProcessModel
from pipecascade.planner.process_graph import BaseProcessGraph
from pipecascade.tap import Tap

if TYPE_CHECKING:
    from pipecascade.planner.factory import ProcessFactory
    from pipecascade.planner.step import FlowStep


def node_order_key(node: ProcessModel) -> tuple[int, int]:
    """Bigger nodes first, then nodes with more inputs

    Only decides between nodes free to go at the same time; nodes of one step
    run as a single job, so this shapes naming and submission order only.
    """
    return (-node.element_count(), -len(node.source_elements))


class FlowNode(ProcessModel):
    """Finest unit of work, one physical worker task"""

    submit_priority = 0

    def __init__(
        self,
        element_graph: ElementGraph,
        pipeline_graphs: Sequence[ElementGraph] | None = None,
        trap_map: Mapping[str, Tap] | None = None,
    ):
        super().__init__(element_graph, trap_map)
        self.pipeline_graphs = list(pipeline_graphs or [])
        self.flow_step: "FlowStep | None" = None

    def pipeline_graph_for(self, source: FlowElement) -> ElementGraph | None:
        """The pipeline sub-graph streaming from the given source element, if any"""
        for pipeline_graph in self.pipeline_graphs:
            if source in find_sources(pipeline_graph):
                return pipeline_graph
        return None


class FlowNodeGraph(BaseProcessGraph[FlowNode]):
    """Nodes of a single step, related by the elements they hand to each other"""

    def __init__(
        self,
        factory: "ProcessFactory | None" = None,
        step_element_graph: ElementGraph | None = None,
        node_sub_graphs: Sequence[ElementGraph] | None = None,
        pipeline_sub_graphs_map: Mapping[ElementGraph, Sequence[ElementGraph]] | None = None,
    ):
        super().__init__()
        self.step_element_graph = step_element_graph
        if factory is not None:
            self._build_graph(factory, node_sub_graphs or [], pipeline_sub_graphs_map or {})

    def _build_graph(
        self,
        factory: "ProcessFactory",
        node_sub_graphs: Sequence[ElementGraph],
        pipeline_sub_graphs_map: Mapping[ElementGraph, Sequence[ElementGraph]],
    ) -> None:
        for node_sub_graph in node_sub_graphs:
            pipeline_graphs = pipeline_sub_graphs_map.get(node_sub_graph, [])
            self.add_vertex(factory.create_node(node_sub_graph, pipeline_graphs))

        self.bind_edges()
        self._assign_ordinals(factory.make_node_name, node_order_key)

    def step_duplicated_elements(self) -> set[FlowElement]:
        if self.step_element_graph is None:
            return set()
        return self.duplicated_elements(self.step_element_graph)
