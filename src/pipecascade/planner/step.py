import logging
from typing import TYPE_CHECKING, Any, Mapping, Sequence

from pipecascade.graph.element_graph import AnnotatedElementGraph, ElementGraph
from pipecascade.planner.node import FlowNode, FlowNodeGraph
from pipecascade.planner.process import ProcessModel
from pipecascade.planner.process_graph import BaseProcessGraph, submit_priority_key
from pipecascade.tap import Tap

if TYPE_CHECKING:
    from pipecascade.planner.factory import ProcessFactory

logger = logging.getLogger(__name__)


class FlowStep(ProcessModel):
    """Coarse unit of work composed of a graph of nodes, one submitted job"""

    submit_priority = 5

    def __init__(
        self,
        element_graph: ElementGraph,
        node_graph: FlowNodeGraph,
        trap_map: Mapping[str, Tap] | None = None,
        submit_priority: int | None = None,
        config: Mapping[str, Any] | None = None,
    ):
        super().__init__(element_graph, trap_map, submit_priority)
        self.node_graph = node_graph
        self.config: dict[str, Any] = dict(config or {})
        for node in node_graph.vertex_set():
            node.flow_step = self

    @property
    def nodes(self) -> list[FlowNode]:
        return self.node_graph.ordered_processes()

    def node_count(self) -> int:
        return self.node_graph.vertex_count()


class FlowStepGraph(BaseProcessGraph[FlowStep]):
    """Steps of a flow, related by the elements they hand to each other

    Built from the planner's step sub-graphs; each one is decomposed further
    into a node graph through ``node_sub_graphs_map``.
    """

    def __init__(
        self,
        factory: "ProcessFactory | None" = None,
        flow_element_graph: ElementGraph | None = None,
        step_sub_graphs: Sequence[ElementGraph] | None = None,
        node_sub_graphs_map: Mapping[ElementGraph, Sequence[ElementGraph]] | None = None,
        pipeline_sub_graphs_map: Mapping[ElementGraph, Sequence[ElementGraph]] | None = None,
    ):
        super().__init__()
        self.flow_element_graph = flow_element_graph
        if factory is not None:
            self._build_graph(
                factory,
                step_sub_graphs or [],
                node_sub_graphs_map or {},
                pipeline_sub_graphs_map or {},
            )

    def _build_graph(
        self,
        factory: "ProcessFactory",
        step_sub_graphs: Sequence[ElementGraph],
        node_sub_graphs_map: Mapping[ElementGraph, Sequence[ElementGraph]],
        pipeline_sub_graphs_map: Mapping[ElementGraph, Sequence[ElementGraph]],
    ) -> None:
        for step_sub_graph in step_sub_graphs:
            node_sub_graphs = node_sub_graphs_map.get(step_sub_graph, [])
            node_graph = factory.create_node_graph(step_sub_graph, node_sub_graphs, pipeline_sub_graphs_map)

            annotations = node_graph.annotations()
            if annotations:
                step_sub_graph = AnnotatedElementGraph(step_sub_graph, annotations)

            self.add_vertex(factory.create_step(step_sub_graph, node_graph))

        self.bind_edges()
        self._assign_ordinals(factory.make_step_name, submit_priority_key)

        logger.debug(f"built {self.vertex_count()} steps, {sum(s.node_count() for s in self.vertex_set())} nodes")

    def find_step(self, name: str) -> FlowStep:
        """Raises `KeyError` if not found"""
        for step in self.vertex_set():
            if step.name == name:
                return step
        raise KeyError(name)

    def is_local(self) -> bool:
        return all(step.config.get("local", False) for step in self.vertex_set())
