"""
Process graphs -- units of work related by the elements they share

Edges are never declared. They are discovered once all processes of a level
are present: a producer is joined to a consumer by one edge per element the
former sinks and the latter sources.
"""

import logging
from functools import cached_property
from typing import Any, Callable, Generic, Iterator, TypeVar

from pipecascade.exceptions import PlannerException
from pipecascade.graph import dot
from pipecascade.graph.digraph import DirectedMultigraph
from pipecascade.graph.element_graph import ElementAnnotations, ElementGraph, merge_annotations
from pipecascade.graph.elements import Extent, FlowElement, Scope
from pipecascade.planner.edge import ProcessEdge
from pipecascade.planner.process import ProcessModel
from pipecascade.tap import Tap

logger = logging.getLogger(__name__)

P = TypeVar("P", bound=ProcessModel)

NamingFunction = Callable[[P, int, int], str]


def submit_priority_key(process: ProcessModel) -> int:
    return process.submit_priority


def ordinal_key(process: ProcessModel) -> int:
    return process.ordinal


class BaseProcessGraph(DirectedMultigraph[P, ProcessEdge[P]], Generic[P]):
    def __init__(self) -> None:
        super().__init__(allow_loops=False, allow_parallel=True)
        self._source_elements: dict[FlowElement, None] = {}
        self._sink_elements: dict[FlowElement, None] = {}
        self._traps_map: dict[str, Tap] = {}
        self._bound = False

    def add_vertex(self, process: P) -> bool:
        if self._bound:
            raise PlannerException(f"edges already bound, cannot add {process!r}")
        for element in process.source_elements:
            self._source_elements[element] = None
        for element in process.sink_elements:
            self._sink_elements[element] = None
        self._traps_map.update(process.trap_map)
        return super().add_vertex(process)

    def bind_edges(self) -> None:
        """Discover every process edge and narrow the graph level sources and sinks

        Must run once, after all processes are added.
        """
        if self._bound:
            raise PlannerException("edges already bound")
        self._bound = True
        processes = self.vertex_set()
        for producer in processes:
            for consumer in processes:
                if producer is consumer:
                    continue

                # whatever survives all pairs is an outer source or sink of this graph
                for element in producer.sink_elements:
                    self._source_elements.pop(element, None)
                for element in consumer.source_elements:
                    self._sink_elements.pop(element, None)

                consumed = set(consumer.source_elements)
                for element in producer.sink_elements:
                    if element in consumed:
                        self.add_edge(producer, consumer, ProcessEdge(producer, element, consumer))

        logger.debug(f"bound {self.edge_count()} edges between {self.vertex_count()} processes")

    def _assign_ordinals(self, naming: NamingFunction, key: Callable[[P], Any]) -> None:
        """Enumerate processes in ``key`` ordered topological order, then name them"""
        ordered = list(self.ordered_topological_iterator(key))
        if len(ordered) != self.vertex_count():
            raise PlannerException("process graph has cycles, cannot assign ordinals")
        total = len(ordered)
        for ordinal, process in enumerate(ordered):
            process.assign(naming(process, total, ordinal), ordinal)

    # graph level bookkeeping

    @property
    def source_elements(self) -> frozenset[FlowElement]:
        return frozenset(self._source_elements)

    @property
    def sink_elements(self) -> frozenset[FlowElement]:
        return frozenset(self._sink_elements)

    @cached_property
    def source_taps(self) -> frozenset[Tap]:
        self._require_bound("source taps")
        return frozenset(e for e in self._source_elements if isinstance(e, Tap))

    @cached_property
    def sink_taps(self) -> frozenset[Tap]:
        self._require_bound("sink taps")
        return frozenset(e for e in self._sink_elements if isinstance(e, Tap))

    def _require_bound(self, what: str) -> None:
        # outer sources and sinks are only known once every pair was visited
        if not self._bound:
            raise PlannerException(f"edges not bound yet, {what} unknown")

    @property
    def traps_map(self) -> dict[str, Tap]:
        return self._traps_map

    # iteration

    def topological_iterator(self, key: Callable[[P], Any] | None = None) -> Iterator[P]:
        return super().topological_iterator(key if key is not None else submit_priority_key)

    def ordinal_topological_iterator(self) -> Iterator[P]:
        return self.ordered_topological_iterator(ordinal_key)

    def ordered_topological_iterator(self, key: Callable[[P], Any]) -> Iterator[P]:
        return super().topological_iterator(key)

    def ordered_processes(self) -> list[P]:
        return sorted(self.vertex_set(), key=ordinal_key)

    # element queries

    def element_processes(self, element: FlowElement) -> list[P]:
        return [p for p in self.vertex_set() if p.element_graph.contains_vertex(element)]

    def element_graphs(self, element: FlowElement) -> list[ElementGraph]:
        return [p.element_graph for p in self.element_processes(element)]

    def scope_processes(self, scope: Scope) -> list[P]:
        return [p for p in self.vertex_set() if p.element_graph.contains_edge(scope)]

    def element_source_processes(self, element: FlowElement) -> list[P]:
        """Processes producing the element"""
        return [p for p in self.vertex_set() if element in p.sink_elements]

    def element_sink_processes(self, element: FlowElement) -> list[P]:
        """Processes consuming the element"""
        return [p for p in self.vertex_set() if element in p.source_elements]

    def all_source_elements(self) -> set[FlowElement]:
        rv: set[FlowElement] = set()
        for process in self.vertex_set():
            rv.update(process.source_elements)
        return rv

    def all_sink_elements(self) -> set[FlowElement]:
        rv: set[FlowElement] = set()
        for process in self.vertex_set():
            rv.update(process.sink_elements)
        return rv

    def annotations(self) -> ElementAnnotations:
        rv: ElementAnnotations = {}
        for process in self.vertex_set():
            annotations = process.element_graph.annotations
            if annotations:
                merge_annotations(rv, annotations)
        return rv

    def duplicated_elements(self, element_graph: ElementGraph) -> set[FlowElement]:
        """Elements of the given graph held by two or more processes

        Elements joining processes (any process's sources or sinks) and the head
        and tail sentinels are expected to be shared and are left out.
        """
        rv = {
            element
            for element in element_graph.vertex_set()
            if not isinstance(element, Extent) and len(self.element_processes(element)) > 1
        }
        rv -= self.all_source_elements()
        rv -= self.all_sink_elements()
        return rv

    def identity_processes(self) -> list[P]:
        return [p for p in self.vertex_set() if p.is_identity()]

    def identity_element_graphs(self) -> list[ElementGraph]:
        return [p.element_graph for p in self.identity_processes()]

    # diagnostics

    def to_dot(self) -> str:
        return dot.to_dot(self, vertex_label=process_label, edge_label=lambda e: str(e.flow_element))

    def write_dot(self, filename: str) -> None:
        logger.debug(f"writing process graph to {filename}")
        dot.write_dot(filename, self.to_dot())


def process_label(process: ProcessModel) -> str:
    label = f"[{process.name}]"
    for source in process.source_taps:
        label += f"\nsrc:[{source.identifier}]"
    for group in process.groups:
        if group.name:
            label += f"\ngrp:{group.name}"
    for sink in process.sink_taps:
        label += f"\nsnk:[{sink.identifier}]"
    return label.replace('"', "'")
