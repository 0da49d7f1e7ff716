"""
Common model of a unit of work, shared by nodes and steps
"""

import uuid
from enum import Enum
from functools import cached_property
from typing import Mapping

from pipecascade.exceptions import PlannerException
from pipecascade.graph.element_graph import ElementGraph, find_sinks, find_sources
from pipecascade.graph.elements import FlowElement, Group
from pipecascade.tap import Tap


class ProcessModel:
    """A unit of work owning a sub-graph of elements

    The id is fixed at creation. Name and ordinal are assigned once by the
    owning process graph after all of its vertices are known; source and sink
    elements are computed on first access and never invalidated, the element
    graph being read-only from then on.
    """

    submit_priority: int = 0

    def __init__(
        self,
        element_graph: ElementGraph,
        trap_map: Mapping[str, Tap] | None = None,
        submit_priority: int | None = None,
    ):
        self.id = uuid.uuid4().hex
        self.name: str | None = None
        self.ordinal: int = -1
        self.element_graph = element_graph
        self.trap_map: dict[str, Tap] = dict(trap_map or {})
        if submit_priority is not None:
            self.submit_priority = submit_priority
        self.process_annotations: dict[Enum | str, str] = {}

    def assign(self, name: str, ordinal: int) -> None:
        if self.ordinal != -1:
            raise PlannerException(f"{self!r} already assigned ordinal {self.ordinal}")
        self.name = name
        self.ordinal = ordinal

    @cached_property
    def source_elements(self) -> tuple[FlowElement, ...]:
        return tuple(find_sources(self.element_graph))

    @cached_property
    def sink_elements(self) -> tuple[FlowElement, ...]:
        return tuple(find_sinks(self.element_graph))

    @cached_property
    def source_taps(self) -> tuple[Tap, ...]:
        return tuple(e for e in self.source_elements if isinstance(e, Tap))

    @cached_property
    def sink_taps(self) -> tuple[Tap, ...]:
        return tuple(e for e in self.sink_elements if isinstance(e, Tap))

    @property
    def traps(self) -> list[Tap]:
        return list(self.trap_map.values())

    @property
    def groups(self) -> list[Group]:
        return [e for e in self.element_graph.vertex_set() if isinstance(e, Group)]

    def element_count(self) -> int:
        return self.element_graph.vertex_count()

    def contains_element(self, element: FlowElement) -> bool:
        return self.element_graph.contains_vertex(element)

    def add_process_annotation(self, key: Enum | str, value: str = "") -> None:
        self.process_annotations[key] = value

    def is_identity(self) -> bool:
        """True if the process holds nothing but the elements it passes through"""
        size = len(self.element_graph.elements())
        return size == len(self.source_elements) + len(self.sink_elements)

    def __repr__(self) -> str:
        label = self.name if self.name is not None else self.id[:8]
        return f"<{self.__class__.__name__} {label!r}>"
