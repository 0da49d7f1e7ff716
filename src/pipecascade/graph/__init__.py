from .digraph import DirectedMultigraph
from .dot import render_dot, to_dot, write_dot
from .element_graph import (
    AnnotatedElementGraph,
    ElementAnnotations,
    ElementGraph,
    annotations_of,
    find_all,
    find_sinks,
    find_sources,
    merge_annotations,
)
from .elements import Extent, FlowElement, Group, Pipe, Scope

__all__ = [
    "AnnotatedElementGraph",
    "DirectedMultigraph",
    "ElementAnnotations",
    "ElementGraph",
    "Extent",
    "FlowElement",
    "Group",
    "Pipe",
    "Scope",
    "annotations_of",
    "find_all",
    "find_sinks",
    "find_sources",
    "merge_annotations",
    "render_dot",
    "to_dot",
    "write_dot",
]
