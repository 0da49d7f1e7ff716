"""
Interactive rendering of process graphs and cascades with PyVis

Requires the `viz` extra.
"""

import json
from typing import Any, Callable, ParamSpec, cast

from pyvis.network import Network

from .cascade.core import Cascade
from .graph.digraph import DirectedMultigraph
from .planner.process import ProcessModel
from .planner.process_graph import BaseProcessGraph

_P = ParamSpec("_P")


def _make_attr_func(attr: dict | Callable[_P, dict] | None) -> Callable[_P, dict]:
    if attr is None:
        return cast(Callable[_P, dict], lambda *args: {})
    if isinstance(attr, dict):
        return cast(Callable[_P, dict], lambda *args: attr)
    return attr


def hierarchical_layout_options() -> dict:
    return {
        "layout": {
            "hierarchical": {
                "enabled": True,
                "direction": "LR",
                "sortMethod": "directed",
                "shakeTowards": "roots",
            }
        }
    }


def process_info(process: ProcessModel) -> dict:
    """Sources, sinks and groups of the process as node title"""
    lines = [f"Ordinal: {process.ordinal}"]
    lines.extend(f"Source: {element}" for element in process.source_elements)
    lines.extend(f"Group: {group.name}" for group in process.groups)
    lines.extend(f"Sink: {element}" for element in process.sink_elements)
    info: dict[str, Any] = {"title": "\n".join(lines), "color": "#648FFF"}
    if process.is_identity():
        info["shape"] = "box"
        info["color"] = "#FFB000"
    return info


def process_edge_info(edge) -> dict:
    return {"title": f"Element: {edge.flow_element}\nOut: {sorted(edge.outgoing_ordinals)}\nIn: {sorted(edge.incoming_ordinals)}"}


def to_pyvis(
    graph: DirectedMultigraph,
    vertex_name: Callable[[Any], str] = str,
    vertex_attrs: dict | Callable[[Any], dict] | None = None,
    edge_attrs: dict | Callable[[Any], dict] | None = None,
    hierarchical_layout: bool = True,
    **kwargs: Any,
) -> Network:
    """Convert a graph to a PyVis network

    Parameters
    ----------
    graph: DirectedMultigraph
        Input graph
    vertex_name: (vertex -> str)
        Unique node id of each vertex
    vertex_attrs: None | dict | (vertex -> dict)
        Node attributes, or function to set per-node attributes
    edge_attrs: None | dict | (edge -> dict)
        Edge attributes, or function to set per-edge attributes
    hierarchical_layout:
        If True, request a hierarchical layout
    **kwargs
        Passed to the `pyvis.Network` constructor
    """
    vertex_func = _make_attr_func(vertex_attrs)
    edge_func = _make_attr_func(edge_attrs)
    net = Network(directed=True, **kwargs)
    for vertex in graph.vertex_set():
        net.add_node(vertex_name(vertex), **vertex_func(vertex))
    for edge in graph.edge_set():
        net.add_edge(vertex_name(graph.edge_source(edge)), vertex_name(graph.edge_target(edge)), **edge_func(edge))
    if hierarchical_layout:
        net.set_options(json.dumps(hierarchical_layout_options()))
    return net


def visualise(graph: BaseProcessGraph, dest: str, **kwargs):
    """Visualise a node or step graph, returns the Jupyter IFrame"""
    gv = to_pyvis(
        graph,
        vertex_name=lambda process: process.name or process.id,
        vertex_attrs=process_info,
        edge_attrs=process_edge_info,
        notebook=True,
        **kwargs,
    )
    return gv.show(dest)


def visualise_cascade(cascade: Cascade, dest: str, **kwargs):
    """Visualise the flows of a cascade, edges titled with the resource joining them"""
    gv = to_pyvis(
        cascade.flow_graph,
        vertex_name=lambda flow: flow.name,
        vertex_attrs=lambda flow: {
            "title": "\n".join([f"Source: {k}" for k in flow.sources] + [f"Sink: {k}" for k in flow.sinks])
        },
        edge_attrs=lambda edge: {"title": edge.identifier},
        notebook=True,
        **kwargs,
    )
    return gv.show(dest)
