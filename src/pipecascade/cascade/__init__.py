from .connector import (
    CascadeConnector,
    make_flow_graph,
    make_identifier_graph,
    unwrap_composite_taps,
    verify_no_cycles,
)
from .core import Cascade, CascadeJob, CascadeListener
from .definition import CascadeDef
from .graphs import FlowEdge, FlowGraph, FlowHolder, IdentifierGraph

__all__ = [
    "Cascade",
    "CascadeConnector",
    "CascadeDef",
    "CascadeJob",
    "CascadeListener",
    "FlowEdge",
    "FlowGraph",
    "FlowHolder",
    "IdentifierGraph",
    "make_flow_graph",
    "make_identifier_graph",
    "unwrap_composite_taps",
    "verify_no_cycles",
]
