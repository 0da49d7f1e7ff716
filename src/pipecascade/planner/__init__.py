from .edge import ProcessEdge
from .factory import DefaultProcessFactory, ProcessFactory
from .node import FlowNode, FlowNodeGraph, node_order_key
from .process import ProcessModel
from .process_graph import BaseProcessGraph, ordinal_key, submit_priority_key
from .step import FlowStep, FlowStepGraph

__all__ = [
    "BaseProcessGraph",
    "DefaultProcessFactory",
    "FlowNode",
    "FlowNodeGraph",
    "FlowStep",
    "FlowStepGraph",
    "ProcessEdge",
    "ProcessFactory",
    "ProcessModel",
    "node_order_key",
    "ordinal_key",
    "submit_priority_key",
]
