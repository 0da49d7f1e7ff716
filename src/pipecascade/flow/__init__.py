from .core import BaseFlow, Flow, FlowListener, SafeListener, get_sink_modified, get_source_modified
from .planned import CallableStepRunner, PlannedFlow, StepJob, StepRunner
from .process_flow import CallableFlow
from .skip import FlowSkipIfSinkExists, FlowSkipIfSinkNotStale, FlowSkipStrategy

__all__ = [
    "BaseFlow",
    "CallableFlow",
    "CallableStepRunner",
    "Flow",
    "FlowListener",
    "FlowSkipIfSinkExists",
    "FlowSkipIfSinkNotStale",
    "FlowSkipStrategy",
    "PlannedFlow",
    "SafeListener",
    "StepJob",
    "StepRunner",
    "get_sink_modified",
    "get_source_modified",
]
