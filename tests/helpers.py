import threading
import time

from pipecascade.flow.process_flow import CallableFlow
from pipecascade.graph.element_graph import ElementGraph
from pipecascade.graph.samplegraphs import union
from pipecascade.planner.factory import DefaultProcessFactory
from pipecascade.planner.step import FlowStepGraph
from pipecascade.tap import MemoryTap


class Recorder:
    """Records which flows ran and which of them overlapped in time"""

    def __init__(self, delay: float = 0.05):
        self.delay = delay
        self.lock = threading.Lock()
        self.running: set[str] = set()
        self.started: list[str] = []
        self.overlaps: set[frozenset[str]] = set()

    def __call__(self, flow: CallableFlow) -> None:
        with self.lock:
            for other in self.running:
                self.overlaps.add(frozenset((other, flow.name)))
            self.running.add(flow.name)
            self.started.append(flow.name)
        time.sleep(self.delay)
        for sink in flow.sinks.values():
            sink.write([flow.name])
        with self.lock:
            self.running.discard(flow.name)


def copy_flow(name: str, source: MemoryTap, sink: MemoryTap, fn=None, **kwargs) -> CallableFlow:
    def copy(flow: CallableFlow) -> None:
        sink.write(source.read())

    return CallableFlow(name, fn or copy, sources=[source], sinks=[sink], **kwargs)


def failing(flow: CallableFlow) -> None:
    raise RuntimeError(f"{flow.name} failed")


def single_node_steps(fragments: list[ElementGraph], **factory_kwargs) -> FlowStepGraph:
    """Step graph where each fragment is one step made of one node"""
    return FlowStepGraph(
        DefaultProcessFactory(**factory_kwargs),
        union(fragments),
        fragments,
        {fragment: [fragment] for fragment in fragments},
    )
