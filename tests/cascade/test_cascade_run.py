"""
Running cascades of small in-memory flows
"""

import threading

import pytest

from helpers import copy_flow, failing
from pipecascade.cancel import CancellationContext
from pipecascade.cascade import CascadeConnector, CascadeDef, CascadeListener
from pipecascade.exceptions import CascadeException, FlowException
from pipecascade.flow import CallableFlow, FlowSkipIfSinkExists
from pipecascade.stats import Status
from pipecascade.tap import MemoryTap


class Events(CascadeListener):
    def __init__(self, handle: bool = False):
        self.handle = handle
        self.events: list[str] = []

    def on_starting(self, cascade):
        self.events.append("starting")

    def on_stopping(self, cascade):
        self.events.append("stopping")

    def on_completed(self, cascade):
        self.events.append("completed")

    def on_throwable(self, cascade, throwable):
        self.events.append("throwable")
        return self.handle


def chain(*names, fn=None, **kwargs):
    """Flows each reading the sink of the previous one, the first reading an existing tap"""
    taps = [MemoryTap("r0", records=[0], modified=100)] + [MemoryTap(f"r{i}") for i in range(1, len(names) + 1)]
    return [copy_flow(name, taps[i], taps[i + 1], fn=fn, **kwargs) for i, name in enumerate(names)], taps


def test_flows_run_in_order(recorder):
    flows, taps = chain("P1", "P2", "P3", fn=recorder)
    events = Events()
    cascade = CascadeConnector().connect(*reversed(flows))
    cascade.add_listener(events)

    cascade.complete()
    assert recorder.started == ["P1", "P2", "P3"]
    assert taps[-1].read() == ["P3"]
    assert cascade.cascade_stats.is_successful()
    assert cascade.cascade_stats.count(Status.successful) == 3
    assert all(flow.flow_stats.is_successful() for flow in flows)
    assert events.events == ["starting", "completed"]


def test_skipped_flow_does_not_fail_dependents():
    source = MemoryTap("source", records=[1], modified=100)
    up_to_date = MemoryTap("up-to-date", records=[1], modified=200)
    out = MemoryTap("out")
    produced = []
    flow1 = copy_flow("Flow1", source, up_to_date, fn=lambda f: produced.append(f.name))
    flow2 = copy_flow("Flow2", up_to_date, out)

    cascade = CascadeConnector().connect(flow1, flow2)
    cascade.complete()

    assert produced == []
    assert flow1.flow_stats.is_skipped()
    assert flow2.flow_stats.is_successful()
    assert out.read() == [1]
    assert cascade.cascade_stats.is_successful()


def test_failure_halts_downstream_flows():
    flows, _ = chain("P1", "P2", "P3")
    flows[0].fn = failing
    events = Events()
    cascade = CascadeConnector().connect(*flows)
    cascade.add_listener(events)

    with pytest.raises(CascadeException, match="flow failed: P1") as excinfo:
        cascade.complete()

    cause = excinfo.value.__cause__
    assert isinstance(cause, FlowException)
    assert isinstance(cause.__cause__, RuntimeError)
    assert cascade.cascade_stats.is_failed()
    assert flows[0].flow_stats.is_failed()
    assert flows[1].flow_stats.is_pending()
    assert flows[2].flow_stats.is_pending()
    assert events.events == ["starting", "throwable", "completed"]


def test_handled_failure_is_not_raised():
    flows, _ = chain("P1", "P2")
    flows[0].fn = failing
    cascade = CascadeConnector().connect(*flows)
    cascade.add_listener(Events(handle=True))

    cascade.complete()
    assert cascade.cascade_stats.is_failed()
    assert flows[1].flow_stats.is_pending()


def test_independent_flows_share_the_pool(recorder):
    (flow1, flow2), _ = chain("Flow1", "Flow2", fn=recorder)
    flow3 = copy_flow("Flow3", MemoryTap("r4", records=[1], modified=100), MemoryTap("r5"), fn=recorder)

    cascade = CascadeConnector().connect_def(
        CascadeDef().add_flows([flow1, flow2, flow3]).set_max_concurrent_flows(2)
    )
    cascade.complete()

    assert sorted(recorder.started) == ["Flow1", "Flow2", "Flow3"]
    assert frozenset(("Flow1", "Flow2")) not in recorder.overlaps
    assert recorder.started.index("Flow1") < recorder.started.index("Flow2")
    # the unrelated flow takes the second slot next to one of the chain
    assert frozenset(("Flow1", "Flow3")) in recorder.overlaps or frozenset(("Flow2", "Flow3")) in recorder.overlaps
    assert cascade.cascade_stats.is_successful()


def test_local_flows_run_one_at_a_time(recorder):
    flows = [
        copy_flow(f"L{i}", MemoryTap(f"in-{i}", records=[1], modified=100), MemoryTap(f"out-{i}"), fn=recorder, local=True)
        for i in range(3)
    ]
    cascade = CascadeConnector().connect(*flows)
    cascade.complete()

    assert sorted(recorder.started) == ["L0", "L1", "L2"]
    assert recorder.overlaps == set()


def test_cascade_skip_strategy_overrides_flows():
    flows, taps = chain("P1", "P2")
    taps[1].write(["stale"], modified=50)
    cascade = CascadeConnector().connect(*flows)
    cascade.flow_skip_strategy = FlowSkipIfSinkExists()
    cascade.complete()

    assert flows[0].flow_stats.is_skipped()
    assert flows[1].flow_stats.is_successful()
    assert taps[2].read() == ["stale"]


def test_stop_is_idempotent():
    started = threading.Event()

    def wait_for_stop(flow: CallableFlow) -> None:
        started.set()
        flow.stop_event.wait(10)

    flows, _ = chain("P1", "P2", fn=wait_for_stop)
    events = Events()
    cascade = CascadeConnector().connect(*flows)
    cascade.add_listener(events)
    cascade.start()
    assert started.wait(10)

    cascade.stop()
    cascade.stop()
    cascade.complete()

    assert cascade.is_stop_requested()
    assert cascade.cascade_stats.is_stopped()
    assert flows[0].flow_stats.is_stopped()
    assert flows[1].flow_stats.is_pending()
    assert events.events.count("stopping") == 1


def test_stop_before_start():
    flows, _ = chain("P1")
    ran = []
    flows[0].fn = lambda f: ran.append(f.name)
    cascade = CascadeConnector().connect(*flows)
    cascade.stop()
    cascade.complete()
    assert ran == []
    assert cascade.cascade_stats.is_stopped()


def test_cancellation_registered_during_run():
    context = CancellationContext()
    seen = []
    flows, _ = chain("P1", fn=lambda f: seen.append(context.registered()))
    cascade = CascadeConnector().connect(*flows)
    cascade.cancellation = context

    cascade.complete()
    assert seen == [1]
    assert context.registered() == 0


def test_cancellation_disabled_by_properties():
    context = CancellationContext()
    seen = []
    flows, _ = chain("P1", fn=lambda f: seen.append(context.registered()))
    cascade = CascadeConnector({"pipecascade.flow.stopjobsonexit": "false"}).connect(*flows)
    cascade.cancellation = context

    cascade.complete()
    assert seen == [0]


def test_cancel_stops_a_running_cascade():
    context = CancellationContext()
    started = threading.Event()

    def wait_for_stop(flow: CallableFlow) -> None:
        started.set()
        flow.stop_event.wait(10)

    flows, _ = chain("P1", fn=wait_for_stop)
    cascade = CascadeConnector().connect(*flows)
    cascade.cancellation = context
    cascade.start()
    assert started.wait(10)

    context.cancel()
    cascade.complete()
    assert cascade.cascade_stats.is_stopped()
    assert flows[0].stop_event.is_set()


def test_tap_listeners_are_registered():
    class ListeningTap(MemoryTap, CascadeListener):
        pass

    tap = ListeningTap("listening")
    flow = copy_flow("P1", MemoryTap("in", records=[1], modified=100), tap)
    cascade = CascadeConnector().connect(flow)
    assert cascade.has_listeners()
    assert cascade.remove_listener(tap)
    assert not cascade.has_listeners()
