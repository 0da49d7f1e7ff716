"""
The cascade runs a graph of flows, each flow once its predecessors succeeded

One `CascadeJob` is built per flow, in topological order, and all of them are
submitted to a bounded thread pool. A job blocks on the jobs of its predecessor
flows; if any of them did not succeed it finishes without running its flow. A
flow found up to date by the skip strategy counts as succeeded. The first failed
flow marks the cascade failed and stops all other jobs.
"""

import logging
import re
import threading
import uuid
from functools import cached_property
from typing import Any, Iterable, Mapping

from pipecascade.cancel import CancellationContext
from pipecascade.cascade.graphs import FlowGraph, IdentifierGraph
from pipecascade.config import CascadeProps, log_prefix
from pipecascade.exceptions import CascadeException, CascadingException
from pipecascade.flow.core import Flow, SafeListener
from pipecascade.flow.skip import FlowSkipStrategy
from pipecascade.graph.dot import to_dot, write_dot
from pipecascade.job import UnitOfWorkJob
from pipecascade.spawn import SHUTDOWN_GRACE_SECONDS, ThreadPoolSpawnStrategy, UnitOfWorkSpawnStrategy
from pipecascade.stats import CascadeStats
from pipecascade.tap import Tap

logger = logging.getLogger(__name__)


class CascadeListener:
    """Callbacks on the lifecycle of a cascade

    Subclass and override what is needed. Taps of the cascade's flows that are
    cascade listeners get registered automatically.
    """

    def on_starting(self, cascade: "Cascade") -> None:
        pass

    def on_stopping(self, cascade: "Cascade") -> None:
        pass

    def on_completed(self, cascade: "Cascade") -> None:
        pass

    def on_throwable(self, cascade: "Cascade", throwable: BaseException) -> bool:
        return False


class CascadeJob(UnitOfWorkJob):
    def __init__(self, cascade: "Cascade", flow: Flow):
        super().__init__(flow.name)
        self.cascade = cascade
        self.flow = flow

    def _is_cancelled(self) -> bool:
        return self.cascade.cascade_stats.is_finished()

    def _execute(self) -> BaseException | None:
        cascade, flow = self.cascade, self.flow
        try:
            cascade._log_info(f"starting flow: {flow.name}")

            if cascade.flow_skip_strategy is not None:
                skip = cascade.flow_skip_strategy.skip_flow(flow)
            else:
                skip = flow.is_skip_flow()
            if skip:
                cascade._log_info(f"skipping flow: {flow.name}")
                flow.flow_stats.mark_skipped()
                flow.fire_on_completed()
                return None

            flow.prepare()
            flow.complete()

            cascade._log_info(f"completed flow: {flow.name}")
        except Exception as e:
            logger.warning(f"{log_prefix(cascade.name)} flow failed: {flow.name}, {repr(e)}")
            failure = CascadeException(f"flow failed: {flow.name}")
            failure.__cause__ = e
            if not cascade.cascade_stats.is_finished():
                cascade.cascade_stats.mark_failed(failure)
            return failure
        finally:
            flow.cleanup()
        return None

    def _abandon(self, predecessor: UnitOfWorkJob) -> None:
        self.cascade._log_info(f"not starting flow: {self.name}, predecessor did not complete: {predecessor.name}")

    def _on_stop(self) -> None:
        self.flow.stop()


class Cascade:
    """Scheduler of a verified, acyclic graph of flows, built by `CascadeConnector`

    Parameters
    ----------
    name: str
    flow_graph: FlowGraph
        Flows and their dependencies
    identifier_graph: IdentifierGraph
        Resources of the flows, joined by the flows reading and writing them
    props: CascadeProps
        Width of the pool and exit behaviour, read from `properties` if not given
    cancellation: CancellationContext
        If given, and flows are to be stopped on exit, `stop` is registered with
        it for the duration of a run
    flow_skip_strategy: FlowSkipStrategy
        Overrides the skip strategy of every flow
    """

    def __init__(
        self,
        name: str,
        flow_graph: FlowGraph,
        identifier_graph: IdentifierGraph,
        props: CascadeProps | None = None,
        properties: Mapping[str, Any] | None = None,
        tags: Iterable[str] | None = None,
        cancellation: CancellationContext | None = None,
        flow_skip_strategy: FlowSkipStrategy | None = None,
        spawn_strategy: UnitOfWorkSpawnStrategy | None = None,
    ):
        self.id = uuid.uuid4().hex
        self.name = name
        self.tags = set(tags or ())
        self.properties: dict[str, Any] = dict(properties or {})
        self.props = props if props is not None else CascadeProps.from_properties(self.properties)
        self.flow_graph = flow_graph
        self.identifier_graph = identifier_graph
        self.cancellation = cancellation
        self.flow_skip_strategy = flow_skip_strategy
        self.spawn_strategy = spawn_strategy or ThreadPoolSpawnStrategy()
        self.cascade_stats = CascadeStats(name)
        self.listeners: list[SafeListener] = []
        self.jobs: dict[str, CascadeJob] = {}
        self.throwable: BaseException | None = None
        self._jobs_lock = threading.Lock()
        self._lock = threading.Lock()
        self._stop_lock = threading.RLock()
        self._thread: threading.Thread | None = None
        self._stop = False
        self._cancellation_handle: int | None = None

        for tap in self.all_taps():
            if isinstance(tap, CascadeListener):
                self.add_listener(tap)

    def __repr__(self) -> str:
        return f"<Cascade {self.name!r}, flows: {self.flow_graph.vertex_count()}>"

    def _log_info(self, message: str) -> None:
        logger.info(f"{log_prefix(self.name)} {message}")

    # listeners

    def add_listener(self, listener: CascadeListener) -> None:
        self.listeners.append(SafeListener(listener, self.stop))

    def remove_listener(self, listener: CascadeListener) -> bool:
        for safe in self.listeners:
            if safe.listener is listener:
                self.listeners.remove(safe)
                return True
        return False

    def has_listeners(self) -> bool:
        return bool(self.listeners)

    def _fire(self, event: str) -> None:
        for listener in list(self.listeners):
            getattr(listener, event)(self)

    def _fire_on_throwable(self, throwable: BaseException) -> bool:
        handled = False
        for listener in list(self.listeners):
            handled = listener.on_throwable(self, throwable) or handled
        return handled

    # flows

    def flows(self) -> list[Flow]:
        """All flows, in the order they are submitted"""
        return list(self.flow_graph.topological_iterator())

    def find_flows(self, regex: str) -> list[Flow]:
        pattern = re.compile(regex)
        return [flow for flow in self.flows() if pattern.fullmatch(flow.name)]

    def head_flows(self) -> list[Flow]:
        return [flow for flow in self.flows() if self.flow_graph.in_degree(flow) == 0]

    def tail_flows(self) -> list[Flow]:
        return [flow for flow in self.flows() if self.flow_graph.out_degree(flow) == 0]

    def intermediate_flows(self) -> list[Flow]:
        return [
            flow
            for flow in self.flows()
            if self.flow_graph.in_degree(flow) > 0 and self.flow_graph.out_degree(flow) > 0
        ]

    def successor_flows(self, flow: Flow) -> list[Flow]:
        return self.flow_graph.successors(flow)

    def predecessor_flows(self, flow: Flow) -> list[Flow]:
        return self.flow_graph.predecessors(flow)

    def find_flows_sourcing_from(self, identifier: str) -> list[Flow]:
        if identifier not in self.identifier_graph:
            return []
        return list({holder.flow: None for holder in self.identifier_graph.outgoing_edges_of(identifier)})

    def find_flows_sinking_to(self, identifier: str) -> list[Flow]:
        if identifier not in self.identifier_graph:
            return []
        return list({holder.flow: None for holder in self.identifier_graph.incoming_edges_of(identifier)})

    # taps

    @cached_property
    def _taps(self) -> dict[str, Tap]:
        rv: dict[str, Tap] = {}
        for flow in self.flow_graph.vertex_set():
            for tap in [*flow.sources.values(), *flow.sinks.values(), *flow.checkpoints.values()]:
                for child in tap.child_taps():
                    rv.setdefault(child.full_identifier(flow.config), child)
        return rv

    def all_taps(self) -> list[Tap]:
        return list(self._taps.values())

    def source_taps(self) -> list[Tap]:
        return [tap for identifier, tap in self._taps.items() if self.identifier_graph.in_degree(identifier) == 0]

    def sink_taps(self) -> list[Tap]:
        return [tap for identifier, tap in self._taps.items() if self.identifier_graph.out_degree(identifier) == 0]

    def intermediate_taps(self) -> list[Tap]:
        return [
            tap
            for identifier, tap in self._taps.items()
            if self.identifier_graph.in_degree(identifier) > 0 and self.identifier_graph.out_degree(identifier) > 0
        ]

    def checkpoint_taps(self) -> list[Tap]:
        rv: dict[Tap, None] = {}
        for flow in self.flows():
            for tap in flow.checkpoints.values():
                rv[tap] = None
        return list(rv)

    # lifecycle

    def prepare(self) -> None:
        pass

    def cleanup(self) -> None:
        pass

    def start(self) -> None:
        """Runs the cascade on a background thread; further calls are no-ops"""
        with self._lock:
            if self._thread is not None:
                return
            self._thread = threading.Thread(target=self._run, name=f"cascade {self.name}", daemon=True)
            self._thread.start()

    def complete(self) -> None:
        """Starts the cascade if needed and blocks until it finished

        Raises the first failure of the run, a `CascadingException` as-is, anything
        else wrapped in a `CascadeException`.
        """
        self.start()
        thread = self._thread
        if thread is not None:
            thread.join()

        try:
            throwable, self.throwable = self.throwable, None
            if isinstance(throwable, CascadingException):
                raise throwable
            if throwable is not None:
                raise CascadeException(f"unhandled exception in cascade: {self.name}") from throwable
            for listener in self.listeners:
                if listener.throwable is not None:
                    raise CascadeException(
                        f"unhandled listener exception in cascade: {self.name}"
                    ) from listener.throwable
        finally:
            self.cascade_stats.cleanup()

    def stop(self) -> None:
        """Stops all flows, idempotent and safe to call from any thread"""
        with self._stop_lock:
            if self._stop:
                return
            self._stop = True
            self._fire("on_stopping")
            if not self.cascade_stats.is_finished():
                self.cascade_stats.mark_stopped()
            self._internal_stop_all_flows()
            self._handle_executor_shutdown()
            self.cascade_stats.cleanup()

    def is_stop_requested(self) -> bool:
        return self._stop

    def _run(self) -> None:
        self._log_info("starting")
        self._register_cancellation()
        try:
            if self._stop:
                return

            self.cascade_stats.mark_started_then_running()
            self._fire("on_starting")
            self._initialize_jobs()

            num_threads = self.props.max_concurrent_flows or len(self.jobs)
            # NOTE flows running on this machine are not assumed to be safe to run concurrently
            if self._num_local_flows() > 1:
                num_threads = 1

            self._log_info(f" parallel execution of flows is enabled: {num_threads != 1}")
            self._log_info(f" executing total flows: {len(self.jobs)}")
            self._log_info(f" allocating management threads: {num_threads}")

            futures = self.spawn_strategy.start(self.name, num_threads, list(self.jobs.values()))
            for future in futures:
                throwable = future.result()
                if throwable is not None:
                    self.throwable = throwable
                    if not self._stop:
                        if not self.cascade_stats.is_finished():
                            self.cascade_stats.mark_failed(throwable)
                        self._internal_stop_all_flows()
                        if self._fire_on_throwable(throwable):
                            self.throwable = None
                    break
        except Exception as e:
            self.throwable = e
        finally:
            self._handle_executor_shutdown()
            if not self.cascade_stats.is_finished():
                self.cascade_stats.mark_successful()
            try:
                self._fire("on_completed")
            finally:
                self._deregister_cancellation()

    def _initialize_jobs(self) -> None:
        with self._jobs_lock:
            for flow in self.flow_graph.topological_iterator():
                self.cascade_stats.add_flow_stats(flow.flow_stats)
                job = CascadeJob(self, flow)
                job.init([self.jobs[predecessor.name] for predecessor in self.flow_graph.predecessors(flow)])
                self.jobs[flow.name] = job

    def _num_local_flows(self) -> int:
        return sum(1 for flow in self.flow_graph.vertex_set() if flow.steps_are_local())

    def _internal_stop_all_flows(self) -> None:
        self._log_info("stopping all flows")
        with self._jobs_lock:
            jobs = list(self.jobs.values())
        for job in reversed(jobs):
            job.stop()

    def _handle_executor_shutdown(self) -> None:
        if self.spawn_strategy.is_completed():
            self.spawn_strategy.complete(0)
            return
        self._log_info("shutting down flow executor")
        self.spawn_strategy.complete(SHUTDOWN_GRACE_SECONDS)
        self._log_info("shutdown complete")

    def _is_stop_jobs_on_exit(self) -> bool:
        flows = self.flows()
        if not flows or not self.props.stop_jobs_on_exit:
            return False
        return flows[0].props.stop_jobs_on_exit

    def _register_cancellation(self) -> None:
        if self.cancellation is None or not self._is_stop_jobs_on_exit():
            return
        self._cancellation_handle = self.cancellation.register(self.stop)

    def _deregister_cancellation(self) -> None:
        if self.cancellation is None or self._cancellation_handle is None:
            return
        self.cancellation.deregister(self._cancellation_handle)
        self._cancellation_handle = None

    # diagnostics

    def to_dot(self) -> str:
        """The identifier graph, edges labelled with the flow names"""
        return to_dot(self.identifier_graph, edge_label=str)

    def write_dot(self, filename: str) -> None:
        write_dot(filename, self.to_dot())

    def flow_graph_to_dot(self) -> str:
        return to_dot(self.flow_graph, vertex_label=lambda flow: flow.name, edge_label=str)

    def to_networkx(self):
        """The flow graph as a networkx graph keyed by flow name"""
        from pipecascade.graph.networkx import to_networkx

        return to_networkx(self.flow_graph, vertex_key=lambda flow: flow.name)
