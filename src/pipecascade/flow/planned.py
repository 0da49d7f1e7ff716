"""
Flow executing the steps of a planned step graph

Each step becomes one job. A job waits for the jobs of its predecessor steps and
hands the step to a `StepRunner`, the physical execution backend. The first
failing step stops all others and fails the flow.
"""

import logging
import threading
from typing import Any, Callable, Mapping, Protocol

from pipecascade.config import FlowProps, log_prefix
from pipecascade.exceptions import FlowException
from pipecascade.flow.core import BaseFlow
from pipecascade.flow.skip import FlowSkipStrategy
from pipecascade.job import UnitOfWorkJob
from pipecascade.planner.step import FlowStep, FlowStepGraph
from pipecascade.spawn import SHUTDOWN_GRACE_SECONDS, ThreadPoolSpawnStrategy, UnitOfWorkSpawnStrategy
from pipecascade.stats import FlowStepStats

logger = logging.getLogger(__name__)


class StepRunner(Protocol):
    def run(self, step: FlowStep) -> None:
        """Executes the step, blocking until done; raises on failure"""
        pass

    def stop(self, step: FlowStep) -> None:
        pass


class CallableStepRunner:
    """Runs every step through one callable; stopped steps are recorded for the callable to poll"""

    def __init__(self, fn: Callable[[FlowStep], Any]):
        self.fn = fn
        self._stopped: set[str] = set()
        self._lock = threading.Lock()

    def run(self, step: FlowStep) -> None:
        self.fn(step)

    def stop(self, step: FlowStep) -> None:
        with self._lock:
            self._stopped.add(step.id)

    def is_stopped(self, step: FlowStep) -> bool:
        with self._lock:
            return step.id in self._stopped


class StepJob(UnitOfWorkJob):
    def __init__(self, flow: "PlannedFlow", step: FlowStep, runner: StepRunner):
        super().__init__(step.name or step.id)
        self.flow = flow
        self.step = step
        self.runner = runner
        self.step_stats = FlowStepStats(self.name)

    def _execute(self) -> BaseException | None:
        self.step_stats.mark_started()
        logger.info(f"{log_prefix(self.flow.name)} starting step: {self.name}")
        self.step_stats.mark_submitted()
        self.step_stats.mark_running()
        try:
            self.runner.run(self.step)
        except Exception as e:
            self.step_stats.mark_failed(e)
            logger.warning(f"{log_prefix(self.flow.name)} step failed: {self.name}, {repr(e)}")
            failure = FlowException(f"step failed: {self.name}")
            failure.__cause__ = e
            return failure
        finally:
            self.step_stats.cleanup()
        self.step_stats.mark_successful()
        return None

    def _is_cancelled(self) -> bool:
        return self.flow.is_stop_requested()

    def _abandon(self, predecessor: UnitOfWorkJob) -> None:
        logger.warning(
            f"{log_prefix(self.flow.name)} abandoning step: {self.name}, predecessor failed: {predecessor.name}"
        )
        self.step_stats.mark_stopped()

    def _on_stop(self) -> None:
        self.runner.stop(self.step)

    def stop(self) -> None:
        self.step_stats.mark_stopped()
        super().stop()


class PlannedFlow(BaseFlow):
    """Flow over a `FlowStepGraph`, sources and sinks being the external taps of the graph"""

    def __init__(
        self,
        step_graph: FlowStepGraph,
        runner: StepRunner,
        name: str | None = None,
        config: Mapping[str, Any] | None = None,
        props: FlowProps | None = None,
        flow_skip_strategy: FlowSkipStrategy | None = None,
        spawn_strategy: UnitOfWorkSpawnStrategy | None = None,
    ):
        super().__init__(
            name,
            sorted(step_graph.source_taps, key=lambda tap: tap.name),
            sorted(step_graph.sink_taps, key=lambda tap: tap.name),
            step_graph.traps_map,
            config=config,
            props=props,
            flow_skip_strategy=flow_skip_strategy,
        )
        self.step_graph = step_graph
        self.runner = runner
        self.spawn_strategy = spawn_strategy or ThreadPoolSpawnStrategy()
        self.jobs: dict[FlowStep, StepJob] = {}
        self._initialize_jobs()

    def _initialize_jobs(self) -> None:
        # NOTE topological order, predecessors are always registered before their successors
        for step in self.step_graph.ordinal_topological_iterator():
            job = StepJob(self, step, self.runner)
            job.init([self.jobs[predecessor] for predecessor in self.step_graph.predecessors(step)])
            self.jobs[step] = job
            self.flow_stats.add_step_stats(job.step_stats)

    @property
    def steps(self) -> list[FlowStep]:
        return list(self.jobs.keys())

    def steps_are_local(self) -> bool:
        if self.step_graph.vertex_count() == 0:
            return super().steps_are_local()
        return self.step_graph.is_local()

    def internal_run(self) -> None:
        num_threads = self.props.max_concurrent_steps or len(self.jobs)
        if num_threads == 0:
            raise FlowException(f"no steps rendered for flow: {self.name}")

        self._log_info(f" parallel execution of steps is enabled: {num_threads != 1}")
        futures = self.spawn_strategy.start(self.name, num_threads, list(self.jobs.values()))

        throwable: BaseException | None = None
        try:
            for future in futures:
                throwable = future.result()
                if throwable is not None:
                    if not self.is_stop_requested():
                        self._stop_all_jobs()
                    break
        finally:
            self.spawn_strategy.complete(SHUTDOWN_GRACE_SECONDS)

        if throwable is not None:
            raise throwable

    def internal_stop(self) -> None:
        self._stop_all_jobs()

    def _stop_all_jobs(self) -> None:
        for job in reversed(list(self.jobs.values())):
            job.stop()
