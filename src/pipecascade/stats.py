"""
Lifecycle tracking of cascades, flows and steps

Every tracked unit moves from `pending` through `started`/`submitted`/`running`
into one of the finished states. Finished states are sticky: later transitions
are ignored and reported as such.
"""

import logging
import threading
import time
from enum import Enum

logger = logging.getLogger(__name__)


class Status(int, Enum):
    pending = 0
    skipped = 1
    started = 2
    submitted = 3
    running = 4
    successful = 5
    stopped = 6
    failed = 7


FINISHED = {Status.skipped, Status.successful, Status.stopped, Status.failed}


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


class CascadingStats:
    def __init__(self, name: str):
        self.name = name
        self.status = Status.pending
        self.throwable: BaseException | None = None
        self.pending_time: int | None = None
        self.start_time: int | None = None
        self.submit_time: int | None = None
        self.run_time: int | None = None
        self.finished_time: int | None = None
        self.cleaned_up = False
        self._lock = threading.RLock()

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.name!r} {self.status.name}>"

    def _transition(self, status: Status, allowed: set[Status]) -> bool:
        with self._lock:
            if self.status not in allowed:
                logger.debug(f"{self.name}: ignoring {self.status.name} -> {status.name}")
                return False
            self.status = status
            now = _now_ms()
            if status == Status.pending:
                self.pending_time = now
            elif status == Status.started:
                self.start_time = now
            elif status == Status.submitted:
                self.submit_time = now
            elif status == Status.running:
                self.run_time = now
            elif status in FINISHED:
                self.finished_time = now
            return True

    def prepare(self) -> None:
        pass

    def cleanup(self) -> None:
        self.cleaned_up = True

    def mark_pending(self) -> bool:
        return self._transition(Status.pending, {Status.pending})

    def mark_started(self) -> bool:
        return self._transition(Status.started, {Status.pending})

    def mark_submitted(self) -> bool:
        return self._transition(Status.submitted, {Status.started})

    def mark_running(self) -> bool:
        return self._transition(Status.running, {Status.pending, Status.started, Status.submitted})

    def mark_started_then_running(self) -> bool:
        with self._lock:
            return self.mark_started() and self.mark_running()

    def mark_successful(self) -> bool:
        return self._transition(Status.successful, {Status.pending, Status.started, Status.submitted, Status.running})

    def mark_skipped(self) -> bool:
        return self._transition(Status.skipped, {Status.pending, Status.started})

    def mark_stopped(self) -> bool:
        return self._transition(Status.stopped, {Status.pending, Status.started, Status.submitted, Status.running})

    def mark_failed(self, throwable: BaseException | None = None) -> bool:
        with self._lock:
            if not self._transition(Status.failed, {Status.pending, Status.started, Status.submitted, Status.running}):
                return False
            self.throwable = throwable
            return True

    def is_pending(self) -> bool:
        return self.status == Status.pending

    def is_started(self) -> bool:
        return self.status == Status.started

    def is_submitted(self) -> bool:
        return self.status == Status.submitted

    def is_running(self) -> bool:
        return self.status == Status.running

    def is_finished(self) -> bool:
        return self.status in FINISHED

    def is_successful(self) -> bool:
        return self.status == Status.successful

    def is_skipped(self) -> bool:
        return self.status == Status.skipped

    def is_stopped(self) -> bool:
        return self.status == Status.stopped

    def is_failed(self) -> bool:
        return self.status == Status.failed

    def duration(self) -> int:
        """Milliseconds from start to finish, or to now while unfinished"""
        if self.start_time is None:
            return 0
        end = self.finished_time if self.finished_time is not None else _now_ms()
        return end - self.start_time


class CompositeStats(CascadingStats):
    """Stats owning the stats of its children"""

    def __init__(self, name: str):
        super().__init__(name)
        self.children: list[CascadingStats] = []

    def add_child(self, child: CascadingStats) -> None:
        with self._lock:
            self.children.append(child)

    def count(self, status: Status) -> int:
        return sum(1 for child in self.children if child.status == status)

    def counts(self) -> dict[Status, int]:
        return {status: self.count(status) for status in Status}


class FlowStepStats(CascadingStats):
    pass


class FlowStats(CompositeStats):
    def add_step_stats(self, step_stats: FlowStepStats) -> None:
        self.add_child(step_stats)


class CascadeStats(CompositeStats):
    def add_flow_stats(self, flow_stats: CascadingStats) -> None:
        self.add_child(flow_stats)
