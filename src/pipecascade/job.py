"""
One job per unit of work, blocking on the completion of its predecessors

A job is a callable returning the throwable it failed with, or None. It never
raises. The completion latch is set exactly once when the call returns; the
outcome flags are written before that by the job alone and only read by others
after waiting on the latch.
"""

import logging
import threading
from typing import Sequence

logger = logging.getLogger(__name__)


class UnitOfWorkJob:
    def __init__(self, name: str):
        self.name = name
        self.predecessors: list["UnitOfWorkJob"] = []
        self._latch = threading.Event()
        self._lock = threading.Lock()
        self._stop = False
        self._started = False
        self._completed = False
        self._failed = False

    def init(self, predecessors: Sequence["UnitOfWorkJob"]) -> None:
        self.predecessors = list(predecessors)

    def __call__(self) -> BaseException | None:
        try:
            for predecessor in self.predecessors:
                if not predecessor.is_successful():
                    logger.info(f"abandoning {self.name}, predecessor did not complete: {predecessor.name}")
                    self._abandon(predecessor)
                    return None

            with self._lock:
                if self._stop or self._is_cancelled():
                    return None
                self._started = True

            throwable = self._execute()
            if throwable is not None:
                self._failed = True
            else:
                self._completed = True
            return throwable
        except Exception as e:
            self._failed = True
            return e
        finally:
            self._latch.set()

    def _execute(self) -> BaseException | None:
        """Run the unit of work, return the failure instead of raising it"""
        raise NotImplementedError()

    def _is_cancelled(self) -> bool:
        return False

    def _abandon(self, predecessor: "UnitOfWorkJob") -> None:
        pass

    def _on_stop(self) -> None:
        pass

    def stop(self) -> None:
        """Cooperative stop, a job not yet started will not start at all"""
        with self._lock:
            if self._stop:
                return
            self._stop = True
            started = self._started
        logger.info(f"stopping {self.name}")
        if started and not self._latch.is_set():
            self._on_stop()

    def wait(self, timeout: float | None = None) -> bool:
        return self._latch.wait(timeout)

    def is_done(self) -> bool:
        return self._latch.is_set()

    def is_started(self) -> bool:
        return self._started

    def is_failed(self) -> bool:
        return self._failed

    def is_successful(self) -> bool:
        """Blocks until the job finished, then tells whether dependents may proceed"""
        self._latch.wait()
        return self._completed and not self._failed and not self._stop
