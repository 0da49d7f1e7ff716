"""
Running a batch of jobs on a bounded worker pool
"""

import logging
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Callable, Protocol, Sequence

logger = logging.getLogger(__name__)

SHUTDOWN_GRACE_SECONDS = 5 * 60


class UnitOfWorkSpawnStrategy(Protocol):
    def start(self, name: str, num_threads: int, jobs: Sequence[Callable[[], BaseException | None]]) -> list[Future]:
        """Submits all jobs in the given order, returns one future per job"""
        pass

    def is_completed(self) -> bool:
        pass

    def complete(self, timeout: float | None = SHUTDOWN_GRACE_SECONDS) -> None:
        """Waits at most `timeout` seconds for the jobs, then shuts the pool down"""
        pass


class ThreadPoolSpawnStrategy:
    def __init__(self) -> None:
        self.executor: ThreadPoolExecutor | None = None
        self.futures: list[Future] = []

    def start(self, name: str, num_threads: int, jobs: Sequence[Callable[[], BaseException | None]]) -> list[Future]:
        num_threads = max(1, num_threads)
        logger.info(f"[{name}] starting jobs: {len(jobs)}, with pool size: {num_threads}")
        self.executor = ThreadPoolExecutor(max_workers=num_threads, thread_name_prefix=name[:25])
        self.futures = [self.executor.submit(job) for job in jobs]
        return self.futures

    def is_completed(self) -> bool:
        return all(future.done() for future in self.futures)

    def complete(self, timeout: float | None = SHUTDOWN_GRACE_SECONDS) -> None:
        if self.executor is None:
            return
        _, not_done = wait(self.futures, timeout=timeout)
        if not_done:
            logger.warning(f"abandoning {len(not_done)} jobs still running after {timeout}s")
        self.executor.shutdown(wait=not not_done, cancel_futures=True)
