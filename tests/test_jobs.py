"""
Jobs, the pool running them and the cancellation registry
"""

import threading
import time

from pipecascade.cancel import CancellationContext
from pipecascade.job import UnitOfWorkJob
from pipecascade.spawn import ThreadPoolSpawnStrategy


class Job(UnitOfWorkJob):
    def __init__(self, name, log, fail=False, gate=None):
        super().__init__(name)
        self.log = log
        self.fail = fail
        self.gate = gate
        self.abandoned_for = None
        self.stopped = False

    def _execute(self):
        if self.gate is not None:
            self.gate.wait(10)
        self.log.append(self.name)
        if self.fail:
            return RuntimeError(self.name)
        return None

    def _abandon(self, predecessor):
        self.abandoned_for = predecessor.name

    def _on_stop(self):
        self.stopped = True
        if self.gate is not None:
            self.gate.set()


def test_jobs_wait_for_predecessors():
    log = []
    gate = threading.Event()
    first = Job("first", log, gate=gate)
    second = Job("second", log)
    second.init([first])

    spawn = ThreadPoolSpawnStrategy()
    futures = spawn.start("test", 2, [first, second])
    assert not second.is_done()
    gate.set()
    assert [f.result() for f in futures] == [None, None]
    spawn.complete(10)

    assert log == ["first", "second"]
    assert spawn.is_completed()
    assert first.is_successful() and second.is_successful()


def test_failure_abandons_successors():
    log = []
    first = Job("first", log, fail=True)
    second = Job("second", log)
    third = Job("third", log)
    second.init([first])
    third.init([second])

    spawn = ThreadPoolSpawnStrategy()
    futures = spawn.start("test", 1, [first, second, third])
    results = [f.result() for f in futures]
    spawn.complete(10)

    assert isinstance(results[0], RuntimeError)
    assert results[1:] == [None, None]
    assert log == ["first"]
    assert first.is_failed()
    assert second.abandoned_for == "first"
    assert third.abandoned_for == "second"
    assert not second.is_successful()
    assert not second.is_started()


def test_stop_before_start():
    log = []
    job = Job("job", log)
    job.stop()
    assert job() is None
    assert log == []
    assert job.is_done()
    assert not job.is_successful()
    assert not job.stopped


def test_stop_while_running():
    log = []
    gate = threading.Event()
    job = Job("job", log, gate=gate)
    thread = threading.Thread(target=job)
    thread.start()
    while not job.is_started():
        time.sleep(0.01)

    job.stop()
    job.stop()
    thread.join(10)
    assert job.stopped
    assert job.is_done()
    assert not job.is_successful()


def test_exceptions_are_returned():
    class Raising(UnitOfWorkJob):
        def _execute(self):
            raise ValueError("boom")

    job = Raising("raising")
    result = job()
    assert isinstance(result, ValueError)
    assert job.is_failed()


def test_complete_without_start():
    ThreadPoolSpawnStrategy().complete(0)


def test_cancellation_fires_latest_first():
    context = CancellationContext()
    fired = []
    first = context.register(lambda: fired.append("first"))
    context.register(lambda: fired.append("second"))
    dropped = context.register(lambda: fired.append("dropped"))
    assert context.registered() == 3

    context.deregister(dropped)
    context.deregister(dropped)
    context.cancel()

    assert fired == ["second", "first"]
    assert context.is_cancelled()
    assert context.registered() == 0
    context.deregister(first)


def test_cancellation_survives_failing_callbacks():
    context = CancellationContext()
    fired = []

    def broken():
        raise RuntimeError("broken")

    context.register(lambda: fired.append("ok"))
    context.register(broken)
    context.cancel()
    assert fired == ["ok"]


def test_exit_hook_installed_once(monkeypatch):
    registered = []
    monkeypatch.setattr("pipecascade.cancel.atexit.register", registered.append)
    context = CancellationContext()
    context.install_exit_hook()
    context.install_exit_hook()
    assert registered == [context.cancel]
