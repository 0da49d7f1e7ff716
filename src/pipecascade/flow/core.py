"""
A flow is a runnable pipeline declaring the taps it reads and writes

`BaseFlow` provides the lifecycle the cascade scheduler relies on: `start` runs
the flow on its own thread, `complete` waits for it and raises the failure, and
`stop` asks it to stop cooperatively. Subclasses only provide `internal_run` and,
if they can be interrupted, `internal_stop`.
"""

import logging
import sys
import threading
import uuid
from typing import Any, Iterable, Mapping, Protocol

import randomname

from pipecascade.config import FlowProps, log_prefix
from pipecascade.exceptions import CascadingException, FlowException
from pipecascade.flow.skip import FlowSkipIfSinkNotStale, FlowSkipStrategy
from pipecascade.stats import FlowStats
from pipecascade.tap import Tap

logger = logging.getLogger(__name__)

# sink modification time of a flow without sinks, nothing is ever newer
NO_SINKS = sys.maxsize


def get_sink_modified(taps: Iterable[Tap], config: Mapping[str, Any] | None = None) -> int:
    """-1 if any sink is to be deleted or updated, 0 if any does not exist, else the oldest modification time"""
    taps = list(taps)
    if any(tap.is_replace() or tap.is_update() for tap in taps):
        return -1
    sink_modified = NO_SINKS
    for tap in taps:
        if not tap.resource_exists(config):
            return 0
        sink_modified = min(sink_modified, tap.modified_time(config))
    return sink_modified


def get_source_modified(taps: Iterable[Tap], sink_modified: int, config: Mapping[str, Any] | None = None) -> int:
    """Modification time of the first source found newer than `sink_modified`, else of the last one visited

    Raises `FlowException` if a source does not exist.
    """
    source_modified = 0
    for tap in taps:
        if tap.is_composite:
            source_modified = get_source_modified(tap.child_taps(), sink_modified, config)
        else:
            if not tap.resource_exists(config):
                raise FlowException(f"source does not exist: {tap.full_identifier(config)}")
            source_modified = tap.modified_time(config)
        if source_modified > sink_modified:
            return source_modified
    return source_modified


class Flow(Protocol):
    id: str
    name: str
    sources: dict[str, Tap]
    sinks: dict[str, Tap]
    traps: dict[str, Tap]
    checkpoints: dict[str, Tap]
    config: dict[str, Any]
    props: FlowProps
    flow_stats: FlowStats

    @property
    def submit_priority(self) -> int:
        pass

    def steps_are_local(self) -> bool:
        pass

    def is_skip_flow(self) -> bool:
        pass

    def are_sinks_stale(self) -> bool:
        pass

    def sink_modified(self) -> int:
        pass

    def prepare(self) -> None:
        pass

    def start(self) -> None:
        pass

    def complete(self) -> None:
        pass

    def stop(self) -> None:
        pass

    def fire_on_completed(self) -> None:
        pass

    def cleanup(self) -> None:
        pass


class FlowListener(Protocol):
    def on_starting(self, flow: Flow) -> None:
        pass

    def on_stopping(self, flow: Flow) -> None:
        pass

    def on_completed(self, flow: Flow) -> None:
        pass

    def on_throwable(self, flow: Flow, throwable: BaseException) -> bool:
        """Returning True marks the throwable as handled"""
        pass


class SafeListener:
    """Keeps a failing listener from breaking the lifecycle of what it listens to

    The first error raised by the listener is recorded and `on_error` is invoked,
    so that the owner can stop itself and later surface the error.
    """

    def __init__(self, listener: Any, on_error: Any = None):
        self.listener = listener
        self.on_error = on_error
        self.throwable: BaseException | None = None

    def _call(self, method: str, *args: Any) -> Any:
        try:
            return getattr(self.listener, method)(*args)
        except Exception as e:
            logger.warning(f"listener {self.listener!r} failed in {method}: {repr(e)}")
            if self.throwable is None:
                self.throwable = e
            if self.on_error is not None:
                self.on_error()
            return None

    def on_starting(self, subject: Any) -> None:
        self._call("on_starting", subject)

    def on_stopping(self, subject: Any) -> None:
        self._call("on_stopping", subject)

    def on_completed(self, subject: Any) -> None:
        self._call("on_completed", subject)

    def on_throwable(self, subject: Any, throwable: BaseException) -> bool:
        return bool(self._call("on_throwable", subject, throwable))


class BaseFlow:
    def __init__(
        self,
        name: str | None = None,
        sources: Mapping[str, Tap] | Iterable[Tap] | None = None,
        sinks: Mapping[str, Tap] | Iterable[Tap] | None = None,
        traps: Mapping[str, Tap] | Iterable[Tap] | None = None,
        checkpoints: Mapping[str, Tap] | Iterable[Tap] | None = None,
        config: Mapping[str, Any] | None = None,
        props: FlowProps | None = None,
        flow_skip_strategy: FlowSkipStrategy | None = None,
    ):
        self.id = uuid.uuid4().hex
        self.name = name or randomname.get_name()
        self.sources = _tap_map(sources)
        self.sinks = _tap_map(sinks)
        self.traps = _tap_map(traps)
        self.checkpoints = _tap_map(checkpoints)
        self.config: dict[str, Any] = dict(config or {})
        self.props = props if props is not None else FlowProps.from_properties(self.config)
        self.flow_skip_strategy: FlowSkipStrategy = flow_skip_strategy or FlowSkipIfSinkNotStale()
        self.flow_stats = FlowStats(self.name)
        self.throwable: BaseException | None = None
        self.listeners: list[SafeListener] = []
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()
        self._stop_lock = threading.RLock()
        self._stop = False

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.name!r}>"

    @property
    def submit_priority(self) -> int:
        return self.props.submit_priority

    def _log_info(self, message: str) -> None:
        logger.info(f"{log_prefix(self.name)} {message}")

    def add_listener(self, listener: FlowListener) -> None:
        self.listeners.append(SafeListener(listener, self.stop))

    def remove_listener(self, listener: FlowListener) -> bool:
        for safe in self.listeners:
            if safe.listener is listener:
                self.listeners.remove(safe)
                return True
        return False

    def has_listeners(self) -> bool:
        return bool(self.listeners)

    def steps_are_local(self) -> bool:
        return bool(self.config.get("local", False))

    def is_stop_requested(self) -> bool:
        return self._stop

    # staleness

    def is_skip_flow(self) -> bool:
        return self.flow_skip_strategy.skip_flow(self)

    def are_sinks_stale(self) -> bool:
        return self.are_sources_newer(self.sink_modified())

    def are_sources_newer(self, sink_modified: int) -> bool:
        source_modified = get_source_modified(self.sources.values(), sink_modified, self.config)
        logger.debug(f"{log_prefix(self.name)} source modification time at: {source_modified}")
        return sink_modified < source_modified

    def sink_modified(self) -> int:
        sink_modified = get_sink_modified(self.sinks.values(), self.config)
        if sink_modified == -1:
            self._log_info("at least one sink is marked for delete")
        elif sink_modified == 0:
            self._log_info("at least one sink does not exist")
        else:
            logger.debug(f"{log_prefix(self.name)} sink oldest modification time: {sink_modified}")
        return sink_modified

    # lifecycle

    def prepare(self) -> None:
        """Deletes the sinks, traps and checkpoints in replace mode"""
        try:
            for tap in [*self.sinks.values(), *self.traps.values(), *self.checkpoints.values()]:
                if tap.is_replace():
                    tap.delete_resource(self.config)
        except OSError as e:
            raise FlowException(f"unable to prepare flow: {self.name}") from e

    def start(self) -> None:
        with self._lock:
            if self._thread is not None or self._stop:
                return
            self._thread = threading.Thread(target=self._run, name=f"flow {self.name}", daemon=True)
            self._thread.start()

    def _run(self) -> None:
        try:
            if self._stop:
                return
            self.flow_stats.mark_started()
            self._fire("on_starting")
            if self._stop:
                return

            self._log_info("starting")
            for source in self.sources.values():
                self._log_info(f" source: {source}")
            for sink in self.sinks.values():
                self._log_info(f" sink: {sink}")

            self.flow_stats.mark_running()
            self.internal_run()
        except Exception as e:
            self.throwable = e
        finally:
            if self.throwable is not None and not self._stop:
                self.flow_stats.mark_failed(self.throwable)
                if self._fire_on_throwable(self.throwable):
                    self.throwable = None

            if not self._stop and not self.flow_stats.is_finished():
                self.flow_stats.mark_successful()

            try:
                self._fire("on_completed")
            finally:
                self.flow_stats.cleanup()

    def complete(self) -> None:
        """Starts the flow if needed and blocks until it finished

        Raises the failure of the run, a `CascadingException` as-is, anything
        else wrapped in a `FlowException`.
        """
        self.start()
        thread = self._thread
        if thread is not None:
            thread.join()

        # NOTE a stop in progress on another thread is waited for here
        with self._stop_lock:
            pass

        throwable, self.throwable = self.throwable, None
        if isinstance(throwable, CascadingException):
            raise throwable
        if throwable is not None:
            raise FlowException(f"unhandled exception in flow: {self.name}") from throwable
        for listener in self.listeners:
            if listener.throwable is not None:
                raise FlowException(f"unhandled listener exception in flow: {self.name}") from listener.throwable

    def stop(self) -> None:
        with self._stop_lock:
            if self._stop:
                return
            self._stop = True
            self._log_info("stopping")
            self._fire("on_stopping")
            if not self.flow_stats.is_finished():
                self.flow_stats.mark_stopped()
            try:
                self.internal_stop()
            finally:
                self.flow_stats.cleanup()

    def cleanup(self) -> None:
        pass

    def internal_run(self) -> None:
        """Does the work of the flow, raises on failure"""
        raise NotImplementedError()

    def internal_stop(self) -> None:
        pass

    def fire_on_completed(self) -> None:
        self._fire("on_completed")

    def _fire(self, event: str) -> None:
        for listener in list(self.listeners):
            getattr(listener, event)(self)

    def _fire_on_throwable(self, throwable: BaseException) -> bool:
        handled = False
        for listener in list(self.listeners):
            handled = listener.on_throwable(self, throwable) or handled
        return handled


def _tap_map(taps: Mapping[str, Tap] | Iterable[Tap] | None) -> dict[str, Tap]:
    if taps is None:
        return {}
    if isinstance(taps, Mapping):
        return dict(taps)
    return {tap.name: tap for tap in taps}
