"""
Explicit registry of stop callbacks the host application fires on shutdown

A scheduler registers its `stop` for the duration of a run and deregisters it
when the run finishes. Nothing is wired to the interpreter exit unless the host
calls `install_exit_hook`.
"""

import atexit
import logging
import threading
from typing import Callable

logger = logging.getLogger(__name__)


class CancellationContext:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._callbacks: dict[int, Callable[[], None]] = {}
        self._next_handle = 0
        self._cancelled = False
        self._hook_installed = False

    def register(self, callback: Callable[[], None]) -> int:
        with self._lock:
            handle = self._next_handle
            self._next_handle += 1
            self._callbacks[handle] = callback
            return handle

    def deregister(self, handle: int) -> None:
        with self._lock:
            self._callbacks.pop(handle, None)

    def registered(self) -> int:
        with self._lock:
            return len(self._callbacks)

    def is_cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        """Fires every registered callback once, latest registration first"""
        with self._lock:
            self._cancelled = True
            callbacks = list(reversed(self._callbacks.values()))
            self._callbacks.clear()
        for callback in callbacks:
            try:
                callback()
            except Exception as e:
                logger.warning(f"gotten {repr(e)} when cancelling {callback}")

    def install_exit_hook(self) -> None:
        with self._lock:
            if self._hook_installed:
                return
            self._hook_installed = True
        atexit.register(self.cancel)
