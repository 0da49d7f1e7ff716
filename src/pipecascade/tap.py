"""
Taps -- named, persisted resources read or written by flows

Only the parts the planner and the scheduler rely on live here: a stable fully
qualified identifier, existence and modification time for staleness checks,
and deletion for replace-mode sinks.
"""

import logging
import os
import shutil
import time
from enum import Enum
from typing import Any, Iterable, Mapping

from .graph.elements import FlowElement

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


class SinkMode(str, Enum):
    keep = "keep"  # never overwrite, an existing resource makes the sink up to date
    replace = "replace"  # deleted before the flow runs
    update = "update"  # appended to in place


class Tap(FlowElement):
    identifier: str
    sink_mode: SinkMode
    temporary: bool

    def __init__(
        self,
        identifier: str,
        sink_mode: SinkMode = SinkMode.keep,
        temporary: bool = False,
        name: str | None = None,
    ):
        super().__init__(name or identifier)
        self.identifier = identifier
        self.sink_mode = sink_mode
        self.temporary = temporary

    def full_identifier(self, config: Mapping[str, Any] | None = None) -> str:
        """Location of the resource, two taps denote the same data iff these are equal"""
        return self.identifier

    @property
    def is_composite(self) -> bool:
        return False

    def child_taps(self) -> list["Tap"]:
        return [self]

    def is_keep(self) -> bool:
        return self.sink_mode == SinkMode.keep

    def is_replace(self) -> bool:
        return self.sink_mode == SinkMode.replace

    def is_update(self) -> bool:
        return self.sink_mode == SinkMode.update

    def resource_exists(self, config: Mapping[str, Any] | None = None) -> bool:
        raise NotImplementedError()

    def modified_time(self, config: Mapping[str, Any] | None = None) -> int:
        """Epoch milliseconds of the last change, 0 if the resource does not exist"""
        raise NotImplementedError()

    def delete_resource(self, config: Mapping[str, Any] | None = None) -> bool:
        raise NotImplementedError()

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.identifier!r}>"


class MultiSourceTap(Tap):
    """Logical union of several physical source taps"""

    def __init__(self, taps: Iterable[Tap], name: str | None = None):
        self.taps = list(taps)
        if not self.taps:
            raise ValueError("MultiSourceTap needs at least one child tap")
        identifier = "+".join(tap.identifier for tap in self.taps)
        super().__init__(identifier, SinkMode.keep, False, name)

    @property
    def is_composite(self) -> bool:
        return True

    def child_taps(self) -> list[Tap]:
        rv: list[Tap] = []
        for tap in self.taps:
            rv.extend(tap.child_taps())
        return rv

    def full_identifier(self, config: Mapping[str, Any] | None = None) -> str:
        return "+".join(tap.full_identifier(config) for tap in self.taps)

    def resource_exists(self, config: Mapping[str, Any] | None = None) -> bool:
        return all(tap.resource_exists(config) for tap in self.taps)

    def modified_time(self, config: Mapping[str, Any] | None = None) -> int:
        times = [tap.modified_time(config) for tap in self.taps]
        if 0 in times:
            return 0
        return max(times)

    def delete_resource(self, config: Mapping[str, Any] | None = None) -> bool:
        raise TypeError("source taps cannot be deleted")


class MemoryTap(Tap):
    """Tap holding its records in process memory, mostly for tests and local flows"""

    def __init__(
        self,
        identifier: str,
        records: list | None = None,
        sink_mode: SinkMode = SinkMode.keep,
        temporary: bool = False,
        modified: int | None = None,
        name: str | None = None,
    ):
        super().__init__(identifier, sink_mode, temporary, name)
        self.records = None if records is None else list(records)
        self.modified = 0 if records is None else (modified or _now_ms())

    def full_identifier(self, config: Mapping[str, Any] | None = None) -> str:
        return f"memory://{self.identifier}"

    def resource_exists(self, config: Mapping[str, Any] | None = None) -> bool:
        return self.records is not None

    def modified_time(self, config: Mapping[str, Any] | None = None) -> int:
        return self.modified if self.records is not None else 0

    def delete_resource(self, config: Mapping[str, Any] | None = None) -> bool:
        if self.records is None:
            return False
        self.records = None
        self.modified = 0
        return True

    def read(self) -> list:
        if self.records is None:
            raise FileNotFoundError(self.identifier)
        return list(self.records)

    def write(self, records: Iterable, modified: int | None = None) -> None:
        if self.records is None or not self.is_update():
            self.records = []
        self.records.extend(records)
        self.touch(modified)

    def touch(self, modified: int | None = None) -> None:
        if self.records is None:
            self.records = []
        self.modified = modified if modified is not None else max(_now_ms(), self.modified + 1)


class FileTap(Tap):
    """Tap backed by a local file or directory"""

    def full_identifier(self, config: Mapping[str, Any] | None = None) -> str:
        return os.path.abspath(self.identifier)

    def resource_exists(self, config: Mapping[str, Any] | None = None) -> bool:
        return os.path.exists(self.identifier)

    def modified_time(self, config: Mapping[str, Any] | None = None) -> int:
        if not os.path.exists(self.identifier):
            return 0
        return int(os.path.getmtime(self.identifier) * 1000)

    def delete_resource(self, config: Mapping[str, Any] | None = None) -> bool:
        if not os.path.exists(self.identifier):
            return False
        logger.debug(f"deleting resource {self.identifier}")
        if os.path.isdir(self.identifier):
            shutil.rmtree(self.identifier)
        else:
            os.remove(self.identifier)
        return True
