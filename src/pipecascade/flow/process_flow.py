import logging
import threading
from typing import Any, Callable, Iterable, Mapping

from pipecascade.config import FlowProps
from pipecascade.flow.core import BaseFlow
from pipecascade.flow.skip import FlowSkipStrategy
from pipecascade.tap import Tap

logger = logging.getLogger(__name__)


class CallableFlow(BaseFlow):
    """Flow whose work is an arbitrary callable, invoked with the flow itself

    The callable is expected to read `flow.sources` and write `flow.sinks`; it may
    poll `flow.stop_event` to honour a stop request.
    """

    def __init__(
        self,
        name: str | None,
        fn: Callable[["CallableFlow"], Any],
        sources: Mapping[str, Tap] | Iterable[Tap] | None = None,
        sinks: Mapping[str, Tap] | Iterable[Tap] | None = None,
        traps: Mapping[str, Tap] | Iterable[Tap] | None = None,
        checkpoints: Mapping[str, Tap] | Iterable[Tap] | None = None,
        local: bool = False,
        config: Mapping[str, Any] | None = None,
        props: FlowProps | None = None,
        flow_skip_strategy: FlowSkipStrategy | None = None,
    ):
        super().__init__(name, sources, sinks, traps, checkpoints, config, props, flow_skip_strategy)
        self.fn = fn
        self.local = local
        self.stop_event = threading.Event()

    def steps_are_local(self) -> bool:
        return self.local

    def internal_run(self) -> None:
        self.fn(self)

    def internal_stop(self) -> None:
        self.stop_event.set()
