"""
Deciding whether a flow's work is already done
"""

import logging
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from pipecascade.flow.core import Flow

logger = logging.getLogger(__name__)


class FlowSkipStrategy(Protocol):
    def skip_flow(self, flow: "Flow") -> bool:
        pass


class FlowSkipIfSinkNotStale:
    """Skips unless some source was modified after the oldest sink, or a sink is missing or marked for delete"""

    def skip_flow(self, flow: "Flow") -> bool:
        return not flow.are_sinks_stale()


class FlowSkipIfSinkExists:
    """Skips as soon as every sink exists, regardless of the sources"""

    def skip_flow(self, flow: "Flow") -> bool:
        return flow.sink_modified() > 0
