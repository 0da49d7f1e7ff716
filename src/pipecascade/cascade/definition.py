from typing import Iterable

from typing_extensions import Self

from pipecascade.exceptions import CascadeException
from pipecascade.flow.core import Flow


class CascadeDef:
    """Fluent description of a cascade, handed to `CascadeConnector.connect_def`

    `max_concurrent_flows` of -1 defers to the connector properties.
    """

    def __init__(self) -> None:
        self.name: str | None = None
        self.flows: dict[str, Flow] = {}
        self.tags: set[str] = set()
        self.max_concurrent_flows = -1

    def set_name(self, name: str) -> Self:
        self.name = name
        return self

    def add_flow(self, flow: Flow) -> Self:
        if flow is None:
            return self
        if flow.name in self.flows:
            raise CascadeException(f"all flow names must be unique, found duplicate: {flow.name}")
        self.flows[flow.name] = flow
        return self

    def add_flows(self, flows: Iterable[Flow]) -> Self:
        for flow in flows:
            self.add_flow(flow)
        return self

    def add_tag(self, tag: str) -> Self:
        self.tags.add(tag)
        return self

    def set_max_concurrent_flows(self, max_concurrent_flows: int) -> Self:
        self.max_concurrent_flows = max_concurrent_flows
        return self

    def has_flow(self, name: str) -> bool:
        return name in self.flows

    def flow_list(self) -> list[Flow]:
        return list(self.flows.values())
