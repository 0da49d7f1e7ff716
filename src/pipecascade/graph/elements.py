from dataclasses import dataclass


class FlowElement:
    """Any vertex of an element graph: taps, pipes, operators, sentinels

    Elements compare by identity; two graphs share an element only if they hold
    the very same object.
    """

    name: str

    def __init__(self, name: str):
        self.name = name

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.name!r}>"

    def __str__(self) -> str:
        return self.name


class Extent(FlowElement):
    """Universal head and tail sentinels bracketing an element graph"""

    head: "Extent"
    tail: "Extent"


Extent.head = Extent("head")
Extent.tail = Extent("tail")


class Pipe(FlowElement):
    """A named branch of a pipe assembly, traps are keyed by its name"""


class Group(Pipe):
    """A grouping operator (group by, co-group), splits work across processes"""


@dataclass(eq=False)
class Scope:
    """Edge of an element graph

    ``ordinal`` is the position at which the stream enters its target, which
    matters for operators joining several inputs.
    """

    ordinal: int = 0
    name: str | None = None

    def __repr__(self) -> str:
        return f"<Scope {self.name or ''}#{self.ordinal}>"
