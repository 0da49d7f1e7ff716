import textwrap
from typing import Any, Callable

from .digraph import DirectedMultigraph


def _quote(s: str) -> str:
    res = ['"']
    for c in s:
        if c == "\\":
            res.append("\\\\")
        elif c == '"':
            res.append('\\"')
        elif c == "\n":
            res.append("\\n")
        else:
            res.append(c)
    res.append('"')
    return "".join(res)


def to_dot(
    graph: DirectedMultigraph,
    vertex_label: Callable[[Any], str] = str,
    edge_label: Callable[[Any], str | None] | None = None,
) -> str:
    """Render a graph as DOT text

    Vertices are numbered in insertion order and labelled with ``vertex_label``,
    line breaks in labels are kept as DOT line breaks.
    """
    ids = {vertex: i for i, vertex in enumerate(graph.vertex_set(), start=1)}
    out = []
    for vertex, vid in ids.items():
        out.append(f"{vid} [label={_quote(vertex_label(vertex))}]")
    for edge in graph.edge_set():
        source, target = graph.edge_source(edge), graph.edge_target(edge)
        label = edge_label(edge) if edge_label is not None else None
        astr = f" [label={_quote(label)}]" if label else ""
        out.append(f"{ids[source]} -> {ids[target]}{astr}")
    return "digraph G {\n" + textwrap.indent("\n".join(out), "  ") + "\n}\n"


def write_dot(filename: str, dot: str) -> None:
    with open(filename, "w", encoding="utf-8") as f:
        f.write(dot)


def render_dot(dot: str, **kwargs) -> str:
    import graphviz

    src = graphviz.Source(dot)
    return src.render(**kwargs)
