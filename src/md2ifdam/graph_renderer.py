"""Compose node and edge shapes into an SVG container."""
from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from typing import Callable, List, Optional, Sequence, Tuple, TypeVar

from .errors import SelectorError
from .graph import Edge, Graph, Node, Point
from .layout import layout_graph
from .shapes import LINE_DEFAULTS, RenderSession, edge_label_factory, node_factory
from .styles import apply_styles, set_style
from .svg import NAMESPACES, add_class, find_by_id, fmt, q

logger = logging.getLogger(__name__)

NODE_CLASS = "ifdam-node"
EDGE_LABEL_CLASS = "ifdam-edge-label"
EDGE_PATH_CLASS = "ifdam-edge-path"

Datum = TypeVar("Datum", Node, Edge)

_DEFAULT_SESSION: Optional[RenderSession] = None


def default_session() -> RenderSession:
    global _DEFAULT_SESSION
    if _DEFAULT_SESSION is None:
        _DEFAULT_SESSION = RenderSession()
    return _DEFAULT_SESSION


def select_container(root: ET.Element, selector: str) -> ET.Element:
    try:
        matches = root.findall(selector, NAMESPACES)
    except SyntaxError as exc:
        raise SelectorError(selector) from exc
    if len(matches) != 1:
        raise SelectorError(selector)
    return matches[0]


def create_shapes(
    session: RenderSession,
    container: ET.Element,
    shape_class: str,
    data: Sequence[Datum],
    factory: Callable[[RenderSession, Datum], ET.Element],
) -> List[Tuple[ET.Element, Datum]]:
    shapes: List[Tuple[ET.Element, Datum]] = []
    for datum in data:
        element = factory(session, datum)
        add_class(element, shape_class)
        container.append(element)
        shapes.append((element, datum))
    return shapes


def translate_shapes(shapes: Sequence[Tuple[ET.Element, Datum]]) -> None:
    """Move shapes from layout centres to their top-left corners."""
    for element, datum in shapes:
        x = (datum.x or 0.0) - (datum.width or 0.0) / 2.0
        y = (datum.y or 0.0) - (datum.height or 0.0) / 2.0
        element.set("transform", f"translate({fmt(x)}, {fmt(y)})")


def basis_path(points: Sequence[Point]) -> str:
    """Path data for a uniform cubic B-spline through ``points``.

    The curve starts and ends on the first and last point and is pulled
    towards the points in between.
    """
    if len(points) < 2:
        return ""
    (x0, y0), (x1, y1) = points[0], points[1]
    parts = [f"M {fmt(x0)} {fmt(y0)}"]
    if len(points) == 2:
        parts.append(f"L {fmt(x1)} {fmt(y1)}")
        return " ".join(parts)
    parts.append(f"L {fmt((5 * x0 + x1) / 6)} {fmt((5 * y0 + y1) / 6)}")
    for x, y in [*points[2:], points[-1]]:
        parts.append(
            "C "
            f"{fmt((2 * x0 + x1) / 3)} {fmt((2 * y0 + y1) / 3)} "
            f"{fmt((x0 + 2 * x1) / 3)} {fmt((y0 + 2 * y1) / 3)} "
            f"{fmt((x0 + 4 * x1 + x) / 6)} {fmt((y0 + 4 * y1 + y) / 6)}"
        )
        x0, y0, x1, y1 = x1, y1, x, y
    parts.append(f"L {fmt(x1)} {fmt(y1)}")
    return " ".join(parts)


def marker_id(color: str) -> str:
    return f"arrowhead-{color}"


def append_marker(container: ET.Element, color: str) -> ET.Element:
    defs = container.find(q("defs"))
    if defs is None:
        defs = ET.Element(q("defs"))
        container.insert(0, defs)
    marker = ET.SubElement(
        defs,
        q("marker"),
        {
            "id": marker_id(color),
            "viewBox": "0 0 10 10",
            "refX": "9",
            "refY": "5",
            "markerWidth": "8",
            "markerHeight": "6",
            "markerUnits": "strokeWidth",
            "orient": "auto",
        },
    )
    path = ET.SubElement(marker, q("path"), {"d": "M 0 0 L 10 5 L 0 10 z"})
    set_style(path, "fill", color)
    return marker


def append_edge_paths(container: ET.Element, edges: Sequence[Edge]) -> None:
    for edge in edges:
        g = ET.SubElement(container, q("g"))
        add_class(g, EDGE_PATH_CLASS)
        path = ET.SubElement(g, q("path"), {"d": basis_path(edge.points)})
        set_style(path, "fill-opacity", "0")
        applying = apply_styles(path, edge.style, LINE_DEFAULTS)
        color = str(applying["stroke"])
        path.set("marker-end", f"url(#{marker_id(color)})")
        if find_by_id(container, marker_id(color)) is None:
            append_marker(container, color)


def render(
    root: ET.Element,
    graph: Graph,
    session: Optional[RenderSession] = None,
    selector: str = ".",
) -> ET.Element:
    """Draw ``graph`` into the single element of ``root`` matched by ``selector``."""
    container = select_container(root, selector)
    session = session or default_session()

    nodes = graph.nodes()
    edges = graph.edges()
    labelled = [edge for edge in edges if edge.label]
    node_shapes = create_shapes(session, container, NODE_CLASS, nodes, node_factory)
    label_shapes = create_shapes(session, container, EDGE_LABEL_CLASS, labelled, edge_label_factory)

    layout_graph(graph)

    translate_shapes(node_shapes)
    translate_shapes(label_shapes)

    append_edge_paths(container, edges)
    logger.debug("rendered %d nodes and %d edges", len(nodes), len(edges))
    return container
