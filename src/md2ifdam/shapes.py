"""Shapes for nodes and edge labels, measured with real font metrics."""
from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from .errors import FontNotFoundError
from .font_utils import FontCatalog, get_computed_text_width, get_text_height
from .graph import Edge, Node, NodeItem
from .styles import StyleMap, apply_styles, defaults, style_int
from .svg import add_class, fmt, q

logger = logging.getLogger(__name__)

OSAKA_REGULAR: Dict[str, Any] = {"font-family": "Osaka", "font-style": "Regular", "font-weight": 400}

TEXT_DEFAULTS: Dict[str, Any] = {
    "font-size": "12",
    "font-fill": "black",
    "font-stroke": "none",
}
FRAME_DEFAULTS: Dict[str, Any] = {
    "fill": "white",
    "stroke": "black",
    "stroke-width": "1",
    "stroke-dasharray": "none",
}
LINE_DEFAULTS: Dict[str, Any] = {
    "stroke": "black",
    "stroke-width": "1",
    "stroke-dasharray": "none",
}

MARGIN = 10
SCREEN_MIN_WIDTH = 200
SCREEN_MIN_HEIGHT = 120
OPERATION_CORNER_RADIUS = 10
EDGE_LABEL_FONT_SIZE = "9"


@dataclass
class Rect:
    x: float
    y: float
    width: float
    height: float


@dataclass
class RenderSession:
    """Everything one render needs besides the graph: fonts and the base font."""

    fonts: FontCatalog = field(default_factory=FontCatalog)
    base_font: Dict[str, Any] = field(default_factory=lambda: dict(OSAKA_REGULAR))

    def open_font(self, style: Mapping[str, Any]) -> Any:
        font = self.fonts.open(style)
        if font is None:
            logger.debug("no local font for %s, falling back to %s", _font_query(style), self.base_font)
            font = self.fonts.open(self.base_font)
        if font is None:
            raise FontNotFoundError(style)
        return font


def _font_query(style: Mapping[str, Any]) -> Dict[str, Any]:
    return {name: style.get(name) for name in OSAKA_REGULAR}


def append_text(
    session: RenderSession,
    parent: ET.Element,
    y: float,
    item: NodeItem,
    style: Optional[Mapping[str, Any]],
    default_styles: Optional[Mapping[str, Any]],
) -> Rect:
    """Write ``item`` left justified at ``y`` and return its bounding box."""
    text = ET.SubElement(parent, q("text"), {"dominant-baseline": "text-before-edge"})
    text.text = item.text
    applying = apply_styles(text, style, default_styles, session.base_font, TEXT_DEFAULTS)

    indent = 0 if item.depth < 0 else item.depth + 1
    margin = style_int(applying, "margin")
    text.set("x", fmt(indent * margin))
    text.set("y", fmt(y))

    # List bullet; it sits in the indent so it does not count towards the width.
    if not item.close and margin > 0 and item.depth > 0:
        tspan = ET.SubElement(text, q("tspan"), {"x": fmt((indent - 1) * margin), "y": fmt(y)})
        tspan.text = "-"

    font = session.open_font(applying)
    font_size = style_int(applying, "font-size", 12)
    return Rect(
        x=margin * indent,
        y=y,
        width=get_computed_text_width(font, font_size, item.text),
        height=get_text_height(font, font_size),
    )


@dataclass
class HorizontalRule:
    """A divider whose right end is only known once the node width is."""

    element: ET.Element
    rect: Rect

    def adjust(self, width: float) -> None:
        self.element.set("x2", fmt(width))
        self.rect.width = width


def append_horizontal_rule(parent: ET.Element, y: float, style: Mapping[str, Any]) -> HorizontalRule:
    height = style_int(style, "margin", 10) if "margin" in style else 10
    mid = fmt(y + height / 2)
    line = ET.SubElement(parent, q("line"), {"x1": "0", "y1": mid, "x2": "0", "y2": mid})
    apply_styles(line, style, LINE_DEFAULTS)
    return HorizontalRule(element=line, rect=Rect(x=0, y=y, width=0, height=height))


def adjust_horizontal_rule(rules: List[HorizontalRule], width: float) -> None:
    for rule in rules:
        rule.adjust(width)


def node_factory(session: RenderSession, node: Node) -> ET.Element:
    node_type = node.type or "unknown"
    g = ET.Element(q("g"))
    add_class(g, node_type)

    outer_rect: Optional[ET.Element] = None
    if node_type != "diagram":
        outer_rect = ET.SubElement(g, q("rect"), {"x": "0", "y": "0"})
        apply_styles(outer_rect, node.style, FRAME_DEFAULTS)

    boxes: List[Rect] = []
    rules: List[HorizontalRule] = []
    last = Rect(x=0, y=MARGIN, width=0, height=0)
    for item in node.items:
        style: StyleMap = defaults(node.style, {"margin": MARGIN})
        if item.type in ("paragraph", "text"):
            last = append_text(session, g, last.y + last.height, item, style, {})
            boxes.append(last)
        elif item.type == "hr" and node_type != "diagram":
            rule = append_horizontal_rule(g, last.y + last.height, style)
            rules.append(rule)
            last = rule.rect
            boxes.append(last)

    width = max((box.x + box.width + MARGIN for box in boxes), default=0)
    height = last.y + last.height + MARGIN
    if node_type == "screen":
        width = max(width, SCREEN_MIN_WIDTH)
        height = max(height, SCREEN_MIN_HEIGHT)

    if outer_rect is not None:
        outer_rect.set("width", fmt(width))
        outer_rect.set("height", fmt(height))
        if node_type == "operation":
            outer_rect.set("rx", fmt(OPERATION_CORNER_RADIUS))
            outer_rect.set("ry", fmt(OPERATION_CORNER_RADIUS))
        adjust_horizontal_rule(rules, width)

    node.width = width
    node.height = height
    return g


def edge_label_factory(session: RenderSession, edge: Edge) -> ET.Element:
    element = ET.Element(q("g"))
    g = ET.SubElement(element, q("g"))
    background = ET.SubElement(g, q("rect"), {"x": "0", "y": "0"})
    apply_styles(background, edge.style, {"fill": "white"})
    rect = append_text(
        session,
        g,
        0,
        NodeItem(type="void", depth=0, text=edge.label or ""),
        edge.style,
        {"font-size": EDGE_LABEL_FONT_SIZE},
    )
    background.set("width", fmt(rect.width))
    background.set("height", fmt(rect.height))
    edge.width = rect.width
    edge.height = rect.height
    return element
