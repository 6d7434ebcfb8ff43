from __future__ import annotations

import unittest
import xml.etree.ElementTree as ET

from support import FakeCatalog, fake_session

from md2ifdam.errors import FontNotFoundError
from md2ifdam.graph import Edge, Node, NodeItem
from md2ifdam.shapes import (
    Rect,
    RenderSession,
    append_horizontal_rule,
    append_text,
    edge_label_factory,
    node_factory,
)
from md2ifdam.styles import parse_inline_style
from md2ifdam.svg import local_name, q


def children(elem: ET.Element) -> list[str]:
    return [local_name(child.tag) for child in elem]


class AppendTextTests(unittest.TestCase):
    def setUp(self) -> None:
        self.session = fake_session()
        self.parent = ET.Element(q("g"))

    def test_box_and_attributes(self) -> None:
        item = NodeItem(type="text", depth=0, text="Lorem ipsum dolor sit amet,")
        rect = append_text(self.session, self.parent, 0, item, {"font-size": "16", "margin": 20}, {})
        self.assertEqual(rect, Rect(x=20, y=0, width=216, height=16))
        text = self.parent.find(q("text"))
        self.assertEqual(text.text, "Lorem ipsum dolor sit amet,")
        self.assertEqual(text.get("x"), "20")
        self.assertEqual(text.get("y"), "0")
        self.assertEqual(text.get("dominant-baseline"), "text-before-edge")
        self.assertEqual(
            parse_inline_style(text.get("style")),
            {
                "font-size": "16",
                "font-family": "Osaka",
                "font-style": "Regular",
                "font-weight": "400",
                "fill": "black",
                "stroke": "none",
            },
        )
        self.assertIsNone(text.find(q("tspan")))

    def test_nested_item_gets_bullet(self) -> None:
        item = NodeItem(type="text", depth=1, text="child")
        rect = append_text(self.session, self.parent, 5, item, {"margin": 10}, {})
        text = self.parent.find(q("text"))
        self.assertEqual(text.get("x"), "20")
        tspan = text.find(q("tspan"))
        self.assertEqual((tspan.get("x"), tspan.get("y"), tspan.text), ("10", "5", "-"))
        self.assertEqual((rect.x, rect.y), (20, 5))

    def test_closing_brace_has_no_bullet(self) -> None:
        item = NodeItem(type="text", depth=1, text="}", close=True)
        append_text(self.session, self.parent, 0, item, {"margin": 10}, {})
        self.assertIsNone(self.parent.find(q("text")).find(q("tspan")))

    def test_default_styles_sit_between_style_and_base(self) -> None:
        item = NodeItem(type="void", depth=0, text="go")
        append_text(self.session, self.parent, 0, item, {"font-fill": "red"}, {"font-size": "9"})
        style = parse_inline_style(self.parent.find(q("text")).get("style"))
        self.assertEqual((style["font-size"], style["fill"]), ("9", "red"))

    def test_unknown_font_falls_back_to_base(self) -> None:
        catalog = FakeCatalog()
        session = RenderSession(fonts=catalog)  # type: ignore[arg-type]
        item = NodeItem(type="text", depth=0, text="abc")
        rect = append_text(session, self.parent, 0, item, {"font-family": "Missing"}, {})
        self.assertEqual(rect.width, 18)
        self.assertEqual([query["font-family"] for query in catalog.queries], ["Missing", "Osaka"])

    def test_no_font_at_all_raises(self) -> None:
        session = fake_session(faces=[])
        item = NodeItem(type="text", depth=0, text="abc")
        with self.assertRaises(FontNotFoundError) as ctx:
            append_text(session, self.parent, 0, item, {}, {})
        self.assertEqual(ctx.exception.code, "E_FONT_NOT_FOUND")
        self.assertIn('"font-family": "Osaka"', str(ctx.exception))


class HorizontalRuleTests(unittest.TestCase):
    def test_rule_is_adjusted_later(self) -> None:
        parent = ET.Element(q("g"))
        rule = append_horizontal_rule(parent, 22, {"margin": 10, "stroke": "red"})
        line = parent.find(q("line"))
        self.assertEqual((line.get("y1"), line.get("y2"), line.get("x2")), ("27", "27", "0"))
        self.assertEqual(parse_inline_style(line.get("style"))["stroke"], "red")
        self.assertEqual(rule.rect, Rect(x=0, y=22, width=0, height=10))
        rule.adjust(150)
        self.assertEqual(line.get("x2"), "150")
        self.assertEqual(rule.rect.width, 150)

    def test_default_height(self) -> None:
        rule = append_horizontal_rule(ET.Element(q("g")), 0, {})
        self.assertEqual(rule.rect.height, 10)


class NodeFactoryTests(unittest.TestCase):
    def setUp(self) -> None:
        self.session = fake_session()

    def make(self, node_type: str, *items: NodeItem, style=None) -> Node:
        return Node(id="n", title="n", type=node_type, items=list(items), style=style or {})

    def test_screen_has_minimum_size(self) -> None:
        node = self.make("screen", NodeItem("text", 0, "S"))
        g = node_factory(self.session, node)
        self.assertEqual(g.get("class"), "screen")
        rect = g.find(q("rect"))
        self.assertEqual((rect.get("width"), rect.get("height")), ("200", "120"))
        self.assertEqual((node.width, node.height), (200, 120))
        self.assertIsNone(rect.get("rx"))
        self.assertEqual(
            parse_inline_style(rect.get("style")),
            {"fill": "white", "stroke": "black", "stroke-width": "1", "stroke-dasharray": "none"},
        )

    def test_operation_fits_content_with_rounded_corners(self) -> None:
        node = self.make("operation", NodeItem("text", 0, "Op"))
        g = node_factory(self.session, node)
        rect = g.find(q("rect"))
        self.assertEqual((node.width, node.height), (32, 32))
        self.assertEqual((rect.get("rx"), rect.get("ry")), ("10", "10"))
        text = g.find(q("text"))
        self.assertEqual((text.get("x"), text.get("y")), ("10", "10"))

    def test_rule_spans_node_width(self) -> None:
        node = self.make("screen", NodeItem("text", 0, "S"), NodeItem("hr", 0, ""), NodeItem("text", 0, "after"))
        g = node_factory(self.session, node)
        line = g.find(q("line"))
        self.assertEqual(line.get("y1"), "27")
        self.assertEqual(line.get("x2"), "200")
        texts = g.findall(q("text"))
        self.assertEqual(texts[1].get("y"), "32")

    def test_node_style_colours_frame(self) -> None:
        node = self.make("operation", NodeItem("text", 0, "Op"), style={"fill": "red", "margin": "20"})
        g = node_factory(self.session, node)
        self.assertEqual(parse_inline_style(g.find(q("rect")).get("style"))["fill"], "red")
        self.assertEqual(g.find(q("text")).get("x"), "20")
        self.assertEqual(node.width, 42)

    def test_diagram_is_frameless(self) -> None:
        node = self.make("diagram", NodeItem("text", 0, "Flow"), NodeItem("hr", 0, ""))
        g = node_factory(self.session, node)
        self.assertEqual(children(g), ["text"])
        self.assertEqual((node.width, node.height), (44, 32))


class EdgeLabelFactoryTests(unittest.TestCase):
    def test_label_box(self) -> None:
        edge = Edge(v="a", w="b", name="(a)[go](b)", label="go")
        element = edge_label_factory(fake_session(), edge)
        inner = element.find(q("g"))
        self.assertEqual(children(inner), ["rect", "text"])
        rect = inner.find(q("rect"))
        self.assertEqual((rect.get("width"), rect.get("height")), ("9", "9"))
        self.assertEqual(parse_inline_style(rect.get("style")), {"fill": "white"})
        self.assertEqual((edge.width, edge.height), (9, 9))
        text = inner.find(q("text"))
        self.assertEqual(parse_inline_style(text.get("style"))["font-size"], "9")


if __name__ == "__main__":
    unittest.main()
