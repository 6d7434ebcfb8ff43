"""Markdown source to SVG document."""
from __future__ import annotations

import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Optional, Union

from .graph import LayoutConfig
from .graph_renderer import render
from .markdown_parser import parse_markdown
from .shapes import RenderSession
from .styles import set_style
from .svg import fmt, pretty_xml, q

XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>'


def create_svg_root() -> ET.Element:
    svg_root = ET.Element(q("svg"), {"version": "1.1"})
    ET.SubElement(svg_root, q("defs"))
    return svg_root


def adjust_svg_root(svg_root: ET.Element, width: float, height: float) -> None:
    svg_root.set("width", fmt(width))
    svg_root.set("height", fmt(height))
    set_style(svg_root, "background", "white")


def compile_markdown(
    source: str,
    config: Optional[LayoutConfig] = None,
    session: Optional[RenderSession] = None,
) -> ET.Element:
    """Parse ``source`` and return the rendered ``<svg>`` element."""
    svg_root = create_svg_root()
    graph = parse_markdown(source, config or LayoutConfig())
    render(svg_root, graph, session)
    adjust_svg_root(svg_root, graph.width, graph.height)
    return svg_root


def compile_to_string(
    source: str,
    config: Optional[LayoutConfig] = None,
    session: Optional[RenderSession] = None,
) -> str:
    return XML_DECLARATION + "\n" + pretty_xml(compile_markdown(source, config, session)) + "\n"


def compile_file(
    source_path: Union[str, Path],
    output_path: Optional[Union[str, Path]] = None,
    config: Optional[LayoutConfig] = None,
    session: Optional[RenderSession] = None,
) -> Path:
    source_path = Path(source_path)
    target = Path(output_path) if output_path else source_path.with_suffix(".svg")
    svg_text = compile_to_string(source_path.read_text(encoding="utf-8"), config, session)
    target.write_text(svg_text, encoding="utf-8")
    return target
