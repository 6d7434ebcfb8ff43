"""Style declarations: footnote extraction, merging and inline SVG styles."""
from __future__ import annotations

import re
import xml.etree.ElementTree as ET
from typing import Any, Dict, Mapping, Optional

StyleMap = Dict[str, Any]

_STYLE_DECLARATION = re.compile(r"^\s*([^;]+):\s*([^:]+);")

# Text elements take their colours from font-* names so that a node style
# can colour the frame and the text independently.
CSS_NAME_DICTIONARY = {
    "font-fill": "fill",
    "font-stroke": "stroke",
}


def extract_style(text: str) -> Dict[str, str]:
    """Parse ``key: value;`` declarations from the start of ``text``.

    Parsing stops silently at the first remainder that is not a declaration,
    so ``"fill: red; oops"`` yields ``{"fill": "red"}``.
    """
    result: Dict[str, str] = {}
    remaining = text
    while remaining:
        match = _STYLE_DECLARATION.match(remaining)
        if not match:
            break
        result[match.group(1)] = match.group(2)
        remaining = remaining[match.end():]
    return result


def merge_style(target: StyleMap, extra: Mapping[str, Any]) -> StyleMap:
    """Add keys from ``extra`` that ``target`` does not define yet."""
    for name, value in extra.items():
        target.setdefault(name, value)
    return target


def defaults(*styles: Optional[Mapping[str, Any]]) -> StyleMap:
    """Fold ``styles`` left to right, earlier mappings winning."""
    result: StyleMap = {}
    for style in styles:
        if style:
            merge_style(result, style)
    return result


def css_name(name: str) -> str:
    return CSS_NAME_DICTIONARY.get(name, name)


def apply_styles(
    target: ET.Element, style: Optional[Mapping[str, Any]], *default_styles: Optional[Mapping[str, Any]]
) -> StyleMap:
    """Write the cascaded style of ``target`` into its ``style`` attribute.

    Only properties named by ``default_styles`` are written; everything else
    in ``style`` (``margin`` for instance) is layout input, not CSS. Returns
    the full cascaded mapping.
    """
    known = defaults(*default_styles)
    applying = defaults(style, known)
    declared = parse_inline_style(target.get("style"))
    for name, value in applying.items():
        if name in known:
            declared[css_name(name)] = str(value)
    if declared:
        target.set("style", format_inline_style(declared))
    return applying


def set_style(target: ET.Element, name: str, value: Any) -> None:
    declared = parse_inline_style(target.get("style"))
    declared[name] = str(value)
    target.set("style", format_inline_style(declared))


def parse_inline_style(value: Optional[str]) -> Dict[str, str]:
    declared: Dict[str, str] = {}
    if not value:
        return declared
    for decl in value.split(";"):
        if ":" not in decl:
            continue
        key, raw = decl.split(":", 1)
        key = key.strip()
        if key:
            declared[key] = raw.strip()
    return declared


def format_inline_style(declared: Mapping[str, str]) -> str:
    return "; ".join(f"{name}: {value}" for name, value in declared.items()) + ";"


def style_int(style: Mapping[str, Any], name: str, default: int = 0) -> int:
    """Integer part of a style value, ``default`` when absent or not numeric."""
    value = style.get(name)
    if value is None:
        return default
    if isinstance(value, (int, float)):
        return int(value)
    match = re.match(r"^\s*[-+]?\d+", str(value))
    if match:
        return int(match.group(0))
    return default
