"""ElementTree helpers for building SVG documents."""
from __future__ import annotations

import math
import xml.etree.ElementTree as ET
from typing import Optional

SVG_NS = "http://www.w3.org/2000/svg"
ET.register_namespace("", SVG_NS)

NAMESPACES = {"svg": SVG_NS}


def q(tag: str) -> str:
    return f"{{{SVG_NS}}}{tag}"


def fmt(value: float) -> str:
    if math.isclose(value, round(value)):
        return str(int(round(value)))
    return f"{value:.3f}".rstrip("0").rstrip(".")


def local_name(tag: str) -> str:
    if tag.startswith("{"):
        return tag.split("}", 1)[1]
    return tag


def add_class(elem: ET.Element, name: str) -> None:
    classes = (elem.get("class") or "").split()
    if name not in classes:
        classes.append(name)
    elem.set("class", " ".join(classes))


def has_class(elem: ET.Element, name: str) -> bool:
    return name in (elem.get("class") or "").split()


def find_by_id(root: ET.Element, elem_id: str) -> Optional[ET.Element]:
    for node in root.iter():
        if node.get("id") == elem_id:
            return node
    return None


def pretty_xml(element: ET.Element) -> str:
    ET.indent(element, space="  ")
    return ET.tostring(element, encoding="unicode")
