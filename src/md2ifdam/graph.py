"""Graph model built from markdown and consumed by the renderer."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Tuple, Union

from .styles import StyleMap, merge_style

NODE_TYPES = ("void", "diagram", "screen", "operation")

Point = Tuple[float, float]
EdgeKey = Tuple[str, str, str]


@dataclass
class LayoutConfig:
    margin_x: float = 30.0
    margin_y: float = 30.0
    node_sep: float = 50.0
    rank_sep: float = 50.0
    rank_dir: str = "TB"


@dataclass
class NodeItem:
    type: str
    depth: int
    text: str
    close: bool = False


class GraphObject:
    """Capability shared by nodes and edges: a footnote backref and a style."""
    ref: str
    style: StyleMap

    def get_ref(self) -> str:
        return self.ref

    def get_style(self) -> StyleMap:
        return self.style

    def merge_style(self, extra: Mapping[str, str]) -> StyleMap:
        return merge_style(self.style, extra)


@dataclass
class Node(GraphObject):
    id: str
    title: str
    type: str
    ref: str = ""
    items: List[NodeItem] = field(default_factory=list)
    style: StyleMap = field(default_factory=dict)
    width: Optional[float] = None
    height: Optional[float] = None
    x: Optional[float] = None
    y: Optional[float] = None

    def push_item(self, item: NodeItem) -> None:
        self.items.append(item)


@dataclass
class Edge(GraphObject):
    v: str
    w: str
    name: str
    label: str = ""
    ref: str = ""
    style: StyleMap = field(default_factory=dict)
    width: Optional[float] = None
    height: Optional[float] = None
    x: Optional[float] = None
    y: Optional[float] = None
    points: List[Point] = field(default_factory=list)

    @property
    def key(self) -> EdgeKey:
        return (self.v, self.w, self.name)


class Graph:
    """Directed multigraph keeping nodes and edges in insertion order."""

    def __init__(self, config: Optional[LayoutConfig] = None) -> None:
        self.config = config or LayoutConfig()
        self.width: float = 0.0
        self.height: float = 0.0
        self._nodes: Dict[str, Node] = {}
        self._edges: Dict[EdgeKey, Edge] = {}

    def add_node(self, node: Node) -> Node:
        if node.id in self._nodes:
            raise ValueError(f'duplicate node id "{node.id}"')
        self._nodes[node.id] = node
        return node

    def node(self, node_id: str) -> Optional[Node]:
        return self._nodes.get(node_id)

    def has_node(self, node_id: str) -> bool:
        return node_id in self._nodes

    def nodes(self) -> List[Node]:
        return list(self._nodes.values())

    def node_count(self) -> int:
        return len(self._nodes)

    def count_titles(self, title: str) -> int:
        return sum(1 for node in self._nodes.values() if node.title == title)

    def set_edge(self, v: str, w: str, name: str, *, label: str = "", ref: str = "") -> Edge:
        edge = Edge(v=v, w=w, name=name, label=label, ref=ref)
        self._edges[edge.key] = edge
        return edge

    def edges(self) -> List[Edge]:
        return list(self._edges.values())

    def edge_count(self) -> int:
        return len(self._edges)

    def find_by_ref(self, ref: str) -> Optional[Union[Node, Edge]]:
        """First node, then first edge, carrying ``ref`` as footnote backref."""
        for node in self._nodes.values():
            if node.get_ref() == ref:
                return node
        for edge in self._edges.values():
            if edge.get_ref() == ref:
                return edge
        return None
