"""Build the diagram graph from a markdown-it token stream.

Headings open nodes (``#`` diagram, ``##`` screen, ``###`` operation), links
become edges, footnotes carry ``key: value;`` styles for the node or edge
that references them, and ``@``-prefixed nested bullets open brace blocks
that are closed when their list item ends.
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence
from urllib.parse import unquote

from markdown_it import MarkdownIt
from markdown_it.token import Token
from mdit_py_plugins.footnote import footnote_plugin

from .graph import NODE_TYPES, Graph, LayoutConfig, Node, NodeItem
from .styles import extract_style

logger = logging.getLogger(__name__)


def get_depth(token: Token) -> int:
    return (token.level - 1) // 2 if token.level > 0 else 0


def _meta_label(token: Token) -> str:
    meta = token.meta or {}
    label = meta.get("label")
    return "" if label is None else str(label)


def create_node(graph: Graph, depth: int, inline: Token) -> Optional[Node]:
    """Add the node announced by a heading, or return ``None`` past ``###``."""
    if not 0 < depth < len(NODE_TYPES) or inline.children is None:
        return None
    title: Optional[str] = None
    ref = ""
    for child in inline.children:
        if child.type == "text" and title is None:
            title = child.content.strip()
        elif child.type == "footnote_ref":
            ref = _meta_label(child)
    title = title or ""
    node_id = title
    count = graph.count_titles(title)
    if count:
        node_id = f"{title} [{count}]"
    # A literal heading such as "A [1]" may already hold the numbered id.
    while graph.has_node(node_id):
        count += 1
        node_id = f"{title} [{count}]"
    node = Node(
        id=node_id,
        title=title,
        ref=ref,
        type=NODE_TYPES[depth],
        items=[NodeItem(type="text", depth=0, text=node_id)],
    )
    return graph.add_node(node)


@dataclass
class _Line:
    text: str = ""
    target: str = ""
    label: str = ""
    ref: str = ""
    in_link: bool = False


def parse_inline(graph: Graph, node: Node, inline: Token) -> bool:
    """Add one text item per source line and one edge per link.

    Returns ``True`` when the inline opened a brace block, i.e. it is a
    nested list line starting with ``@``.
    """
    depth = get_depth(inline)
    line = _Line()

    def flush() -> None:
        nonlocal line
        if line.text:
            node.push_item(NodeItem(type="text", depth=depth, text=line.text))
        if line.target:
            name = f"({node.id})[{line.label}]({line.target})"
            graph.set_edge(node.id, line.target, name, label=line.label, ref=line.ref)
        line = _Line()

    for child in inline.children or []:
        if child.type == "text":
            if line.in_link:
                line.label += child.content.strip()
            else:
                line.text += child.content.strip()
        elif child.type == "footnote_ref":
            if line.in_link:
                line.ref = _meta_label(child)
        elif child.type == "link_open":
            line.target = unquote(str(child.attrGet("href") or ""))
            line.in_link = True
        elif child.type == "softbreak":
            flush()

    open_brace = inline.level > 0 and line.text.startswith("@")
    if open_brace:
        line.text += " {"
    flush()
    return open_brace


def parse_footnote_inline(graph: Graph, ref: str, inline: Token) -> None:
    target = graph.find_by_ref(ref)
    if target is None:
        logger.debug("footnote [^%s] does not match any node or edge", ref)
        return
    for child in inline.children or []:
        if child.type == "text":
            target.merge_style(extract_style(child.content))


class Phase(enum.Enum):
    IDLE = "idle"
    HEADING = "heading"
    FOOTNOTE = "footnote"


@dataclass
class _ListEntry:
    token: Token
    brace_open: bool = False


@dataclass
class TokenStateMachine:
    """Single pass over the block token stream.

    The phase remembers the last structural token (heading or footnote
    open), which decides how the next ``inline`` token is read.
    """

    graph: Graph
    node: Optional[Node] = None
    phase: Phase = Phase.IDLE
    heading_depth: int = 0
    footnote_label: str = ""
    list_stack: List[_ListEntry] = field(default_factory=list)

    def feed(self, token: Token) -> None:
        handler = _HANDLERS.get(token.type)
        if handler is not None:
            handler(self, token)

    def on_heading_open(self, token: Token) -> None:
        self.phase = Phase.HEADING
        self.heading_depth = len(token.markup)

    def on_footnote_open(self, token: Token) -> None:
        self.phase = Phase.FOOTNOTE
        self.footnote_label = _meta_label(token)

    def on_close(self, token: Token) -> None:
        self.phase = Phase.IDLE

    def on_inline(self, token: Token) -> None:
        if self.phase is Phase.HEADING:
            self.node = create_node(self.graph, self.heading_depth, token)
            if self.node is None:
                logger.debug("heading level %d does not make a node", self.heading_depth)
            return
        if self.node is None:
            return
        if self.phase is Phase.FOOTNOTE:
            parse_footnote_inline(self.graph, self.footnote_label, token)
            return
        open_brace = parse_inline(self.graph, self.node, token)
        if self.list_stack:
            self.list_stack[-1].brace_open = open_brace

    def on_hr(self, token: Token) -> None:
        if self.node is not None:
            self.node.push_item(NodeItem(type="hr", depth=0, text=""))

    def on_list_item_open(self, token: Token) -> None:
        if self.node is not None:
            self.list_stack.append(_ListEntry(token))

    def on_list_item_close(self, token: Token) -> None:
        if self.node is None or not self.list_stack:
            return
        entry = self.list_stack.pop()
        if entry.brace_open:
            self.node.push_item(NodeItem(type="text", depth=get_depth(token), text="}", close=True))


_HANDLERS: Dict[str, Callable[[TokenStateMachine, Token], None]] = {
    "heading_open": TokenStateMachine.on_heading_open,
    "heading_close": TokenStateMachine.on_close,
    "footnote_open": TokenStateMachine.on_footnote_open,
    "footnote_close": TokenStateMachine.on_close,
    "inline": TokenStateMachine.on_inline,
    "hr": TokenStateMachine.on_hr,
    "list_item_open": TokenStateMachine.on_list_item_open,
    "list_item_close": TokenStateMachine.on_list_item_close,
}


def parse_tokens(graph: Graph, tokens: Sequence[Token]) -> None:
    machine = TokenStateMachine(graph)
    for token in tokens:
        machine.feed(token)


def init_graph(config: Optional[LayoutConfig] = None) -> Graph:
    return Graph(config)


def markdown_tokenizer() -> MarkdownIt:
    return MarkdownIt("default").enable("list").use(footnote_plugin)


def parse_markdown(source: str, config: Optional[LayoutConfig] = None) -> Graph:
    graph = init_graph(config)
    parse_tokens(graph, markdown_tokenizer().parse(source))
    logger.debug("parsed %d nodes and %d edges", graph.node_count(), graph.edge_count())
    return graph
