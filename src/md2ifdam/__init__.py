"""Public API for md2ifdam."""
from .compiler import compile_file, compile_markdown, compile_to_string
from .errors import FontNotFoundError, LayoutError, Md2IfdamError, SelectorError
from .graph import Edge, Graph, LayoutConfig, Node, NodeItem
from .graph_renderer import render
from .markdown_parser import parse_markdown, parse_tokens
from .shapes import RenderSession
from .styles import extract_style

__all__ = [
    "compile_file",
    "compile_markdown",
    "compile_to_string",
    "parse_markdown",
    "parse_tokens",
    "render",
    "extract_style",
    "Graph",
    "Node",
    "Edge",
    "NodeItem",
    "LayoutConfig",
    "RenderSession",
    "Md2IfdamError",
    "FontNotFoundError",
    "SelectorError",
    "LayoutError",
]
