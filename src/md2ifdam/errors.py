"""Error types raised by the markdown to diagram pipeline."""
from __future__ import annotations

import json
from typing import Any, Mapping, Optional


class Md2IfdamError(ValueError):
    """Structured error with a stable code for CLI mapping."""

    code = "E_MD2IFDAM"

    def __init__(self, message: str, *, code: Optional[str] = None) -> None:
        super().__init__(message)
        if code is not None:
            self.code = code
        self.message = message

    def __str__(self) -> str:
        return self.message


class FontNotFoundError(Md2IfdamError):
    """No local font matches the requested style, not even the base font."""

    code = "E_FONT_NOT_FOUND"

    def __init__(self, style: Mapping[str, Any]) -> None:
        self.style = dict(style)
        super().__init__(
            f"font not found. Setting is {json.dumps(self.style, ensure_ascii=False, default=str)}"
        )


class SelectorError(Md2IfdamError):
    code = "E_RENDER_SELECTOR"

    def __init__(self, selector: str) -> None:
        self.selector = selector
        super().__init__(f"selector '{selector}' is not for a SVGGElement.")


class LayoutError(Md2IfdamError):
    code = "E_GRAPH_LAYOUT_FAILED"
