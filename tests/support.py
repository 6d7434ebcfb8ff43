"""Shared fixtures: markdown-it tokens and a font catalog with fixed metrics."""
from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

TESTS_DIR = Path(__file__).resolve().parent
PROJECT_ROOT = TESTS_DIR.parent
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from markdown_it.token import Token  # noqa: E402

from md2ifdam.font_utils import FontFace, FontMetrics, matches_query  # noqa: E402
from md2ifdam.shapes import RenderSession  # noqa: E402

OSAKA = FontFace(family="Osaka", style="Regular", weight=400, src="<fake>/Osaka.ttf")


def tok(type_: str, **fields: Any) -> Token:
    return Token(type=type_, tag="", nesting=0, **fields)


class FakeFont:
    def __init__(
        self,
        face: FontFace = OSAKA,
        *,
        ascent: float = 800,
        descent: float = -200,
        line_gap: float = 0,
        units_per_em: float = 1000,
        advance: float = 500,
    ) -> None:
        self.face = face
        self.metrics = FontMetrics(ascent=ascent, descent=descent, line_gap=line_gap, units_per_em=units_per_em)
        self.advance = advance

    def advances(self, text: str) -> List[float]:
        return [self.advance for _ in text]


class FakeCatalog:
    """Catalog over in-memory faces; every opened face measures 0.5 em per char."""

    def __init__(self, faces: Optional[List[FontFace]] = None) -> None:
        self.faces = [OSAKA] if faces is None else faces
        self.queries: List[Dict[str, Any]] = []

    def find(self, query: Mapping[str, Any]) -> List[FontFace]:
        return [face for face in self.faces if matches_query(face, query)]

    def open(self, query: Mapping[str, Any]) -> Optional[FakeFont]:
        self.queries.append(dict(query))
        faces = self.find(query)
        return FakeFont(faces[0]) if faces else None


def fake_session(faces: Optional[List[FontFace]] = None) -> RenderSession:
    return RenderSession(fonts=FakeCatalog(faces))  # type: ignore[arg-type]
