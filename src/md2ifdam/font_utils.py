"""Local font discovery and text metrics backed by Pillow."""
from __future__ import annotations

import logging
import math
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from PIL import ImageFont

logger = logging.getLogger(__name__)

# Fonts are loaded at this pixel size so that pixel metrics read as font
# units of an em this large.
REFERENCE_UNITS_PER_EM = 2048

FONT_DIRS_ENV = "MD2IFDAM_FONT_DIRS"

WEIGHT_NAMES = [
    ("thin", 100),
    ("hairline", 100),
    ("extralight", 200),
    ("ultralight", 200),
    ("semibold", 600),
    ("demibold", 600),
    ("extrabold", 800),
    ("ultrabold", 800),
    ("light", 300),
    ("medium", 500),
    ("bold", 700),
    ("heavy", 900),
    ("black", 900),
]


@dataclass(frozen=True)
class FontFace:
    family: str
    style: str
    weight: int
    src: str
    index: int = 0


@dataclass(frozen=True)
class FontMetrics:
    ascent: float
    descent: float
    line_gap: float
    units_per_em: float


class LoadedFont:
    """An opened face with metrics in font units."""

    def __init__(self, face: FontFace, font: "ImageFont.FreeTypeFont") -> None:
        self.face = face
        self._font = font
        ascent, descent = font.getmetrics()
        line_height = getattr(font.font, "height", ascent + descent)
        self.metrics = FontMetrics(
            ascent=float(ascent),
            descent=-float(descent),
            line_gap=float(max(0, line_height - ascent - descent)),
            units_per_em=float(REFERENCE_UNITS_PER_EM),
        )

    def advances(self, text: str) -> List[float]:
        return [float(self._font.getlength(ch)) for ch in text]


def get_text_height(font: Any, font_size: float) -> int:
    metrics = font.metrics
    font_height = metrics.ascent - metrics.descent
    line_height = font_height if font_height > metrics.units_per_em else font_height + metrics.line_gap
    return math.floor(line_height / metrics.units_per_em * font_size)


def get_computed_text_width(font: Any, font_size: float, text: str) -> int:
    total_advance_width = sum(font.advances(text))
    return math.ceil(total_advance_width / font.metrics.units_per_em * font_size)


def weight_from_style(style: str) -> int:
    normalized = re.sub(r"[^a-z]+", "", style.lower())
    for name, weight in WEIGHT_NAMES:
        if name in normalized:
            return weight
    return 400


def matches_query(face: FontFace, query: Mapping[str, Any]) -> bool:
    family = query.get("font-family") or ""
    if family and family != face.family:
        return False
    style = query.get("font-style") or ""
    if style and style != face.style:
        return False
    weight = _query_weight(query.get("font-weight"))
    return weight == 0 or weight == face.weight


def _query_weight(value: Any) -> int:
    if value is None or value == "":
        return 0
    if isinstance(value, (int, float)):
        return int(value)
    lowered = str(value).strip().lower()
    if lowered == "normal":
        return 400
    if lowered == "bold":
        return 700
    try:
        return int(float(lowered))
    except ValueError:
        return 0


class FontCatalog:
    """Index of local font faces plus a cache of opened fonts.

    Both are filled lazily and live as long as the catalog, which is owned
    by a render session rather than the process.
    """

    FONT_DIRS = [
        Path("/System/Library/Fonts"),
        Path("/System/Library/Fonts/Supplemental"),
        Path("/Library/Fonts"),
        Path("~/Library/Fonts").expanduser(),
        Path("/usr/share/fonts"),
        Path("/usr/local/share/fonts"),
        Path("~/.local/share/fonts").expanduser(),
        Path("~/.fonts").expanduser(),
        Path("C:/Windows/Fonts"),
    ]
    FONT_SUFFIXES = {".ttf", ".otf", ".ttc"}
    MAX_COLLECTION_FACES = 64

    def __init__(self, font_dirs: Optional[Sequence[Path]] = None) -> None:
        if font_dirs is None:
            font_dirs = [*_env_font_dirs(), *self.FONT_DIRS]
        self.font_dirs = [Path(d) for d in font_dirs]
        self._faces: Optional[List[FontFace]] = None
        self._fonts: Dict[Tuple[str, int], LoadedFont] = {}

    def all_faces(self) -> List[FontFace]:
        if self._faces is None:
            self._faces = list(self._scan())
            logger.debug("found %d local font faces", len(self._faces))
        return self._faces

    def find(self, query: Mapping[str, Any]) -> List[FontFace]:
        return [face for face in self.all_faces() if matches_query(face, query)]

    def open(self, query: Mapping[str, Any]) -> Optional[LoadedFont]:
        faces = self.find(query)
        if not faces:
            return None
        return self.open_face(faces[0])

    def open_face(self, face: FontFace) -> LoadedFont:
        key = (face.src, face.index)
        font = self._fonts.get(key)
        if font is not None:
            return font
        loaded = LoadedFont(face, ImageFont.truetype(face.src, REFERENCE_UNITS_PER_EM, index=face.index))
        self._fonts[key] = loaded
        logger.info("A font is loaded: %s", face.src)
        return loaded

    def _scan(self) -> Iterable[FontFace]:
        seen = set()
        for directory in self.font_dirs:
            if not directory.exists():
                continue
            for path in sorted(directory.rglob("*")):
                if path.suffix.lower() not in self.FONT_SUFFIXES or not path.is_file():
                    continue
                resolved = str(path.resolve())
                if resolved in seen:
                    continue
                seen.add(resolved)
                yield from self._read_faces(path)

    def _read_faces(self, path: Path) -> Iterable[FontFace]:
        count = self.MAX_COLLECTION_FACES if path.suffix.lower() == ".ttc" else 1
        for index in range(count):
            try:
                font = ImageFont.truetype(str(path), 10, index=index)
            except OSError:
                if index == 0:
                    logger.debug("skipping unreadable font file %s", path)
                break
            family, style = font.getname()
            if not family:
                continue
            style = style or "Regular"
            yield FontFace(
                family=family,
                style=style,
                weight=weight_from_style(style),
                src=str(path),
                index=index,
            )


def _env_font_dirs() -> List[Path]:
    raw = os.getenv(FONT_DIRS_ENV, "")
    return [Path(part).expanduser() for part in raw.split(os.pathsep) if part.strip()]
