from __future__ import annotations

import os
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from support import OSAKA, FakeFont

from md2ifdam.font_utils import (
    FONT_DIRS_ENV,
    FontCatalog,
    FontFace,
    _env_font_dirs,
    get_computed_text_width,
    get_text_height,
    matches_query,
    weight_from_style,
)


class MetricsTests(unittest.TestCase):
    def test_height_without_line_gap_when_taller_than_em(self) -> None:
        font = FakeFont(ascent=900, descent=-300, line_gap=500, units_per_em=1000)
        self.assertEqual(get_text_height(font, 12), 14)

    def test_height_adds_line_gap_within_em(self) -> None:
        font = FakeFont(ascent=800, descent=-150, line_gap=100, units_per_em=1000)
        self.assertEqual(get_text_height(font, 12), 12)

    def test_width_rounds_up(self) -> None:
        font = FakeFont(advance=500, units_per_em=1000)
        self.assertEqual(get_computed_text_width(font, 16, "Lorem ipsum dolor sit amet,"), 216)
        self.assertEqual(get_computed_text_width(font, 9, "abc"), 14)
        self.assertEqual(get_computed_text_width(font, 12, ""), 0)


class QueryTests(unittest.TestCase):
    def test_weight_from_style(self) -> None:
        self.assertEqual(weight_from_style("Regular"), 400)
        self.assertEqual(weight_from_style("Bold Italic"), 700)
        self.assertEqual(weight_from_style("SemiBold"), 600)
        self.assertEqual(weight_from_style("Extra-Light"), 200)
        self.assertEqual(weight_from_style("W3"), 400)

    def test_matches_query(self) -> None:
        self.assertTrue(matches_query(OSAKA, {"font-family": "Osaka", "font-style": "Regular", "font-weight": 400}))
        self.assertTrue(matches_query(OSAKA, {"font-family": "Osaka"}))
        self.assertTrue(matches_query(OSAKA, {"font-weight": "normal"}))
        self.assertTrue(matches_query(OSAKA, {}))
        self.assertFalse(matches_query(OSAKA, {"font-family": "Helvetica"}))
        self.assertFalse(matches_query(OSAKA, {"font-weight": "bold"}))
        self.assertFalse(matches_query(OSAKA, {"font-style": "Italic"}))


class CatalogTests(unittest.TestCase):
    def test_env_font_dirs(self) -> None:
        raw = os.pathsep.join(["/tmp/a", "", "/tmp/b"])
        with mock.patch.dict(os.environ, {FONT_DIRS_ENV: raw}):
            self.assertEqual(_env_font_dirs(), [Path("/tmp/a"), Path("/tmp/b")])

    def test_missing_and_empty_dirs_have_no_faces(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            (Path(td) / "notes.txt").write_text("not a font", encoding="utf-8")
            (Path(td) / "broken.ttf").write_bytes(b"not a font either")
            catalog = FontCatalog([Path(td), Path(td) / "missing"])
            self.assertEqual(catalog.all_faces(), [])
            self.assertIsNone(catalog.open({"font-family": "Osaka"}))

    def test_find_filters_scanned_faces(self) -> None:
        faces = [
            FontFace("Osaka", "Regular", 400, "/fonts/Osaka.ttf"),
            FontFace("Osaka", "Bold", 700, "/fonts/Osaka-Bold.ttf"),
            FontFace("Helvetica", "Regular", 400, "/fonts/Helvetica.ttc", 1),
        ]
        catalog = FontCatalog([])
        with mock.patch.object(FontCatalog, "_scan", return_value=iter(faces)) as scan:
            self.assertEqual(catalog.find({"font-family": "Osaka"}), faces[:2])
            self.assertEqual(catalog.find({"font-weight": 400}), [faces[0], faces[2]])
        scan.assert_called_once_with()

    def test_real_font_metrics(self) -> None:
        catalog = FontCatalog()
        faces = catalog.all_faces()
        if not faces:
            self.skipTest("no local fonts installed")
        font = catalog.open_face(faces[0])
        self.assertIs(catalog.open_face(faces[0]), font)
        height = get_text_height(font, 12)
        width = get_computed_text_width(font, 12, "Lorem ipsum")
        self.assertGreater(height, 0)
        self.assertGreater(width, 0)
        for _ in range(3):
            self.assertEqual(get_text_height(font, 12), height)
            self.assertEqual(get_computed_text_width(font, 12, "Lorem ipsum"), width)
        reopened = FontCatalog().open_face(faces[0])
        self.assertEqual(get_text_height(reopened, 12), height)
        self.assertEqual(get_computed_text_width(reopened, 12, "Lorem ipsum"), width)
        self.assertEqual(get_computed_text_width(font, 12, ""), 0)


if __name__ == "__main__":
    unittest.main()
