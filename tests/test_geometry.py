"""
Tests for page geometry resolution.
"""
import logging
from unittest.mock import MagicMock

import fitz  # PyMuPDF
import pytest

from docsign.pdf.errors import InvalidPageGeometry
from docsign.pdf.geometry import Orientation, PageGeometry, resolve_page_geometry


def _page(width, height, rotation=0):
    doc = fitz.open()
    page = doc.new_page(width=width, height=height)
    if rotation:
        page.set_rotation(rotation)
    return doc, page


class TestResolvePageGeometry:
    """Test resolve_page_geometry()."""

    def test_letter_portrait(self):
        doc, page = _page(612, 792)
        geometry = resolve_page_geometry(page)
        doc.close()

        assert geometry.width == 612
        assert geometry.height == 792
        assert geometry.rotation == 0
        assert geometry.page_number == 1
        assert geometry.orientation == Orientation.PORTRAIT

    def test_landscape_page(self):
        doc, page = _page(842, 595)
        geometry = resolve_page_geometry(page)
        doc.close()

        assert geometry.orientation == Orientation.LANDSCAPE
        assert geometry.aspect_ratio == pytest.approx(842 / 595)

    def test_rotation_is_read_but_not_applied(self, caplog):
        """A /Rotate page keeps its unrotated box and placement rotation 0."""
        doc, page = _page(612, 792, rotation=90)

        with caplog.at_level(logging.WARNING, logger="docsign.pdf.geometry"):
            geometry = resolve_page_geometry(page)
        doc.close()

        assert geometry.width == 612
        assert geometry.height == 792
        assert geometry.rotation == 0
        assert geometry.declared_rotation == 90
        assert "Rotate 90" in caplog.text

    def test_unrotated_page_does_not_warn(self, caplog):
        doc, page = _page(595, 842)

        with caplog.at_level(logging.WARNING, logger="docsign.pdf.geometry"):
            resolve_page_geometry(page)
        doc.close()

        assert caplog.records == []

    def test_page_number_is_one_indexed(self):
        doc = fitz.open()
        doc.new_page(width=595, height=842)
        doc.new_page(width=842, height=595)
        geometry = resolve_page_geometry(doc[1])
        doc.close()

        assert geometry.page_number == 2
        assert geometry.width == 842

    def test_empty_page_box_rejected(self):
        page = MagicMock()
        page.number = 0
        page.rotation = 0
        page.cropbox = fitz.Rect(0, 0, 0, 792)

        with pytest.raises(InvalidPageGeometry) as exc_info:
            resolve_page_geometry(page)

        assert exc_info.value.code == "INVALID_PAGE_GEOMETRY"
        assert exc_info.value.page == 1


class TestPageGeometry:
    """Test PageGeometry value object."""

    def test_to_dict(self):
        geometry = PageGeometry(width=612, height=792, declared_rotation=270, page_number=3)
        assert geometry.to_dict() == {
            "page": 3,
            "width": 612,
            "height": 792,
            "rotation": 0,
            "declared_rotation": 270,
            "orientation": "portrait",
        }

    def test_square_page_is_portrait(self):
        assert PageGeometry(width=500, height=500).orientation == Orientation.PORTRAIT
