"""
Tests for relative-to-absolute coordinate projection.
"""
import math

import pytest

from docsign.pdf.errors import MissingCoordinateData
from docsign.pdf.geometry import PageGeometry
from docsign.pdf.placement import MergeTargetBox, SignaturePlacement, TextAnnotation
from docsign.pdf.projection import (
    clamp_to_page,
    project_placement,
    project_text_origin,
    shift_into_page,
    to_fitz_point,
    to_fitz_rect,
    to_relative,
)

LETTER = PageGeometry(width=612, height=792)
A4 = PageGeometry(width=595, height=842)


def _placement(rx, ry, rw, rh, page=1):
    return SignaturePlacement(
        id="sig-1",
        page=page,
        relative_x=rx,
        relative_y=ry,
        relative_width=rw,
        relative_height=rh,
    )


class TestProjectPlacement:
    """Test project_placement() scenarios."""

    def test_letter_page_projection(self):
        box = project_placement(_placement(0.15, 0.15, 0.49, 0.19), LETTER)

        assert box.x == pytest.approx(91.8)
        assert box.y == pytest.approx(522.72)
        assert box.width == pytest.approx(299.88)
        assert box.height == pytest.approx(150.48)

    def test_top_left_corner_maps_to_top_of_page(self):
        box = project_placement(_placement(0.0, 0.0, 0.5, 0.1), A4)

        assert box.x == 0
        assert box.y + box.height == pytest.approx(A4.height)

    def test_right_edge_overflow_shrinks_width(self):
        box = project_placement(_placement(0.8, 0.1, 0.3, 0.1), LETTER)

        assert box.x == pytest.approx(489.6)
        assert box.x + box.width == pytest.approx(LETTER.width)
        assert box.width == pytest.approx(122.4)

    def test_bottom_overflow_pins_to_zero(self):
        box = project_placement(_placement(0.1, 0.95, 0.3, 0.1), LETTER)

        assert box.y == 0
        assert box.height == pytest.approx(39.6)

    def test_bottom_overflow_keeps_minimum_height(self):
        box = project_placement(_placement(0.1, 0.999, 0.3, 0.1), LETTER)

        assert box.y == 0
        assert box.height == pytest.approx(10.0)

    def test_custom_minimum_clamped_height(self):
        box = project_placement(_placement(0.1, 0.999, 0.3, 0.1), LETTER, min_clamped_height=25)

        assert box.height == pytest.approx(25.0)

    @pytest.mark.parametrize("missing", ["relative_x", "relative_y", "relative_width", "relative_height"])
    def test_missing_coordinate_rejected(self, missing):
        placement = _placement(0.1, 0.1, 0.2, 0.1)
        setattr(placement, missing, None)

        with pytest.raises(MissingCoordinateData) as exc_info:
            project_placement(placement, LETTER)

        assert exc_info.value.placement_id == "sig-1"
        assert exc_info.value.code == "MISSING_COORDINATE_DATA"

    @pytest.mark.parametrize("value", [math.nan, math.inf, "abc"])
    def test_non_finite_coordinate_rejected(self, value):
        with pytest.raises(MissingCoordinateData):
            project_placement(_placement(value, 0.1, 0.2, 0.1), LETTER)

    def test_numeric_strings_are_accepted(self):
        box = project_placement(_placement("0.5", "0.5", "0.1", "0.1"), LETTER)
        assert box.x == pytest.approx(306)


class TestProjectionProperties:
    """Invariants that hold for any in-range relative box."""

    @pytest.mark.parametrize("rx,ry,rw,rh", [
        (0.0, 0.0, 1.0, 1.0),
        (0.15, 0.15, 0.49, 0.19),
        (0.5, 0.5, 0.5, 0.5),
        (0.05, 0.9, 0.2, 0.1),
        (0.7, 0.02, 0.3, 0.05),
    ])
    @pytest.mark.parametrize("geometry", [LETTER, A4, PageGeometry(width=842, height=595)])
    def test_in_range_box_stays_on_page_and_round_trips(self, rx, ry, rw, rh, geometry):
        box = project_placement(_placement(rx, ry, rw, rh), geometry)
        page = MergeTargetBox(x=0, y=0, width=geometry.width, height=geometry.height)

        assert page.contains(box)
        relative = to_relative(box, geometry)
        assert relative["relativeX"] == pytest.approx(rx)
        assert relative["relativeY"] == pytest.approx(ry)
        assert relative["relativeWidth"] == pytest.approx(rw)
        assert relative["relativeHeight"] == pytest.approx(rh)

    @pytest.mark.parametrize("rx,ry,rw,rh", [
        (0.9, 0.1, 0.4, 0.1),
        (0.1, 0.97, 0.2, 0.2),
        (0.95, 0.99, 0.3, 0.3),
    ])
    def test_overflowing_box_is_clamped_into_page(self, rx, ry, rw, rh):
        box = project_placement(_placement(rx, ry, rw, rh), LETTER)

        assert box.x + box.width <= LETTER.width + 1e-9
        assert box.y >= 0
        assert box.height >= 10.0


class TestClampToPage:
    """Test clamp_to_page()."""

    def test_box_inside_page_untouched(self):
        box = MergeTargetBox(x=10, y=10, width=100, height=50)
        assert clamp_to_page(box, LETTER) == box

    def test_height_never_exceeds_page(self):
        box = MergeTargetBox(x=0, y=-10, width=100, height=2000)
        clamped = clamp_to_page(box, LETTER)

        assert clamped.height == LETTER.height


class TestShiftIntoPage:
    """Test shift_into_page()."""

    def test_box_on_page_untouched(self):
        box = MergeTargetBox(x=10, y=10, width=20, height=10)
        assert shift_into_page(box, LETTER) == box

    def test_right_overflow_moves_left_keeping_size(self):
        box = MergeTargetBox(x=602, y=100, width=20, height=10)

        shifted = shift_into_page(box, LETTER)

        assert (shifted.x, shifted.y) == (pytest.approx(592), 100)
        assert (shifted.width, shifted.height) == (20, 10)

    def test_below_page_moves_up(self):
        shifted = shift_into_page(MergeTargetBox(x=5, y=-4, width=20, height=10), LETTER)

        assert shifted.y == 0
        assert shifted.height == 10

    def test_oversized_box_scales_uniformly(self):
        shifted = shift_into_page(MergeTargetBox(x=-50, y=0, width=1224, height=100), LETTER)

        assert shifted.width == pytest.approx(612)
        assert shifted.height == pytest.approx(50)
        assert shifted.x == pytest.approx(0)


class TestTextAndConversions:
    """Test text origins and PyMuPDF conversions."""

    def test_text_origin_uses_baseline_offset(self):
        annotation = TextAnnotation(id="t1", page=1, relative_x=0.1, relative_y=0.2, text="Hi")
        x, y = project_text_origin(annotation, LETTER, baseline_offset=20)

        assert x == pytest.approx(61.2)
        assert y == pytest.approx(792 - 158.4 - 20)

    def test_text_origin_requires_coordinates(self):
        annotation = TextAnnotation(id="t1", page=1, relative_x=None, relative_y=0.2, text="Hi")

        with pytest.raises(MissingCoordinateData):
            project_text_origin(annotation, LETTER, baseline_offset=20)

    def test_to_fitz_rect_flips_y(self):
        box = MergeTargetBox(x=91.8, y=522.72, width=299.88, height=150.48)
        rect = to_fitz_rect(box, LETTER)

        assert rect.x0 == pytest.approx(91.8)
        assert rect.y0 == pytest.approx(118.8)
        assert rect.x1 == pytest.approx(391.68)
        assert rect.y1 == pytest.approx(269.28)

    def test_to_fitz_point_flips_y(self):
        point = to_fitz_point(10, 700, LETTER)

        assert point.x == 10
        assert point.y == 92
