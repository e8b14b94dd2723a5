"""
Tests for aspect-ratio fitting and minimum size.
"""
import pytest

from docsign.pdf.fitting import FittedBox, apply_minimum_size, fit_centered
from docsign.pdf.placement import MergeTargetBox

BOX = MergeTargetBox(x=0, y=0, width=300, height=150)


class TestFitCentered:
    """Test fit_centered()."""

    def test_wide_image_is_width_limited(self):
        fitted = fit_centered(800, 200, BOX)

        assert fitted.width == pytest.approx(300)
        assert fitted.height == pytest.approx(75)
        assert fitted.offset_x == pytest.approx(0)
        assert fitted.offset_y == pytest.approx(37.5)
        assert fitted.y == pytest.approx(37.5)

    def test_tall_image_is_height_limited(self):
        fitted = fit_centered(100, 400, BOX)

        assert fitted.height == pytest.approx(150)
        assert fitted.width == pytest.approx(37.5)
        assert fitted.offset_x == pytest.approx(131.25)
        assert fitted.offset_y == pytest.approx(0)

    def test_matching_ratio_fills_box(self):
        fitted = fit_centered(600, 300, BOX)

        assert fitted.as_target_box() == BOX

    def test_offsets_follow_box_origin(self):
        box = MergeTargetBox(x=100, y=200, width=300, height=150)
        fitted = fit_centered(800, 200, box)

        assert fitted.x == pytest.approx(100)
        assert fitted.y == pytest.approx(237.5)

    @pytest.mark.parametrize("image_size", [(200, 100), (100, 200), (1, 1), (1000, 3)])
    def test_fitted_image_stays_inside_box_with_its_ratio(self, image_size):
        width, height = image_size
        fitted = fit_centered(width, height, BOX)

        assert BOX.contains(fitted.as_target_box())
        assert fitted.width / fitted.height == pytest.approx(width / height)

    def test_degenerate_image_uses_box(self):
        fitted = fit_centered(0, 100, BOX)

        assert fitted.as_target_box() == BOX


class TestApplyMinimumSize:
    """Test apply_minimum_size()."""

    def test_large_box_untouched(self):
        fitted = FittedBox(x=5, y=5, width=100, height=50)
        assert apply_minimum_size(fitted) is fitted

    def test_tiny_box_grows_to_minimum(self):
        fitted = FittedBox(x=5, y=5, width=5, height=2.5)
        grown = apply_minimum_size(fitted)

        assert grown.width == pytest.approx(20)
        assert grown.height == pytest.approx(10)
        assert (grown.x, grown.y) == (5, 5)

    def test_growth_keeps_aspect_ratio(self):
        fitted = FittedBox(x=0, y=0, width=40, height=4)
        grown = apply_minimum_size(fitted)

        assert grown.height == pytest.approx(10)
        assert grown.width == pytest.approx(100)

    def test_custom_minimums(self):
        fitted = FittedBox(x=0, y=0, width=10, height=10)
        grown = apply_minimum_size(fitted, min_width=30, min_height=5)

        assert grown.width == pytest.approx(30)
        assert grown.height == pytest.approx(30)

    def test_zero_area_box_gets_floor(self):
        grown = apply_minimum_size(FittedBox(x=0, y=0, width=0, height=0))

        assert grown.is_drawable()
        assert (grown.width, grown.height) == (20, 10)
