"""
Relative-to-absolute coordinate projection.

Canonical rule: relative_y is the offset of the box's top edge from the top of
the page. The PDF draw box has its origin at the bottom-left, so

    draw_y = H - relative_y * H - relative_height * H

No rotation compensation is applied (see docsign.pdf.geometry).
"""
import logging
import math
from typing import Optional, Tuple

import fitz  # PyMuPDF

from docsign.pdf.errors import MissingCoordinateData
from docsign.pdf.geometry import PageGeometry
from docsign.pdf.placement import MergeTargetBox, SignaturePlacement, TextAnnotation

logger = logging.getLogger(__name__)

# Height floor applied when a box is cut at the bottom page edge
MIN_CLAMPED_HEIGHT = 10.0


def _require_finite(value: Optional[float], name: str, placement_id: str, page: int) -> float:
    if value is None or isinstance(value, bool):
        raise MissingCoordinateData(
            f"Placement {placement_id} has no {name}",
            placement_id=placement_id,
            page=page,
        )
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise MissingCoordinateData(
            f"Placement {placement_id} has non-numeric {name}: {value!r}",
            placement_id=placement_id,
            page=page,
        )
    if not math.isfinite(number):
        raise MissingCoordinateData(
            f"Placement {placement_id} has non-finite {name}: {value!r}",
            placement_id=placement_id,
            page=page,
        )
    return number


def clamp_to_page(
    box: MergeTargetBox,
    geometry: PageGeometry,
    min_clamped_height: float = MIN_CLAMPED_HEIGHT,
) -> MergeTargetBox:
    """
    Shrink a box so it stays on the page.

    Overflow on the right shrinks the width. Overflow below the page shrinks
    the height and pins the box to y = 0, keeping at least min_clamped_height.
    """
    x, y, width, height = box.x, box.y, box.width, box.height

    if x + width > geometry.width:
        width = max(geometry.width - x, 0.0)

    if y < 0:
        height = height + y
        y = 0.0
        height = min(max(height, min_clamped_height), geometry.height)

    return MergeTargetBox(x=x, y=y, width=width, height=height)


def shift_into_page(box: MergeTargetBox, geometry: PageGeometry) -> MergeTargetBox:
    """
    Move a box back onto the page without changing its aspect ratio.

    Used after the minimum size floor, where shrinking one side would distort
    the image. A box larger than the page is scaled down first.
    """
    x, y, width, height = box.x, box.y, box.width, box.height

    if width > geometry.width or height > geometry.height:
        scale = min(geometry.width / width, geometry.height / height)
        width *= scale
        height *= scale

    x = min(max(x, 0.0), geometry.width - width)
    y = min(max(y, 0.0), geometry.height - height)

    return MergeTargetBox(x=x, y=y, width=width, height=height)


def project_placement(
    placement: SignaturePlacement,
    geometry: PageGeometry,
    min_clamped_height: float = MIN_CLAMPED_HEIGHT,
) -> MergeTargetBox:
    """
    Project a placement's relative box onto a page.

    Args:
        placement: Placement with relative coordinates (top-left origin)
        geometry: Resolved page geometry
        min_clamped_height: Height floor used when clamping at the bottom edge

    Returns:
        MergeTargetBox in PDF points, bottom-left origin, clamped to the page

    Raises:
        MissingCoordinateData: If any relative coordinate is missing or not finite
    """
    rx = _require_finite(placement.relative_x, "relativeX", placement.id, placement.page)
    ry = _require_finite(placement.relative_y, "relativeY", placement.id, placement.page)
    rw = _require_finite(placement.relative_width, "relativeWidth", placement.id, placement.page)
    rh = _require_finite(placement.relative_height, "relativeHeight", placement.id, placement.page)

    width = rw * geometry.width
    height = rh * geometry.height
    x = rx * geometry.width
    y = geometry.height - ry * geometry.height - height

    projected = MergeTargetBox(x=x, y=y, width=width, height=height)
    clamped = clamp_to_page(projected, geometry, min_clamped_height)

    if clamped != projected:
        logger.debug(
            f"Clamped placement {placement.id} on page {placement.page}: "
            f"{projected.to_dict()} -> {clamped.to_dict()}"
        )

    return clamped


def to_relative(box: MergeTargetBox, geometry: PageGeometry) -> dict:
    """Convert an absolute bottom-left box back to relative top-left values."""
    return {
        "relativeX": box.x / geometry.width,
        "relativeY": (geometry.height - box.y - box.height) / geometry.height,
        "relativeWidth": box.width / geometry.width,
        "relativeHeight": box.height / geometry.height,
    }


def project_text_origin(
    annotation: TextAnnotation,
    geometry: PageGeometry,
    baseline_offset: float,
) -> Tuple[float, float]:
    """
    Project a text annotation to its baseline origin (bottom-left space).

    Raises:
        MissingCoordinateData: If relative x or y is missing
    """
    rx = _require_finite(annotation.relative_x, "relativeX", annotation.id, annotation.page)
    ry = _require_finite(annotation.relative_y, "relativeY", annotation.id, annotation.page)
    x = rx * geometry.width
    y = geometry.height - ry * geometry.height - baseline_offset
    return x, y


def to_fitz_rect(box: MergeTargetBox, geometry: PageGeometry) -> fitz.Rect:
    """Convert a bottom-left box to a PyMuPDF rect (top-left origin, y down)."""
    y_top = geometry.height - box.y - box.height
    return fitz.Rect(box.x, y_top, box.x + box.width, y_top + box.height)


def to_fitz_point(x: float, y: float, geometry: PageGeometry) -> fitz.Point:
    """Convert a bottom-left point to a PyMuPDF point."""
    return fitz.Point(x, geometry.height - y)
