"""
Page geometry resolution.

The page box is read straight from the PDF page object. Dimensions reported
by a rendering layer (PDF.js viewport, canvas size) are never trusted: they
can come back with width and height swapped or scaled by a device DPI.

/Rotate is read but not applied. Signature boxes are authored against the
unrotated presentation, so placement math always uses rotation 0.
"""
import logging
from dataclasses import dataclass
from enum import Enum

import fitz  # PyMuPDF

from docsign.pdf.errors import InvalidPageGeometry

logger = logging.getLogger(__name__)


class Orientation(str, Enum):
    PORTRAIT = "portrait"
    LANDSCAPE = "landscape"


@dataclass(frozen=True)
class PageGeometry:
    """Authoritative size of one page in PDF points."""
    width: float
    height: float
    rotation: int = 0  # placement rotation, always 0
    declared_rotation: int = 0  # /Rotate as stored in the PDF
    page_number: int = 1

    @property
    def orientation(self) -> Orientation:
        return Orientation.LANDSCAPE if self.width > self.height else Orientation.PORTRAIT

    @property
    def aspect_ratio(self) -> float:
        return self.width / self.height

    def to_dict(self) -> dict:
        return {
            "page": self.page_number,
            "width": self.width,
            "height": self.height,
            "rotation": self.rotation,
            "declared_rotation": self.declared_rotation,
            "orientation": self.orientation.value,
        }


def resolve_page_geometry(page: fitz.Page) -> PageGeometry:
    """
    Resolve the geometry used for placement on a PyMuPDF page.

    Args:
        page: Loaded PyMuPDF page

    Returns:
        PageGeometry with rotation forced to 0

    Raises:
        InvalidPageGeometry: If the page box is empty or negative
    """
    page_number = page.number + 1
    box = page.cropbox
    width = float(box.width)
    height = float(box.height)

    if width <= 0 or height <= 0:
        raise InvalidPageGeometry(
            f"Page {page_number} has invalid dimensions {width}x{height}",
            page=page_number,
        )

    declared_rotation = int(page.rotation or 0) % 360
    if declared_rotation:
        logger.warning(
            f"Page {page_number} declares /Rotate {declared_rotation}; "
            f"placing signatures against the unrotated {width:.1f}x{height:.1f} box"
        )

    return PageGeometry(
        width=width,
        height=height,
        rotation=0,
        declared_rotation=declared_rotation,
        page_number=page_number,
    )
