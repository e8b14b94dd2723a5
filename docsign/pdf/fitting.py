"""
Aspect-ratio preserving fit of a signature image inside its target box.

Signature pads produce images whose proportions must survive the merge, so
the image is never stretched to the box: the limiting dimension is fitted and
the other is centered (letterbox / pillarbox).
"""
import logging
from dataclasses import dataclass

from docsign.pdf.placement import MergeTargetBox

logger = logging.getLogger(__name__)

MIN_SIGNATURE_WIDTH = 20.0
MIN_SIGNATURE_HEIGHT = 10.0


@dataclass(frozen=True)
class FittedBox:
    """Drawn image box plus the centering offsets inside the target box."""
    x: float
    y: float
    width: float
    height: float
    offset_x: float = 0.0
    offset_y: float = 0.0

    def as_target_box(self) -> MergeTargetBox:
        return MergeTargetBox(x=self.x, y=self.y, width=self.width, height=self.height)

    def is_drawable(self) -> bool:
        values = (self.x, self.y, self.width, self.height)
        return self.width > 0 and self.height > 0 and all(v == v for v in values)


def fit_centered(image_width: float, image_height: float, box: MergeTargetBox) -> FittedBox:
    """
    Fit an image of the given pixel size centered inside `box`.

    An image with no usable size, or a box with no area, fills the box as is.
    """
    if image_width <= 0 or image_height <= 0 or box.width <= 0 or box.height <= 0:
        logger.warning(
            f"Cannot fit image {image_width}x{image_height} into box "
            f"{box.width:.2f}x{box.height:.2f}; using the box unchanged"
        )
        return FittedBox(x=box.x, y=box.y, width=box.width, height=box.height)

    image_ratio = image_width / image_height
    box_ratio = box.width / box.height

    if image_ratio > box_ratio:
        # Wider than the box: width is the limit
        width = box.width
        height = box.width / image_ratio
    else:
        height = box.height
        width = box.height * image_ratio

    offset_x = (box.width - width) / 2
    offset_y = (box.height - height) / 2

    return FittedBox(
        x=box.x + offset_x,
        y=box.y + offset_y,
        width=width,
        height=height,
        offset_x=offset_x,
        offset_y=offset_y,
    )


def apply_minimum_size(
    fitted: FittedBox,
    min_width: float = MIN_SIGNATURE_WIDTH,
    min_height: float = MIN_SIGNATURE_HEIGHT,
) -> FittedBox:
    """
    Grow a degenerate box to the minimum size, keeping its aspect ratio.

    The box grows from its bottom-left corner.
    """
    if fitted.width >= min_width and fitted.height >= min_height:
        return fitted
    if fitted.width <= 0 or fitted.height <= 0:
        return FittedBox(
            x=fitted.x, y=fitted.y, width=max(fitted.width, min_width),
            height=max(fitted.height, min_height),
            offset_x=fitted.offset_x, offset_y=fitted.offset_y,
        )

    ratio = fitted.width / fitted.height
    # Scale by whichever floor needs the larger growth
    scale = max(min_width / fitted.width, min_height / fitted.height, 1.0)
    width = fitted.width * scale
    height = width / ratio

    logger.debug(
        f"Minimum size applied: {fitted.width:.2f}x{fitted.height:.2f} -> {width:.2f}x{height:.2f}"
    )

    return FittedBox(
        x=fitted.x,
        y=fitted.y,
        width=width,
        height=height,
        offset_x=fitted.offset_x,
        offset_y=fitted.offset_y,
    )
