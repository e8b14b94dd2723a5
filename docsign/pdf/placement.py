"""
Placement types shared by the merge pipeline.

Relative coordinates are fractions of the page box with a top-left origin,
as authored in the browser. MergeTargetBox is in PDF points with a
bottom-left origin (1 point = 1/72 inch).
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Union


class SignatureSource(str, Enum):
    CANVAS = "canvas"
    WACOM = "wacom"
    MAPPING = "mapping"

    @classmethod
    def parse(cls, value: Optional[str]) -> "SignatureSource":
        """Parse a stored source value, defaulting to canvas."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower()) if value else cls.CANVAS
        except ValueError:
            return cls.CANVAS


@dataclass
class SignaturePlacement:
    """One signed mark on one page."""
    id: str
    page: int  # 1-indexed page number
    relative_x: Optional[float]
    relative_y: Optional[float]
    relative_width: Optional[float]
    relative_height: Optional[float]
    image: Union[bytes, str, None] = None  # raw PNG/JPEG bytes or a data URL
    source: SignatureSource = SignatureSource.CANVAS
    timestamp: Optional[datetime] = None
    # Legacy absolute values, kept for audit only. Never used for drawing.
    legacy_box: Optional[dict] = field(default=None, repr=False)

    def relative_box(self) -> dict:
        return {
            "relativeX": self.relative_x,
            "relativeY": self.relative_y,
            "relativeWidth": self.relative_width,
            "relativeHeight": self.relative_height,
        }


@dataclass
class TextAnnotation:
    """Text mark positioned by its relative top-left corner."""
    id: str
    page: int
    relative_x: Optional[float]
    relative_y: Optional[float]
    text: str
    font_size: Optional[float] = None


@dataclass(frozen=True)
class MergeTargetBox:
    """Absolute box in PDF points, bottom-left origin."""
    x: float
    y: float
    width: float
    height: float

    @property
    def aspect_ratio(self) -> float:
        return self.width / self.height if self.height > 0 else 0.0

    def contains(self, other: "MergeTargetBox", tolerance: float = 1e-6) -> bool:
        """Whether `other` lies fully inside this box."""
        return (
            other.x >= self.x - tolerance
            and other.y >= self.y - tolerance
            and other.x + other.width <= self.x + self.width + tolerance
            and other.y + other.height <= self.y + self.height + tolerance
        )

    def to_dict(self) -> dict:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}
