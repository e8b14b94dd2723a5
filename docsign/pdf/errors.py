"""
Merge pipeline errors.

Placement-level errors are caught by the merger, logged and skipped.
DocumentLoadFailure is the only document-level error and always propagates.
"""
from typing import Optional


class MergeError(Exception):
    """Base class for signature merge errors."""

    code = "MERGE_ERROR"

    def __init__(self, message: str, placement_id: Optional[str] = None, page: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.placement_id = placement_id
        self.page = page


class InvalidPageGeometry(MergeError):
    """Page box has zero or negative dimensions."""

    code = "INVALID_PAGE_GEOMETRY"


class MissingCoordinateData(MergeError):
    """Placement lacks one or more relative coordinates."""

    code = "MISSING_COORDINATE_DATA"


class UnsupportedImageFormat(MergeError):
    """Signature image is neither PNG nor JPEG."""

    code = "UNSUPPORTED_IMAGE_FORMAT"


class PageIndexOutOfRange(MergeError):
    """Placement references a page the document does not have."""

    code = "PAGE_OUT_OF_RANGE"


class DocumentLoadFailure(MergeError):
    """Source PDF is corrupt or unreadable."""

    code = "DOCUMENT_LOAD_FAILURE"
