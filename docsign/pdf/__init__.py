# PDF module
from docsign.pdf.errors import (
    MergeError,
    InvalidPageGeometry,
    MissingCoordinateData,
    UnsupportedImageFormat,
    PageIndexOutOfRange,
    DocumentLoadFailure,
)
from docsign.pdf.geometry import PageGeometry, resolve_page_geometry
from docsign.pdf.placement import (
    SignaturePlacement,
    SignatureSource,
    TextAnnotation,
    MergeTargetBox,
)
from docsign.pdf.projection import project_placement, clamp_to_page, shift_into_page, to_relative
from docsign.pdf.fitting import fit_centered, apply_minimum_size
from docsign.pdf.merge import (
    MergeContext,
    MergeOptions,
    MergeReport,
    SignatureMerger,
    get_signature_merger,
)

__all__ = [
    "MergeError",
    "InvalidPageGeometry",
    "MissingCoordinateData",
    "UnsupportedImageFormat",
    "PageIndexOutOfRange",
    "DocumentLoadFailure",
    "PageGeometry",
    "resolve_page_geometry",
    "SignaturePlacement",
    "SignatureSource",
    "TextAnnotation",
    "MergeTargetBox",
    "project_placement",
    "clamp_to_page",
    "shift_into_page",
    "to_relative",
    "fit_centered",
    "apply_minimum_size",
    "MergeContext",
    "MergeOptions",
    "MergeReport",
    "SignatureMerger",
    "get_signature_merger",
]
