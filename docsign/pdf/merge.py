"""
Signature merge: draws signed placements and text onto a PDF.

One merge runs inside a MergeContext that owns the open document and the
page geometry resolved for it. Nothing is cached across merges, so a
document re-uploaded under the same id is always measured afresh.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

import fitz  # PyMuPDF

from docsign.pdf.errors import (
    DocumentLoadFailure,
    MergeError,
    PageIndexOutOfRange,
)
from docsign.pdf.fitting import (
    MIN_SIGNATURE_HEIGHT,
    MIN_SIGNATURE_WIDTH,
    apply_minimum_size,
    fit_centered,
)
from docsign.pdf.geometry import PageGeometry, resolve_page_geometry
from docsign.pdf.images import decode_signature_image, prepare_wacom_image
from docsign.pdf.placement import (
    MergeTargetBox,
    SignaturePlacement,
    SignatureSource,
    TextAnnotation,
)
from docsign.pdf.projection import (
    MIN_CLAMPED_HEIGHT,
    project_placement,
    project_text_origin,
    shift_into_page,
    to_fitz_point,
    to_fitz_rect,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MergeOptions:
    """Tunables for the merge pipeline."""
    min_signature_width: float = MIN_SIGNATURE_WIDTH
    min_signature_height: float = MIN_SIGNATURE_HEIGHT
    min_clamped_height: float = MIN_CLAMPED_HEIGHT
    text_baseline_offset: float = 20.0
    default_font_size: float = 12.0
    font_name: str = "helv"
    wacom_transparency_threshold: int = 240
    wacom_max_width: int = 600
    wacom_max_height: int = 300

    @classmethod
    def from_settings(cls, settings) -> "MergeOptions":
        return cls(
            min_signature_width=settings.min_signature_width,
            min_signature_height=settings.min_signature_height,
            min_clamped_height=settings.min_clamped_height,
            text_baseline_offset=settings.text_baseline_offset,
            default_font_size=settings.default_font_size,
            wacom_transparency_threshold=settings.wacom_transparency_threshold,
            wacom_max_width=settings.wacom_max_width,
            wacom_max_height=settings.wacom_max_height,
        )


@dataclass
class PlacementResult:
    """Outcome of one placement or text annotation."""
    id: str
    page: int
    kind: str  # "signature" or "text"
    applied: bool
    box: Optional[MergeTargetBox] = None
    code: Optional[str] = None
    reason: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "page": self.page,
            "kind": self.kind,
            "applied": self.applied,
            "box": self.box.to_dict() if self.box else None,
            "code": self.code,
            "reason": self.reason,
        }


@dataclass
class MergeReport:
    """Per-merge summary of what was drawn and what was skipped."""
    page_count: int = 0
    results: List[PlacementResult] = field(default_factory=list)

    @property
    def applied(self) -> List[PlacementResult]:
        return [r for r in self.results if r.applied]

    @property
    def skipped(self) -> List[PlacementResult]:
        return [r for r in self.results if not r.applied]

    @property
    def signatures_applied(self) -> int:
        return sum(1 for r in self.applied if r.kind == "signature")

    @property
    def signatures_skipped(self) -> int:
        return sum(1 for r in self.skipped if r.kind == "signature")

    @property
    def texts_applied(self) -> int:
        return sum(1 for r in self.applied if r.kind == "text")

    def to_dict(self) -> dict:
        return {
            "page_count": self.page_count,
            "signatures_applied": self.signatures_applied,
            "signatures_skipped": self.signatures_skipped,
            "texts_applied": self.texts_applied,
            "results": [r.to_dict() for r in self.results],
        }


class MergeContext:
    """
    An open document plus the geometry resolved for it during one merge.

    Usage:
        with MergeContext(pdf_bytes) as ctx:
            geometry = ctx.geometry(1)
    """

    def __init__(self, pdf_bytes: bytes):
        if not pdf_bytes:
            raise DocumentLoadFailure("PDF document is empty")

        try:
            self.doc = fitz.open(stream=pdf_bytes, filetype="pdf")
        except Exception as e:
            raise DocumentLoadFailure(f"Invalid PDF file: {e}")

        if self.doc.needs_pass:
            self.doc.close()
            raise DocumentLoadFailure("PDF document is encrypted")
        if self.doc.page_count < 1:
            self.doc.close()
            raise DocumentLoadFailure("PDF document has no pages")

        self._pages: Dict[int, fitz.Page] = {}
        self._geometry: Dict[int, PageGeometry] = {}

    def __enter__(self) -> "MergeContext":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def page_count(self) -> int:
        return self.doc.page_count

    def page(self, page_number: int) -> fitz.Page:
        """Load a page by 1-indexed number."""
        if not isinstance(page_number, int) or page_number < 1 or page_number > self.page_count:
            raise PageIndexOutOfRange(
                f"Page {page_number} does not exist. Document has {self.page_count} pages.",
                page=page_number if isinstance(page_number, int) else None,
            )
        if page_number not in self._pages:
            self._pages[page_number] = self.doc[page_number - 1]
        return self._pages[page_number]

    def geometry(self, page_number: int) -> PageGeometry:
        if page_number not in self._geometry:
            self._geometry[page_number] = resolve_page_geometry(self.page(page_number))
        return self._geometry[page_number]

    def to_bytes(self) -> bytes:
        """Serialize without a fresh file id so identical merges yield identical bytes."""
        return self.doc.tobytes(garbage=3, deflate=True, no_new_id=True)

    def close(self) -> None:
        self._pages.clear()
        self._geometry.clear()
        if not self.doc.is_closed:
            self.doc.close()


def _content_rotation(page: fitz.Page) -> int:
    """Rotation that keeps inserted content upright in unrotated page space."""
    return (360 - page.rotation) % 360


def _dedupe_by_id(items: Iterable) -> list:
    """Keep the last occurrence of each id, in first-seen order."""
    latest = {}
    for item in items:
        latest[item.id] = item
    return list(latest.values())


class SignatureMerger:
    """Draws signature placements and text annotations using PyMuPDF."""

    def __init__(self, options: Optional[MergeOptions] = None):
        self.options = options or MergeOptions()

    def merge(
        self,
        pdf_bytes: bytes,
        placements: Iterable[SignaturePlacement],
        annotations: Optional[Iterable[TextAnnotation]] = None,
    ) -> Tuple[bytes, MergeReport]:
        """
        Merge placements into a PDF and return the new document bytes.

        Placements that cannot be drawn are logged and skipped; the rest of
        the document is still produced.

        Raises:
            DocumentLoadFailure: If the PDF cannot be opened
        """
        with MergeContext(pdf_bytes) as ctx:
            report = self.apply(ctx, placements, annotations)
            output = ctx.to_bytes()

        logger.info(
            f"Merged {report.signatures_applied} signature(s) and {report.texts_applied} "
            f"text annotation(s), skipped {len(report.skipped)}"
        )
        return output, report

    def apply(
        self,
        ctx: MergeContext,
        placements: Iterable[SignaturePlacement],
        annotations: Optional[Iterable[TextAnnotation]] = None,
    ) -> MergeReport:
        """Draw onto an already open context. The caller serializes and closes it."""
        report = MergeReport(page_count=ctx.page_count)

        for placement in _dedupe_by_id(placements):
            report.results.append(self._apply_signature(ctx, placement))

        for annotation in _dedupe_by_id(annotations or []):
            report.results.append(self._apply_text(ctx, annotation))

        return report

    def _skip(self, kind: str, item_id: str, page: int, code: str, reason: str) -> PlacementResult:
        logger.warning(f"Skipping {kind} {item_id} on page {page}: [{code}] {reason}")
        return PlacementResult(
            id=item_id, page=page, kind=kind, applied=False, code=code, reason=reason,
        )

    def _apply_signature(self, ctx: MergeContext, placement: SignaturePlacement) -> PlacementResult:
        try:
            box = self.draw_signature(ctx, placement)
        except MergeError as e:
            return self._skip("signature", placement.id, placement.page, e.code, e.message)
        except Exception as e:
            logger.exception(f"Failed to draw signature {placement.id}")
            return self._skip("signature", placement.id, placement.page, "DRAW_FAILED", str(e))

        return PlacementResult(
            id=placement.id, page=placement.page, kind="signature", applied=True, box=box,
        )

    def _apply_text(self, ctx: MergeContext, annotation: TextAnnotation) -> PlacementResult:
        if not annotation.text:
            return self._skip("text", annotation.id, annotation.page, "EMPTY_TEXT", "No text")

        try:
            self.draw_text(ctx, annotation)
        except MergeError as e:
            return self._skip("text", annotation.id, annotation.page, e.code, e.message)
        except Exception as e:
            logger.exception(f"Failed to draw text annotation {annotation.id}")
            return self._skip("text", annotation.id, annotation.page, "DRAW_FAILED", str(e))

        return PlacementResult(id=annotation.id, page=annotation.page, kind="text", applied=True)

    def draw_signature(self, ctx: MergeContext, placement: SignaturePlacement) -> MergeTargetBox:
        """
        Draw one signature image and return the box actually drawn.

        Pipeline: page geometry, relative projection and clamp, aspect fit,
        minimum size, shift back onto the page, then insert.
        """
        opts = self.options
        page = ctx.page(placement.page)
        geometry = ctx.geometry(placement.page)

        target = project_placement(placement, geometry, opts.min_clamped_height)

        image = decode_signature_image(placement.image)
        if placement.source == SignatureSource.WACOM:
            image = prepare_wacom_image(
                image,
                transparency_threshold=opts.wacom_transparency_threshold,
                max_width=opts.wacom_max_width,
                max_height=opts.wacom_max_height,
            )

        fitted = fit_centered(image.width, image.height, target)
        fitted = apply_minimum_size(fitted, opts.min_signature_width, opts.min_signature_height)
        drawn = shift_into_page(fitted.as_target_box(), geometry)

        if drawn.width <= 0 or drawn.height <= 0:
            raise MergeError(
                f"Placement {placement.id} has no drawable area on page {placement.page}",
                placement_id=placement.id,
                page=placement.page,
            )

        # Boxes are in unrotated space; insert_image expects displayed page space
        # and turns the image upright in the display unless told otherwise
        rect = to_fitz_rect(drawn, geometry) * page.rotation_matrix
        page.insert_image(
            rect,
            stream=image.data,
            keep_proportion=False,
            overlay=True,
            rotate=_content_rotation(page),
        )

        logger.debug(
            f"Drew signature {placement.id} on page {placement.page} at "
            f"({drawn.x:.2f}, {drawn.y:.2f}) size ({drawn.width:.2f}x{drawn.height:.2f})"
        )
        return drawn

    def draw_text(self, ctx: MergeContext, annotation: TextAnnotation) -> None:
        opts = self.options
        page = ctx.page(annotation.page)
        geometry = ctx.geometry(annotation.page)

        x, y = project_text_origin(annotation, geometry, opts.text_baseline_offset)
        point = to_fitz_point(x, y, geometry) * page.rotation_matrix

        page.insert_text(
            point,
            annotation.text,
            fontname=opts.font_name,
            fontsize=annotation.font_size or opts.default_font_size,
            color=(0, 0, 0),
            rotate=_content_rotation(page),
        )


# Singleton instance
_merger: Optional[SignatureMerger] = None


def get_signature_merger() -> SignatureMerger:
    """Get signature merger singleton configured from settings."""
    global _merger
    if _merger is None:
        from docsign.config import get_settings
        _merger = SignatureMerger(MergeOptions.from_settings(get_settings()))
    return _merger
