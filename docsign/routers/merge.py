"""
Stateless merge API: callers upload the PDF and get the merged bytes back.
Paths: /v1/merge, /v1/geometry, /v1/project
"""
import json
import logging
from typing import List, Optional

from fastapi import APIRouter, File, Form, UploadFile
from fastapi.responses import Response
from pydantic import TypeAdapter

from docsign.config import get_settings
from docsign.exceptions import MergeFailedException, ValidationException
from docsign.models import (
    DocumentGeometryResponse,
    MergeTargetBoxResponse,
    PageGeometryResponse,
    PlacementInput,
    ProjectRequest,
    TextAnnotationInput,
)
from docsign.pdf import (
    MergeContext,
    MergeError,
    PageGeometry,
    SignaturePlacement,
    project_placement,
)
from docsign.services.document_merge import merge_uploaded

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/v1",
    tags=["merge"],
)

_placements_adapter = TypeAdapter(List[PlacementInput])
_annotations_adapter = TypeAdapter(List[TextAnnotationInput])


def _parse_form_json(raw: Optional[str], field: str, adapter: TypeAdapter) -> list:
    if raw is None or not raw.strip():
        return []
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValidationException(f"Field '{field}' is not valid JSON: {e.msg}")
    # The browser sends the consolidated {"signatures": [...]} shape as well
    if isinstance(payload, dict) and field == "placements" and "signatures" in payload:
        payload = payload["signatures"]
    return adapter.validate_python(payload)


@router.post("/merge")
async def merge_document(
    file: UploadFile = File(..., description="Source PDF"),
    placements: str = Form(..., description="JSON list of signature placements"),
    annotations: Optional[str] = Form(None, description="JSON list of text annotations"),
):
    """
    Merge signatures (and optional text) into an uploaded PDF.

    Placements that cannot be drawn are skipped and counted in
    X-Signatures-Skipped; the document is still returned.
    """
    placement_inputs = _parse_form_json(placements, "placements", _placements_adapter)
    annotation_inputs = _parse_form_json(annotations, "annotations", _annotations_adapter)

    pdf_bytes = await file.read()
    outcome = await merge_uploaded(
        pdf_bytes,
        [p.to_placement() for p in placement_inputs],
        [a.to_annotation() for a in annotation_inputs],
    )

    report = outcome.report
    return Response(
        content=outcome.pdf_bytes,
        media_type="application/pdf",
        headers={
            "X-Signatures-Applied": str(report.signatures_applied),
            "X-Signatures-Skipped": str(report.signatures_skipped),
            "X-Texts-Applied": str(report.texts_applied),
            "Cache-Control": "no-store",
        },
    )


@router.post("/geometry", response_model=DocumentGeometryResponse)
async def document_geometry(file: UploadFile = File(..., description="PDF to measure")):
    """Report the page box used for placement on every page."""
    pdf_bytes = await file.read()

    try:
        with MergeContext(pdf_bytes) as ctx:
            pages = [ctx.geometry(n).to_dict() for n in range(1, ctx.page_count + 1)]
    except MergeError as e:
        raise MergeFailedException(e.message, code=e.code)

    return DocumentGeometryResponse(
        page_count=len(pages),
        pages=[PageGeometryResponse(**p) for p in pages],
    )


@router.post("/project", response_model=MergeTargetBoxResponse)
async def project_box(request: ProjectRequest):
    """Project a relative box onto a page of the given size, in PDF points."""
    geometry = PageGeometry(width=request.geometry.width, height=request.geometry.height)
    placement = SignaturePlacement(
        id="projection",
        page=1,
        relative_x=request.relative_x,
        relative_y=request.relative_y,
        relative_width=request.relative_width,
        relative_height=request.relative_height,
    )

    try:
        box = project_placement(placement, geometry, get_settings().min_clamped_height)
    except MergeError as e:
        raise ValidationException(e.message, details={"code": e.code})

    return MergeTargetBoxResponse(**box.to_dict())
