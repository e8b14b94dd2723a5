"""
Document merge API backed by Supabase.
Paths: /v1/documents/{document_id}/...

The recipient arrives already resolved by the calling app; signing tokens
are never decoded here.
"""
import logging
import uuid
from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Path, Query
from fastapi.responses import Response

from docsign.exceptions import ValidationException
from docsign.models import (
    MergeResultResponse,
    PlacementResultResponse,
    SaveSignaturesRequest,
    SaveSignaturesResponse,
    SendDocumentRequest,
)
from docsign.services import document_merge
from docsign.services.document_merge import MergeOutcome
from docsign.signatures import sanitize_filename
from docsign.pdf.placement import SignatureSource

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/v1/documents",
    tags=["documents"],
)


def validate_uuid(value: str, field_name: str = "ID") -> str:
    """Validate that a string is a valid UUID."""
    try:
        uuid.UUID(value)
        return value
    except (ValueError, AttributeError):
        raise ValidationException(f"Invalid {field_name}: '{value}' is not a valid UUID")


def _content_disposition(file_name: str) -> str:
    return f"inline; filename=\"{sanitize_filename(file_name)}\"; filename*=UTF-8''{quote(file_name)}"


def _result_response(outcome: MergeOutcome) -> MergeResultResponse:
    report = outcome.report
    return MergeResultResponse(
        success=True,
        document_id=outcome.document_id,
        file_path=outcome.file_path,
        signatures_applied=report.signatures_applied,
        signatures_skipped=report.signatures_skipped,
        texts_applied=report.texts_applied,
        results=[PlacementResultResponse(**r.to_dict()) for r in report.results],
        completed_at=outcome.completed_at,
    )


@router.get("/{document_id}/print")
async def print_document(
    document_id: str = Path(..., description="Document UUID"),
    recipient: Optional[str] = Query(None, description="Recipient email; omit for all signers"),
):
    """Render the stored document with its signatures, without saving it."""
    validate_uuid(document_id, "document_id")

    outcome = await document_merge.render_signed_document(document_id, recipient)

    return Response(
        content=outcome.pdf_bytes,
        media_type="application/pdf",
        headers={
            "Content-Disposition": _content_disposition(outcome.file_name),
            "X-Document-Status": "signed",
            "X-Signature-Count": str(outcome.report.signatures_applied),
            "X-Signatures-Skipped": str(outcome.report.signatures_skipped),
            "Cache-Control": "no-cache, no-store, must-revalidate",
        },
    )


@router.post("/{document_id}/send", response_model=MergeResultResponse)
async def send_document(
    request: SendDocumentRequest,
    document_id: str = Path(..., description="Document UUID"),
):
    """Merge the recipient's signatures and publish the signed document."""
    validate_uuid(document_id, "document_id")

    outcome = await document_merge.finalize_document(
        document_id,
        request.recipient_email,
        [s.to_placement() for s in request.signatures],
    )
    return _result_response(outcome)


@router.post("/{document_id}/migrate-signatures", response_model=MergeResultResponse)
async def migrate_document_signatures(
    document_id: str = Path(..., description="Document UUID"),
):
    """Burn stored legacy signatures into the document file."""
    validate_uuid(document_id, "document_id")

    outcome = await document_merge.migrate_signatures(document_id)
    return _result_response(outcome)


@router.put("/{document_id}/signatures", response_model=SaveSignaturesResponse)
async def save_document_signatures(
    request: SaveSignaturesRequest,
    document_id: str = Path(..., description="Document UUID"),
):
    """Store signature placements for a recipient, replacing entries with the same id."""
    validate_uuid(document_id, "document_id")

    placements = [s.to_placement() for s in request.signatures]
    if request.source:
        # A request-level source applies to entries that did not name one
        source = SignatureSource.parse(request.source)
        for placement, raw in zip(placements, request.signatures):
            if not raw.source:
                placement.source = source

    entries = await document_merge.save_signatures(document_id, request.recipient_email, placements)

    return SaveSignaturesResponse(
        success=True,
        document_id=document_id,
        signature_count=len(entries),
    )
