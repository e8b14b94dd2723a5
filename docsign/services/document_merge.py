import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from docsign.config import get_settings, Settings
from docsign.exceptions import (
    MergeFailedException,
    NotFoundError,
    StorageException,
    ValidationException,
)
from docsign.models import DocumentStatus
from docsign.pdf import DocumentLoadFailure, MergeReport, get_signature_merger
from docsign.pdf.placement import MergeTargetBox, SignaturePlacement, TextAnnotation
from docsign.signatures import (
    normalize_signature_records,
    placement_entry,
    sanitize_filename,
    signature_locations,
    text_annotations_from,
)
from docsign.supabase_client import get_supabase_client, SupabaseClient
from docsign.utils.datetime_utils import timestamp_millis, utc_now
from docsign.utils.logging import set_context

logger = logging.getLogger(__name__)

SIGNED_PREFIX = "SIGNED_"


@dataclass
class MergeOutcome:
    """Merged document plus what happened to each placement."""
    pdf_bytes: bytes
    report: MergeReport
    document_id: Optional[str] = None
    file_path: Optional[str] = None
    file_name: Optional[str] = None
    completed_at: datetime = field(default_factory=utc_now)


def _merge(
    pdf_bytes: bytes,
    placements: Iterable[SignaturePlacement],
    annotations: Optional[Iterable[TextAnnotation]] = None,
) -> Tuple[bytes, MergeReport]:
    try:
        return get_signature_merger().merge(pdf_bytes, placements, annotations)
    except DocumentLoadFailure as e:
        raise MergeFailedException(e.message, code=e.code)


def _drawn_boxes(report: MergeReport) -> Dict[str, MergeTargetBox]:
    return {r.id: r.box for r in report.applied if r.kind == "signature" and r.box is not None}


def _unsigned_name(file_name: str) -> str:
    while file_name.startswith(SIGNED_PREFIX):
        file_name = file_name[len(SIGNED_PREFIX):]
    return file_name


def _other_signers(records: Iterable[dict], recipient_email: str) -> List[dict]:
    recipient = recipient_email.strip().lower()
    return [
        r for r in records
        if r.get("status") == "signed" and (r.get("recipient_email") or "").strip().lower() != recipient
    ]


async def _load_document(supabase: SupabaseClient, document_id: str) -> dict:
    document = await supabase.get_document(document_id)
    if not document:
        raise NotFoundError("Document", document_id)
    if not document.get("file_path"):
        raise ValidationException(f"Document {document_id} has no file to merge into")
    return document


async def merge_uploaded(
    pdf_bytes: bytes,
    placements: List[SignaturePlacement],
    annotations: Optional[List[TextAnnotation]] = None,
) -> MergeOutcome:
    """Merge into a caller-supplied PDF. Nothing is read from or written to storage."""
    settings: Settings = get_settings()
    set_context(operation="merge")

    if not pdf_bytes:
        raise ValidationException("Uploaded PDF is empty")
    if len(pdf_bytes) > settings.max_pdf_bytes:
        raise ValidationException(
            f"Uploaded PDF is too large ({len(pdf_bytes)} bytes, limit {settings.max_pdf_bytes})"
        )

    merged, report = _merge(pdf_bytes, placements, annotations)
    return MergeOutcome(pdf_bytes=merged, report=report)


async def render_signed_document(
    document_id: str,
    recipient_email: Optional[str] = None,
) -> MergeOutcome:
    """
    Render the stored document with its stored signatures and text annotations.

    Without a recipient, every signed record of the document is drawn and text
    annotations are left out. The result is returned, never persisted.
    """
    supabase: SupabaseClient = get_supabase_client()
    set_context(document_id=document_id, recipient_email=recipient_email, operation="print")

    document = await _load_document(supabase, document_id)
    pdf_bytes = await supabase.download_file(document["file_path"])

    records = await supabase.get_signature_records(document_id, recipient_email)
    placements = normalize_signature_records(records)

    annotations: List[TextAnnotation] = []
    if recipient_email:
        annotations = text_annotations_from(
            await supabase.get_text_annotations(document_id, recipient_email)
        )

    logger.info(
        f"Rendering document with {len(placements)} signature(s) from {len(records)} record(s) "
        f"and {len(annotations)} text annotation(s)"
    )

    merged, report = _merge(pdf_bytes, placements, annotations)
    return MergeOutcome(
        pdf_bytes=merged,
        report=report,
        document_id=document_id,
        file_path=document["file_path"],
        file_name=f"{SIGNED_PREFIX}{document.get('file_name') or 'document.pdf'}",
    )


async def finalize_document(
    document_id: str,
    recipient_email: str,
    placements: List[SignaturePlacement],
) -> MergeOutcome:
    """
    Merge the recipient's placements into the unsigned PDF and publish the result.

    The merge always starts from the unsigned original, so sending again
    replaces the recipient's signatures instead of stacking them. Signed
    records of other recipients that still carry their image are drawn first
    so their signatures survive; the request's placements win on id collisions.

    The signed file is uploaded under signed/{document_id}/, the document row is
    pointed at it, and image-free locations are upserted into the recipient's
    signature record by id.
    """
    supabase: SupabaseClient = get_supabase_client()
    set_context(document_id=document_id, recipient_email=recipient_email, operation="send")

    if not placements:
        raise ValidationException("No signatures found")

    document = await _load_document(supabase, document_id)
    original_path = document.get("original_file_path") or document["file_path"]
    file_name = _unsigned_name(document.get("file_name") or "document.pdf")

    records = await supabase.get_signature_records(document_id)
    # Image-free locations written by an earlier send cannot be redrawn
    others = [p for p in normalize_signature_records(_other_signers(records, recipient_email)) if p.image]

    pdf_bytes = await supabase.download_file(original_path)
    merged, report = _merge(pdf_bytes, others + list(placements))

    requested = {p.id for p in placements}
    applied = sum(1 for r in report.applied if r.kind == "signature" and r.id in requested)
    if applied == 0:
        raise MergeFailedException(
            "No signatures could be applied to the document",
            details=report.to_dict(),
        )

    signed_path = f"signed/{document_id}/{timestamp_millis()}_{sanitize_filename(file_name)}"
    await supabase.upload_file(signed_path, merged)

    updates = {
        "file_name": f"{SIGNED_PREFIX}{file_name}",
        "file_path": signed_path,
        "file_size": len(merged),
        "status": DocumentStatus.SIGNED.value,
    }
    if not document.get("original_file_path"):
        updates["original_file_path"] = original_path
    await supabase.update_document(document_id, updates)

    locations = signature_locations(placements, _drawn_boxes(report))
    await supabase.save_signature_entries(document_id, recipient_email, locations)

    logger.info(
        f"Document finalized: {applied} of the recipient's signature(s) applied, "
        f"{len(others)} from other signers, {report.signatures_skipped} skipped -> {signed_path}"
    )

    return MergeOutcome(
        pdf_bytes=merged,
        report=report,
        document_id=document_id,
        file_path=signed_path,
        file_name=f"{SIGNED_PREFIX}{file_name}",
    )


async def migrate_signatures(document_id: str) -> MergeOutcome:
    """
    Burn legacy signature records into the document file in place.

    The unsigned original is used as the base when known, so migrating twice
    does not stack signatures.
    """
    supabase: SupabaseClient = get_supabase_client()
    set_context(document_id=document_id, operation="migrate")

    document = await _load_document(supabase, document_id)

    records = await supabase.get_signature_records(document_id)
    if not records:
        raise ValidationException("No old signatures found to migrate")

    base_path = document.get("original_file_path") or document["file_path"]
    target_path = document["file_path"]

    pdf_bytes = await supabase.download_file(base_path)
    placements = normalize_signature_records(records)
    merged, report = _merge(pdf_bytes, placements)

    if report.signatures_applied == 0:
        raise MergeFailedException(
            "No signatures could be processed",
            details=report.to_dict(),
        )

    await supabase.upload_file(target_path, merged, upsert=True)

    updates = {"status": DocumentStatus.SIGNED.value}
    if not document.get("original_file_path"):
        updates["original_file_path"] = target_path
    sanitized = sanitize_filename(document.get("file_name"))
    if document.get("file_name") and sanitized != document["file_name"]:
        updates["file_name"] = sanitized

    try:
        await supabase.update_document(document_id, updates)
    except StorageException as e:
        # The merged file is already in place
        logger.warning(f"Failed to update document status after migration: {e.message}")

    logger.info(
        f"Migrated {report.signatures_applied}/{len(placements)} signature(s) "
        f"from {len(records)} record(s) into {target_path}"
    )

    return MergeOutcome(
        pdf_bytes=merged,
        report=report,
        document_id=document_id,
        file_path=target_path,
        file_name=updates.get("file_name", document.get("file_name")),
    )


async def save_signatures(
    document_id: str,
    recipient_email: str,
    placements: List[SignaturePlacement],
) -> List[dict]:
    """Upsert signature entries, images included, into the recipient's record."""
    supabase: SupabaseClient = get_supabase_client()
    set_context(document_id=document_id, recipient_email=recipient_email, operation="save")

    if not placements:
        raise ValidationException("No signatures provided")

    document = await supabase.get_document(document_id)
    if not document:
        raise NotFoundError("Document", document_id)

    entries = [placement_entry(p) for p in placements]
    source = placements[-1].source.value
    return await supabase.save_signature_entries(
        document_id, recipient_email, entries, signature_source=source,
    )
