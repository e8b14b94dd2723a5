"""
Stored signature records.

document_signatures.signature_data has been written in several shapes over
time. Everything is normalized here into SignaturePlacement values, so the
merge core only ever sees one form:

    {"signatures": [{...flat or with "position"...}, ...]}
    {"dataUrl": "...", "position": {...}}
    {"x": ..., "page": ..., "dataUrl" | "imageData" | "signature_data": "..."}
    {"signature_data": "<json string>" | {...}}
"""
import json
import logging
import re
import unicodedata
from typing import Any, Dict, Iterable, List, Mapping, Optional

from docsign.pdf.placement import MergeTargetBox, SignaturePlacement, SignatureSource, TextAnnotation
from docsign.utils.datetime_utils import parse_db_timestamp

logger = logging.getLogger(__name__)

DEFAULT_FILENAME = "document.pdf"

LEGACY_BOX_KEYS = ("x", "y", "width", "height")


def _load_json(value: Any) -> Any:
    if isinstance(value, str):
        return json.loads(value)
    return value


def _coerce_page(value: Any) -> int:
    """Page numbers that cannot be read become 0, which the merger skips as out of range."""
    if value is None:
        return 1
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return 0


def _image_of(entry: Mapping) -> Optional[str]:
    for key in ("dataUrl", "imageData"):
        if entry.get(key):
            return entry[key]
    return None


def _placement_from(
    entry: Mapping,
    position: Mapping,
    image: Optional[str],
    placement_id: str,
    source: Optional[str],
    signed_at: Any,
) -> SignaturePlacement:
    legacy = {k: position.get(k) for k in LEGACY_BOX_KEYS if position.get(k) is not None}
    return SignaturePlacement(
        id=str(placement_id),
        page=_coerce_page(position.get("page", entry.get("page"))),
        relative_x=position.get("relativeX"),
        relative_y=position.get("relativeY"),
        relative_width=position.get("relativeWidth"),
        relative_height=position.get("relativeHeight"),
        image=image,
        source=SignatureSource.parse(entry.get("source") or source),
        timestamp=parse_db_timestamp(entry.get("timestamp") or signed_at),
        legacy_box=legacy or None,
    )


def normalize_signature_record(row: Mapping) -> List[SignaturePlacement]:
    """
    Turn one document_signatures row into placements.

    Record-level signature_source and signed_at are inherited by entries that
    do not carry their own. Unreadable rows yield an empty list.
    """
    record_id = row.get("id") or "record"
    source = row.get("signature_source")
    signed_at = row.get("signed_at")

    try:
        data = _load_json(row.get("signature_data"))
    except (TypeError, ValueError) as e:
        logger.warning(f"Signature record {record_id}: unreadable signature_data ({e})")
        return []

    if not isinstance(data, dict):
        logger.warning(f"Signature record {record_id}: signature_data is not an object")
        return []

    entries = data.get("signatures")
    if isinstance(entries, list):
        placements = []
        for index, entry in enumerate(entries):
            if not isinstance(entry, dict):
                continue
            position = entry.get("position") if isinstance(entry.get("position"), dict) else entry
            placements.append(
                _placement_from(
                    entry,
                    position,
                    _image_of(entry),
                    entry.get("id") or f"{record_id}-{index}",
                    source,
                    signed_at,
                )
            )
        return placements

    if data.get("dataUrl") and isinstance(data.get("position"), dict):
        return [_placement_from(data, data["position"], data["dataUrl"], record_id, source, signed_at)]

    if data.get("x") is not None and data.get("page") is not None:
        image = _image_of(data)
        if image is None and isinstance(data.get("signature_data"), str):
            image = data["signature_data"]
        return [_placement_from(data, data, image, data.get("id") or record_id, source, signed_at)]

    if data.get("signature_data"):
        try:
            nested = _load_json(data["signature_data"])
        except (TypeError, ValueError) as e:
            logger.warning(f"Signature record {record_id}: unreadable nested signature_data ({e})")
            return []
        if isinstance(nested, dict):
            position = nested.get("position") if isinstance(nested.get("position"), dict) else nested
            return [_placement_from(nested, position, _image_of(nested), record_id, source, signed_at)]

    logger.warning(
        f"Signature record {record_id}: unrecognised signature_data keys {sorted(data.keys())}"
    )
    return []


def normalize_signature_records(rows: Iterable[Mapping]) -> List[SignaturePlacement]:
    placements: List[SignaturePlacement] = []
    for row in rows:
        placements.extend(normalize_signature_record(row))
    return placements


def text_annotations_from(annotations: Iterable[Mapping]) -> List[TextAnnotation]:
    """Text entries of a document_annotations payload; other types are ignored."""
    result = []
    for index, entry in enumerate(annotations):
        if entry.get("type", "text") != "text" or not entry.get("text"):
            continue
        result.append(
            TextAnnotation(
                id=str(entry.get("id") or f"text-{index}"),
                page=_coerce_page(entry.get("page")),
                relative_x=entry.get("relativeX"),
                relative_y=entry.get("relativeY"),
                text=str(entry["text"]),
                font_size=entry.get("fontSize"),
            )
        )
    return result


def stored_entries(signature_data: Any) -> List[dict]:
    """Entry list of a stored {"signatures": [...]} payload; anything else is empty."""
    try:
        data = _load_json(signature_data)
    except (TypeError, ValueError):
        return []
    if isinstance(data, dict) and isinstance(data.get("signatures"), list):
        return [e for e in data["signatures"] if isinstance(e, dict)]
    return []


def upsert_signature_entries(existing: Iterable[dict], incoming: Iterable[dict]) -> List[dict]:
    """
    Merge signature entries by id.

    An incoming entry with a known id replaces the stored one in place; new
    ids are appended. Entries without an id are always appended.
    """
    merged = [dict(e) for e in existing]
    index: Dict[str, int] = {str(e["id"]): i for i, e in enumerate(merged) if e.get("id") is not None}

    for entry in incoming:
        entry_id = entry.get("id")
        if entry_id is not None and str(entry_id) in index:
            merged[index[str(entry_id)]] = dict(entry)
        else:
            if entry_id is not None:
                index[str(entry_id)] = len(merged)
            merged.append(dict(entry))

    return merged


def placement_entry(placement: SignaturePlacement, include_image: bool = True) -> dict:
    """Serialize a placement into the stored camelCase entry shape."""
    entry = {
        "id": placement.id,
        "page": placement.page,
        "source": placement.source.value,
        "timestamp": placement.timestamp.isoformat() if placement.timestamp else None,
        **placement.relative_box(),
    }
    if placement.legacy_box:
        entry.update({k: placement.legacy_box.get(k) for k in LEGACY_BOX_KEYS})
    if include_image and isinstance(placement.image, str):
        entry["dataUrl"] = placement.image
    return entry


def signature_locations(
    placements: Iterable[SignaturePlacement],
    drawn_boxes: Optional[Mapping[str, MergeTargetBox]] = None,
) -> List[dict]:
    """
    Image-free location entries written back after a document is sent.

    The absolute box is the one actually drawn when known, otherwise the
    legacy box the browser reported.
    """
    drawn_boxes = drawn_boxes or {}
    locations = []
    for placement in placements:
        entry = placement_entry(placement, include_image=False)
        box = drawn_boxes.get(placement.id)
        if box is not None:
            entry.update(box.to_dict())
        locations.append(entry)
    return locations


def sanitize_filename(filename: Optional[str]) -> str:
    """
    Make a filename safe for storage keys.

    Accents are folded to their base letters, whitespace becomes "_", and
    anything outside [A-Za-z0-9_.-] is dropped.
    """
    if not filename:
        return DEFAULT_FILENAME

    decomposed = unicodedata.normalize("NFD", filename)
    value = "".join(c for c in decomposed if not unicodedata.combining(c))
    value = re.sub(r"\s+", "_", value)
    value = re.sub(r"[^\w.-]", "", value, flags=re.ASCII)
    value = re.sub(r"_+", "_", value)
    value = value.strip("_")

    return value or DEFAULT_FILENAME
