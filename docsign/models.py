from datetime import datetime
from enum import Enum
from typing import Any, Optional, List
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from docsign.pdf.placement import SignaturePlacement, SignatureSource, TextAnnotation
from docsign.utils.datetime_utils import parse_db_timestamp


class BaseRequest(BaseModel):
    """Base class for all request models - ignores extra fields."""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


# Enums
class DocumentStatus(str, Enum):
    """Values stored in documents.status."""
    PENDING = "pendiente"
    SIGNED = "firmado"


# Request Models
class PlacementInput(BaseRequest):
    """Signature placement as sent by the browser (camelCase keys)."""
    id: str = Field(..., min_length=1)
    page: int = Field(default=1, description="1-indexed page number")
    relative_x: Optional[float] = Field(default=None, alias="relativeX")
    relative_y: Optional[float] = Field(default=None, alias="relativeY")
    relative_width: Optional[float] = Field(default=None, alias="relativeWidth")
    relative_height: Optional[float] = Field(default=None, alias="relativeHeight")
    data_url: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("dataUrl", "imageData", "data_url"),
        description="PNG/JPEG image as a data URL",
    )
    source: Optional[str] = Field(default=None, validation_alias=AliasChoices("source", "signatureSource"))
    timestamp: Optional[Any] = None
    # Legacy absolute box, stored for audit only
    x: Optional[float] = None
    y: Optional[float] = None
    width: Optional[float] = None
    height: Optional[float] = None

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> str:
        return str(v) if v is not None else v

    def to_placement(self) -> SignaturePlacement:
        legacy = {"x": self.x, "y": self.y, "width": self.width, "height": self.height}
        return SignaturePlacement(
            id=self.id,
            page=self.page,
            relative_x=self.relative_x,
            relative_y=self.relative_y,
            relative_width=self.relative_width,
            relative_height=self.relative_height,
            image=self.data_url,
            source=SignatureSource.parse(self.source),
            timestamp=parse_db_timestamp(self.timestamp),
            legacy_box=legacy if any(v is not None for v in legacy.values()) else None,
        )


class TextAnnotationInput(BaseRequest):
    id: str = Field(..., min_length=1)
    page: int = 1
    relative_x: Optional[float] = Field(default=None, alias="relativeX")
    relative_y: Optional[float] = Field(default=None, alias="relativeY")
    text: str = ""
    font_size: Optional[float] = Field(default=None, alias="fontSize", gt=0)

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> str:
        return str(v) if v is not None else v

    def to_annotation(self) -> TextAnnotation:
        return TextAnnotation(
            id=self.id,
            page=self.page,
            relative_x=self.relative_x,
            relative_y=self.relative_y,
            text=self.text,
            font_size=self.font_size,
        )


class GeometryInput(BaseRequest):
    width: float = Field(..., gt=0, description="Page width in PDF points")
    height: float = Field(..., gt=0, description="Page height in PDF points")


class ProjectRequest(BaseRequest):
    """Project a relative box onto a page of known size."""
    geometry: GeometryInput
    relative_x: float = Field(..., alias="relativeX")
    relative_y: float = Field(..., alias="relativeY")
    relative_width: float = Field(..., alias="relativeWidth")
    relative_height: float = Field(..., alias="relativeHeight")


class SendDocumentRequest(BaseRequest):
    recipient_email: str = Field(..., min_length=3, alias="recipientEmail")
    signatures: List[PlacementInput] = Field(..., min_length=1)


class SaveSignaturesRequest(BaseRequest):
    recipient_email: str = Field(..., min_length=3, alias="recipientEmail")
    signatures: List[PlacementInput] = Field(..., min_length=1)
    source: Optional[str] = Field(default=None, alias="signatureSource")


# Response Models
class MergeTargetBoxResponse(BaseModel):
    x: float
    y: float
    width: float
    height: float


class PageGeometryResponse(BaseModel):
    page: int
    width: float
    height: float
    rotation: int
    declared_rotation: int
    orientation: str


class DocumentGeometryResponse(BaseModel):
    page_count: int
    pages: List[PageGeometryResponse]


class PlacementResultResponse(BaseModel):
    id: str
    page: int
    kind: str
    applied: bool
    box: Optional[MergeTargetBoxResponse] = None
    code: Optional[str] = None
    reason: Optional[str] = None


class MergeResultResponse(BaseModel):
    success: bool
    document_id: Optional[str] = None
    file_path: Optional[str] = None
    signatures_applied: int
    signatures_skipped: int
    texts_applied: int = 0
    results: List[PlacementResultResponse] = []
    completed_at: datetime


class SaveSignaturesResponse(BaseModel):
    success: bool
    document_id: str
    signature_count: int


class ErrorResponse(BaseModel):
    error: bool = True
    code: str
    message: str
    details: Optional[dict] = None
    request_id: Optional[str] = None
