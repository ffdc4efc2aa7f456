import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from docsign.signatures.lifecycle import PublicAction
from docsign.signatures.models import SignatureRequestStatus

# ── Input schemas ───────────────────────────────────────────────────────────────


class SignatureStyle(BaseModel):
    """Partial style update; fields left as None are not changed."""

    font_size: Optional[int] = None
    font_family: Optional[str] = None
    color: Optional[str] = None
    is_bold: Optional[bool] = None
    is_underline: Optional[bool] = None

    def provided(self) -> dict:
        return self.model_dump(include=set(SignatureStyle.model_fields), exclude_none=True)


class PlacementIn(SignatureStyle):
    x: float
    y: float
    signature_text: Optional[str] = Field(default=None, max_length=500)
    # When set, x/y are screen pixels of a page rendered at this width.
    render_width: Optional[float] = None


class DragIn(BaseModel):
    # Cumulative screen-pixel delta since the gesture started.
    dx: float
    dy: float
    render_width: float


class SignatureRequestCreate(BaseModel):
    document_id: uuid.UUID
    signer_email: EmailStr
    page: int = 1
    x: Optional[float] = None
    y: Optional[float] = None


class FinalizeRequest(SignatureStyle):
    signature_id: uuid.UUID
    signature_text: str = Field(default="", max_length=500)
    page: Optional[int] = None
    x: Optional[float] = None
    y: Optional[float] = None
    render_width: Optional[float] = None


class PublicFinalizeRequest(BaseModel):
    token: str = Field(min_length=1)
    action: PublicAction
    name: str = Field(default="", max_length=255)
    reason: str = Field(default="", max_length=2000)
    page: Optional[int] = None
    x: Optional[float] = None
    y: Optional[float] = None
    render_width: Optional[float] = None


# ── Response schemas ────────────────────────────────────────────────────────────


class PlacedSignatureResponse(BaseModel):
    page: int
    x: float
    y: float
    signature_text: str
    font_size: int
    font_family: str
    color: str
    is_bold: bool
    is_underline: bool

    model_config = {"from_attributes": True}


class SignatureRequestResponse(BaseModel):
    id: uuid.UUID
    document_id: uuid.UUID
    document_filename: Optional[str]
    owner_id: uuid.UUID
    signer_email: str
    token: str
    public_url: str
    status: SignatureRequestStatus
    signed_by: Optional[str]
    rejected_by: Optional[str]
    rejection_reason: Optional[str]
    finalized_at: Optional[datetime]
    has_signed_document: bool
    pages: list[PlacedSignatureResponse] = []
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


# ── Public signing page schemas ─────────────────────────────────────────────────


class PublicSignatureDetails(BaseModel):
    id: uuid.UUID
    status: SignatureRequestStatus
    document_filename: Optional[str]
    page_count: int
    signer_email: str
    signed_by: Optional[str]
    rejection_reason: Optional[str]
    reference_width: int
    pages: list[PlacedSignatureResponse] = []


class FinalizeResult(BaseModel):
    id: uuid.UUID
    status: SignatureRequestStatus
    signed_by: Optional[str] = None
    rejection_reason: Optional[str] = None
    finalized_at: Optional[datetime] = None
