import enum
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, Boolean, DateTime, Enum, Float, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from docsign.common.base_models import GUID, TimestampMixin, UUIDBase
from docsign.config import settings
from docsign.signatures.field import PlacedSignatureData


class SignatureRequestStatus(str, enum.Enum):
    pending = "pending"
    signed = "signed"
    rejected = "rejected"


class SignatureRequest(UUIDBase, TimestampMixin):
    __tablename__ = "signature_requests"

    document_id: Mapped[uuid.UUID] = mapped_column(
        GUID(), ForeignKey("documents.id", ondelete="CASCADE"), nullable=False, index=True
    )
    owner_id: Mapped[uuid.UUID] = mapped_column(GUID(), ForeignKey("users.id"), nullable=False, index=True)
    signer_email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    token: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    status: Mapped[SignatureRequestStatus] = mapped_column(
        Enum(SignatureRequestStatus, name="signaturerequeststatus"),
        default=SignatureRequestStatus.pending,
        nullable=False,
    )
    signed_by: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    rejected_by: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    finalized_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    finalized_pages: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    signed_document_key: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)

    pages = relationship(
        "PlacedSignature",
        back_populates="signature_request",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="PlacedSignature.page",
    )
    document = relationship("Document", lazy="selectin")

    @property
    def is_pending(self) -> bool:
        return self.status == SignatureRequestStatus.pending

    @property
    def document_filename(self) -> Optional[str]:
        return self.document.filename if self.document is not None else None

    @property
    def public_url(self) -> str:
        return f"{settings.public_signing_base_url.rstrip('/')}/{self.token}"

    @property
    def has_signed_document(self) -> bool:
        return self.signed_document_key is not None

    def placements(self) -> list[PlacedSignatureData]:
        return sorted((p.to_data() for p in self.pages), key=lambda e: e.page)


class PlacedSignature(UUIDBase):
    __tablename__ = "placed_signatures"
    __table_args__ = (UniqueConstraint("signature_request_id", "page", name="uq_placed_signature_page"),)

    signature_request_id: Mapped[uuid.UUID] = mapped_column(
        GUID(), ForeignKey("signature_requests.id", ondelete="CASCADE"), nullable=False, index=True
    )
    page: Mapped[int] = mapped_column(Integer, nullable=False)
    x: Mapped[float] = mapped_column(Float, nullable=False)
    y: Mapped[float] = mapped_column(Float, nullable=False)
    signature_text: Mapped[str] = mapped_column(String(500), default="", nullable=False)
    font_size: Mapped[int] = mapped_column(Integer, default=16, nullable=False)
    font_family: Mapped[str] = mapped_column(String(100), default="Arial", nullable=False)
    color: Mapped[str] = mapped_column(String(50), default="#1E40AF", nullable=False)
    is_bold: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_underline: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    signature_request = relationship("SignatureRequest", back_populates="pages")

    def to_data(self) -> PlacedSignatureData:
        return PlacedSignatureData(
            page=self.page,
            x=self.x,
            y=self.y,
            signature_text=self.signature_text,
            font_size=self.font_size,
            font_family=self.font_family,
            color=self.color,
            is_bold=self.is_bold,
            is_underline=self.is_underline,
        )

    def apply(self, data: PlacedSignatureData) -> None:
        self.x = data.x
        self.y = data.y
        self.signature_text = data.signature_text
        self.font_size = data.font_size
        self.font_family = data.font_family
        self.color = data.color
        self.is_bold = data.is_bold
        self.is_underline = data.is_underline
