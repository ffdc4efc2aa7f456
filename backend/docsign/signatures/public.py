import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from docsign.config import settings
from docsign.documents.service import load_document_bytes
from docsign.signatures import service
from docsign.signatures.embedding import PdfSignatureEmbedder
from docsign.signatures.lifecycle import PublicAction
from docsign.signatures.models import SignatureRequest
from docsign.signatures.schemas import PlacedSignatureResponse, PublicSignatureDetails

logger = logging.getLogger(__name__)


class PublicSigningSession:
    """Capability-scoped access to the one request a public token names.

    Holding the token is the only authorization; the session never reaches
    any other request and exposes no owner data besides the document name.
    """

    def __init__(self, db: AsyncSession, token: str, sig_request: SignatureRequest):
        self._db = db
        self._token = token
        self._request = sig_request

    @classmethod
    async def open(cls, db: AsyncSession, token: str) -> "PublicSigningSession":
        sig_request = await service.get_request_by_token(db, token)
        return cls(db, token, sig_request)

    def details(self) -> PublicSignatureDetails:
        sig_request = self._request
        return PublicSignatureDetails(
            id=sig_request.id,
            status=sig_request.status,
            document_filename=sig_request.document_filename,
            page_count=sig_request.document.page_count,
            signer_email=sig_request.signer_email,
            signed_by=sig_request.signed_by,
            rejection_reason=sig_request.rejection_reason,
            reference_width=settings.reference_width,
            pages=[PlacedSignatureResponse.model_validate(p) for p in sig_request.pages],
        )

    async def view_document(self) -> bytes:
        return await load_document_bytes(self._request.document)

    async def finalize(
        self,
        action: PublicAction,
        name: Optional[str],
        reason: Optional[str],
        embedder: PdfSignatureEmbedder,
        page: Optional[int] = None,
        x: Optional[float] = None,
        y: Optional[float] = None,
        render_width: Optional[float] = None,
    ) -> SignatureRequest:
        self._request = await service.finalize_public(
            self._db,
            self._token,
            action,
            name,
            reason,
            embedder,
            page=page,
            x=x,
            y=y,
            render_width=render_width,
        )
        logger.info("Public %s completed for signature request %s", action.value, self._request.id)
        return self._request
