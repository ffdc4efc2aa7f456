import logging
import uuid
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from docsign.common import storage
from docsign.common.errors import CollaboratorFailure, NotFound, PermissionDenied, ValidationError
from docsign.common.pagination import PaginationParams
from docsign.config import settings
from docsign.documents.models import Document
from docsign.documents.renderer import count_pages
from docsign.signatures.models import SignatureRequest

logger = logging.getLogger(__name__)


async def get_documents(
    db: AsyncSession,
    owner_id: uuid.UUID,
    params: PaginationParams,
    search: Optional[str] = None,
) -> tuple[list[Document], int]:
    query = select(Document).where(Document.owner_id == owner_id)
    count_query = select(func.count(Document.id)).where(Document.owner_id == owner_id)

    if search:
        query = query.where(Document.filename.ilike(f"%{search}%"))
        count_query = count_query.where(Document.filename.ilike(f"%{search}%"))

    total = (await db.execute(count_query)).scalar_one()
    result = await db.execute(
        query.order_by(Document.created_at.desc()).offset(params.offset).limit(params.page_size)
    )
    return result.scalars().all(), total


async def get_document(db: AsyncSession, document_id: uuid.UUID) -> Document:
    result = await db.execute(select(Document).where(Document.id == document_id))
    document = result.scalar_one_or_none()
    if document is None:
        raise NotFound("Document not found")
    return document


async def get_owned_document(db: AsyncSession, document_id: uuid.UUID, user_id: uuid.UUID) -> Document:
    document = await get_document(db, document_id)
    if document.owner_id != user_id:
        raise PermissionDenied("You do not own this document")
    return document


async def upload_document(
    db: AsyncSession,
    owner_id: uuid.UUID,
    filename: str,
    content: bytes,
    mime_type: str,
) -> Document:
    if not content:
        raise ValidationError("Uploaded file is empty")
    if len(content) > settings.max_upload_bytes:
        raise ValidationError(f"File too large (max {settings.max_upload_bytes} bytes)")
    page_count = count_pages(content)

    storage_key = f"documents/{owner_id}/{uuid.uuid4()}/{filename}"
    doc = Document(
        owner_id=owner_id,
        filename=filename,
        storage_key=storage_key,
        mime_type=mime_type,
        size_bytes=len(content),
        page_count=page_count,
    )
    db.add(doc)
    await db.flush()
    # Insert before the object write; a failed write rolls the row back.
    await storage.put_bytes(storage_key, content, content_type=mime_type)
    await db.refresh(doc)
    logger.info("Stored document %s (%d pages)", doc.id, page_count)
    return doc


async def load_document_bytes(document: Document) -> bytes:
    return await storage.get_bytes(document.storage_key)


async def delete_document(db: AsyncSession, document: Document) -> None:
    result = await db.execute(select(SignatureRequest).where(SignatureRequest.document_id == document.id))
    requests = result.scalars().all()

    document_id = document.id
    keys = [document.storage_key] + [r.signed_document_key for r in requests if r.signed_document_key]

    for sig_request in requests:
        await db.delete(sig_request)
    await db.delete(document)
    await db.flush()
    # Objects are removed only after the rows are committed.
    await db.commit()
    logger.info("Deleted document %s and %d signature request(s)", document_id, len(requests))

    for key in keys:
        try:
            await storage.delete_object(key)
        except CollaboratorFailure:
            logger.warning("Could not remove stored object %s; leaving it orphaned", key)
