import uuid
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, File, Query, Response, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from docsign.auth.models import User
from docsign.common.errors import ConflictError, DocSignError, as_http_exception
from docsign.common.pagination import PaginatedResponse, PaginationParams
from docsign.config import settings
from docsign.database import get_db
from docsign.dependencies import get_current_user, get_renderer, get_viewers
from docsign.documents.renderer import PdfPageRenderer
from docsign.documents.schemas import DocumentResponse, DocumentUploadResponse, RenderedPageResponse
from docsign.documents.service import (
    delete_document,
    get_documents,
    get_owned_document,
    load_document_bytes,
    upload_document,
)
from docsign.documents.viewer import ViewerRegistry

router = APIRouter()


@router.get("", response_model=PaginatedResponse)
async def list_documents(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
    params: Annotated[PaginationParams, Depends()],
    search: Optional[str] = None,
):
    docs, total = await get_documents(db, current_user.id, params, search)
    return PaginatedResponse.from_rows(docs, total, params, DocumentResponse)


@router.post("/upload", response_model=DocumentUploadResponse, status_code=status.HTTP_201_CREATED)
async def upload_new_document(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
    file: UploadFile = File(...),
):
    content = await file.read()
    try:
        doc = await upload_document(
            db,
            current_user.id,
            file.filename or "unnamed.pdf",
            content,
            file.content_type or "application/pdf",
        )
    except DocSignError as e:
        raise as_http_exception(e)
    return DocumentUploadResponse(id=doc.id, filename=doc.filename, size_bytes=doc.size_bytes, page_count=doc.page_count)


@router.get("/{document_id}", response_model=DocumentResponse)
async def get_document_detail(
    document_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
):
    try:
        return await get_owned_document(db, document_id, current_user.id)
    except DocSignError as e:
        raise as_http_exception(e)


@router.get("/{document_id}/file")
async def download_document(
    document_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
):
    try:
        doc = await get_owned_document(db, document_id, current_user.id)
        content = await load_document_bytes(doc)
    except DocSignError as e:
        raise as_http_exception(e)
    return Response(
        content=content,
        media_type=doc.mime_type,
        headers={"Content-Disposition": f'inline; filename="{doc.filename}"'},
    )


@router.get("/{document_id}/pages/{page}", response_model=RenderedPageResponse)
async def render_document_page(
    document_id: uuid.UUID,
    page: int,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
    renderer: Annotated[PdfPageRenderer, Depends(get_renderer)],
    viewers: Annotated[ViewerRegistry, Depends(get_viewers)],
    width: int = Query(default=settings.reference_width),
):
    try:
        doc = await get_owned_document(db, document_id, current_user.id)
        viewer = viewers.viewer_for(current_user.id, doc.id, await load_document_bytes(doc), renderer)
        rendered = await viewer.show(page, width)
        if rendered is None:
            raise ConflictError("Superseded by a newer page request")
    except DocSignError as e:
        raise as_http_exception(e)
    return RenderedPageResponse(
        page=rendered.page,
        total_pages=rendered.total_pages,
        width=rendered.width,
        height=rendered.height,
        scale=rendered.scale,
        reference_width=settings.reference_width,
    )


@router.delete("/{document_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_existing_document(
    document_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
):
    try:
        doc = await get_owned_document(db, document_id, current_user.id)
        await delete_document(db, doc)
    except DocSignError as e:
        raise as_http_exception(e)
