import uuid
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from docsign.auth.models import User
from docsign.common import storage
from docsign.common.errors import DocSignError, as_http_exception
from docsign.common.pagination import PaginatedResponse, PaginationParams
from docsign.database import get_db
from docsign.dependencies import get_current_user, get_embedder
from docsign.signatures.coordinates import Point
from docsign.signatures.embedding import PdfSignatureEmbedder
from docsign.signatures.lifecycle import Actor
from docsign.signatures.models import SignatureRequestStatus
from docsign.signatures.public import PublicSigningSession
from docsign.signatures.schemas import (
    DragIn,
    FinalizeRequest,
    FinalizeResult,
    PlacedSignatureResponse,
    PlacementIn,
    PublicFinalizeRequest,
    PublicSignatureDetails,
    SignatureRequestCreate,
    SignatureRequestResponse,
    SignatureStyle,
)
from docsign.signatures.service import (
    create_signature_request,
    drag_signature,
    finalize_signature,
    get_request_for_actor,
    list_signature_requests,
    open_page,
    place_signature,
)

router = APIRouter()


# ── Authenticated routes ────────────────────────────────────────────────────────


@router.post("", response_model=SignatureRequestResponse, status_code=status.HTTP_201_CREATED)
async def create_request(
    data: SignatureRequestCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
):
    try:
        return await create_signature_request(db, data, Actor.from_user(current_user))
    except DocSignError as e:
        raise as_http_exception(e)


@router.get("/my-requests", response_model=PaginatedResponse)
async def list_my_requests(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
    params: Annotated[PaginationParams, Depends()],
    request_status: Optional[SignatureRequestStatus] = Query(default=None, alias="status"),
    search: Optional[str] = None,
):
    requests, total = await list_signature_requests(
        db, Actor.from_user(current_user), params, request_status, search
    )
    return PaginatedResponse.from_rows(requests, total, params, SignatureRequestResponse)


@router.post("/finalize", response_model=FinalizeResult)
async def finalize(
    body: FinalizeRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
    embedder: Annotated[PdfSignatureEmbedder, Depends(get_embedder)],
):
    try:
        sig_request = await finalize_signature(
            db,
            body.signature_id,
            Actor.from_user(current_user),
            body.signature_text,
            SignatureStyle(**body.provided()),
            embedder,
            page=body.page,
            x=body.x,
            y=body.y,
            render_width=body.render_width,
        )
    except DocSignError as e:
        raise as_http_exception(e)
    return FinalizeResult.model_validate(sig_request, from_attributes=True)


# ── Public signing routes (token only) ─────────────────────────────────────────


@router.get("/details/{token}", response_model=PublicSignatureDetails)
async def public_details(token: str, db: Annotated[AsyncSession, Depends(get_db)]):
    try:
        session = await PublicSigningSession.open(db, token)
    except DocSignError as e:
        raise as_http_exception(e)
    return session.details()


@router.get("/public/{token}")
async def public_document(token: str, db: Annotated[AsyncSession, Depends(get_db)]):
    try:
        session = await PublicSigningSession.open(db, token)
        content = await session.view_document()
    except DocSignError as e:
        raise as_http_exception(e)
    return Response(content=content, media_type="application/pdf")


@router.post("/finalize-public", response_model=FinalizeResult)
async def finalize_public_route(
    body: PublicFinalizeRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    embedder: Annotated[PdfSignatureEmbedder, Depends(get_embedder)],
):
    try:
        session = await PublicSigningSession.open(db, body.token)
        sig_request = await session.finalize(
            body.action,
            body.name,
            body.reason,
            embedder,
            page=body.page,
            x=body.x,
            y=body.y,
            render_width=body.render_width,
        )
    except DocSignError as e:
        raise as_http_exception(e)
    return FinalizeResult.model_validate(sig_request, from_attributes=True)


# ── Per-request routes ──────────────────────────────────────────────────────────


@router.get("/{request_id}", response_model=SignatureRequestResponse)
async def get_request_detail(
    request_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
):
    try:
        return await get_request_for_actor(db, request_id, Actor.from_user(current_user))
    except DocSignError as e:
        raise as_http_exception(e)


@router.get("/{request_id}/pages/{page}", response_model=PlacedSignatureResponse)
async def get_page_field(
    request_id: uuid.UUID,
    page: int,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
):
    try:
        return await open_page(db, request_id, Actor.from_user(current_user), page)
    except DocSignError as e:
        raise as_http_exception(e)


@router.put("/{request_id}/pages/{page}", response_model=PlacedSignatureResponse)
async def place(
    request_id: uuid.UUID,
    page: int,
    body: PlacementIn,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
):
    try:
        return await place_signature(db, request_id, Actor.from_user(current_user), page, body)
    except DocSignError as e:
        raise as_http_exception(e)


@router.post("/{request_id}/pages/{page}/drag", response_model=PlacedSignatureResponse)
async def drag(
    request_id: uuid.UUID,
    page: int,
    body: DragIn,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
):
    try:
        return await drag_signature(
            db, request_id, Actor.from_user(current_user), page, Point(body.dx, body.dy), body.render_width
        )
    except DocSignError as e:
        raise as_http_exception(e)


@router.get("/{request_id}/signed-document")
async def download_signed_document(
    request_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
):
    try:
        sig_request = await get_request_for_actor(db, request_id, Actor.from_user(current_user))
        if not sig_request.signed_document_key:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Signed document not available")
        content = await storage.get_bytes(sig_request.signed_document_key)
    except DocSignError as e:
        raise as_http_exception(e)
    filename = f"signed-{sig_request.document_filename or sig_request.id}"
    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
