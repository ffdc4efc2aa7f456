import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import String, cast, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from docsign.common.errors import AlreadyFinalized, CollaboratorFailure, ConflictError, NotFound
from docsign.common.pagination import PaginationParams
from docsign.config import settings
from docsign.documents.models import Document
from docsign.documents.service import get_owned_document
from docsign.signatures.coordinates import Point, to_document_space
from docsign.signatures.embedding import PdfSignatureEmbedder
from docsign.signatures.field import PlacedSignatureData, SignatureFieldModel
from docsign.signatures.lifecycle import (
    Actor,
    PublicAction,
    ensure_can_sign,
    ensure_can_transition,
    ensure_can_view,
    ensure_pending,
    freeze_placements,
    generate_token,
    sources_for,
    validate_public_action,
)
from docsign.signatures.models import PlacedSignature, SignatureRequest, SignatureRequestStatus
from docsign.signatures.schemas import PlacementIn, SignatureRequestCreate, SignatureStyle
from docsign.signatures.store import MultiPageSignatureStore, SigningWorkspace, check_page

logger = logging.getLogger(__name__)


# ── Lookups ─────────────────────────────────────────────────────────────────────


async def get_signature_request(db: AsyncSession, request_id: uuid.UUID) -> SignatureRequest:
    result = await db.execute(select(SignatureRequest).where(SignatureRequest.id == request_id))
    sig_request = result.scalar_one_or_none()
    if sig_request is None:
        raise NotFound("Signature request not found")
    return sig_request


async def get_request_for_actor(db: AsyncSession, request_id: uuid.UUID, actor: Actor) -> SignatureRequest:
    sig_request = await get_signature_request(db, request_id)
    ensure_can_view(sig_request, actor)
    return sig_request


async def get_request_by_token(db: AsyncSession, token: str) -> SignatureRequest:
    result = await db.execute(select(SignatureRequest).where(SignatureRequest.token == token))
    sig_request = result.scalar_one_or_none()
    if sig_request is None:
        raise NotFound("Invalid or unknown signing link")
    return sig_request


async def list_signature_requests(
    db: AsyncSession,
    actor: Actor,
    params: PaginationParams,
    status: Optional[SignatureRequestStatus] = None,
    search: Optional[str] = None,
) -> tuple[list[SignatureRequest], int]:
    party = or_(
        SignatureRequest.owner_id == actor.user_id,
        func.lower(SignatureRequest.signer_email) == actor.email.lower(),
    )
    query = select(SignatureRequest).join(Document, Document.id == SignatureRequest.document_id).where(party)
    count_query = (
        select(func.count(SignatureRequest.id))
        .join(Document, Document.id == SignatureRequest.document_id)
        .where(party)
    )

    if status:
        query = query.where(SignatureRequest.status == status)
        count_query = count_query.where(SignatureRequest.status == status)

    if search:
        pattern = f"%{search}%"
        matches = or_(
            Document.filename.ilike(pattern),
            SignatureRequest.signer_email.ilike(pattern),
            cast(SignatureRequest.status, String).ilike(pattern),
        )
        query = query.where(matches)
        count_query = count_query.where(matches)

    total = (await db.execute(count_query)).scalar_one()
    result = await db.execute(
        query.order_by(SignatureRequest.created_at.desc()).offset(params.offset).limit(params.page_size)
    )
    return result.scalars().all(), total


# ── Creation and placement ─────────────────────────────────────────────────────


async def create_signature_request(
    db: AsyncSession,
    data: SignatureRequestCreate,
    owner: Actor,
) -> SignatureRequest:
    document = await get_owned_document(db, data.document_id, owner.user_id)
    check_page(data.page, document.page_count)

    field = SignatureFieldModel.with_defaults(data.page)
    if data.x is not None and data.y is not None:
        field.set_position(Point(data.x, data.y))

    sig_request = SignatureRequest(
        document_id=document.id,
        owner_id=owner.user_id,
        signer_email=str(data.signer_email).lower(),
        token=generate_token(),
        status=SignatureRequestStatus.pending,
    )
    sig_request.pages = [_new_row(field.snapshot())]
    db.add(sig_request)
    await db.flush()
    await db.refresh(sig_request)
    logger.info("Created signature request %s for document %s", sig_request.id, document.id)
    return sig_request


def _new_row(data: PlacedSignatureData) -> PlacedSignature:
    row = PlacedSignature(page=data.page)
    row.apply(data)
    return row


def _workspace(sig_request: SignatureRequest, page: int) -> SigningWorkspace:
    return SigningWorkspace(
        sig_request.document.page_count,
        MultiPageSignatureStore(sig_request.placements()),
        start_page=page,
    )


def resolve_placement(
    sig_request: SignatureRequest,
    page: int,
    placement: PlacementIn,
) -> PlacedSignatureData:
    """Build the document-space entry that ``placement`` puts on ``page``.

    Style fields that are not provided keep the page's current values (or the
    defaults for a page that has no entry yet).
    """
    position = Point(placement.x, placement.y)
    if placement.render_width is not None:
        position = to_document_space(position, placement.render_width, settings.reference_width)

    workspace = _workspace(sig_request, page)
    workspace.field.set_position(position)
    workspace.set_style(text=placement.signature_text, **placement.provided())
    return workspace.place()


async def _upsert_placement(db: AsyncSession, sig_request: SignatureRequest, data: PlacedSignatureData) -> PlacedSignature:
    row = next((p for p in sig_request.pages if p.page == data.page), None)
    if row is None:
        row = _new_row(data)
        sig_request.pages.append(row)
    else:
        row.apply(data)
    try:
        await db.flush()
    except IntegrityError as exc:
        raise ConflictError("The page was placed concurrently, reload and try again") from exc
    return row


async def place_signature(
    db: AsyncSession,
    request_id: uuid.UUID,
    actor: Actor,
    page: int,
    placement: PlacementIn,
) -> PlacedSignature:
    sig_request = await get_signature_request(db, request_id)
    ensure_can_sign(sig_request, actor)
    ensure_pending(sig_request)
    check_page(page, sig_request.document.page_count)
    data = resolve_placement(sig_request, page, placement)
    row = await _upsert_placement(db, sig_request, data)
    logger.debug("Placed signature on page %d of request %s", page, sig_request.id)
    return row


async def open_page(
    db: AsyncSession,
    request_id: uuid.UUID,
    actor: Actor,
    page: int,
) -> PlacedSignatureData:
    """The field a party sees on ``page``: its stored entry, or the defaults."""
    sig_request = await get_signature_request(db, request_id)
    ensure_can_view(sig_request, actor)
    return _workspace(sig_request, page).field.snapshot()


async def drag_signature(
    db: AsyncSession,
    request_id: uuid.UUID,
    actor: Actor,
    page: int,
    gesture_delta: Point,
    render_width: Optional[float],
) -> PlacedSignature:
    """Move the field on ``page`` by a gesture delta measured in screen pixels.

    The delta is cumulative from gesture start and is applied to the stored
    position, so repeated gestures never accumulate drift.
    """
    sig_request = await get_signature_request(db, request_id)
    ensure_can_sign(sig_request, actor)
    ensure_pending(sig_request)
    workspace = _workspace(sig_request, page)
    workspace.drag(gesture_delta, render_width)
    row = await _upsert_placement(db, sig_request, workspace.place())
    logger.debug("Dragged signature on page %d of request %s to (%s, %s)", page, sig_request.id, row.x, row.y)
    return row


# ── Finalization ────────────────────────────────────────────────────────────────


async def _transition(
    db: AsyncSession,
    sig_request: SignatureRequest,
    target: SignatureRequestStatus,
    frozen: list[PlacedSignatureData],
    **values,
) -> None:
    """Compare-and-set the request into ``target`` and commit it.

    Only one caller can win; everyone else sees zero affected rows.
    """
    ensure_can_transition(sig_request, target)
    result = await db.execute(
        update(SignatureRequest)
        .where(
            SignatureRequest.id == sig_request.id,
            SignatureRequest.status.in_(sources_for(target)),
        )
        .values(
            status=target,
            finalized_at=datetime.now(timezone.utc),
            finalized_pages=[entry.to_dict() for entry in frozen],
            **values,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        await db.rollback()
        await db.refresh(sig_request)
        logger.info("Lost finalize race for signature request %s (%s)", sig_request.id, sig_request.status.value)
        raise AlreadyFinalized(sig_request.status.value)
    await db.commit()
    await db.refresh(sig_request)
    logger.info("Signature request %s is now %s", sig_request.id, target.value)


async def _revert_signed(db: AsyncSession, request_id: uuid.UUID) -> None:
    try:
        await db.rollback()
        await db.execute(
            update(SignatureRequest)
            .where(
                SignatureRequest.id == request_id,
                SignatureRequest.status == SignatureRequestStatus.signed,
                SignatureRequest.signed_document_key.is_(None),
            )
            .values(status=SignatureRequestStatus.pending, signed_by=None, finalized_at=None, finalized_pages=None)
            .execution_options(synchronize_session=False)
        )
        await db.commit()
    except Exception as exc:
        logger.exception("Could not revert signature request %s to pending", request_id)
        raise CollaboratorFailure("Signing failed and the request could not be reopened") from exc


async def _embed(
    db: AsyncSession,
    sig_request: SignatureRequest,
    embedder: PdfSignatureEmbedder,
    placement: Optional[PlacedSignatureData] = None,
) -> None:
    request_id = sig_request.id
    frozen = [PlacedSignatureData.from_dict(entry) for entry in sig_request.finalized_pages or []]
    try:
        key = await embedder.embed(request_id, sig_request.document, frozen)
    except Exception as exc:
        logger.error("Embedding failed for signature request %s, reverting to pending", request_id)
        await _revert_signed(db, request_id)
        await db.refresh(sig_request)
        if isinstance(exc, CollaboratorFailure):
            raise
        raise CollaboratorFailure("Signature could not be embedded into the document") from exc

    # A placement sent along with finalize is only kept once the document is signed.
    if placement is not None:
        await _upsert_placement(db, sig_request, placement)
    sig_request.signed_document_key = key
    await db.flush()
    await db.commit()
    await db.refresh(sig_request)
    logger.info("Stored signed document for request %s at %s", request_id, key)


def _finalize_placement(
    sig_request: SignatureRequest,
    page: Optional[int],
    x: Optional[float],
    y: Optional[float],
    render_width: Optional[float],
    style: Optional[SignatureStyle] = None,
    text: Optional[str] = None,
) -> Optional[PlacedSignatureData]:
    """Resolve, without persisting, a placement sent along with finalize."""
    if page is None:
        return None
    check_page(page, sig_request.document.page_count)
    if x is None or y is None:
        return None
    placement = PlacementIn(
        x=x,
        y=y,
        render_width=render_width,
        signature_text=text or None,
        **(style.provided() if style else {}),
    )
    return resolve_placement(sig_request, page, placement)


def _entries_with(sig_request: SignatureRequest, placement: Optional[PlacedSignatureData]) -> list[PlacedSignatureData]:
    store = MultiPageSignatureStore(sig_request.placements())
    if placement is not None:
        store.upsert(placement)
    return store.all()


async def _sign(
    db: AsyncSession,
    sig_request: SignatureRequest,
    signed_by: str,
    frozen: list[PlacedSignatureData],
    embedder: PdfSignatureEmbedder,
    placement: Optional[PlacedSignatureData] = None,
) -> SignatureRequest:
    await _transition(db, sig_request, SignatureRequestStatus.signed, frozen, signed_by=signed_by)
    await _embed(db, sig_request, embedder, placement)
    return sig_request


async def finalize_signature(
    db: AsyncSession,
    request_id: uuid.UUID,
    actor: Actor,
    signature_text: str,
    style: SignatureStyle,
    embedder: PdfSignatureEmbedder,
    page: Optional[int] = None,
    x: Optional[float] = None,
    y: Optional[float] = None,
    render_width: Optional[float] = None,
) -> SignatureRequest:
    """Authenticated finalize by the owner or the designated signer.

    A page/position sent along is resolved like ``place_signature`` and signed
    with the other pages, but it is only stored once embedding succeeded.
    """
    sig_request = await get_signature_request(db, request_id)
    ensure_can_sign(sig_request, actor)
    ensure_can_transition(sig_request, SignatureRequestStatus.signed)

    placement = _finalize_placement(sig_request, page, x, y, render_width, style, signature_text)
    frozen = freeze_placements(_entries_with(sig_request, placement), signature_text, **style.provided())
    return await _sign(db, sig_request, actor.email, frozen, embedder, placement)


async def finalize_public(
    db: AsyncSession,
    token: str,
    action: PublicAction,
    name: Optional[str],
    reason: Optional[str],
    embedder: PdfSignatureEmbedder,
    page: Optional[int] = None,
    x: Optional[float] = None,
    y: Optional[float] = None,
    render_width: Optional[float] = None,
) -> SignatureRequest:
    sig_request = await get_request_by_token(db, token)
    ensure_can_transition(sig_request, action.target)
    signer_name, rejection_reason = validate_public_action(action, name, reason)

    if action is PublicAction.reject:
        if page is not None:
            check_page(page, sig_request.document.page_count)
        await _transition(
            db,
            sig_request,
            action.target,
            sig_request.placements(),
            rejected_by=signer_name,
            rejection_reason=rejection_reason,
        )
        return sig_request

    placement = _finalize_placement(sig_request, page, x, y, render_width, text=signer_name)
    frozen = freeze_placements(_entries_with(sig_request, placement), signer_name)
    return await _sign(db, sig_request, signer_name, frozen, embedder, placement)
