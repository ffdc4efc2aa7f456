"""
State machine and guard predicates for signature requests.

A request starts ``pending`` and moves exactly once to ``signed`` or
``rejected``. The functions here take explicit identities and values and never
touch the database; ``docsign.signatures.service`` performs the guarded
writes.
"""

import enum
import secrets
import uuid
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Optional

from docsign.common.errors import AlreadyFinalized, PermissionDenied, PreconditionFailed, ValidationError
from docsign.signatures.field import PlacedSignatureData, merge_style
from docsign.signatures.models import SignatureRequest, SignatureRequestStatus

TRANSITIONS: dict[SignatureRequestStatus, frozenset[SignatureRequestStatus]] = {
    SignatureRequestStatus.pending: frozenset({SignatureRequestStatus.signed, SignatureRequestStatus.rejected}),
    SignatureRequestStatus.signed: frozenset(),
    SignatureRequestStatus.rejected: frozenset(),
}


class PublicAction(str, enum.Enum):
    sign = "sign"
    reject = "reject"

    @property
    def target(self) -> SignatureRequestStatus:
        return SignatureRequestStatus.signed if self is PublicAction.sign else SignatureRequestStatus.rejected


@dataclass(frozen=True)
class Actor:
    user_id: uuid.UUID
    email: str

    @classmethod
    def from_user(cls, user) -> "Actor":
        return cls(user_id=user.id, email=user.email)


def generate_token() -> str:
    return secrets.token_urlsafe(32)


def is_terminal(status: SignatureRequestStatus) -> bool:
    return not TRANSITIONS[status]


def can_transition(current: SignatureRequestStatus, target: SignatureRequestStatus) -> bool:
    return target in TRANSITIONS[current]


def sources_for(target: SignatureRequestStatus) -> list[SignatureRequestStatus]:
    """Statuses a request may be in for a move to ``target`` to succeed."""
    return [status for status, targets in TRANSITIONS.items() if target in targets]


def ensure_pending(sig_request: SignatureRequest) -> None:
    if is_terminal(sig_request.status):
        raise AlreadyFinalized(sig_request.status.value)


def ensure_can_transition(sig_request: SignatureRequest, target: SignatureRequestStatus) -> None:
    if not can_transition(sig_request.status, target):
        raise AlreadyFinalized(sig_request.status.value)


def is_owner(sig_request: SignatureRequest, actor: Actor) -> bool:
    return sig_request.owner_id == actor.user_id


def is_designated_signer(sig_request: SignatureRequest, actor: Actor) -> bool:
    return sig_request.signer_email.strip().lower() == actor.email.strip().lower()


def ensure_can_view(sig_request: SignatureRequest, actor: Actor) -> None:
    if not (is_owner(sig_request, actor) or is_designated_signer(sig_request, actor)):
        raise PermissionDenied("You are not a party to this signature request")


# Editing and signing are open to the same two parties as viewing.
ensure_can_sign = ensure_can_view


def require_text(value: Optional[str], field_name: str) -> str:
    text = (value or "").strip()
    if not text:
        raise ValidationError(f"{field_name} is required")
    return text


def validate_public_action(action: PublicAction, name: Optional[str], reason: Optional[str]) -> tuple[str, Optional[str]]:
    """Check the signer-supplied fields for a public sign/reject.

    A name is required for either action; a reason only for rejections.
    """
    signer_name = require_text(name, "name")
    if action is PublicAction.reject:
        return signer_name, require_text(reason, "reason")
    return signer_name, None


def freeze_placements(
    entries: Iterable[PlacedSignatureData],
    signature_text: Optional[str],
    **style,
) -> list[PlacedSignatureData]:
    """Copy the placements that will be embedded.

    Pages that already carry their own text keep their snapshot unchanged;
    pages placed without text receive ``signature_text`` and ``style``.
    """
    placements = sorted(entries, key=lambda e: e.page)
    if not placements:
        raise PreconditionFailed("Place the signature on at least one page before finalizing")
    text = (signature_text or "").strip()
    if not text:
        raise PreconditionFailed("Signature text is required to finalize")

    frozen = []
    for entry in placements:
        if entry.signature_text.strip():
            frozen.append(entry)
        else:
            frozen.append(merge_style(entry, text=text, **style))
    return frozen
