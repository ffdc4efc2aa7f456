"""
Error taxonomy shared by the signing workflow.

Every error carries a ``kind`` so callers can tell apart input they must
correct (``fix_input``), transient backend trouble worth retrying
(``retry_later``) and requests that are closed for good (``closed``).
"""

from fastapi import HTTPException, status

FIX_INPUT = "fix_input"
RETRY_LATER = "retry_later"
CLOSED = "closed"


class DocSignError(Exception):
    code = "error"
    kind = FIX_INPUT
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str = ""):
        super().__init__(message or self.code)
        self.message = message or self.code


class ValidationError(DocSignError):
    code = "validation_error"
    status_code = status.HTTP_422_UNPROCESSABLE_CONTENT


class InvalidPage(DocSignError):
    code = "invalid_page"
    status_code = status.HTTP_422_UNPROCESSABLE_CONTENT

    def __init__(self, page: int, total_pages: int):
        super().__init__(f"Page {page} is outside the document (1-{total_pages})")
        self.page = page
        self.total_pages = total_pages


class InvalidRenderState(DocSignError):
    code = "invalid_render_state"
    status_code = status.HTTP_422_UNPROCESSABLE_CONTENT


class PreconditionFailed(DocSignError):
    code = "precondition_failed"
    status_code = status.HTTP_412_PRECONDITION_FAILED


class AlreadyFinalized(DocSignError):
    code = "already_finalized"
    kind = CLOSED
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, current_status: str):
        super().__init__(f"Signature request is already {current_status}")
        self.current_status = current_status


class NotFound(DocSignError):
    code = "not_found"
    status_code = status.HTTP_404_NOT_FOUND


class PermissionDenied(DocSignError):
    code = "permission_denied"
    status_code = status.HTTP_403_FORBIDDEN


class ConflictError(DocSignError):
    code = "conflict"
    kind = RETRY_LATER
    status_code = status.HTTP_409_CONFLICT


class CollaboratorFailure(DocSignError):
    code = "collaborator_failure"
    kind = RETRY_LATER
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class RenderError(CollaboratorFailure):
    code = "render_error"


def as_http_exception(exc: DocSignError) -> HTTPException:
    return HTTPException(
        status_code=exc.status_code,
        detail={"error": exc.code, "kind": exc.kind, "message": exc.message},
    )
