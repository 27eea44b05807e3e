"""Translate collaboration results into FastAPI errors and responses."""

from __future__ import annotations

import logging
from typing import Dict, List, TypeVar

from fastapi import HTTPException, status

from thesiscollab.schemas.collaborator import CollaboratorList, CollaboratorResponse
from thesiscollab.schemas.comment import CommentList, CommentResponse
from thesiscollab.schemas.comment import CommentThread as CommentThreadResponse
from thesiscollab.schemas.document import DocumentCapabilities, DocumentResponse
from thesiscollab.schemas.version import VersionDetailResponse, VersionResponse
from thesiscollab.schemas.version import VersionDiff as VersionDiffResponse
from thesiscollab.services.collaboration.authorization import Action, Decision
from thesiscollab.services.collaboration.comments import CommentThread
from thesiscollab.services.collaboration.errors import DomainError, Err, ErrorKind, Result
from thesiscollab.services.collaboration.locks import DocumentLockTimeout
from thesiscollab.services.collaboration.types import Collaborator, Comment, Document, DocumentStatus, Version
from thesiscollab.services.collaboration.versions import VersionDiff

logger = logging.getLogger(__name__)

T = TypeVar("T")

ERROR_STATUS: Dict[ErrorKind, int] = {
    ErrorKind.NOT_A_COLLABORATOR: status.HTTP_403_FORBIDDEN,
    ErrorKind.INSUFFICIENT_PERMISSION: status.HTTP_403_FORBIDDEN,
    ErrorKind.WRONG_ROLE_CATEGORY: status.HTTP_403_FORBIDDEN,
    ErrorKind.SELF_ACTION_NOT_ALLOWED: status.HTTP_403_FORBIDDEN,
    ErrorKind.ENTITY_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.INVALID_STATUS_FOR_ACTION: status.HTTP_409_CONFLICT,
    ErrorKind.INVALID_TRANSITION: status.HTTP_409_CONFLICT,
    ErrorKind.DUPLICATE_COLLABORATOR: status.HTTP_409_CONFLICT,
    ErrorKind.LAST_PRIMARY_VIOLATION: status.HTTP_409_CONFLICT,
    ErrorKind.VALIDATION_FAILED: status.HTTP_422_UNPROCESSABLE_ENTITY,
}


def http_exception_for(kind: ErrorKind, message: str, detail: Dict | None = None) -> HTTPException:
    body = {"error": kind.value, "message": message}
    if detail:
        body["detail"] = detail
    return HTTPException(status_code=ERROR_STATUS[kind], detail=body)


def unwrap_or_raise(result: Result[T]) -> T:
    """Value of an ``Ok``; an ``Err`` becomes the matching HTTPException."""
    if isinstance(result, Err):
        raise http_exception_for(result.kind, result.message, result.detail)
    return result.value


def raise_for_domain_error(exc: DomainError) -> None:
    raise http_exception_for(exc.kind, exc.message, exc.detail) from exc


def raise_for_lock_timeout(exc: DocumentLockTimeout) -> None:
    logger.warning("Document %s busy: %s", exc.document_id, exc)
    raise HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail={"error": "document_busy", "message": str(exc)},
        headers={"Retry-After": str(max(1, int(exc.timeout)))},
    ) from exc


def collaborator_responses(collaborators: List[Collaborator]) -> List[CollaboratorResponse]:
    return [CollaboratorResponse.model_validate(c) for c in collaborators]


def collaborator_list(collaborators: List[Collaborator]) -> CollaboratorList:
    responses = collaborator_responses(collaborators)
    return CollaboratorList(collaborators=responses, total=len(responses))


def document_response(document: Document) -> DocumentResponse:
    return DocumentResponse.model_validate(document)


def version_response(version: Version, *, include_content: bool = False) -> VersionResponse:
    if include_content:
        return VersionDetailResponse.model_validate(version)
    return VersionResponse.model_validate(version)


def diff_response(diff: VersionDiff) -> VersionDiffResponse:
    return VersionDiffResponse.model_validate(diff)


def comment_response(comment: Comment) -> CommentResponse:
    return CommentResponse.model_validate(comment)


def comment_list(threads: List[CommentThread]) -> CommentList:
    """Threads as returned to clients; ``total`` counts roots and replies."""
    items = [
        CommentThreadResponse(
            comment=comment_response(thread.comment),
            replies=[comment_response(r) for r in thread.replies],
        )
        for thread in threads
    ]
    total = sum(1 + len(thread.replies) for thread in threads)
    return CommentList(threads=items, total=total)


def capabilities_response(document_id, document_status: DocumentStatus, decisions: Dict[Action, Decision]) -> DocumentCapabilities:
    allowed = [action.value for action, decision in decisions.items() if decision.allowed]
    denied = {
        action.value: decision.reason.value
        for action, decision in decisions.items()
        if not decision.allowed
    }
    return DocumentCapabilities(document_id=document_id, status=document_status, allowed=allowed, denied=denied)
