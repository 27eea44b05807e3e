"""
Request handlers for the document endpoints.

Each handler takes a validated request body, calls the DocumentService and
returns the response schema. Rejections and lock timeouts surface as
HTTPException through ``api.utils.document_access``.
"""

from typing import Optional
from uuid import UUID

from thesiscollab.api.utils.document_access import (
    collaborator_list,
    comment_list,
    comment_response,
    diff_response,
    document_response,
    raise_for_lock_timeout,
    unwrap_or_raise,
    version_response,
)
from thesiscollab.schemas.collaborator import (
    CollaboratorCreate,
    CollaboratorList,
    CollaboratorPermissionUpdate,
    CollaboratorRoleUpdate,
)
from thesiscollab.schemas.comment import CommentCreate, CommentList, CommentReply, CommentResponse, CommentUpdate
from thesiscollab.schemas.document import DocumentCreate, DocumentResponse, DocumentUpdate, RevisionRequest
from thesiscollab.schemas.version import VersionCreate, VersionDetailResponse, VersionDiff
from thesiscollab.services.collaboration.locks import DocumentLockTimeout
from thesiscollab.services.document_service import DocumentService


def _run(operation, *args, **kwargs):
    try:
        return unwrap_or_raise(operation(*args, **kwargs))
    except DocumentLockTimeout as exc:
        raise_for_lock_timeout(exc)


# Documents

def create_document(service: DocumentService, current_user_id: UUID, payload: DocumentCreate) -> DocumentResponse:
    document = _run(
        service.create_document,
        current_user_id,
        payload.title,
        payload.description,
        creator_role=payload.creator_role,
    )
    return document_response(document)


def update_document(
    service: DocumentService, document_id: UUID, current_user_id: UUID, payload: DocumentUpdate
) -> DocumentResponse:
    document = _run(service.update_document, document_id, current_user_id, payload.title, payload.description)
    return document_response(document)


def request_revision(
    service: DocumentService, document_id: UUID, current_user_id: UUID, payload: RevisionRequest
) -> DocumentResponse:
    document = _run(service.request_revision, document_id, current_user_id, payload.reason)
    return document_response(document)


# Collaborators

def add_collaborator(
    service: DocumentService, document_id: UUID, current_user_id: UUID, payload: CollaboratorCreate
) -> CollaboratorList:
    members = _run(
        service.add_collaborator,
        document_id,
        current_user_id,
        payload.user_id,
        payload.role,
        payload.permission,
    )
    return collaborator_list(members.active())


def update_collaborator_role(
    service: DocumentService,
    document_id: UUID,
    current_user_id: UUID,
    collaborator_id: UUID,
    payload: CollaboratorRoleUpdate,
) -> CollaboratorList:
    members = _run(service.update_collaborator_role, document_id, current_user_id, collaborator_id, payload.role)
    return collaborator_list(members.active())


def update_collaborator_permission(
    service: DocumentService,
    document_id: UUID,
    current_user_id: UUID,
    collaborator_id: UUID,
    payload: CollaboratorPermissionUpdate,
) -> CollaboratorList:
    members = _run(
        service.update_collaborator_permission, document_id, current_user_id, collaborator_id, payload.permission
    )
    return collaborator_list(members.active())


# Versions

def create_version(
    service: DocumentService, document_id: UUID, current_user_id: UUID, payload: VersionCreate
) -> VersionDetailResponse:
    version = _run(
        service.create_version,
        document_id,
        current_user_id,
        payload.content,
        payload.commit_message,
        request_id=payload.request_id,
    )
    return version_response(version, include_content=True)


def get_diff(
    service: DocumentService, document_id: UUID, current_user_id: UUID, from_version: int, to_version: int
) -> VersionDiff:
    return diff_response(_run(service.get_diff, document_id, current_user_id, from_version, to_version))


# Comments

def add_comment(
    service: DocumentService, document_id: UUID, current_user_id: UUID, version_number: int, payload: CommentCreate
) -> CommentResponse:
    comment = _run(
        service.add_comment,
        document_id,
        current_user_id,
        version_number,
        payload.content,
        start_position=payload.start_position,
        end_position=payload.end_position,
    )
    return comment_response(comment)


def reply_to_comment(
    service: DocumentService, document_id: UUID, current_user_id: UUID, comment_id: UUID, payload: CommentReply
) -> CommentResponse:
    return comment_response(_run(service.reply_to_comment, document_id, current_user_id, comment_id, payload.content))


def update_comment(
    service: DocumentService, document_id: UUID, current_user_id: UUID, comment_id: UUID, payload: CommentUpdate
) -> CommentResponse:
    return comment_response(_run(service.update_comment, document_id, current_user_id, comment_id, payload.content))


def list_comments(
    service: DocumentService,
    document_id: UUID,
    current_user_id: UUID,
    version_number: int,
    resolved: Optional[bool] = None,
    start_position: Optional[int] = None,
    end_position: Optional[int] = None,
) -> CommentList:
    threads = _run(
        service.list_comments,
        document_id,
        current_user_id,
        version_number,
        resolved=resolved,
        start_position=start_position,
        end_position=end_position,
    )
    return comment_list(threads)
