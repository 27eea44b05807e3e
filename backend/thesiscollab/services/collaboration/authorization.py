"""Authorization decisions for document actions.

Every permission question about a document is answered here and nowhere
else. ``authorize`` is a pure function of the collaborator set, the actor and
the action; it never mutates anything and never raises for a denial.

Fail-closed: a user without an active collaborator record is denied every
action, whatever the action is.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, Optional, Union
from uuid import UUID

from .errors import Err, ErrorKind
from .policy import CollaborationPolicy, resolve_policy
from .roles import CollaboratorRole, RoleCategory
from .types import OPEN_STATUSES, Collaborator, Comment, DocumentStatus

if TYPE_CHECKING:
    from .collaborators import CollaboratorSet

logger = logging.getLogger(__name__)


class Action(str, enum.Enum):
    VIEW_DOCUMENT = "view_document"
    ADD_COMMENT = "add_comment"
    RESOLVE_COMMENT = "resolve_comment"
    DELETE_COMMENT = "delete_comment"
    EDIT_CONTENT = "edit_content"
    CREATE_VERSION = "create_version"
    SUBMIT_DOCUMENT = "submit_document"
    APPROVE_DOCUMENT = "approve_document"
    REQUEST_REVISION = "request_revision"
    FINALIZE_DOCUMENT = "finalize_document"
    MANAGE_COLLABORATORS = "manage_collaborators"
    DELETE_DOCUMENT = "delete_document"


# Actions that need the comment they apply to
COMMENT_ACTIONS = frozenset({Action.RESOLVE_COMMENT, Action.DELETE_COMMENT})


@dataclass(frozen=True)
class Allow:
    collaborator: Collaborator

    @property
    def allowed(self) -> bool:
        return True


@dataclass(frozen=True)
class Deny:
    reason: ErrorKind
    message: str

    @property
    def allowed(self) -> bool:
        return False

    def to_error(self) -> Err:
        return Err(self.reason, self.message)


Decision = Union[Allow, Deny]


def _deny(reason: ErrorKind, message: str, actor_user_id: UUID, action: Action) -> Deny:
    logger.debug("Denied %s for user %s: %s", action.value, actor_user_id, reason.value)
    return Deny(reason, message)


def authorize(
    collaborators: "CollaboratorSet",
    actor_user_id: UUID,
    action: Action,
    *,
    status: Optional[DocumentStatus] = None,
    comment: Optional[Comment] = None,
    policy: Optional[CollaborationPolicy] = None,
) -> Decision:
    """Decide whether ``actor_user_id`` may perform ``action``.

    Args:
        collaborators: Current collaborator set of the document.
        actor_user_id: Authenticated user performing the action.
        action: The action being attempted.
        status: Document status, required for SUBMIT_DOCUMENT and DELETE_DOCUMENT and used by the
            edit-window check of EDIT_CONTENT / CREATE_VERSION.
        comment: Target comment, required for RESOLVE_COMMENT and DELETE_COMMENT.
        policy: Collaboration policy; defaults to the configured one.

    Returns:
        ``Allow`` carrying the actor's collaborator record, or ``Deny`` with a
        machine-readable reason.
    """
    action = Action(action)
    if action in COMMENT_ACTIONS and comment is None:
        raise ValueError(f"{action.value} requires the target comment")
    if action in (Action.SUBMIT_DOCUMENT, Action.DELETE_DOCUMENT) and status is None:
        raise ValueError(f"{action.value} requires the document status")

    policy = resolve_policy(policy)
    actor = collaborators.find_active(actor_user_id)
    if actor is None:
        return _deny(
            ErrorKind.NOT_A_COLLABORATOR,
            "User is not an active collaborator of this document",
            actor_user_id,
            action,
        )

    if action == Action.VIEW_DOCUMENT:
        return Allow(actor)

    if action == Action.ADD_COMMENT:
        if not actor.can_comment:
            return _deny(ErrorKind.INSUFFICIENT_PERMISSION, "Commenting requires comment permission", actor_user_id, action)
        return Allow(actor)

    if action in COMMENT_ACTIONS:
        if actor.can_manage or comment.user_id == actor.user_id:
            return Allow(actor)
        verb = "resolve" if action == Action.RESOLVE_COMMENT else "delete"
        return _deny(
            ErrorKind.INSUFFICIENT_PERMISSION,
            f"Only the author or a full-access collaborator can {verb} this comment",
            actor_user_id,
            action,
        )

    if action in (Action.EDIT_CONTENT, Action.CREATE_VERSION):
        if not actor.can_write:
            return _deny(ErrorKind.INSUFFICIENT_PERMISSION, "Editing requires write permission", actor_user_id, action)
        if policy.restrict_edits_to_open_statuses and status is not None and status not in OPEN_STATUSES:
            return _deny(
                ErrorKind.INVALID_STATUS_FOR_ACTION,
                f"Content cannot be edited while the document is {status.value}",
                actor_user_id,
                action,
            )
        return Allow(actor)

    if action == Action.SUBMIT_DOCUMENT:
        if not actor.can_write:
            return _deny(ErrorKind.INSUFFICIENT_PERMISSION, "Submitting requires write permission", actor_user_id, action)
        if status not in OPEN_STATUSES:
            return _deny(
                ErrorKind.INVALID_STATUS_FOR_ACTION,
                f"Only draft or revision documents can be submitted (current: {status.value})",
                actor_user_id,
                action,
            )
        return Allow(actor)

    if action in (Action.APPROVE_DOCUMENT, Action.REQUEST_REVISION):
        # Review is reserved to advisors whatever permission a student holds
        if actor.category != RoleCategory.ADVISOR:
            return _deny(ErrorKind.WRONG_ROLE_CATEGORY, "Only advisors can review a document", actor_user_id, action)
        if not actor.can_write:
            return _deny(ErrorKind.INSUFFICIENT_PERMISSION, "Reviewing requires write permission", actor_user_id, action)
        return Allow(actor)

    if action == Action.FINALIZE_DOCUMENT:
        is_reviewing_advisor = actor.category == RoleCategory.ADVISOR and actor.can_write
        if is_reviewing_advisor:
            return Allow(actor)
        if policy.finalize_policy == "manager_or_advisor" and actor.can_manage:
            return Allow(actor)
        if policy.finalize_policy == "advisor" and actor.category != RoleCategory.ADVISOR:
            return _deny(ErrorKind.WRONG_ROLE_CATEGORY, "Only advisors can finalize a document", actor_user_id, action)
        return _deny(ErrorKind.INSUFFICIENT_PERMISSION, "Finalizing requires write permission", actor_user_id, action)

    if action == Action.MANAGE_COLLABORATORS:
        if not actor.can_manage:
            return _deny(
                ErrorKind.INSUFFICIENT_PERMISSION,
                "Managing collaborators requires full access",
                actor_user_id,
                action,
            )
        return Allow(actor)

    if action == Action.DELETE_DOCUMENT:
        if actor.role != CollaboratorRole.PRIMARY_STUDENT:
            reason = (
                ErrorKind.INSUFFICIENT_PERMISSION
                if actor.category == RoleCategory.STUDENT
                else ErrorKind.WRONG_ROLE_CATEGORY
            )
            return _deny(reason, "Only the primary student can delete a document", actor_user_id, action)
        if status != DocumentStatus.DRAFT:
            return _deny(
                ErrorKind.INVALID_STATUS_FOR_ACTION,
                f"Only draft documents can be deleted (current: {status.value})",
                actor_user_id,
                action,
            )
        return Allow(actor)

    raise ValueError(f"Unhandled action: {action}")


def capabilities(
    collaborators: "CollaboratorSet",
    actor_user_id: UUID,
    *,
    status: DocumentStatus,
    policy: Optional[CollaborationPolicy] = None,
) -> Dict[Action, Decision]:
    """Decision for every document-level action, for rendering a UI."""
    return {
        action: authorize(collaborators, actor_user_id, action, status=status, policy=policy)
        for action in Action
        if action not in COMMENT_ACTIONS
    }
