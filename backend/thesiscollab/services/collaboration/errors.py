"""Result types returned by every collaboration operation.

A rejected precondition is an expected outcome, so operations return
``Ok``/``Err`` values instead of raising. ``Err.raise_for_error`` is the
bridge for callers that prefer exceptions at their own boundary.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Dict, Generic, Tuple, TypeVar, Union

from .events import DomainEvent

T = TypeVar("T")


class ErrorKind(str, enum.Enum):
    NOT_A_COLLABORATOR = "not_a_collaborator"
    INSUFFICIENT_PERMISSION = "insufficient_permission"
    WRONG_ROLE_CATEGORY = "wrong_role_category"
    INVALID_STATUS_FOR_ACTION = "invalid_status_for_action"
    INVALID_TRANSITION = "invalid_transition"
    DUPLICATE_COLLABORATOR = "duplicate_collaborator"
    LAST_PRIMARY_VIOLATION = "last_primary_violation"
    SELF_ACTION_NOT_ALLOWED = "self_action_not_allowed"
    ENTITY_NOT_FOUND = "entity_not_found"
    VALIDATION_FAILED = "validation_failed"


class DomainError(Exception):
    """Exception form of an ``Err`` for callers that unwrap results."""

    def __init__(self, kind: ErrorKind, message: str, detail: Dict[str, Any] | None = None):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.detail = detail or {}

    def __repr__(self) -> str:
        return f"<DomainError(kind={self.kind.value}, message={self.message!r})>"


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T
    events: Tuple[DomainEvent, ...] = ()

    @property
    def ok(self) -> bool:
        return True

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True)
class Err:
    kind: ErrorKind
    message: str
    detail: Dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return False

    def raise_for_error(self) -> None:
        raise DomainError(self.kind, self.message, dict(self.detail))

    def unwrap(self):
        self.raise_for_error()


Result = Union[Ok[T], Err]
