"""Role and permission catalog for document collaborators.

Every role belongs to exactly one category. Categories drive grouping and the
"one primary per category" rule; permission levels are compared by rank only,
never by label. Lookups of unknown values raise immediately since they can
only come from a programming error.
"""

from __future__ import annotations

import enum
from typing import Dict, Optional


class RoleCategory(str, enum.Enum):
    STUDENT = "student"
    ADVISOR = "advisor"
    OTHER = "other"


class CollaboratorRole(str, enum.Enum):
    PRIMARY_STUDENT = "primary_student"
    SECONDARY_STUDENT = "secondary_student"
    CO_STUDENT = "co_student"
    PRIMARY_ADVISOR = "primary_advisor"
    SECONDARY_ADVISOR = "secondary_advisor"
    CO_ADVISOR = "co_advisor"
    EXTERNAL_ADVISOR = "external_advisor"
    EXAMINER = "examiner"
    REVIEWER = "reviewer"
    OBSERVER = "observer"


class PermissionLevel(str, enum.Enum):
    READ_ONLY = "read_only"
    READ_COMMENT = "read_comment"
    READ_WRITE = "read_write"
    FULL_ACCESS = "full_access"


# Total order (higher includes lower)
PERMISSION_RANK: Dict[PermissionLevel, int] = {
    PermissionLevel.READ_ONLY: 1,
    PermissionLevel.READ_COMMENT: 2,
    PermissionLevel.READ_WRITE: 3,
    PermissionLevel.FULL_ACCESS: 4,
}

ROLE_CATEGORY: Dict[CollaboratorRole, RoleCategory] = {
    CollaboratorRole.PRIMARY_STUDENT: RoleCategory.STUDENT,
    CollaboratorRole.SECONDARY_STUDENT: RoleCategory.STUDENT,
    CollaboratorRole.CO_STUDENT: RoleCategory.STUDENT,
    CollaboratorRole.PRIMARY_ADVISOR: RoleCategory.ADVISOR,
    CollaboratorRole.SECONDARY_ADVISOR: RoleCategory.ADVISOR,
    CollaboratorRole.CO_ADVISOR: RoleCategory.ADVISOR,
    CollaboratorRole.EXTERNAL_ADVISOR: RoleCategory.ADVISOR,
    CollaboratorRole.EXAMINER: RoleCategory.OTHER,
    CollaboratorRole.REVIEWER: RoleCategory.OTHER,
    CollaboratorRole.OBSERVER: RoleCategory.OTHER,
}

PRIMARY_ROLE: Dict[RoleCategory, CollaboratorRole] = {
    RoleCategory.STUDENT: CollaboratorRole.PRIMARY_STUDENT,
    RoleCategory.ADVISOR: CollaboratorRole.PRIMARY_ADVISOR,
}

# Role a former primary falls back to when someone else is promoted
SECONDARY_ROLE: Dict[RoleCategory, CollaboratorRole] = {
    RoleCategory.STUDENT: CollaboratorRole.SECONDARY_STUDENT,
    RoleCategory.ADVISOR: CollaboratorRole.SECONDARY_ADVISOR,
}

DEFAULT_PERMISSION: Dict[CollaboratorRole, PermissionLevel] = {
    CollaboratorRole.PRIMARY_STUDENT: PermissionLevel.FULL_ACCESS,
    CollaboratorRole.SECONDARY_STUDENT: PermissionLevel.READ_WRITE,
    CollaboratorRole.CO_STUDENT: PermissionLevel.READ_WRITE,
    CollaboratorRole.PRIMARY_ADVISOR: PermissionLevel.FULL_ACCESS,
    CollaboratorRole.SECONDARY_ADVISOR: PermissionLevel.READ_WRITE,
    CollaboratorRole.CO_ADVISOR: PermissionLevel.READ_WRITE,
    CollaboratorRole.EXTERNAL_ADVISOR: PermissionLevel.READ_COMMENT,
    CollaboratorRole.EXAMINER: PermissionLevel.READ_COMMENT,
    CollaboratorRole.REVIEWER: PermissionLevel.READ_COMMENT,
    CollaboratorRole.OBSERVER: PermissionLevel.READ_ONLY,
}

# Roles capped below FULL_ACCESS
MAX_PERMISSION: Dict[CollaboratorRole, PermissionLevel] = {
    CollaboratorRole.OBSERVER: PermissionLevel.READ_ONLY,
}

DEFAULT_ROLE = CollaboratorRole.OBSERVER


def category_of(role: CollaboratorRole) -> RoleCategory:
    return ROLE_CATEGORY[CollaboratorRole(role)]


def is_primary_role(role: CollaboratorRole) -> bool:
    return CollaboratorRole(role) in PRIMARY_ROLE.values()


def primary_role_for(category: RoleCategory) -> Optional[CollaboratorRole]:
    """Primary role of a category, or None for OTHER which has no primary."""
    return PRIMARY_ROLE.get(RoleCategory(category))


def secondary_role_for(category: RoleCategory) -> Optional[CollaboratorRole]:
    return SECONDARY_ROLE.get(RoleCategory(category))


def has_primary(category: RoleCategory) -> bool:
    return RoleCategory(category) in PRIMARY_ROLE


def rank(permission: PermissionLevel) -> int:
    return PERMISSION_RANK[PermissionLevel(permission)]


def at_least(permission: PermissionLevel, threshold: PermissionLevel) -> bool:
    """True when ``permission`` satisfies a requirement of ``threshold`` or more."""
    return rank(permission) >= rank(threshold)


def default_permission_for(role: CollaboratorRole) -> PermissionLevel:
    return DEFAULT_PERMISSION[CollaboratorRole(role)]


def max_permission_for(role: CollaboratorRole) -> PermissionLevel:
    return MAX_PERMISSION.get(CollaboratorRole(role), PermissionLevel.FULL_ACCESS)


def clamp_permission(role: CollaboratorRole, permission: PermissionLevel) -> PermissionLevel:
    ceiling = max_permission_for(role)
    return ceiling if rank(permission) > rank(ceiling) else PermissionLevel(permission)
