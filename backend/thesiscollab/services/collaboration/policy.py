from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Optional

from .roles import RoleCategory

FinalizePolicy = Literal["advisor", "manager_or_advisor"]


@dataclass(frozen=True)
class CollaborationPolicy:
    """Product decisions that the collaboration rules depend on.

    Built from settings by default so the rule functions stay free of global
    state and can be exercised with any combination in tests.
    """

    allow_cross_category_role_change: bool = False
    finalize_policy: FinalizePolicy = "advisor"
    restrict_edits_to_open_statuses: bool = True
    max_students: int = 5
    max_advisors: int = 3

    @classmethod
    def from_settings(cls, settings=None) -> "CollaborationPolicy":
        if settings is None:
            from thesiscollab.core.config import get_settings

            settings = get_settings()
        return cls(
            allow_cross_category_role_change=settings.ALLOW_CROSS_CATEGORY_ROLE_CHANGE,
            finalize_policy=settings.FINALIZE_POLICY,
            restrict_edits_to_open_statuses=settings.RESTRICT_EDITS_TO_OPEN_STATUSES,
            max_students=settings.MAX_STUDENTS_PER_DOCUMENT,
            max_advisors=settings.MAX_ADVISORS_PER_DOCUMENT,
        )

    def capacity_for(self, category: RoleCategory) -> Optional[int]:
        if category == RoleCategory.STUDENT:
            return self.max_students
        if category == RoleCategory.ADVISOR:
            return self.max_advisors
        return None


def resolve_policy(policy: Optional[CollaborationPolicy]) -> CollaborationPolicy:
    return policy if policy is not None else CollaborationPolicy.from_settings()
