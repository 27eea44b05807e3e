"""The collaborator set of a single document.

``CollaboratorSet`` is an immutable value. Each mutation checks the acting
user through the authorization engine, validates the primary-per-category
rules and returns a brand new set together with the domain events it
produced, so a half-applied change can never be observed.

Rules enforced here:
- a STUDENT or ADVISOR category with any active member has exactly one
  active primary, and that primary always holds FULL_ACCESS;
- "manage another collaborator" operations never target the actor's own
  record;
- removal only flips the record to REMOVED so authorship stays resolvable.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Dict, Iterator, List, Optional, Sequence, Tuple
from uuid import UUID

from .authorization import Action, authorize
from .errors import Err, ErrorKind, Ok, Result
from .events import DomainEvent, EventType, utcnow
from .policy import CollaborationPolicy, resolve_policy
from .roles import (
    DEFAULT_ROLE,
    CollaboratorRole,
    PermissionLevel,
    RoleCategory,
    category_of,
    clamp_permission,
    default_permission_for,
    has_primary,
    is_primary_role,
    max_permission_for,
    primary_role_for,
    rank,
    secondary_role_for,
)
from .types import Collaborator, CollaboratorStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CollaboratorSet:
    document_id: UUID
    members: Tuple[Collaborator, ...] = ()

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def founded_by(
        cls,
        document_id: UUID,
        user_id: UUID,
        *,
        role: CollaboratorRole = CollaboratorRole.PRIMARY_STUDENT,
        now: Optional[datetime] = None,
    ) -> "CollaboratorSet":
        """Initial set of a new document: its creator as primary of their category."""
        if not is_primary_role(role):
            raise ValueError("A document must be founded by a primary collaborator")
        founder = Collaborator(
            id=uuid.uuid4(),
            document_id=document_id,
            user_id=user_id,
            role=role,
            permission=PermissionLevel.FULL_ACCESS,
            added_at=now or utcnow(),
            added_by_user_id=user_id,
        )
        return cls(document_id=document_id, members=(founder,))

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def __iter__(self) -> Iterator[Collaborator]:
        return iter(self.members)

    def __len__(self) -> int:
        return len(self.members)

    def get(self, collaborator_id: UUID) -> Optional[Collaborator]:
        for member in self.members:
            if member.id == collaborator_id:
                return member
        return None

    def find_active(self, user_id: UUID) -> Optional[Collaborator]:
        for member in self.members:
            if member.active and member.user_id == user_id:
                return member
        return None

    def find_removed(self, user_id: UUID) -> Optional[Collaborator]:
        removed = [m for m in self.members if not m.active and m.user_id == user_id]
        if not removed:
            return None
        return max(removed, key=lambda m: m.removed_at or m.added_at)

    def active(self) -> List[Collaborator]:
        return [m for m in self.members if m.active]

    def in_category(self, category: RoleCategory) -> List[Collaborator]:
        return [m for m in self.members if m.active and m.category == category]

    def primary_of(self, category: RoleCategory) -> Optional[Collaborator]:
        primary_role = primary_role_for(category)
        if primary_role is None:
            return None
        for member in self.members:
            if member.active and member.role == primary_role:
                return member
        return None

    def students(self) -> List[Collaborator]:
        return self.in_category(RoleCategory.STUDENT)

    def advisors(self) -> List[Collaborator]:
        return self.in_category(RoleCategory.ADVISOR)

    def check_invariants(self) -> List[str]:
        """Describe every rule the set currently breaks (empty when consistent)."""
        problems: List[str] = []
        for category in (RoleCategory.STUDENT, RoleCategory.ADVISOR):
            members = self.in_category(category)
            primaries = [m for m in members if m.is_primary]
            if members and len(primaries) != 1:
                problems.append(f"{category.value} category has {len(primaries)} active primaries")
        for member in self.active():
            if member.is_primary and member.permission != PermissionLevel.FULL_ACCESS:
                problems.append(f"primary {member.id} holds {member.permission.value}")
        active_users = [m.user_id for m in self.active()]
        if len(active_users) != len(set(active_users)):
            problems.append("a user holds more than one active record")
        return problems

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _with(self, updated: Sequence[Collaborator] = (), added: Sequence[Collaborator] = ()) -> "CollaboratorSet":
        by_id: Dict[UUID, Collaborator] = {m.id: m for m in updated}
        members = tuple(by_id.get(m.id, m) for m in self.members) + tuple(added)
        return replace(self, members=members)

    def _event(
        self,
        event_type: EventType,
        actor_user_id: UUID,
        now: datetime,
        affected: Optional[Collaborator] = None,
        **extra,
    ) -> DomainEvent:
        if affected is not None:
            extra.setdefault("collaborator_id", str(affected.id))
        return DomainEvent(
            type=event_type,
            document_id=self.document_id,
            actor_user_id=actor_user_id,
            affected_user_id=affected.user_id if affected is not None else None,
            timestamp=now,
            extra=extra,
        )

    def _authorize_manager(self, actor_user_id: UUID, policy: CollaborationPolicy) -> Optional[Err]:
        decision = authorize(self, actor_user_id, Action.MANAGE_COLLABORATORS, policy=policy)
        if not decision.allowed:
            return decision.to_error()
        return None

    def _managed_target(self, actor_user_id: UUID, collaborator_id: UUID) -> Result[Collaborator]:
        target = self.get(collaborator_id)
        if target is None or not target.active:
            return Err(ErrorKind.ENTITY_NOT_FOUND, "Collaborator not found", {"collaborator_id": str(collaborator_id)})
        if target.user_id == actor_user_id:
            return Err(
                ErrorKind.SELF_ACTION_NOT_ALLOWED,
                "Collaborators cannot manage their own record",
                {"collaborator_id": str(collaborator_id)},
            )
        return Ok(target)

    def _capacity_error(self, category: RoleCategory, policy: CollaborationPolicy) -> Optional[Err]:
        limit = policy.capacity_for(category)
        if limit is not None and len(self.in_category(category)) >= limit:
            return Err(
                ErrorKind.VALIDATION_FAILED,
                f"Maximum number of {category.value} collaborators reached ({limit})",
                {"category": category.value, "limit": limit},
            )
        return None

    # ------------------------------------------------------------------
    # Managed mutations
    # ------------------------------------------------------------------

    def add(
        self,
        actor_user_id: UUID,
        user_id: UUID,
        role: Optional[CollaboratorRole] = None,
        permission: Optional[PermissionLevel] = None,
        *,
        policy: Optional[CollaborationPolicy] = None,
        now: Optional[datetime] = None,
    ) -> Result["CollaboratorSet"]:
        """Attach ``user_id`` to the document.

        A primary role is accepted only while its category has no primary, so
        the first STUDENT or ADVISOR member must be added with it. Once seated,
        primary roles are only reachable through ``promote_to_primary``. The
        requested role and permission are stored as given or rejected.
        """
        policy = resolve_policy(policy)
        now = now or utcnow()
        denied = self._authorize_manager(actor_user_id, policy)
        if denied:
            return denied

        if self.find_active(user_id) is not None:
            return Err(
                ErrorKind.DUPLICATE_COLLABORATOR,
                "User is already a collaborator of this document",
                {"user_id": str(user_id)},
            )

        role = CollaboratorRole(role) if role is not None else DEFAULT_ROLE
        category = category_of(role)
        seat_as_primary = False
        if has_primary(category):
            has_category_primary = self.primary_of(category) is not None
            if is_primary_role(role) and has_category_primary:
                return Err(
                    ErrorKind.VALIDATION_FAILED,
                    f"The document already has a {role.value}; promote a collaborator instead",
                    {"role": role.value},
                )
            if not is_primary_role(role) and not has_category_primary:
                return Err(
                    ErrorKind.LAST_PRIMARY_VIOLATION,
                    f"Add the {primary_role_for(category).value} before other {category.value} collaborators",
                    {"role": role.value, "category": category.value},
                )
            over_capacity = self._capacity_error(category, policy)
            if over_capacity:
                return over_capacity
            seat_as_primary = is_primary_role(role)

        permission = PermissionLevel(permission) if permission is not None else default_permission_for(role)
        if seat_as_primary and permission != PermissionLevel.FULL_ACCESS:
            return Err(
                ErrorKind.VALIDATION_FAILED,
                f"A {role.value} always holds {PermissionLevel.FULL_ACCESS.value}",
                {"role": role.value, "permission": permission.value},
            )
        if rank(permission) > rank(max_permission_for(role)):
            return Err(
                ErrorKind.VALIDATION_FAILED,
                f"{role.value} collaborators cannot hold {permission.value}",
                {"role": role.value, "permission": permission.value},
            )

        previous = self.find_removed(user_id)
        if previous is not None:
            collaborator = replace(
                previous,
                role=role,
                permission=permission,
                status=CollaboratorStatus.ACTIVE,
                added_at=now,
                added_by_user_id=actor_user_id,
                removed_at=None,
                removed_by_user_id=None,
            )
            new_set = self._with(updated=[collaborator])
        else:
            collaborator = Collaborator(
                id=uuid.uuid4(),
                document_id=self.document_id,
                user_id=user_id,
                role=role,
                permission=permission,
                added_at=now,
                added_by_user_id=actor_user_id,
            )
            new_set = self._with(added=[collaborator])

        events = [
            self._event(
                EventType.COLLABORATOR_ADDED,
                actor_user_id,
                now,
                collaborator,
                role=role.value,
                permission=permission.value,
                reactivated=previous is not None,
            )
        ]
        if seat_as_primary:
            events.append(
                self._event(
                    EventType.PRIMARY_PROMOTED,
                    actor_user_id,
                    now,
                    collaborator,
                    category=category.value,
                    previous_primary_user_id=None,
                    reason="first_in_category",
                )
            )
        logger.info(
            "Collaborator %s added to document %s as %s (%s)",
            user_id,
            self.document_id,
            role.value,
            permission.value,
        )
        return Ok(new_set, tuple(events))

    def add_many(
        self,
        actor_user_id: UUID,
        entries: Sequence[Tuple[UUID, Optional[CollaboratorRole], Optional[PermissionLevel]]],
        *,
        policy: Optional[CollaborationPolicy] = None,
        now: Optional[datetime] = None,
    ) -> Result["CollaboratorSet"]:
        """Add several collaborators; the first rejection aborts the whole batch."""
        current = self
        events: List[DomainEvent] = []
        for user_id, role, permission in entries:
            result = current.add(actor_user_id, user_id, role, permission, policy=policy, now=now)
            if not result.ok:
                return result
            current = result.value
            events.extend(result.events)
        return Ok(current, tuple(events))

    def remove(
        self,
        actor_user_id: UUID,
        collaborator_id: UUID,
        *,
        policy: Optional[CollaborationPolicy] = None,
        now: Optional[datetime] = None,
    ) -> Result["CollaboratorSet"]:
        policy = resolve_policy(policy)
        now = now or utcnow()
        denied = self._authorize_manager(actor_user_id, policy)
        if denied:
            return denied

        existing = self.get(collaborator_id)
        if existing is not None and not existing.active:
            # Replayed removal: already in the requested end state
            return Ok(self)

        found = self._managed_target(actor_user_id, collaborator_id)
        if not found.ok:
            return found
        target = found.value

        if target.is_primary:
            return Err(
                ErrorKind.LAST_PRIMARY_VIOLATION,
                f"The {target.role.value} cannot be removed; promote another collaborator first",
                {"collaborator_id": str(target.id)},
            )

        removed = replace(
            target,
            status=CollaboratorStatus.REMOVED,
            removed_at=now,
            removed_by_user_id=actor_user_id,
        )
        logger.info("Collaborator %s removed from document %s", target.user_id, self.document_id)
        return Ok(
            self._with(updated=[removed]),
            (self._event(EventType.COLLABORATOR_REMOVED, actor_user_id, now, removed, role=target.role.value),),
        )

    def update_role(
        self,
        actor_user_id: UUID,
        collaborator_id: UUID,
        new_role: CollaboratorRole,
        *,
        policy: Optional[CollaborationPolicy] = None,
        now: Optional[datetime] = None,
    ) -> Result["CollaboratorSet"]:
        policy = resolve_policy(policy)
        now = now or utcnow()
        new_role = CollaboratorRole(new_role)
        denied = self._authorize_manager(actor_user_id, policy)
        if denied:
            return denied

        found = self._managed_target(actor_user_id, collaborator_id)
        if not found.ok:
            return found
        target = found.value

        if target.role == new_role:
            return Ok(self)
        if target.is_primary:
            return Err(
                ErrorKind.LAST_PRIMARY_VIOLATION,
                f"The {target.role.value} keeps its role until another collaborator is promoted",
                {"collaborator_id": str(target.id)},
            )
        if is_primary_role(new_role):
            return Err(
                ErrorKind.VALIDATION_FAILED,
                "Primary roles are assigned through promotion",
                {"role": new_role.value},
            )

        old_category = target.category
        new_category = category_of(new_role)
        if new_category != old_category:
            if not policy.allow_cross_category_role_change:
                return Err(
                    ErrorKind.WRONG_ROLE_CATEGORY,
                    f"Cannot move a {old_category.value} collaborator to a {new_category.value} role",
                    {"from_role": target.role.value, "to_role": new_role.value},
                )
            if has_primary(new_category) and self.primary_of(new_category) is None:
                return Err(
                    ErrorKind.LAST_PRIMARY_VIOLATION,
                    f"The {new_category.value} category has no primary yet; add its primary first",
                    {"category": new_category.value},
                )
            over_capacity = self._capacity_error(new_category, policy)
            if over_capacity:
                return over_capacity

        new_permission = clamp_permission(new_role, target.permission)
        updated = replace(target, role=new_role, permission=new_permission)
        events = [
            self._event(
                EventType.ROLE_CHANGED,
                actor_user_id,
                now,
                updated,
                from_role=target.role.value,
                to_role=new_role.value,
            )
        ]
        if new_permission != target.permission:
            events.append(
                self._event(
                    EventType.PERMISSION_CHANGED,
                    actor_user_id,
                    now,
                    updated,
                    from_permission=target.permission.value,
                    to_permission=new_permission.value,
                )
            )
        logger.info(
            "Collaborator %s on document %s changed role %s -> %s",
            target.user_id,
            self.document_id,
            target.role.value,
            new_role.value,
        )
        return Ok(self._with(updated=[updated]), tuple(events))

    def update_permission(
        self,
        actor_user_id: UUID,
        collaborator_id: UUID,
        new_permission: PermissionLevel,
        *,
        policy: Optional[CollaborationPolicy] = None,
        now: Optional[datetime] = None,
    ) -> Result["CollaboratorSet"]:
        policy = resolve_policy(policy)
        now = now or utcnow()
        new_permission = PermissionLevel(new_permission)
        denied = self._authorize_manager(actor_user_id, policy)
        if denied:
            return denied

        found = self._managed_target(actor_user_id, collaborator_id)
        if not found.ok:
            return found
        target = found.value

        if target.permission == new_permission:
            return Ok(self)
        if target.is_primary:
            return Err(
                ErrorKind.LAST_PRIMARY_VIOLATION,
                "Primary collaborators always hold full access; promote another collaborator first",
                {"collaborator_id": str(target.id)},
            )
        if rank(new_permission) > rank(max_permission_for(target.role)):
            return Err(
                ErrorKind.VALIDATION_FAILED,
                f"{target.role.value} collaborators cannot hold {new_permission.value}",
                {"role": target.role.value, "permission": new_permission.value},
            )

        updated = replace(target, permission=new_permission)
        logger.info(
            "Collaborator %s on document %s changed permission %s -> %s",
            target.user_id,
            self.document_id,
            target.permission.value,
            new_permission.value,
        )
        return Ok(
            self._with(updated=[updated]),
            (
                self._event(
                    EventType.PERMISSION_CHANGED,
                    actor_user_id,
                    now,
                    updated,
                    from_permission=target.permission.value,
                    to_permission=new_permission.value,
                ),
            ),
        )

    def promote_to_primary(
        self,
        actor_user_id: UUID,
        collaborator_id: UUID,
        *,
        policy: Optional[CollaborationPolicy] = None,
        now: Optional[datetime] = None,
    ) -> Result["CollaboratorSet"]:
        """Make the target the primary of its category, demoting the current one.

        The former primary becomes the category's secondary role at
        READ_WRITE. Both records change in the same returned set.
        """
        policy = resolve_policy(policy)
        now = now or utcnow()
        denied = self._authorize_manager(actor_user_id, policy)
        if denied:
            return denied

        found = self._managed_target(actor_user_id, collaborator_id)
        if not found.ok:
            return found
        target = found.value

        category = target.category
        if not has_primary(category):
            return Err(
                ErrorKind.WRONG_ROLE_CATEGORY,
                f"{target.role.value} collaborators cannot become primary",
                {"role": target.role.value},
            )
        if target.is_primary:
            return Ok(self)

        updates: List[Collaborator] = []
        events: List[DomainEvent] = []
        current = self.primary_of(category)
        if current is not None:
            demoted = replace(
                current,
                role=secondary_role_for(category),
                permission=PermissionLevel.READ_WRITE,
            )
            updates.append(demoted)
            events.append(
                self._event(
                    EventType.ROLE_CHANGED,
                    actor_user_id,
                    now,
                    demoted,
                    from_role=current.role.value,
                    to_role=demoted.role.value,
                    from_permission=current.permission.value,
                    to_permission=demoted.permission.value,
                )
            )

        promoted = replace(target, role=primary_role_for(category), permission=PermissionLevel.FULL_ACCESS)
        updates.append(promoted)
        events.insert(
            0,
            self._event(
                EventType.PRIMARY_PROMOTED,
                actor_user_id,
                now,
                promoted,
                category=category.value,
                from_role=target.role.value,
                previous_primary_user_id=str(current.user_id) if current is not None else None,
            ),
        )
        logger.info(
            "Collaborator %s promoted to %s on document %s",
            target.user_id,
            promoted.role.value,
            self.document_id,
        )
        return Ok(self._with(updated=updates), tuple(events))

    # ------------------------------------------------------------------
    # Self-service
    # ------------------------------------------------------------------

    def record_access(self, user_id: UUID, *, now: Optional[datetime] = None) -> Result["CollaboratorSet"]:
        member = self.find_active(user_id)
        if member is None:
            return Err(ErrorKind.NOT_A_COLLABORATOR, "User is not an active collaborator of this document")
        return Ok(self._with(updated=[replace(member, last_access_at=now or utcnow())]))

    def leave(self, user_id: UUID, *, now: Optional[datetime] = None) -> Result["CollaboratorSet"]:
        now = now or utcnow()
        member = self.find_active(user_id)
        if member is None:
            return Err(ErrorKind.NOT_A_COLLABORATOR, "User is not an active collaborator of this document")
        if member.is_primary:
            return Err(
                ErrorKind.LAST_PRIMARY_VIOLATION,
                f"The {member.role.value} must hand over to another collaborator before leaving",
                {"collaborator_id": str(member.id)},
            )
        removed = replace(member, status=CollaboratorStatus.REMOVED, removed_at=now, removed_by_user_id=user_id)
        logger.info("Collaborator %s left document %s", user_id, self.document_id)
        return Ok(
            self._with(updated=[removed]),
            (self._event(EventType.COLLABORATOR_LEFT, user_id, now, removed, role=member.role.value),),
        )
