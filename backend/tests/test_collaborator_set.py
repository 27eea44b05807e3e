"""Unit tests for CollaboratorSet mutations and the primary-per-category rules.

Run:
    python -m pytest tests/test_collaborator_set.py -v
"""

import random
import uuid

import pytest

from thesiscollab.services.collaboration.collaborators import CollaboratorSet
from thesiscollab.services.collaboration.errors import ErrorKind
from thesiscollab.services.collaboration.events import EventType
from thesiscollab.services.collaboration.policy import CollaborationPolicy
from thesiscollab.services.collaboration.roles import CollaboratorRole, PermissionLevel, RoleCategory
from thesiscollab.services.collaboration.types import CollaboratorStatus

from conftest import NOW


def member(members, user_id):
    found = members.find_active(user_id)
    assert found is not None
    return found


class TestFoundedBy:
    def test_founder_is_primary_with_full_access(self, solo, users):
        founder = member(solo, users.student)
        assert founder.role == CollaboratorRole.PRIMARY_STUDENT
        assert founder.permission == PermissionLevel.FULL_ACCESS
        assert solo.check_invariants() == []

    def test_founder_must_be_primary(self, document_id, users):
        with pytest.raises(ValueError):
            CollaboratorSet.founded_by(document_id, users.student, role=CollaboratorRole.CO_STUDENT)


class TestAdd:
    def test_default_role_is_observer(self, solo, users, policy):
        result = solo.add(users.student, users.outsider, policy=policy, now=NOW)
        assert result.ok
        added = member(result.value, users.outsider)
        assert added.role == CollaboratorRole.OBSERVER
        assert added.permission == PermissionLevel.READ_ONLY
        assert [e.type for e in result.events] == [EventType.COLLABORATOR_ADDED]

    def test_event_payload(self, solo, users, policy):
        result = solo.add(users.student, users.examiner, CollaboratorRole.EXAMINER, policy=policy, now=NOW)
        payload = result.events[0].to_payload()
        assert payload["type"] == "collaborator.added"
        assert payload["document_id"] == str(solo.document_id)
        assert payload["actor_user_id"] == str(users.student)
        assert payload["affected_user_id"] == str(users.examiner)
        assert payload["timestamp"] == NOW.isoformat()
        assert payload["extra"]["role"] == "examiner"

    def test_first_advisor_is_seated_as_primary(self, solo, users, policy):
        result = solo.add(users.student, users.advisor, CollaboratorRole.PRIMARY_ADVISOR, policy=policy, now=NOW)
        assert result.ok
        advisor = member(result.value, users.advisor)
        assert advisor.role == CollaboratorRole.PRIMARY_ADVISOR
        assert advisor.permission == PermissionLevel.FULL_ACCESS
        assert [e.type for e in result.events] == [EventType.COLLABORATOR_ADDED, EventType.PRIMARY_PROMOTED]
        assert result.value.check_invariants() == []

    @pytest.mark.parametrize(
        "role,permission",
        [
            (CollaboratorRole.EXTERNAL_ADVISOR, PermissionLevel.READ_ONLY),
            (CollaboratorRole.CO_ADVISOR, None),
        ],
    )
    def test_explicit_role_is_never_upgraded(self, solo, users, policy, role, permission):
        result = solo.add(users.student, users.advisor, role, permission, policy=policy)
        assert result.kind == ErrorKind.LAST_PRIMARY_VIOLATION
        assert solo.find_active(users.advisor) is None

    def test_explicit_role_is_kept_once_primary_exists(self, team, users, policy):
        result = team.add(users.student, users.outsider, CollaboratorRole.EXTERNAL_ADVISOR, PermissionLevel.READ_ONLY, policy=policy)
        external = member(result.value, users.outsider)
        assert external.role == CollaboratorRole.EXTERNAL_ADVISOR
        assert external.permission == PermissionLevel.READ_ONLY
        assert not external.can_manage

    def test_primary_seat_requires_full_access(self, solo, users, policy):
        result = solo.add(
            users.student, users.advisor, CollaboratorRole.PRIMARY_ADVISOR, PermissionLevel.READ_WRITE, policy=policy
        )
        assert result.kind == ErrorKind.VALIDATION_FAILED

    def test_duplicate_active_user_is_rejected(self, team, users, policy):
        result = team.add(users.student, users.co_student, policy=policy)
        assert not result.ok
        assert result.kind == ErrorKind.DUPLICATE_COLLABORATOR

    def test_primary_role_requires_promotion_when_taken(self, team, users, policy):
        result = team.add(users.student, users.outsider, CollaboratorRole.PRIMARY_ADVISOR, policy=policy)
        assert result.kind == ErrorKind.VALIDATION_FAILED

    def test_permission_above_role_maximum(self, solo, users, policy):
        result = solo.add(
            users.student, users.observer, CollaboratorRole.OBSERVER, PermissionLevel.READ_WRITE, policy=policy
        )
        assert result.kind == ErrorKind.VALIDATION_FAILED

    def test_requires_full_access(self, team, users, policy):
        result = team.add(users.co_student, users.outsider, policy=policy)
        assert result.kind == ErrorKind.INSUFFICIENT_PERMISSION

    def test_outsider_cannot_add(self, team, users, policy):
        result = team.add(users.outsider, uuid.uuid4(), policy=policy)
        assert result.kind == ErrorKind.NOT_A_COLLABORATOR

    def test_student_capacity(self, solo, users):
        policy = CollaborationPolicy(max_students=2)
        members = solo.add(users.student, users.co_student, CollaboratorRole.CO_STUDENT, policy=policy).unwrap()
        result = members.add(users.student, users.outsider, CollaboratorRole.CO_STUDENT, policy=policy)
        assert result.kind == ErrorKind.VALIDATION_FAILED
        assert result.detail["limit"] == 2

    def test_removed_collaborator_is_reactivated(self, team, users, policy):
        examiner = member(team, users.examiner)
        removed = team.remove(users.student, examiner.id, policy=policy, now=NOW).unwrap()
        result = removed.add(users.student, users.examiner, CollaboratorRole.REVIEWER, policy=policy, now=NOW)
        assert result.ok
        again = member(result.value, users.examiner)
        assert again.id == examiner.id
        assert again.role == CollaboratorRole.REVIEWER
        assert again.removed_at is None
        assert len(result.value) == len(team)
        assert result.events[0].extra["reactivated"] is True

    def test_original_set_is_untouched(self, solo, users, policy):
        solo.add(users.student, users.outsider, policy=policy)
        assert solo.find_active(users.outsider) is None


class TestRemove:
    def test_soft_delete_keeps_record(self, team, users, policy):
        examiner = member(team, users.examiner)
        result = team.remove(users.student, examiner.id, policy=policy, now=NOW)
        assert result.ok
        record = result.value.get(examiner.id)
        assert record.status == CollaboratorStatus.REMOVED
        assert not record.active
        assert record.removed_by_user_id == users.student
        assert result.value.find_active(users.examiner) is None
        assert [e.type for e in result.events] == [EventType.COLLABORATOR_REMOVED]

    def test_removing_sole_primary_advisor_is_rejected(self, users, policy, solo):
        members = solo.add(users.student, users.advisor, CollaboratorRole.PRIMARY_ADVISOR, policy=policy).unwrap()
        advisor = member(members, users.advisor)
        result = members.remove(users.student, advisor.id, policy=policy)
        assert result.kind == ErrorKind.LAST_PRIMARY_VIOLATION
        assert member(members, users.advisor).active

    def test_cannot_remove_self(self, team, users, policy):
        me = member(team, users.student)
        result = team.remove(users.student, me.id, policy=policy)
        assert result.kind == ErrorKind.SELF_ACTION_NOT_ALLOWED

    def test_replayed_removal_is_a_no_op(self, team, users, policy):
        examiner = member(team, users.examiner)
        once = team.remove(users.student, examiner.id, policy=policy).unwrap()
        twice = once.remove(users.student, examiner.id, policy=policy)
        assert twice.ok
        assert twice.value == once
        assert twice.events == ()

    def test_unknown_collaborator(self, team, users, policy):
        result = team.remove(users.student, uuid.uuid4(), policy=policy)
        assert result.kind == ErrorKind.ENTITY_NOT_FOUND


class TestUpdateRole:
    def test_same_category_change(self, team, users, policy):
        co_student = member(team, users.co_student)
        result = team.update_role(users.student, co_student.id, CollaboratorRole.SECONDARY_STUDENT, policy=policy)
        assert result.ok
        assert member(result.value, users.co_student).role == CollaboratorRole.SECONDARY_STUDENT
        assert [e.type for e in result.events] == [EventType.ROLE_CHANGED]

    def test_cross_category_change_is_rejected_by_default(self, team, users, policy):
        co_student = member(team, users.co_student)
        result = team.update_role(users.student, co_student.id, CollaboratorRole.CO_ADVISOR, policy=policy)
        assert result.kind == ErrorKind.WRONG_ROLE_CATEGORY

    def test_cross_category_change_when_enabled(self, team, users):
        policy = CollaborationPolicy(allow_cross_category_role_change=True)
        co_student = member(team, users.co_student)
        result = team.update_role(users.student, co_student.id, CollaboratorRole.CO_ADVISOR, policy=policy)
        assert result.ok
        assert member(result.value, users.co_student).category == RoleCategory.ADVISOR
        assert result.value.check_invariants() == []

    def test_cannot_move_into_category_without_primary(self, solo, users):
        policy = CollaborationPolicy(allow_cross_category_role_change=True)
        members = solo.add(users.student, users.examiner, CollaboratorRole.EXAMINER, policy=policy).unwrap()
        examiner = member(members, users.examiner)
        result = members.update_role(users.student, examiner.id, CollaboratorRole.CO_ADVISOR, policy=policy)
        assert result.kind == ErrorKind.LAST_PRIMARY_VIOLATION

    def test_primary_cannot_be_demoted_directly(self, team, users, policy):
        advisor = member(team, users.advisor)
        result = team.update_role(users.student, advisor.id, CollaboratorRole.CO_ADVISOR, policy=policy)
        assert result.kind == ErrorKind.LAST_PRIMARY_VIOLATION

    def test_primary_role_is_not_assignable(self, team, users, policy):
        co_advisor = member(team, users.co_advisor)
        result = team.update_role(users.student, co_advisor.id, CollaboratorRole.PRIMARY_ADVISOR, policy=policy)
        assert result.kind == ErrorKind.VALIDATION_FAILED

    def test_permission_is_clamped_to_new_role(self, team, users, policy):
        examiner = member(team, users.examiner)
        result = team.update_role(users.student, examiner.id, CollaboratorRole.OBSERVER, policy=policy)
        assert result.ok
        assert member(result.value, users.examiner).permission == PermissionLevel.READ_ONLY
        assert [e.type for e in result.events] == [EventType.ROLE_CHANGED, EventType.PERMISSION_CHANGED]

    def test_same_role_is_a_no_op(self, team, users, policy):
        examiner = member(team, users.examiner)
        result = team.update_role(users.student, examiner.id, CollaboratorRole.EXAMINER, policy=policy)
        assert result.ok
        assert result.events == ()


class TestUpdatePermission:
    def test_raise_permission(self, team, users, policy):
        examiner = member(team, users.examiner)
        result = team.update_permission(users.student, examiner.id, PermissionLevel.READ_WRITE, policy=policy)
        assert result.ok
        assert member(result.value, users.examiner).can_write

    def test_primary_keeps_full_access(self, team, users, policy):
        advisor = member(team, users.advisor)
        result = team.update_permission(users.student, advisor.id, PermissionLevel.READ_ONLY, policy=policy)
        assert result.kind == ErrorKind.LAST_PRIMARY_VIOLATION

    def test_full_access_on_primary_is_a_no_op(self, team, users, policy):
        advisor = member(team, users.advisor)
        result = team.update_permission(users.student, advisor.id, PermissionLevel.FULL_ACCESS, policy=policy)
        assert result.ok
        assert result.events == ()

    def test_observer_cannot_be_raised(self, team, users, policy):
        observer = member(team, users.observer)
        result = team.update_permission(users.student, observer.id, PermissionLevel.READ_COMMENT, policy=policy)
        assert result.kind == ErrorKind.VALIDATION_FAILED

    def test_cannot_change_own_permission(self, team, users, policy):
        me = member(team, users.student)
        result = team.update_permission(users.student, me.id, PermissionLevel.READ_WRITE, policy=policy)
        assert result.kind == ErrorKind.SELF_ACTION_NOT_ALLOWED


class TestPromoteToPrimary:
    def test_swaps_primary_in_one_step(self, team, users, policy):
        secondary = member(team, users.co_advisor)
        result = team.promote_to_primary(users.student, secondary.id, policy=policy, now=NOW)
        assert result.ok

        promoted = member(result.value, users.co_advisor)
        demoted = member(result.value, users.advisor)
        assert promoted.role == CollaboratorRole.PRIMARY_ADVISOR
        assert promoted.permission == PermissionLevel.FULL_ACCESS
        assert demoted.role == CollaboratorRole.SECONDARY_ADVISOR
        assert demoted.permission == PermissionLevel.READ_WRITE
        assert result.value.primary_of(RoleCategory.ADVISOR) == promoted
        assert result.value.check_invariants() == []
        assert [e.type for e in result.events] == [EventType.PRIMARY_PROMOTED, EventType.ROLE_CHANGED]
        assert result.events[0].extra["previous_primary_user_id"] == str(users.advisor)

    def test_original_set_still_has_old_primary(self, team, users, policy):
        secondary = member(team, users.co_advisor)
        team.promote_to_primary(users.student, secondary.id, policy=policy)
        assert team.primary_of(RoleCategory.ADVISOR).user_id == users.advisor

    def test_other_category_cannot_be_primary(self, team, users, policy):
        examiner = member(team, users.examiner)
        result = team.promote_to_primary(users.student, examiner.id, policy=policy)
        assert result.kind == ErrorKind.WRONG_ROLE_CATEGORY

    def test_already_primary_is_a_no_op(self, team, users, policy):
        advisor = member(team, users.advisor)
        result = team.promote_to_primary(users.student, advisor.id, policy=policy)
        assert result.ok
        assert result.events == ()

    def test_primary_advisor_can_hand_over_student_primary(self, team, users, policy):
        co_student = member(team, users.co_student)
        result = team.promote_to_primary(users.advisor, co_student.id, policy=policy)
        assert result.ok
        assert member(result.value, users.student).role == CollaboratorRole.SECONDARY_STUDENT


class TestSelfService:
    def test_record_access(self, team, users):
        result = team.record_access(users.observer, now=NOW)
        assert result.ok
        assert member(result.value, users.observer).last_access_at == NOW
        assert result.events == ()

    def test_record_access_for_outsider(self, team, users):
        assert team.record_access(users.outsider).kind == ErrorKind.NOT_A_COLLABORATOR

    def test_leave(self, team, users):
        result = team.leave(users.examiner, now=NOW)
        assert result.ok
        assert result.value.find_active(users.examiner) is None
        assert result.events[0].type == EventType.COLLABORATOR_LEFT

    def test_primary_must_hand_over_before_leaving(self, team, users):
        assert team.leave(users.student).kind == ErrorKind.LAST_PRIMARY_VIOLATION


class TestInvariantsUnderRandomOperations:
    """Any sequence of managed operations keeps one full-access primary per populated category."""

    ROLES = [role for role in CollaboratorRole]
    PERMISSIONS = [p for p in PermissionLevel]

    @pytest.mark.parametrize("seed", range(20))
    def test_random_sequences(self, solo, users, seed):
        rng = random.Random(seed)
        policy = CollaborationPolicy(allow_cross_category_role_change=bool(seed % 2))
        pool = [uuid.uuid4() for _ in range(6)] + [users.advisor]
        members = solo

        for _ in range(60):
            managers = [m.user_id for m in members.active() if m.can_manage]
            actor = rng.choice(managers)
            targets = [m for m in members.members if m.user_id != actor] or list(members.members)
            target = rng.choice(targets)
            operation = rng.choice(["add", "remove", "role", "permission", "promote", "leave"])

            if operation == "add":
                result = members.add(actor, rng.choice(pool), rng.choice(self.ROLES + [None]), policy=policy)
            elif operation == "remove":
                result = members.remove(actor, target.id, policy=policy)
            elif operation == "role":
                result = members.update_role(actor, target.id, rng.choice(self.ROLES), policy=policy)
            elif operation == "permission":
                result = members.update_permission(actor, target.id, rng.choice(self.PERMISSIONS), policy=policy)
            elif operation == "promote":
                result = members.promote_to_primary(actor, target.id, policy=policy)
            else:
                result = members.leave(target.user_id)

            if result.ok:
                members = result.value
            assert members.check_invariants() == []
            for collaborator in members.active():
                if collaborator.is_primary:
                    assert collaborator.permission == PermissionLevel.FULL_ACCESS
