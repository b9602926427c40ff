"""
Tests for ApprovalProcessor -- approver decisions against persisted entities.

Covers:
- approve advances to the next required level and notifies its approver
- approve at the last level finalizes, runs the finalizer once, notifies requester
- reject finalizes immediately and leaves later levels untouched
- unauthorized and self approval raise, change nothing, log a security event
- a requester who fits their own level never becomes its approver
- decisions on terminal or non-current levels are rejected
- notifier failure never undoes a recorded decision
"""

from uuid import uuid4

import pytest

from approval_kernel.domain.approval import (
    ApprovalAction,
    EntityStatus,
    LevelStatus,
    NotificationType,
)
from approval_kernel.domain.approvers import HR, DepartmentHead, ReportingManager, SpecificUser
from approval_kernel.domain.people import DirectoryMember
from approval_kernel.domain.policy import LevelSpec, WorkflowDefinition
from approval_kernel.exceptions import (
    EntityNotFoundError,
    InvalidLevelTransitionError,
    RequiredApproverUnresolvedError,
    SelfApprovalError,
    UnauthorizedApproverError,
)
from approval_services.finalizers import FinalizerRegistry
from approval_services.wiring import build_approval_services


@pytest.fixture
def submitted_leave(services, policy_store, create_leave):
    """A leave request pending at level 1 (mgr-1), level 2 is hr-1."""
    policy_store.create_workflow(WorkflowDefinition(
        name="Leave default",
        entity_type="leave",
        levels=(LevelSpec(1, ReportingManager()), LevelSpec(2, HR())),
        is_default=True,
    ))
    leave_id = create_leave()
    services.submission.submit("leave", leave_id)
    return leave_id


def load(services, leave_id):
    return services.stores.get("leave").get(leave_id)


# =============================================================================
# Approve
# =============================================================================


class TestApprove:
    def test_first_approval_advances(self, services, submitted_leave, notifier, deterministic_clock):
        deterministic_clock.advance_minutes(30)
        outcome = services.processor.process_approval(
            "leave", submitted_leave, 1, "mgr-1", ApprovalAction.APPROVE, comments="ok",
        )

        assert not outcome.finalized
        assert outcome.decided_level.status == LevelStatus.APPROVED
        assert outcome.decided_level.approved_at == deterministic_clock.now()
        assert outcome.next_level.approver_id == "hr-1"

        entity = load(services, submitted_leave)
        assert entity.status == EntityStatus.PENDING
        assert entity.instance.current_level == 2
        assert entity.lock_version == 2
        assert entity.instance.levels[0].comments == "ok"

        required = notifier.of_type(NotificationType.APPROVAL_REQUIRED)
        assert [e.recipient_email for e in required] == [
            "mona@example.com", "hannah@example.com",
        ]

    def test_final_approval_runs_finalizer(
        self, session, directory, notifier, deterministic_clock, submitted_leave,
    ):
        finalized = []
        finalizers = FinalizerRegistry()
        finalizers.register("leave", lambda entity, s: finalized.append(entity.entity_id))
        services = build_approval_services(
            session, directory, notifier=notifier, clock=deterministic_clock,
            finalizers=finalizers,
        )

        services.processor.process_approval("leave", submitted_leave, 1, "mgr-1", "approve")
        outcome = services.processor.process_approval(
            "leave", submitted_leave, 2, "hr-1", "approve",
        )

        assert outcome.finalized
        assert outcome.entity.status == EntityStatus.APPROVED
        assert outcome.entity.approved_at == deterministic_clock.now()
        assert finalized == [submitted_leave]
        (done,) = notifier.of_type(NotificationType.REQUEST_APPROVED)
        assert done.recipient_email == "alice@example.com"
        assert load(services, submitted_leave).status == EntityStatus.APPROVED

    def test_approver_matched_by_email(self, services, submitted_leave, directory):
        from dataclasses import replace

        # same person under a new directory id
        directory.add(replace(directory.find_by_id("mgr-1"), member_id="mgr-1-new"))
        outcome = services.processor.process_approval(
            "leave", submitted_leave, 1, "mgr-1-new", "approve",
        )
        assert outcome.next_level.level == 2


# =============================================================================
# Reject
# =============================================================================


class TestReject:
    def test_reject_finalizes(self, services, submitted_leave, notifier):
        outcome = services.processor.process_approval(
            "leave", submitted_leave, 1, "mgr-1", ApprovalAction.REJECT, comments="busy week",
        )
        assert outcome.finalized
        entity = load(services, submitted_leave)
        assert entity.status == EntityStatus.REJECTED
        assert entity.rejection_reason == "busy week"
        assert entity.instance.levels[1].status == LevelStatus.PENDING
        (event,) = notifier.of_type(NotificationType.REQUEST_REJECTED)
        assert event.details["comments"] == "busy week"

    def test_terminal_entity_rejects_further_decisions(self, services, submitted_leave):
        services.processor.process_approval("leave", submitted_leave, 1, "mgr-1", "reject")
        with pytest.raises(InvalidLevelTransitionError):
            services.processor.process_approval("leave", submitted_leave, 2, "hr-1", "approve")


# =============================================================================
# Guards
# =============================================================================


class TestGuards:
    def test_wrong_actor(self, services, submitted_leave, captured_logs):
        with pytest.raises(UnauthorizedApproverError):
            services.processor.process_approval("leave", submitted_leave, 1, "hr-1", "approve")

        entity = load(services, submitted_leave)
        assert entity.lock_version == 1
        assert entity.instance.levels[0].status == LevelStatus.PENDING
        (event,) = [r for r in captured_logs() if r["message"] == "unauthorized_approval_attempt"]
        assert event["security_event"] is True
        assert event["expected_approver"] == "mona@example.com"
        assert event["actor_id"] == "hr-1"

    def test_self_approval(self, services, submitted_leave, captured_logs):
        with pytest.raises(SelfApprovalError):
            services.processor.process_approval("leave", submitted_leave, 1, "emp-1", "approve")
        assert load(services, submitted_leave).lock_version == 1
        assert any(r["message"] == "unauthorized_approval_attempt" for r in captured_logs())

    def test_not_current_level(self, services, submitted_leave):
        with pytest.raises(InvalidLevelTransitionError):
            services.processor.process_approval("leave", submitted_leave, 2, "hr-1", "approve")

    def test_unknown_entity(self, services):
        with pytest.raises(EntityNotFoundError):
            services.processor.process_approval("leave", uuid4(), 1, "mgr-1", "approve")

    def test_unknown_action(self, services, submitted_leave):
        with pytest.raises(ValueError):
            services.processor.process_approval("leave", submitted_leave, 1, "mgr-1", "maybe")


class TestNotificationFailure:
    def test_decision_survives_notifier_failure(
        self, session, directory, deterministic_clock, submitted_leave, notifier,
    ):
        notifier.fail = True
        services = build_approval_services(
            session, directory, notifier=notifier, clock=deterministic_clock,
        )
        outcome = services.processor.process_approval(
            "leave", submitted_leave, 1, "mgr-1", "approve",
        )
        assert outcome.entity.instance.current_level == 2
        assert load(services, submitted_leave).instance.current_level == 2


# =============================================================================
# Requester matching their own level
# =============================================================================


class TestRequesterFitsOwnLevel:
    @pytest.fixture
    def head_workflow(self, policy_store):
        policy_store.create_workflow(WorkflowDefinition(
            name="Head review",
            entity_type="leave",
            levels=(LevelSpec(1, DepartmentHead()),),
            is_default=True,
        ))

    def test_sole_head_leaves_required_level_unresolved(
        self, services, create_leave, head_workflow,
    ):
        leave_id = create_leave(requester_id="mgr-1", requester_email="mona@example.com")
        with pytest.raises(RequiredApproverUnresolvedError):
            services.submission.submit("leave", leave_id)
        assert load(services, leave_id).status == EntityStatus.DRAFT

    def test_another_head_resolves_and_can_approve(
        self, services, directory, create_leave, head_workflow,
    ):
        directory.add(DirectoryMember(
            member_id="mgr-3", email="nina@example.com", first_name="Nina",
            last_name="Ortiz", role="manager", department_id="dept-eng",
        ))
        leave_id = create_leave(requester_id="mgr-1", requester_email="mona@example.com")
        entity = services.submission.submit("leave", leave_id)
        assert entity.instance.levels[0].approver_id == "mgr-3"

        outcome = services.processor.process_approval("leave", leave_id, 1, "mgr-3", "approve")
        assert outcome.finalized
        assert outcome.entity.status == EntityStatus.APPROVED

    def test_pinned_approver_equal_to_requester(self, services, policy_store, create_expense):
        policy_store.create_workflow(WorkflowDefinition(
            name="Self review",
            entity_type="expense",
            levels=(LevelSpec(1, SpecificUser(approver_id="emp-1")),),
            is_default=True,
        ))
        expense_id = create_expense()
        with pytest.raises(RequiredApproverUnresolvedError):
            services.submission.submit("expense", expense_id)
