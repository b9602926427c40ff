"""
Tests for SLA classification and escalation marking.

Tests cover:
- classify: within, approaching, exceeded, escalated; hours remaining
- is_breached: deadline equality counts, terminal and escalated entities
- mark_escalated: flags, reason, idempotence, no level state change
"""

from dataclasses import replace
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

from approval_engines.escalation import (
    escalation_reason,
    is_breached,
    mark_escalated,
    next_level_target,
)
from approval_engines.instance import ResolvedApprover, ResolvedLevel, build_instance
from approval_engines.sla import classify, hours_between
from approval_kernel.domain.approval import (
    ApprovableEntity,
    EntityStatus,
    LevelStatus,
    SlaState,
)
from approval_kernel.domain.approvers import HR, ReportingManager
from approval_kernel.domain.policy import (
    EscalationRules,
    LevelSpec,
    ResolvedWorkflow,
    WorkflowSource,
)

T = datetime(2025, 1, 1, 9, 0, tzinfo=timezone.utc)


def make_entity(status: EntityStatus = EntityStatus.PENDING) -> ApprovableEntity:
    levels = (
        LevelSpec(1, ReportingManager(), sla_minutes=1440),
        LevelSpec(2, HR(), sla_minutes=1440),
    )
    workflow = ResolvedWorkflow(
        source=WorkflowSource.DEFAULT_WORKFLOW,
        source_name="Leave",
        levels=levels,
        sla_minutes=2880,
        escalation_rules=EscalationRules(),
    )
    instance = build_instance(
        workflow,
        [
            ResolvedLevel(levels[0], ResolvedApprover("mgr-1", "mona@example.com")),
            ResolvedLevel(levels[1], ResolvedApprover("hr-1", "hannah@example.com")),
        ],
        "emp-1",
        T,
    )
    return ApprovableEntity(
        entity_type="leave",
        entity_id=uuid4(),
        requester_id="emp-1",
        status=status,
        instance=instance,
    )


class TestClassify:
    def test_within_sla(self):
        status = classify(make_entity().instance, T, timedelta(hours=12))
        assert status.state == SlaState.WITHIN_SLA
        assert status.hours_remaining == Decimal("24.00")

    def test_approaching_inside_window(self):
        status = classify(make_entity().instance, T + timedelta(hours=1))
        assert status.state == SlaState.APPROACHING_SLA
        assert status.hours_remaining == Decimal("23.00")

    def test_window_is_configurable(self):
        status = classify(make_entity().instance, T + timedelta(hours=1), timedelta(hours=2))
        assert status.state == SlaState.WITHIN_SLA

    def test_exceeded_has_negative_hours(self):
        status = classify(make_entity().instance, T + timedelta(hours=25, minutes=30))
        assert status.state == SlaState.EXCEEDED_SLA
        assert status.hours_remaining == Decimal("-1.50")

    def test_escalated_reported_first(self):
        entity = make_entity()
        escalated = mark_escalated(entity, T + timedelta(hours=25), "hannah@example.com", "r")
        status = classify(escalated.instance, T + timedelta(hours=26))
        assert status.state == SlaState.ESCALATED

    def test_hours_between_rounds_to_cents(self):
        assert hours_between(T, T + timedelta(minutes=20)) == Decimal("0.33")


class TestIsBreached:
    def test_not_breached_before_deadline(self):
        assert not is_breached(make_entity(), T + timedelta(minutes=1439))

    def test_breached_at_deadline(self):
        assert is_breached(make_entity(), T + timedelta(minutes=1440))

    def test_terminal_entity_never_breached(self):
        assert not is_breached(make_entity(EntityStatus.APPROVED), T + timedelta(days=9))

    def test_escalated_entity_not_breached_again(self):
        entity = mark_escalated(make_entity(), T + timedelta(days=2), None, "r")
        assert not is_breached(entity, T + timedelta(days=3))


class TestMarkEscalated:
    def test_marks_level_and_instance(self):
        entity = make_entity()
        now = T + timedelta(minutes=1500)
        reason = escalation_reason(entity, now)
        assert reason == "SLA breached at level 1 (60 minutes overdue)"

        marked = mark_escalated(entity, now, "hannah@example.com", reason)
        level = marked.instance.levels[0]
        assert level.is_escalated and level.escalated_at == now
        assert level.status == LevelStatus.PENDING
        assert marked.instance.is_escalated
        assert marked.instance.escalation_reason == reason
        assert marked.instance.escalated_to_email == "hannah@example.com"
        assert marked.instance.current_level == 1
        assert marked.status == EntityStatus.PENDING

    def test_idempotent(self):
        entity = make_entity()
        first = mark_escalated(entity, T + timedelta(minutes=1500), "a@example.com", "first")
        second = mark_escalated(first, T + timedelta(minutes=3000), "b@example.com", "second")
        assert second == first

    def test_next_level_target(self):
        entity = make_entity()
        assert next_level_target(entity).approver_id == "hr-1"
        last = replace(entity, instance=replace(entity.instance, current_level=2))
        assert next_level_target(last) is None
