"""
Tests for ApprovalQueries -- pending approvals, SLA report and stats.
"""

from decimal import Decimal

import pytest

from approval_kernel.domain.approval import SlaState
from approval_kernel.domain.approvers import HR, ReportingManager
from approval_kernel.domain.policy import LevelSpec, WorkflowDefinition


@pytest.fixture
def workflows(policy_store):
    for entity_type in ("leave", "expense"):
        policy_store.create_workflow(WorkflowDefinition(
            name=f"{entity_type} default",
            entity_type=entity_type,
            levels=(
                LevelSpec(1, ReportingManager(), sla_minutes=120 if entity_type == "leave" else 2880),
                LevelSpec(2, HR()),
            ),
            is_default=True,
        ))


class TestPendingForApprover:
    def test_lists_current_level_only(self, services, workflows, create_leave, create_expense):
        leave = services.submission.submit("leave", create_leave())
        expense = services.submission.submit("expense", create_expense())

        pending = services.queries.pending_for_approver(approver_id="mgr-1")
        # leave deadline (2h) sorts ahead of expense (48h)
        assert [(p.entity_type, p.entity_id) for p in pending] == [
            ("leave", leave.entity_id),
            ("expense", expense.entity_id),
        ]
        assert services.queries.pending_for_approver(approver_id="hr-1") == []

        services.processor.process_approval("leave", leave.entity_id, 1, "mgr-1", "approve")
        (hr_item,) = services.queries.pending_for_approver(approver_email="HANNAH@example.com")
        assert hr_item.level == 2
        assert hr_item.requester_id == "emp-1"

    def test_requires_identity(self, services):
        with pytest.raises(ValueError):
            services.queries.pending_for_approver()


class TestSlaReport:
    def test_classifies_pending_entities(
        self, services, workflows, create_leave, create_expense, deterministic_clock,
    ):
        services.submission.submit("leave", create_leave())
        services.submission.submit("expense", create_expense())
        deterministic_clock.advance_minutes(180)

        report = services.queries.sla_report()
        states = {item.entity_type: item for item in report.items}
        assert states["leave"].state == SlaState.EXCEEDED_SLA
        assert states["leave"].hours_remaining == Decimal("-1.00")
        assert states["expense"].state == SlaState.WITHIN_SLA
        assert report.totals[SlaState.EXCEEDED_SLA.value] == 1
        assert report.totals[SlaState.WITHIN_SLA.value] == 1
        assert report.generated_at == deterministic_clock.now()

    def test_escalated_reported(self, services, workflows, create_leave, deterministic_clock):
        services.submission.submit("leave", create_leave())
        deterministic_clock.advance_minutes(121)
        services.escalation.sweep()
        (item,) = services.queries.sla_report().items
        assert item.state == SlaState.ESCALATED


class TestStats:
    def test_counts_per_type_and_status(self, services, workflows, create_leave, create_expense):
        services.submission.submit("leave", create_leave())
        rejected = services.submission.submit("leave", create_leave())
        services.processor.process_approval("leave", rejected.entity_id, 1, "mgr-1", "reject")
        create_expense()

        stats = services.queries.stats()
        assert stats["leave"]["pending"] == 1
        assert stats["leave"]["rejected"] == 1
        assert stats["leave"]["approved"] == 0
        assert stats["expense"]["draft"] == 1
