"""
Hypothesis-based properties of matrix selection and instance construction.

Properties:
- select_matrix returns a matching matrix of maximal priority, and the
  lowest sequence among equals
- the result does not depend on the order matrices are supplied in
- NumericRange.contains agrees with the inclusive bound comparison
- build_instance numbers levels 1..n, sets each deadline to now + level
  SLA, and the overall deadline to now + workflow SLA
- an approval walk over all-required levels finalizes exactly at the last level
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from approval_engines.instance import (
    ResolvedApprover,
    ResolvedLevel,
    apply_decision,
    build_instance,
)
from approval_engines.matching import matches_conditions, select_matrix, total_sla_minutes
from approval_kernel.domain.approval import ApprovableEntity, EntityStatus
from approval_kernel.domain.approvers import HR, ReportingManager
from approval_kernel.domain.policy import (
    ApprovalMatrix,
    EscalationRules,
    LevelSpec,
    MatrixConditions,
    NumericRange,
    RequestContext,
    ResolvedWorkflow,
    WorkflowSource,
)

T = datetime(2025, 1, 1, 9, 0, tzinfo=timezone.utc)

amounts = st.decimals(
    min_value=Decimal("0"), max_value=Decimal("100000"), places=2,
    allow_nan=False, allow_infinity=False,
)


@st.composite
def numeric_ranges(draw):
    low = draw(st.one_of(st.none(), amounts))
    high = draw(st.one_of(st.none(), amounts))
    if low is not None and high is not None and low > high:
        low, high = high, low
    return NumericRange(min=low, max=high)


@st.composite
def matrix_sets(draw):
    count = draw(st.integers(min_value=1, max_value=8))
    matrices = []
    for sequence in range(1, count + 1):
        matrices.append(ApprovalMatrix(
            name=f"m{sequence}",
            entity_type="expense",
            conditions=MatrixConditions(amount_range=draw(numeric_ranges())),
            required_approvers=(LevelSpec(1, ReportingManager()),),
            priority=draw(st.integers(min_value=0, max_value=3)),
            is_active=draw(st.booleans()),
            sequence=sequence,
        ))
    return matrices


class TestMatrixSelection:
    @given(matrices=matrix_sets(), amount=amounts, data=st.data())
    @settings(max_examples=200, suppress_health_check=[HealthCheck.too_slow])
    def test_selects_first_by_priority_then_sequence(self, matrices, amount, data):
        context = RequestContext(amount=amount)
        shuffled = data.draw(st.permutations(matrices))
        selected = select_matrix(shuffled, "expense", context)

        eligible = [
            m for m in matrices if m.is_active and matches_conditions(m.conditions, context)
        ]
        if not eligible:
            assert selected is None
            return
        best = min(eligible, key=lambda m: (-m.priority, m.sequence))
        assert selected == best

    @given(matrices=matrix_sets(), amount=amounts)
    @settings(max_examples=100)
    def test_other_entity_types_never_selected(self, matrices, amount):
        assert select_matrix(matrices, "leave", RequestContext(amount=amount)) is None

    @given(bounds=numeric_ranges(), value=amounts)
    def test_range_is_inclusive(self, bounds, value):
        expected = (bounds.min is None or value >= bounds.min) and (
            bounds.max is None or value <= bounds.max
        )
        assert bounds.contains(value) == expected


def _entity_for(levels: tuple[LevelSpec, ...]) -> ApprovableEntity:
    workflow = ResolvedWorkflow(
        source=WorkflowSource.DEFAULT_WORKFLOW,
        source_name="Generated",
        levels=levels,
        sla_minutes=total_sla_minutes(levels),
        escalation_rules=EscalationRules(),
    )
    resolved = [
        ResolvedLevel(spec, ResolvedApprover(f"approver-{spec.level}", f"a{spec.level}@example.com"))
        for spec in levels
    ]
    return ApprovableEntity(
        entity_type="leave",
        entity_id=uuid4(),
        requester_id="emp-1",
        status=EntityStatus.PENDING,
        instance=build_instance(workflow, resolved, "emp-1", T),
    )


level_slas = st.lists(st.integers(min_value=1, max_value=10_000), min_size=1, max_size=6)


class TestInstanceConstruction:
    @given(slas=level_slas)
    def test_levels_and_deadlines(self, slas):
        levels = tuple(
            LevelSpec(i, ReportingManager() if i == 1 else HR(), sla_minutes=sla)
            for i, sla in enumerate(slas, start=1)
        )
        instance = _entity_for(levels).instance

        assert [s.level for s in instance.levels] == list(range(1, len(slas) + 1))
        for state, sla in zip(instance.levels, slas):
            assert state.sla_deadline == T + timedelta(minutes=sla)
        assert instance.sla_deadline == T + timedelta(minutes=sum(slas))
        assert instance.current_level == 1

    @given(slas=level_slas)
    def test_approval_walk_finalizes_at_last_level(self, slas):
        levels = tuple(LevelSpec(i, HR(), sla_minutes=sla) for i, sla in enumerate(slas, start=1))
        entity = _entity_for(levels)

        for number in range(1, len(slas) + 1):
            outcome = apply_decision(entity, number, f"approver-{number}", "approve", T)
            entity = outcome.entity
            assert outcome.finalized == (number == len(slas))

        assert entity.status == EntityStatus.APPROVED
        assert entity.approved_at == T
