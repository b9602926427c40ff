"""
approval_engines.matching -- Pure workflow selection.

Responsibility:
    Decide which policy record governs a request: the first matching
    approval matrix, else the best role-specific workflow, else the
    default workflow.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import approval_kernel/domain/ types.

Invariants enforced:
    - Matrices are evaluated by priority descending; equal priorities
      resolve by ``sequence`` (insertion order), so selection is
      deterministic.
    - An active matching matrix always wins over workflows.
    - Role workflows: highest priority first, then most recently updated.
    - Absent matrix condition fields are wildcards; all present fields
      must match.

Failure modes:
    - Returns None when nothing applies; the caller raises.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Iterable, Sequence

from approval_kernel.domain.policy import (
    DEFAULT_LEVEL_SLA_MINUTES,
    ApprovalMatrix,
    LevelSpec,
    MatrixConditions,
    RequestContext,
    ResolvedWorkflow,
    WorkflowDefinition,
    WorkflowSource,
)

from approval_engines.tracer import traced_engine

_ZERO = Decimal("0")


def matches_conditions(conditions: MatrixConditions, context: RequestContext) -> bool:
    """True if every present condition field matches the request.

    ``amount_range`` tests the request amount, falling back to the number
    of days; a request with neither is treated as zero.
    """
    if conditions.leave_types and context.leave_type not in conditions.leave_types:
        return False

    if conditions.amount_range is not None:
        value = context.amount if context.amount is not None else context.number_of_days
        if not conditions.amount_range.contains(value if value is not None else _ZERO):
            return False

    if conditions.number_of_days_range is not None:
        days = context.number_of_days if context.number_of_days is not None else _ZERO
        if not conditions.number_of_days_range.contains(days):
            return False

    if conditions.departments and (
        context.department_id is None
        or str(context.department_id) not in conditions.departments
    ):
        return False

    if conditions.designations and context.designation not in conditions.designations:
        return False

    return True


def order_matrices(matrices: Iterable[ApprovalMatrix]) -> list[ApprovalMatrix]:
    """Evaluation order: priority descending, then insertion order."""
    return sorted(matrices, key=lambda m: (-m.priority, m.sequence))


def select_matrix(
    matrices: Iterable[ApprovalMatrix],
    entity_type: str,
    context: RequestContext,
) -> ApprovalMatrix | None:
    """Return the first active matrix for ``entity_type`` matching ``context``."""
    candidates = [m for m in matrices if m.is_active and m.entity_type == entity_type]
    for matrix in order_matrices(candidates):
        if matches_conditions(matrix.conditions, context):
            return matrix
    return None


def select_role_workflow(
    workflows: Iterable[WorkflowDefinition],
    entity_type: str,
    requester_role: str | None,
) -> WorkflowDefinition | None:
    """Best active workflow bound to ``requester_role``."""
    if not requester_role:
        return None
    candidates = [
        w for w in workflows
        if w.is_active
        and w.entity_type == entity_type
        and w.requester_role == requester_role
    ]
    if not candidates:
        return None

    def _key(w: WorkflowDefinition) -> tuple[int, float]:
        updated = w.updated_at.timestamp() if w.updated_at is not None else 0.0
        return (w.priority, updated)

    return max(candidates, key=_key)


def select_default_workflow(
    workflows: Iterable[WorkflowDefinition],
    entity_type: str,
) -> WorkflowDefinition | None:
    for workflow in workflows:
        if workflow.is_active and workflow.is_default and workflow.entity_type == entity_type:
            return workflow
    return None


def total_sla_minutes(levels: Sequence[LevelSpec]) -> int:
    return sum(lv.sla_minutes or DEFAULT_LEVEL_SLA_MINUTES for lv in levels)


def resolved_from_matrix(matrix: ApprovalMatrix) -> ResolvedWorkflow:
    return ResolvedWorkflow(
        source=WorkflowSource.MATRIX,
        source_id=matrix.matrix_id,
        source_name=matrix.name,
        levels=matrix.required_approvers,
        sla_minutes=total_sla_minutes(matrix.required_approvers),
        escalation_rules=matrix.escalation_rules,
    )


def resolved_from_workflow(
    workflow: WorkflowDefinition, source: WorkflowSource,
) -> ResolvedWorkflow:
    return ResolvedWorkflow(
        source=source,
        source_id=workflow.workflow_id,
        source_name=workflow.name,
        levels=workflow.levels,
        sla_minutes=workflow.sla_minutes or total_sla_minutes(workflow.levels),
        escalation_rules=workflow.escalation_rules,
    )


@traced_engine("matching", "1.0")
def select_workflow(
    entity_type: str,
    context: RequestContext,
    matrices: Iterable[ApprovalMatrix],
    workflows: Sequence[WorkflowDefinition],
) -> ResolvedWorkflow | None:
    """Apply the full precedence: matrix, role workflow, default workflow."""
    matrix = select_matrix(matrices, entity_type, context)
    if matrix is not None:
        return resolved_from_matrix(matrix)

    role_workflow = select_role_workflow(workflows, entity_type, context.requester_role)
    if role_workflow is not None:
        return resolved_from_workflow(role_workflow, WorkflowSource.ROLE_WORKFLOW)

    default = select_default_workflow(workflows, entity_type)
    if default is not None:
        return resolved_from_workflow(default, WorkflowSource.DEFAULT_WORKFLOW)

    return None
