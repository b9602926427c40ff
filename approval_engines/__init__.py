"""
Module: approval_engines
Responsibility:
    Package entrypoint that re-exports the pure approval engines: workflow
    selection, instance construction and the decision state machine,
    escalation marking, SLA classification, and policy validation.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import approval_kernel/domain/ and approval_kernel.exceptions.
    MUST NOT import approval_services.

Invariants enforced:
    - Purity: engines NEVER call ``datetime.now()``.  ``now`` is always an
      explicit parameter supplied by the calling service.
    - Determinism: identical inputs always produce identical outputs.
"""

from approval_engines.escalation import (
    escalation_reason,
    is_breached,
    mark_escalated,
    next_level_target,
)
from approval_engines.instance import (
    DecisionOutcome,
    ResolvedApprover,
    ResolvedLevel,
    apply_decision,
    authorize_actor,
    build_instance,
    current_pending_level,
)
from approval_engines.matching import (
    matches_conditions,
    order_matrices,
    select_default_workflow,
    select_matrix,
    select_role_workflow,
    select_workflow,
)
from approval_engines.sla import SlaStatus, classify, hours_between
from approval_engines.validation import (
    PolicyValidationResult,
    ValidationIssue,
    validate_matrix,
    validate_workflow,
)

__all__ = [
    "escalation_reason",
    "is_breached",
    "mark_escalated",
    "next_level_target",
    "DecisionOutcome",
    "ResolvedApprover",
    "ResolvedLevel",
    "apply_decision",
    "authorize_actor",
    "build_instance",
    "current_pending_level",
    "matches_conditions",
    "order_matrices",
    "select_default_workflow",
    "select_matrix",
    "select_role_workflow",
    "select_workflow",
    "SlaStatus",
    "classify",
    "hours_between",
    "PolicyValidationResult",
    "ValidationIssue",
    "validate_matrix",
    "validate_workflow",
]
