"""
Pure domain layer.

This module contains pure data transfer objects and domain logic
with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- I/O

All domain objects are immutable and deterministic.  Time is read only
through an injected Clock.
"""

from approval_kernel.domain.approval import (
    ENTITY_TRANSITIONS,
    LEVEL_TRANSITIONS,
    TERMINAL_ENTITY_STATUSES,
    ApprovableEntity,
    ApprovalAction,
    ApprovalInstance,
    ApprovalLevelState,
    EntityStatus,
    LevelStatus,
    NotificationType,
    SlaState,
)
from approval_kernel.domain.approvers import (
    HR,
    Admin,
    ApproverSpec,
    ApproverType,
    DepartmentHead,
    ReportingManager,
    RoleBased,
    SpecificUser,
    approver_from_record,
    approver_to_record,
    approver_type_of,
)
from approval_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from approval_kernel.domain.people import DirectoryMember
from approval_kernel.domain.policy import (
    ALL_ENTITY_TYPES,
    DEFAULT_LEVEL_SLA_MINUTES,
    ApprovalDelegation,
    ApprovalMatrix,
    EntityType,
    EscalateTo,
    EscalationRules,
    LevelSpec,
    MatrixConditions,
    NumericRange,
    PolicyPack,
    RequestContext,
    ResolvedWorkflow,
    WorkflowDefinition,
    WorkflowSource,
    conditions_from_record,
    conditions_to_record,
    escalation_rules_from_record,
    escalation_rules_to_record,
    level_from_record,
    level_to_record,
    levels_from_records,
)

__all__ = [
    # Instance state
    "ENTITY_TRANSITIONS",
    "LEVEL_TRANSITIONS",
    "TERMINAL_ENTITY_STATUSES",
    "ApprovableEntity",
    "ApprovalAction",
    "ApprovalInstance",
    "ApprovalLevelState",
    "EntityStatus",
    "LevelStatus",
    "NotificationType",
    "SlaState",
    # Approver variants
    "HR",
    "Admin",
    "ApproverSpec",
    "ApproverType",
    "DepartmentHead",
    "ReportingManager",
    "RoleBased",
    "SpecificUser",
    "approver_from_record",
    "approver_to_record",
    "approver_type_of",
    # Time
    "Clock",
    "DeterministicClock",
    "SystemClock",
    # People
    "DirectoryMember",
    # Policy
    "ALL_ENTITY_TYPES",
    "DEFAULT_LEVEL_SLA_MINUTES",
    "ApprovalDelegation",
    "ApprovalMatrix",
    "EntityType",
    "EscalateTo",
    "EscalationRules",
    "LevelSpec",
    "MatrixConditions",
    "NumericRange",
    "PolicyPack",
    "RequestContext",
    "ResolvedWorkflow",
    "WorkflowDefinition",
    "WorkflowSource",
    "conditions_from_record",
    "conditions_to_record",
    "escalation_rules_from_record",
    "escalation_rules_to_record",
    "level_from_record",
    "level_to_record",
    "levels_from_records",
]
