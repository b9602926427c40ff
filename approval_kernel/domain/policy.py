"""
Policy domain types (``approval_kernel.domain.policy``).

Responsibility
--------------
Pure value objects for the Policy Store: workflow definitions, approval
matrices, delegations, the request context they are matched against, and
the resolved workflow handed to the instance builder.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``models/``, ``services/`` or outer layers.

Invariants enforced
-------------------
* One canonical level shape (``LevelSpec``).  ``level_from_record`` is the
  single conversion point from stored records, including the legacy
  ``steps[]`` editor shape.
* Delegation windows are whole days, both ends inclusive.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping, Sequence
from uuid import UUID

from approval_kernel.domain.approvers import (
    ApproverSpec,
    RoleBased,
    approver_from_record,
    approver_to_record,
)

DEFAULT_LEVEL_SLA_MINUTES = 1440
ALL_ENTITY_TYPES = "all"


class EntityType(str, Enum):
    """Business object categories that route through the engine."""

    LEAVE = "leave"
    EXPENSE = "expense"
    ROSTER_CHANGE = "roster_change"
    PAYROLL = "payroll"
    PROJECT = "project"
    ENCASHMENT = "encashment"
    PROFILE_UPDATE = "profile_update"
    ONBOARDING = "onboarding"


class EscalateTo(str, Enum):
    NEXT_LEVEL = "next_level"
    HR = "hr"
    ADMIN = "admin"
    SPECIFIC_USER = "specific_user"


class WorkflowSource(str, Enum):
    """Which policy record produced a resolved workflow."""

    MATRIX = "matrix"
    ROLE_WORKFLOW = "role_workflow"
    DEFAULT_WORKFLOW = "default_workflow"


# =========================================================================
# Levels and escalation
# =========================================================================


@dataclass(frozen=True)
class LevelSpec:
    """One ordered approval step of a workflow or matrix."""

    level: int
    approver: ApproverSpec
    is_required: bool = True
    can_delegate: bool = True
    sla_minutes: int = DEFAULT_LEVEL_SLA_MINUTES


@dataclass(frozen=True)
class EscalationRules:
    """What happens when a level's SLA deadline passes.

    ``auto_approve_after_minutes`` is carried for configuration fidelity
    only; the escalation monitor never auto-approves.
    """

    enabled: bool = True
    escalation_after_minutes: int = 1440
    escalate_to: EscalateTo = EscalateTo.NEXT_LEVEL
    escalate_to_email: str | None = None
    auto_approve_after_minutes: int | None = None


# =========================================================================
# Matching context and conditions
# =========================================================================


@dataclass(frozen=True)
class NumericRange:
    """Inclusive range; a missing bound is open."""

    min: Decimal | None = None
    max: Decimal | None = None

    def contains(self, value: Decimal) -> bool:
        if self.min is not None and value < self.min:
            return False
        if self.max is not None and value > self.max:
            return False
        return True


@dataclass(frozen=True)
class MatrixConditions:
    """Condition predicate of a matrix.  Empty fields are wildcards."""

    leave_types: tuple[str, ...] = ()
    amount_range: NumericRange | None = None
    number_of_days_range: NumericRange | None = None
    departments: tuple[str, ...] = ()
    designations: tuple[str, ...] = ()


@dataclass(frozen=True)
class RequestContext:
    """Attributes of a request that policies are matched against."""

    leave_type: str | None = None
    amount: Decimal | None = None
    number_of_days: Decimal | None = None
    department_id: str | None = None
    designation: str | None = None
    requester_role: str | None = None


# =========================================================================
# Policy records
# =========================================================================


@dataclass(frozen=True)
class WorkflowDefinition:
    """Named, ordered approval levels for an entity type."""

    name: str
    entity_type: str
    levels: tuple[LevelSpec, ...]
    workflow_id: UUID | None = None
    description: str = ""
    requester_role: str | None = None
    is_default: bool = False
    is_active: bool = True
    priority: int = 0
    sla_minutes: int | None = None
    escalation_rules: EscalationRules = field(default_factory=EscalationRules)
    updated_at: datetime | None = None


@dataclass(frozen=True)
class ApprovalMatrix:
    """Condition-gated override supplying required approvers directly."""

    name: str
    entity_type: str
    conditions: MatrixConditions
    required_approvers: tuple[LevelSpec, ...]
    matrix_id: UUID | None = None
    priority: int = 0
    is_active: bool = True
    escalation_rules: EscalationRules = field(default_factory=EscalationRules)
    sequence: int = 0


@dataclass(frozen=True)
class ApprovalDelegation:
    """Time-bounded substitution of one approver for another."""

    delegator_email: str
    delegate_email: str
    start_date: date
    end_date: date
    delegator_id: str | None = None
    delegate_id: str | None = None
    entity_types: tuple[str, ...] = (ALL_ENTITY_TYPES,)
    is_active: bool = True
    reason: str = ""
    delegation_id: UUID | None = None

    def is_in_effect(self, entity_type: str, as_of: datetime) -> bool:
        """Active, ``as_of`` inside the window, and entity type in scope."""
        if not self.is_active:
            return False
        day = as_of.date()
        if day < self.start_date or day > self.end_date:
            return False
        return ALL_ENTITY_TYPES in self.entity_types or entity_type in self.entity_types


@dataclass(frozen=True)
class PolicyPack:
    """A bundle of policy records installed together (seeding, imports)."""

    workflows: tuple[WorkflowDefinition, ...] = ()
    matrices: tuple[ApprovalMatrix, ...] = ()
    delegations: tuple[ApprovalDelegation, ...] = ()


@dataclass(frozen=True)
class ResolvedWorkflow:
    """The single workflow selected for a request."""

    source: WorkflowSource
    source_name: str
    levels: tuple[LevelSpec, ...]
    sla_minutes: int
    escalation_rules: EscalationRules
    source_id: UUID | None = None


# =========================================================================
# Canonical level records
# =========================================================================


def level_from_record(
    record: Mapping[str, Any],
    position: int,
    default_sla_minutes: int = DEFAULT_LEVEL_SLA_MINUTES,
) -> LevelSpec:
    """Convert one stored level record to a ``LevelSpec``.

    Accepts the canonical shape (``level``, ``approver_type``, ...), the
    camelCase shape of the legacy ``levels[]`` array, and the ``steps[]``
    shape (``order``, ``role``, ``sla.timeLimitMinutes``,
    ``permissions.canDelegate``).  ``position`` (1-based) numbers steps
    that carry no explicit level.
    """
    if "role" in record and "approver_type" not in record and "approverType" not in record:
        sla = record.get("sla") or {}
        permissions = record.get("permissions") or {}
        return LevelSpec(
            level=position,
            approver=approver_from_record({"approver_type": record["role"]}),
            is_required=True,
            can_delegate=permissions.get("canDelegate", True) is not False,
            sla_minutes=int(sla.get("timeLimitMinutes") or default_sla_minutes),
        )

    level = record.get("level")
    can_delegate = record.get("can_delegate", record.get("canDelegate", True))
    is_required = record.get("is_required", record.get("isRequired", True))
    sla_minutes = record.get("sla_minutes", record.get("slaMinutes"))
    return LevelSpec(
        level=int(level) if level is not None else position,
        approver=approver_from_record(record),
        is_required=bool(is_required) if is_required is not None else True,
        can_delegate=bool(can_delegate) if can_delegate is not None else True,
        sla_minutes=int(sla_minutes) if sla_minutes else default_sla_minutes,
    )


def levels_from_records(
    records: Sequence[Mapping[str, Any]],
    default_sla_minutes: int = DEFAULT_LEVEL_SLA_MINUTES,
) -> tuple[LevelSpec, ...]:
    """Convert stored level records, ordered by level (or step order)."""
    if records and all("order" in r for r in records):
        records = sorted(records, key=lambda r: r.get("order") or 0)
    levels = [level_from_record(r, i, default_sla_minutes) for i, r in enumerate(records, start=1)]
    return tuple(sorted(levels, key=lambda lv: lv.level))


def level_to_record(spec: LevelSpec) -> dict[str, Any]:
    record = approver_to_record(spec.approver)
    record.update(
        level=spec.level,
        is_required=spec.is_required,
        can_delegate=spec.can_delegate,
        sla_minutes=spec.sla_minutes,
    )
    return record


def describe_approver(spec: LevelSpec) -> str:
    """Short human label, e.g. ``role_based:finance``."""
    if isinstance(spec.approver, RoleBased):
        return f"role_based:{spec.approver.role}"
    return approver_to_record(spec.approver)["approver_type"]


def escalation_rules_from_record(record: Mapping[str, Any] | None) -> EscalationRules:
    """Build escalation rules from a stored record; missing keys take defaults."""
    if not record:
        return EscalationRules()
    enabled = record.get("enabled", True)
    after = record.get("escalation_after_minutes", record.get("escalationAfterMinutes"))
    target = record.get("escalate_to", record.get("escalateTo")) or EscalateTo.NEXT_LEVEL.value
    email = record.get("escalate_to_email", record.get("escalateToEmail"))
    auto = record.get("auto_approve_after_minutes", record.get("autoApproveAfterMinutes"))
    return EscalationRules(
        enabled=bool(enabled) if enabled is not None else True,
        escalation_after_minutes=int(after) if after else 1440,
        escalate_to=EscalateTo(str(target).lower()),
        escalate_to_email=str(email).lower() if email else None,
        auto_approve_after_minutes=int(auto) if auto else None,
    )


def escalation_rules_to_record(rules: EscalationRules) -> dict[str, Any]:
    return {
        "enabled": rules.enabled,
        "escalation_after_minutes": rules.escalation_after_minutes,
        "escalate_to": rules.escalate_to.value,
        "escalate_to_email": rules.escalate_to_email,
        "auto_approve_after_minutes": rules.auto_approve_after_minutes,
    }


def _range_from_record(record: Mapping[str, Any] | None) -> NumericRange | None:
    if not record:
        return None
    low, high = record.get("min"), record.get("max")
    if low is None and high is None:
        return None
    return NumericRange(
        min=Decimal(str(low)) if low is not None else None,
        max=Decimal(str(high)) if high is not None else None,
    )


def _range_to_record(value: NumericRange | None) -> dict[str, str | None] | None:
    if value is None:
        return None
    return {
        "min": str(value.min) if value.min is not None else None,
        "max": str(value.max) if value.max is not None else None,
    }


def conditions_from_record(record: Mapping[str, Any] | None) -> MatrixConditions:
    """Build matrix conditions from snake_case or camelCase keys."""
    if not record:
        return MatrixConditions()

    def _strings(*keys: str) -> tuple[str, ...]:
        for key in keys:
            if record.get(key):
                return tuple(str(v) for v in record[key])
        return ()

    return MatrixConditions(
        leave_types=_strings("leave_types", "leaveTypes", "leaveType"),
        amount_range=_range_from_record(
            record.get("amount_range") or record.get("amountRange")
        ),
        number_of_days_range=_range_from_record(
            record.get("number_of_days_range") or record.get("numberOfDaysRange")
        ),
        departments=_strings("departments", "department"),
        designations=_strings("designations", "designation"),
    )


def conditions_to_record(conditions: MatrixConditions) -> dict[str, Any]:
    return {
        "leave_types": list(conditions.leave_types),
        "amount_range": _range_to_record(conditions.amount_range),
        "number_of_days_range": _range_to_record(conditions.number_of_days_range),
        "departments": list(conditions.departments),
        "designations": list(conditions.designations),
    }
