"""
approval_engines.validation -- Pure policy definition validation.

Responsibility:
    Check a workflow or matrix definition before it is stored, returning
    machine-readable errors and warnings.  Used both as a dry run and as
    the gate on create.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - A valid definition has a name, at least one level, contiguous level
      numbers starting at 1, positive SLAs and at least one required level.
    - Pinned approver variants carry their pin.
    - ``specific_user`` escalation carries an email.

Failure modes:
    - Never raises; callers decide what an invalid result means.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Sequence

from approval_kernel.domain.approvers import RoleBased, SpecificUser
from approval_kernel.domain.policy import (
    ApprovalMatrix,
    EscalateTo,
    EscalationRules,
    LevelSpec,
    NumericRange,
    WorkflowDefinition,
)

NAME_MAX_LENGTH = 50
DESCRIPTION_MAX_LENGTH = 200


@dataclass(frozen=True)
class ValidationIssue:
    """One validation finding with a machine-readable code."""

    code: str
    message: str
    level: int | None = None
    details: dict[str, Any] | None = None


@dataclass(frozen=True)
class PolicyValidationResult:
    errors: tuple[ValidationIssue, ...] = field(default_factory=tuple)
    warnings: tuple[ValidationIssue, ...] = field(default_factory=tuple)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def __bool__(self) -> bool:
        return self.is_valid

    def messages(self) -> list[str]:
        return [e.message for e in self.errors]


def _validate_name(name: str, errors: list[ValidationIssue]) -> None:
    name = (name or "").strip()
    if not name:
        errors.append(ValidationIssue("NAME_REQUIRED", "Name is required."))
    elif len(name) > NAME_MAX_LENGTH:
        errors.append(ValidationIssue(
            "NAME_TOO_LONG",
            f"Name must be {NAME_MAX_LENGTH} characters or less.",
            details={"limit": NAME_MAX_LENGTH},
        ))


def _validate_levels(
    levels: Sequence[LevelSpec],
    errors: list[ValidationIssue],
    warnings: list[ValidationIssue],
) -> None:
    if not levels:
        errors.append(ValidationIssue(
            "LEVELS_REQUIRED", "At least one approval level is required.",
        ))
        return

    numbers = sorted(lv.level for lv in levels)
    if numbers != list(range(1, len(levels) + 1)):
        errors.append(ValidationIssue(
            "LEVELS_NOT_CONTIGUOUS",
            f"Levels must be numbered 1..{len(levels)} without gaps, got {numbers}.",
        ))

    if not any(lv.is_required for lv in levels):
        errors.append(ValidationIssue(
            "REQUIRED_LEVEL_MISSING", "At least one level must be required.",
        ))

    previous: LevelSpec | None = None
    for lv in sorted(levels, key=lambda x: x.level):
        if lv.sla_minutes <= 0:
            errors.append(ValidationIssue(
                "SLA_NOT_POSITIVE",
                f"Level {lv.level}: SLA minutes must be positive.",
                level=lv.level,
            ))
        approver = lv.approver
        if isinstance(approver, SpecificUser) and not (
            approver.approver_id or approver.approver_email
        ):
            errors.append(ValidationIssue(
                "APPROVER_PIN_MISSING",
                f"Level {lv.level}: specific_user needs an approver id or email.",
                level=lv.level,
            ))
        if isinstance(approver, RoleBased) and not approver.role:
            errors.append(ValidationIssue(
                "APPROVER_ROLE_MISSING",
                f"Level {lv.level}: role_based needs an approver role.",
                level=lv.level,
            ))
        if previous is not None and previous.approver == approver:
            warnings.append(ValidationIssue(
                "REPEATED_APPROVER",
                f"Level {lv.level} repeats the approver of level {previous.level}.",
                level=lv.level,
            ))
        previous = lv


def _validate_escalation(
    rules: EscalationRules,
    errors: list[ValidationIssue],
    warnings: list[ValidationIssue],
) -> None:
    if rules.escalate_to == EscalateTo.SPECIFIC_USER and not rules.escalate_to_email:
        errors.append(ValidationIssue(
            "ESCALATION_EMAIL_REQUIRED",
            "Escalation to specific_user requires escalate_to_email.",
        ))
    if rules.escalation_after_minutes <= 0:
        errors.append(ValidationIssue(
            "ESCALATION_DELAY_NOT_POSITIVE",
            "escalation_after_minutes must be positive.",
        ))
    if rules.auto_approve_after_minutes is not None:
        warnings.append(ValidationIssue(
            "AUTO_APPROVE_NOT_APPLIED",
            "auto_approve_after_minutes is stored but never triggers an approval.",
        ))


def validate_workflow(workflow: WorkflowDefinition) -> PolicyValidationResult:
    errors: list[ValidationIssue] = []
    warnings: list[ValidationIssue] = []

    _validate_name(workflow.name, errors)
    if len(workflow.description or "") > DESCRIPTION_MAX_LENGTH:
        errors.append(ValidationIssue(
            "DESCRIPTION_TOO_LONG",
            f"Description must be {DESCRIPTION_MAX_LENGTH} characters or less.",
        ))
    if not workflow.entity_type:
        errors.append(ValidationIssue("ENTITY_TYPE_REQUIRED", "Entity type is required."))
    if workflow.sla_minutes is not None and workflow.sla_minutes <= 0:
        errors.append(ValidationIssue(
            "SLA_NOT_POSITIVE", "Workflow SLA minutes must be positive.",
        ))
    if workflow.is_default and workflow.requester_role:
        warnings.append(ValidationIssue(
            "DEFAULT_WITH_ROLE",
            "A default workflow ignores its requester role during selection.",
        ))

    _validate_levels(workflow.levels, errors, warnings)
    _validate_escalation(workflow.escalation_rules, errors, warnings)
    return PolicyValidationResult(errors=tuple(errors), warnings=tuple(warnings))


def _validate_range(name: str, value: NumericRange | None, errors: list[ValidationIssue]) -> None:
    if value is None or value.min is None or value.max is None:
        return
    if value.min > value.max:
        errors.append(ValidationIssue(
            "RANGE_INVERTED", f"{name}: min {value.min} exceeds max {value.max}.",
        ))


def validate_matrix(matrix: ApprovalMatrix) -> PolicyValidationResult:
    errors: list[ValidationIssue] = []
    warnings: list[ValidationIssue] = []

    _validate_name(matrix.name, errors)
    if not matrix.entity_type:
        errors.append(ValidationIssue("ENTITY_TYPE_REQUIRED", "Entity type is required."))
    _validate_range("amount_range", matrix.conditions.amount_range, errors)
    _validate_range("number_of_days_range", matrix.conditions.number_of_days_range, errors)
    _validate_levels(matrix.required_approvers, errors, warnings)
    _validate_escalation(matrix.escalation_rules, errors, warnings)
    return PolicyValidationResult(errors=tuple(errors), warnings=tuple(warnings))
