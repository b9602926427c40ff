"""
Module: approval_kernel.models.policy
Responsibility: ORM persistence for workflow definitions, approval matrices
    and approval delegations.

Architecture position: Kernel > Models.  May import from db/base.py and
    domain/ only.

Invariants enforced:
    - Levels, conditions and escalation rules are stored as JSON records and
      converted to typed DTOs only through the domain converters, so there is
      one canonical level shape above this layer.
    - Matrix ``sequence`` records insertion order and breaks priority ties.
    - Delegation windows are stored as whole dates.

Failure modes:
    - ValueError from ``to_dto()`` if a stored level record names an unknown
      approver type.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from sqlalchemy import JSON, Boolean, Date, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from approval_kernel.db.base import TrackedBase
from approval_kernel.domain.policy import (
    ALL_ENTITY_TYPES,
    ApprovalDelegation,
    ApprovalMatrix,
    WorkflowDefinition,
    conditions_from_record,
    conditions_to_record,
    escalation_rules_from_record,
    escalation_rules_to_record,
    level_to_record,
    levels_from_records,
)


class WorkflowDefinitionModel(TrackedBase):
    """Persistent workflow definition."""

    __tablename__ = "approval_workflows"

    __table_args__ = (
        Index("ix_approval_workflows_lookup", "entity_type", "is_active", "is_default"),
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="", nullable=False)
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    requester_role: Mapped[str | None] = mapped_column(String(50), nullable=True)
    is_default: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    priority: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    sla_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    levels: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False)
    escalation_rules: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    def __repr__(self) -> str:
        return f"<Workflow {self.name} {self.entity_type} default={self.is_default}>"

    def to_dto(self) -> WorkflowDefinition:
        return WorkflowDefinition(
            workflow_id=self.id,
            name=self.name,
            description=self.description or "",
            entity_type=self.entity_type,
            requester_role=self.requester_role,
            is_default=self.is_default,
            is_active=self.is_active,
            priority=self.priority,
            sla_minutes=self.sla_minutes,
            levels=levels_from_records(self.levels or []),
            escalation_rules=escalation_rules_from_record(self.escalation_rules),
            updated_at=self.updated_at,
        )

    @classmethod
    def from_dto(cls, dto: WorkflowDefinition, created_by_id: str) -> WorkflowDefinitionModel:
        model = cls(
            name=dto.name,
            description=dto.description,
            entity_type=dto.entity_type,
            requester_role=dto.requester_role,
            is_default=dto.is_default,
            is_active=dto.is_active,
            priority=dto.priority,
            sla_minutes=dto.sla_minutes,
            levels=[level_to_record(lv) for lv in dto.levels],
            escalation_rules=escalation_rules_to_record(dto.escalation_rules),
            created_by_id=created_by_id,
        )
        if dto.workflow_id is not None:
            model.id = dto.workflow_id
        return model


class ApprovalMatrixModel(TrackedBase):
    """Persistent approval matrix."""

    __tablename__ = "approval_matrices"

    __table_args__ = (
        Index("ix_approval_matrices_lookup", "entity_type", "is_active", "priority"),
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    conditions: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    required_approvers: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False)
    priority: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    escalation_rules: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    sequence: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    def __repr__(self) -> str:
        return f"<Matrix {self.name} {self.entity_type} priority={self.priority}>"

    def to_dto(self) -> ApprovalMatrix:
        return ApprovalMatrix(
            matrix_id=self.id,
            name=self.name,
            entity_type=self.entity_type,
            conditions=conditions_from_record(self.conditions),
            required_approvers=levels_from_records(self.required_approvers or []),
            priority=self.priority,
            is_active=self.is_active,
            escalation_rules=escalation_rules_from_record(self.escalation_rules),
            sequence=self.sequence,
        )

    @classmethod
    def from_dto(
        cls, dto: ApprovalMatrix, created_by_id: str, sequence: int,
    ) -> ApprovalMatrixModel:
        model = cls(
            name=dto.name,
            entity_type=dto.entity_type,
            conditions=conditions_to_record(dto.conditions),
            required_approvers=[level_to_record(lv) for lv in dto.required_approvers],
            priority=dto.priority,
            is_active=dto.is_active,
            escalation_rules=escalation_rules_to_record(dto.escalation_rules),
            sequence=sequence,
            created_by_id=created_by_id,
        )
        if dto.matrix_id is not None:
            model.id = dto.matrix_id
        return model


class ApprovalDelegationModel(TrackedBase):
    """Persistent approval delegation."""

    __tablename__ = "approval_delegations"

    __table_args__ = (
        Index("ix_approval_delegations_delegator", "delegator_email", "is_active"),
    )

    delegator_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    delegator_email: Mapped[str] = mapped_column(String(255), nullable=False)
    delegate_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    delegate_email: Mapped[str] = mapped_column(String(255), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    entity_types: Mapped[list[str]] = mapped_column(JSON, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    reason: Mapped[str] = mapped_column(Text, default="", nullable=False)
    revoked_at: Mapped[datetime | None] = mapped_column(nullable=True)

    def __repr__(self) -> str:
        return (
            f"<Delegation {self.delegator_email} -> {self.delegate_email} "
            f"{self.start_date}..{self.end_date}>"
        )

    def to_dto(self) -> ApprovalDelegation:
        return ApprovalDelegation(
            delegation_id=self.id,
            delegator_id=self.delegator_id,
            delegator_email=self.delegator_email,
            delegate_id=self.delegate_id,
            delegate_email=self.delegate_email,
            start_date=self.start_date,
            end_date=self.end_date,
            entity_types=tuple(self.entity_types or (ALL_ENTITY_TYPES,)),
            is_active=self.is_active,
            reason=self.reason or "",
        )

    @classmethod
    def from_dto(cls, dto: ApprovalDelegation, created_by_id: str) -> ApprovalDelegationModel:
        model = cls(
            delegator_id=dto.delegator_id,
            delegator_email=dto.delegator_email.lower(),
            delegate_id=dto.delegate_id,
            delegate_email=dto.delegate_email.lower(),
            start_date=dto.start_date,
            end_date=dto.end_date,
            entity_types=list(dto.entity_types),
            is_active=dto.is_active,
            reason=dto.reason,
            created_by_id=created_by_id,
        )
        if dto.delegation_id is not None:
            model.id = dto.delegation_id
        return model
