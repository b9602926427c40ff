"""
Module: approval_kernel.models.approvable
Responsibility: Column set and (de)serialisation for business entities that
    embed an approval instance.

Architecture position: Kernel > Models.  May import from db/base.py and
    domain/ only.

Invariants enforced:
    - The level array is stored as one JSON column; per-level timestamps are
      ISO-8601 UTC strings inside it.
    - ``current_level_deadline`` mirrors the SLA deadline of the current
      pending level so the escalation breach query is a plain indexed
      comparison.  It is NULL once the entity is terminal.
    - ``lock_version`` is bumped by every conditional instance write; a
      write that does not see the version it read changes nothing.

Failure modes:
    - ValueError if a stored level carries an unknown status.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, ClassVar
from uuid import UUID

from sqlalchemy import JSON, Boolean, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from approval_kernel.db.base import UTCDateTime, UUIDString
from approval_kernel.domain.approval import (
    ApprovableEntity,
    ApprovalInstance,
    ApprovalLevelState,
    EntityStatus,
    LevelStatus,
)
from approval_kernel.domain.policy import (
    RequestContext,
    WorkflowSource,
    escalation_rules_from_record,
    escalation_rules_to_record,
)


def _dt_to_json(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def _dt_from_json(value: str | None) -> datetime | None:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def level_state_to_json(state: ApprovalLevelState) -> dict[str, Any]:
    return {
        "level": state.level,
        "approver_type": state.approver_type,
        "approver_id": state.approver_id,
        "approver_email": state.approver_email,
        "approver_name": state.approver_name,
        "is_required": state.is_required,
        "status": state.status.value,
        "sla_minutes": state.sla_minutes,
        "sla_deadline": _dt_to_json(state.sla_deadline),
        "comments": state.comments,
        "approved_at": _dt_to_json(state.approved_at),
        "rejected_at": _dt_to_json(state.rejected_at),
        "is_escalated": state.is_escalated,
        "escalated_at": _dt_to_json(state.escalated_at),
        "delegated_from_id": state.delegated_from_id,
        "delegated_from_email": state.delegated_from_email,
    }


def level_state_from_json(record: dict[str, Any]) -> ApprovalLevelState:
    return ApprovalLevelState(
        level=int(record["level"]),
        approver_type=record["approver_type"],
        approver_id=record.get("approver_id"),
        approver_email=record.get("approver_email"),
        approver_name=record.get("approver_name") or "",
        is_required=record.get("is_required", True),
        status=LevelStatus(record.get("status", LevelStatus.PENDING.value)),
        sla_minutes=int(record.get("sla_minutes") or 1440),
        sla_deadline=_dt_from_json(record.get("sla_deadline")),
        comments=record.get("comments"),
        approved_at=_dt_from_json(record.get("approved_at")),
        rejected_at=_dt_from_json(record.get("rejected_at")),
        is_escalated=bool(record.get("is_escalated", False)),
        escalated_at=_dt_from_json(record.get("escalated_at")),
        delegated_from_id=record.get("delegated_from_id"),
        delegated_from_email=record.get("delegated_from_email"),
    )


class ApprovableMixin:
    """
    Columns shared by every entity that routes through the approval engine.

    Contract:
        Concrete models set ``entity_type`` and implement
        ``approval_context()``.  Everything else (loading the instance,
        computing the column values of a new instance) is provided here.
    """

    entity_type: ClassVar[str]

    requester_id: Mapped[str] = mapped_column(String(100), nullable=False)
    requester_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), default=EntityStatus.DRAFT.value, nullable=False,
    )
    approval_levels: Mapped[list[dict[str, Any]] | None] = mapped_column(JSON, nullable=True)
    current_approval_level: Mapped[int | None] = mapped_column(Integer, nullable=True)
    approval_sla_deadline: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    approval_created_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    is_escalated: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    escalated_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    escalation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    escalated_to_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    workflow_source: Mapped[str | None] = mapped_column(String(30), nullable=True)
    workflow_source_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    workflow_source_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    escalation_rules: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    rejected_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    current_level_deadline: Mapped[datetime | None] = mapped_column(
        UTCDateTime(), nullable=True, index=True,
    )
    lock_version: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    def approval_context(self) -> RequestContext:
        raise NotImplementedError

    def load_instance(self) -> ApprovalInstance | None:
        if self.approval_levels is None:
            return None
        return ApprovalInstance(
            levels=tuple(level_state_from_json(r) for r in self.approval_levels),
            current_level=self.current_approval_level or 1,
            sla_deadline=self.approval_sla_deadline,
            created_at=self.approval_created_at,
            is_escalated=self.is_escalated,
            escalated_at=self.escalated_at,
            escalation_reason=self.escalation_reason,
            escalated_to_email=self.escalated_to_email,
            source=WorkflowSource(self.workflow_source) if self.workflow_source else None,
            source_id=self.workflow_source_id,
            source_name=self.workflow_source_name or "",
            escalation_rules=escalation_rules_from_record(self.escalation_rules),
        )

    def to_entity(self) -> ApprovableEntity:
        return ApprovableEntity(
            entity_type=self.entity_type,
            entity_id=self.id,  # type: ignore[attr-defined]
            requester_id=self.requester_id,
            requester_email=self.requester_email,
            status=EntityStatus(self.status),
            instance=self.load_instance(),
            context=self.approval_context(),
            lock_version=self.lock_version,
            approved_at=self.approved_at,
            rejected_at=self.rejected_at,
            rejection_reason=self.rejection_reason,
        )


def entity_column_values(entity: ApprovableEntity) -> dict[str, Any]:
    """Column values that persist ``entity``'s status and instance.

    ``lock_version`` is not included; the writer bumps it.
    """
    instance = entity.instance
    values: dict[str, Any] = {
        "status": entity.status.value,
        "approved_at": entity.approved_at,
        "rejected_at": entity.rejected_at,
        "rejection_reason": entity.rejection_reason,
    }
    if instance is None:
        values.update(approval_levels=None, current_approval_level=None,
                      current_level_deadline=None)
        return values

    pending = entity.status == EntityStatus.PENDING
    values.update(
        approval_levels=[level_state_to_json(s) for s in instance.levels],
        current_approval_level=instance.current_level,
        approval_sla_deadline=instance.sla_deadline,
        approval_created_at=instance.created_at,
        current_level_deadline=instance.current_level_deadline if pending else None,
        is_escalated=instance.is_escalated,
        escalated_at=instance.escalated_at,
        escalation_reason=instance.escalation_reason,
        escalated_to_email=instance.escalated_to_email,
        workflow_source=instance.source.value if instance.source else None,
        workflow_source_id=instance.source_id,
        workflow_source_name=instance.source_name,
        escalation_rules=escalation_rules_to_record(instance.escalation_rules),
    )
    return values
