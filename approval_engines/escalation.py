"""
approval_engines.escalation -- Pure SLA breach detection and escalation
marking.

Responsibility:
    Decide whether an entity's current level has breached its SLA and
    produce the escalated snapshot.  Finding the person to notify is the
    service's job; this module only says *where* to look.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - A breach requires a pending entity whose instance is not already
      escalated and whose current level deadline is at or before ``now``.
    - Marking never advances, approves or rejects anything: only the
      escalation flags, timestamps, target and reason change.
    - Marking an already escalated instance is a no-op (idempotent).
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime

from approval_kernel.domain.approval import (
    ApprovableEntity,
    ApprovalLevelState,
    EntityStatus,
    LevelStatus,
)


def is_breached(entity: ApprovableEntity, now: datetime) -> bool:
    instance = entity.instance
    if entity.status != EntityStatus.PENDING or instance is None:
        return False
    if instance.is_escalated:
        return False
    current = instance.current
    if current is None or current.status != LevelStatus.PENDING:
        return False
    return current.sla_deadline is not None and current.sla_deadline <= now


def next_level_target(entity: ApprovableEntity) -> ApprovalLevelState | None:
    """Level after the current one, the ``next_level`` escalation target."""
    instance = entity.instance
    if instance is None:
        return None
    return instance.level_state(instance.current_level + 1)


def escalation_reason(entity: ApprovableEntity, now: datetime) -> str:
    instance = entity.instance
    assert instance is not None
    current = instance.current
    overdue = ""
    if current is not None and current.sla_deadline is not None:
        minutes = int((now - current.sla_deadline).total_seconds() // 60)
        overdue = f" ({minutes} minutes overdue)"
    return f"SLA breached at level {instance.current_level}{overdue}"


def mark_escalated(
    entity: ApprovableEntity,
    now: datetime,
    target_email: str | None,
    reason: str,
) -> ApprovableEntity:
    """Return ``entity`` with its current level and instance escalated."""
    instance = entity.instance
    if instance is None or instance.is_escalated:
        return entity
    current = instance.current
    if current is None:
        return entity
    level = replace(current, is_escalated=True, escalated_at=now)
    escalated = replace(
        instance.with_level(level),
        is_escalated=True,
        escalated_at=now,
        escalation_reason=reason,
        escalated_to_email=target_email,
    )
    return replace(entity, instance=escalated)
