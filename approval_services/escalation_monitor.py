"""
approval_services.escalation_monitor -- SLA breach sweep.

Responsibility:
    Find pending entities whose current level is past its SLA deadline and
    not yet escalated, mark them escalated, resolve and notify the
    escalation target, and record why.

Architecture position:
    Services -- runs outside any request, on the batch scheduler or from
    ``scripts/trigger_escalation.py``.  Flushes, never commits.

Invariants enforced:
    - Escalation never advances, approves or rejects a level.
    - Idempotent per level: an escalated instance is excluded from the
      breach query until it advances to a new level.
    - Entities whose escalation rules are disabled are skipped.
    - One entity's failure is logged and collected; the sweep continues.
    - An unresolvable target still marks the breach (no notification), so
      the same breach is not re-examined on every sweep.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from approval_engines.escalation import (
    escalation_reason,
    is_breached,
    mark_escalated,
    next_level_target,
)
from approval_kernel.domain.approval import ApprovableEntity, NotificationType
from approval_kernel.domain.clock import Clock, SystemClock
from approval_kernel.domain.policy import EscalateTo
from approval_kernel.exceptions import EscalationTargetUnresolvedError
from approval_kernel.logging_config import LogContext, get_logger
from approval_services.directory import EmployeeDirectory
from approval_services.entity_store import EntityStore, EntityStoreRegistry
from approval_services.notifications import (
    NotificationDispatcher,
    NotificationEvent,
    dispatch_safely,
)

logger = get_logger("services.escalation_monitor")


@dataclass(frozen=True)
class EscalationFailure:
    entity_type: str
    entity_id: str
    error: str
    error_code: str | None = None


@dataclass(frozen=True)
class SweepResult:
    checked: int = 0
    escalated: int = 0
    skipped: int = 0
    errors: tuple[EscalationFailure, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {
            "checked": self.checked,
            "escalated": self.escalated,
            "skipped": self.skipped,
            "errors": [vars(e) for e in self.errors],
        }


@dataclass(frozen=True)
class EscalationTarget:
    email: str | None
    member_id: str | None = None
    display_name: str = ""


class EscalationMonitor:
    def __init__(
        self,
        stores: EntityStoreRegistry,
        directory: EmployeeDirectory,
        notifier: NotificationDispatcher,
        clock: Clock | None = None,
        hr_role: str = "hr",
        admin_role: str = "admin",
    ) -> None:
        self._stores = stores
        self._directory = directory
        self._notifier = notifier
        self._clock = clock or SystemClock()
        self._hr_role = hr_role
        self._admin_role = admin_role

    def resolve_target(self, entity: ApprovableEntity) -> EscalationTarget:
        instance = entity.instance
        assert instance is not None
        rules = instance.escalation_rules
        match rules.escalate_to:
            case EscalateTo.NEXT_LEVEL:
                state = next_level_target(entity)
                if state is not None and state.approver_email:
                    return EscalationTarget(
                        state.approver_email, state.approver_id, state.approver_name,
                    )
            case EscalateTo.HR | EscalateTo.ADMIN:
                role = self._hr_role if rules.escalate_to == EscalateTo.HR else self._admin_role
                member = self._directory.find_by_role(role)
                if member is not None:
                    return EscalationTarget(
                        member.email.lower(), member.member_id, member.display_name,
                    )
            case EscalateTo.SPECIFIC_USER:
                if rules.escalate_to_email:
                    member = self._directory.find_by_email(rules.escalate_to_email)
                    if member is not None:
                        return EscalationTarget(
                            member.email.lower(), member.member_id, member.display_name,
                        )
                    return EscalationTarget(rules.escalate_to_email)
        raise EscalationTargetUnresolvedError(str(entity.entity_id), rules.escalate_to.value)

    def sweep(self) -> SweepResult:
        """Escalate every breached entity across all registered stores."""
        now = self._clock.now()
        checked = escalated = skipped = 0
        errors: list[EscalationFailure] = []

        for store in self._stores.stores():
            for entity in store.find_breached(now):
                checked += 1
                with LogContext.bind(
                    entity_type=entity.entity_type, entity_id=str(entity.entity_id),
                ):
                    try:
                        outcome = self._escalate(store, entity, now)
                    except Exception as exc:
                        logger.error(
                            "escalation_failed",
                            extra={"error_code": getattr(exc, "code", None)},
                            exc_info=True,
                        )
                        errors.append(EscalationFailure(
                            entity_type=entity.entity_type,
                            entity_id=str(entity.entity_id),
                            error=str(exc),
                            error_code=getattr(exc, "code", None),
                        ))
                        continue
                if outcome:
                    escalated += 1
                else:
                    skipped += 1

        result = SweepResult(
            checked=checked, escalated=escalated, skipped=skipped, errors=tuple(errors),
        )
        logger.info(
            "escalation_sweep_completed",
            extra={
                "checked": checked,
                "escalated": escalated,
                "skipped": skipped,
                "error_count": len(errors),
            },
        )
        return result

    def _escalate(self, store: EntityStore, entity: ApprovableEntity, now: datetime) -> bool:
        instance = entity.instance
        if instance is None or not instance.escalation_rules.enabled:
            logger.debug("escalation_disabled")
            return False
        if not is_breached(entity, now):
            return False

        rules = instance.escalation_rules
        try:
            target: EscalationTarget | None = self.resolve_target(entity)
        except EscalationTargetUnresolvedError:
            logger.warning("escalation_target_unresolved", exc_info=True)
            target = None

        reason = escalation_reason(entity, now)
        if target is None:
            reason = f"{reason}; no {rules.escalate_to.value} target available"
        else:
            reason = f"{reason}; escalated to {target.display_name or target.email}"

        updated = mark_escalated(
            entity, now, target.email if target else None, reason,
        )
        saved = store.save_instance(updated)
        assert saved.instance is not None
        logger.info(
            "approval_escalated",
            extra={
                "approval_level": saved.instance.current_level,
                "escalate_to": rules.escalate_to.value,
                "target_email": target.email if target else None,
            },
        )

        if target is not None:
            dispatch_safely(self._notifier, NotificationEvent(
                notification_type=NotificationType.SLA_ESCALATION,
                entity_type=saved.entity_type,
                entity_id=saved.entity_id,
                recipient_email=target.email,
                recipient_id=target.member_id,
                level=saved.instance.current_level,
                message=saved.instance.escalation_reason or reason,
            ))
        return True
