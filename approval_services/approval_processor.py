"""
approval_services.approval_processor -- Approve/reject actions.

Responsibility:
    Apply one approver decision to an entity: validate the level and the
    actor, record the decision, advance or finalize, write the result back
    conditionally, run the domain finalizer on terminal approval, and
    notify whoever is next.

Architecture position:
    Services -- imperative shell around ``approval_engines.instance``.
    Flushes, never commits; the caller owns the transaction.

Invariants enforced:
    - Read-validate-mutate-write under a row lock with a compare-and-set
      on ``lock_version``; a lost race raises and changes nothing.
    - Unauthorized actors never mutate the entity and are logged as a
      security event.
    - The finalizer runs exactly once, after the conditional write
      succeeded.
    - Notification failures never undo a recorded decision.

Failure modes:
    - UnknownEntityTypeError, EntityNotFoundError.
    - InvalidLevelTransitionError (not pending, not current, stale write).
    - UnauthorizedApproverError, SelfApprovalError.
"""

from __future__ import annotations

from dataclasses import replace
from uuid import UUID

from sqlalchemy.orm import Session

from approval_engines.instance import DecisionOutcome, apply_decision
from approval_kernel.domain.approval import (
    ApprovableEntity,
    ApprovalAction,
    EntityStatus,
    NotificationType,
)
from approval_kernel.domain.clock import Clock, SystemClock
from approval_kernel.exceptions import EntityNotFoundError, UnauthorizedApproverError
from approval_kernel.logging_config import LogContext, get_logger
from approval_services.directory import EmployeeDirectory
from approval_services.entity_store import EntityStoreRegistry
from approval_services.finalizers import FinalizerRegistry
from approval_services.notifications import (
    NotificationDispatcher,
    NotificationEvent,
    dispatch_safely,
)

logger = get_logger("services.approval_processor")


class ApprovalProcessor:
    """Records approver decisions on approvable entities."""

    def __init__(
        self,
        session: Session,
        stores: EntityStoreRegistry,
        directory: EmployeeDirectory,
        notifier: NotificationDispatcher,
        finalizers: FinalizerRegistry | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._session = session
        self._stores = stores
        self._directory = directory
        self._notifier = notifier
        self._finalizers = finalizers or FinalizerRegistry()
        self._clock = clock or SystemClock()

    def process_approval(
        self,
        entity_type: str,
        entity_id: UUID,
        level: int,
        actor_id: str,
        action: ApprovalAction | str,
        comments: str | None = None,
    ) -> DecisionOutcome:
        """Approve or reject ``level`` of an entity on behalf of ``actor_id``.

        Returns:
            DecisionOutcome whose ``entity`` is the persisted snapshot.
        """
        action = ApprovalAction(action)
        store = self._stores.get(entity_type)
        with LogContext.bind(
            entity_type=entity_type, entity_id=str(entity_id), actor_id=actor_id,
        ):
            entity = store.get(entity_id, for_update=True)
            if entity is None:
                raise EntityNotFoundError(entity_type, str(entity_id))

            actor = self._directory.find_by_id(actor_id)
            actor_email = actor.email if actor is not None else None
            try:
                outcome = apply_decision(
                    entity, level, actor_id, action, self._clock.now(),
                    comments=comments, actor_email=actor_email,
                )
            except UnauthorizedApproverError as exc:
                current = entity.instance.level_state(level) if entity.instance else None
                logger.warning(
                    "unauthorized_approval_attempt",
                    extra={
                        "security_event": True,
                        "error_code": exc.code,
                        "approval_level": level,
                        "action": action.value,
                        "expected_approver": current.approver_email if current else None,
                    },
                )
                raise

            saved = store.save_instance(outcome.entity)
            outcome = replace(outcome, entity=saved)

            logger.info(
                "approval_decision_recorded",
                extra={
                    "approval_level": level,
                    "action": action.value,
                    "entity_status": saved.status.value,
                    "finalized": outcome.finalized,
                    "next_level": outcome.next_level.level if outcome.next_level else None,
                },
            )

            if saved.status == EntityStatus.APPROVED:
                self._finalizers.finalize(saved, self._session)
            self._notify(saved, outcome)
            return outcome

    def _notify(self, entity: ApprovableEntity, outcome: DecisionOutcome) -> None:
        if outcome.next_level is not None:
            nxt = outcome.next_level
            dispatch_safely(self._notifier, NotificationEvent(
                notification_type=NotificationType.APPROVAL_REQUIRED,
                entity_type=entity.entity_type,
                entity_id=entity.entity_id,
                recipient_email=nxt.approver_email,
                recipient_id=nxt.approver_id,
                level=nxt.level,
                message=f"Approval required for {entity.entity_type} request",
                details={"sla_deadline": nxt.sla_deadline},
            ))
            return

        if entity.status == EntityStatus.APPROVED:
            notification_type = NotificationType.REQUEST_APPROVED
            message = f"Your {entity.entity_type} request was approved"
        else:
            notification_type = NotificationType.REQUEST_REJECTED
            message = f"Your {entity.entity_type} request was rejected"
        dispatch_safely(self._notifier, NotificationEvent(
            notification_type=notification_type,
            entity_type=entity.entity_type,
            entity_id=entity.entity_id,
            recipient_email=entity.requester_email,
            recipient_id=entity.requester_id,
            level=outcome.decided_level.level,
            message=message,
            details={"comments": outcome.decided_level.comments},
        ))
