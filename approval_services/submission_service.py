"""
approval_services.submission_service -- Puts a draft entity into approval.

Responsibility:
    Resolve the workflow for a draft entity, build its approval instance,
    persist it with the entity moved to ``pending``, and notify the first
    approver.

Architecture position:
    Services -- orchestrates the workflow resolver, instance builder, entity
    store and notification dispatcher.  Flushes, never commits.

Invariants enforced:
    - Only draft entities without an instance can be submitted.
    - A failed resolution or build leaves the entity untouched.

Failure modes:
    - EntityNotFoundError, EntityNotSubmittableError.
    - NoApplicableWorkflowError, RequiredApproverUnresolvedError.
    - InvalidLevelTransitionError if the entity changed concurrently.
"""

from __future__ import annotations

from dataclasses import replace
from uuid import UUID

from approval_kernel.domain.approval import (
    ApprovableEntity,
    EntityStatus,
    NotificationType,
)
from approval_kernel.domain.people import DirectoryMember
from approval_kernel.domain.policy import RequestContext
from approval_kernel.exceptions import EntityNotFoundError, EntityNotSubmittableError
from approval_kernel.logging_config import LogContext, get_logger
from approval_services.directory import EmployeeDirectory
from approval_services.entity_store import EntityStoreRegistry
from approval_services.instance_builder import InstanceBuilder
from approval_services.notifications import (
    NotificationDispatcher,
    NotificationEvent,
    dispatch_safely,
)
from approval_services.workflow_resolver import WorkflowResolver

logger = get_logger("services.submission")


def requester_of(entity: ApprovableEntity, directory: EmployeeDirectory) -> DirectoryMember:
    """Directory record of the requester, or a bare stand-in if unknown."""
    member = directory.find_by_id(entity.requester_id)
    if member is None and entity.requester_email:
        member = directory.find_by_email(entity.requester_email)
    if member is None:
        logger.warning(
            "requester_not_in_directory",
            extra={"requester_id": entity.requester_id},
        )
        member = DirectoryMember(
            member_id=entity.requester_id,
            email=entity.requester_email or "",
        )
    return member


def _context_for(entity: ApprovableEntity, requester: DirectoryMember) -> RequestContext:
    context = entity.context
    return replace(
        context,
        requester_role=context.requester_role or requester.role,
        department_id=context.department_id or requester.department_id,
        designation=context.designation or requester.designation,
    )


class SubmissionService:
    def __init__(
        self,
        stores: EntityStoreRegistry,
        workflow_resolver: WorkflowResolver,
        instance_builder: InstanceBuilder,
        directory: EmployeeDirectory,
        notifier: NotificationDispatcher,
    ) -> None:
        self._stores = stores
        self._workflows = workflow_resolver
        self._builder = instance_builder
        self._directory = directory
        self._notifier = notifier

    def submit(self, entity_type: str, entity_id: UUID) -> ApprovableEntity:
        store = self._stores.get(entity_type)
        with LogContext.bind(entity_type=entity_type, entity_id=str(entity_id)):
            entity = store.get(entity_id, for_update=True)
            if entity is None:
                raise EntityNotFoundError(entity_type, str(entity_id))
            if entity.status != EntityStatus.DRAFT or entity.instance is not None:
                raise EntityNotSubmittableError(
                    entity_type, str(entity_id), entity.status.value,
                )

            requester = requester_of(entity, self._directory)
            context = _context_for(entity, requester)
            workflow = self._workflows.resolve(entity_type, context)
            instance = self._builder.build(entity_type, workflow, requester)

            saved = store.save_instance(
                replace(entity, status=EntityStatus.PENDING, instance=instance)
            )
            first = instance.current
            logger.info(
                "approval_submitted",
                extra={
                    "requester_id": entity.requester_id,
                    "workflow_source": workflow.source.value,
                    "workflow_name": workflow.source_name,
                    "level_count": len(instance.levels),
                    "first_approver": first.approver_email if first else None,
                },
            )
            if first is not None:
                dispatch_safely(self._notifier, NotificationEvent(
                    notification_type=NotificationType.APPROVAL_REQUIRED,
                    entity_type=entity_type,
                    entity_id=entity.entity_id,
                    recipient_email=first.approver_email,
                    recipient_id=first.approver_id,
                    level=first.level,
                    message=f"Approval required for {entity_type} request",
                    details={"sla_deadline": first.sla_deadline},
                ))
            return saved
