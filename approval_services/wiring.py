"""
approval_services.wiring -- Assemble the approval services for one session.

Every service shares the caller's Session, Clock, directory and notifier,
so one transaction covers policy reads, the entity write and finalizers.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from sqlalchemy.orm import Session

from approval_config.settings import EngineSettings
from approval_kernel.domain.clock import Clock, SystemClock
from approval_kernel.models.approvable import ApprovableMixin
from approval_services.approval_processor import ApprovalProcessor
from approval_services.approval_queries import ApprovalQueries
from approval_services.approver_resolver import ApproverResolver
from approval_services.directory import EmployeeDirectory
from approval_services.entity_store import DEFAULT_ENTITY_MODELS, EntityStoreRegistry
from approval_services.escalation_monitor import EscalationMonitor
from approval_services.finalizers import FinalizerRegistry
from approval_services.instance_builder import InstanceBuilder
from approval_services.notifications import (
    LoggingNotificationDispatcher,
    NotificationDispatcher,
)
from approval_services.policy_store import PolicyStore
from approval_services.submission_service import SubmissionService
from approval_services.workflow_resolver import WorkflowResolver


@dataclass(frozen=True)
class ApprovalServices:
    stores: EntityStoreRegistry
    policies: PolicyStore
    approvers: ApproverResolver
    workflows: WorkflowResolver
    builder: InstanceBuilder
    submission: SubmissionService
    processor: ApprovalProcessor
    escalation: EscalationMonitor
    queries: ApprovalQueries


def build_approval_services(
    session: Session,
    directory: EmployeeDirectory,
    notifier: NotificationDispatcher | None = None,
    clock: Clock | None = None,
    settings: EngineSettings | None = None,
    finalizers: FinalizerRegistry | None = None,
    models: Sequence[type[ApprovableMixin]] = DEFAULT_ENTITY_MODELS,
) -> ApprovalServices:
    clock = clock or SystemClock()
    settings = settings or EngineSettings()
    notifier = notifier or LoggingNotificationDispatcher()
    roles = settings.roles

    stores = EntityStoreRegistry.for_session(session, models)
    policies = PolicyStore(session, clock)
    approvers = ApproverResolver(
        directory, policies, hr_role=roles.hr_role, admin_role=roles.admin_role,
    )
    workflows = WorkflowResolver(policies)
    builder = InstanceBuilder(approvers, clock)
    return ApprovalServices(
        stores=stores,
        policies=policies,
        approvers=approvers,
        workflows=workflows,
        builder=builder,
        submission=SubmissionService(stores, workflows, builder, directory, notifier),
        processor=ApprovalProcessor(
            session, stores, directory, notifier, finalizers=finalizers, clock=clock,
        ),
        escalation=EscalationMonitor(
            stores, directory, notifier, clock=clock,
            hr_role=roles.hr_role, admin_role=roles.admin_role,
        ),
        queries=ApprovalQueries(stores, clock, settings.approaching_window),
    )
