"""
approval_services -- Package init and public API.

Responsibility:
    Stateful orchestration over the pure approval engines: policy storage,
    approver resolution, submission, decisions, escalation sweeps and
    read-only queries.  This is the only layer that holds database
    sessions or reads the clock.

Architecture position:
    Services -- stateful orchestration over engines + kernel.

    Dependency direction (enforced by tests/architecture/test_layer_boundaries.py):
        approval_services/ -> approval_engines/  (allowed)
        approval_services/ -> approval_kernel/   (allowed)
        approval_engines/  -> approval_services/ (FORBIDDEN)
        approval_kernel/   -> approval_services/ (FORBIDDEN)

Invariants enforced:
    - Services flush, never commit; the caller owns the transaction.
    - No service self-constructs its collaborators; ``wiring`` assembles them.
"""

from approval_kernel.logging_config import get_logger

logger = get_logger("services")

from approval_services.approval_processor import ApprovalProcessor
from approval_services.approval_queries import ApprovalQueries, SlaReport
from approval_services.approver_resolver import ApproverResolver
from approval_services.directory import EmployeeDirectory, InMemoryEmployeeDirectory
from approval_services.entity_store import (
    DEFAULT_ENTITY_MODELS,
    EntityStoreRegistry,
    SqlEntityStore,
)
from approval_services.escalation_monitor import EscalationMonitor, SweepResult
from approval_services.finalizers import FinalizerRegistry
from approval_services.instance_builder import InstanceBuilder
from approval_services.notifications import (
    LoggingNotificationDispatcher,
    NotificationDispatcher,
    NotificationEvent,
)
from approval_services.policy_store import PolicyStore, SeedResult
from approval_services.submission_service import SubmissionService
from approval_services.wiring import ApprovalServices, build_approval_services
from approval_services.workflow_resolver import WorkflowResolver

__all__ = [
    "DEFAULT_ENTITY_MODELS",
    "ApprovalProcessor",
    "ApprovalQueries",
    "ApprovalServices",
    "ApproverResolver",
    "EmployeeDirectory",
    "EntityStoreRegistry",
    "EscalationMonitor",
    "FinalizerRegistry",
    "InMemoryEmployeeDirectory",
    "InstanceBuilder",
    "LoggingNotificationDispatcher",
    "NotificationDispatcher",
    "NotificationEvent",
    "PolicyStore",
    "SeedResult",
    "SlaReport",
    "SqlEntityStore",
    "SubmissionService",
    "SweepResult",
    "WorkflowResolver",
    "build_approval_services",
]
