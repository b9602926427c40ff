"""
approval_services.workflow_resolver -- Picks the workflow for a request.

Reads active matrices and workflows from the policy store and applies the
precedence in ``approval_engines.matching.select_workflow``: matching
matrix, then role-specific workflow, then the default workflow.  Raises
NoApplicableWorkflowError when none applies.
"""

from __future__ import annotations

from approval_engines.matching import select_workflow
from approval_kernel.domain.policy import RequestContext, ResolvedWorkflow
from approval_kernel.exceptions import NoApplicableWorkflowError
from approval_kernel.logging_config import get_logger
from approval_services.policy_store import PolicyStore

logger = get_logger("services.workflow_resolver")


class WorkflowResolver:
    def __init__(self, policy_store: PolicyStore) -> None:
        self._policies = policy_store

    def resolve(self, entity_type: str, context: RequestContext) -> ResolvedWorkflow:
        resolved = select_workflow(
            entity_type,
            context,
            self._policies.matrices_for(entity_type),
            self._policies.workflows_for(entity_type),
        )
        if resolved is None:
            logger.warning(
                "no_applicable_workflow",
                extra={
                    "entity_type": entity_type,
                    "requester_role": context.requester_role,
                },
            )
            raise NoApplicableWorkflowError(entity_type, context.requester_role)

        logger.info(
            "workflow_resolved",
            extra={
                "entity_type": entity_type,
                "workflow_source": resolved.source.value,
                "workflow_name": resolved.source_name,
                "level_count": len(resolved.levels),
            },
        )
        return resolved
