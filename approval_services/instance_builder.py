"""
approval_services.instance_builder -- Materialises approval instances.

Responsibility:
    Resolve every level of a resolved workflow to a concrete approver and
    hand the result to ``approval_engines.instance.build_instance`` with
    the current time from the injected clock.

Failure modes:
    - RequiredApproverUnresolvedError when a required level has nobody.
"""

from __future__ import annotations

from approval_engines.instance import build_instance
from approval_kernel.domain.approval import ApprovalInstance
from approval_kernel.domain.clock import Clock, SystemClock
from approval_kernel.domain.people import DirectoryMember
from approval_kernel.domain.policy import ResolvedWorkflow
from approval_kernel.exceptions import RequiredApproverUnresolvedError
from approval_kernel.logging_config import get_logger
from approval_services.approver_resolver import ApproverResolver

logger = get_logger("services.instance_builder")


class InstanceBuilder:
    def __init__(self, resolver: ApproverResolver, clock: Clock | None = None) -> None:
        self._resolver = resolver
        self._clock = clock or SystemClock()

    def build(
        self,
        entity_type: str,
        workflow: ResolvedWorkflow,
        requester: DirectoryMember,
    ) -> ApprovalInstance:
        now = self._clock.now()
        resolved_levels = self._resolver.resolve_levels(
            workflow.levels, requester, entity_type, now,
        )
        try:
            instance = build_instance(workflow, resolved_levels, requester.member_id, now)
        except RequiredApproverUnresolvedError:
            logger.warning(
                "approval_instance_unresolvable",
                extra={
                    "entity_type": entity_type,
                    "workflow_name": workflow.source_name,
                    "requester_id": requester.member_id,
                },
                exc_info=True,
            )
            raise

        logger.info(
            "approval_instance_built",
            extra={
                "entity_type": entity_type,
                "workflow_source": workflow.source.value,
                "workflow_name": workflow.source_name,
                "level_count": len(instance.levels),
                "omitted_levels": len(workflow.levels) - len(instance.levels),
                "sla_deadline": instance.sla_deadline,
            },
        )
        return instance
