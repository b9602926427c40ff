"""
approval_services.policy_store -- Workflow, matrix and delegation storage.

Responsibility:
    Create, update, validate and look up approval policy records for one
    tenant, and install policy packs.  Everything above this layer sees
    frozen DTOs; stored records are normalised to the canonical level shape
    on the way out.

Architecture position:
    Services -- imperative shell over ``approval_kernel.models.policy``.
    Delegates validation to ``approval_engines.validation``.

Invariants enforced:
    - At most one active default workflow per entity type.
    - Definitions failing validation are never stored.
    - Matrix ``sequence`` increases with every insert, giving a stable
      tie-break for equal priorities.
    - Lookups are cached per store instance; every write clears the cache.
    - The store flushes, never commits.

Failure modes:
    - InvalidPolicyDefinitionError on a definition with validation errors.
    - DuplicateDefaultWorkflowError on a second active default.
    - PolicyNotFoundError on unknown IDs.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from approval_engines.validation import (
    PolicyValidationResult,
    validate_matrix,
    validate_workflow,
)
from approval_kernel.domain.clock import Clock, SystemClock
from approval_kernel.domain.policy import (
    ApprovalDelegation,
    ApprovalMatrix,
    PolicyPack,
    WorkflowDefinition,
)
from approval_kernel.exceptions import (
    DuplicateDefaultWorkflowError,
    InvalidPolicyDefinitionError,
    PolicyNotFoundError,
)
from approval_kernel.logging_config import get_logger
from approval_kernel.models.policy import (
    ApprovalDelegationModel,
    ApprovalMatrixModel,
    WorkflowDefinitionModel,
)

logger = get_logger("services.policy_store")


@dataclass(frozen=True)
class SeedResult:
    workflows_created: int = 0
    workflows_skipped: int = 0
    matrices_created: int = 0
    matrices_skipped: int = 0
    delegations_created: int = 0
    delegations_skipped: int = 0


def _delegation_key(delegation: ApprovalDelegation) -> tuple:
    return (
        delegation.delegator_email.lower(),
        delegation.delegate_email.lower(),
        delegation.start_date,
        delegation.end_date,
    )


class PolicyStore:
    """Policy records for one tenant session."""

    def __init__(self, session: Session, clock: Clock | None = None) -> None:
        self._session = session
        self._clock = clock or SystemClock()
        self._cache: dict[tuple[str, str], Any] = {}

    def invalidate(self) -> None:
        self._cache.clear()

    def _stamp(self, model: Any, actor_id: str, now: datetime, *, created: bool) -> None:
        if created:
            model.created_at = now
            model.created_by_id = actor_id
        model.updated_at = now
        if not created:
            model.updated_by_id = actor_id

    # ------------------------------------------------------------------
    # Workflows
    # ------------------------------------------------------------------

    def validate_workflow(self, workflow: WorkflowDefinition) -> PolicyValidationResult:
        """Dry-run validation; nothing is stored."""
        return validate_workflow(workflow)

    def _check_default(self, workflow: WorkflowDefinition, exclude_id: UUID | None = None) -> None:
        if not (workflow.is_default and workflow.is_active):
            return
        stmt = select(WorkflowDefinitionModel).where(
            WorkflowDefinitionModel.entity_type == workflow.entity_type,
            WorkflowDefinitionModel.is_default == True,  # noqa: E712
            WorkflowDefinitionModel.is_active == True,  # noqa: E712
        )
        for existing in self._session.execute(stmt).scalars():
            if existing.id != exclude_id:
                raise DuplicateDefaultWorkflowError(workflow.entity_type, str(existing.id))

    def create_workflow(
        self, workflow: WorkflowDefinition, created_by_id: str = "system",
    ) -> WorkflowDefinition:
        result = validate_workflow(workflow)
        if not result.is_valid:
            raise InvalidPolicyDefinitionError(workflow.name, result.messages())
        self._check_default(workflow)

        model = WorkflowDefinitionModel.from_dto(workflow, created_by_id=created_by_id)
        self._stamp(model, created_by_id, self._clock.now(), created=True)
        self._session.add(model)
        self._session.flush()
        self.invalidate()

        logger.info(
            "workflow_created",
            extra={
                "workflow_id": str(model.id),
                "workflow_name": model.name,
                "entity_type": model.entity_type,
                "is_default": model.is_default,
                "requester_role": model.requester_role,
                "level_count": len(workflow.levels),
                "warnings": [w.code for w in result.warnings],
            },
        )
        return model.to_dto()

    def _workflow_model(self, workflow_id: UUID) -> WorkflowDefinitionModel:
        model = self._session.get(WorkflowDefinitionModel, workflow_id)
        if model is None:
            raise PolicyNotFoundError("Workflow", str(workflow_id))
        return model

    def get_workflow(self, workflow_id: UUID) -> WorkflowDefinition:
        return self._workflow_model(workflow_id).to_dto()

    def update_workflow(
        self,
        workflow_id: UUID,
        workflow: WorkflowDefinition,
        updated_by_id: str = "system",
    ) -> WorkflowDefinition:
        """Replace a workflow's definition.  Existing instances keep theirs."""
        model = self._workflow_model(workflow_id)
        workflow = replace(workflow, workflow_id=workflow_id)
        result = validate_workflow(workflow)
        if not result.is_valid:
            raise InvalidPolicyDefinitionError(workflow.name, result.messages())
        self._check_default(workflow, exclude_id=workflow_id)

        fresh = WorkflowDefinitionModel.from_dto(workflow, created_by_id=model.created_by_id)
        for column in (
            "name", "description", "entity_type", "requester_role", "is_default",
            "is_active", "priority", "sla_minutes", "levels", "escalation_rules",
        ):
            setattr(model, column, getattr(fresh, column))
        self._stamp(model, updated_by_id, self._clock.now(), created=False)
        self._session.flush()
        self.invalidate()
        logger.info(
            "workflow_updated",
            extra={"workflow_id": str(workflow_id), "workflow_name": model.name},
        )
        return model.to_dto()

    def deactivate_workflow(self, workflow_id: UUID, updated_by_id: str = "system") -> None:
        model = self._workflow_model(workflow_id)
        model.is_active = False
        self._stamp(model, updated_by_id, self._clock.now(), created=False)
        self._session.flush()
        self.invalidate()
        logger.info("workflow_deactivated", extra={"workflow_id": str(workflow_id)})

    def workflows_for(self, entity_type: str) -> tuple[WorkflowDefinition, ...]:
        """Active workflows for an entity type, cached."""
        key = ("workflows", entity_type)
        if key not in self._cache:
            stmt = (
                select(WorkflowDefinitionModel)
                .where(
                    WorkflowDefinitionModel.entity_type == entity_type,
                    WorkflowDefinitionModel.is_active == True,  # noqa: E712
                )
                .order_by(WorkflowDefinitionModel.created_at)
            )
            self._cache[key] = tuple(
                m.to_dto() for m in self._session.execute(stmt).scalars()
            )
        return self._cache[key]

    # ------------------------------------------------------------------
    # Matrices
    # ------------------------------------------------------------------

    def create_matrix(
        self, matrix: ApprovalMatrix, created_by_id: str = "system",
    ) -> ApprovalMatrix:
        result = validate_matrix(matrix)
        if not result.is_valid:
            raise InvalidPolicyDefinitionError(matrix.name, result.messages())

        last = self._session.execute(
            select(func.max(ApprovalMatrixModel.sequence))
        ).scalar()
        model = ApprovalMatrixModel.from_dto(
            matrix, created_by_id=created_by_id, sequence=(last or 0) + 1,
        )
        self._stamp(model, created_by_id, self._clock.now(), created=True)
        self._session.add(model)
        self._session.flush()
        self.invalidate()

        logger.info(
            "matrix_created",
            extra={
                "matrix_id": str(model.id),
                "matrix_name": model.name,
                "entity_type": model.entity_type,
                "priority": model.priority,
                "sequence": model.sequence,
            },
        )
        return model.to_dto()

    def get_matrix(self, matrix_id: UUID) -> ApprovalMatrix:
        model = self._session.get(ApprovalMatrixModel, matrix_id)
        if model is None:
            raise PolicyNotFoundError("Matrix", str(matrix_id))
        return model.to_dto()

    def deactivate_matrix(self, matrix_id: UUID, updated_by_id: str = "system") -> None:
        model = self._session.get(ApprovalMatrixModel, matrix_id)
        if model is None:
            raise PolicyNotFoundError("Matrix", str(matrix_id))
        model.is_active = False
        self._stamp(model, updated_by_id, self._clock.now(), created=False)
        self._session.flush()
        self.invalidate()
        logger.info("matrix_deactivated", extra={"matrix_id": str(matrix_id)})

    def matrices_for(self, entity_type: str) -> tuple[ApprovalMatrix, ...]:
        """Active matrices for an entity type in evaluation order, cached."""
        key = ("matrices", entity_type)
        if key not in self._cache:
            stmt = (
                select(ApprovalMatrixModel)
                .where(
                    ApprovalMatrixModel.entity_type == entity_type,
                    ApprovalMatrixModel.is_active == True,  # noqa: E712
                )
                .order_by(ApprovalMatrixModel.priority.desc(), ApprovalMatrixModel.sequence)
            )
            self._cache[key] = tuple(
                m.to_dto() for m in self._session.execute(stmt).scalars()
            )
        return self._cache[key]

    # ------------------------------------------------------------------
    # Delegations
    # ------------------------------------------------------------------

    def create_delegation(
        self, delegation: ApprovalDelegation, created_by_id: str = "system",
    ) -> ApprovalDelegation:
        errors: list[str] = []
        if delegation.end_date < delegation.start_date:
            errors.append("end_date must not be before start_date")
        if delegation.delegator_email.lower() == delegation.delegate_email.lower():
            errors.append("delegator and delegate must differ")
        if not delegation.entity_types:
            errors.append("at least one entity type (or 'all') is required")
        if errors:
            raise InvalidPolicyDefinitionError(
                f"delegation {delegation.delegator_email}", errors,
            )

        model = ApprovalDelegationModel.from_dto(delegation, created_by_id=created_by_id)
        self._stamp(model, created_by_id, self._clock.now(), created=True)
        self._session.add(model)
        self._session.flush()
        self.invalidate()

        logger.info(
            "delegation_created",
            extra={
                "delegation_id": str(model.id),
                "delegator_email": model.delegator_email,
                "delegate_email": model.delegate_email,
                "start_date": model.start_date,
                "end_date": model.end_date,
                "entity_types": list(model.entity_types),
            },
        )
        return model.to_dto()

    def revoke_delegation(
        self, delegation_id: UUID, revoked_by_id: str = "system",
    ) -> ApprovalDelegation:
        model = self._session.get(ApprovalDelegationModel, delegation_id)
        if model is None:
            raise PolicyNotFoundError("Delegation", str(delegation_id))
        now = self._clock.now()
        model.is_active = False
        model.revoked_at = now
        self._stamp(model, revoked_by_id, now, created=False)
        self._session.flush()
        self.invalidate()
        logger.info(
            "delegation_revoked",
            extra={"delegation_id": str(delegation_id), "revoked_by": revoked_by_id},
        )
        return model.to_dto()

    def list_delegations(
        self,
        delegator_email: str | None = None,
        active_only: bool = True,
    ) -> tuple[ApprovalDelegation, ...]:
        key = ("delegations", f"{delegator_email or '*'}:{active_only}")
        if key not in self._cache:
            stmt = select(ApprovalDelegationModel).order_by(
                ApprovalDelegationModel.created_at, ApprovalDelegationModel.start_date,
            )
            if delegator_email is not None:
                stmt = stmt.where(
                    ApprovalDelegationModel.delegator_email == delegator_email.lower()
                )
            if active_only:
                stmt = stmt.where(ApprovalDelegationModel.is_active == True)  # noqa: E712
            self._cache[key] = tuple(
                m.to_dto() for m in self._session.execute(stmt).scalars()
            )
        return self._cache[key]

    def find_active_delegation(
        self,
        delegator_email: str | None,
        delegator_id: str | None,
        entity_type: str,
        as_of: datetime,
    ) -> ApprovalDelegation | None:
        """The first delegation in effect for this approver, if any."""
        for delegation in self.list_delegations(active_only=True):
            by_email = (
                delegator_email is not None
                and delegation.delegator_email.lower() == delegator_email.lower()
            )
            by_id = (
                delegator_id is not None
                and delegation.delegator_id is not None
                and delegation.delegator_id == delegator_id
            )
            if (by_email or by_id) and delegation.is_in_effect(entity_type, as_of):
                return delegation
        return None

    # ------------------------------------------------------------------
    # Packs
    # ------------------------------------------------------------------

    def seed(self, pack: PolicyPack, created_by_id: str = "seed") -> SeedResult:
        """Install a policy pack.  Records whose name already exists for the
        same entity type are skipped, as are delegations with the same
        delegator, delegate and window, so seeding is repeatable."""
        existing_workflows = {
            (m.entity_type, m.name)
            for m in self._session.execute(select(WorkflowDefinitionModel)).scalars()
        }
        existing_matrices = {
            (m.entity_type, m.name)
            for m in self._session.execute(select(ApprovalMatrixModel)).scalars()
        }
        existing_delegations = {
            _delegation_key(m.to_dto())
            for m in self._session.execute(select(ApprovalDelegationModel)).scalars()
        }

        wf_created = wf_skipped = mx_created = mx_skipped = dl_created = dl_skipped = 0
        for workflow in pack.workflows:
            if (workflow.entity_type, workflow.name) in existing_workflows:
                wf_skipped += 1
                continue
            self.create_workflow(workflow, created_by_id=created_by_id)
            wf_created += 1
        for matrix in pack.matrices:
            if (matrix.entity_type, matrix.name) in existing_matrices:
                mx_skipped += 1
                continue
            self.create_matrix(matrix, created_by_id=created_by_id)
            mx_created += 1
        for delegation in pack.delegations:
            key = _delegation_key(delegation)
            if key in existing_delegations:
                dl_skipped += 1
                continue
            self.create_delegation(delegation, created_by_id=created_by_id)
            existing_delegations.add(key)
            dl_created += 1

        result = SeedResult(
            workflows_created=wf_created,
            workflows_skipped=wf_skipped,
            matrices_created=mx_created,
            matrices_skipped=mx_skipped,
            delegations_created=dl_created,
            delegations_skipped=dl_skipped,
        )
        logger.info("policy_pack_seeded", extra=vars(result))
        return result
