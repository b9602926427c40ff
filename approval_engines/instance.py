"""
approval_engines.instance -- Pure approval instance construction and
state machine.

Responsibility:
    Build an approval instance from a resolved workflow and its resolved
    approvers, and apply an approve/reject decision to an entity snapshot,
    producing a new snapshot plus what the caller must do next.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import approval_kernel/domain/ types and exceptions.

Invariants enforced:
    - Levels are numbered contiguously from 1.  Optional levels without an
      approver are omitted and later levels renumbered; a required level
      without an approver fails the whole build.
    - Each level's ``sla_deadline`` is exactly ``now + sla_minutes``.
    - Only the pending ``current_level`` can be acted upon, and only by its
      resolved approver (never by the requester).
    - Approving the last required level finalizes the entity as approved;
      any other approval advances ``current_level`` by exactly one.
    - Rejection finalizes the entity immediately; later levels are never
      touched.
    - Purity: time is passed in; no clock access, no I/O.

Failure modes:
    - RequiredApproverUnresolvedError from ``build_instance``.
    - InvalidLevelTransitionError, UnauthorizedApproverError and
      SelfApprovalError from ``apply_decision``.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Sequence

from approval_kernel.domain.approval import (
    LEVEL_TRANSITIONS,
    ApprovableEntity,
    ApprovalAction,
    ApprovalInstance,
    ApprovalLevelState,
    EntityStatus,
    LevelStatus,
)
from approval_kernel.domain.approvers import approver_type_of
from approval_kernel.domain.policy import LevelSpec, ResolvedWorkflow
from approval_kernel.exceptions import (
    InvalidLevelTransitionError,
    RequiredApproverUnresolvedError,
    SelfApprovalError,
    UnauthorizedApproverError,
)

from approval_engines.tracer import traced_engine


@dataclass(frozen=True)
class ResolvedApprover:
    """Concrete person chosen for a level, after delegation."""

    approver_id: str | None
    approver_email: str | None
    approver_name: str = ""
    delegated_from_id: str | None = None
    delegated_from_email: str | None = None


@dataclass(frozen=True)
class ResolvedLevel:
    spec: LevelSpec
    approver: ResolvedApprover | None


@dataclass(frozen=True)
class DecisionOutcome:
    """Result of applying a decision.

    ``next_level`` is set when the instance advanced; ``finalized`` when
    the entity reached a terminal status.
    """

    entity: ApprovableEntity
    decided_level: ApprovalLevelState
    finalized: bool
    next_level: ApprovalLevelState | None = None


@traced_engine("instance_builder", "1.0")
def build_instance(
    workflow: ResolvedWorkflow,
    resolved_levels: Sequence[ResolvedLevel],
    requester_id: str,
    now: datetime,
) -> ApprovalInstance:
    """Construct a fresh instance with every level pending."""
    states: list[ApprovalLevelState] = []
    for resolved in sorted(resolved_levels, key=lambda r: r.spec.level):
        spec = resolved.spec
        approver = resolved.approver
        if approver is None:
            if spec.is_required:
                raise RequiredApproverUnresolvedError(
                    spec.level, approver_type_of(spec.approver).value, requester_id,
                )
            continue
        states.append(
            ApprovalLevelState(
                level=len(states) + 1,
                approver_type=approver_type_of(spec.approver).value,
                approver_id=approver.approver_id,
                approver_email=approver.approver_email,
                approver_name=approver.approver_name,
                is_required=spec.is_required,
                status=LevelStatus.PENDING,
                sla_minutes=spec.sla_minutes,
                sla_deadline=now + timedelta(minutes=spec.sla_minutes),
                delegated_from_id=approver.delegated_from_id,
                delegated_from_email=approver.delegated_from_email,
            )
        )

    if not states:
        first = workflow.levels[0] if workflow.levels else None
        raise RequiredApproverUnresolvedError(
            first.level if first else 1,
            approver_type_of(first.approver).value if first else "none",
            requester_id,
        )

    return ApprovalInstance(
        levels=tuple(states),
        current_level=1,
        sla_deadline=now + timedelta(minutes=workflow.sla_minutes),
        created_at=now,
        source=workflow.source,
        source_id=workflow.source_id,
        source_name=workflow.source_name,
        escalation_rules=workflow.escalation_rules,
    )


def has_later_required_level(instance: ApprovalInstance, level: int) -> bool:
    return any(s.level > level and s.is_required for s in instance.levels)


def authorize_actor(
    entity: ApprovableEntity,
    state: ApprovalLevelState,
    actor_id: str,
    actor_email: str | None = None,
) -> None:
    """Raise unless the actor is the level's resolved approver."""
    entity_id = str(entity.entity_id)
    is_requester = actor_id == entity.requester_id or (
        actor_email is not None
        and entity.requester_email is not None
        and actor_email.lower() == entity.requester_email.lower()
    )
    if is_requester:
        raise SelfApprovalError(entity_id, state.level, actor_id)
    if not state.is_actor(actor_id, actor_email):
        raise UnauthorizedApproverError(entity_id, state.level, actor_id)


def current_pending_level(entity: ApprovableEntity, level: int) -> ApprovalLevelState:
    """Return the level state if it may be acted on right now."""
    entity_id = str(entity.entity_id)
    instance = entity.instance
    if instance is None or entity.status != EntityStatus.PENDING:
        raise InvalidLevelTransitionError(
            entity_id, level, f"entity is {entity.status.value}, not pending",
        )
    state = instance.level_state(level)
    if state is None:
        raise InvalidLevelTransitionError(entity_id, level, "no such level")
    if level != instance.current_level:
        raise InvalidLevelTransitionError(
            entity_id, level, f"current level is {instance.current_level}",
        )
    if state.status != LevelStatus.PENDING:
        raise InvalidLevelTransitionError(
            entity_id, level, f"level is already {state.status.value}",
        )
    return state


@traced_engine("decision", "1.0")
def apply_decision(
    entity: ApprovableEntity,
    level: int,
    actor_id: str,
    action: ApprovalAction | str,
    now: datetime,
    comments: str | None = None,
    actor_email: str | None = None,
) -> DecisionOutcome:
    """Validate and apply an approve/reject decision.

    The input snapshot is not modified.  The returned entity carries the
    same ``lock_version`` it was read with; the writer checks and bumps it.
    """
    action = ApprovalAction(action)
    state = current_pending_level(entity, level)
    authorize_actor(entity, state, actor_id, actor_email)
    instance = entity.instance
    assert instance is not None

    target = LevelStatus.APPROVED if action == ApprovalAction.APPROVE else LevelStatus.REJECTED
    if target not in LEVEL_TRANSITIONS[state.status]:
        raise InvalidLevelTransitionError(
            str(entity.entity_id), level,
            f"cannot move from {state.status.value} to {target.value}",
        )

    if action == ApprovalAction.REJECT:
        decided = replace(state, status=LevelStatus.REJECTED, rejected_at=now, comments=comments)
        updated = replace(
            entity,
            status=EntityStatus.REJECTED,
            instance=instance.with_level(decided),
            rejected_at=now,
            rejection_reason=comments,
        )
        return DecisionOutcome(entity=updated, decided_level=decided, finalized=True)

    decided = replace(state, status=LevelStatus.APPROVED, approved_at=now, comments=comments)
    instance = instance.with_level(decided)

    if not has_later_required_level(instance, level):
        updated = replace(
            entity,
            status=EntityStatus.APPROVED,
            instance=instance,
            approved_at=now,
        )
        return DecisionOutcome(entity=updated, decided_level=decided, finalized=True)

    instance = replace(instance, current_level=level + 1, is_escalated=False)
    updated = replace(entity, instance=instance)
    return DecisionOutcome(
        entity=updated,
        decided_level=decided,
        finalized=False,
        next_level=instance.current,
    )
