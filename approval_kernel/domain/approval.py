"""
Approval instance domain types (``approval_kernel.domain.approval``).

Responsibility
--------------
Pure value objects for a live approval: the per-level state, the instance
embedded in a business entity, and the entity snapshot the engines and
services pass around.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  May import
only from ``domain/policy`` and ``domain/approvers``.

Invariants enforced
-------------------
* ``LEVEL_TRANSITIONS`` defines the only valid level status transitions.
  Terminal level states have no outgoing edges.
* ``ENTITY_TRANSITIONS`` defines the entity status lifecycle; ``approved``
  and ``rejected`` are terminal.
* Instances are immutable: every mutation produces a new instance via
  ``dataclasses.replace``, so a loaded snapshot is never changed in place.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from uuid import UUID

from approval_kernel.domain.policy import (
    EscalationRules,
    RequestContext,
    WorkflowSource,
)


# =========================================================================
# Status lifecycles
# =========================================================================


class LevelStatus(str, Enum):
    """Status of a single level within an instance.

    ``DELEGATED`` is part of the persisted vocabulary but the engine never
    produces it: delegation substitutes the approver at build time and the
    level stays ``PENDING``.
    """

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    DELEGATED = "delegated"


LEVEL_TRANSITIONS: dict[LevelStatus, frozenset[LevelStatus]] = {
    LevelStatus.PENDING: frozenset({LevelStatus.APPROVED, LevelStatus.REJECTED}),
    LevelStatus.APPROVED: frozenset(),
    LevelStatus.REJECTED: frozenset(),
    LevelStatus.DELEGATED: frozenset(),
}


class EntityStatus(str, Enum):
    """Approval-relevant status of a business entity."""

    DRAFT = "draft"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


ENTITY_TRANSITIONS: dict[EntityStatus, frozenset[EntityStatus]] = {
    EntityStatus.DRAFT: frozenset({EntityStatus.PENDING}),
    EntityStatus.PENDING: frozenset({EntityStatus.APPROVED, EntityStatus.REJECTED}),
    EntityStatus.APPROVED: frozenset(),
    EntityStatus.REJECTED: frozenset(),
}

TERMINAL_ENTITY_STATUSES: frozenset[EntityStatus] = frozenset({
    EntityStatus.APPROVED,
    EntityStatus.REJECTED,
})


class ApprovalAction(str, Enum):
    """Actions an approver can take on the current level."""

    APPROVE = "approve"
    REJECT = "reject"


class SlaState(str, Enum):
    """Classification used by the SLA monitoring report."""

    WITHIN_SLA = "within_sla"
    APPROACHING_SLA = "approaching_sla"
    EXCEEDED_SLA = "exceeded_sla"
    ESCALATED = "escalated"


class NotificationType(str, Enum):
    APPROVAL_REQUIRED = "approval_required"
    REQUEST_APPROVED = "request_approved"
    REQUEST_REJECTED = "request_rejected"
    SLA_ESCALATION = "sla_escalation"


# =========================================================================
# Instance state
# =========================================================================


@dataclass(frozen=True)
class ApprovalLevelState:
    """One resolved level of a live instance."""

    level: int
    approver_type: str
    approver_id: str | None
    approver_email: str | None
    approver_name: str = ""
    is_required: bool = True
    status: LevelStatus = LevelStatus.PENDING
    sla_minutes: int = 1440
    sla_deadline: datetime | None = None
    comments: str | None = None
    approved_at: datetime | None = None
    rejected_at: datetime | None = None
    is_escalated: bool = False
    escalated_at: datetime | None = None
    delegated_from_id: str | None = None
    delegated_from_email: str | None = None

    def is_actor(self, actor_id: str, actor_email: str | None = None) -> bool:
        """True if the actor is this level's resolved approver."""
        if self.approver_id is not None and actor_id == self.approver_id:
            return True
        if self.approver_email is None:
            return False
        candidates = {actor_id.lower()}
        if actor_email:
            candidates.add(actor_email.lower())
        return self.approver_email.lower() in candidates


@dataclass(frozen=True)
class ApprovalInstance:
    """Resolved approval chain embedded in a business entity."""

    levels: tuple[ApprovalLevelState, ...]
    current_level: int = 1
    sla_deadline: datetime | None = None
    created_at: datetime | None = None
    is_escalated: bool = False
    escalated_at: datetime | None = None
    escalation_reason: str | None = None
    escalated_to_email: str | None = None
    source: WorkflowSource | None = None
    source_id: UUID | None = None
    source_name: str = ""
    escalation_rules: EscalationRules = field(default_factory=EscalationRules)

    def level_state(self, level: int) -> ApprovalLevelState | None:
        for state in self.levels:
            if state.level == level:
                return state
        return None

    @property
    def current(self) -> ApprovalLevelState | None:
        return self.level_state(self.current_level)

    @property
    def current_level_deadline(self) -> datetime | None:
        state = self.current
        return state.sla_deadline if state is not None else None

    def with_level(self, state: ApprovalLevelState) -> ApprovalInstance:
        """Return a copy with the level of the same number replaced."""
        return replace(
            self,
            levels=tuple(state if s.level == state.level else s for s in self.levels),
        )


@dataclass(frozen=True)
class ApprovableEntity:
    """Snapshot of a business entity participating in approvals.

    ``lock_version`` is the value read from storage; a save is conditional
    on it still being current.
    """

    entity_type: str
    entity_id: UUID
    requester_id: str
    requester_email: str | None = None
    status: EntityStatus = EntityStatus.DRAFT
    instance: ApprovalInstance | None = None
    context: RequestContext = field(default_factory=RequestContext)
    lock_version: int = 0
    approved_at: datetime | None = None
    rejected_at: datetime | None = None
    rejection_reason: str | None = None
