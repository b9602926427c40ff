"""
approval_services.approval_queries -- Read-only approval views.

Responsibility:
    Pending approvals for one approver, the SLA monitoring report, and
    per-entity-type status counts.  Never mutates anything.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from uuid import UUID

from approval_engines.sla import classify
from approval_kernel.domain.approval import EntityStatus, SlaState
from approval_kernel.domain.clock import Clock, SystemClock
from approval_kernel.logging_config import get_logger
from approval_services.entity_store import EntityStoreRegistry

logger = get_logger("services.approval_queries")


@dataclass(frozen=True)
class PendingApproval:
    entity_type: str
    entity_id: UUID
    level: int
    requester_id: str
    sla_deadline: datetime | None
    is_escalated: bool
    delegated_from_email: str | None = None


@dataclass(frozen=True)
class SlaReportItem:
    entity_type: str
    entity_id: UUID
    level: int
    approver_email: str | None
    sla_deadline: datetime | None
    state: SlaState
    hours_remaining: Decimal | None


@dataclass(frozen=True)
class SlaReport:
    generated_at: datetime
    items: tuple[SlaReportItem, ...] = ()
    totals: dict[str, int] = field(default_factory=dict)


class ApprovalQueries:
    def __init__(
        self,
        stores: EntityStoreRegistry,
        clock: Clock | None = None,
        approaching_window: timedelta = timedelta(hours=24),
    ) -> None:
        self._stores = stores
        self._clock = clock or SystemClock()
        self._approaching_window = approaching_window

    def pending_for_approver(
        self,
        approver_id: str | None = None,
        approver_email: str | None = None,
    ) -> list[PendingApproval]:
        """Entities whose current level awaits this approver, oldest deadline first."""
        if approver_id is None and approver_email is None:
            raise ValueError("approver_id or approver_email is required")
        results: list[PendingApproval] = []
        for store in self._stores.stores():
            for entity in store.find_pending():
                instance = entity.instance
                current = instance.current if instance else None
                if current is None:
                    continue
                if not current.is_actor(approver_id or "", approver_email):
                    continue
                results.append(PendingApproval(
                    entity_type=entity.entity_type,
                    entity_id=entity.entity_id,
                    level=current.level,
                    requester_id=entity.requester_id,
                    sla_deadline=current.sla_deadline,
                    is_escalated=current.is_escalated,
                    delegated_from_email=current.delegated_from_email,
                ))
        far_future = datetime.max.replace(tzinfo=self._clock.now().tzinfo)
        return sorted(results, key=lambda p: p.sla_deadline or far_future)

    def sla_report(self) -> SlaReport:
        now = self._clock.now()
        items: list[SlaReportItem] = []
        totals = {state.value: 0 for state in SlaState}
        for store in self._stores.stores():
            for entity in store.find_pending():
                instance = entity.instance
                if instance is None or instance.current is None:
                    continue
                status = classify(instance, now, self._approaching_window)
                totals[status.state.value] += 1
                items.append(SlaReportItem(
                    entity_type=entity.entity_type,
                    entity_id=entity.entity_id,
                    level=instance.current_level,
                    approver_email=instance.current.approver_email,
                    sla_deadline=instance.current_level_deadline,
                    state=status.state,
                    hours_remaining=status.hours_remaining,
                ))
        logger.info("sla_report_generated", extra={"totals": totals, "item_count": len(items)})
        return SlaReport(generated_at=now, items=tuple(items), totals=totals)

    def stats(self) -> dict[str, dict[str, int]]:
        """Counts per entity type and status."""
        result: dict[str, dict[str, int]] = {}
        for store in self._stores.stores():
            counts = {status.value: 0 for status in EntityStatus}
            counts.update(store.count_by_status())
            result[store.entity_type] = counts
        return result
