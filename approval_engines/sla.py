"""
approval_engines.sla -- SLA classification for monitoring reports.

Pure: ``now`` and the approaching window are passed in.  An escalated
instance reports ``escalated`` regardless of time left; otherwise a
level past its deadline is ``exceeded_sla`` and one inside the window
is ``approaching_sla``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal

from approval_kernel.domain.approval import ApprovalInstance, SlaState


@dataclass(frozen=True)
class SlaStatus:
    state: SlaState
    hours_remaining: Decimal | None


def hours_between(start: datetime, end: datetime) -> Decimal:
    seconds = Decimal(str((end - start).total_seconds()))
    return (seconds / Decimal(3600)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def classify(
    instance: ApprovalInstance,
    now: datetime,
    approaching_window: timedelta = timedelta(hours=24),
) -> SlaStatus:
    deadline = instance.current_level_deadline
    remaining = hours_between(now, deadline) if deadline is not None else None
    if instance.is_escalated:
        return SlaStatus(SlaState.ESCALATED, remaining)
    if deadline is None:
        return SlaStatus(SlaState.WITHIN_SLA, None)
    if deadline <= now:
        return SlaStatus(SlaState.EXCEEDED_SLA, remaining)
    if deadline - now <= approaching_window:
        return SlaStatus(SlaState.APPROACHING_SLA, remaining)
    return SlaStatus(SlaState.WITHIN_SLA, remaining)
