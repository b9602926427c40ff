"""
approval_batch -- Periodic escalation sweeps.

Runs ``EscalationMonitor.sweep()`` for every registered tenant database on
an interval, one session and one commit per tenant.

Architecture:
    approval_batch/ is a top-level package.  Nothing in kernel/, engines/
    or services/ imports from approval_batch.
"""

from approval_batch.scheduler import EscalationScheduler

__all__ = ["EscalationScheduler"]
