"""
EscalationScheduler -- In-process polling scheduler for SLA sweeps.

Contract:
    Every ``interval_seconds`` runs one escalation sweep per tenant
    database.  Each tenant gets its own session; a tenant's sweep commits
    on success and rolls back on failure without affecting the others.

Architecture: approval_batch.  Builds services per session through
    ``approval_services.wiring``.

Invariants enforced:
    - All timestamps come from the injected Clock.
    - One tenant's failure never stops the sweep of the remaining tenants.
    - Graceful shutdown: the stop signal is checked between tenants.
"""

from __future__ import annotations

import threading
from typing import Callable

from approval_config.settings import EngineSettings
from approval_kernel.db.engine import TenantDatabases
from approval_kernel.domain.clock import Clock, SystemClock
from approval_kernel.logging_config import LogContext, get_logger
from approval_services.directory import EmployeeDirectory
from approval_services.escalation_monitor import SweepResult
from approval_services.notifications import NotificationDispatcher
from approval_services.wiring import build_approval_services

logger = get_logger("batch.scheduler")


class EscalationScheduler:
    """Runs escalation sweeps across tenants on a fixed interval.

    Non-goals:
        - NOT a distributed scheduler (no leader election).  Running two
          schedulers against one tenant is safe but wasteful: the
          conditional write lets only one of them escalate a given level.
    """

    def __init__(
        self,
        tenants: TenantDatabases,
        directory_factory: Callable[[str], EmployeeDirectory],
        notifier: NotificationDispatcher,
        clock: Clock | None = None,
        settings: EngineSettings | None = None,
        interval_seconds: float | None = None,
    ):
        self._tenants = tenants
        self._directory_factory = directory_factory
        self._notifier = notifier
        self._clock = clock or SystemClock()
        self._settings = settings or EngineSettings()
        self._interval = (
            interval_seconds
            if interval_seconds is not None
            else self._settings.escalation_sweep_interval_seconds
        )
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def tick(self) -> dict[str, SweepResult]:
        """Sweep every tenant once (public for testing).

        Returns sweep results keyed by tenant id.  Tenants whose sweep
        raised are absent from the result.
        """
        results: dict[str, SweepResult] = {}
        for tenant_id in self._tenants.tenant_ids():
            if self._stop_event.is_set():
                break
            with LogContext.bind(tenant_id=tenant_id):
                result = self.sweep_tenant(tenant_id)
            if result is not None:
                results[tenant_id] = result
        return results

    def sweep_tenant(self, tenant_id: str) -> SweepResult | None:
        database = self._tenants.get(tenant_id)
        session = database.session()
        try:
            services = build_approval_services(
                session,
                self._directory_factory(tenant_id),
                notifier=self._notifier,
                clock=self._clock,
                settings=self._settings,
            )
            result = services.escalation.sweep()
            session.commit()
            return result
        except Exception:
            session.rollback()
            logger.exception("tenant_sweep_failed")
            return None
        finally:
            session.close()

    def start(self) -> None:
        """Start the scheduler in a background thread."""
        if self._thread is not None and self._thread.is_alive():
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run_loop,
            name="escalation-scheduler",
            daemon=True,
        )
        self._thread.start()
        logger.info("scheduler_started", extra={"tick_interval": self._interval})

    def stop(self, timeout: float = 30.0) -> None:
        """Signal stop and wait for the current tenant to finish."""
        self._stop_event.set()
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=timeout)
        logger.info("scheduler_stopped")

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.tick()
            except Exception:
                logger.exception("scheduler_tick_exception")
            self._stop_event.wait(timeout=self._interval)
