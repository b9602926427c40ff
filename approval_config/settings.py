"""
Engine settings schema (``approval_config.settings``).

Frozen dataclasses only.  Parsing lives in ``approval_config.loader``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta


@dataclass(frozen=True)
class RoleSettings:
    """Directory role names the engine looks up."""

    hr_role: str = "hr"
    admin_role: str = "admin"
    department_head_roles: tuple[str, ...] = ("manager", "admin", "hr")


@dataclass(frozen=True)
class EngineSettings:
    """Runtime settings for one deployment of the approval engine."""

    default_level_sla_minutes: int = 1440
    approaching_sla_hours: int = 24
    escalation_sweep_interval_seconds: float = 900.0
    roles: RoleSettings = RoleSettings()
    policy_pack: str | None = None
    checksum: str = ""

    @property
    def approaching_window(self) -> timedelta:
        return timedelta(hours=self.approaching_sla_hours)
