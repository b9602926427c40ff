"""
approval_config -- single public entrypoint for engine configuration.

Responsibility:
    ``get_engine_settings()`` is the only way runtime code obtains engine
    settings, and the only place the ``APPROVAL_ENGINE_CONFIG``
    environment variable is read.  ``get_default_policy_pack()`` returns
    the shipped starter workflows and matrices used for tenant seeding.

Architecture position:
    Configuration -- sits above ``approval_kernel`` and beside
    ``approval_services``.  The kernel never imports from this package.

Failure modes:
    - ``FileNotFoundError`` -- the configured file does not exist.
    - ``ValueError`` -- schema validation failures.

Audit relevance:
    Every successful ``get_engine_settings()`` call emits an
    ``APPROVAL_CONFIG_TRACE`` log entry with the source path and checksum.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from approval_config.loader import load_engine_settings, load_policy_pack
from approval_config.settings import EngineSettings, RoleSettings
from approval_kernel.domain.policy import PolicyPack

_logger = logging.getLogger("approval_kernel.config")

_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"
CONFIG_ENV_VAR = "APPROVAL_ENGINE_CONFIG"


def get_engine_settings(config_path: Path | str | None = None) -> EngineSettings:
    """Load engine settings.

    Resolution order: explicit ``config_path``, then the
    ``APPROVAL_ENGINE_CONFIG`` environment variable, then the shipped
    ``sets/engine.yaml``.
    """
    env_path = os.environ.get(CONFIG_ENV_VAR)
    path = Path(config_path or env_path or _DEFAULT_CONFIG_DIR / "engine.yaml")
    settings = load_engine_settings(path)

    _logger.info(
        "APPROVAL_CONFIG_TRACE",
        extra={
            "trace_type": "APPROVAL_CONFIG_TRACE",
            "config_path": str(path),
            "checksum": settings.checksum,
            "default_level_sla_minutes": settings.default_level_sla_minutes,
            "sweep_interval_seconds": settings.escalation_sweep_interval_seconds,
        },
    )
    return settings


def get_default_policy_pack(settings: EngineSettings | None = None) -> PolicyPack:
    """The starter policy pack named by ``settings`` (or the shipped one)."""
    name = (settings.policy_pack if settings else None) or "default_policies.yaml"
    path = Path(name)
    if not path.is_absolute():
        path = _DEFAULT_CONFIG_DIR / path
    if settings is None:
        return load_policy_pack(path)
    return load_policy_pack(path, settings.default_level_sla_minutes)


__all__ = [
    "CONFIG_ENV_VAR",
    "EngineSettings",
    "RoleSettings",
    "get_default_policy_pack",
    "get_engine_settings",
]
