"""
Configuration Loader (``approval_config.loader``).

Responsibility
--------------
Loads YAML files and parses them into ``EngineSettings`` and
``PolicyPack`` frozen dataclasses.  Runtime callers go through
``approval_config.get_engine_settings()``; seeding scripts and tests call
``load_policy_pack`` directly.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` or ``KeyError`` with descriptive
  messages; required fields never get silent defaults.
* ``compute_checksum`` is deterministic for identical input.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown approver type, escalation target or bad date  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from datetime import date
from pathlib import Path
from typing import Any

import yaml

from approval_config.settings import EngineSettings, RoleSettings
from approval_kernel.domain.policy import (
    ALL_ENTITY_TYPES,
    DEFAULT_LEVEL_SLA_MINUTES,
    ApprovalDelegation,
    ApprovalMatrix,
    PolicyPack,
    WorkflowDefinition,
    conditions_from_record,
    escalation_rules_from_record,
    levels_from_records,
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a single YAML file; an empty file yields ``{}``."""
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top-level YAML must be a mapping")
    return data


def parse_date(value: Any) -> date:
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value)
    raise ValueError(f"Cannot parse date from {value!r}")


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


# =========================================================================
# Engine settings
# =========================================================================


def parse_engine_settings(data: dict[str, Any]) -> EngineSettings:
    engine = data.get("engine", {})
    roles = data.get("roles", {})
    head_roles = roles.get("department_head_roles", RoleSettings.department_head_roles)
    settings = EngineSettings(
        default_level_sla_minutes=int(
            engine.get("default_level_sla_minutes", DEFAULT_LEVEL_SLA_MINUTES)
        ),
        approaching_sla_hours=int(engine.get("approaching_sla_hours", 24)),
        escalation_sweep_interval_seconds=float(
            engine.get("escalation_sweep_interval_seconds", 900)
        ),
        roles=RoleSettings(
            hr_role=roles.get("hr_role", "hr"),
            admin_role=roles.get("admin_role", "admin"),
            department_head_roles=tuple(head_roles),
        ),
        policy_pack=data.get("policy_pack"),
        checksum=compute_checksum(data),
    )
    if settings.default_level_sla_minutes <= 0:
        raise ValueError("engine.default_level_sla_minutes must be positive")
    if settings.escalation_sweep_interval_seconds <= 0:
        raise ValueError("engine.escalation_sweep_interval_seconds must be positive")
    return settings


def load_engine_settings(path: Path) -> EngineSettings:
    return parse_engine_settings(load_yaml_file(path))


# =========================================================================
# Policy packs
# =========================================================================


def parse_workflow(
    data: dict[str, Any],
    default_sla_minutes: int = DEFAULT_LEVEL_SLA_MINUTES,
) -> WorkflowDefinition:
    """Parse one workflow entry.

    Raises:
        KeyError: if ``name``, ``entity_type`` or ``levels`` is missing.
        ValueError: if a level names an unknown approver type.
    """
    sla = data.get("sla_minutes")
    return WorkflowDefinition(
        name=data["name"],
        entity_type=data["entity_type"],
        levels=levels_from_records(data["levels"], default_sla_minutes),
        description=data.get("description", ""),
        requester_role=data.get("requester_role"),
        is_default=bool(data.get("is_default", False)),
        is_active=bool(data.get("is_active", True)),
        priority=int(data.get("priority", 0)),
        sla_minutes=int(sla) if sla is not None else None,
        escalation_rules=escalation_rules_from_record(data.get("escalation_rules")),
    )


def parse_matrix(
    data: dict[str, Any],
    default_sla_minutes: int = DEFAULT_LEVEL_SLA_MINUTES,
) -> ApprovalMatrix:
    return ApprovalMatrix(
        name=data["name"],
        entity_type=data["entity_type"],
        conditions=conditions_from_record(data.get("conditions")),
        required_approvers=levels_from_records(data["required_approvers"], default_sla_minutes),
        priority=int(data.get("priority", 0)),
        is_active=bool(data.get("is_active", True)),
        escalation_rules=escalation_rules_from_record(data.get("escalation_rules")),
    )


def parse_delegation(data: dict[str, Any]) -> ApprovalDelegation:
    entity_types = data.get("entity_types") or [ALL_ENTITY_TYPES]
    return ApprovalDelegation(
        delegator_email=data["delegator_email"],
        delegate_email=data["delegate_email"],
        start_date=parse_date(data["start_date"]),
        end_date=parse_date(data["end_date"]),
        delegator_id=data.get("delegator_id"),
        delegate_id=data.get("delegate_id"),
        entity_types=tuple(entity_types),
        is_active=bool(data.get("is_active", True)),
        reason=data.get("reason", ""),
    )


def parse_policy_pack(
    data: dict[str, Any],
    default_sla_minutes: int = DEFAULT_LEVEL_SLA_MINUTES,
) -> PolicyPack:
    """Parse a pack; levels without ``sla_minutes`` get ``default_sla_minutes``."""
    workflows = data.get("workflows", [])
    matrices = data.get("matrices", [])
    return PolicyPack(
        workflows=tuple(parse_workflow(w, default_sla_minutes) for w in workflows),
        matrices=tuple(parse_matrix(m, default_sla_minutes) for m in matrices),
        delegations=tuple(parse_delegation(d) for d in data.get("delegations", [])),
    )


def load_policy_pack(
    path: Path,
    default_sla_minutes: int = DEFAULT_LEVEL_SLA_MINUTES,
) -> PolicyPack:
    return parse_policy_pack(load_yaml_file(path), default_sla_minutes)
