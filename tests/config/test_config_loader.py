"""
Tests for approval_config -- engine settings and policy packs.

Tests cover:
- shipped engine.yaml and default_policies.yaml load
- explicit path, environment variable and default resolution
- validation of non-positive settings
- default level SLA plumbing into parsed levels
- APPROVAL_CONFIG_TRACE audit log
"""

from datetime import date, timedelta
from decimal import Decimal

import pytest
import yaml

from approval_config import CONFIG_ENV_VAR, get_default_policy_pack, get_engine_settings
from approval_config.loader import (
    compute_checksum,
    load_policy_pack,
    load_yaml_file,
    parse_delegation,
    parse_engine_settings,
    parse_policy_pack,
)
from approval_config.settings import EngineSettings
from approval_kernel.domain.approvers import RoleBased
from approval_kernel.domain.policy import ALL_ENTITY_TYPES, EscalateTo


def write_yaml(path, data):
    path.write_text(yaml.safe_dump(data))
    return path


# =============================================================================
# Engine settings
# =============================================================================


class TestEngineSettings:
    def test_shipped_settings(self, monkeypatch):
        monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
        settings = get_engine_settings()
        assert settings.default_level_sla_minutes == 1440
        assert settings.approaching_window == timedelta(hours=24)
        assert settings.escalation_sweep_interval_seconds == 900.0
        assert settings.roles.hr_role == "hr"
        assert settings.roles.department_head_roles == ("manager", "admin", "hr")
        assert settings.policy_pack == "default_policies.yaml"
        assert len(settings.checksum) == 64

    def test_env_var_override(self, tmp_path, monkeypatch):
        path = write_yaml(tmp_path / "engine.yaml", {
            "engine": {"default_level_sla_minutes": 60, "approaching_sla_hours": 2},
            "roles": {"hr_role": "people_ops"},
        })
        monkeypatch.setenv(CONFIG_ENV_VAR, str(path))
        settings = get_engine_settings()
        assert settings.default_level_sla_minutes == 60
        assert settings.approaching_window == timedelta(hours=2)
        assert settings.roles.hr_role == "people_ops"
        assert settings.roles.admin_role == "admin"

    def test_explicit_path_wins(self, tmp_path, monkeypatch):
        env = write_yaml(tmp_path / "env.yaml", {"engine": {"default_level_sla_minutes": 60}})
        explicit = write_yaml(tmp_path / "explicit.yaml", {"engine": {"default_level_sla_minutes": 30}})
        monkeypatch.setenv(CONFIG_ENV_VAR, str(env))
        assert get_engine_settings(explicit).default_level_sla_minutes == 30

    def test_empty_file_gives_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        settings = get_engine_settings(path)
        assert settings.default_level_sla_minutes == EngineSettings().default_level_sla_minutes

    @pytest.mark.parametrize(
        "engine",
        [
            {"default_level_sla_minutes": 0},
            {"escalation_sweep_interval_seconds": -5},
        ],
    )
    def test_non_positive_values_rejected(self, engine):
        with pytest.raises(ValueError):
            parse_engine_settings({"engine": engine})

    def test_top_level_must_be_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ValueError, match="mapping"):
            load_yaml_file(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_engine_settings(tmp_path / "nope.yaml")

    def test_checksum_is_order_independent(self):
        assert compute_checksum({"a": 1, "b": 2}) == compute_checksum({"b": 2, "a": 1})
        assert compute_checksum({"a": 1}) != compute_checksum({"a": 2})

    def test_trace_logged(self, captured_logs, monkeypatch):
        monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
        settings = get_engine_settings()
        (trace,) = [r for r in captured_logs() if r["message"] == "APPROVAL_CONFIG_TRACE"]
        assert trace["checksum"] == settings.checksum
        assert trace["config_path"].endswith("engine.yaml")


# =============================================================================
# Policy packs
# =============================================================================


class TestPolicyPacks:
    def test_shipped_pack(self):
        pack = get_default_policy_pack()
        assert {w.name for w in pack.workflows} == {
            "Default Leave Approval", "Default Expense Approval",
        }
        over = next(m for m in pack.matrices if m.name == "Expense Over 25000")
        assert over.conditions.amount_range.min == Decimal("25000.01")
        assert over.required_approvers[2].approver == RoleBased("ceo")
        assert over.escalation_rules.escalate_to == EscalateTo.ADMIN

    def test_default_sla_applied_to_levels_without_one(self, tmp_path):
        path = write_yaml(tmp_path / "pack.yaml", {
            "workflows": [{
                "name": "Quick",
                "entity_type": "leave",
                "is_default": True,
                "levels": [
                    {"level": 1, "approver_type": "reporting_manager"},
                    {"level": 2, "approver_type": "hr", "sla_minutes": 90},
                ],
            }],
        })
        (workflow,) = load_policy_pack(path, default_sla_minutes=120).workflows
        assert [lvl.sla_minutes for lvl in workflow.levels] == [120, 90]

    def test_settings_drive_pack_defaults(self, tmp_path):
        pack_path = write_yaml(tmp_path / "pack.yaml", {
            "matrices": [{
                "name": "Any",
                "entity_type": "expense",
                "required_approvers": [{"level": 1, "approver_type": "admin"}],
            }],
        })
        settings = EngineSettings(default_level_sla_minutes=45, policy_pack=str(pack_path))
        (matrix,) = get_default_policy_pack(settings).matrices
        assert matrix.required_approvers[0].sla_minutes == 45

    def test_unknown_approver_type(self):
        with pytest.raises(ValueError):
            parse_policy_pack({"workflows": [{
                "name": "Bad",
                "entity_type": "leave",
                "levels": [{"level": 1, "approver_type": "oracle"}],
            }]})

    def test_missing_required_key(self):
        with pytest.raises(KeyError):
            parse_policy_pack({"workflows": [{"entity_type": "leave", "levels": []}]})

    def test_delegation_entry(self):
        delegation = parse_delegation({
            "delegator_email": "mona@example.com",
            "delegate_email": "mark@example.com",
            "start_date": "2025-01-01",
            "end_date": date(2025, 1, 10),
        })
        assert delegation.start_date == date(2025, 1, 1)
        assert delegation.entity_types == (ALL_ENTITY_TYPES,)

    def test_bad_date(self):
        with pytest.raises(ValueError):
            parse_delegation({
                "delegator_email": "a@example.com",
                "delegate_email": "b@example.com",
                "start_date": 20250101,
                "end_date": "2025-01-10",
            })
