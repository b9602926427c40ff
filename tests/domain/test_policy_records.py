"""
Tests for policy record conversion and approver variants.

Covers:
- approver_from_record: canonical tags, camelCase keys, legacy aliases,
  pinned variants missing their pin
- level_from_record / levels_from_records: canonical and steps[] shapes
- escalation_rules_from_record and conditions_from_record round trips
- ApprovalDelegation.is_in_effect window and entity-type scoping
"""

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from approval_kernel.domain.approvers import (
    HR,
    Admin,
    DepartmentHead,
    ReportingManager,
    RoleBased,
    SpecificUser,
    approver_from_record,
    approver_to_record,
)
from approval_kernel.domain.policy import (
    ApprovalDelegation,
    EscalateTo,
    EscalationRules,
    NumericRange,
    conditions_from_record,
    conditions_to_record,
    escalation_rules_from_record,
    escalation_rules_to_record,
    level_from_record,
    levels_from_records,
)


class TestApproverFromRecord:
    @pytest.mark.parametrize(
        "tag, expected",
        [
            ("reporting_manager", ReportingManager()),
            ("department_head", DepartmentHead()),
            ("hr", HR()),
            ("admin", Admin()),
            ("manager", ReportingManager()),
            ("company_admin", Admin()),
            ("finance", RoleBased("finance")),
            ("ceo", RoleBased("ceo")),
        ],
    )
    def test_tags_and_aliases(self, tag, expected):
        assert approver_from_record({"approver_type": tag}) == expected

    def test_camel_case_specific_user(self):
        spec = approver_from_record(
            {"approverType": "specific_user", "approverEmail": "Mona@Example.com"}
        )
        assert spec == SpecificUser(approver_id=None, approver_email="mona@example.com")

    def test_specific_user_without_pin_rejected(self):
        with pytest.raises(ValueError, match="specific_user"):
            approver_from_record({"approver_type": "specific_user"})

    def test_role_based_without_role_rejected(self):
        with pytest.raises(ValueError, match="role_based"):
            approver_from_record({"approver_type": "role_based"})

    def test_unknown_type_rejected(self):
        with pytest.raises(ValueError, match="Unknown approver type"):
            approver_from_record({"approver_type": "board"})

    def test_record_round_trip_for_role_based(self):
        record = approver_to_record(RoleBased("finance"))
        assert record == {"approver_type": "role_based", "approver_role": "finance"}
        assert approver_from_record(record) == RoleBased("finance")


class TestLevelRecords:
    def test_canonical_level_defaults(self):
        spec = level_from_record({"level": 2, "approver_type": "hr"}, position=1)
        assert spec.level == 2
        assert spec.approver == HR()
        assert spec.is_required is True
        assert spec.can_delegate is True
        assert spec.sla_minutes == 1440

    def test_default_sla_override(self):
        spec = level_from_record({"approver_type": "hr"}, position=1, default_sla_minutes=60)
        assert spec.sla_minutes == 60

    def test_steps_shape_is_normalized(self):
        records = [
            {"order": 2, "role": "hr", "sla": {"timeLimitMinutes": 240}},
            {
                "order": 1,
                "role": "reporting_manager",
                "permissions": {"canDelegate": False},
            },
        ]
        levels = levels_from_records(records)
        assert [lv.level for lv in levels] == [1, 2]
        assert levels[0].approver == ReportingManager()
        assert levels[0].can_delegate is False
        assert levels[1].approver == HR()
        assert levels[1].sla_minutes == 240

    def test_levels_sorted_by_level_number(self):
        levels = levels_from_records([
            {"level": 2, "approver_type": "hr"},
            {"level": 1, "approver_type": "reporting_manager"},
        ])
        assert [lv.approver for lv in levels] == [ReportingManager(), HR()]


class TestEscalationRulesRecords:
    def test_missing_record_gives_defaults(self):
        assert escalation_rules_from_record(None) == EscalationRules()

    def test_camel_case_keys(self):
        rules = escalation_rules_from_record({
            "enabled": True,
            "escalationAfterMinutes": 60,
            "escalateTo": "specific_user",
            "escalateToEmail": "boss@example.com",
        })
        assert rules.escalation_after_minutes == 60
        assert rules.escalate_to == EscalateTo.SPECIFIC_USER
        assert rules.escalate_to_email == "boss@example.com"

    def test_round_trip(self):
        rules = EscalationRules(enabled=False, escalate_to=EscalateTo.ADMIN)
        assert escalation_rules_from_record(escalation_rules_to_record(rules)) == rules


class TestConditionRecords:
    def test_singular_legacy_keys(self):
        conditions = conditions_from_record({
            "leaveType": ["casual"],
            "department": ["dept-eng"],
            "designation": ["Engineer"],
        })
        assert conditions.leave_types == ("casual",)
        assert conditions.departments == ("dept-eng",)
        assert conditions.designations == ("Engineer",)

    def test_ranges_round_trip_as_decimals(self):
        conditions = conditions_from_record({"amount_range": {"min": 5000, "max": "25000"}})
        assert conditions.amount_range == NumericRange(Decimal("5000"), Decimal("25000"))
        assert conditions_from_record(conditions_to_record(conditions)) == conditions


class TestDelegationWindow:
    def make_delegation(self, **overrides):
        values = dict(
            delegator_email="mona@example.com",
            delegate_email="mark@example.com",
            start_date=date(2025, 1, 1),
            end_date=date(2025, 1, 10),
            entity_types=("leave",),
        )
        values.update(overrides)
        return ApprovalDelegation(**values)

    def test_in_window_and_type(self):
        d = self.make_delegation()
        assert d.is_in_effect("leave", datetime(2025, 1, 5, tzinfo=timezone.utc))

    def test_end_date_inclusive(self):
        d = self.make_delegation()
        assert d.is_in_effect("leave", datetime(2025, 1, 10, 23, 59, tzinfo=timezone.utc))
        assert not d.is_in_effect("leave", datetime(2025, 1, 11, tzinfo=timezone.utc))

    def test_other_entity_type_excluded(self):
        d = self.make_delegation()
        assert not d.is_in_effect("expense", datetime(2025, 1, 5, tzinfo=timezone.utc))

    def test_all_covers_every_type(self):
        d = self.make_delegation(entity_types=("all",))
        assert d.is_in_effect("expense", datetime(2025, 1, 5, tzinfo=timezone.utc))

    def test_inactive_never_applies(self):
        d = self.make_delegation(is_active=False)
        assert not d.is_in_effect("leave", datetime(2025, 1, 5, tzinfo=timezone.utc))
