"""
approval_services.approver_resolver -- Level approver resolution.

Responsibility:
    Turn a level's approver variant into a concrete person for a given
    requester, applying any in-effect delegation.

Architecture position:
    Services -- reads the directory and the policy store; produces the
    ``ResolvedLevel`` values the instance engine consumes.

Invariants enforced:
    - Dispatch over approver variants is exhaustive (``assert_never``).
    - Inactive members never resolve as approvers.
    - The requester never resolves as their own approver.  A lookup that
      lands on the requester leaves the level unresolved; a delegation to
      the requester is ignored.
    - When a level allows delegation and a delegation of the resolved
      approver is in effect for the entity type at ``as_of``, the delegate
      is returned and the original approver is recorded as
      ``delegated_from``.  Delegations are consulted here only, never
      re-evaluated later.
"""

from __future__ import annotations

from datetime import datetime
from typing import Sequence, assert_never

from approval_engines.instance import ResolvedApprover, ResolvedLevel
from approval_kernel.domain.approvers import (
    HR,
    Admin,
    DepartmentHead,
    ReportingManager,
    RoleBased,
    SpecificUser,
)
from approval_kernel.domain.people import DirectoryMember
from approval_kernel.domain.policy import LevelSpec
from approval_kernel.logging_config import get_logger
from approval_services.directory import EmployeeDirectory
from approval_services.policy_store import PolicyStore

logger = get_logger("services.approver_resolver")


def _is_requester(member_id: str | None, email: str | None, requester: DirectoryMember) -> bool:
    if member_id and member_id == requester.member_id:
        return True
    return bool(email) and email.lower() == requester.email.lower()


class ApproverResolver:
    """Resolves approver variants against the tenant directory."""

    def __init__(
        self,
        directory: EmployeeDirectory,
        policy_store: PolicyStore,
        hr_role: str = "hr",
        admin_role: str = "admin",
    ) -> None:
        self._directory = directory
        self._policies = policy_store
        self._hr_role = hr_role
        self._admin_role = admin_role

    def _lookup(self, spec: LevelSpec, requester: DirectoryMember) -> DirectoryMember | None:
        approver = spec.approver
        requester_id = requester.member_id
        match approver:
            case ReportingManager():
                member = self._directory.find_manager_of(requester_id)
            case DepartmentHead():
                if not requester.department_id:
                    return None
                member = self._directory.find_department_head(
                    requester.department_id, exclude_id=requester_id,
                )
            case HR():
                member = self._directory.find_by_role(self._hr_role, exclude_id=requester_id)
            case Admin():
                member = self._directory.find_by_role(self._admin_role, exclude_id=requester_id)
            case SpecificUser(approver_id=approver_id, approver_email=approver_email):
                member = self._directory.find_by_id(approver_id) if approver_id else None
                if member is None and approver_email:
                    member = self._directory.find_by_email(approver_email)
            case RoleBased(role=role):
                member = self._directory.find_by_role(role, exclude_id=requester_id)
            case _:
                assert_never(approver)
        if member is not None and _is_requester(member.member_id, member.email, requester):
            logger.info(
                "approver_is_requester",
                extra={"approval_level": spec.level, "requester_id": requester_id},
            )
            return None
        return member

    def _apply_delegation(
        self,
        member: DirectoryMember,
        requester: DirectoryMember,
        entity_type: str,
        as_of: datetime,
    ) -> ResolvedApprover:
        delegation = self._policies.find_active_delegation(
            member.email, member.member_id, entity_type, as_of,
        )
        if delegation is None:
            return ResolvedApprover(
                approver_id=member.member_id,
                approver_email=member.email.lower(),
                approver_name=member.display_name,
            )

        delegate = None
        if delegation.delegate_id:
            delegate = self._directory.find_by_id(delegation.delegate_id)
        if delegate is None:
            delegate = self._directory.find_by_email(delegation.delegate_email)

        delegate_id = delegate.member_id if delegate is not None else delegation.delegate_id
        delegate_email = delegate.email if delegate is not None else delegation.delegate_email
        if _is_requester(delegate_id, delegate_email, requester):
            logger.info(
                "delegation_to_requester_ignored",
                extra={
                    "delegator_email": member.email,
                    "delegation_id": str(delegation.delegation_id),
                    "requester_id": requester.member_id,
                },
            )
            return ResolvedApprover(
                approver_id=member.member_id,
                approver_email=member.email.lower(),
                approver_name=member.display_name,
            )

        logger.info(
            "approver_delegated",
            extra={
                "delegator_email": member.email,
                "delegate_email": delegation.delegate_email,
                "delegation_id": str(delegation.delegation_id),
                "entity_type": entity_type,
            },
        )
        if delegate is not None:
            return ResolvedApprover(
                approver_id=delegate.member_id,
                approver_email=delegate.email.lower(),
                approver_name=delegate.display_name,
                delegated_from_id=member.member_id,
                delegated_from_email=member.email.lower(),
            )
        return ResolvedApprover(
            approver_id=delegation.delegate_id,
            approver_email=delegation.delegate_email.lower(),
            approver_name=delegation.delegate_email,
            delegated_from_id=member.member_id,
            delegated_from_email=member.email.lower(),
        )

    def resolve(
        self,
        spec: LevelSpec,
        requester: DirectoryMember,
        entity_type: str,
        as_of: datetime,
    ) -> ResolvedApprover | None:
        """Concrete approver for one level, or None if nobody resolves."""
        member = self._lookup(spec, requester)
        if member is None or not member.is_active:
            logger.info(
                "approver_unresolved",
                extra={
                    "approval_level": spec.level,
                    "is_required": spec.is_required,
                    "requester_id": requester.member_id,
                    "inactive": member is not None,
                },
            )
            return None
        if not spec.can_delegate:
            return ResolvedApprover(
                approver_id=member.member_id,
                approver_email=member.email.lower(),
                approver_name=member.display_name,
            )
        return self._apply_delegation(member, requester, entity_type, as_of)

    def resolve_levels(
        self,
        levels: Sequence[LevelSpec],
        requester: DirectoryMember,
        entity_type: str,
        as_of: datetime,
    ) -> list[ResolvedLevel]:
        return [
            ResolvedLevel(spec=lv, approver=self.resolve(lv, requester, entity_type, as_of))
            for lv in levels
        ]
