"""
Approver variants (``approval_kernel.domain.approvers``).

A Level names *who* approves as one of a closed set of variants.  The
persisted form is a string tag plus optional pinned id/email/role; this
module is the only place that converts between the two, so every other
layer works with the typed variant and can ``match`` on it exhaustively.

Legacy tags written by older workflow editors (``manager``,
``company_admin``, ``finance``, ``ceo``) are folded into the canonical
variants here.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping


class ApproverType(str, Enum):
    """Persisted approver tags."""

    REPORTING_MANAGER = "reporting_manager"
    DEPARTMENT_HEAD = "department_head"
    HR = "hr"
    ADMIN = "admin"
    SPECIFIC_USER = "specific_user"
    ROLE_BASED = "role_based"


@dataclass(frozen=True)
class ReportingManager:
    """The requester's declared manager."""


@dataclass(frozen=True)
class DepartmentHead:
    """A head-eligible member of the requester's department."""


@dataclass(frozen=True)
class HR:
    """Any active member holding the HR role."""


@dataclass(frozen=True)
class Admin:
    """Any active member holding the admin role."""


@dataclass(frozen=True)
class SpecificUser:
    """A pinned person, by id and/or email."""

    approver_id: str | None = None
    approver_email: str | None = None


@dataclass(frozen=True)
class RoleBased:
    """Any active member holding the pinned role."""

    role: str


ApproverSpec = ReportingManager | DepartmentHead | HR | Admin | SpecificUser | RoleBased

_LEGACY_ALIASES: dict[str, str] = {
    "manager": ApproverType.REPORTING_MANAGER.value,
    "company_admin": ApproverType.ADMIN.value,
}

# Older editors stored functional roles directly as approver types.
_LEGACY_ROLE_TAGS = frozenset({"finance", "ceo"})


def approver_type_of(spec: ApproverSpec) -> ApproverType:
    """Return the persisted tag for a variant."""
    match spec:
        case ReportingManager():
            return ApproverType.REPORTING_MANAGER
        case DepartmentHead():
            return ApproverType.DEPARTMENT_HEAD
        case HR():
            return ApproverType.HR
        case Admin():
            return ApproverType.ADMIN
        case SpecificUser():
            return ApproverType.SPECIFIC_USER
        case RoleBased():
            return ApproverType.ROLE_BASED
    raise TypeError(f"Not an approver variant: {spec!r}")


def approver_from_record(record: Mapping[str, Any]) -> ApproverSpec:
    """Build a variant from a stored level record.

    Raises:
        ValueError: unknown approver type, or a pinned variant missing
            its id/email/role.
    """
    raw = str(record.get("approver_type") or record.get("approverType") or "").lower()
    tag = _LEGACY_ALIASES.get(raw, raw)
    approver_id = record.get("approver_id") or record.get("approverId")
    approver_email = record.get("approver_email") or record.get("approverEmail")
    approver_role = record.get("approver_role") or record.get("approverRole")

    if tag in _LEGACY_ROLE_TAGS:
        return RoleBased(role=tag)

    if tag == ApproverType.REPORTING_MANAGER.value:
        return ReportingManager()
    if tag == ApproverType.DEPARTMENT_HEAD.value:
        return DepartmentHead()
    if tag == ApproverType.HR.value:
        return HR()
    if tag == ApproverType.ADMIN.value:
        return Admin()
    if tag == ApproverType.SPECIFIC_USER.value:
        if not approver_id and not approver_email:
            raise ValueError("specific_user level requires approver_id or approver_email")
        return SpecificUser(
            approver_id=str(approver_id) if approver_id else None,
            approver_email=str(approver_email).lower() if approver_email else None,
        )
    if tag == ApproverType.ROLE_BASED.value:
        if not approver_role:
            raise ValueError("role_based level requires approver_role")
        return RoleBased(role=str(approver_role))
    raise ValueError(f"Unknown approver type: {raw!r}")


def approver_to_record(spec: ApproverSpec) -> dict[str, Any]:
    """Flatten a variant into its persisted fields."""
    record: dict[str, Any] = {"approver_type": approver_type_of(spec).value}
    if isinstance(spec, SpecificUser):
        record["approver_id"] = spec.approver_id
        record["approver_email"] = spec.approver_email
    elif isinstance(spec, RoleBased):
        record["approver_role"] = spec.role
    return record
