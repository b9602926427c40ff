"""
approval_services.directory -- Employee directory collaborator.

Responsibility:
    The lookups the approver resolver and escalation monitor need from the
    tenant's user store.  The engine never owns people data; hosts provide
    an ``EmployeeDirectory`` implementation.

Architecture position:
    Services -- collaborator protocol plus an in-memory reference
    implementation used by tests, scripts and embedding hosts.

Invariants enforced:
    - Role and department lookups only return active members.
    - Lookups are deterministic: the first matching member in
      registration order wins.
    - Emails compare case-insensitively.
    - ``exclude_id`` skips one member, so a requester is never handed
      their own request by a role or department lookup.
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping, Protocol, Sequence

from approval_kernel.domain.people import DirectoryMember
from approval_kernel.logging_config import get_logger

logger = get_logger("services.directory")

DEFAULT_HEAD_ROLES: tuple[str, ...] = ("manager", "admin", "hr")


class EmployeeDirectory(Protocol):
    """Read-only people lookups for one tenant."""

    def find_by_id(self, member_id: str) -> DirectoryMember | None:
        ...

    def find_by_email(self, email: str) -> DirectoryMember | None:
        ...

    def find_manager_of(self, member_id: str) -> DirectoryMember | None:
        """The member's declared reporting manager."""
        ...

    def find_by_role(
        self, role: str, exclude_id: str | None = None,
    ) -> DirectoryMember | None:
        """Any active member holding ``role`` other than ``exclude_id``."""
        ...

    def find_department_head(
        self, department_id: str, exclude_id: str | None = None,
    ) -> DirectoryMember | None:
        ...


class InMemoryEmployeeDirectory:
    """Dictionary-backed directory.

    ``head_roles`` are the roles eligible to act as department head.
    """

    def __init__(
        self,
        members: Iterable[DirectoryMember] = (),
        head_roles: Sequence[str] = DEFAULT_HEAD_ROLES,
    ) -> None:
        self._by_id: dict[str, DirectoryMember] = {}
        self._head_roles = tuple(head_roles)
        for member in members:
            self.add(member)

    @classmethod
    def from_records(
        cls,
        records: Iterable[Mapping[str, Any]],
        head_roles: Sequence[str] = DEFAULT_HEAD_ROLES,
    ) -> InMemoryEmployeeDirectory:
        """Build from plain mappings (YAML or JSON exports of the user store)."""
        fields = set(DirectoryMember.__dataclass_fields__)
        members = []
        for record in records:
            unknown = set(record) - fields
            if unknown:
                raise ValueError(f"Unknown directory member fields: {sorted(unknown)}")
            members.append(DirectoryMember(**record))
        return cls(members, head_roles)

    def add(self, member: DirectoryMember) -> DirectoryMember:
        self._by_id[member.member_id] = member
        return member

    def members(self) -> tuple[DirectoryMember, ...]:
        return tuple(self._by_id.values())

    def find_by_id(self, member_id: str) -> DirectoryMember | None:
        return self._by_id.get(member_id)

    def find_by_email(self, email: str) -> DirectoryMember | None:
        wanted = email.lower()
        for member in self._by_id.values():
            if member.email.lower() == wanted:
                return member
        return None

    def find_manager_of(self, member_id: str) -> DirectoryMember | None:
        member = self._by_id.get(member_id)
        if member is None:
            logger.debug("directory_member_not_found", extra={"member_id": member_id})
            return None
        if member.manager_id:
            manager = self._by_id.get(member.manager_id)
            if manager is not None:
                return manager
        if member.manager_email:
            return self.find_by_email(member.manager_email)
        return None

    def find_by_role(
        self, role: str, exclude_id: str | None = None,
    ) -> DirectoryMember | None:
        for member in self._by_id.values():
            if member.member_id == exclude_id:
                continue
            if member.is_active and member.role == role:
                return member
        return None

    def find_department_head(
        self, department_id: str, exclude_id: str | None = None,
    ) -> DirectoryMember | None:
        for member in self._by_id.values():
            if member.member_id == exclude_id:
                continue
            if (
                member.is_active
                and member.department_id == department_id
                and member.role in self._head_roles
            ):
                return member
        return None
