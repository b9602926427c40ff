"""Directory member value object shared by resolvers and notifiers."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class DirectoryMember:
    """An employee or user as seen by the approval engine."""

    member_id: str
    email: str
    first_name: str = ""
    last_name: str = ""
    role: str = "employee"
    department_id: str | None = None
    designation: str | None = None
    manager_id: str | None = None
    manager_email: str | None = None
    is_active: bool = True

    @property
    def display_name(self) -> str:
        name = f"{self.first_name} {self.last_name}".strip()
        return name or self.email
