"""
Module: approval_kernel.models.requests
Responsibility: Concrete business entities that ship with the engine: leave
    requests and expense claims.  Other entity types plug in by defining a
    model with ``ApprovableMixin`` and registering a store for it.

Architecture position: Kernel > Models.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from sqlalchemy import Date, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from approval_kernel.db.base import TrackedBase
from approval_kernel.domain.policy import EntityType, RequestContext
from approval_kernel.models.approvable import ApprovableMixin


class LeaveRequestModel(ApprovableMixin, TrackedBase):
    """Leave request.  Balances are computed elsewhere."""

    __tablename__ = "leave_requests"

    entity_type = EntityType.LEAVE.value

    leave_type: Mapped[str] = mapped_column(String(50), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    number_of_days: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False)
    reason: Mapped[str] = mapped_column(Text, default="", nullable=False)
    department_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    designation: Mapped[str | None] = mapped_column(String(100), nullable=True)
    requester_role: Mapped[str | None] = mapped_column(String(50), nullable=True)

    def __repr__(self) -> str:
        return f"<LeaveRequest {self.id} {self.leave_type} {self.number_of_days}d {self.status}>"

    def approval_context(self) -> RequestContext:
        return RequestContext(
            leave_type=self.leave_type,
            number_of_days=self.number_of_days,
            department_id=self.department_id,
            designation=self.designation,
            requester_role=self.requester_role,
        )


class ExpenseClaimModel(ApprovableMixin, TrackedBase):
    """Expense claim."""

    __tablename__ = "expense_claims"

    entity_type = EntityType.EXPENSE.value

    category: Mapped[str] = mapped_column(String(50), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="USD", nullable=False)
    description: Mapped[str] = mapped_column(Text, default="", nullable=False)
    department_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    designation: Mapped[str | None] = mapped_column(String(100), nullable=True)
    requester_role: Mapped[str | None] = mapped_column(String(50), nullable=True)

    def __repr__(self) -> str:
        return f"<ExpenseClaim {self.id} {self.amount} {self.currency} {self.status}>"

    def approval_context(self) -> RequestContext:
        return RequestContext(
            amount=self.amount,
            department_id=self.department_id,
            designation=self.designation,
            requester_role=self.requester_role,
        )
