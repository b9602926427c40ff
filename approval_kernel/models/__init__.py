"""SQLAlchemy ORM models for the approval engine."""

from approval_kernel.models.approvable import (
    ApprovableMixin,
    entity_column_values,
    level_state_from_json,
    level_state_to_json,
)
from approval_kernel.models.policy import (
    ApprovalDelegationModel,
    ApprovalMatrixModel,
    WorkflowDefinitionModel,
)
from approval_kernel.models.requests import ExpenseClaimModel, LeaveRequestModel

__all__ = [
    "ApprovableMixin",
    "entity_column_values",
    "level_state_from_json",
    "level_state_to_json",
    "ApprovalDelegationModel",
    "ApprovalMatrixModel",
    "WorkflowDefinitionModel",
    "ExpenseClaimModel",
    "LeaveRequestModel",
]
