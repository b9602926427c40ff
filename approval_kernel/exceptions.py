"""
Typed exception hierarchy for the approval engine.

Every error has a TYPED exception class (catch by type, not message), a
class-level ``code`` (machine-readable, API-safe) and carries its context
as attributes, so handlers and the structured log formatter never parse
message strings.

    ApprovalEngineError (base)
    |
    +-- PolicyError
    |   +-- NoApplicableWorkflowError
    |   +-- InvalidPolicyDefinitionError
    |   +-- DuplicateDefaultWorkflowError
    |   +-- PolicyNotFoundError
    |
    +-- ResolutionError
    |   +-- RequiredApproverUnresolvedError
    |   +-- EscalationTargetUnresolvedError
    |
    +-- EntityError
    |   +-- EntityNotFoundError
    |   +-- UnknownEntityTypeError
    |   +-- EntityNotSubmittableError
    |
    +-- TransitionError
    |   +-- InvalidLevelTransitionError
    |
    +-- AuthorizationError
        +-- UnauthorizedApproverError
            +-- SelfApprovalError

Category        | Code                           | When Raised
----------------|--------------------------------|----------------------------------------
Policy          | NO_APPLICABLE_WORKFLOW         | No matrix, role or default workflow
                | INVALID_POLICY_DEFINITION      | Workflow/matrix fails validation
                | DUPLICATE_DEFAULT_WORKFLOW     | Second active default per entity type
                | POLICY_NOT_FOUND               | Policy ID doesn't exist
----------------|--------------------------------|----------------------------------------
Resolution      | REQUIRED_APPROVER_UNRESOLVED   | Required level has no approver
                | ESCALATION_TARGET_UNRESOLVED   | Breached level has nobody to escalate to
----------------|--------------------------------|----------------------------------------
Entity          | ENTITY_NOT_FOUND               | Entity ID doesn't exist in its store
                | UNKNOWN_ENTITY_TYPE            | No store registered for entity type
                | ENTITY_NOT_SUBMITTABLE         | Entity already carries an instance
----------------|--------------------------------|----------------------------------------
Transition      | INVALID_LEVEL_TRANSITION       | Stale/duplicate action, non-current level
----------------|--------------------------------|----------------------------------------
Authorization   | UNAUTHORIZED_APPROVER          | Actor is not the resolved approver
                | SELF_APPROVAL_FORBIDDEN        | Requester acting on own request

Handling: ``TransitionError`` and ``AuthorizationError`` are recoverable --
the operation is rejected and nothing was mutated.  ``PolicyError`` and
``ResolutionError`` are fatal to the submission that raised them.
"""


class ApprovalEngineError(Exception):
    """
    Base exception for all approval engine errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "APPROVAL_ENGINE_ERROR"


# Policy-related exceptions


class PolicyError(ApprovalEngineError):
    """Base exception for policy store errors."""

    code: str = "POLICY_ERROR"


class NoApplicableWorkflowError(PolicyError):
    """No matrix, role-specific workflow or default workflow applies."""

    code: str = "NO_APPLICABLE_WORKFLOW"

    def __init__(self, entity_type: str, requester_role: str | None = None):
        self.entity_type = entity_type
        self.requester_role = requester_role
        super().__init__(
            f"No applicable approval workflow for entity type '{entity_type}'"
            + (f" (requester role '{requester_role}')" if requester_role else "")
        )


class InvalidPolicyDefinitionError(PolicyError):
    """A workflow or matrix definition failed validation."""

    code: str = "INVALID_POLICY_DEFINITION"

    def __init__(self, name: str, errors: list[str]):
        self.name = name
        self.errors = errors
        super().__init__(
            f"Invalid policy definition '{name}': {'; '.join(errors)}"
        )


class DuplicateDefaultWorkflowError(PolicyError):
    """An active default workflow already exists for the entity type."""

    code: str = "DUPLICATE_DEFAULT_WORKFLOW"

    def __init__(self, entity_type: str, existing_id: str):
        self.entity_type = entity_type
        self.existing_id = existing_id
        super().__init__(
            f"Entity type '{entity_type}' already has an active default "
            f"workflow: {existing_id}"
        )


class PolicyNotFoundError(PolicyError):
    """Policy record with given ID was not found."""

    code: str = "POLICY_NOT_FOUND"

    def __init__(self, policy_kind: str, policy_id: str):
        self.policy_kind = policy_kind
        self.policy_id = policy_id
        super().__init__(f"{policy_kind} not found: {policy_id}")


# Resolution-related exceptions


class ResolutionError(ApprovalEngineError):
    """Base exception for approver resolution errors."""

    code: str = "RESOLUTION_ERROR"


class RequiredApproverUnresolvedError(ResolutionError):
    """A required level has no resolvable approver; instantiation fails."""

    code: str = "REQUIRED_APPROVER_UNRESOLVED"

    def __init__(self, level: int, approver_type: str, requester_id: str):
        self.level = level
        self.approver_type = approver_type
        self.requester_id = requester_id
        super().__init__(
            f"Required approver not found for level {level} "
            f"({approver_type}) of requester {requester_id}"
        )


class EscalationTargetUnresolvedError(ResolutionError):
    """Nobody could be resolved to receive an SLA escalation."""

    code: str = "ESCALATION_TARGET_UNRESOLVED"

    def __init__(self, entity_id: str, escalate_to: str):
        self.entity_id = entity_id
        self.escalate_to = escalate_to
        super().__init__(
            f"No escalation target '{escalate_to}' resolvable for {entity_id}"
        )


# Entity-related exceptions


class EntityError(ApprovalEngineError):
    """Base exception for business entity errors."""

    code: str = "ENTITY_ERROR"


class EntityNotFoundError(EntityError):
    """Business entity with given ID was not found."""

    code: str = "ENTITY_NOT_FOUND"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} not found: {entity_id}")


class UnknownEntityTypeError(EntityError):
    """No entity store is registered for the entity type."""

    code: str = "UNKNOWN_ENTITY_TYPE"

    def __init__(self, entity_type: str, available: tuple[str, ...] = ()):
        self.entity_type = entity_type
        self.available = available
        super().__init__(
            f"No entity store registered for '{entity_type}'. "
            f"Available: {list(available)}"
        )


class EntityNotSubmittableError(EntityError):
    """Entity already carries an approval instance or is finalized."""

    code: str = "ENTITY_NOT_SUBMITTABLE"

    def __init__(self, entity_type: str, entity_id: str, status: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.status = status
        super().__init__(
            f"{entity_type} {entity_id} cannot be submitted in status '{status}'"
        )


# Transition-related exceptions


class TransitionError(ApprovalEngineError):
    """Base exception for state machine errors."""

    code: str = "TRANSITION_ERROR"


class InvalidLevelTransitionError(TransitionError):
    """
    Action on a level that is not pending or not current.

    Also raised when a conditional write loses a race: the level was
    still pending when read but no longer when written.
    """

    code: str = "INVALID_LEVEL_TRANSITION"

    def __init__(self, entity_id: str, level: int, reason: str):
        self.entity_id = entity_id
        self.level = level
        self.reason = reason
        super().__init__(
            f"Invalid transition on {entity_id} level {level}: {reason}"
        )


# Authorization-related exceptions


class AuthorizationError(ApprovalEngineError):
    """Base exception for approver authorization errors."""

    code: str = "AUTHORIZATION_ERROR"


class UnauthorizedApproverError(AuthorizationError):
    """Actor is not the resolved approver of the current level."""

    code: str = "UNAUTHORIZED_APPROVER"

    def __init__(self, entity_id: str, level: int, actor_id: str):
        self.entity_id = entity_id
        self.level = level
        self.actor_id = actor_id
        super().__init__(
            f"Actor {actor_id} is not authorized to act on {entity_id} "
            f"level {level}"
        )


class SelfApprovalError(UnauthorizedApproverError):
    """The requester attempted to approve or reject their own request."""

    code: str = "SELF_APPROVAL_FORBIDDEN"
