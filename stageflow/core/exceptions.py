"""
Workflow-wide exception hierarchy.

Every service in the engine raises one of these types and nothing else
crosses the engine boundary: raw SQLAlchemy errors are wrapped into
StoreError by ``stageflow.utils.helpers.atomic`` before they reach the
caller.

Each class carries a machine-readable ``code`` and the HTTP status a
request layer is expected to map it to. The engine itself never builds
HTTP responses.

Usage:
    from stageflow.core.exceptions import NotFoundError, InvalidStateError

    raise NotFoundError(resource="Project", resource_id=project_id)
    raise InvalidStateError("Status change request is already APPROVED")
"""


class WorkflowError(Exception):
    """Base class for every error the workflow engine returns."""

    code = "ERR_WORKFLOW"
    http_status = 400


class NotFoundError(WorkflowError):
    """Raised when a referenced project, stage, response or request does not exist.

    Args:
        resource: Human-readable model/entity name (e.g. "Project", "Stage").
        resource_id: The PK that was looked up. Included in logs and message.
    """

    code = "ERR_NOT_FOUND"
    http_status = 404

    def __init__(self, resource: str, resource_id: str | int | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ValidationError(WorkflowError):
    """Raised when input is well-formed but violates a business rule.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown. Keys are field names.
    """

    code = "ERR_VALIDATION_INVALID"
    http_status = 422

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(WorkflowError):
    """Raised when an operation would create a duplicate of a unique record.

    Args:
        resource: Model name.
        field: The unique field that would be duplicated.
        value: The conflicting value.
    """

    code = "ERR_CONFLICT_DUPLICATE"
    http_status = 409

    def __init__(self, resource: str, field: str, value: str | None = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        super().__init__(f"{resource} with {field}={value!r} already exists")


class InvalidStateError(WorkflowError):
    """Raised when the entity's current state forbids the operation.

    Examples: a terminal status-change request, a cancelled project.
    """

    code = "ERR_CONFLICT_STATE"
    http_status = 409


class UnauthorizedError(WorkflowError):
    """Raised when the actor lacks the specific authority the operation needs.

    Args:
        actor_id: Who attempted the action.
        action: Short name of the operation that was refused.
    """

    code = "ERR_FORBIDDEN"
    http_status = 403

    def __init__(self, actor_id: str | None, action: str) -> None:
        self.actor_id = actor_id
        self.action = action
        super().__init__(f"User {actor_id} is not allowed to perform {action}")


class WorkflowIntegrityError(WorkflowError):
    """Raised when an invariant violation is detected mid-transaction.

    Always fatal to the current operation and always rolled back. The
    store is never repaired silently.
    """

    code = "ERR_INTEGRITY"
    http_status = 500


class StoreError(WorkflowError):
    """Raised when the underlying transactional store fails.

    Args:
        operation: Workflow operation that was running (e.g. "advance_stage").
        entity_type: Entity the operation was writing.
        original: The underlying SQLAlchemy exception, kept unmodified.
    """

    code = "ERR_DATABASE"
    http_status = 500

    def __init__(self, operation: str, entity_type: str, original: Exception) -> None:
        self.operation = operation
        self.entity_type = entity_type
        self.original = original
        super().__init__(f"{operation} failed on {entity_type}: {original}")
