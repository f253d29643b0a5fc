"""
Platform-wide exception hierarchy.

Services raise these; blueprints register one handler per type and get
consistent HTTP status codes everywhere.

    NotFoundError      -> 404  (project, stage, checklist item, asset request)
    InvalidStateError  -> 409  (operation not allowed in the current state)
    ConflictError      -> 409  (duplicate value or concurrent modification)
    ValidationError    -> 422  (well-formed input that breaks a business rule)

Usage:
    from agency_ops.core.exceptions import NotFoundError, InvalidStateError

    raise NotFoundError(resource="Project", resource_id=42)
    raise InvalidStateError("Sub-admin review required first", current_state="submitted")
"""


class NotFoundError(Exception):
    """Raised when a requested resource does not exist.

    Args:
        resource: Human-readable model/entity name (e.g. "Project", "Stage").
        resource_id: The identifier that was looked up. Included in logs and message.
    """

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class InvalidStateError(Exception):
    """Raised when an operation's precondition on current state is violated.

    Examples: admin approval before the sub-admin approved, sub-admin review
    before the stage was submitted, maintenance entry before Delivery approval.

    Maps to HTTP 409.

    Args:
        message: Human-readable explanation of the violated precondition.
        current_state: Optional snapshot of the state that blocked the call.
    """

    def __init__(self, message: str, current_state: str | None = None) -> None:
        self.current_state = current_state
        super().__init__(message)


class ValidationError(Exception):
    """Raised when input fails business-rule validation in the service layer.

    Distinct from HTTP 400 (malformed input, caught in blueprint): the data
    was well-formed but violated a rule (unknown decision value, bad enum).

    Maps to HTTP 422.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown for structured API responses.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(Exception):
    """Raised when a write collides with existing or concurrently changed data.

    Maps to HTTP 409.

    Args:
        resource: Model name.
        field: The field that conflicts ("version" for concurrent edits).
        value: The conflicting value.
    """

    def __init__(self, resource: str, field: str, value: str | None = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        if field == "version":
            msg = f"{resource} was modified concurrently (version={value!r}); reload and retry"
        else:
            msg = f"{resource} with {field}={value!r} already exists"
        super().__init__(msg)
