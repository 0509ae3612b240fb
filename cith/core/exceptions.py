"""
Platform-wide exception hierarchy.

Services raise these types; the app factory registers one error handler per
type so every blueprint gets the same HTTP status codes and error bodies.

Usage:
    from cith.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="WeeklyReport", resource_id=42)
    raise ValidationError("reason is required", details={"reason": "required"})
"""


class NotFoundError(Exception):
    """Raised when a requested resource, or a link in its ownership chain, does not exist.

    Args:
        resource: Human-readable model/entity name (e.g. "CithCentre").
        resource_id: The PK that was looked up. Included in logs, not in HTTP response.
    """

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when input fails business-rule validation in the service layer.

    Always detected before any mutation. Maps to HTTP 422.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown for structured API responses.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(Exception):
    """Raised when an operation would create a duplicate unique key.

    Maps to HTTP 409.

    Args:
        resource: Model name.
        field: The unique field (or key) that would be duplicated.
        value: The conflicting value.
    """

    def __init__(self, resource: str, field: str, value: str | None = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        msg = f"{resource} with {field}={value!r} already exists"
        super().__init__(msg)


class StateConflictError(Exception):
    """Raised when a transition's precondition no longer holds.

    Either the resource is in the wrong status, or another actor changed it
    between the read and the conditional write. Clients should refresh the
    resource before retrying. Maps to HTTP 409.
    """

    def __init__(self, resource: str, resource_id: int | None, current: str | None, message: str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        self.current_status = current
        super().__init__(message or f"{resource} id={resource_id} cannot transition from status={current!r}")


class AuthorizationError(Exception):
    """Raised when the authorization gate denies an action.

    The caller only ever sees a generic denial. ``reason`` ("role", "scope",
    "inactive", "unassigned") is kept for logging and must not be rendered
    into HTTP responses. Maps to HTTP 403.
    """

    def __init__(self, action: str, reason: str | None = None) -> None:
        self.action = action
        self.reason = reason
        super().__init__("Not authorized to perform this action")


class AuthenticationError(Exception):
    """Raised when no actor identity can be established for a request. Maps to HTTP 401."""

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(message)
