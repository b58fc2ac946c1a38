"""
Platform-wide exception hierarchy.

Services raise these types; blueprints register handlers against them once
(see ``phaseboard.blueprints.register_error_handlers``) and get the same HTTP
status codes everywhere.

Usage:
    from phaseboard.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Process", resource_id=42)
    raise ValidationError("title is required", details={"title": "required"})
"""


class NotFoundError(Exception):
    """Raised when a requested resource does not exist.

    Args:
        resource: Human-readable entity name (e.g. "Project", "Task").
        resource_id: The PK that was looked up.
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
    """Raised when input is well-formed but violates a business rule.

    Maps to HTTP 422.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown for structured API responses.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class InvalidDependencyError(ValidationError):
    """Raised when a process dependency edge would break graph integrity.

    Covers self-references, edges across projects and edges that would
    close a cycle.
    """

    def __init__(self, message: str, process_id=None, depends_on_id=None) -> None:
        self.process_id = process_id
        self.depends_on_id = depends_on_id
        super().__init__(
            message,
            details={"process_id": process_id, "depends_on_id": depends_on_id},
        )


class ConflictError(Exception):
    """Raised when an operation would duplicate a unique value.

    Maps to HTTP 409.
    """

    def __init__(self, resource: str, field: str, value: str | None = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        super().__init__(f"{resource} with {field}={value!r} already exists")


class WriteConflictError(Exception):
    """Raised when an update carries a stale version.

    The caller read ``expected_version`` but the stored row is now at
    ``current_version``; nothing was written. Maps to HTTP 409.
    """

    def __init__(
        self,
        resource: str,
        resource_id: int | None,
        expected_version: int | None,
        current_version: int | None,
    ) -> None:
        self.resource = resource
        self.resource_id = resource_id
        self.expected_version = expected_version
        self.current_version = current_version
        super().__init__(
            f"{resource} id={resource_id} was modified concurrently "
            f"(expected version {expected_version}, current {current_version})"
        )


class CollaboratorFailure(Exception):
    """Raised when the entity store (or another collaborator) rejects a call.

    The unit of work has already been rolled back when this is raised.
    Maps to HTTP 503.

    Args:
        collaborator: Which collaborator failed (e.g. "store").
        operation: What was being attempted, for logs and the response body.
    """

    def __init__(self, collaborator: str, operation: str, cause: Exception | None = None) -> None:
        self.collaborator = collaborator
        self.operation = operation
        self.cause = cause
        super().__init__(f"{collaborator} failed during {operation}")


class AuthenticationError(Exception):
    """Raised when no valid identity accompanies a request. Maps to HTTP 401."""


class PermissionDeniedError(Exception):
    """Raised when the current member's role is insufficient. Maps to HTTP 403."""

    def __init__(self, message: str = "Insufficient permissions", required_role: str | None = None) -> None:
        self.required_role = required_role
        super().__init__(message)
