"""
Phaseboard
Blueprint registry and shared request helpers.
"""

import logging

from flask import request
from werkzeug.exceptions import HTTPException

from phaseboard.core.exceptions import (
    AuthenticationError,
    CollaboratorFailure,
    ConflictError,
    InvalidDependencyError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
    WriteConflictError,
)
from phaseboard.utils.errors import E, api_error

logger = logging.getLogger(__name__)


def json_body():
    """Return the request's JSON object, or None when the body is not a JSON object."""
    data = request.get_json(silent=True)
    if data is None and not request.data:
        return {}
    return data if isinstance(data, dict) else None


def register_error_handlers(bp):
    """Map the service-layer exception hierarchy onto JSON error responses."""

    @bp.errorhandler(NotFoundError)
    def _handle_not_found(error: NotFoundError):
        return api_error(E.NOT_FOUND, str(error))

    @bp.errorhandler(InvalidDependencyError)
    def _handle_invalid_dependency(error: InvalidDependencyError):
        return api_error(E.INVALID_DEPENDENCY, str(error), details=error.details)

    @bp.errorhandler(ValidationError)
    def _handle_validation(error: ValidationError):
        return api_error(E.VALIDATION_RULE, str(error), details=error.details)

    @bp.errorhandler(ConflictError)
    def _handle_conflict(error: ConflictError):
        return api_error(E.CONFLICT_DUPLICATE, str(error), details={"field": error.field})

    @bp.errorhandler(WriteConflictError)
    def _handle_write_conflict(error: WriteConflictError):
        return api_error(
            E.CONFLICT_VERSION, str(error),
            details={
                "expected_version": error.expected_version,
                "current_version": error.current_version,
            },
        )

    @bp.errorhandler(CollaboratorFailure)
    def _handle_collaborator(error: CollaboratorFailure):
        return api_error(
            E.COLLABORATOR, str(error),
            details={"collaborator": error.collaborator, "operation": error.operation},
        )

    @bp.errorhandler(AuthenticationError)
    def _handle_unauthenticated(error: AuthenticationError):
        return api_error(E.UNAUTHENTICATED, str(error) or "Authentication required")

    @bp.errorhandler(PermissionDeniedError)
    def _handle_forbidden(error: PermissionDeniedError):
        return api_error(E.FORBIDDEN, str(error), details={"required_role": error.required_role})

    @bp.errorhandler(Exception)
    def _handle_unexpected(error: Exception):
        if isinstance(error, HTTPException):
            return error
        logger.exception("Unexpected error in %s endpoint=%s", bp.name, request.endpoint)
        return api_error(E.INTERNAL, "Internal server error")

    return bp
