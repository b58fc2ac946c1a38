"""Shared helpers for services and blueprints.

parse_date:       lenient date parsing (returns None on bad input)
parse_int_field:  integer coercion that raises ValidationError
commit_or_raise:  commit the unit of work or roll back and raise CollaboratorFailure
"""
import logging
import math
from datetime import date, datetime

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from phaseboard.core.exceptions import CollaboratorFailure, ConflictError, ValidationError
from phaseboard.models import db

logger = logging.getLogger(__name__)


def parse_date(value):
    """Parse a date string (ISO or YYYY/MM/DD) to a date object.

    Returns None for empty/invalid input. Supports:
    - YYYY-MM-DD (ISO format)
    - YYYY-MM-DDTHH:MM:SS (datetime ISO → .date())
    - YYYY/MM/DD (as typed into the due-date picker)
    """
    if not value:
        return None
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except (ValueError, TypeError):
        pass
    try:
        return datetime.fromisoformat(str(value)).date()
    except (ValueError, TypeError):
        pass
    try:
        return datetime.strptime(str(value), "%Y/%m/%d").date()
    except (ValueError, TypeError):
        return None


def parse_int_field(data: dict, field: str, default=None, *, minimum=None):
    """Read *field* from *data* as an int.

    Missing or null values yield *default*. Non-integers (including bools)
    and values under *minimum* raise ValidationError.
    """
    value = data.get(field)
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer", details={field: value})
    if isinstance(value, float) and not math.isfinite(value):
        raise ValidationError(f"{field} must be an integer", details={field: str(value)})
    try:
        number = int(value)
    except (TypeError, ValueError, OverflowError):
        raise ValidationError(f"{field} must be an integer", details={field: value})
    if isinstance(value, float) and value != number:
        raise ValidationError(f"{field} must be an integer", details={field: value})
    if minimum is not None and number < minimum:
        raise ValidationError(f"{field} must be >= {minimum}", details={field: value})
    return number


def require_text(data: dict, field: str, *, max_length: int | None = None) -> str:
    """Return stripped ``data[field]`` or raise ValidationError when blank/too long."""
    value = str(data.get(field) or "").strip()
    if not value:
        raise ValidationError(f"{field} is required", details={field: "required"})
    if max_length and len(value) > max_length:
        raise ValidationError(
            f"{field} must be ≤ {max_length} characters", details={field: "too_long"},
        )
    return value


# ── Database commit helper ───────────────────────────────────────────────────

def commit_or_raise(operation: str, *, resource: str | None = None):
    """Commit the current SQLAlchemy session or roll back and raise.

    IntegrityError    → ConflictError (duplicate / constraint violation)
    SQLAlchemyError   → CollaboratorFailure("store", operation)

    Usage::

        project.progress = compute_project_progress(...)
        commit_or_raise("update process status")
    """
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        logger.warning("Integrity error during %s: %s", operation, exc.orig)
        raise ConflictError(resource or "Record", "constraint", str(exc.orig)) from exc
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.exception("Store error during %s", operation)
        raise CollaboratorFailure("store", operation, exc) from exc
