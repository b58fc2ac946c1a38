"""
Shared model helpers.

- ``utcnow``: timezone-aware default for timestamp columns
- Work status vocabulary shared by processes and tasks
- ``VersionedMixin``: optimistic-concurrency counter for user-editable rows
"""

from datetime import datetime, timezone

from phaseboard.core.exceptions import ValidationError, WriteConflictError
from phaseboard.models import db


def utcnow():
    return datetime.now(timezone.utc)


# ── Work status (processes + tasks) ──────────────────────────────────────────

STATUS_IN_PROGRESS = "in-progress"
STATUS_DONE = "done"

WORK_STATUSES = {STATUS_IN_PROGRESS, STATUS_DONE}

# Older clients still send "pending" for the open state.
_STATUS_ALIASES = {
    "pending": STATUS_IN_PROGRESS,
    "in_progress": STATUS_IN_PROGRESS,
}


def normalize_status(value) -> str:
    """Return the canonical work status for *value* or raise ValidationError."""
    raw = str(value or "").strip().lower()
    status = _STATUS_ALIASES.get(raw, raw)
    if status not in WORK_STATUSES:
        raise ValidationError(
            f"status must be one of: {', '.join(sorted(WORK_STATUSES))}",
            details={"status": value},
        )
    return status


# ── Optimistic concurrency ───────────────────────────────────────────────────


class VersionedMixin:
    """Adds an integer ``version`` bumped on every user-visible edit.

    Callers pass the version they last read; ``check_version`` rejects the
    write when the stored row has moved on. Derived fields (project
    progress) are written without bumping.
    """

    version = db.Column(db.Integer, nullable=False, default=1)

    def check_version(self, expected_version) -> None:
        if expected_version is None:
            return
        try:
            expected = int(expected_version)
        except (TypeError, ValueError, OverflowError):
            raise ValidationError("version must be an integer", details={"version": str(expected_version)})
        if expected != self.version:
            raise WriteConflictError(
                type(self).__name__, self.id, expected, self.version,
            )

    def bump_version(self) -> None:
        self.version = (self.version or 0) + 1
