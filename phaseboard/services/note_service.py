"""Meeting notes and reference URLs attached to a project."""

import logging
from urllib.parse import urlparse

from phaseboard.core.exceptions import NotFoundError, ValidationError
from phaseboard.models import db
from phaseboard.models.notes import NOTE_TYPES, MeetingNote, ProjectUrl
from phaseboard.models.project import Project
from phaseboard.utils.helpers import commit_or_raise, require_text

logger = logging.getLogger(__name__)

_NOTE_FIELDS = ("content", "location", "participants", "contact_person")


def _note_type(data: dict) -> str:
    note_type = data.get("note_type") or "meeting"
    if note_type not in NOTE_TYPES:
        raise ValidationError(
            f"note_type must be one of: {', '.join(sorted(NOTE_TYPES))}",
            details={"note_type": note_type},
        )
    return note_type


def _checked_url(data: dict) -> str:
    url = require_text(data, "url", max_length=2000)
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValidationError("url must be an absolute http(s) URL", details={"url": url})
    return url


# ── Meeting notes ────────────────────────────────────────────────────────────


def list_notes(project_id: int, note_type: str | None = None) -> list[MeetingNote]:
    q = MeetingNote.query.filter_by(project_id=project_id)
    if note_type:
        q = q.filter_by(note_type=note_type)
    return q.order_by(MeetingNote.created_at.desc(), MeetingNote.id.desc()).all()


def get_note(note_id: int) -> MeetingNote:
    note = db.session.get(MeetingNote, note_id)
    if not note:
        raise NotFoundError(resource="MeetingNote", resource_id=note_id)
    return note


def create_note(project: Project, data: dict, *, created_by: int | None = None) -> MeetingNote:
    note = MeetingNote(
        project_id=project.id,
        title=require_text(data, "title", max_length=300),
        note_type=_note_type(data),
        created_by=created_by,
        **{f: data.get(f) for f in _NOTE_FIELDS},
    )
    db.session.add(note)
    commit_or_raise("create meeting note", resource="MeetingNote")
    logger.info("MeetingNote created id=%s project=%s type=%s", note.id, project.id, note.note_type)
    return note


def update_note(note: MeetingNote, data: dict) -> MeetingNote:
    changes = {}
    if "title" in data:
        changes["title"] = require_text(data, "title", max_length=300)
    if "note_type" in data:
        changes["note_type"] = _note_type(data)
    for field in _NOTE_FIELDS:
        if field in data:
            changes[field] = data[field]
    for field, value in changes.items():
        setattr(note, field, value)
    commit_or_raise("update meeting note", resource="MeetingNote")
    logger.info("MeetingNote updated id=%s", note.id)
    return note


def delete_note(note: MeetingNote) -> None:
    note_id = note.id
    db.session.delete(note)
    commit_or_raise("delete meeting note", resource="MeetingNote")
    logger.info("MeetingNote deleted id=%s", note_id)


# ── Reference URLs ───────────────────────────────────────────────────────────


def list_urls(project_id: int) -> list[ProjectUrl]:
    return (
        ProjectUrl.query
        .filter_by(project_id=project_id)
        .order_by(ProjectUrl.created_at, ProjectUrl.id)
        .all()
    )


def get_url(url_id: int) -> ProjectUrl:
    link = db.session.get(ProjectUrl, url_id)
    if not link:
        raise NotFoundError(resource="ProjectUrl", resource_id=url_id)
    return link


def create_url(project: Project, data: dict, *, created_by: int | None = None) -> ProjectUrl:
    link = ProjectUrl(
        project_id=project.id,
        title=require_text(data, "title", max_length=300),
        url=_checked_url(data),
        description=data.get("description"),
        created_by=created_by,
    )
    db.session.add(link)
    commit_or_raise("create project url", resource="ProjectUrl")
    logger.info("ProjectUrl created id=%s project=%s", link.id, project.id)
    return link


def update_url(link: ProjectUrl, data: dict) -> ProjectUrl:
    changes = {}
    if "title" in data:
        changes["title"] = require_text(data, "title", max_length=300)
    if "url" in data:
        changes["url"] = _checked_url(data)
    if "description" in data:
        changes["description"] = data.get("description")
    for field, value in changes.items():
        setattr(link, field, value)
    commit_or_raise("update project url", resource="ProjectUrl")
    logger.info("ProjectUrl updated id=%s", link.id)
    return link


def delete_url(link: ProjectUrl) -> None:
    url_id = link.id
    db.session.delete(link)
    commit_or_raise("delete project url", resource="ProjectUrl")
    logger.info("ProjectUrl deleted id=%s", url_id)
