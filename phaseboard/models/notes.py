"""
Phaseboard
Project reference material: meeting notes and reference URLs.
"""

from phaseboard.models import db
from phaseboard.models.base import utcnow


NOTE_TYPES = {"meeting", "phone", "memo"}


class MeetingNote(db.Model):
    """Minutes of a meeting or a phone call memo attached to a project."""

    __tablename__ = "meeting_notes"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    title = db.Column(db.String(300), nullable=False)
    content = db.Column(db.Text, nullable=True)
    note_type = db.Column(db.String(20), nullable=False, default="meeting", comment="meeting | phone | memo")
    location = db.Column(db.String(200), nullable=True)
    participants = db.Column(db.Text, nullable=True)
    contact_person = db.Column(db.String(200), nullable=True)
    created_by = db.Column(
        db.Integer, db.ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True,
    )
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "title": self.title,
            "content": self.content,
            "note_type": self.note_type,
            "location": self.location,
            "participants": self.participants,
            "contact_person": self.contact_person,
            "created_by": self.created_by,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<MeetingNote {self.id}: {self.title[:40]}>"


class ProjectUrl(db.Model):
    __tablename__ = "project_urls"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    title = db.Column(db.String(300), nullable=False)
    url = db.Column(db.String(2000), nullable=False)
    description = db.Column(db.Text, nullable=True)
    created_by = db.Column(
        db.Integer, db.ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True,
    )
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "title": self.title,
            "url": self.url,
            "description": self.description,
            "created_by": self.created_by,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
