"""
Phaseboard
Task domain model.

A task belongs to a project, optionally to one of its processes, and
optionally to a parent task. Only one level of nesting is allowed: a
subtask's parent is always a top-level task (enforced in task_service).

TaskTemplate snapshots a project's top-level task list so it can be
replayed into any project.
"""

from phaseboard.models import db
from phaseboard.models.base import STATUS_IN_PROGRESS, VersionedMixin, utcnow


class Task(VersionedMixin, db.Model):
    __tablename__ = "tasks"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    process_id = db.Column(
        db.Integer, db.ForeignKey("processes.id", ondelete="SET NULL"),
        nullable=True, index=True,
    )
    parent_task_id = db.Column(
        db.Integer, db.ForeignKey("tasks.id", ondelete="CASCADE"),
        nullable=True, index=True,
    )
    title = db.Column(db.String(300), nullable=False)
    description = db.Column(db.Text, nullable=True)
    status = db.Column(
        db.String(20), nullable=False, default=STATUS_IN_PROGRESS,
        comment="in-progress | done",
    )
    due_date = db.Column(db.Date, nullable=True)
    assignee_id = db.Column(
        db.Integer, db.ForeignKey("profiles.id", ondelete="SET NULL"),
        nullable=True, index=True,
    )
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False,
        default=utcnow, onupdate=utcnow,
    )

    __table_args__ = (
        db.CheckConstraint("status IN ('in-progress','done')", name="ck_task_status"),
        db.CheckConstraint(
            "parent_task_id IS NULL OR parent_task_id != id",
            name="ck_task_not_own_parent",
        ),
    )

    subtasks = db.relationship(
        "Task",
        backref=db.backref("parent", remote_side=[id]),
        lazy="dynamic",
        cascade="all, delete-orphan",
    )
    assignee = db.relationship("Profile", foreign_keys=[assignee_id])

    def to_dict(self, include_subtasks=False):
        result = {
            "id": self.id,
            "project_id": self.project_id,
            "process_id": self.process_id,
            "parent_task_id": self.parent_task_id,
            "title": self.title,
            "description": self.description,
            "status": self.status,
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "assignee_id": self.assignee_id,
            "assignee_name": self.assignee.full_name if self.assignee else None,
            "version": self.version,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_subtasks:
            result["subtasks"] = [s.to_dict() for s in self.subtasks.order_by(Task.id)]
        return result

    def __repr__(self):
        return f"<Task {self.id}: {self.title[:40]} [{self.status}]>"


class TaskTemplate(db.Model):
    __tablename__ = "task_templates"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    items = db.relationship(
        "TaskTemplateItem", backref="template", lazy="dynamic",
        cascade="all, delete-orphan", order_by="TaskTemplateItem.order_index",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "title": self.title,
            "description": self.description,
            "items": [i.to_dict() for i in self.items],
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<TaskTemplate {self.id}: {self.title[:40]}>"


class TaskTemplateItem(db.Model):
    __tablename__ = "task_template_items"

    id = db.Column(db.Integer, primary_key=True)
    template_id = db.Column(
        db.Integer, db.ForeignKey("task_templates.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    title = db.Column(db.String(300), nullable=False)
    description = db.Column(db.Text, nullable=True)
    order_index = db.Column(db.Integer, nullable=False, default=0)

    def to_dict(self):
        return {
            "id": self.id,
            "template_id": self.template_id,
            "title": self.title,
            "description": self.description,
            "order_index": self.order_index,
        }
