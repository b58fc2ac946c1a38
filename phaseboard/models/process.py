"""
Phaseboard
Process (phase) domain models.

Models:
    - Process:              a phase of a project with its own completion percentage
    - ProcessDependency:    "process_id depends on depends_on_id" finish-to-start edge
    - ProcessTemplate:      reusable, named snapshot of a project's process list
    - ProcessTemplateItem:  one process entry inside a template

Architecture:
    Project ──1:N──▶ Process ──N:M──▶ Process  (via ProcessDependency)
    Project ──1:N──▶ ProcessTemplate ──1:N──▶ ProcessTemplateItem

Lifecycle:
    Process status:  in-progress ⇄ done   (no terminal state)
    percentage == 100  ⇔  status == "done"
"""

from phaseboard.models import db
from phaseboard.models.base import STATUS_IN_PROGRESS, VersionedMixin, utcnow


PERCENTAGE_MIN = 0
PERCENTAGE_MAX = 100


# ── Cycle Detection ──────────────────────────────────────────────────────────


def validate_no_cycle(session, process_id, new_depends_on_id):
    """
    Check that adding "process_id depends on new_depends_on_id" keeps the graph acyclic.

    Walks the prerequisite chain of new_depends_on_id (iterative DFS over
    existing edges). If process_id is reachable, the new edge would close a
    loop. Returns True if safe, False if a cycle (or self-edge) is found.
    """
    if process_id == new_depends_on_id:
        return False

    visited = set()
    stack = [new_depends_on_id]

    while stack:
        current = stack.pop()
        if current == process_id:
            return False
        if current in visited:
            continue
        visited.add(current)

        prereqs = (
            session.query(ProcessDependency.depends_on_id)
            .filter(ProcessDependency.process_id == current)
            .all()
        )
        for (prereq_id,) in prereqs:
            stack.append(prereq_id)

    return True


# ═════════════════════════════════════════════════════════════════════════════
# 1. Process
# ═════════════════════════════════════════════════════════════════════════════


class Process(VersionedMixin, db.Model):
    """A phase of a project. Tasks may be grouped under it."""

    __tablename__ = "processes"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    title = db.Column(db.String(300), nullable=False)
    description = db.Column(db.Text, nullable=True)
    status = db.Column(
        db.String(20), nullable=False, default=STATUS_IN_PROGRESS,
        comment="in-progress | done",
    )
    percentage = db.Column(db.Integer, nullable=False, default=0)
    # Percentage held before the last switch to done; restored on reopen.
    percentage_before_done = db.Column(db.Integer, nullable=True)
    order_index = db.Column(db.Integer, nullable=False, default=0)
    duration_days = db.Column(db.Integer, nullable=False, default=1)
    template_id = db.Column(
        db.Integer, db.ForeignKey("process_templates.id", ondelete="SET NULL"),
        nullable=True,
    )
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False,
        default=utcnow, onupdate=utcnow,
    )

    __table_args__ = (
        db.CheckConstraint("status IN ('in-progress','done')", name="ck_process_status"),
        db.CheckConstraint("percentage >= 0 AND percentage <= 100", name="ck_process_percentage_range"),
        db.CheckConstraint("duration_days >= 0", name="ck_process_duration"),
    )

    # Both directions cascade so deleting a process removes every incident edge.
    dependencies = db.relationship(
        "ProcessDependency",
        foreign_keys="ProcessDependency.process_id",
        backref="process",
        lazy="dynamic",
        cascade="all, delete-orphan",
    )
    dependents = db.relationship(
        "ProcessDependency",
        foreign_keys="ProcessDependency.depends_on_id",
        backref="depends_on",
        lazy="dynamic",
        cascade="all, delete-orphan",
    )
    tasks = db.relationship("Task", backref="process", lazy="dynamic")

    def to_dict(self, include_tasks=False, include_dependencies=False):
        result = {
            "id": self.id,
            "project_id": self.project_id,
            "title": self.title,
            "description": self.description,
            "status": self.status,
            "percentage": self.percentage,
            "order_index": self.order_index,
            "duration_days": self.duration_days,
            "template_id": self.template_id,
            "version": self.version,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_tasks:
            from phaseboard.models.task import Task
            result["tasks"] = [
                t.to_dict(include_subtasks=True)
                for t in self.tasks.filter(Task.parent_task_id.is_(None)).order_by(Task.id)
            ]
        if include_dependencies:
            result["dependencies"] = [d.to_dict() for d in self.dependencies]
        return result

    def __repr__(self):
        return f"<Process {self.id}: {self.title[:40]} [{self.status} {self.percentage}%]>"


# ═════════════════════════════════════════════════════════════════════════════
# 2. ProcessDependency
# ═════════════════════════════════════════════════════════════════════════════


class ProcessDependency(db.Model):
    """
    Finish-to-start edge: ``process_id`` starts after ``depends_on_id`` finishes.
    ``duration_days`` is the lag shown on the diagram edge; no dates are derived from it.
    """

    __tablename__ = "process_dependencies"

    id = db.Column(db.Integer, primary_key=True)
    # Copied from the dependent process; lets change events route by project.
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    process_id = db.Column(
        db.Integer, db.ForeignKey("processes.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    depends_on_id = db.Column(
        db.Integer, db.ForeignKey("processes.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    duration_days = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        db.UniqueConstraint("process_id", "depends_on_id", name="uq_process_dep"),
        db.CheckConstraint("process_id != depends_on_id", name="ck_process_dep_no_self_loop"),
        db.CheckConstraint("duration_days >= 1", name="ck_process_dep_duration"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "process_id": self.process_id,
            "depends_on_id": self.depends_on_id,
            "duration_days": self.duration_days,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<ProcessDependency {self.depends_on_id} → {self.process_id} ({self.duration_days}d)>"


# ═════════════════════════════════════════════════════════════════════════════
# 3. ProcessTemplate
# ═════════════════════════════════════════════════════════════════════════════


class ProcessTemplate(db.Model):
    __tablename__ = "process_templates"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    items = db.relationship(
        "ProcessTemplateItem", backref="template", lazy="dynamic",
        cascade="all, delete-orphan", order_by="ProcessTemplateItem.order_index",
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


class ProcessTemplateItem(db.Model):
    __tablename__ = "process_template_items"

    id = db.Column(db.Integer, primary_key=True)
    template_id = db.Column(
        db.Integer, db.ForeignKey("process_templates.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    title = db.Column(db.String(300), nullable=False)
    description = db.Column(db.Text, nullable=True)
    order_index = db.Column(db.Integer, nullable=False, default=0)
    duration_days = db.Column(db.Integer, nullable=False, default=1)

    def to_dict(self):
        return {
            "id": self.id,
            "template_id": self.template_id,
            "title": self.title,
            "description": self.description,
            "order_index": self.order_index,
            "duration_days": self.duration_days,
        }
