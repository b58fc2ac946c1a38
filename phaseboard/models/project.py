"""
Phaseboard
Project domain models.

Models:
    - Profile:            a member identity (mirrors the hosted auth user)
    - ContractorCompany:  company a project is contracted to
    - Project:            top-level container; ``progress`` is a persisted roll-up
    - ProjectMember:      role-based membership of a profile in a project

Architecture:
    Project ──1:N──▶ Process ──1:N──▶ Task ──1:N──▶ Task (subtasks)
    Project ──1:N──▶ MeetingNote, ProjectUrl, ProcessTemplate, TaskTemplate
    Project ──N:M──▶ Profile  (via ProjectMember)
"""

from phaseboard.models import db
from phaseboard.models.base import VersionedMixin, utcnow


MEMBER_ROLES = {"owner", "editor", "viewer"}

# How project.progress is rolled up (see services.progress_service).
PROGRESS_POLICY_WEIGHTED = "completed_weighted"
PROGRESS_POLICY_TASK_RATIO = "task_ratio"
PROGRESS_POLICIES = {PROGRESS_POLICY_WEIGHTED, PROGRESS_POLICY_TASK_RATIO}

# Role hierarchy: owner > editor > viewer
MEMBER_ROLE_HIERARCHY = {
    "owner": {"owner", "editor", "viewer"},
    "editor": {"editor", "viewer"},
    "viewer": {"viewer"},
}


def role_satisfies(role: str | None, minimum_role: str) -> bool:
    """Return True if *role* grants at least *minimum_role*."""
    return minimum_role in MEMBER_ROLE_HIERARCHY.get(role or "", set())


class Profile(db.Model):
    """A person who can own projects and be assigned tasks."""

    __tablename__ = "profiles"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), nullable=False, unique=True, index=True)
    full_name = db.Column(db.String(200), nullable=True)
    avatar_url = db.Column(db.String(500), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "email": self.email,
            "full_name": self.full_name,
            "avatar_url": self.avatar_url,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Profile {self.id}: {self.email}>"


class ContractorCompany(db.Model):
    __tablename__ = "contractor_companies"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False, unique=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class Project(VersionedMixin, db.Model):
    """A construction/design project tracked by phases and tasks."""

    __tablename__ = "projects"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(30), nullable=True, default="active")
    progress = db.Column(
        db.Integer, nullable=False, default=0,
        comment="Derived 0-100 roll-up, rewritten by progress_service on every status change",
    )
    progress_policy = db.Column(
        db.String(30), nullable=False, default=PROGRESS_POLICY_WEIGHTED,
        comment="completed_weighted | task_ratio",
    )
    design_period = db.Column(db.String(100), nullable=True)
    amount_excl_tax = db.Column(db.Numeric(14, 2), nullable=True)
    amount_incl_tax = db.Column(db.Numeric(14, 2), nullable=True)
    contractor_company_id = db.Column(
        db.Integer, db.ForeignKey("contractor_companies.id", ondelete="SET NULL"),
        nullable=True,
    )
    owner_id = db.Column(
        db.Integer, db.ForeignKey("profiles.id", ondelete="RESTRICT"),
        nullable=False, index=True,
    )
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False,
        default=utcnow, onupdate=utcnow,
    )

    __table_args__ = (
        db.CheckConstraint("progress >= 0 AND progress <= 100", name="ck_project_progress_range"),
        db.CheckConstraint(
            "progress_policy IN ('completed_weighted','task_ratio')",
            name="ck_project_progress_policy",
        ),
    )

    processes = db.relationship(
        "Process", backref="project", lazy="dynamic",
        cascade="all, delete-orphan", order_by="Process.order_index",
    )
    tasks = db.relationship(
        "Task", backref="project", lazy="dynamic", cascade="all, delete-orphan",
    )
    members = db.relationship(
        "ProjectMember", backref="project", lazy="dynamic", cascade="all, delete-orphan",
    )
    notes = db.relationship(
        "MeetingNote", backref="project", lazy="dynamic", cascade="all, delete-orphan",
    )
    urls = db.relationship(
        "ProjectUrl", backref="project", lazy="dynamic", cascade="all, delete-orphan",
    )
    templates = db.relationship(
        "ProcessTemplate", backref="project", lazy="dynamic", cascade="all, delete-orphan",
    )
    task_templates = db.relationship(
        "TaskTemplate", backref="project", lazy="dynamic", cascade="all, delete-orphan",
    )
    owner = db.relationship("Profile", foreign_keys=[owner_id])
    contractor_company = db.relationship("ContractorCompany")

    def to_dict(self, include_children=False):
        result = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "status": self.status,
            "progress": self.progress,
            "progress_policy": self.progress_policy,
            "design_period": self.design_period,
            "amount_excl_tax": float(self.amount_excl_tax) if self.amount_excl_tax is not None else None,
            "amount_incl_tax": float(self.amount_incl_tax) if self.amount_incl_tax is not None else None,
            "contractor_company_id": self.contractor_company_id,
            "contractor_company": self.contractor_company.name if self.contractor_company else None,
            "owner_id": self.owner_id,
            "version": self.version,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_children:
            result["processes"] = [p.to_dict(include_tasks=True) for p in self.processes]
            result["members"] = [m.to_dict() for m in self.members]
        return result

    def __repr__(self):
        return f"<Project {self.id}: {self.title[:40]} ({self.progress}%)>"


class ProjectMember(db.Model):
    __tablename__ = "project_members"

    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), primary_key=True,
    )
    profile_id = db.Column(
        db.Integer, db.ForeignKey("profiles.id", ondelete="CASCADE"), primary_key=True,
    )
    role = db.Column(db.String(20), nullable=False, default="editor", comment="owner | editor | viewer")
    joined_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        db.CheckConstraint("role IN ('owner','editor','viewer')", name="ck_project_member_role"),
    )

    profile = db.relationship("Profile")

    def to_dict(self):
        return {
            "project_id": self.project_id,
            "profile_id": self.profile_id,
            "role": self.role,
            "full_name": self.profile.full_name if self.profile else None,
            "email": self.profile.email if self.profile else None,
            "joined_at": self.joined_at.isoformat() if self.joined_at else None,
        }

    def __repr__(self):
        return f"<ProjectMember project={self.project_id} profile={self.profile_id} [{self.role}]>"
