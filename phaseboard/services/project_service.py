"""Project CRUD service with membership, profile and contractor-company helpers."""

from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation

from phaseboard.core.exceptions import ConflictError, NotFoundError, ValidationError
from phaseboard.models import db
from phaseboard.models.project import (
    MEMBER_ROLES,
    PROGRESS_POLICIES,
    PROGRESS_POLICY_WEIGHTED,
    ContractorCompany,
    Profile,
    Project,
    ProjectMember,
)
from phaseboard.services.progress_service import refresh_project_progress
from phaseboard.utils.helpers import commit_or_raise, parse_int_field, require_text

logger = logging.getLogger(__name__)

_TEXT_FIELDS = ("description", "status", "design_period")
_AMOUNT_FIELDS = ("amount_excl_tax", "amount_incl_tax")


# ── Field validation ─────────────────────────────────────────────────────────


def _parse_amount(data: dict, field: str):
    value = data.get(field)
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number", details={field: value})
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        raise ValidationError(f"{field} must be a number", details={field: value})
    if not amount.is_finite():
        raise ValidationError(f"{field} must be a number", details={field: value})
    if amount < 0:
        raise ValidationError(f"{field} must be >= 0", details={field: value})
    return amount


def _parse_policy(data: dict) -> str:
    policy = data.get("progress_policy") or PROGRESS_POLICY_WEIGHTED
    if policy not in PROGRESS_POLICIES:
        raise ValidationError(
            f"progress_policy must be one of: {', '.join(sorted(PROGRESS_POLICIES))}",
            details={"progress_policy": policy},
        )
    return policy


def _resolve_company_id(data: dict):
    company_id = parse_int_field(data, "contractor_company_id")
    if company_id is not None and not db.session.get(ContractorCompany, company_id):
        raise NotFoundError(resource="ContractorCompany", resource_id=company_id)
    return company_id


# ── Projects ─────────────────────────────────────────────────────────────────


def list_projects(*, profile_id: int | None = None) -> list[Project]:
    """List projects, newest first; restricted to *profile_id*'s memberships when given."""
    query = Project.query
    if profile_id is not None:
        query = query.join(ProjectMember, ProjectMember.project_id == Project.id).filter(
            ProjectMember.profile_id == profile_id,
        )
    return query.order_by(Project.created_at.desc(), Project.id.desc()).all()


def get_project(project_id: int) -> Project:
    project = db.session.get(Project, project_id)
    if not project:
        raise NotFoundError(resource="Project", resource_id=project_id)
    return project


def create_project(data: dict, *, owner_id: int) -> Project:
    """Create a project and enrol *owner_id* as its owner member."""
    title = require_text(data, "title", max_length=200)
    if not db.session.get(Profile, owner_id):
        raise NotFoundError(resource="Profile", resource_id=owner_id)

    project = Project(
        title=title,
        description=data.get("description"),
        status=data.get("status") or "active",
        design_period=data.get("design_period"),
        amount_excl_tax=_parse_amount(data, "amount_excl_tax"),
        amount_incl_tax=_parse_amount(data, "amount_incl_tax"),
        contractor_company_id=_resolve_company_id(data),
        progress_policy=_parse_policy(data),
        progress=0,
        owner_id=owner_id,
    )
    db.session.add(project)
    db.session.flush()
    db.session.add(ProjectMember(project_id=project.id, profile_id=owner_id, role="owner"))
    commit_or_raise("create project", resource="Project")
    logger.info("Project created id=%s owner=%s", project.id, owner_id)
    return project


def update_project(project: Project, data: dict, expected_version=None) -> Project:
    """Update mutable fields. ``progress`` is derived and never written from input."""
    project.check_version(expected_version)

    changes = {}
    if "title" in data:
        changes["title"] = require_text(data, "title", max_length=200)
    for field in _TEXT_FIELDS:
        if field in data:
            changes[field] = data[field]
    for field in _AMOUNT_FIELDS:
        if field in data:
            changes[field] = _parse_amount(data, field)
    if "contractor_company_id" in data:
        changes["contractor_company_id"] = _resolve_company_id(data)
    if "progress_policy" in data:
        changes["progress_policy"] = _parse_policy(data)

    for field, value in changes.items():
        setattr(project, field, value)
    project.bump_version()
    if "progress_policy" in changes:
        refresh_project_progress(project)
    commit_or_raise("update project", resource="Project")
    logger.info("Project updated id=%s version=%s", project.id, project.version)
    return project


def delete_project(project: Project) -> None:
    """Delete a project; processes, edges, tasks, notes and members cascade."""
    project_id = project.id
    db.session.delete(project)
    commit_or_raise("delete project", resource="Project")
    logger.info("Project deleted id=%s", project_id)


# ── Members ──────────────────────────────────────────────────────────────────


def list_members(project_id: int) -> list[ProjectMember]:
    return (
        ProjectMember.query
        .filter_by(project_id=project_id)
        .order_by(ProjectMember.joined_at, ProjectMember.profile_id)
        .all()
    )


def get_member_role(project_id: int, profile_id: int | None) -> str | None:
    """Return the role of *profile_id* in the project, or None."""
    if profile_id is None:
        return None
    member = db.session.get(ProjectMember, (project_id, profile_id))
    return member.role if member else None


def add_member(project: Project, data: dict) -> ProjectMember:
    """Add a profile (by ``profile_id`` or ``email``) to the project."""
    role = data.get("role") or "editor"
    if role not in MEMBER_ROLES:
        raise ValidationError(
            f"role must be one of: {', '.join(sorted(MEMBER_ROLES))}", details={"role": role},
        )

    profile_id = parse_int_field(data, "profile_id")
    if profile_id is not None:
        profile = db.session.get(Profile, profile_id)
        if not profile:
            raise NotFoundError(resource="Profile", resource_id=profile_id)
    else:
        email = str(data.get("email") or "").strip().lower()
        if not email:
            raise ValidationError("profile_id or email is required", details={"profile_id": "required"})
        profile = Profile.query.filter_by(email=email).first()
        if not profile:
            raise NotFoundError(resource="Profile", resource_id=email)

    if db.session.get(ProjectMember, (project.id, profile.id)):
        raise ConflictError("ProjectMember", "profile_id", str(profile.id))

    member = ProjectMember(project_id=project.id, profile_id=profile.id, role=role)
    db.session.add(member)
    commit_or_raise("add project member", resource="ProjectMember")
    logger.info("ProjectMember added project=%s profile=%s role=%s", project.id, profile.id, role)
    return member


def remove_member(project: Project, profile_id: int) -> None:
    member = db.session.get(ProjectMember, (project.id, profile_id))
    if not member:
        raise NotFoundError(resource="ProjectMember", resource_id=profile_id)
    if profile_id == project.owner_id:
        raise ValidationError("The project owner cannot be removed", details={"profile_id": profile_id})
    db.session.delete(member)
    commit_or_raise("remove project member", resource="ProjectMember")
    logger.info("ProjectMember removed project=%s profile=%s", project.id, profile_id)


# ── Profiles ─────────────────────────────────────────────────────────────────


def list_profiles() -> list[Profile]:
    return Profile.query.order_by(Profile.full_name, Profile.id).all()


def get_profile(profile_id: int) -> Profile:
    profile = db.session.get(Profile, profile_id)
    if not profile:
        raise NotFoundError(resource="Profile", resource_id=profile_id)
    return profile


def create_profile(data: dict) -> Profile:
    email = require_text(data, "email", max_length=255).lower()
    if "@" not in email:
        raise ValidationError("email is not a valid address", details={"email": email})
    if Profile.query.filter_by(email=email).first():
        raise ConflictError("Profile", "email", email)
    profile = Profile(
        email=email,
        full_name=data.get("full_name"),
        avatar_url=data.get("avatar_url"),
    )
    db.session.add(profile)
    commit_or_raise("create profile", resource="Profile")
    logger.info("Profile created id=%s", profile.id)
    return profile


# ── Contractor companies ─────────────────────────────────────────────────────


def list_contractor_companies() -> list[ContractorCompany]:
    return ContractorCompany.query.order_by(ContractorCompany.name).all()


def create_contractor_company(data: dict) -> ContractorCompany:
    name = require_text(data, "name", max_length=200)
    if ContractorCompany.query.filter_by(name=name).first():
        raise ConflictError("ContractorCompany", "name", name)
    company = ContractorCompany(name=name)
    db.session.add(company)
    commit_or_raise("create contractor company", resource="ContractorCompany")
    logger.info("ContractorCompany created id=%s", company.id)
    return company
