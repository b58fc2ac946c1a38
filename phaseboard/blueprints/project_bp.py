"""
Project Blueprint — projects, progress roll-up, members, profiles, companies.

Endpoints:
  Project:            GET/POST /projects, GET/PUT/DELETE /projects/<id>
  Progress:           GET  /projects/<id>/progress
                      POST /projects/<id>/progress/recompute
  ProjectMember:      GET/POST /projects/<id>/members
                      DELETE /projects/<id>/members/<profile_id>
  Profile:            GET/POST /profiles
  ContractorCompany:  GET/POST /contractor-companies
"""

import logging

from flask import Blueprint, jsonify, request

from phaseboard.auth import authorize_project, current_profile
from phaseboard.blueprints import json_body, register_error_handlers
from phaseboard.services import progress_service, project_service
from phaseboard.utils.errors import E, api_error
from phaseboard.utils.helpers import parse_int_field

logger = logging.getLogger(__name__)

project_bp = Blueprint("project", __name__, url_prefix="/api/v1")
register_error_handlers(project_bp)


# ═════════════════════════════════════════════════════════════════════════════
# Projects
# ═════════════════════════════════════════════════════════════════════════════


@project_bp.route("/projects", methods=["GET"])
def list_projects():
    """List projects. ``?mine=1`` restricts to the caller's memberships."""
    profile = current_profile()
    mine = request.args.get("mine", "").lower() in ("1", "true", "yes")
    profile_id = profile.id if (profile and mine) else None
    items = project_service.list_projects(profile_id=profile_id)
    return jsonify({"items": [p.to_dict() for p in items], "total": len(items)})


@project_bp.route("/projects", methods=["POST"])
def create_project():
    data = json_body()
    if data is None:
        return api_error(E.VALIDATION_INVALID, "Request body must be a JSON object")
    if not str(data.get("title") or "").strip():
        return api_error(E.VALIDATION_REQUIRED, "title is required")

    profile = current_profile()
    owner_id = profile.id if profile else parse_int_field(data, "owner_id")
    if owner_id is None:
        return api_error(E.VALIDATION_REQUIRED, "owner_id is required")

    project = project_service.create_project(data, owner_id=owner_id)
    return jsonify(project.to_dict()), 201


@project_bp.route("/projects/<int:project_id>", methods=["GET"])
def get_project(project_id):
    project = project_service.get_project(project_id)
    authorize_project(project.id, "viewer")
    include = request.args.get("include_children", "").lower() in ("1", "true", "yes")
    return jsonify(project.to_dict(include_children=include))


@project_bp.route("/projects/<int:project_id>", methods=["PUT"])
def update_project(project_id):
    project = project_service.get_project(project_id)
    authorize_project(project.id, "editor")
    data = json_body()
    if data is None:
        return api_error(E.VALIDATION_INVALID, "Request body must be a JSON object")
    if data.get("version") is None:
        return api_error(E.VALIDATION_REQUIRED, "version is required")
    project = project_service.update_project(project, data, expected_version=data["version"])
    return jsonify(project.to_dict())


@project_bp.route("/projects/<int:project_id>", methods=["DELETE"])
def delete_project(project_id):
    project = project_service.get_project(project_id)
    authorize_project(project.id, "owner")
    project_service.delete_project(project)
    return jsonify({"deleted": True, "id": project_id}), 200


# ═════════════════════════════════════════════════════════════════════════════
# Progress roll-up
# ═════════════════════════════════════════════════════════════════════════════


@project_bp.route("/projects/<int:project_id>/progress", methods=["GET"])
def get_progress(project_id):
    """Stored progress next to the freshly computed value."""
    project = project_service.get_project(project_id)
    authorize_project(project.id, "viewer")
    return jsonify(progress_service.get_progress_report(project))


@project_bp.route("/projects/<int:project_id>/progress/recompute", methods=["POST"])
def recompute_progress(project_id):
    project = project_service.get_project(project_id)
    authorize_project(project.id, "editor")
    progress = progress_service.recompute_project_progress(project)
    return jsonify({"project_id": project.id, "progress": progress})


# ═════════════════════════════════════════════════════════════════════════════
# Members
# ═════════════════════════════════════════════════════════════════════════════


@project_bp.route("/projects/<int:project_id>/members", methods=["GET"])
def list_members(project_id):
    project = project_service.get_project(project_id)
    authorize_project(project.id, "viewer")
    items = project_service.list_members(project.id)
    return jsonify({"items": [m.to_dict() for m in items], "total": len(items)})


@project_bp.route("/projects/<int:project_id>/members", methods=["POST"])
def add_member(project_id):
    project = project_service.get_project(project_id)
    authorize_project(project.id, "owner")
    data = json_body()
    if data is None:
        return api_error(E.VALIDATION_INVALID, "Request body must be a JSON object")
    member = project_service.add_member(project, data)
    return jsonify(member.to_dict()), 201


@project_bp.route("/projects/<int:project_id>/members/<int:profile_id>", methods=["DELETE"])
def remove_member(project_id, profile_id):
    project = project_service.get_project(project_id)
    authorize_project(project.id, "owner")
    project_service.remove_member(project, profile_id)
    return jsonify({"deleted": True, "profile_id": profile_id}), 200


# ═════════════════════════════════════════════════════════════════════════════
# Profiles & contractor companies
# ═════════════════════════════════════════════════════════════════════════════


@project_bp.route("/profiles", methods=["GET"])
def list_profiles():
    items = project_service.list_profiles()
    return jsonify({"items": [p.to_dict() for p in items], "total": len(items)})


@project_bp.route("/profiles", methods=["POST"])
def create_profile():
    data = json_body()
    if data is None:
        return api_error(E.VALIDATION_INVALID, "Request body must be a JSON object")
    if not str(data.get("email") or "").strip():
        return api_error(E.VALIDATION_REQUIRED, "email is required")
    profile = project_service.create_profile(data)
    return jsonify(profile.to_dict()), 201


@project_bp.route("/contractor-companies", methods=["GET"])
def list_contractor_companies():
    items = project_service.list_contractor_companies()
    return jsonify({"items": [c.to_dict() for c in items], "total": len(items)})


@project_bp.route("/contractor-companies", methods=["POST"])
def create_contractor_company():
    data = json_body()
    if data is None:
        return api_error(E.VALIDATION_INVALID, "Request body must be a JSON object")
    if not str(data.get("name") or "").strip():
        return api_error(E.VALIDATION_REQUIRED, "name is required")
    company = project_service.create_contractor_company(data)
    return jsonify(company.to_dict()), 201
