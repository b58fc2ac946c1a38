"""
Note Blueprint — meeting notes and reference URLs.

Endpoints:
  MeetingNote:  GET/POST /projects/<id>/notes, GET/PUT/DELETE /notes/<id>
  ProjectUrl:   GET/POST /projects/<id>/urls, PUT/DELETE /urls/<id>
"""

from flask import Blueprint, jsonify, request

from phaseboard.auth import authorize_project, current_profile
from phaseboard.blueprints import json_body, register_error_handlers
from phaseboard.services import note_service, project_service
from phaseboard.utils.errors import E, api_error

note_bp = Blueprint("note", __name__, url_prefix="/api/v1")
register_error_handlers(note_bp)


def _author_id():
    profile = current_profile()
    return profile.id if profile else None


# ═════════════════════════════════════════════════════════════════════════════
# Meeting notes (5 routes)
# ═════════════════════════════════════════════════════════════════════════════


@note_bp.route("/projects/<int:project_id>/notes", methods=["GET"])
def list_notes(project_id):
    project = project_service.get_project(project_id)
    authorize_project(project.id, "viewer")
    items = note_service.list_notes(project.id, note_type=request.args.get("note_type"))
    return jsonify({"items": [n.to_dict() for n in items], "total": len(items)})


@note_bp.route("/projects/<int:project_id>/notes", methods=["POST"])
def create_note(project_id):
    project = project_service.get_project(project_id)
    authorize_project(project.id, "editor")
    data = json_body()
    if data is None:
        return api_error(E.VALIDATION_INVALID, "Request body must be a JSON object")
    if not str(data.get("title") or "").strip():
        return api_error(E.VALIDATION_REQUIRED, "title is required")
    note = note_service.create_note(project, data, created_by=_author_id())
    return jsonify(note.to_dict()), 201


@note_bp.route("/notes/<int:note_id>", methods=["GET"])
def get_note(note_id):
    note = note_service.get_note(note_id)
    authorize_project(note.project_id, "viewer")
    return jsonify(note.to_dict())


@note_bp.route("/notes/<int:note_id>", methods=["PUT"])
def update_note(note_id):
    note = note_service.get_note(note_id)
    authorize_project(note.project_id, "editor")
    data = json_body()
    if data is None:
        return api_error(E.VALIDATION_INVALID, "Request body must be a JSON object")
    note = note_service.update_note(note, data)
    return jsonify(note.to_dict())


@note_bp.route("/notes/<int:note_id>", methods=["DELETE"])
def delete_note(note_id):
    note = note_service.get_note(note_id)
    authorize_project(note.project_id, "editor")
    note_service.delete_note(note)
    return jsonify({"deleted": True, "id": note_id}), 200


# ═════════════════════════════════════════════════════════════════════════════
# Reference URLs (4 routes)
# ═════════════════════════════════════════════════════════════════════════════


@note_bp.route("/projects/<int:project_id>/urls", methods=["GET"])
def list_urls(project_id):
    project = project_service.get_project(project_id)
    authorize_project(project.id, "viewer")
    items = note_service.list_urls(project.id)
    return jsonify({"items": [u.to_dict() for u in items], "total": len(items)})


@note_bp.route("/projects/<int:project_id>/urls", methods=["POST"])
def create_url(project_id):
    project = project_service.get_project(project_id)
    authorize_project(project.id, "editor")
    data = json_body()
    if data is None:
        return api_error(E.VALIDATION_INVALID, "Request body must be a JSON object")
    if not str(data.get("title") or "").strip() or not str(data.get("url") or "").strip():
        return api_error(E.VALIDATION_REQUIRED, "title and url are required")
    link = note_service.create_url(project, data, created_by=_author_id())
    return jsonify(link.to_dict()), 201


@note_bp.route("/urls/<int:url_id>", methods=["PUT"])
def update_url(url_id):
    link = note_service.get_url(url_id)
    authorize_project(link.project_id, "editor")
    data = json_body()
    if data is None:
        return api_error(E.VALIDATION_INVALID, "Request body must be a JSON object")
    link = note_service.update_url(link, data)
    return jsonify(link.to_dict())


@note_bp.route("/urls/<int:url_id>", methods=["DELETE"])
def delete_url(url_id):
    link = note_service.get_url(url_id)
    authorize_project(link.project_id, "editor")
    note_service.delete_url(link)
    return jsonify({"deleted": True, "id": url_id}), 200
