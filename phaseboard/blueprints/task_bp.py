"""
Task Blueprint — tasks and subtasks.

Endpoints:
  Task:     GET/POST /projects/<id>/tasks, GET/PUT/DELETE /tasks/<id>
            POST /tasks/<id>/status
  Subtask:  GET/POST /tasks/<id>/subtasks
  Template: GET/POST /projects/<id>/task-templates,
            POST /task-templates/<id>/apply, DELETE /task-templates/<id>

GET /projects/<id>/tasks query params:
  process_id   — only tasks of that process; "none" for ungrouped tasks
  top_level    — "1" to skip subtasks
"""

from flask import Blueprint, jsonify, request

from phaseboard.auth import authorize_project
from phaseboard.blueprints import json_body, register_error_handlers
from phaseboard.services import project_service, task_service
from phaseboard.utils.errors import E, api_error

task_bp = Blueprint("task", __name__, url_prefix="/api/v1")
register_error_handlers(task_bp)


@task_bp.route("/projects/<int:project_id>/tasks", methods=["GET"])
def list_tasks(project_id):
    project = project_service.get_project(project_id)
    authorize_project(project.id, "viewer")

    kwargs = {"top_level_only": request.args.get("top_level", "").lower() in ("1", "true", "yes")}
    raw_process = request.args.get("process_id")
    if raw_process is not None:
        if raw_process.lower() in ("none", "null", ""):
            kwargs["process_id"] = None
        else:
            try:
                kwargs["process_id"] = int(raw_process)
            except ValueError:
                return api_error(E.VALIDATION_INVALID, "process_id must be an integer or 'none'")

    items = task_service.list_tasks(project.id, **kwargs)
    include_subtasks = kwargs["top_level_only"]
    return jsonify({
        "items": [t.to_dict(include_subtasks=include_subtasks) for t in items],
        "total": len(items),
    })


@task_bp.route("/projects/<int:project_id>/tasks", methods=["POST"])
def create_task(project_id):
    project = project_service.get_project(project_id)
    authorize_project(project.id, "editor")
    data = json_body()
    if data is None:
        return api_error(E.VALIDATION_INVALID, "Request body must be a JSON object")
    if not str(data.get("title") or "").strip():
        return api_error(E.VALIDATION_REQUIRED, "title is required")

    parent = None
    if data.get("parent_task_id") is not None:
        try:
            parent = task_service.get_task(int(data["parent_task_id"]))
        except (TypeError, ValueError, OverflowError):
            return api_error(E.VALIDATION_INVALID, "parent_task_id must be an integer")

    task = task_service.create_task(project, data, parent=parent)
    return jsonify(task.to_dict()), 201


@task_bp.route("/tasks/<int:task_id>", methods=["GET"])
def get_task(task_id):
    task = task_service.get_task(task_id)
    authorize_project(task.project_id, "viewer")
    return jsonify(task.to_dict(include_subtasks=True))


@task_bp.route("/tasks/<int:task_id>", methods=["PUT"])
def update_task(task_id):
    task = task_service.get_task(task_id)
    authorize_project(task.project_id, "editor")
    data = json_body()
    if data is None:
        return api_error(E.VALIDATION_INVALID, "Request body must be a JSON object")
    if data.get("version") is None:
        return api_error(E.VALIDATION_REQUIRED, "version is required")
    task = task_service.update_task(task, data, expected_version=data["version"])
    return jsonify(task.to_dict())


@task_bp.route("/tasks/<int:task_id>", methods=["DELETE"])
def delete_task(task_id):
    task = task_service.get_task(task_id)
    authorize_project(task.project_id, "editor")
    task_service.delete_task(task)
    return jsonify({"deleted": True, "id": task_id}), 200


@task_bp.route("/tasks/<int:task_id>/status", methods=["POST"])
def set_task_status(task_id):
    """Body: {"status": "done" | "in-progress", "version"?: int}"""
    task = task_service.get_task(task_id)
    authorize_project(task.project_id, "editor")
    data = json_body()
    if data is None:
        return api_error(E.VALIDATION_INVALID, "Request body must be a JSON object")
    if not data.get("status"):
        return api_error(E.VALIDATION_REQUIRED, "status is required")
    task = task_service.set_task_status(task, data["status"], expected_version=data.get("version"))
    return jsonify({"task": task.to_dict(), "project_progress": task.project.progress})


@task_bp.route("/tasks/<int:task_id>/subtasks", methods=["GET"])
def list_subtasks(task_id):
    task = task_service.get_task(task_id)
    authorize_project(task.project_id, "viewer")
    items = task_service.list_subtasks(task)
    return jsonify({"items": [t.to_dict() for t in items], "total": len(items)})


@task_bp.route("/tasks/<int:task_id>/subtasks", methods=["POST"])
def create_subtask(task_id):
    parent = task_service.get_task(task_id)
    authorize_project(parent.project_id, "editor")
    data = json_body()
    if data is None:
        return api_error(E.VALIDATION_INVALID, "Request body must be a JSON object")
    if not str(data.get("title") or "").strip():
        return api_error(E.VALIDATION_REQUIRED, "title is required")
    task = task_service.create_task(parent.project, data, parent=parent)
    return jsonify(task.to_dict()), 201


# ═════════════════════════════════════════════════════════════════════════════
# TaskTemplate (4 routes)
# ═════════════════════════════════════════════════════════════════════════════


@task_bp.route("/projects/<int:project_id>/task-templates", methods=["GET"])
def list_templates(project_id):
    project = project_service.get_project(project_id)
    authorize_project(project.id, "viewer")
    items = task_service.list_templates(project.id)
    return jsonify({"items": [t.to_dict() for t in items], "total": len(items)})


@task_bp.route("/projects/<int:project_id>/task-templates", methods=["POST"])
def save_template(project_id):
    """Snapshot the project's top-level tasks. Body: {"title": str, "description"?: str}"""
    project = project_service.get_project(project_id)
    authorize_project(project.id, "editor")
    data = json_body()
    if data is None:
        return api_error(E.VALIDATION_INVALID, "Request body must be a JSON object")
    if not str(data.get("title") or "").strip():
        return api_error(E.VALIDATION_REQUIRED, "title is required")
    template = task_service.save_template(project, data)
    return jsonify(template.to_dict()), 201


@task_bp.route("/task-templates/<int:template_id>/apply", methods=["POST"])
def apply_template(template_id):
    """Body: {"project_id"?: int}, defaulting to the template's own project."""
    template = task_service.get_template(template_id)
    data = json_body()
    if data is None:
        return api_error(E.VALIDATION_INVALID, "Request body must be a JSON object")
    target_id = data.get("project_id") or template.project_id
    try:
        target_id = int(target_id)
    except (TypeError, ValueError, OverflowError):
        return api_error(E.VALIDATION_INVALID, "project_id must be an integer")
    project = project_service.get_project(target_id)
    authorize_project(template.project_id, "viewer")
    authorize_project(project.id, "editor")
    created = task_service.apply_template(template, project)
    return jsonify({
        "items": [t.to_dict() for t in created],
        "total": len(created),
        "project_progress": project.progress,
    }), 201


@task_bp.route("/task-templates/<int:template_id>", methods=["DELETE"])
def delete_template(template_id):
    template = task_service.get_template(template_id)
    authorize_project(template.project_id, "editor")
    task_service.delete_template(template)
    return jsonify({"deleted": True, "id": template_id}), 200
