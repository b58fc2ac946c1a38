"""
Process Blueprint — processes, dependency graph, process templates.

Endpoints:
  Process:            GET/POST /projects/<id>/processes, GET/PUT/DELETE /processes/<id>
                      POST /processes/<id>/status
                      POST /processes/<id>/percentage
                      POST /projects/<id>/processes/reorder
  ProcessDependency:  GET/POST /projects/<id>/dependencies, DELETE /dependencies/<id>
                      GET  /projects/<id>/dependency-graph
  ProcessTemplate:    GET/POST /projects/<id>/process-templates
                      POST /process-templates/<id>/apply
                      DELETE /process-templates/<id>
"""

from flask import Blueprint, jsonify, request

from phaseboard.auth import authorize_project
from phaseboard.blueprints import json_body, register_error_handlers
from phaseboard.services import dependency_service, process_service, project_service
from phaseboard.utils.errors import E, api_error

process_bp = Blueprint("process", __name__, url_prefix="/api/v1")
register_error_handlers(process_bp)


def _body_or_error():
    data = json_body()
    if data is None:
        return None, api_error(E.VALIDATION_INVALID, "Request body must be a JSON object")
    return data, None


# ═════════════════════════════════════════════════════════════════════════════
# Process CRUD + status (8 routes)
# ═════════════════════════════════════════════════════════════════════════════


@process_bp.route("/projects/<int:project_id>/processes", methods=["GET"])
def list_processes(project_id):
    project = project_service.get_project(project_id)
    authorize_project(project.id, "viewer")
    include_tasks = request.args.get("include_tasks", "").lower() in ("1", "true", "yes")
    items = process_service.list_processes(project.id)
    return jsonify({
        "items": [p.to_dict(include_tasks=include_tasks) for p in items],
        "total": len(items),
    })


@process_bp.route("/projects/<int:project_id>/processes", methods=["POST"])
def create_process(project_id):
    project = project_service.get_project(project_id)
    authorize_project(project.id, "editor")
    data, err = _body_or_error()
    if err:
        return err
    if not str(data.get("title") or "").strip():
        return api_error(E.VALIDATION_REQUIRED, "title is required")
    process = process_service.create_process(project, data)
    return jsonify(process.to_dict()), 201


@process_bp.route("/processes/<int:process_id>", methods=["GET"])
def get_process(process_id):
    process = process_service.get_process(process_id)
    authorize_project(process.project_id, "viewer")
    return jsonify(process.to_dict(include_tasks=True, include_dependencies=True))


@process_bp.route("/processes/<int:process_id>", methods=["PUT"])
def update_process(process_id):
    process = process_service.get_process(process_id)
    authorize_project(process.project_id, "editor")
    data, err = _body_or_error()
    if err:
        return err
    if data.get("version") is None:
        return api_error(E.VALIDATION_REQUIRED, "version is required")
    process = process_service.update_process(process, data, expected_version=data["version"])
    return jsonify(process.to_dict())


@process_bp.route("/processes/<int:process_id>", methods=["DELETE"])
def delete_process(process_id):
    process = process_service.get_process(process_id)
    authorize_project(process.project_id, "editor")
    result = process_service.delete_process(process)
    return jsonify(result), 200


@process_bp.route("/processes/<int:process_id>/status", methods=["POST"])
def set_process_status(process_id):
    """Body: {"status": "done" | "in-progress", "version"?: int}"""
    process = process_service.get_process(process_id)
    authorize_project(process.project_id, "editor")
    data, err = _body_or_error()
    if err:
        return err
    if not data.get("status"):
        return api_error(E.VALIDATION_REQUIRED, "status is required")
    process = process_service.set_process_status(
        process, data["status"], expected_version=data.get("version"),
    )
    return jsonify({"process": process.to_dict(), "project_progress": process.project.progress})


@process_bp.route("/processes/<int:process_id>/percentage", methods=["POST"])
def set_process_percentage(process_id):
    """Body: {"percentage": 0-100, "version"?: int}; out-of-range values are clamped."""
    process = process_service.get_process(process_id)
    authorize_project(process.project_id, "editor")
    data, err = _body_or_error()
    if err:
        return err
    if data.get("percentage") is None:
        return api_error(E.VALIDATION_REQUIRED, "percentage is required")
    process = process_service.set_process_percentage(
        process, data["percentage"], expected_version=data.get("version"),
    )
    return jsonify({"process": process.to_dict(), "project_progress": process.project.progress})


@process_bp.route("/projects/<int:project_id>/processes/reorder", methods=["POST"])
def reorder_processes(project_id):
    """Body: {"order": [process_id, ...]}"""
    project = project_service.get_project(project_id)
    authorize_project(project.id, "editor")
    data, err = _body_or_error()
    if err:
        return err
    if "order" not in data:
        return api_error(E.VALIDATION_REQUIRED, "order is required")
    items = process_service.reorder_processes(project, data["order"])
    return jsonify({"items": [p.to_dict() for p in items], "total": len(items)})


# ═════════════════════════════════════════════════════════════════════════════
# ProcessDependency (4 routes)
# ═════════════════════════════════════════════════════════════════════════════


@process_bp.route("/projects/<int:project_id>/dependencies", methods=["GET"])
def list_dependencies(project_id):
    project = project_service.get_project(project_id)
    authorize_project(project.id, "viewer")
    items = dependency_service.list_dependencies(project.id)
    return jsonify({"items": [d.to_dict() for d in items], "total": len(items)})


@process_bp.route("/projects/<int:project_id>/dependencies", methods=["POST"])
def create_dependency(project_id):
    """Body: {"process_id": int, "depends_on_id": int, "duration_days"?: int ≥ 1}"""
    project = project_service.get_project(project_id)
    authorize_project(project.id, "editor")
    data, err = _body_or_error()
    if err:
        return err
    if data.get("process_id") is None or data.get("depends_on_id") is None:
        return api_error(E.VALIDATION_REQUIRED, "process_id and depends_on_id are required")
    try:
        process_id = int(data["process_id"])
        depends_on_id = int(data["depends_on_id"])
    except (TypeError, ValueError, OverflowError):
        return api_error(E.VALIDATION_INVALID, "process_id and depends_on_id must be integers")

    dep = dependency_service.add_dependency(
        process_id,
        depends_on_id,
        data.get("duration_days", dependency_service.DEFAULT_EDGE_DURATION_DAYS),
        project_id=project.id,
    )
    return jsonify(dep.to_dict()), 201


@process_bp.route("/dependencies/<int:dep_id>", methods=["DELETE"])
def delete_dependency(dep_id):
    dep = dependency_service.get_dependency(dep_id)
    authorize_project(dep.project_id, "editor")
    dependency_service.remove_dependency(dep)
    return jsonify({"deleted": True, "id": dep_id}), 200


@process_bp.route("/projects/<int:project_id>/dependency-graph", methods=["GET"])
def dependency_graph(project_id):
    """Nodes, edges and Mermaid text. ``?format=mermaid`` returns plain text."""
    project = project_service.get_project(project_id)
    authorize_project(project.id, "viewer")
    graph = dependency_service.build_project_graph(project.id)
    if request.args.get("format") == "mermaid":
        return graph["mermaid"], 200, {"Content-Type": "text/plain; charset=utf-8"}
    return jsonify(graph)


# ═════════════════════════════════════════════════════════════════════════════
# ProcessTemplate (4 routes)
# ═════════════════════════════════════════════════════════════════════════════


@process_bp.route("/projects/<int:project_id>/process-templates", methods=["GET"])
def list_templates(project_id):
    project = project_service.get_project(project_id)
    authorize_project(project.id, "viewer")
    items = process_service.list_templates(project.id)
    return jsonify({"items": [t.to_dict() for t in items], "total": len(items)})


@process_bp.route("/projects/<int:project_id>/process-templates", methods=["POST"])
def save_template(project_id):
    """Snapshot the project's current processes. Body: {"title": str, "description"?: str}"""
    project = project_service.get_project(project_id)
    authorize_project(project.id, "editor")
    data, err = _body_or_error()
    if err:
        return err
    if not str(data.get("title") or "").strip():
        return api_error(E.VALIDATION_REQUIRED, "title is required")
    template = process_service.save_template(project, data)
    return jsonify(template.to_dict()), 201


@process_bp.route("/process-templates/<int:template_id>/apply", methods=["POST"])
def apply_template(template_id):
    """Body: {"project_id"?: int} — defaults to the template's own project."""
    template = process_service.get_template(template_id)
    data, err = _body_or_error()
    if err:
        return err
    target_id = data.get("project_id") or template.project_id
    try:
        target_id = int(target_id)
    except (TypeError, ValueError, OverflowError):
        return api_error(E.VALIDATION_INVALID, "project_id must be an integer")
    project = project_service.get_project(target_id)
    authorize_project(template.project_id, "viewer")
    authorize_project(project.id, "editor")
    created = process_service.apply_template(template, project)
    return jsonify({"items": [p.to_dict() for p in created], "total": len(created)}), 201


@process_bp.route("/process-templates/<int:template_id>", methods=["DELETE"])
def delete_template(template_id):
    template = process_service.get_template(template_id)
    authorize_project(template.project_id, "editor")
    process_service.delete_template(template)
    return jsonify({"deleted": True, "id": template_id}), 200
