"""
Process Service — CRUD, status/percentage state machine, ordering, templates.

Status rules (processes):
    in-progress → done:   percentage is remembered, then forced to 100
    done → in-progress:   remembered percentage restored (when < 100), else 0
    percentage set:       100 → done, anything lower → in-progress

Every write that can move a percentage or status recomputes the parent
project's progress in the same unit of work before committing.
"""

import logging
import math

from sqlalchemy import func

from phaseboard.core.exceptions import NotFoundError, ValidationError
from phaseboard.models import db
from phaseboard.models.base import STATUS_DONE, STATUS_IN_PROGRESS, normalize_status
from phaseboard.models.process import (
    PERCENTAGE_MAX,
    Process,
    ProcessDependency,
    ProcessTemplate,
    ProcessTemplateItem,
)
from phaseboard.models.project import Project
from phaseboard.models.task import Task
from phaseboard.services.progress_service import clamp_percentage, refresh_project_progress
from phaseboard.utils.helpers import commit_or_raise, parse_int_field, require_text

logger = logging.getLogger(__name__)


# ── State machine ────────────────────────────────────────────────────────────


def apply_status(process: Process, new_status) -> bool:
    """Move *process* to *new_status*, adjusting its percentage.

    Returns False when the status is unchanged (percentage untouched).
    """
    status = normalize_status(new_status)
    if status == process.status:
        return False
    if status == STATUS_DONE:
        process.percentage_before_done = process.percentage
        process.percentage = PERCENTAGE_MAX
    else:
        previous = process.percentage_before_done
        process.percentage = previous if previous is not None and previous < PERCENTAGE_MAX else 0
        process.percentage_before_done = None
    process.status = status
    return True


def apply_percentage(process: Process, value) -> None:
    """Set the clamped percentage and re-derive the status from it."""
    percentage = clamp_percentage(value)
    process.percentage = percentage
    if percentage == PERCENTAGE_MAX:
        if process.status != STATUS_DONE:
            process.status = STATUS_DONE
            process.percentage_before_done = None
    elif process.status == STATUS_DONE:
        process.status = STATUS_IN_PROGRESS
        process.percentage_before_done = None


def _read_percentage(data: dict):
    """Validate the raw percentage (must be numeric); clamping happens later."""
    value = data.get("percentage")
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValidationError("percentage must be a number", details={"percentage": value})
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError("percentage must be a number", details={"percentage": value})
    if math.isnan(number):
        raise ValidationError("percentage must be a number", details={"percentage": str(value)})
    if math.isinf(number):
        return PERCENTAGE_MAX if number > 0 else 0
    return int(number)


# ── Queries ──────────────────────────────────────────────────────────────────


def list_processes(project_id: int) -> list[Process]:
    """Processes of a project in display order."""
    return (
        Process.query
        .filter_by(project_id=project_id)
        .order_by(Process.order_index, Process.id)
        .all()
    )


def get_process(process_id: int) -> Process:
    process = db.session.get(Process, process_id)
    if not process:
        raise NotFoundError(resource="Process", resource_id=process_id)
    return process


def _next_order_index(project_id: int) -> int:
    current = (
        db.session.query(func.max(Process.order_index))
        .filter(Process.project_id == project_id)
        .scalar()
    )
    return 0 if current is None else current + 1


# ── Process CRUD ─────────────────────────────────────────────────────────────


def create_process(project: Project, data: dict) -> Process:
    """Create a process at the end of the project's order (unless given).

    ``status`` and ``percentage`` may both be supplied; status wins, so a
    process created as done always sits at 100.
    """
    title = require_text(data, "title", max_length=300)
    duration = parse_int_field(data, "duration_days", default=1, minimum=0)
    order_index = parse_int_field(data, "order_index")
    percentage = _read_percentage(data)

    process = Process(
        project_id=project.id,
        title=title,
        description=data.get("description"),
        status=STATUS_IN_PROGRESS,
        percentage=0,
        order_index=order_index if order_index is not None else _next_order_index(project.id),
        duration_days=duration,
    )
    if percentage is not None:
        apply_percentage(process, percentage)
    if data.get("status") is not None:
        apply_status(process, data["status"])

    db.session.add(process)
    refresh_project_progress(project)
    commit_or_raise("create process", resource="Process")
    logger.info(
        "Process created id=%s project=%s status=%s pct=%s",
        process.id, project.id, process.status, process.percentage,
    )
    return process


def update_process(process: Process, data: dict, expected_version=None) -> Process:
    """Update mutable fields. ``version`` guards against lost updates."""
    process.check_version(expected_version)

    # Validate everything before touching the row.
    changes = {}
    if "title" in data:
        changes["title"] = require_text(data, "title", max_length=300)
    if "description" in data:
        changes["description"] = data.get("description")
    if "order_index" in data:
        changes["order_index"] = parse_int_field(data, "order_index", default=process.order_index)
    if "duration_days" in data:
        changes["duration_days"] = parse_int_field(
            data, "duration_days", default=process.duration_days, minimum=0,
        )
    percentage = _read_percentage(data)
    status = normalize_status(data["status"]) if data.get("status") is not None else None

    for field, value in changes.items():
        setattr(process, field, value)
    # Percentage first, then status: an explicit status change overrides.
    if percentage is not None:
        apply_percentage(process, percentage)
    if status is not None:
        apply_status(process, status)

    process.bump_version()
    refresh_project_progress(process.project)
    commit_or_raise("update process", resource="Process")
    logger.info("Process updated id=%s version=%s", process.id, process.version)
    return process


def set_process_status(process: Process, status, expected_version=None) -> Process:
    process.check_version(expected_version)
    old_status = process.status
    if apply_status(process, status):
        process.bump_version()
        refresh_project_progress(process.project)
        commit_or_raise("update process status", resource="Process")
        logger.info(
            "Process status id=%s %s -> %s pct=%s",
            process.id, old_status, process.status, process.percentage,
        )
    return process


def set_process_percentage(process: Process, percentage, expected_version=None) -> Process:
    process.check_version(expected_version)
    value = _read_percentage({"percentage": percentage})
    if value is None:
        raise ValidationError("percentage is required", details={"percentage": "required"})
    apply_percentage(process, value)
    process.bump_version()
    refresh_project_progress(process.project)
    commit_or_raise("update process percentage", resource="Process")
    logger.info(
        "Process percentage id=%s pct=%s status=%s",
        process.id, process.percentage, process.status,
    )
    return process


def delete_process(process: Process) -> dict:
    """Delete a process with every incident dependency edge.

    Tasks grouped under the process are kept and detached
    (``process_id`` → NULL). Returns counts of what was affected.
    """
    process_id = process.id
    project = process.project

    edge_count = (
        ProcessDependency.query
        .filter(
            (ProcessDependency.process_id == process_id)
            | (ProcessDependency.depends_on_id == process_id)
        )
        .count()
    )
    detached = 0
    for task in Task.query.filter_by(process_id=process_id).all():
        task.process_id = None
        detached += 1

    db.session.delete(process)
    refresh_project_progress(project)
    commit_or_raise("delete process", resource="Process")
    logger.info(
        "Process deleted id=%s project=%s edges_removed=%s tasks_detached=%s",
        process_id, project.id, edge_count, detached,
    )
    return {"deleted": process_id, "edges_removed": edge_count, "tasks_detached": detached}


def reorder_processes(project: Project, ordered_ids) -> list[Process]:
    """Rewrite ``order_index`` so processes follow *ordered_ids*.

    *ordered_ids* must list every process of the project exactly once.
    """
    if not isinstance(ordered_ids, list):
        raise ValidationError("order must be a list of process ids", details={"order": ordered_ids})
    processes = {p.id: p for p in list_processes(project.id)}
    try:
        requested = [int(pid) for pid in ordered_ids]
    except (TypeError, ValueError):
        raise ValidationError("order must be a list of process ids", details={"order": ordered_ids})
    if len(requested) != len(set(requested)) or set(requested) != set(processes):
        raise ValidationError(
            "order must contain every process of the project exactly once",
            details={"expected": sorted(processes), "received": requested},
        )
    for index, pid in enumerate(requested):
        processes[pid].order_index = index
    commit_or_raise("reorder processes", resource="Process")
    logger.info("Processes reordered project=%s order=%s", project.id, requested)
    return [processes[pid] for pid in requested]


# ── Templates ────────────────────────────────────────────────────────────────


def list_templates(project_id: int) -> list[ProcessTemplate]:
    return (
        ProcessTemplate.query
        .filter_by(project_id=project_id)
        .order_by(ProcessTemplate.created_at, ProcessTemplate.id)
        .all()
    )


def get_template(template_id: int) -> ProcessTemplate:
    template = db.session.get(ProcessTemplate, template_id)
    if not template:
        raise NotFoundError(resource="ProcessTemplate", resource_id=template_id)
    return template


def save_template(project: Project, data: dict) -> ProcessTemplate:
    """Snapshot the project's current processes as a named template."""
    title = require_text(data, "title", max_length=200)
    processes = list_processes(project.id)
    if not processes:
        raise ValidationError("Project has no processes to save as a template")

    template = ProcessTemplate(
        project_id=project.id,
        title=title,
        description=data.get("description"),
    )
    db.session.add(template)
    for index, p in enumerate(processes):
        template.items.append(ProcessTemplateItem(
            title=p.title,
            description=p.description,
            order_index=index,
            duration_days=p.duration_days,
        ))
    commit_or_raise("save process template", resource="ProcessTemplate")
    logger.info(
        "ProcessTemplate created id=%s project=%s items=%s",
        template.id, project.id, len(processes),
    )
    return template


def apply_template(template: ProcessTemplate, project: Project) -> list[Process]:
    """Append the template's items to *project* as new in-progress processes."""
    start = _next_order_index(project.id)
    created = []
    for offset, item in enumerate(template.items):
        process = Process(
            project_id=project.id,
            title=item.title,
            description=item.description,
            status=STATUS_IN_PROGRESS,
            percentage=0,
            order_index=start + offset,
            duration_days=item.duration_days,
            template_id=template.id,
        )
        db.session.add(process)
        created.append(process)
    refresh_project_progress(project)
    commit_or_raise("apply process template", resource="Process")
    logger.info(
        "ProcessTemplate applied id=%s project=%s created=%s",
        template.id, project.id, len(created),
    )
    return created


def delete_template(template: ProcessTemplate) -> None:
    """Delete a template. Processes created from it keep existing."""
    template_id = template.id
    for process in Process.query.filter_by(template_id=template_id).all():
        process.template_id = None
    db.session.delete(template)
    commit_or_raise("delete process template", resource="ProcessTemplate")
    logger.info("ProcessTemplate deleted id=%s", template_id)
