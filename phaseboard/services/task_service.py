"""
Task Service — tasks, one level of subtasks, status changes, task templates.

Tasks carry no percentage; their status feeds the task-ratio variant of
the project progress roll-up, so every create/status/delete refreshes the
project's progress before committing.
"""

import logging

from phaseboard.core.exceptions import NotFoundError, ValidationError
from phaseboard.models import db
from phaseboard.models.base import STATUS_IN_PROGRESS, normalize_status
from phaseboard.models.process import Process
from phaseboard.models.project import Profile, Project
from phaseboard.models.task import Task, TaskTemplate, TaskTemplateItem
from phaseboard.services.progress_service import refresh_project_progress
from phaseboard.utils.helpers import commit_or_raise, parse_date, parse_int_field, require_text

logger = logging.getLogger(__name__)

_UNSET = object()


# ── Queries ──────────────────────────────────────────────────────────────────


def list_tasks(project_id: int, *, process_id=_UNSET, top_level_only: bool = False) -> list[Task]:
    """Tasks of a project.

    Args:
        process_id: Restrict to one process; ``None`` selects tasks that
            are not grouped under any process.
        top_level_only: Skip subtasks.
    """
    q = Task.query.filter_by(project_id=project_id)
    if process_id is not _UNSET:
        if process_id is None:
            q = q.filter(Task.process_id.is_(None))
        else:
            q = q.filter(Task.process_id == process_id)
    if top_level_only:
        q = q.filter(Task.parent_task_id.is_(None))
    return q.order_by(Task.id).all()


def get_task(task_id: int) -> Task:
    task = db.session.get(Task, task_id)
    if not task:
        raise NotFoundError(resource="Task", resource_id=task_id)
    return task


def list_subtasks(parent: Task) -> list[Task]:
    return parent.subtasks.order_by(Task.id).all()


# ── Field validation ─────────────────────────────────────────────────────────


def _resolve_process_id(project_id: int, data: dict):
    process_id = parse_int_field(data, "process_id")
    if process_id is None:
        return None
    process = db.session.get(Process, process_id)
    if not process or process.project_id != project_id:
        raise ValidationError(
            "process_id must reference a process of the same project",
            details={"process_id": process_id},
        )
    return process_id


def _resolve_assignee_id(data: dict):
    assignee_id = parse_int_field(data, "assignee_id")
    if assignee_id is None:
        return None
    if not db.session.get(Profile, assignee_id):
        raise NotFoundError(resource="Profile", resource_id=assignee_id)
    return assignee_id


def _resolve_due_date(data: dict):
    raw = data.get("due_date")
    if raw in (None, ""):
        return None
    due = parse_date(raw)
    if due is None:
        raise ValidationError("due_date must be a date (YYYY-MM-DD)", details={"due_date": raw})
    return due


# ── CRUD ─────────────────────────────────────────────────────────────────────


def create_task(project: Project, data: dict, *, parent: Task | None = None) -> Task:
    """Create a task, or a subtask when *parent* is given.

    A subtask's parent must be a top-level task of the same project; the
    subtask inherits the parent's process unless one is given.
    """
    title = require_text(data, "title", max_length=300)
    status = normalize_status(data.get("status") or STATUS_IN_PROGRESS)

    if parent is not None:
        if parent.project_id != project.id:
            raise ValidationError("Parent task belongs to another project")
        if parent.parent_task_id is not None:
            raise ValidationError(
                "Subtasks cannot have subtasks", details={"parent_task_id": parent.id},
            )

    process_id = _resolve_process_id(project.id, data)
    if process_id is None and parent is not None:
        process_id = parent.process_id

    task = Task(
        project_id=project.id,
        process_id=process_id,
        parent_task_id=parent.id if parent is not None else None,
        title=title,
        description=data.get("description"),
        status=status,
        due_date=_resolve_due_date(data),
        assignee_id=_resolve_assignee_id(data),
    )
    db.session.add(task)
    refresh_project_progress(project)
    commit_or_raise("create task", resource="Task")
    logger.info(
        "Task created id=%s project=%s process=%s parent=%s",
        task.id, project.id, task.process_id, task.parent_task_id,
    )
    return task


def update_task(task: Task, data: dict, expected_version=None) -> Task:
    """Update mutable fields. ``version`` guards against lost updates."""
    task.check_version(expected_version)

    changes = {}
    if "title" in data:
        changes["title"] = require_text(data, "title", max_length=300)
    if "description" in data:
        changes["description"] = data.get("description")
    if "status" in data:
        changes["status"] = normalize_status(data.get("status"))
    if "due_date" in data:
        changes["due_date"] = _resolve_due_date(data)
    if "assignee_id" in data:
        changes["assignee_id"] = _resolve_assignee_id(data)
    if "process_id" in data:
        changes["process_id"] = _resolve_process_id(task.project_id, data)

    for field, value in changes.items():
        setattr(task, field, value)
    task.bump_version()
    refresh_project_progress(task.project)
    commit_or_raise("update task", resource="Task")
    logger.info("Task updated id=%s version=%s", task.id, task.version)
    return task


def set_task_status(task: Task, status, expected_version=None) -> Task:
    task.check_version(expected_version)
    new_status = normalize_status(status)
    if new_status == task.status:
        return task
    old_status = task.status
    task.status = new_status
    task.bump_version()
    refresh_project_progress(task.project)
    commit_or_raise("update task status", resource="Task")
    logger.info("Task status id=%s %s -> %s", task.id, old_status, new_status)
    return task


def delete_task(task: Task) -> None:
    """Delete a task together with its subtasks."""
    task_id = task.id
    project = task.project
    db.session.delete(task)
    refresh_project_progress(project)
    commit_or_raise("delete task", resource="Task")
    logger.info("Task deleted id=%s project=%s", task_id, project.id)


# ── Templates ────────────────────────────────────────────────────────────────


def list_templates(project_id: int) -> list[TaskTemplate]:
    return (
        TaskTemplate.query
        .filter_by(project_id=project_id)
        .order_by(TaskTemplate.created_at, TaskTemplate.id)
        .all()
    )


def get_template(template_id: int) -> TaskTemplate:
    template = db.session.get(TaskTemplate, template_id)
    if not template:
        raise NotFoundError(resource="TaskTemplate", resource_id=template_id)
    return template


def save_template(project: Project, data: dict) -> TaskTemplate:
    """Snapshot the project's top-level tasks (title and description) as a template."""
    title = require_text(data, "title", max_length=200)
    tasks = list_tasks(project.id, top_level_only=True)
    if not tasks:
        raise ValidationError("Project has no tasks to save as a template")

    template = TaskTemplate(
        project_id=project.id,
        title=title,
        description=data.get("description"),
    )
    db.session.add(template)
    for index, task in enumerate(tasks):
        template.items.append(TaskTemplateItem(
            title=task.title,
            description=task.description,
            order_index=index,
        ))
    commit_or_raise("save task template", resource="TaskTemplate")
    logger.info(
        "TaskTemplate created id=%s project=%s items=%s",
        template.id, project.id, len(tasks),
    )
    return template


def apply_template(template: TaskTemplate, project: Project) -> list[Task]:
    """Create one in-progress, ungrouped top-level task per template item."""
    created = []
    for item in template.items:
        task = Task(
            project_id=project.id,
            title=item.title,
            description=item.description,
            status=STATUS_IN_PROGRESS,
        )
        db.session.add(task)
        created.append(task)
    refresh_project_progress(project)
    commit_or_raise("apply task template", resource="Task")
    logger.info(
        "TaskTemplate applied id=%s project=%s created=%s",
        template.id, project.id, len(created),
    )
    return created


def delete_template(template: TaskTemplate) -> None:
    """Delete a template. Tasks created from it keep existing."""
    template_id = template.id
    db.session.delete(template)
    commit_or_raise("delete task template", resource="TaskTemplate")
    logger.info("TaskTemplate deleted id=%s", template_id)
