"""
Progress Aggregator — rolls process/task completion up into project progress.

Two roll-up variants:
    - completed-weighted:  sum of the percentages of processes that are done
                           (each process percentage acts as its weight), clamped to 100
    - task ratio:          share of tasks that are done, rounded half-up

Policy (per project, ``Project.progress_policy``):
    completed_weighted  → completed-weighted over processes; task ratio when
                          the project has no processes yet
    task_ratio          → always task ratio over every task (incl. subtasks)

The pure functions take any objects with ``status`` / ``percentage``
attributes and never touch the session. ``refresh_project_progress`` writes
the result onto the project inside the caller's unit of work; the caller
commits (see ``phaseboard.utils.helpers.commit_or_raise``).
"""

import logging
import math

from phaseboard.models import db
from phaseboard.models.base import STATUS_DONE
from phaseboard.models.process import PERCENTAGE_MAX, PERCENTAGE_MIN, Process
from phaseboard.models.project import (
    PROGRESS_POLICY_TASK_RATIO,
    PROGRESS_POLICY_WEIGHTED,
    Project,
)
from phaseboard.models.task import Task
from phaseboard.utils.helpers import commit_or_raise

logger = logging.getLogger(__name__)


# ── Pure computation ─────────────────────────────────────────────────────────


def clamp_percentage(value) -> int:
    """Coerce *value* to an int in [0, 100]. ``None`` counts as 0."""
    if value is None:
        return PERCENTAGE_MIN
    if isinstance(value, float) and math.isinf(value):
        return PERCENTAGE_MAX if value > 0 else PERCENTAGE_MIN
    return max(PERCENTAGE_MIN, min(PERCENTAGE_MAX, int(value)))


def completed_weighted_progress(processes) -> int:
    """Sum the percentages of done processes, clamped to 100.

    Processes that are still in progress contribute nothing. An empty
    list yields 0.
    """
    total = sum(
        clamp_percentage(p.percentage) for p in processes if p.status == STATUS_DONE
    )
    return clamp_percentage(total)


def task_ratio_progress(tasks) -> int:
    """Percentage of done tasks, rounded half-up. An empty list yields 0."""
    tasks = list(tasks)
    total = len(tasks)
    if total == 0:
        return 0
    done = sum(1 for t in tasks if t.status == STATUS_DONE)
    # Integer half-up rounding: floor(100 * done / total + 0.5)
    return (200 * done + total) // (2 * total)


def compute_project_progress(processes, tasks, policy: str = PROGRESS_POLICY_WEIGHTED) -> int:
    """Apply the roll-up *policy* to a project's processes and tasks."""
    processes = list(processes)
    if policy == PROGRESS_POLICY_TASK_RATIO:
        return task_ratio_progress(tasks)
    if processes:
        return completed_weighted_progress(processes)
    return task_ratio_progress(tasks)


def describe_policy(policy: str, process_count: int) -> str:
    """Name of the variant ``compute_project_progress`` actually applies."""
    if policy == PROGRESS_POLICY_TASK_RATIO or process_count == 0:
        return "task_ratio"
    return "completed_weighted"


# ── Persistence ──────────────────────────────────────────────────────────────


def _load_children(project: Project) -> tuple[list[Process], list[Task]]:
    processes = Process.query.filter_by(project_id=project.id).all()
    tasks = Task.query.filter_by(project_id=project.id).all()
    return processes, tasks


def refresh_project_progress(project: Project) -> int:
    """Recompute ``project.progress`` from the current session state.

    Pending changes are flushed first (autoflush), so edits made earlier in
    the same unit of work are included. Does not commit and does not bump
    the project version.
    """
    processes, tasks = _load_children(project)
    progress = compute_project_progress(processes, tasks, project.progress_policy)
    if progress != project.progress:
        logger.debug(
            "Project id=%s progress %s -> %s", project.id, project.progress, progress,
        )
        project.progress = progress
    return progress


def refresh_progress_for(project_id: int) -> int | None:
    """``refresh_project_progress`` by id; silently skips unknown projects."""
    project = db.session.get(Project, project_id)
    if project is None:
        return None
    return refresh_project_progress(project)


def recompute_project_progress(project: Project) -> int:
    """Recompute and persist ``project.progress`` in its own unit of work."""
    progress = refresh_project_progress(project)
    commit_or_raise("recompute project progress", resource="Project")
    logger.info("Project progress recomputed id=%s progress=%s", project.id, progress)
    return progress


def get_progress_report(project: Project) -> dict:
    """Stored vs. freshly computed progress plus the inputs behind it.

    Read-only: the computed value is not written back (see
    ``recompute_project_progress``).
    """
    processes, tasks = _load_children(project)
    computed = compute_project_progress(processes, tasks, project.progress_policy)
    done_processes = [p for p in processes if p.status == STATUS_DONE]
    done_tasks = [t for t in tasks if t.status == STATUS_DONE]
    return {
        "project_id": project.id,
        "stored_progress": project.progress,
        "computed_progress": computed,
        "in_sync": computed == project.progress,
        "policy": project.progress_policy,
        "applied_variant": describe_policy(project.progress_policy, len(processes)),
        "process_count": len(processes),
        "done_process_count": len(done_processes),
        "task_count": len(tasks),
        "done_task_count": len(done_tasks),
        "completed_weighted": completed_weighted_progress(processes),
        "task_ratio": task_ratio_progress(tasks),
    }
