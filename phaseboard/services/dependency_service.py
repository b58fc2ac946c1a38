"""
Process Dependency Graph — Service Layer.

Business logic for:
    - Edge validation:  self-edge, cross-project edge, cycle, duplicate
    - Edge CRUD:        add / list (project-scoped) / remove
    - Diagram output:   Mermaid ``graph LR`` description of a project's processes

Edge direction: ``process_id`` depends on ``depends_on_id``; the diagram
arrow points from the prerequisite to the dependent process.
"""

import logging

from sqlalchemy import select

from phaseboard.core.exceptions import (
    ConflictError,
    InvalidDependencyError,
    NotFoundError,
)
from phaseboard.models import db
from phaseboard.models.process import Process, ProcessDependency, validate_no_cycle
from phaseboard.utils.helpers import commit_or_raise, parse_int_field

logger = logging.getLogger(__name__)

DEFAULT_EDGE_DURATION_DAYS = 1


# ── Edge CRUD ────────────────────────────────────────────────────────────────


def add_dependency(
    process_id: int,
    depends_on_id: int,
    duration_days=DEFAULT_EDGE_DURATION_DAYS,
    *,
    project_id: int | None = None,
) -> ProcessDependency:
    """
    Record that *process_id* can only start after *depends_on_id* finishes.

    Args:
        process_id: PK of the dependent Process.
        depends_on_id: PK of the prerequisite Process.
        duration_days: Lag shown on the diagram edge (integer ≥ 1).
        project_id: When given, the dependent process must belong to this
            project (otherwise it is reported as not found); a prerequisite
            from another project is an invalid dependency.

    Raises:
        InvalidDependencyError: self-edge, cross-project edge, or cycle.
        ValidationError: duration_days is not an integer ≥ 1.
        NotFoundError: either process does not exist.
        ConflictError: the edge already exists.
    """
    if process_id == depends_on_id:
        raise InvalidDependencyError(
            "A process cannot depend on itself", process_id, depends_on_id,
        )
    duration = parse_int_field(
        {"duration_days": duration_days}, "duration_days",
        default=DEFAULT_EDGE_DURATION_DAYS, minimum=1,
    )

    process = _get_scoped_process(process_id, project_id)
    prerequisite = _get_scoped_process(depends_on_id, None)

    if process.project_id != prerequisite.project_id:
        raise InvalidDependencyError(
            "Processes must belong to the same project", process_id, depends_on_id,
        )

    if not validate_no_cycle(db.session, process_id, depends_on_id):
        raise InvalidDependencyError(
            "Adding this dependency would create a cycle", process_id, depends_on_id,
        )

    existing = ProcessDependency.query.filter_by(
        process_id=process_id, depends_on_id=depends_on_id,
    ).first()
    if existing:
        raise ConflictError(
            "ProcessDependency", "process_id/depends_on_id", f"{process_id}/{depends_on_id}",
        )

    dep = ProcessDependency(
        project_id=process.project_id,
        process_id=process_id,
        depends_on_id=depends_on_id,
        duration_days=duration,
    )
    db.session.add(dep)
    commit_or_raise("add process dependency", resource="ProcessDependency")
    logger.info(
        "ProcessDependency created id=%s %s -> %s (%sd) project=%s",
        dep.id, depends_on_id, process_id, duration, process.project_id,
    )
    return dep


def _get_scoped_process(process_pk: int, project_id: int | None) -> Process:
    if project_id is not None:
        process = db.session.execute(
            select(Process).where(Process.id == process_pk, Process.project_id == project_id)
        ).scalar_one_or_none()
    else:
        process = db.session.get(Process, process_pk)
    if not process:
        raise NotFoundError(resource="Process", resource_id=process_pk)
    return process


def get_dependency(dep_id: int) -> ProcessDependency:
    dep = db.session.get(ProcessDependency, dep_id)
    if not dep:
        raise NotFoundError(resource="ProcessDependency", resource_id=dep_id)
    return dep


def list_dependencies(project_id: int) -> list[ProcessDependency]:
    """Return every edge whose dependent process belongs to *project_id*.

    Ordered by edge id, i.e. insertion order.
    """
    return (
        ProcessDependency.query
        .join(Process, ProcessDependency.process_id == Process.id)
        .filter(Process.project_id == project_id)
        .order_by(ProcessDependency.id)
        .all()
    )


def remove_dependency(dep: ProcessDependency) -> None:
    """Delete one edge. Neither endpoint process is touched."""
    dep_id = dep.id
    db.session.delete(dep)
    commit_or_raise("remove process dependency", resource="ProcessDependency")
    logger.info("ProcessDependency deleted id=%s", dep_id)


# ── Diagram rendering ────────────────────────────────────────────────────────

# Characters that would end a quoted Mermaid label early.
_MERMAID_ENTITIES = {
    '"': "#quot;",
    "<": "#lt;",
    ">": "#gt;",
}


def escape_mermaid_label(text: str | None) -> str:
    """Make *text* safe inside a double-quoted Mermaid node label."""
    raw = " ".join(str(text or "").split())
    return "".join(_MERMAID_ENTITIES.get(ch, ch) for ch in raw)


def _days(n) -> str:
    n = n or 0
    return f"{n} day" if n == 1 else f"{n} days"


def _node_id(process_id) -> str:
    return f"P{process_id}"


def render_graph(processes, edges) -> str:
    """
    Render processes and their dependency edges as a Mermaid ``graph LR``.

    Nodes are emitted in ``order_index`` order (ties by id) with the title
    and the process duration; edges in insertion (id) order as
    ``prerequisite -->|N days| dependent``. Edges that reference a
    process outside *processes* are skipped.

    Example::

        graph LR
            P1["Survey<br/>(3 days)"]
            P2["Design<br/>(10 days)"]
            P1 -->|2 days| P2
    """
    ordered = sorted(processes, key=lambda p: (p.order_index or 0, p.id))
    known = {p.id for p in ordered}

    lines = ["graph LR"]
    for p in ordered:
        label = f"{escape_mermaid_label(p.title)}<br/>({_days(p.duration_days)})"
        lines.append(f'    {_node_id(p.id)}["{label}"]')

    for edge in sorted(edges, key=lambda e: e.id):
        if edge.process_id not in known or edge.depends_on_id not in known:
            logger.debug("Skipping dangling edge id=%s in graph render", edge.id)
            continue
        lines.append(
            f"    {_node_id(edge.depends_on_id)} -->|{_days(edge.duration_days)}| "
            f"{_node_id(edge.process_id)}"
        )
    return "\n".join(lines)


def build_project_graph(project_id: int) -> dict:
    """Nodes, edges and the Mermaid text for one project."""
    processes = (
        Process.query
        .filter_by(project_id=project_id)
        .order_by(Process.order_index, Process.id)
        .all()
    )
    edges = list_dependencies(project_id)
    return {
        "project_id": project_id,
        "nodes": [
            {
                "id": p.id,
                "title": p.title,
                "status": p.status,
                "percentage": p.percentage,
                "duration_days": p.duration_days,
            }
            for p in processes
        ],
        "edges": [e.to_dict() for e in edges],
        "mermaid": render_graph(processes, edges),
    }
