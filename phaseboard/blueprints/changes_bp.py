"""
Change Feed Blueprint — Server-Sent Events stream of committed row changes.

Endpoint:
    GET /api/v1/projects/<id>/changes

Query params:
    tables      — comma-separated subset of watched tables (default: all)
    max_events  — close the stream after this many change events
    timeout     — close the stream after this many idle seconds

Each change is sent as ``event: change`` with a JSON body
``{table, op, project_id, row_id, at}``; idle periods produce ``:`` comment
heartbeats so proxies keep the connection open.
"""

import logging
import queue
import time

from flask import Blueprint, Response, current_app, request, stream_with_context

from phaseboard.auth import authorize_project
from phaseboard.blueprints import register_error_handlers
from phaseboard.services import project_service
from phaseboard.services.change_feed import WATCHED_TABLES, change_feed
from phaseboard.utils.errors import E, api_error

logger = logging.getLogger(__name__)

changes_bp = Blueprint("changes", __name__, url_prefix="/api/v1")
register_error_handlers(changes_bp)


def _positive_int_arg(name):
    raw = request.args.get(name)
    if raw in (None, ""):
        return None
    value = int(raw)
    if value <= 0:
        raise ValueError(name)
    return value


@changes_bp.route("/projects/<int:project_id>/changes", methods=["GET"])
def stream_changes(project_id):
    project = project_service.get_project(project_id)
    authorize_project(project.id, "viewer")

    tables = {t.strip() for t in request.args.get("tables", "").split(",") if t.strip()}
    unknown = tables - WATCHED_TABLES
    if unknown:
        return api_error(
            E.VALIDATION_INVALID, "Unknown tables requested",
            details={"unknown": sorted(unknown), "allowed": sorted(WATCHED_TABLES)},
        )
    try:
        max_events = _positive_int_arg("max_events")
        timeout = _positive_int_arg("timeout")
    except ValueError:
        return api_error(E.VALIDATION_INVALID, "max_events and timeout must be positive integers")

    heartbeat = current_app.config.get("CHANGE_FEED_HEARTBEAT_SECONDS", 15)
    # Subscribe before the response starts so no commit in between is missed.
    sub = change_feed.subscribe(project.id, tables or None)
    logger.info(
        "Change stream opened project=%s tables=%s subscribers=%s",
        project.id, sorted(tables) or "all", change_feed.subscriber_count,
    )

    def generate():
        sent = 0
        idle_since = time.monotonic()
        try:
            yield ": connected\n\n"
            while True:
                wait = heartbeat
                if timeout:
                    remaining = timeout - (time.monotonic() - idle_since)
                    if remaining <= 0:
                        return
                    wait = min(heartbeat, remaining)
                try:
                    change = sub.queue.get(timeout=wait)
                except queue.Empty:
                    if timeout and time.monotonic() - idle_since >= timeout:
                        return
                    yield ": heartbeat\n\n"
                    continue
                if change is None:
                    return
                yield change.to_sse()
                sent += 1
                idle_since = time.monotonic()
                if max_events and sent >= max_events:
                    return
        finally:
            change_feed.unsubscribe(sub)
            logger.info("Change stream closed project=%s events=%s", sub.project_id, sent)

    response = Response(
        stream_with_context(generate()),
        mimetype="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
    # The generator's finally never runs when the body is not consumed.
    response.call_on_close(lambda: change_feed.unsubscribe(sub))
    return response
