"""
tests/test_change_feed.py — realtime change feed.

Covers:
    1. Hub semantics: filtering, bounded queues, subscriber eviction
    2. Session hooks: publish on commit, nothing on rollback
    3. SSE endpoint end-to-end
"""

import json
import queue
import time

import pytest

from phaseboard.models import db
from phaseboard.models.process import Process
from phaseboard.services import dependency_service, process_service, project_service
from phaseboard.services.change_feed import ChangeEvent, ChangeFeed, change_feed


def _drain(sub):
    events = []
    while True:
        try:
            events.append(sub.queue.get_nowait())
        except queue.Empty:
            return events


# ═════════════════════════════════════════════════════════════════════════════
# Hub
# ═════════════════════════════════════════════════════════════════════════════


class TestHub:
    def test_project_and_table_filter(self):
        hub = ChangeFeed()
        all_tables = hub.subscribe(1)
        only_tasks = hub.subscribe(1, {"tasks"})
        other = hub.subscribe(2)

        delivered = hub.publish(ChangeEvent("processes", "update", 1, 10))

        assert delivered == 1
        assert [e.row_id for e in _drain(all_tables)] == [10]
        assert _drain(only_tasks) == []
        assert _drain(other) == []

    def test_unknown_table_rejected(self):
        with pytest.raises(ValueError):
            ChangeFeed().subscribe(1, {"passwords"})

    def test_full_queue_drops_oldest(self):
        hub = ChangeFeed(queue_size=2)
        sub = hub.subscribe(1)
        for row_id in (1, 2, 3):
            hub.publish(ChangeEvent("tasks", "insert", 1, row_id))
        assert [e.row_id for e in _drain(sub)] == [2, 3]

    def test_capacity_evicts_oldest_subscriber(self):
        hub = ChangeFeed(max_subscribers=2)
        first = hub.subscribe(1)
        hub.subscribe(1)
        hub.subscribe(1)
        assert hub.subscriber_count == 2
        assert _drain(first) == [None]

    def test_unsubscribe(self):
        hub = ChangeFeed()
        sub = hub.subscribe(1)
        hub.unsubscribe(sub)
        hub.unsubscribe(sub)
        assert hub.publish(ChangeEvent("tasks", "insert", 1, 1)) == 0

    def test_sse_framing(self):
        text = ChangeEvent("tasks", "delete", 3, 9).to_sse()
        assert text.startswith("event: change\ndata: ")
        assert text.endswith("\n\n")
        payload = json.loads(text.split("data: ", 1)[1])
        assert payload["table"] == "tasks" and payload["op"] == "delete"


# ═════════════════════════════════════════════════════════════════════════════
# Session hooks
# ═════════════════════════════════════════════════════════════════════════════


class TestSessionHooks:
    def test_commit_publishes_insert(self, project):
        sub = change_feed.subscribe(project.id, {"processes"})
        process = process_service.create_process(project, {"title": "Survey"})
        events = _drain(sub)
        assert [(e.table, e.op, e.row_id) for e in events] == [("processes", "insert", process.id)]

    def test_progress_change_is_published(self, project):
        process = process_service.create_process(project, {"title": "Survey"})
        sub = change_feed.subscribe(project.id)
        process_service.set_process_status(process, "done")
        tables = {(e.table, e.op) for e in _drain(sub)}
        assert ("processes", "update") in tables
        assert ("projects", "update") in tables

    def test_rollback_publishes_nothing(self, project):
        sub = change_feed.subscribe(project.id)
        db.session.add(Process(project_id=project.id, title="Never", order_index=0))
        db.session.flush()
        db.session.rollback()
        assert _drain(sub) == []

    def test_other_projects_are_not_leaked(self, project, owner):
        other = project_service.create_project({"title": "Other"}, owner_id=owner.id)
        sub = change_feed.subscribe(project.id)
        process_service.create_process(other, {"title": "Elsewhere"})
        assert _drain(sub) == []

    def test_cascade_delete_publishes_edges(self, project):
        a = process_service.create_process(project, {"title": "A"})
        b = process_service.create_process(project, {"title": "B"})
        dep = dependency_service.add_dependency(b.id, a.id)
        dep_id = dep.id
        sub = change_feed.subscribe(project.id, {"process_dependencies"})
        process_service.delete_process(a)
        events = _drain(sub)
        assert [(e.op, e.row_id) for e in events] == [("delete", dep_id)]


# ═════════════════════════════════════════════════════════════════════════════
# SSE endpoint
# ═════════════════════════════════════════════════════════════════════════════


class TestStreamEndpoint:
    def test_stream_delivers_committed_change(self, client, project):
        res = client.get(f"/api/v1/projects/{project.id}/changes?tables=processes&max_events=1")
        assert res.status_code == 200
        assert res.mimetype == "text/event-stream"

        process = process_service.create_process(project, {"title": "Survey"})

        body = res.get_data(as_text=True)
        assert body.startswith(": connected")
        assert '"table": "processes"' in body
        assert f'"row_id": {process.id}' in body
        assert change_feed.subscriber_count == 0

    def test_idle_timeout_closes_stream(self, client, project):
        res = client.get(f"/api/v1/projects/{project.id}/changes?timeout=1")
        body = res.get_data(as_text=True)
        assert body.startswith(": connected")
        assert "event: change" not in body
        assert change_feed.subscriber_count == 0

    def test_idle_timeout_shorter_than_heartbeat(self, app, client, project, monkeypatch):
        monkeypatch.setitem(app.config, "CHANGE_FEED_HEARTBEAT_SECONDS", 30)
        started = time.monotonic()
        body = client.get(f"/api/v1/projects/{project.id}/changes?timeout=1").get_data(as_text=True)
        assert time.monotonic() - started < 5
        assert ": heartbeat" not in body

    def test_unread_stream_unsubscribes_on_close(self, client, project):
        res = client.get(f"/api/v1/projects/{project.id}/changes")
        assert change_feed.subscriber_count == 1
        res.close()
        assert change_feed.subscriber_count == 0

    def test_unknown_table(self, client, project):
        res = client.get(f"/api/v1/projects/{project.id}/changes?tables=secrets")
        assert res.status_code == 400
        assert res.get_json()["details"]["unknown"] == ["secrets"]

    def test_bad_max_events(self, client, project):
        res = client.get(f"/api/v1/projects/{project.id}/changes?max_events=0")
        assert res.status_code == 400

    def test_unknown_project(self, client):
        res = client.get("/api/v1/projects/999/changes")
        assert res.status_code == 404
