"""
tests/test_api_processes.py — process, dependency and template endpoints.

Marker: integration (full HTTP round-trip through Flask test client).
"""

BASE = "/api/v1"


def _process(client, project_id, **kw):
    payload = {"title": "Process"}
    payload.update(kw)
    rv = client.post(f"{BASE}/projects/{project_id}/processes", json=payload)
    assert rv.status_code == 201
    return rv.get_json()


def _add_dep(client, project_id, process_id, depends_on_id, **kw):
    """Add a dependency and return the response object (not asserted)."""
    payload = {"process_id": process_id, "depends_on_id": depends_on_id}
    payload.update(kw)
    return client.post(f"{BASE}/projects/{project_id}/dependencies", json=payload)


class TestProcessEndpoints:
    def test_status_returns_project_progress(self, client, project):
        p = _process(client, project.id, title="Survey", percentage=30)
        rv = client.post(f"{BASE}/processes/{p['id']}/status", json={"status": "done"})
        assert rv.status_code == 200
        body = rv.get_json()
        assert body["process"]["percentage"] == 100
        assert body["project_progress"] == 100

        rv = client.post(f"{BASE}/processes/{p['id']}/status", json={"status": "in-progress"})
        body = rv.get_json()
        assert body["process"]["percentage"] == 30
        assert body["project_progress"] == 0

    def test_percentage_endpoint_clamps(self, client, project):
        p = _process(client, project.id)
        rv = client.post(f"{BASE}/processes/{p['id']}/percentage", json={"percentage": 140})
        body = rv.get_json()
        assert body["process"]["percentage"] == 100
        assert body["process"]["status"] == "done"

    def test_percentage_endpoint_clamps_infinity(self, client, project):
        p = _process(client, project.id)
        rv = client.post(
            f"{BASE}/processes/{p['id']}/percentage",
            data='{"percentage": 1e400}', content_type="application/json",
        )
        assert rv.status_code == 200
        assert rv.get_json()["process"]["percentage"] == 100

        rv = client.post(
            f"{BASE}/processes/{p['id']}/percentage",
            data='{"percentage": -Infinity}', content_type="application/json",
        )
        assert rv.get_json()["process"]["percentage"] == 0

    def test_percentage_endpoint_rejects_nan(self, client, project):
        p = _process(client, project.id)
        rv = client.post(
            f"{BASE}/processes/{p['id']}/percentage",
            data='{"percentage": NaN}', content_type="application/json",
        )
        assert rv.status_code == 422

    def test_infinite_version_and_duration_rejected(self, client, project):
        p = _process(client, project.id)
        rv = client.put(
            f"{BASE}/processes/{p['id']}",
            data='{"title": "Renamed", "version": 1e400}', content_type="application/json",
        )
        assert rv.status_code == 422
        rv = client.put(
            f"{BASE}/processes/{p['id']}",
            data='{"duration_days": Infinity, "version": 1}', content_type="application/json",
        )
        assert rv.status_code == 422

    def test_status_with_stale_version(self, client, project):
        p = _process(client, project.id)
        client.put(f"{BASE}/processes/{p['id']}", json={"title": "Renamed", "version": 1})
        rv = client.post(f"{BASE}/processes/{p['id']}/status", json={"status": "done", "version": 1})
        assert rv.status_code == 409

    def test_invalid_status(self, client, project):
        p = _process(client, project.id)
        rv = client.post(f"{BASE}/processes/{p['id']}/status", json={"status": "paused"})
        assert rv.status_code == 422

    def test_missing_status(self, client, project):
        p = _process(client, project.id)
        assert client.post(f"{BASE}/processes/{p['id']}/status", json={}).status_code == 400

    def test_get_includes_tasks_and_dependencies(self, client, project):
        a = _process(client, project.id, title="A")
        b = _process(client, project.id, title="B")
        _add_dep(client, project.id, b["id"], a["id"])
        client.post(f"{BASE}/projects/{project.id}/tasks", json={"title": "T", "process_id": b["id"]})

        body = client.get(f"{BASE}/processes/{b['id']}").get_json()
        assert [d["depends_on_id"] for d in body["dependencies"]] == [a["id"]]
        assert [t["title"] for t in body["tasks"]] == ["T"]

    def test_delete_reports_counts(self, client, project):
        a = _process(client, project.id, title="A")
        b = _process(client, project.id, title="B")
        _add_dep(client, project.id, b["id"], a["id"])
        rv = client.delete(f"{BASE}/processes/{a['id']}")
        assert rv.get_json() == {"deleted": a["id"], "edges_removed": 1, "tasks_detached": 0}

    def test_reorder(self, client, project):
        a = _process(client, project.id, title="A")
        b = _process(client, project.id, title="B")
        rv = client.post(f"{BASE}/projects/{project.id}/processes/reorder", json={"order": [b["id"], a["id"]]})
        assert [p["id"] for p in rv.get_json()["items"]] == [b["id"], a["id"]]
        rv = client.post(f"{BASE}/projects/{project.id}/processes/reorder", json={"order": [b["id"]]})
        assert rv.status_code == 422

    def test_unknown_process(self, client):
        rv = client.get(f"{BASE}/processes/999")
        assert rv.status_code == 404
        assert rv.get_json()["code"] == "ERR_NOT_FOUND"


class TestDependencyEndpoints:
    def test_self_dependency(self, client, project):
        a = _process(client, project.id)
        rv = _add_dep(client, project.id, a["id"], a["id"], duration_days=3)
        assert rv.status_code == 422
        assert rv.get_json()["code"] == "ERR_INVALID_DEPENDENCY"

    def test_cycle(self, client, project):
        a = _process(client, project.id, title="A")
        b = _process(client, project.id, title="B")
        assert _add_dep(client, project.id, b["id"], a["id"]).status_code == 201
        rv = _add_dep(client, project.id, a["id"], b["id"])
        assert rv.status_code == 422

    def test_duplicate(self, client, project):
        a = _process(client, project.id, title="A")
        b = _process(client, project.id, title="B")
        _add_dep(client, project.id, b["id"], a["id"])
        assert _add_dep(client, project.id, b["id"], a["id"]).status_code == 409

    def test_bad_duration(self, client, project):
        a = _process(client, project.id, title="A")
        b = _process(client, project.id, title="B")
        assert _add_dep(client, project.id, b["id"], a["id"], duration_days=0).status_code == 422

    def test_missing_ids(self, client, project):
        rv = client.post(f"{BASE}/projects/{project.id}/dependencies", json={"process_id": 1})
        assert rv.status_code == 400

    def test_infinite_ids_and_duration(self, client, project):
        a = _process(client, project.id, title="A")
        rv = client.post(
            f"{BASE}/projects/{project.id}/dependencies",
            data='{"process_id": 1e400, "depends_on_id": %d}' % a["id"],
            content_type="application/json",
        )
        assert rv.status_code == 400
        b = _process(client, project.id, title="B")
        rv = client.post(
            f"{BASE}/projects/{project.id}/dependencies",
            data='{"process_id": %d, "depends_on_id": %d, "duration_days": 1e400}' % (b["id"], a["id"]),
            content_type="application/json",
        )
        assert rv.status_code == 422

    def test_process_from_other_project_in_url(self, client, project, owner):
        from phaseboard.services import project_service
        other = project_service.create_project({"title": "Other"}, owner_id=owner.id)
        a = _process(client, other.id, title="A")
        b = _process(client, other.id, title="B")
        rv = _add_dep(client, project.id, b["id"], a["id"])
        assert rv.status_code == 404

    def test_list_and_delete(self, client, project):
        a = _process(client, project.id, title="A")
        b = _process(client, project.id, title="B")
        dep = _add_dep(client, project.id, b["id"], a["id"], duration_days=2).get_json()
        listed = client.get(f"{BASE}/projects/{project.id}/dependencies").get_json()
        assert listed["total"] == 1
        assert client.delete(f"{BASE}/dependencies/{dep['id']}").status_code == 200
        assert client.get(f"{BASE}/projects/{project.id}/dependencies").get_json()["total"] == 0

    def test_graph_json_and_mermaid(self, client, project):
        a = _process(client, project.id, title="Survey", duration_days=3)
        b = _process(client, project.id, title="Design", duration_days=10)
        _add_dep(client, project.id, b["id"], a["id"], duration_days=2)

        graph = client.get(f"{BASE}/projects/{project.id}/dependency-graph").get_json()
        assert len(graph["nodes"]) == 2

        rv = client.get(f"{BASE}/projects/{project.id}/dependency-graph?format=mermaid")
        assert rv.mimetype == "text/plain"
        assert rv.get_data(as_text=True).splitlines() == [
            "graph LR",
            f'    P{a["id"]}["Survey<br/>(3 days)"]',
            f'    P{b["id"]}["Design<br/>(10 days)"]',
            f'    P{a["id"]} -->|2 days| P{b["id"]}',
        ]


class TestTemplateEndpoints:
    def test_save_apply_delete(self, client, project):
        _process(client, project.id, title="Survey", duration_days=3)
        rv = client.post(f"{BASE}/projects/{project.id}/process-templates", json={"title": "Std"})
        assert rv.status_code == 201
        template = rv.get_json()
        assert [i["title"] for i in template["items"]] == ["Survey"]

        rv = client.post(f"{BASE}/process-templates/{template['id']}/apply", json={})
        assert rv.status_code == 201
        assert rv.get_json()["items"][0]["order_index"] == 1

        listed = client.get(f"{BASE}/projects/{project.id}/process-templates").get_json()
        assert listed["total"] == 1
        assert client.delete(f"{BASE}/process-templates/{template['id']}").status_code == 200

    def test_empty_project_cannot_save(self, client, project):
        rv = client.post(f"{BASE}/projects/{project.id}/process-templates", json={"title": "Std"})
        assert rv.status_code == 422
