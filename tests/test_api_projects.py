"""
tests/test_api_projects.py — project, progress, member, profile endpoints.

Marker: integration (full HTTP round-trip through Flask test client).
"""

BASE = "/api/v1"


def _profile(client, email="pm@example.com", **kw):
    payload = {"email": email, "full_name": "Pat Manager"}
    payload.update(kw)
    rv = client.post(f"{BASE}/profiles", json=payload)
    assert rv.status_code == 201
    return rv.get_json()


def _project(client, owner_id, **kw):
    payload = {"title": "Library extension", "owner_id": owner_id}
    payload.update(kw)
    rv = client.post(f"{BASE}/projects", json=payload)
    assert rv.status_code == 201
    return rv.get_json()


# ═════════════════════════════════════════════════════════════════════════════
# Projects
# ═════════════════════════════════════════════════════════════════════════════


class TestProjectCrud:
    def test_create_and_get(self, client):
        owner = _profile(client)
        created = _project(client, owner["id"], amount_excl_tax="1200.50")
        assert created["progress"] == 0
        assert created["progress_policy"] == "completed_weighted"
        assert created["amount_excl_tax"] == 1200.5
        assert created["version"] == 1

        rv = client.get(f"{BASE}/projects/{created['id']}?include_children=1")
        assert rv.status_code == 200
        body = rv.get_json()
        assert body["members"][0]["role"] == "owner"
        assert body["processes"] == []

    def test_create_requires_title(self, client):
        owner = _profile(client)
        rv = client.post(f"{BASE}/projects", json={"owner_id": owner["id"]})
        assert rv.status_code == 400
        assert rv.get_json()["code"] == "ERR_VALIDATION_REQUIRED"

    def test_create_requires_owner_without_identity(self, client):
        rv = client.post(f"{BASE}/projects", json={"title": "Orphan"})
        assert rv.status_code == 400

    def test_unknown_owner(self, client):
        rv = client.post(f"{BASE}/projects", json={"title": "X", "owner_id": 404})
        assert rv.status_code == 404

    def test_negative_amount(self, client):
        owner = _profile(client)
        rv = client.post(f"{BASE}/projects", json={
            "title": "X", "owner_id": owner["id"], "amount_incl_tax": -1,
        })
        assert rv.status_code == 422

    def test_bad_policy(self, client):
        owner = _profile(client)
        rv = client.post(f"{BASE}/projects", json={
            "title": "X", "owner_id": owner["id"], "progress_policy": "vibes",
        })
        assert rv.status_code == 422

    def test_update_requires_version(self, client):
        owner = _profile(client)
        project = _project(client, owner["id"])
        rv = client.put(f"{BASE}/projects/{project['id']}", json={"title": "New"})
        assert rv.status_code == 400

    def test_stale_update_is_409(self, client):
        owner = _profile(client)
        project = _project(client, owner["id"])
        url = f"{BASE}/projects/{project['id']}"
        assert client.put(url, json={"title": "First", "version": 1}).status_code == 200

        rv = client.put(url, json={"title": "Second", "version": 1})
        assert rv.status_code == 409
        body = rv.get_json()
        assert body["code"] == "ERR_CONFLICT_VERSION"
        assert body["details"] == {"expected_version": 1, "current_version": 2}
        assert client.get(url).get_json()["title"] == "First"

    def test_progress_is_not_writable(self, client):
        owner = _profile(client)
        project = _project(client, owner["id"])
        rv = client.put(f"{BASE}/projects/{project['id']}", json={"progress": 90, "version": 1})
        assert rv.status_code == 200
        assert rv.get_json()["progress"] == 0

    def test_delete_cascades(self, client):
        owner = _profile(client)
        project = _project(client, owner["id"])
        pid = project["id"]
        client.post(f"{BASE}/projects/{pid}/processes", json={"title": "Survey"})
        client.post(f"{BASE}/projects/{pid}/tasks", json={"title": "Call client"})

        rv = client.delete(f"{BASE}/projects/{pid}")
        assert rv.status_code == 200
        assert client.get(f"{BASE}/projects/{pid}").status_code == 404

    def test_list_projects(self, client):
        owner = _profile(client)
        _project(client, owner["id"], title="A")
        _project(client, owner["id"], title="B")
        body = client.get(f"{BASE}/projects").get_json()
        assert body["total"] == 2

    def test_non_json_body_rejected(self, client):
        rv = client.post(f"{BASE}/projects", data="title=x", content_type="text/plain")
        assert rv.status_code == 415

    def test_json_array_body_rejected(self, client):
        rv = client.post(f"{BASE}/projects", json=["not", "an", "object"])
        assert rv.status_code == 400


class TestProgressEndpoints:
    def test_report_and_recompute(self, client, project):
        pid = project.id
        rv = client.post(f"{BASE}/projects/{pid}/processes", json={"title": "Survey", "status": "done"})
        assert rv.status_code == 201

        report = client.get(f"{BASE}/projects/{pid}/progress").get_json()
        assert report["stored_progress"] == 100
        assert report["in_sync"] is True
        assert report["applied_variant"] == "completed_weighted"

        rv = client.post(f"{BASE}/projects/{pid}/progress/recompute")
        assert rv.get_json() == {"project_id": pid, "progress": 100}


# ═════════════════════════════════════════════════════════════════════════════
# Members, profiles, companies
# ═════════════════════════════════════════════════════════════════════════════


class TestMembers:
    def test_add_by_email_and_remove(self, client, project):
        other = _profile(client, email="Eddie@Example.com")
        assert other["email"] == "eddie@example.com"

        rv = client.post(f"{BASE}/projects/{project.id}/members",
                         json={"email": "eddie@example.com", "role": "editor"})
        assert rv.status_code == 201

        members = client.get(f"{BASE}/projects/{project.id}/members").get_json()
        assert members["total"] == 2

        rv = client.delete(f"{BASE}/projects/{project.id}/members/{other['id']}")
        assert rv.status_code == 200

    def test_duplicate_member(self, client, project, owner):
        rv = client.post(f"{BASE}/projects/{project.id}/members", json={"profile_id": owner.id})
        assert rv.status_code == 409

    def test_owner_cannot_be_removed(self, client, project, owner):
        rv = client.delete(f"{BASE}/projects/{project.id}/members/{owner.id}")
        assert rv.status_code == 422

    def test_bad_role(self, client, project):
        other = _profile(client, email="x@example.com")
        rv = client.post(f"{BASE}/projects/{project.id}/members",
                         json={"profile_id": other["id"], "role": "admin"})
        assert rv.status_code == 422


class TestProfilesAndCompanies:
    def test_duplicate_profile_email(self, client):
        _profile(client, email="dup@example.com")
        rv = client.post(f"{BASE}/profiles", json={"email": "DUP@example.com"})
        assert rv.status_code == 409

    def test_invalid_email(self, client):
        rv = client.post(f"{BASE}/profiles", json={"email": "no-at-sign"})
        assert rv.status_code == 422

    def test_company_assignment(self, client):
        owner = _profile(client)
        company = client.post(f"{BASE}/contractor-companies", json={"name": "Acme Build"}).get_json()
        project = _project(client, owner["id"], contractor_company_id=company["id"])
        assert project["contractor_company"] == "Acme Build"
        assert client.post(f"{BASE}/contractor-companies", json={"name": "Acme Build"}).status_code == 409


class TestHealth:
    def test_live(self, client):
        body = client.get(f"{BASE}/health/live").get_json()
        assert body["status"] == "healthy"
        assert body["checks"]["database"]["status"] == "ok"
        assert body["checks"]["app"]["identity_provider"] == "static"

    def test_request_id_header(self, client):
        rv = client.get(f"{BASE}/health/ready", headers={"X-Request-ID": "abc123"})
        assert rv.headers["X-Request-ID"] == "abc123"

    def test_unknown_route_is_json_404(self, client):
        rv = client.get(f"{BASE}/nothing-here")
        assert rv.status_code == 404
        assert rv.get_json()["code"] == "ERR_NOT_FOUND"
