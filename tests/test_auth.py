"""
tests/test_auth.py — identity providers and project-role authorization.

Covers:
    - StaticIdentityProvider sign-in / sign-out
    - JWT access tokens: issue, verify, expiry, revocation
    - API: 401 without identity, 403 for insufficient role, /auth/me
"""

import time

import jwt
import pytest

from phaseboard.auth import JWTIdentityProvider, StaticIdentityProvider, build_identity_provider
from phaseboard.core.exceptions import AuthenticationError
from phaseboard.services import jwt_service, project_service


@pytest.fixture()
def viewer(project):
    profile = project_service.create_profile({"email": "viewer@example.com", "full_name": "Vic Viewer"})
    project_service.add_member(project, {"profile_id": profile.id, "role": "viewer"})
    return profile


def _act_as(app, profile, monkeypatch):
    monkeypatch.setitem(
        app.extensions, "identity_provider", StaticIdentityProvider(profile.id if profile else None),
    )


@pytest.fixture()
def jwt_app(app, monkeypatch):
    monkeypatch.setitem(app.config, "API_AUTH_ENABLED", "true")
    monkeypatch.setitem(app.extensions, "identity_provider", JWTIdentityProvider())
    return app


def _bearer(token):
    return {"Authorization": f"Bearer {token}"}


# ═════════════════════════════════════════════════════════════════════════════
# Providers
# ═════════════════════════════════════════════════════════════════════════════


class TestStaticProvider:
    def test_sign_in_and_out_leave_identity_unchanged(self, owner):
        provider = StaticIdentityProvider(owner.id)
        assert provider.sign_in(owner)["profile_id"] == owner.id
        assert provider.sign_out() is False
        assert provider.current_user().id == owner.id

    def test_sign_in_as_other_profile_rejected(self, owner):
        provider = StaticIdentityProvider()
        with pytest.raises(AuthenticationError):
            provider.sign_in(owner)
        assert provider.current_user() is None

    def test_factory_reads_config(self, app, monkeypatch):
        monkeypatch.setitem(app.config, "IDENTITY_PROVIDER", "jwt")
        assert build_identity_provider(app).name == "jwt"
        monkeypatch.setitem(app.config, "IDENTITY_PROVIDER", "carrier-pigeon")
        with pytest.raises(ValueError):
            build_identity_provider(app)


class TestJWT:
    def test_round_trip(self, owner):
        token = jwt_service.generate_access_token(owner.id, owner.email)
        payload = jwt_service.decode_access_token(token)
        assert payload["sub"] == str(owner.id)
        assert payload["email"] == owner.email

    def test_expired(self, app, owner, monkeypatch):
        monkeypatch.setitem(app.config, "JWT_ACCESS_EXPIRES", -10)
        token = jwt_service.generate_access_token(owner.id)
        with pytest.raises(jwt.ExpiredSignatureError):
            jwt_service.decode_access_token(token)

    def test_wrong_type(self, app, owner):
        token = jwt.encode(
            {"sub": str(owner.id), "type": "refresh", "exp": int(time.time()) + 60},
            app.config["JWT_SECRET_KEY"], algorithm="HS256",
        )
        with pytest.raises(jwt.InvalidTokenError):
            jwt_service.decode_access_token(token)

    def test_revoked(self, owner):
        token = jwt_service.generate_access_token(owner.id)
        jwt_service.revoke_token(token)
        with pytest.raises(jwt.InvalidTokenError):
            jwt_service.decode_access_token(token)

    def test_provider_rejects_garbage(self, app):
        with app.test_request_context(headers=_bearer("not-a-token")):
            with pytest.raises(AuthenticationError):
                JWTIdentityProvider().current_user()

    def test_provider_sign_in(self, app, owner):
        with app.test_request_context():
            creds = JWTIdentityProvider().sign_in(owner)
        assert creds["token_type"] == "Bearer"
        assert creds["expires_in"] == app.config["JWT_ACCESS_EXPIRES"]


# ═════════════════════════════════════════════════════════════════════════════
# API
# ═════════════════════════════════════════════════════════════════════════════


class TestApiAuthorization:
    def test_anonymous_rejected(self, client, project, auth_enabled):
        res = client.get(f"/api/v1/projects/{project.id}")
        assert res.status_code == 401
        assert res.get_json()["code"] == "ERR_UNAUTHENTICATED"

    def test_health_is_public(self, client, auth_enabled):
        assert client.get("/api/v1/health").status_code == 200

    def test_viewer_can_read_but_not_write(self, app, client, project, viewer, auth_enabled, monkeypatch):
        _act_as(app, viewer, monkeypatch)
        assert client.get(f"/api/v1/projects/{project.id}/processes").status_code == 200
        res = client.post(f"/api/v1/projects/{project.id}/processes", json={"title": "Nope"})
        assert res.status_code == 403
        assert res.get_json()["details"]["required_role"] == "editor"

    def test_non_member_forbidden(self, app, client, project, auth_enabled, monkeypatch):
        stranger = project_service.create_profile({"email": "stranger@example.com"})
        _act_as(app, stranger, monkeypatch)
        assert client.get(f"/api/v1/projects/{project.id}").status_code == 403

    def test_owner_creates_project_as_self(self, app, client, owner, auth_enabled, monkeypatch):
        _act_as(app, owner, monkeypatch)
        res = client.post("/api/v1/projects", json={"title": "Mine"})
        assert res.status_code == 201
        assert res.get_json()["owner_id"] == owner.id

    def test_me_with_bearer_token(self, client, project, owner, jwt_app):
        token = jwt_service.generate_access_token(owner.id)
        res = client.get("/api/v1/auth/me", headers=_bearer(token))
        assert res.status_code == 200
        body = res.get_json()
        assert body["profile"]["id"] == owner.id
        assert body["memberships"] == [{"project_id": project.id, "role": "owner"}]

    def test_sign_out_revokes_token(self, client, owner, jwt_app):
        token = jwt_service.generate_access_token(owner.id)
        assert client.post("/api/v1/auth/sign-out", headers=_bearer(token)).status_code == 200
        res = client.get("/api/v1/auth/me", headers=_bearer(token))
        assert res.status_code == 401

    def test_invalid_bearer_token(self, client, jwt_app):
        res = client.get("/api/v1/projects", headers=_bearer("garbage"))
        assert res.status_code == 401

    def test_static_sign_out_keeps_other_clients_signed_in(self, app, project, owner, auth_enabled, monkeypatch):
        _act_as(app, owner, monkeypatch)
        first, second = app.test_client(), app.test_client()
        res = first.post("/api/v1/auth/sign-out")
        assert res.status_code == 200
        assert res.get_json()["signed_out"] is False
        assert second.get(f"/api/v1/projects/{project.id}").status_code == 200
        assert first.get("/api/v1/auth/me").get_json()["profile"]["id"] == owner.id
