"""
Shared pytest fixtures for the Phaseboard test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - owner: Pre-created Profile
    - project: Pre-created Project owned by ``owner``
"""

import pytest

from phaseboard import create_app
from phaseboard.models import db as _db
from phaseboard.services import project_service
from phaseboard.services.change_feed import change_feed


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    application = create_app("testing")
    return application


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        # Subscribers survive across tests otherwise.
        change_feed.clear()
        yield
        change_feed.clear()
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Convenience fixtures ─────────────────────────────────────────────────


@pytest.fixture()
def owner():
    """A profile that owns the default project."""
    return project_service.create_profile({"email": "owner@example.com", "full_name": "Olga Owner"})


@pytest.fixture()
def project(owner):
    """A project with the default completed-weighted progress policy."""
    return project_service.create_project({"title": "Riverside Clinic"}, owner_id=owner.id)


@pytest.fixture()
def auth_enabled(app, monkeypatch):
    """Turn on API authentication for one test."""
    monkeypatch.setitem(app.config, "API_AUTH_ENABLED", "true")
    return app
