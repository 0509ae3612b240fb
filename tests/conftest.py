"""
Shared pytest fixtures for the CITH report tracker test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - org: Demo hierarchy (2 districts, 3 areas, 1 zone, 3 centres, one user per role)
    - services: Service bundle bound to the test session
    - as_user: X-User-Id header factory for API tests
"""

from types import SimpleNamespace

import pytest

from cith import create_app
from cith.models import db as _db
from cith.services.demo_seed import seed_demo_hierarchy
from cith.services.wiring import build_services


VALID_PAYLOAD = {
    "male": 10,
    "female": 15,
    "children": 5,
    "offerings": 1000,
    "numberOfTestimonies": 2,
    "numberOfFirstTimers": 1,
    "firstTimersFollowedUp": 1,
    "firstTimersConvertedToCITH": 0,
    "modeOfMeeting": "physical",
    "remarks": "Good meeting",
}


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
        yield _db.session
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Convenience fixtures ─────────────────────────────────────────────────


@pytest.fixture()
def org(session):
    """Seed and return the demo hierarchy as attributes (org.c1, org.area_a1, ...)."""
    seeded = seed_demo_hierarchy(session)
    session.commit()
    return SimpleNamespace(**seeded)


@pytest.fixture()
def services(app, session):
    """Service bundle over the test session, using the testing config."""
    return build_services(session, app.config)


@pytest.fixture()
def payload():
    """A fresh copy of a valid weekly report payload."""
    return dict(VALID_PAYLOAD)


@pytest.fixture()
def as_user():
    """Return a function building identity headers for a user."""

    def _headers(user):
        return {"X-User-Id": str(user.id)}

    return _headers
