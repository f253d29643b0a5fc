"""
Shared pytest fixtures for the Agency Ops test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - actor / headers: acting user as a dict and as identity headers
    - project: project created through the service layer with the stage template
"""

from datetime import date

import pytest

from agency_ops import create_app
from agency_ops.models import db as _db
from agency_ops.models.payment import ClientPayment


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
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Convenience fixtures ─────────────────────────────────────────────────


@pytest.fixture()
def actor():
    return {"id": "u-1", "name": "Ayşe PM", "role": "admin"}


@pytest.fixture()
def headers(actor):
    return {
        "X-User-Id": actor["id"],
        "X-User-Name": actor["name"],
        "X-User-Role": actor["role"],
    }


def make_project(actor=None, **overrides):
    """Create a project through the service layer (template stages, no payments by default)."""
    from agency_ops.services.project_service import create_project

    data = {"name": "Acme Storefront", "client": "Acme Ltd", "total_amount": 0}
    data.update(overrides)
    return create_project(data, actor or {"id": "u-1", "name": "Ayşe PM", "role": "admin"})


def add_payment(project, label, amount=1000, *, status="pending", due_date=None):
    """Persist one ClientPayment for ``project``."""
    payment = ClientPayment(
        project_id=project.id, label=label, amount=amount, status=status, due_date=due_date,
    )
    _db.session.add(payment)
    _db.session.commit()
    return payment


@pytest.fixture()
def project(actor):
    """Project with the seven template stages and a three-person team."""
    return make_project(
        actor,
        due_date=date(2030, 1, 31).isoformat(),
        team=[
            {"role": "Project Manager", "name": "Ayşe"},
            {"role": "Frontend Dev", "name": "Mehmet"},
            {"role": "Backend Dev", "name": "Elif"},
        ],
    )


@pytest.fixture()
def make_project_fn():
    """The ``make_project`` helper, for tests that need several projects."""
    return make_project


@pytest.fixture()
def add_payment_fn():
    """The ``add_payment`` helper."""
    return add_payment
