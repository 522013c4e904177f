"""
Pytest fixtures for daybook backend tests.

Provides the test app, per-test table cleanup, a controllable clock and
register contexts bound to it.
"""

from datetime import datetime, timedelta

import pytest
from daybook import create_app
from daybook.config import TestingConfig
from daybook.extensions import db
from daybook import tasks
from daybook.services import closing_service, register_service
from daybook.services.context import ActingAs


class FrozenClock:
    """Callable clock returning a settable UTC-naive 'now'."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TestingConfig)

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()
        closing_service._drafts.clear()
        tasks._scheduled_sessions.clear()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def clock():
    """Tuesday 2026-03-10 14:00 UTC."""
    return FrozenClock(datetime(2026, 3, 10, 14, 0, 0))


@pytest.fixture(scope='function')
def cashier():
    return ActingAs(operator_id="u-alice", operator_name="Alice")


@pytest.fixture(scope='function')
def make_context(db_session, clock, cashier):
    """Factory: create a register and return a context bound to the frozen clock."""
    build_context = register_service.build_context

    def _make(register_id="REG-1", timezone="UTC", tenant_id="acme", acting_as=None):
        if register_service.get_register(tenant_id, register_id) is None:
            register_service.create_register(tenant_id, register_id, timezone=timezone)
        return build_context(
            tenant_id, register_id, acting_as or cashier, clock=clock,
        )

    return _make


@pytest.fixture(scope='function')
def context(make_context):
    return make_context()


@pytest.fixture(scope='function')
def headers():
    return {
        "X-Tenant-Id": "acme",
        "X-Operator-Id": "u-alice",
        "X-Operator-Name": "Alice",
    }
