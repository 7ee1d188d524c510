"""Shared fixtures: an app on a temporary SQLite file with a frozen clock."""
from datetime import date

import pytest

from tasktracker.app import create_app
from tasktracker.ledger import CompletionLedger
from tasktracker.models import db
from tasktracker.service import TrackerService

# a Wednesday
TODAY = date(2024, 6, 12)


class FrozenClock:
    def __init__(self, today):
        self.today = today

    def __call__(self):
        return self.today


@pytest.fixture
def clock():
    return FrozenClock(TODAY)


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / 'tasks.db'


@pytest.fixture
def make_app(db_path, clock):
    apps = []

    def _make_app():
        app = create_app(
            {'SQLALCHEMY_DATABASE_URI': f'sqlite:///{db_path}', 'TESTING': True},
            clock=clock,
        )
        apps.append(app)
        return app

    yield _make_app
    for app in apps:
        with app.app_context():
            db.engine.dispose()


@pytest.fixture
def app(make_app):
    return make_app()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def other_client(app):
    return app.test_client()


@pytest.fixture
def service(app):
    with app.app_context():
        state = app.extensions['tasktracker']
        yield TrackerService(
            db.session, state.clock, state.write_lock, sweeper=state.make_sweeper(db.session),
        )


@pytest.fixture
def ledger(service):
    return CompletionLedger(db.session)
