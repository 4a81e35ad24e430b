"""
Shared test fixtures

- in-memory ledger for the counting engine
- Flask app on a temporary SQLite file with logged-in clients
"""

from datetime import date

import pytest

from stockcount import counting
from stockcount.app import create_app
from stockcount.ledger import InMemoryLedgerStore

FIXED_TODAY = date(2025, 3, 10)


@pytest.fixture
def store():
    return InMemoryLedgerStore()


@pytest.fixture
def fixed_today(monkeypatch):
    """Pin the server's notion of today."""
    monkeypatch.setattr(counting, "today", lambda boundary="utc": FIXED_TODAY)
    return FIXED_TODAY


@pytest.fixture
def flask_app(tmp_path, fixed_today):
    app = create_app({
        "TESTING": True,
        "SECRET_KEY": "test-secret",
        "DATABASE_URL": f"sqlite:///{tmp_path / 'test.db'}",
        "LOG_DIR": tmp_path / "logs",
        "ADMIN_PASSWORD": "admin-pw",
        "STAFF_PASSWORD": "staff-pw",
    })
    yield app


@pytest.fixture
def ledger(flask_app):
    return flask_app.extensions["stockcount.ledger"]


@pytest.fixture
def client(flask_app):
    """Anonymous client"""
    return flask_app.test_client()


def _logged_in(app, username, password):
    c = app.test_client()
    resp = c.post("/login", json={"username": username, "password": password})
    assert resp.status_code == 200, resp.get_json()
    return c


@pytest.fixture
def staff_client(flask_app):
    return _logged_in(flask_app, "staff", "staff-pw")


@pytest.fixture
def admin_client(flask_app):
    return _logged_in(flask_app, "admin", "admin-pw")
