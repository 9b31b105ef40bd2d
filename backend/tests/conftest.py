"""
Pytest fixtures for portal backend tests.

Provides the app on an in-memory database, per-test table cleanup,
admin/employee accounts with bearer headers, and a spreadsheet builder.
"""

import io

import pytest
from openpyxl import Workbook

from portal import create_app
from portal.extensions import db
from portal.models.auth import ROLE_ADMIN, ROLE_EMPLOYEE
from portal.services.auth_service import create_user


TEST_PASSWORD = "Password123"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def db_session(app):
    """Fresh tables for each test."""
    db.session.rollback()
    for table in reversed(db.metadata.sorted_tables):
        db.session.execute(table.delete())
    db.session.commit()

    yield db.session

    db.session.rollback()


@pytest.fixture(scope='function')
def client(app, db_session):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def admin_user(db_session):
    return create_user(username="admin", password=TEST_PASSWORD, role=ROLE_ADMIN)


@pytest.fixture(scope='function')
def employee_user(db_session):
    return create_user(username="clerk", password=TEST_PASSWORD, role=ROLE_EMPLOYEE)


def get_auth_token(client, username: str, password: str = TEST_PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'username': username,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def admin_headers(client, admin_user):
    return auth_headers(get_auth_token(client, admin_user.username))


@pytest.fixture(scope='function')
def employee_headers(client, employee_user):
    return auth_headers(get_auth_token(client, employee_user.username))


def make_xlsx(rows) -> bytes:
    """First row is the header row."""
    wb = Workbook()
    ws = wb.active
    for row in rows:
        ws.append(list(row))
    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


@pytest.fixture
def xlsx_bytes():
    return make_xlsx
