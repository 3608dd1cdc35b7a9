from __future__ import annotations

import pytest

from workforce_dashboard import create_app
from workforce_dashboard.extensions import db
from workforce_dashboard.models import Employee, SourceConfig, User
from workforce_sync.domain.card_numbers import normalize_card_number


@pytest.fixture
def app(tmp_path):
    app = create_app({
        'TESTING': True,
        'SECRET_KEY': 'test',
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'test.db'}",
        'ENABLE_SCHEDULER': False,
    })
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def ctx(app):
    with app.app_context():
        yield app


@pytest.fixture
def client(app):
    return app.test_client()


def create_user(app, email='admin@example.com', password='secret', is_admin=True, card_no=None) -> int:
    with app.app_context():
        user = User(email=email, name=email.split('@')[0], is_admin=is_admin, employee_card_no=card_no)
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        return user.id


def login(client, email='admin@example.com', password='secret'):
    response = client.post('/login', json={'email': email, 'password': password})
    assert response.status_code == 200
    return response


@pytest.fixture
def admin_client(app, client):
    create_user(app)
    login(client)
    return client


def add_employee(card: str, first_name: str = 'Test', **values) -> Employee:
    employee = Employee(
        card_number=card,
        card_number_normalized=normalize_card_number(card),
        first_name=first_name,
        **values,
    )
    db.session.add(employee)
    db.session.commit()
    return employee


def add_source(**values) -> SourceConfig:
    values.setdefault('name', 'HR master')
    values.setdefault('kind', 'csv')
    source = SourceConfig(**values)
    db.session.add(source)
    db.session.commit()
    return source


class FakeWarehouse:
    def __init__(self, rows=None, configured=True):
        self.rows = rows or {}
        self.configured = configured
        self.requested = []

    def is_configured(self):
        return self.configured

    def get_attendance_for_date(self, day):
        self.requested.append(day)
        return self.rows.get(day, {})
