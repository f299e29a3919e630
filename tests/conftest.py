"""Shared fixtures for the EventMaster test suite."""
from datetime import datetime
from decimal import Decimal

import mongomock
import pytest

from eventmaster import create_app
from eventmaster.config import TestingConfig
from eventmaster.mongo_storage import MongoStorage


class MemoryTestingConfig(TestingConfig):
    STORAGE_BACKEND = 'memory'


ADMIN_EMAIL = TestingConfig.ADMIN_EMAIL
ADMIN_PASSWORD = TestingConfig.ADMIN_PASSWORD


def event_data(**overrides):
    data = {
        'name': 'Python Meetup',
        'description': 'Monthly talks and pizza',
        'category': 'Technology',
        'start_date': datetime(2030, 5, 1, 18, 0),
        'end_date': datetime(2030, 5, 1, 21, 0),
        'location': 'Community Hall',
        'ticket_price': Decimal('25.00'),
        'max_attendees': 10,
        'status': 'active',
        'created_by': 'admin',
    }
    data.update(overrides)
    return data


def booking_data(event_id, user_id, **overrides):
    data = {
        'event_id': event_id,
        'user_id': user_id,
        'quantity': 2,
        'total_amount': Decimal('50.00'),
        'status': 'pending',
        'attendee_email': 'guest@example.com',
        'attendee_name': 'Guest',
    }
    data.update(overrides)
    return data


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------

@pytest.fixture
def app():
    return create_app(TestingConfig)


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def admin_client(app):
    client = app.test_client()
    resp = client.post('/api/login', json={'email': ADMIN_EMAIL, 'password': ADMIN_PASSWORD})
    assert resp.status_code == 200
    return client


@pytest.fixture
def user_client(app):
    client = app.test_client()
    resp = client.post('/api/register', json={
        'email': 'alice@example.com',
        'password': 'secret123',
        'first_name': 'Alice',
        'last_name': 'Smith',
    })
    assert resp.status_code == 201
    return client


@pytest.fixture
def other_client(app):
    client = app.test_client()
    resp = client.post('/api/register', json={'email': 'bob@example.com', 'password': 'secret123'})
    assert resp.status_code == 201
    return client


@pytest.fixture
def make_event(app):
    def _make(**overrides):
        with app.app_context():
            return app.extensions['eventmaster.storage'].create_event(event_data(**overrides))
    return _make


# ---------------------------------------------------------------------------
# Storage (contract tests run against every backend; Mongo through mongomock)
# ---------------------------------------------------------------------------

@pytest.fixture(params=['sql', 'memory', 'mongo'])
def storage(request):
    config = TestingConfig if request.param == 'sql' else MemoryTestingConfig
    app = create_app(config)
    with app.app_context():
        if request.param == 'mongo':
            yield MongoStorage(mongomock.MongoClient()['eventmaster_test'])
        else:
            yield app.extensions['eventmaster.storage']
