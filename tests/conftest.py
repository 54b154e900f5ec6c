import random
from datetime import datetime

import pytest

from seatbooking import create_app
from seatbooking.config import TestingConfig
from seatbooking.exceptions import RemoteStoreError


FIXED_NOW = datetime(2024, 1, 1, 12, 0)


class StubRemoteStore:
    """Booking store double that either accepts or rejects every call"""

    def __init__(self, accept=True, status=503):
        self.accept = accept
        self.status = status
        self.created = []
        self.cancelled = []

    def create(self, booking):
        if not self.accept:
            raise RemoteStoreError(
                f'POST /api/bookings returned {self.status}',
                response_status=self.status,
                detail='Seat already booked' if self.status == 409 else None,
            )
        record = dict(booking.to_dict(), id=len(self.created) + 1)
        self.created.append(record)
        return record

    def list_for_user(self, user_id):
        if not self.accept:
            raise RemoteStoreError('GET /api/bookings returned 503', response_status=503)
        return [
            record for record in self.created
            if record['userId'] == str(user_id) and record['id'] not in self.cancelled
        ]

    def cancel(self, booking_id):
        if not self.accept:
            raise RemoteStoreError('DELETE returned 503', response_status=503)
        ids = {str(record['id']) for record in self.created}
        if str(booking_id) not in ids:
            raise RemoteStoreError('DELETE returned 404', response_status=404)
        self.cancelled.append(int(booking_id))
        return {'message': 'Booking cancelled'}


class BookingApiRemoteStore:
    """Remote store that calls this app's own /api/bookings through the test client"""

    def __init__(self, app):
        self.client = app.test_client()

    def create(self, booking):
        response = self.client.post('/api/bookings', json=booking.to_dict())
        body = response.get_json()
        if response.status_code >= 300:
            raise RemoteStoreError(
                f'POST /api/bookings returned {response.status_code}',
                response_status=response.status_code,
                detail=body.get('error'),
            )
        return body

    def list_for_user(self, user_id):
        return self.client.get(f'/api/bookings?userId={user_id}').get_json()['bookings']

    def cancel(self, booking_id):
        return self.client.delete(f'/api/bookings/{booking_id}').get_json()


class FrozenClock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


class MemoryLocalStore:
    """Key/value store double for tests that do not need a database"""

    def __init__(self, entries=None):
        self.entries = dict(entries or {})

    def get(self, key):
        return self.entries.get(key)

    def set(self, key, value):
        self.entries[key] = value


@pytest.fixture
def remote_store():
    return StubRemoteStore()


@pytest.fixture
def clock():
    return FrozenClock(FIXED_NOW)


@pytest.fixture
def app(tmp_path, remote_store, clock):
    app = create_app(
        TestingConfig,
        clock=clock,
        rng=random.Random(7),
        remote_store=remote_store,
        SESSION_FILE_DIR=str(tmp_path / 'sessions'),
    )
    with app.app_context():
        yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def signed_in_client(client):
    response = client.post('/api/auth/register', json={
        'email': 'priya@example.com',
        'password': 'popcorn123',
    })
    assert response.status_code == 201
    return client
