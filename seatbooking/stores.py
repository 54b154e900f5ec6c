"""
Storage adapters used by the seat layout.

``LocalStore`` is the durable key/value text store standing in for device
storage; ``FallbackBookings`` keeps bookings the remote store did not accept
under its ``bookings`` key. ``RemoteBookingStore`` talks JSON over HTTP to the
booking store API.
"""

import json
import logging

from curl_cffi import CurlError
from curl_cffi import requests as c_requests

from .booking import Booking
from .exceptions import RemoteStoreError
from .extensions import db
from .models import LocalEntry


logger = logging.getLogger(__name__)

FALLBACK_BOOKINGS_KEY = 'bookings'


class LocalStore:
    """Durable key/value text store backed by the ``local_entry`` table"""

    def get(self, key):
        entry = db.session.get(LocalEntry, key)
        return entry.value if entry else None

    def set(self, key, value):
        entry = db.session.get(LocalEntry, key)
        if entry:
            entry.value = value
        else:
            db.session.add(LocalEntry(key=key, value=value))
        db.session.commit()


class FallbackBookings:
    """Bookings kept locally because the remote store could not take them"""

    def __init__(self, local_store):
        self.local_store = local_store

    def _load(self):
        raw = self.local_store.get(FALLBACK_BOOKINGS_KEY)
        if not raw:
            return []
        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning("Local bookings entry is not valid JSON, treating it as empty")
            return []
        if not isinstance(data, list):
            logger.warning("Local bookings entry is not a list, treating it as empty")
            return []
        return [item for item in data if isinstance(item, dict)]

    def _save(self, items):
        self.local_store.set(FALLBACK_BOOKINGS_KEY, json.dumps(items))

    def all(self):
        bookings = []
        for item in self._load():
            try:
                bookings.append(Booking.from_dict(item))
            except KeyError as e:
                logger.warning("Skipping local booking without %s", e)
        return bookings

    def for_user(self, user_id):
        return [booking for booking in self.all() if booking.user_id == str(user_id)]

    def append(self, booking):
        items = self._load()
        items.append(booking.to_dict())
        self._save(items)

    def remove(self, reference):
        """Drop the booking with ``reference``; returns True if one was removed."""
        items = self._load()
        kept = [item for item in items if item.get('reference') != reference]
        if len(kept) == len(items):
            return False
        self._save(kept)
        return True


def _error_detail(response):
    try:
        body = response.json()
    except ValueError:
        return None
    return body.get('error') if isinstance(body, dict) else None


class RemoteBookingStore:
    """Client for the ``/api/bookings`` resource"""

    def __init__(self, base_url, timeout=10.0):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout

    def _request(self, method, path, **kwargs):
        url = f"{self.base_url}{path}"
        try:
            response = c_requests.request(method, url, timeout=self.timeout, **kwargs)
        except CurlError as e:
            raise RemoteStoreError(f'{method} {url} failed: {e}')

        if not 200 <= response.status_code < 300:
            raise RemoteStoreError(
                f'{method} {url} returned {response.status_code}',
                response_status=response.status_code,
                detail=_error_detail(response),
            )

        try:
            return response.json()
        except ValueError:
            raise RemoteStoreError(f'{method} {url} returned a non-JSON body')

    def create(self, booking):
        return self._request('POST', '/api/bookings', json=booking.to_dict())

    def list_for_user(self, user_id):
        data = self._request('GET', '/api/bookings', params={'userId': user_id})
        return data.get('bookings', []) if isinstance(data, dict) else []

    def cancel(self, booking_id):
        return self._request('DELETE', f'/api/bookings/{booking_id}')
