"""
Booking records and the submission pipeline.

Submitting tries the remote booking store first. If the store cannot be
reached or fails on its side, the booking is kept in the local fallback store
instead and the caller is told which of the two happened. A booking the store
refuses (4xx, e.g. seats already taken) is not kept anywhere.
"""

import enum
import logging
import threading
import uuid
from dataclasses import dataclass
from typing import Optional, Tuple

from .exceptions import (
    BookingRejectedError, BusinessLogicError, RemoteStoreError, SubmissionInProgressError,
)


logger = logging.getLogger(__name__)

SEAT_PRICE = 200
BOOKINGS_LIST_URL = '/api/my-bookings'


@dataclass(frozen=True)
class MovieInfo:
    """Movie metadata handed in by the caller; never fetched here."""
    movie_id: str
    title: str = "Untitled Movie"
    duration: str = "2h 0m"
    image: str = ""
    release_date: Optional[str] = None


@dataclass(frozen=True)
class Booking:
    user_id: str
    movie_id: str
    title: str
    duration: str
    image: str
    date: str
    time: str
    seats: Tuple[str, ...]
    total_seats: int
    total_price: int
    reference: str

    def to_dict(self):
        return {
            'userId': self.user_id,
            'movieId': self.movie_id,
            'title': self.title,
            'duration': self.duration,
            'image': self.image,
            'date': self.date,
            'time': self.time,
            'seats': list(self.seats),
            'totalSeats': self.total_seats,
            'totalPrice': self.total_price,
            'reference': self.reference,
        }

    @classmethod
    def from_dict(cls, data):
        seats = tuple(data.get('seats') or ())
        return cls(
            user_id=str(data['userId']),
            movie_id=str(data['movieId']),
            title=data.get('title', ''),
            duration=data.get('duration', 'N/A'),
            image=data.get('image', ''),
            date=data['date'],
            time=data['time'],
            seats=seats,
            total_seats=data.get('totalSeats', len(seats)),
            total_price=data.get('totalPrice', len(seats) * SEAT_PRICE),
            reference=data.get('reference') or uuid.uuid4().hex,
        )


def build_booking(user_id, movie, selection):
    seats = tuple(selection.seat_ids)
    return Booking(
        user_id=str(user_id),
        movie_id=str(movie.movie_id),
        title=movie.title,
        duration=movie.duration or "N/A",
        image=movie.image,
        date=selection.key.show_date,
        time=selection.key.timing,
        seats=seats,
        total_seats=len(seats),
        total_price=len(seats) * SEAT_PRICE,
        reference=uuid.uuid4().hex,
    )


class SubmissionStatus(enum.Enum):
    CONFIRMED = "confirmed"
    FALLBACK_STORED = "fallback_stored"
    SIGN_IN_REQUIRED = "sign_in_required"


@dataclass
class SubmissionResult:
    status: SubmissionStatus
    booking: Optional[Booking] = None
    record: Optional[dict] = None
    next_url: Optional[str] = None

    @property
    def stored(self):
        return self.status in (SubmissionStatus.CONFIRMED, SubmissionStatus.FALLBACK_STORED)


class BookingPipeline:
    """Builds a booking from the selection and persists it remotely or locally."""

    def __init__(self, remote_store, fallback_bookings, identity):
        self.remote_store = remote_store
        self.fallback_bookings = fallback_bookings
        self.identity = identity
        self._lock = threading.Lock()
        self._in_flight = set()

    def submit(self, selection, movie):
        user = self.identity.current_user()
        if not user:
            self.identity.prompt_sign_in()
            return SubmissionResult(SubmissionStatus.SIGN_IN_REQUIRED)

        if selection.key is None or not selection.can_proceed:
            raise BusinessLogicError('Please select a seat')

        user_id = str(user['id'])
        with self._lock:
            if user_id in self._in_flight:
                raise SubmissionInProgressError()
            self._in_flight.add(user_id)

        try:
            booking = build_booking(user_id, movie, selection)
            result = self._persist(booking)
            selection.reset()
            return result
        finally:
            with self._lock:
                self._in_flight.discard(user_id)

    def _persist(self, booking):
        try:
            record = self.remote_store.create(booking)
        except RemoteStoreError as e:
            if e.rejected:
                logger.warning("Backend rejected booking %s: %s", booking.reference, e.detail or e.message)
                raise BookingRejectedError(
                    e.detail or 'Booking was rejected',
                    status_code=409 if e.response_status == 409 else 400,
                )
            logger.error("Backend booking failed, saving locally: %s", e.message)
            self.fallback_bookings.append(booking)
            logger.info("Booking %s saved locally", booking.reference)
            return SubmissionResult(
                SubmissionStatus.FALLBACK_STORED, booking, next_url=BOOKINGS_LIST_URL
            )

        logger.info("Booking %s confirmed by backend", booking.reference)
        return SubmissionResult(
            SubmissionStatus.CONFIRMED, booking, record=record, next_url=BOOKINGS_LIST_URL
        )
