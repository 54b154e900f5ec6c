"""
Service layer: business logic behind the HTTP routes.

``SeatLayoutService`` drives the seat selection screen for the signed-in
user, keeping the selection in the server-side session. ``BookingStoreService``
is the booking store API itself, and ``BookingsList`` merges what the user
has booked remotely with what is only held locally.
"""

import logging
import uuid

from flask import current_app, request, session

from .booking import SEAT_PRICE, BookingPipeline, MovieInfo
from .config import CACHE_TIMEOUT_BOOKINGS, CACHE_TIMEOUT_SEATS
from .exceptions import (
    BusinessLogicError, ConflictError, NotFoundError, RemoteStoreError,
)
from .extensions import cache, db
from .models import BookingRecord, User
from .seatmap import ROWS, SEATS_PER_ROW, Seat, SeatMapGenerator, ShowtimeKey
from .selection import SeatSelection
from .showtimes import available_timings, parse_timing, show_dates, to_date
from .stores import FallbackBookings, LocalStore


logger = logging.getLogger(__name__)

SEAT_LAYOUT_SESSION_KEY = 'seat_layout'
SIGN_IN_URL = '/api/auth/login'


# ==================== IDENTITY ====================

class AuthService:
    """Service for authentication-related business logic"""

    @staticmethod
    def register_user(username, email, password):
        """Register a new user"""
        if User.query.filter_by(email=email).first():
            raise BusinessLogicError('Email already registered')

        if User.query.filter_by(username=username).first():
            raise BusinessLogicError('Username already taken')

        user = User(username=username, email=email)
        user.set_password(password)

        db.session.add(user)
        db.session.commit()

        return user

    @staticmethod
    def login_user(email, password):
        """Authenticate user"""
        user = User.query.filter_by(email=email).first()

        if not user or not user.check_password(password):
            raise BusinessLogicError('Invalid email or password')

        return user

    @staticmethod
    def get_current_user():
        """Get current logged in user"""
        user_id = session.get('user_id')
        if not user_id:
            return None
        return db.session.get(User, user_id)

    @staticmethod
    def start_session(user):
        """Log ``user`` in, keeping any seat layout that was open"""
        layout = session.get(SEAT_LAYOUT_SESSION_KEY)
        next_url = session.get('next')
        session.clear()
        session['user_id'] = user.id
        session['username'] = user.username
        if layout:
            session[SEAT_LAYOUT_SESSION_KEY] = layout
        return next_url


class SessionIdentity:
    """Identity provider adapter for the booking pipeline"""

    def current_user(self):
        user = AuthService.get_current_user()
        if not user:
            return None
        return {'id': user.id}

    def prompt_sign_in(self):
        # come back to the seat layout after signing in
        session['next'] = request.path


# ==================== WIRING ====================

class SeatBooking:
    """Per-app collaborators, stored in ``app.extensions['seatbooking']``"""

    def __init__(self, remote_store, clock, rng=None):
        self.clock = clock
        self.local_store = LocalStore()
        self.remote_store = remote_store
        self.fallback_bookings = FallbackBookings(self.local_store)
        self.seat_map = SeatMapGenerator(self.local_store, clock, rng)
        self.pipeline = BookingPipeline(remote_store, self.fallback_bookings, SessionIdentity())
        self.bookings_list = BookingsList(remote_store, self.fallback_bookings)


def seat_booking():
    return current_app.extensions['seatbooking']


# ==================== SEAT LAYOUT ====================

class SeatLayoutService:
    """Service for the seat selection screen"""

    @staticmethod
    def get_reserved_seats(key):
        """Reserved seats for a showtime, with a short-lived cache in front"""
        cache_key = f'seats_{key.storage_key}'
        seat_ids = cache.get(cache_key)

        if seat_ids is None:
            reserved = seat_booking().seat_map.reserved_seats(key)
            seat_ids = [seat.seat_id for seat in sorted(reserved)]
            cache.set(cache_key, seat_ids, timeout=CACHE_TIMEOUT_SEATS)
            return reserved

        return frozenset(Seat.parse(seat_id) for seat_id in seat_ids)

    @staticmethod
    def get_dates(release_date=None):
        return show_dates(seat_booking().clock(), release_date)

    @staticmethod
    def get_timings(show_date, release_date=None):
        now = seat_booking().clock()
        show_date = to_date(show_date).isoformat()
        if show_date not in show_dates(now, release_date):
            raise BusinessLogicError(f'{show_date} is not open for booking')
        return available_timings(show_date, now)

    @staticmethod
    def _load(movie_id):
        data = session.get(SEAT_LAYOUT_SESSION_KEY)
        if not data or data.get('movie_id') != movie_id:
            return None, None
        now = seat_booking().clock()
        if data['date'] not in show_dates(now, data.get('release_date')):
            # resumed after its date left the booking window
            session.pop(SEAT_LAYOUT_SESSION_KEY)
            return None, None
        key = ShowtimeKey(data['movie_id'], data['date'], data['time'])
        reserved = SeatLayoutService.get_reserved_seats(key)
        return SeatSelection.from_session(data, reserved), data.get('release_date')

    @staticmethod
    def _stored_release_date(movie_id):
        data = session.get(SEAT_LAYOUT_SESSION_KEY)
        if data and data.get('movie_id') == movie_id:
            return data.get('release_date')
        return None

    @staticmethod
    def _save(selection, release_date):
        data = selection.to_session()
        data['release_date'] = release_date
        session[SEAT_LAYOUT_SESSION_KEY] = data

    @staticmethod
    def _require(movie_id):
        selection, release_date = SeatLayoutService._load(movie_id)
        if selection is None:
            raise NotFoundError(f'No seat layout open for movie {movie_id}')
        return selection, release_date

    @staticmethod
    def describe(selection, release_date=None):
        key = selection.key
        now = seat_booking().clock()
        return {
            'movieId': key.movie_id,
            'date': key.show_date,
            'time': key.timing,
            'dates': show_dates(now, release_date),
            'timings': available_timings(key.show_date, now),
            'rows': list(ROWS),
            'seatsPerRow': SEATS_PER_ROW,
            'reservedSeats': [seat.seat_id for seat in sorted(selection.reserved)],
            'selectedSeats': selection.seat_ids,
            'canProceed': selection.can_proceed,
            'seatPrice': SEAT_PRICE,
            'totalPrice': len(selection) * SEAT_PRICE,
        }

    @staticmethod
    def open_layout(movie_id, release_date=None):
        """Open the screen, resuming a layout already open for this movie"""
        selection, stored_release = SeatLayoutService._load(movie_id)
        if selection is not None and (release_date is None or release_date == stored_release):
            return SeatLayoutService.describe(selection, stored_release)

        first_date = SeatLayoutService.get_dates(release_date)[0]
        return SeatLayoutService.select_showtime(movie_id, first_date, release_date=release_date)

    @staticmethod
    def select_showtime(movie_id, show_date, timing=None, release_date=None):
        """Switch date and/or timing; the selection always starts over"""
        if release_date is None:
            release_date = SeatLayoutService._stored_release_date(movie_id)

        timings = SeatLayoutService.get_timings(show_date, release_date)
        if timing is None:
            timing = timings[0]
        else:
            parse_timing(timing)
            if timing not in timings:
                raise BusinessLogicError(f'{timing} is not available on {show_date}')

        key = ShowtimeKey(movie_id, to_date(show_date).isoformat(), timing)
        selection = SeatSelection()
        selection.switch_showtime(key, SeatLayoutService.get_reserved_seats(key))
        SeatLayoutService._save(selection, release_date)
        return SeatLayoutService.describe(selection, release_date)

    @staticmethod
    def toggle_seat(movie_id, seat_id):
        selection, release_date = SeatLayoutService._require(movie_id)
        seat = Seat.parse(seat_id)
        if selection.is_reserved(seat):
            logger.debug("Ignoring click on reserved seat %s", seat.seat_id)
        else:
            selection.toggle(seat)
            SeatLayoutService._save(selection, release_date)
        return SeatLayoutService.describe(selection, release_date)

    @staticmethod
    def checkout(movie_id, metadata):
        selection, release_date = SeatLayoutService._require(movie_id)
        movie = MovieInfo(
            movie_id=movie_id,
            title=metadata.get('title') or "Untitled Movie",
            duration=metadata.get('duration') or "N/A",
            image=metadata.get('image') or "",
            release_date=release_date,
        )

        result = seat_booking().pipeline.submit(selection, movie)
        if result.stored:
            SeatLayoutService._save(selection, release_date)
        return result

    @staticmethod
    def close_layout(movie_id):
        data = session.get(SEAT_LAYOUT_SESSION_KEY)
        if data and data.get('movie_id') == movie_id:
            session.pop(SEAT_LAYOUT_SESSION_KEY)
            return True
        return False


# ==================== BOOKING STORE ====================

class BookingStoreService:
    """Service backing the /api/bookings resource"""

    REQUIRED_FIELDS = ('userId', 'movieId', 'title', 'date', 'time', 'seats')

    @staticmethod
    def _validate(data):
        missing = [name for name in BookingStoreService.REQUIRED_FIELDS if not data.get(name)]
        if missing:
            raise BusinessLogicError(f"Missing fields: {', '.join(missing)}")

        if not isinstance(data['seats'], list):
            raise BusinessLogicError('seats must be a list of seat ids')
        seats = [Seat.parse(seat_id) for seat_id in data['seats']]
        if len(set(seats)) != len(seats):
            raise BusinessLogicError('Duplicate seats in booking')

        total_seats = data.get('totalSeats', len(seats))
        if total_seats != len(seats):
            raise BusinessLogicError('totalSeats does not match seats')

        total_price = data.get('totalPrice', total_seats * SEAT_PRICE)
        if total_price != total_seats * SEAT_PRICE:
            raise BusinessLogicError(f'totalPrice must be {total_seats * SEAT_PRICE}')

        parse_timing(data['time'])
        return seats, to_date(data['date']).isoformat(), total_seats, total_price

    @staticmethod
    def taken_seats(movie_id, show_date, show_time):
        records = BookingRecord.query.filter_by(
            movie_id=movie_id, show_date=show_date, show_time=show_time, status='confirmed'
        ).all()
        return {seat_id for record in records for seat_id in record.seat_ids}

    @staticmethod
    def create_booking(data):
        """Create a booking; returns (record, created)"""
        seats, show_date, total_seats, total_price = BookingStoreService._validate(data)

        reference = data.get('reference') or uuid.uuid4().hex
        existing = BookingRecord.query.filter_by(reference=reference).first()
        if existing:
            return existing, False

        movie_id = str(data['movieId'])
        seat_ids = [seat.seat_id for seat in seats]
        taken = BookingStoreService.taken_seats(movie_id, show_date, data['time'])
        clashing = [seat_id for seat_id in seat_ids if seat_id in taken]
        if clashing:
            raise ConflictError(
                f"Seat already booked: {', '.join(clashing)}. Please select another seat."
            )

        record = BookingRecord(
            reference=reference,
            user_id=str(data['userId']),
            movie_id=movie_id,
            title=data['title'],
            duration=data.get('duration') or 'N/A',
            image=data.get('image') or '',
            show_date=show_date,
            show_time=data['time'],
            seats=','.join(seat_ids),
            total_seats=total_seats,
            total_price=total_price,
        )
        db.session.add(record)
        db.session.commit()

        BookingStoreService.invalidate_user_bookings_cache(record.user_id)
        return record, True

    @staticmethod
    def get_user_bookings(user_id):
        """Get all bookings for a user"""
        cache_key = f'bookings_{user_id}'
        cached_data = cache.get(cache_key)

        if cached_data is not None:
            return cached_data

        records = (
            BookingRecord.query
            .filter_by(user_id=str(user_id), status='confirmed')
            .order_by(BookingRecord.booked_at.desc(), BookingRecord.id.desc())
            .all()
        )
        bookings_data = [record.to_dict() for record in records]

        cache.set(cache_key, bookings_data, timeout=CACHE_TIMEOUT_BOOKINGS)
        return bookings_data

    @staticmethod
    def cancel_booking(booking_id):
        record = db.session.get(BookingRecord, booking_id)
        if not record or record.status == 'cancelled':
            raise NotFoundError(f'Booking with ID {booking_id} not found')

        record.status = 'cancelled'
        db.session.commit()

        BookingStoreService.invalidate_user_bookings_cache(record.user_id)
        return record

    @staticmethod
    def invalidate_user_bookings_cache(user_id):
        """Invalidate cache for user bookings"""
        cache.delete(f'bookings_{user_id}')


# ==================== BOOKINGS LIST ====================

class BookingsList:
    """A user's bookings, remote and locally held"""

    def __init__(self, remote_store, fallback_bookings):
        self.remote_store = remote_store
        self.fallback_bookings = fallback_bookings

    def for_user(self, user_id):
        try:
            remote = self.remote_store.list_for_user(user_id)
        except RemoteStoreError as e:
            logger.warning("Error fetching bookings for user %s: %s", user_id, e.message)
            remote = []

        local = [
            dict(booking.to_dict(), pendingSync=True)
            for booking in self.fallback_bookings.for_user(user_id)
        ]
        return remote + local

    def cancel(self, user_id, booking_id):
        """Cancel a booking; local ones are identified by their reference"""
        local_refs = {booking.reference for booking in self.fallback_bookings.for_user(user_id)}
        if booking_id in local_refs:
            self.fallback_bookings.remove(booking_id)
            return 'local'

        try:
            self.remote_store.cancel(booking_id)
        except RemoteStoreError as e:
            if e.response_status == 404:
                raise NotFoundError(f'Booking with ID {booking_id} not found')
            raise
        return 'remote'

    def reconcile(self):
        """
        Push locally held bookings to the remote store.

        Accepted bookings leave the local store. Bookings the store refuses
        (4xx, e.g. seats taken meanwhile) are dropped too, since resending them
        cannot succeed. Returns (pushed, kept, dropped).
        """
        pushed = kept = dropped = 0
        for booking in self.fallback_bookings.all():
            try:
                self.remote_store.create(booking)
            except RemoteStoreError as e:
                if e.rejected:
                    logger.warning(
                        "Dropping local booking %s rejected by backend: %s",
                        booking.reference, e.detail or e.message,
                    )
                    self.fallback_bookings.remove(booking.reference)
                    dropped += 1
                else:
                    logger.warning("Booking %s still not accepted: %s", booking.reference, e.message)
                    kept += 1
                continue
            self.fallback_bookings.remove(booking.reference)
            pushed += 1

        logger.info(
            "Reconciled local bookings: %d pushed, %d kept, %d dropped", pushed, kept, dropped
        )
        return pushed, kept, dropped
