import logging
from functools import wraps

from flask import Blueprint, jsonify, request, session

from .booking import SubmissionStatus
from .exceptions import SeatBookingException
from .services import (
    SIGN_IN_URL, AuthService, BookingStoreService, SeatLayoutService, seat_booking,
)


logger = logging.getLogger(__name__)

bp = Blueprint('api', __name__, url_prefix='/api')


# ==================== ERROR HANDLING ====================

def handle_exceptions(f):
    """Decorator for error handling"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except SeatBookingException as e:
            return jsonify({'error': e.message}), e.status_code
        except Exception:
            logger.exception("Unhandled error in %s", request.path)
            return jsonify({'error': 'Internal server error'}), 500
    return decorated_function


def login_required(f):
    """Decorator to require login"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if 'user_id' not in session:
            return jsonify({'error': 'Please login to continue', 'signIn': SIGN_IN_URL}), 401
        return f(*args, **kwargs)
    return decorated_function


def _user_payload(user):
    return {
        'id': user.id,
        'username': user.username,
        'email': user.email
    }


# ==================== AUTH ====================

@bp.route('/auth/register', methods=['POST'])
@handle_exceptions
def api_register():
    """Register a new user"""
    data = request.get_json(silent=True)

    if not data or not data.get('email') or not data.get('password'):
        return jsonify({'error': 'Email and password are required'}), 400

    user = AuthService.register_user(
        username=data.get('username', data.get('email').split('@')[0]),
        email=data.get('email'),
        password=data.get('password')
    )

    # Auto login after registration
    next_url = AuthService.start_session(user)

    return jsonify({
        'message': 'Registration successful',
        'user': _user_payload(user),
        'next': next_url
    }), 201


@bp.route('/auth/login', methods=['POST'])
@handle_exceptions
def api_login():
    """Login user"""
    data = request.get_json(silent=True)

    if not data or not data.get('email') or not data.get('password'):
        return jsonify({'error': 'Email and password are required'}), 400

    user = AuthService.login_user(
        email=data.get('email'),
        password=data.get('password')
    )
    next_url = AuthService.start_session(user)

    return jsonify({
        'message': 'Login successful',
        'user': _user_payload(user),
        'next': next_url
    })


@bp.route('/auth/logout', methods=['POST'])
def api_logout():
    """Logout user"""
    session.clear()
    return jsonify({'message': 'Logged out successfully'})


@bp.route('/auth/me', methods=['GET'])
@handle_exceptions
def api_get_current_user():
    """Get current logged in user"""
    user = AuthService.get_current_user()
    if not user:
        return jsonify({'error': 'Not logged in'}), 401

    return jsonify(_user_payload(user))


# ==================== SHOWTIMES ====================

@bp.route('/movies/<movie_id>/dates', methods=['GET'])
@handle_exceptions
def api_show_dates(movie_id):
    """Bookable dates for a movie"""
    dates = SeatLayoutService.get_dates(request.args.get('releaseDate'))
    return jsonify({'movieId': movie_id, 'dates': dates})


@bp.route('/movies/<movie_id>/timings', methods=['GET'])
@handle_exceptions
def api_show_timings(movie_id):
    """Timings still open on a date"""
    show_date = request.args.get('date')
    if not show_date:
        return jsonify({'error': 'date is required'}), 400

    timings = SeatLayoutService.get_timings(show_date, request.args.get('releaseDate'))
    return jsonify({'movieId': movie_id, 'date': show_date, 'timings': timings})


# ==================== SEAT LAYOUT ====================

@bp.route('/seat-layout/<movie_id>', methods=['GET'])
@handle_exceptions
def api_open_seat_layout(movie_id):
    """Open (or resume) the seat layout for a movie"""
    layout = SeatLayoutService.open_layout(movie_id, request.args.get('releaseDate'))
    return jsonify(layout)


@bp.route('/seat-layout/<movie_id>/showtime', methods=['POST'])
@handle_exceptions
def api_select_showtime(movie_id):
    """Pick a date and optionally a timing; clears selected seats"""
    data = request.get_json(silent=True) or {}
    if not data.get('date'):
        return jsonify({'error': 'date is required'}), 400

    layout = SeatLayoutService.select_showtime(
        movie_id, data['date'], data.get('time'), data.get('releaseDate')
    )
    return jsonify(layout)


@bp.route('/seat-layout/<movie_id>/seats/<seat_id>', methods=['POST'])
@handle_exceptions
def api_toggle_seat(movie_id, seat_id):
    """Select or unselect a seat"""
    layout = SeatLayoutService.toggle_seat(movie_id, seat_id)
    return jsonify(layout)


@bp.route('/seat-layout/<movie_id>/checkout', methods=['POST'])
@handle_exceptions
def api_checkout(movie_id):
    """Submit the selected seats as a booking"""
    data = request.get_json(silent=True) or {}
    result = SeatLayoutService.checkout(movie_id, data)

    if result.status is SubmissionStatus.SIGN_IN_REQUIRED:
        return jsonify({'error': 'Please login to continue', 'signIn': SIGN_IN_URL}), 401

    status_code = 201 if result.status is SubmissionStatus.CONFIRMED else 202
    return jsonify({
        'status': result.status.value,
        'booking': result.booking.to_dict(),
        'record': result.record,
        'next': result.next_url
    }), status_code


@bp.route('/seat-layout/<movie_id>', methods=['DELETE'])
def api_close_seat_layout(movie_id):
    """Close the seat layout, dropping the selection"""
    closed = SeatLayoutService.close_layout(movie_id)
    return jsonify({'closed': closed})


# ==================== MY BOOKINGS ====================

@bp.route('/my-bookings', methods=['GET'])
@handle_exceptions
@login_required
def api_my_bookings():
    """Bookings of the logged in user, including locally held ones"""
    bookings = seat_booking().bookings_list.for_user(session['user_id'])
    return jsonify({'bookings': bookings})


@bp.route('/my-bookings/<booking_id>', methods=['DELETE'])
@handle_exceptions
@login_required
def api_cancel_my_booking(booking_id):
    """Cancel one of the logged in user's bookings"""
    where = seat_booking().bookings_list.cancel(str(session['user_id']), booking_id)
    return jsonify({'message': 'Booking cancelled successfully', 'source': where})


# ==================== BOOKING STORE ====================

@bp.route('/bookings', methods=['POST'])
@handle_exceptions
def api_create_booking():
    """Create a booking"""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({'error': 'JSON body required'}), 400

    record, created = BookingStoreService.create_booking(data)
    return jsonify(record.to_dict()), 201 if created else 200


@bp.route('/bookings', methods=['GET'])
@handle_exceptions
def api_list_bookings():
    """Bookings for a user"""
    user_id = request.args.get('userId')
    if not user_id:
        return jsonify({'error': 'userId is required'}), 400

    return jsonify({'bookings': BookingStoreService.get_user_bookings(user_id)})


@bp.route('/bookings/<int:booking_id>', methods=['DELETE'])
@handle_exceptions
def api_cancel_booking(booking_id):
    """Cancel a booking"""
    record = BookingStoreService.cancel_booking(booking_id)
    return jsonify({'message': 'Booking cancelled', 'booking': record.to_dict()})
