from datetime import datetime

import pytest

from seatbooking.booking import Booking
from seatbooking.extensions import cache
from seatbooking.seatmap import ROWS, SEATS_PER_ROW

from tests.conftest import BookingApiRemoteStore


def free_seats(layout, count):
    reserved = set(layout['reservedSeats'])
    seats = [
        f"{row}{number}"
        for row in ROWS
        for number in range(1, SEATS_PER_ROW + 1)
        if f"{row}{number}" not in reserved
    ]
    return seats[:count]


def open_layout(client, movie_id='550'):
    response = client.get(f'/api/seat-layout/{movie_id}')
    assert response.status_code == 200
    return response.get_json()


# ==================== SHOWTIMES ====================

def test_dates_for_upcoming_release(client):
    response = client.get('/api/movies/550/dates?releaseDate=2024-03-01')

    assert response.status_code == 200
    dates = response.get_json()['dates']
    assert dates[0] == '2024-03-01'
    assert len(dates) == 7


def test_timings_for_today_skip_past_shows(client):
    response = client.get('/api/movies/550/timings?date=2024-01-01')

    assert response.get_json()['timings'] == ['2:00 PM', '6:30 PM', '9:30 PM', '11:00 PM']


def test_timings_outside_booking_window_rejected(client):
    response = client.get('/api/movies/550/timings?date=2024-01-20')

    assert response.status_code == 400


# ==================== SEAT LAYOUT ====================

def test_open_layout_defaults_to_first_date_and_timing(client):
    layout = open_layout(client)

    assert layout['date'] == '2024-01-01'
    assert layout['time'] == '2:00 PM'
    assert layout['selectedSeats'] == []
    assert layout['canProceed'] is False
    # two hours before the show half the auditorium is taken
    assert 156 <= len(layout['reservedSeats']) <= 158


def test_reserved_seats_survive_reopening(client):
    first = open_layout(client)
    client.delete('/api/seat-layout/550')
    cache.clear()

    second = open_layout(client)

    assert second['reservedSeats'] == first['reservedSeats']


def test_toggle_seat_and_back(client):
    layout = open_layout(client)
    seat_id = free_seats(layout, 1)[0]

    selected = client.post(f'/api/seat-layout/550/seats/{seat_id}').get_json()
    assert selected['selectedSeats'] == [seat_id]
    assert selected['canProceed'] is True
    assert selected['totalPrice'] == 200

    cleared = client.post(f'/api/seat-layout/550/seats/{seat_id}').get_json()
    assert cleared['selectedSeats'] == []


def test_reserved_seat_cannot_be_selected(client):
    layout = open_layout(client)
    reserved = layout['reservedSeats'][0]

    response = client.post(f'/api/seat-layout/550/seats/{reserved}')

    assert response.status_code == 200
    assert response.get_json()['selectedSeats'] == []


def test_toggle_without_open_layout_is_not_found(client):
    assert client.post('/api/seat-layout/550/seats/A1').status_code == 404


def test_changing_showtime_resets_selection(client):
    layout = open_layout(client)
    for seat_id in free_seats(layout, 2):
        client.post(f'/api/seat-layout/550/seats/{seat_id}')

    response = client.post('/api/seat-layout/550/showtime', json={'date': '2024-01-01', 'time': '9:30 PM'})

    layout = response.get_json()
    assert layout['time'] == '9:30 PM'
    assert layout['selectedSeats'] == []


def test_picking_a_date_selects_its_first_timing(client):
    open_layout(client)

    layout = client.post('/api/seat-layout/550/showtime', json={'date': '2024-01-03'}).get_json()

    assert layout['date'] == '2024-01-03'
    assert layout['time'] == '10:30 AM'
    assert layout['timings'] == ['10:30 AM', '2:00 PM', '6:30 PM', '9:30 PM', '11:00 PM']


@pytest.mark.parametrize('body', [
    {'date': '2024-01-01', 'time': '10:30 AM'},
    {'date': '2024-01-01', 'time': '3:15 PM'},
    {'date': '2024-02-01'},
    {'time': '2:00 PM'},
])
def test_invalid_showtime_rejected(client, body):
    open_layout(client)

    assert client.post('/api/seat-layout/550/showtime', json=body).status_code == 400


def test_different_showtimes_get_their_own_seat_maps(client, app):
    open_layout(client)
    client.post('/api/seat-layout/550/showtime', json={'date': '2024-01-04', 'time': '6:30 PM'})

    store = app.extensions['seatbooking'].local_store
    assert store.get('reservedSeats-550-2024-01-01-2:00 PM') is not None
    assert store.get('reservedSeats-550-2024-01-04-6:30 PM') is not None


def test_close_layout_drops_selection(client):
    layout = open_layout(client)
    seat_id = free_seats(layout, 1)[0]
    client.post(f'/api/seat-layout/550/seats/{seat_id}')

    assert client.delete('/api/seat-layout/550').get_json() == {'closed': True}
    assert open_layout(client)['selectedSeats'] == []


# ==================== CHECKOUT ====================

def test_checkout_requires_sign_in(client):
    layout = open_layout(client)
    seat_id = free_seats(layout, 1)[0]
    client.post(f'/api/seat-layout/550/seats/{seat_id}')

    response = client.post('/api/seat-layout/550/checkout', json={'title': 'Fight Club'})

    assert response.status_code == 401
    assert response.get_json()['signIn'] == '/api/auth/login'

    # signing in keeps the seat layout and points back to checkout
    login = client.post('/api/auth/register', json={'email': 'sam@example.com', 'password': 'pw'})
    assert login.get_json()['next'] == '/api/seat-layout/550/checkout'
    assert open_layout(client)['selectedSeats'] == [seat_id]


def test_checkout_confirmed_by_backend(signed_in_client, remote_store, app):
    layout = open_layout(signed_in_client)
    seats = free_seats(layout, 3)
    for seat_id in seats:
        signed_in_client.post(f'/api/seat-layout/550/seats/{seat_id}')

    response = signed_in_client.post('/api/seat-layout/550/checkout', json={
        'title': 'Fight Club', 'duration': '2h 19m', 'image': '/poster.jpg',
    })

    assert response.status_code == 201
    body = response.get_json()
    assert body['status'] == 'confirmed'
    assert body['next'] == '/api/my-bookings'
    assert body['booking']['totalPrice'] == 600
    assert body['booking']['seats'] == seats
    assert len(remote_store.created) == 1
    assert app.extensions['seatbooking'].fallback_bookings.all() == []
    assert open_layout(signed_in_client)['selectedSeats'] == []

    bookings = signed_in_client.get('/api/my-bookings').get_json()['bookings']
    assert [booking['title'] for booking in bookings] == ['Fight Club']


def test_checkout_falls_back_when_backend_fails(signed_in_client, remote_store, app):
    remote_store.accept = False
    layout = open_layout(signed_in_client)
    seat_id = free_seats(layout, 1)[0]
    signed_in_client.post(f'/api/seat-layout/550/seats/{seat_id}')

    response = signed_in_client.post('/api/seat-layout/550/checkout', json={'title': 'Fight Club'})

    assert response.status_code == 202
    assert response.get_json()['status'] == 'fallback_stored'
    stored = app.extensions['seatbooking'].fallback_bookings.all()
    assert len(stored) == 1
    assert stored[0].seats == (seat_id,)
    assert open_layout(signed_in_client)['selectedSeats'] == []

    bookings = signed_in_client.get('/api/my-bookings').get_json()['bookings']
    assert bookings[0]['pendingSync'] is True

    cancel = signed_in_client.delete(f"/api/my-bookings/{stored[0].reference}")
    assert cancel.get_json()['source'] == 'local'
    assert app.extensions['seatbooking'].fallback_bookings.all() == []


def test_checkout_with_nothing_selected(signed_in_client):
    open_layout(signed_in_client)

    response = signed_in_client.post('/api/seat-layout/550/checkout', json={})

    assert response.status_code == 400


def test_my_bookings_requires_login(client):
    assert client.get('/api/my-bookings').status_code == 401


def test_reconcile_command(app):
    remote = app.extensions['seatbooking'].remote_store
    fallback = app.extensions['seatbooking'].fallback_bookings
    fallback.append(Booking.from_dict({
        'userId': '1', 'movieId': '550', 'title': 'Fight Club',
        'date': '2024-01-02', 'time': '6:30 PM', 'seats': ['A1'],
    }))

    result = app.test_cli_runner().invoke(args=['reconcile-bookings'])

    assert '1 booking(s) pushed, 0 still held locally, 0 rejected and dropped' in result.output
    assert fallback.all() == []
    assert len(remote.created) == 1


# ==================== AUTH ====================

def test_login_and_me(client):
    client.post('/api/auth/register', json={'email': 'kim@example.com', 'password': 'secret'})
    client.post('/api/auth/logout')
    assert client.get('/api/auth/me').status_code == 401

    response = client.post('/api/auth/login', json={'email': 'kim@example.com', 'password': 'secret'})
    assert response.status_code == 200
    assert client.get('/api/auth/me').get_json()['username'] == 'kim'


def test_login_with_wrong_password(client):
    client.post('/api/auth/register', json={'email': 'kim@example.com', 'password': 'secret'})

    response = client.post('/api/auth/login', json={'email': 'kim@example.com', 'password': 'nope'})

    assert response.status_code == 400


def test_duplicate_registration(client):
    client.post('/api/auth/register', json={'email': 'kim@example.com', 'password': 'secret'})

    response = client.post('/api/auth/register', json={'email': 'kim@example.com', 'password': 'x'})

    assert response.status_code == 400


# ==================== SEAT CLASHES AND STALE SESSIONS ====================

@pytest.fixture
def self_hosted_store(app):
    """Point the seat layout at this app's own booking store API"""
    store = BookingApiRemoteStore(app)
    booking = app.extensions['seatbooking']
    booking.remote_store = store
    booking.pipeline.remote_store = store
    booking.bookings_list.remote_store = store
    return store


def test_booking_the_same_seat_twice(signed_in_client, self_hosted_store, app):
    layout = open_layout(signed_in_client)
    seat_id = free_seats(layout, 1)[0]
    signed_in_client.post(f'/api/seat-layout/550/seats/{seat_id}')
    first = signed_in_client.post('/api/seat-layout/550/checkout', json={'title': 'Fight Club'})
    assert first.status_code == 201

    signed_in_client.delete('/api/seat-layout/550')
    open_layout(signed_in_client)
    signed_in_client.post(f'/api/seat-layout/550/seats/{seat_id}')
    second = signed_in_client.post('/api/seat-layout/550/checkout', json={'title': 'Fight Club'})

    assert second.status_code == 409
    assert seat_id in second.get_json()['error']
    assert app.extensions['seatbooking'].fallback_bookings.all() == []
    # the refused pick stays selected so the user can change it
    assert open_layout(signed_in_client)['selectedSeats'] == [seat_id]

    bookings = signed_in_client.get('/api/my-bookings').get_json()['bookings']
    assert len(bookings) == 1


def test_toggle_malformed_seat_is_bad_request(client):
    open_layout(client)

    assert client.post('/api/seat-layout/550/seats/A²').status_code == 400


def test_layout_for_a_date_that_has_passed_is_not_resumed(client, clock):
    layout = open_layout(client)
    seat_id = free_seats(layout, 1)[0]
    client.post(f'/api/seat-layout/550/seats/{seat_id}')

    clock.now = datetime(2024, 1, 10, 9, 0)

    assert client.post(f'/api/seat-layout/550/seats/{seat_id}').status_code == 404
    assert client.post('/api/seat-layout/550/checkout', json={}).status_code == 404

    resumed = open_layout(client)
    assert resumed['date'] == '2024-01-10'
    assert resumed['time'] == '10:30 AM'
    assert resumed['selectedSeats'] == []
