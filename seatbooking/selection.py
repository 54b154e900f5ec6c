"""Seats the current user has picked for one showtime."""

from .seatmap import Seat, ShowtimeKey


class SeatSelection:
    """
    Ordered set of selected seats for the active showtime.

    Reserved seats can never be selected, and moving to another date or
    timing starts over with an empty selection.
    """

    def __init__(self, key=None, reserved=frozenset(), seats=()):
        self.key = key
        self.reserved = frozenset(reserved)
        self._seats = []
        for seat in seats:
            if seat not in self.reserved and seat not in self._seats:
                self._seats.append(seat)

    @property
    def seats(self):
        return list(self._seats)

    @property
    def seat_ids(self):
        return [seat.seat_id for seat in self._seats]

    @property
    def can_proceed(self):
        return bool(self._seats)

    def __len__(self):
        return len(self._seats)

    def __contains__(self, seat):
        return seat in self._seats

    def is_reserved(self, seat):
        return seat in self.reserved

    def toggle(self, seat):
        """Flip ``seat``; returns True if it is now selected."""
        if seat in self.reserved:
            return False
        if seat in self._seats:
            self._seats.remove(seat)
            return False
        self._seats.append(seat)
        return True

    def reset(self):
        self._seats = []

    def switch_showtime(self, key, reserved):
        self.key = key
        self.reserved = frozenset(reserved)
        self.reset()

    def to_session(self):
        if self.key is None:
            return None
        return {
            'movie_id': self.key.movie_id,
            'date': self.key.show_date,
            'time': self.key.timing,
            'seats': self.seat_ids,
        }

    @classmethod
    def from_session(cls, data, reserved=frozenset()):
        if not data:
            return cls(reserved=reserved)
        key = ShowtimeKey(data['movie_id'], data['date'], data['time'])
        seats = [Seat.parse(seat_id) for seat_id in data.get('seats', [])]
        return cls(key, reserved, seats)
