"""
Auditorium seat map and reserved-seat generation.

Occupancy is simulated: each showtime gets a randomly drawn set of reserved
seats whose density grows as the show approaches. The draw itself is pure
(random source injected); ``SeatMapGenerator`` adds the durable per-showtime
cache so a showtime keeps the same reserved seats across visits.
"""

import json
import logging
import math
import random
from dataclasses import dataclass

from .exceptions import BusinessLogicError
from .showtimes import showtime_instant


logger = logging.getLogger(__name__)

ROWS = tuple("ABCDEFGHIJKL")
SEATS_PER_ROW = 26
HALF_BLOCK = 13
TOTAL_SEATS = len(ROWS) * SEATS_PER_ROW

# (minutes until show, fraction of seats reserved), checked in order
DENSITY_STEPS = ((30, 0.9), (60, 0.7), (180, 0.5))
DEFAULT_DENSITY = 0.3

CLUSTER_PROBABILITY = 0.65
LEFT_NEIGHBOUR_PROBABILITY = 0.5


@dataclass(frozen=True, order=True)
class Seat:
    """A seat on the 12 x 26 grid, e.g. ``Seat("C", 14)`` / ``"C14"``."""
    row: str
    number: int

    def __post_init__(self):
        if self.row not in ROWS or not 1 <= self.number <= SEATS_PER_ROW:
            raise BusinessLogicError(f'Seat {self.row}{self.number} does not exist')

    @property
    def seat_id(self):
        return f"{self.row}{self.number}"

    @classmethod
    def parse(cls, seat_id):
        if not isinstance(seat_id, str) or len(seat_id) < 2:
            raise BusinessLogicError(f'Invalid seat: {seat_id!r}')
        row, number = seat_id[0].upper(), seat_id[1:]
        if not number.isdecimal():
            raise BusinessLogicError(f'Invalid seat: {seat_id!r}')
        return cls(row, int(number))

    def __str__(self):
        return self.seat_id


@dataclass(frozen=True)
class ShowtimeKey:
    """One bookable screening: movie, ISO date and timing label."""
    movie_id: str
    show_date: str
    timing: str

    @property
    def storage_key(self):
        return f"reservedSeats-{self.movie_id}-{self.show_date}-{self.timing}"

    @property
    def instant(self):
        return showtime_instant(self.show_date, self.timing)


def reservation_density(minutes_until_show):
    for limit, density in DENSITY_STEPS:
        if minutes_until_show <= limit:
            return density
    return DEFAULT_DENSITY


def target_reserved_count(density):
    return min(TOTAL_SEATS, math.floor(TOTAL_SEATS * density))


def weighted_row(rng):
    """Pick a row; row index i has weight i + 1 so back rows fill first."""
    weights = range(1, len(ROWS) + 1)
    r = rng.random() * sum(weights)
    for row, weight in zip(ROWS, weights):
        if r < weight:
            return row
        r -= weight
    return ROWS[-1]


def _random_seat_number(rng):
    if rng.random() < 0.5:
        return rng.randint(1, HALF_BLOCK)
    return rng.randint(HALF_BLOCK + 1, SEATS_PER_ROW)


def _half_block_end(number):
    return HALF_BLOCK if number <= HALF_BLOCK else SEATS_PER_ROW


def generate_reserved_seats(density, rng):
    """
    Draw a reserved seat set for the given density.

    Seats are added singly or as a small cluster (the seat, its right-hand
    neighbour within the same half-block and sometimes its left-hand
    neighbour) until the target count is met. The last cluster may push the
    set up to two seats past the target.
    """
    target = target_reserved_count(density)
    seats = set()

    while len(seats) < target:
        row = weighted_row(rng)
        number = _random_seat_number(rng)
        seats.add(Seat(row, number))

        if rng.random() < CLUSTER_PROBABILITY:
            if number + 1 <= _half_block_end(number):
                seats.add(Seat(row, number + 1))
            if rng.random() < LEFT_NEIGHBOUR_PROBABILITY and number - 1 > 0:
                seats.add(Seat(row, number - 1))

    return frozenset(seats)


def seats_to_json(seats):
    return json.dumps([seat.seat_id for seat in sorted(seats)])


def seats_from_json(raw):
    """Decode a cached seat list; raises ValueError on anything malformed."""
    data = json.loads(raw)
    if not isinstance(data, list):
        raise ValueError('reserved seat cache is not a list')
    try:
        return frozenset(Seat.parse(seat_id) for seat_id in data)
    except BusinessLogicError as e:
        raise ValueError(e.message)


class SeatMapGenerator:
    """Reserved seats per showtime, generated once then read from the local store."""

    def __init__(self, local_store, clock, rng=None):
        self.local_store = local_store
        self.clock = clock
        self.rng = rng or random.Random()

    def density_for(self, key):
        minutes_until_show = (key.instant - self.clock()).total_seconds() / 60
        return reservation_density(minutes_until_show)

    def reserved_seats(self, key):
        raw = self.local_store.get(key.storage_key)
        if raw is not None:
            try:
                return seats_from_json(raw)
            except ValueError as e:
                logger.warning("Discarding corrupt reserved seat cache %s: %s", key.storage_key, e)

        seats = generate_reserved_seats(self.density_for(key), self.rng)
        self.local_store.set(key.storage_key, seats_to_json(seats))
        logger.debug("Generated %d reserved seats for %s", len(seats), key.storage_key)
        return seats
