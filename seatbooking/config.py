"""Configuration for the seat booking service."""

import os
import tempfile


# Cache timeout constants
CACHE_TIMEOUT_SEATS = 60  # 1 minute
CACHE_TIMEOUT_BOOKINGS = 180  # 3 minutes


def _database_url():
    db_url = os.environ.get('DATABASE_URL', 'sqlite:///seatbooking.db')
    if db_url.startswith("postgres://"):
        db_url = db_url.replace("postgres://", "postgresql://", 1)
    return db_url


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY', 'super-secret-key-change-in-production')

    SQLALCHEMY_DATABASE_URI = _database_url()
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    SESSION_TYPE = "filesystem"
    SESSION_PERMANENT = False
    SESSION_FILE_DIR = os.environ.get(
        'SESSION_FILE_DIR', os.path.join(tempfile.gettempdir(), 'seatbooking_sessions')
    )
    SESSION_COOKIE_SAMESITE = "None"
    SESSION_COOKIE_SECURE = True

    CACHE_TYPE = 'SimpleCache'
    CACHE_DEFAULT_TIMEOUT = 300  # 5 minutes

    CORS_ORIGINS = [
        origin.strip()
        for origin in os.environ.get('CORS_ORIGINS', 'http://localhost:5173').split(',')
        if origin.strip()
    ]

    # Remote booking store the seat layout submits to
    BOOKING_API_URL = os.environ.get('BOOKING_API_URL', 'http://localhost:3000')
    BOOKING_API_TIMEOUT = float(os.environ.get('BOOKING_API_TIMEOUT', '10'))

    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')


class TestingConfig(Config):
    TESTING = True
    SECRET_KEY = 'testing'
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SESSION_COOKIE_SAMESITE = "Lax"
    SESSION_COOKIE_SECURE = False
    BOOKING_API_URL = 'http://booking-store.test'
    BOOKING_API_TIMEOUT = 1.0
    LOG_LEVEL = 'DEBUG'
