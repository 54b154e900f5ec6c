"""
Seat reservation and booking service.

Serves the seat selection screen (dates, timings, a simulated seat map and
the user's seat picks) and the booking store API the screen submits to.
"""

import logging
from datetime import datetime

from flask import Flask

from .cli import register_commands
from .config import Config
from .extensions import cache, cors, db, sess
from .routes import bp
from .services import SeatBooking
from .stores import RemoteBookingStore


def create_app(config_object=None, clock=None, rng=None, remote_store=None, **overrides):
    app = Flask(__name__)
    app.config.from_object(config_object or Config)
    app.config.update(overrides)

    logging.getLogger('seatbooking').setLevel(app.config['LOG_LEVEL'])

    db.init_app(app)
    cache.init_app(app)
    sess.init_app(app)
    cors.init_app(
        app,
        supports_credentials=True,
        resources={r"/api/*": {"origins": app.config['CORS_ORIGINS']}}
    )

    if remote_store is None:
        remote_store = RemoteBookingStore(
            app.config['BOOKING_API_URL'], app.config['BOOKING_API_TIMEOUT']
        )
    app.extensions['seatbooking'] = SeatBooking(remote_store, clock or datetime.now, rng)

    app.register_blueprint(bp)
    register_commands(app)

    with app.app_context():
        db.create_all()

    return app
