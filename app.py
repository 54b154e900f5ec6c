"""
Seat Booking Service - entry point

Runs the seat layout endpoints and the booking store API in one process.
By default the seat layout submits bookings to BOOKING_API_URL
(http://localhost:3000), which is this same server when started on port 3000.
"""

import logging
import os

from seatbooking import create_app


logging.basicConfig(
    level=os.environ.get('LOG_LEVEL', 'INFO'),
    format='%(asctime)s %(levelname)s %(name)s: %(message)s'
)

app = create_app()


if __name__ == '__main__':
    app.run(host='0.0.0.0', port=int(os.environ.get('PORT', 3000)))
