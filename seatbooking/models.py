from datetime import datetime

from werkzeug.security import generate_password_hash, check_password_hash

from .extensions import db


class User(db.Model):
    """User model"""
    __tablename__ = 'user'

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), unique=True, nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False)
    password = db.Column(db.String(200), nullable=False)

    def set_password(self, pwd):
        """Set user password with hashing"""
        self.password = generate_password_hash(pwd)

    def check_password(self, pwd):
        """Check if password matches"""
        return check_password_hash(self.password, pwd)


class LocalEntry(db.Model):
    """Key/value text entry of the on-device fallback store"""
    __tablename__ = 'local_entry'

    key = db.Column(db.String(255), primary_key=True)
    value = db.Column(db.Text, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.now, onupdate=datetime.now, nullable=False)


class BookingRecord(db.Model):
    """Booking accepted by the booking store"""
    __tablename__ = 'booking'

    id = db.Column(db.Integer, primary_key=True)
    reference = db.Column(db.String(64), unique=True, nullable=False)
    user_id = db.Column(db.String(80), nullable=False, index=True)
    movie_id = db.Column(db.String(80), nullable=False)
    title = db.Column(db.String(200), nullable=False)
    duration = db.Column(db.String(40))
    image = db.Column(db.String(500))
    show_date = db.Column(db.String(10), nullable=False)
    show_time = db.Column(db.String(10), nullable=False)
    seats = db.Column(db.Text, nullable=False)  # comma separated seat ids
    total_seats = db.Column(db.Integer, nullable=False)
    total_price = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(20), default='confirmed', nullable=False)
    booked_at = db.Column(db.DateTime, default=datetime.now, nullable=False)

    @property
    def seat_ids(self):
        return self.seats.split(',') if self.seats else []

    def to_dict(self):
        return {
            'id': self.id,
            'reference': self.reference,
            'userId': self.user_id,
            'movieId': self.movie_id,
            'title': self.title,
            'duration': self.duration,
            'image': self.image,
            'date': self.show_date,
            'time': self.show_time,
            'seats': self.seat_ids,
            'totalSeats': self.total_seats,
            'totalPrice': self.total_price,
            'status': self.status,
            'bookedAt': self.booked_at.strftime('%Y-%m-%d %H:%M:%S'),
        }
