"""Exceptions raised by the seat booking service."""


class SeatBookingException(Exception):
    """Base exception for the seat booking application"""
    def __init__(self, message, status_code=400):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class NotFoundError(SeatBookingException):
    """Raised when a resource is not found"""
    def __init__(self, message):
        super().__init__(message, status_code=404)


class BusinessLogicError(SeatBookingException):
    """Raised when business logic validation fails"""
    def __init__(self, message):
        super().__init__(message, status_code=400)


class AuthenticationRequired(SeatBookingException):
    """Raised when a signed-in user is needed"""
    def __init__(self, message='Please login to continue'):
        super().__init__(message, status_code=401)


class SubmissionInProgressError(SeatBookingException):
    """Raised when a booking is submitted while another one is still in flight"""
    def __init__(self, message='A booking is already being submitted'):
        super().__init__(message, status_code=409)


class RemoteStoreError(SeatBookingException):
    """Raised when the remote booking store cannot be reached or rejects a call"""
    def __init__(self, message, response_status=None, detail=None):
        self.response_status = response_status
        self.detail = detail
        super().__init__(message, status_code=502)

    @property
    def rejected(self):
        """A 4xx answer: retrying the same request will not succeed"""
        status = self.response_status
        return status is not None and 400 <= status < 500 and status not in (408, 429)


class ConflictError(SeatBookingException):
    """Raised when seats are already held by another booking"""
    def __init__(self, message):
        super().__init__(message, status_code=409)


class BookingRejectedError(SeatBookingException):
    """Raised when the remote booking store refuses a booking outright"""
    def __init__(self, message, status_code=400):
        super().__init__(message, status_code=status_code)
