class BookingError(Exception):
    """Base for booking failures the caller can act on."""
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(BookingError):
    status_code = 400


class ForbiddenError(BookingError):
    status_code = 403


class NotFoundError(BookingError):
    status_code = 404


class CapacityExceededError(BookingError):
    status_code = 409


class DuplicateBookingError(BookingError):
    status_code = 409
