class RentalAppError(Exception):
    """Base for failures reported back to the caller."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(RentalAppError):
    status_code = 400


class InvalidDateRange(ValidationError):
    pass


class EmailTaken(ValidationError):
    pass


class InvalidTransition(RentalAppError):
    status_code = 400


class Unauthorized(RentalAppError):
    status_code = 401


class Forbidden(RentalAppError):
    status_code = 403


class NotFound(RentalAppError):
    status_code = 404


class Conflict(RentalAppError):
    status_code = 409


class CarUnavailable(Conflict):
    pass


class BookingConflict(Conflict):
    pass


class AlreadyCompleted(Conflict):
    pass
