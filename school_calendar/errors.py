# school_calendar/errors.py


class CalendarError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(CalendarError):
    """A required field is missing or malformed."""
    status_code = 400


class AuthorizationError(CalendarError):
    """Admin session required but absent or expired."""
    status_code = 401


class StorageError(CalendarError):
    """The database is unreachable or a query failed."""
    status_code = 500
