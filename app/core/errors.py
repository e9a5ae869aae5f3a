"""
Domain exception hierarchy for the booking engine.

Every error carries the HTTP status and a short machine-readable code, so the
handlers registered in ``app.main`` can render a structured response.
"""


class BookingError(Exception):
    """Base class for all application-level errors."""

    status_code = 500
    code = "internal_error"

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class ValidationError(BookingError):
    """Malformed, missing or past-dated input."""

    status_code = 400
    code = "validation_error"


class NotFoundError(BookingError):
    """Service, specialist or appointment absent (or inactive)."""

    status_code = 404
    code = "not_found"


class ConflictError(BookingError):
    """The specialist is already booked for an intersecting interval."""

    status_code = 409
    code = "conflict"


class ForbiddenError(BookingError):
    """Role or ownership check failed."""

    status_code = 403
    code = "forbidden"


class InternalError(BookingError):
    """Store or transaction failure."""
