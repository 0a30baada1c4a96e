"""Error hierarchy for availability and calendar synchronisation.

Every error carries the HTTP status it maps to and a stable machine code, so
routers never need to translate them one by one. ``main.py`` registers a single
handler for :class:`CalendarError`.
"""


class CalendarError(Exception):
    """Base exception for all availability/calendar errors."""

    status_code = 400
    code = "calendar_error"

    def __init__(self, message: str = ""):
        if not message:
            message = (self.__class__.__doc__ or self.code).strip().splitlines()[0]
        super().__init__(message)
        self.message = message


class InvalidRangeError(CalendarError):
    """Malformed date range, e.g. end before start."""

    status_code = 422
    code = "invalid_range"


class ConflictError(CalendarError):
    """The requested dates are no longer available."""

    status_code = 409
    code = "conflict"


class NotFoundError(CalendarError):
    """Resource not found."""

    status_code = 404
    code = "not_found"


class VehicleNotFoundError(NotFoundError):
    """Vehicle not found."""

    code = "vehicle_not_found"


class FeedNotFoundError(NotFoundError):
    """External feed not found."""

    code = "feed_not_found"


class BookingNotFoundError(NotFoundError):
    """Booking not found."""

    code = "booking_not_found"


class AuthError(CalendarError):
    """Feed token does not match the vehicle's current token.

    Maps to 404 so that an outside observer cannot tell a bad token from an
    unknown vehicle.
    """

    status_code = 404
    code = "not_found"


class FeedSyncError(CalendarError):
    """Base for failures that leave a feed's stored events untouched."""

    status_code = 502
    code = "feed_sync_failed"


class FetchError(FeedSyncError):
    """External calendar could not be fetched."""

    code = "feed_fetch_failed"


class ParseError(FeedSyncError):
    """External calendar document is malformed."""

    status_code = 422
    code = "feed_parse_failed"


class InvalidFeedError(CalendarError):
    """External feed registration is invalid."""

    status_code = 422
    code = "invalid_feed"
