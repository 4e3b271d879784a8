class WatchlistError(Exception):
    """Base class for failures surfaced to the watchlist user."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ValidationError(WatchlistError):
    pass


class ConflictError(WatchlistError):
    pass


class NotFoundError(WatchlistError):
    pass


class NetworkError(WatchlistError):
    """The request did not complete; never retried automatically."""


class BusyError(WatchlistError):
    """Another mutating request is still outstanding."""
