"""WatchlistBridge exception classes."""


class WatchlistBridgeError(Exception):
    """Base class for all WatchlistBridge exceptions."""

    # Default HTTP status for API responses
    status_code: int = 500


# Configuration errors
class ConfigError(WatchlistBridgeError):
    """Base class for configuration-related errors."""

    status_code = 500


class InvalidScheduleError(ConfigError, ValueError):
    """An activity window date is not a valid ``MM-DD`` string."""

    status_code = 400


class TargetConfigError(ConfigError, ValueError):
    """A target's quality profile or root folder could not be resolved.

    Raised before any item is touched; aborts the reconciliation pass for that
    target only.
    """

    status_code = 400


class UnsupportedSourceError(ConfigError, ValueError):
    """A source list references a collector that does not exist."""

    status_code = 400


# Target errors
class TargetError(WatchlistBridgeError):
    """Base class for failures talking to a media-library manager."""

    status_code = 502


class TargetRequestError(TargetError):
    """A target answered with a non-success HTTP status."""

    RETRYABLE_STATUSES = frozenset({408, 429, 500, 502, 503, 504})

    def __init__(self, method: str, url: str, status: int, body: str = "") -> None:
        """Initialize the error with the failed request's details.

        Args:
            method (str): HTTP method of the failed request.
            url (str): Requested URL.
            status (int): HTTP status code returned by the target.
            body (str): Raw response body, used for domain error matching.
        """
        self.method = method
        self.url = url
        self.status = status
        self.body = body
        super().__init__(f"{method} {url} returned HTTP {status}: {body[:200]}")

    @property
    def retryable(self) -> bool:
        """Whether repeating the request could plausibly succeed."""
        return self.status in self.RETRYABLE_STATUSES


class TargetAlreadyExistsError(TargetRequestError):
    """The target rejected a create because the item is already present."""

    status_code = 409


# Source errors
class SourceError(WatchlistBridgeError):
    """Base class for watchlist source failures."""

    status_code = 502


class SourceFetchError(SourceError):
    """A source list could not be fetched or parsed at all."""

    status_code = 502


# Scheduler errors
class SchedulerError(WatchlistBridgeError):
    """Base class for scheduler-related failures."""

    status_code = 500


class SchedulerNotInitializedError(SchedulerError, RuntimeError):
    """Scheduler operations were requested before initialization."""

    status_code = 503
