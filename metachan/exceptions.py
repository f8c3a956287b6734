"""Metachan exception classes."""


class MetachanError(Exception):
    """Base class for all Metachan exceptions."""

    # Default HTTP status for API responses
    status_code: int = 500


# Configuration errors
class ConfigError(MetachanError):
    """Base class for configuration-related errors."""

    status_code = 500


class DataPathError(ConfigError, ValueError):
    """The configured data directory path is invalid for the requested operation."""

    status_code = 500


# Lookup errors
class AnimeNotFoundError(MetachanError, LookupError):
    """No identity mapping exists or a required provider returned nothing."""

    status_code = 404


# Upstream provider errors
class UpstreamError(MetachanError):
    """Base class for failures talking to a third-party provider."""

    status_code = 500

    def __init__(self, message: str, url: str | None = None) -> None:
        """Initialize the error.

        Args:
            message (str): Human-readable error message.
            url (str | None): The URL that was being requested, if any.
        """
        super().__init__(message)
        self.url = url


class UpstreamUnavailableError(UpstreamError):
    """A provider could not be reached (connection error, timeout)."""

    status_code = 502


class UpstreamResponseError(UpstreamUnavailableError):
    """A provider answered with a non-retryable HTTP error status."""

    def __init__(self, message: str, url: str | None = None, status: int = 0) -> None:
        """Initialize the error.

        Args:
            message (str): Human-readable error message.
            url (str | None): The URL that was being requested, if any.
            status (int): The HTTP status returned by the provider.
        """
        super().__init__(message, url)
        self.status = status


class UpstreamParseError(UpstreamUnavailableError):
    """A provider response could not be decoded or did not match its schema."""


class UpstreamExhaustedError(UpstreamError):
    """A provider kept rate limiting requests until the retries ran out."""

    status_code = 503


class EnrichmentError(UpstreamError):
    """An optional provider failed; callers degrade instead of surfacing it."""


class TVDBAuthError(EnrichmentError):
    """TheTVDB rejected the configured credentials."""


# Scheduler errors
class TaskError(MetachanError):
    """Base class for task scheduler failures."""

    status_code = 500


class TaskAlreadyRegisteredError(TaskError, ValueError):
    """A task with the same name is already registered."""

    status_code = 409


class TaskNotFoundError(TaskError, KeyError):
    """The requested task is not registered."""

    status_code = 404
