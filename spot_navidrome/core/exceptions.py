"""
Exception classes for spot-navidrome.

This module defines all custom exceptions used throughout the application.
Each exception is designed to provide clear, actionable error messages
and to distinguish between different failure modes.

Exception Hierarchy:
    SpotNavidromeError (base)
        ConfigError - Configuration file issues
        DatabaseError - Export cache storage issues
        SpotifyError - Spotify API issues
        NavidromeError - Navidrome API issues
        ExportPreconditionError - Exporter called with missing inputs
        ExportCancelledError - Export stopped by a cancellation token
"""


class SpotNavidromeError(Exception):
    """
    Base exception for all spot-navidrome errors.

    All custom exceptions in this project inherit from this class,
    allowing callers to catch all spot-navidrome errors with a single
    except clause if desired.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary with additional context (e.g., playlist id, URL).

    Example:
        try:
            # some operation
        except SpotNavidromeError as e:
            logger.error(f"Operation failed: {e.message}")
            if e.details:
                logger.debug(f"Details: {e.details}")
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        """
        Initialize the base exception.

        Args:
            message: Human-readable error description that will be shown to the user.
            details: Optional dictionary containing additional context about the error.
                     Useful for logging and debugging. Common keys include:
                     - 'playlist_id': Spotify playlist ID involved in the error
                     - 'url': URL that caused the error
                     - 'original_error': The underlying exception if wrapping another error
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return the error message for display."""
        return self.message


class ConfigError(SpotNavidromeError):
    """
    Raised when there's an issue with the configuration file.

    This is a CRITICAL error that should stop program execution.

    Common causes:
        - config.yaml not found
        - config.yaml has invalid YAML syntax
        - Required fields missing (client_id, navidrome url, credentials)
        - Invalid field values (e.g., fuzzy_threshold outside 0..1)

    Example:
        raise ConfigError(
            "Missing required field 'url' in config.yaml",
            details={'file_path': '/path/to/config.yaml', 'missing_field': 'navidrome.url'}
        )
    """
    pass


class DatabaseError(SpotNavidromeError):
    """
    Raised when there's an issue with the export cache storage.

    This is a CRITICAL error that should stop program execution.

    Common causes:
        - export_cache.db is corrupted or has an unexpected schema version
        - Permission denied when reading/writing
        - A stored record cannot be decoded back into a PlaylistExportRecord

    The cache decides between full and differential exports, so a broken
    cache means we cannot reliably tell which tracks already live in Navidrome.

    Example:
        raise DatabaseError(
            "Malformed export record",
            details={'playlist_id': '37i9dQZF1DXcBWIGoYBM5M', 'missing_field': 'tracks'}
        )
    """
    pass


class SpotifyError(SpotNavidromeError):
    """
    Raised when there's an issue with the Spotify API.

    Can be CRITICAL (auth failure) or NON-CRITICAL (single playlist fetch failure).

    Common causes:
        - Invalid or expired credentials (CRITICAL)
        - Rate limiting (may be recoverable with retry)
        - Playlist not found or private
        - Network connectivity issues

    Attributes:
        is_auth_error: True if this is an authentication error (CRITICAL).
        is_rate_limit: True if this is a rate limit error (may retry).

    Example:
        raise SpotifyError(
            "Failed to fetch playlist: playlist is private",
            details={'playlist_id': playlist_id, 'status_code': 403}
        )
    """

    def __init__(
        self,
        message: str,
        details: dict | None = None,
        is_auth_error: bool = False,
        is_rate_limit: bool = False
    ) -> None:
        """
        Initialize Spotify error with additional flags.

        Args:
            message: Human-readable error description.
            details: Optional dictionary with additional context.
            is_auth_error: Set to True if this is an authentication failure.
                          Authentication errors are CRITICAL and should stop execution.
            is_rate_limit: Set to True if this is a rate limit error.
                          Rate limit errors may be recoverable with exponential backoff.
        """
        super().__init__(message, details)
        self.is_auth_error = is_auth_error
        self.is_rate_limit = is_rate_limit


class NavidromeError(SpotNavidromeError):
    """
    Raised when a call to the Navidrome server fails.

    During matching this is NON-CRITICAL: the orchestrator turns it into an
    unmatched track. During export a failed membership write becomes an
    error entry of the export result. Login failures are CRITICAL.

    Common causes:
        - Wrong username/password (401)
        - Server unreachable or returning 5xx
        - Unexpected response body

    Attributes:
        status_code: HTTP status code of the failed response, if any.
        is_auth_error: True if the server rejected the credentials.

    Example:
        raise NavidromeError(
            "Failed to create playlist",
            details={'url': 'http://localhost:4533/api/playlist'},
            status_code=500
        )
    """

    def __init__(
        self,
        message: str,
        details: dict | None = None,
        status_code: int | None = None,
        is_auth_error: bool = False
    ) -> None:
        """
        Initialize Navidrome error with the HTTP status.

        Args:
            message: Human-readable error description.
            details: Optional dictionary with additional context.
            status_code: HTTP status code returned by the server, or None
                         for connection-level failures.
            is_auth_error: Set to True when the server rejected the credentials.
        """
        super().__init__(message, details)
        self.status_code = status_code
        self.is_auth_error = is_auth_error


class ExportPreconditionError(SpotNavidromeError):
    """
    Raised when an exporter is called without the inputs its mode requires.

    This is a usage error, never a destination failure. It is raised before
    any destination call is made.

    Example:
        raise ExportPreconditionError(
            "Mode 'update' requires an existing playlist id",
            details={'mode': 'update'}
        )
    """
    pass


class ExportCancelledError(SpotNavidromeError):
    """
    Raised when a CancellationToken fires during matching or export.

    Work completed before the cancellation point is kept: matches already
    resolved stay in the caller's collection and destination writes are not
    rolled back.
    """

    def __init__(self, message: str = "Export cancelled", details: dict | None = None) -> None:
        super().__init__(message, details)
