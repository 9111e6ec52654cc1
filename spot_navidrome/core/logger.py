"""
Logging configuration for spot-navidrome.

This module sets up the logging system with multiple outputs:
    - Console: Real-time progress with tqdm-compatible formatting
    - log_full.log: Complete log of all events (DEBUG and above)
    - log_errors.log: Only ERROR and CRITICAL level messages
    - unmatched_tracks.log: Spotify tracks with no confident Navidrome match
    - ambiguous_matches.log: Tracks with several near-equal candidates
    - export_failures.log: Tracks whose playlist write or star failed

The logging system follows the principle: everything to screen is also saved
to file, then filtered into specialized report files.

Log File Locations:
    All log files are created in output_dir/logs with a timestamp per run.

Usage:
    from spot_navidrome.core.logger import setup_logging, get_logger

    setup_logging(output_dir)  # Call once at startup
    logger = get_logger(__name__)  # Get logger for each module

    logger.info("Starting export")
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import TextIO

from tqdm import tqdm


# Log file name prefixes (a timestamp is appended per run)
LOG_FULL_PREFIX = "log_full"
LOG_ERRORS_PREFIX = "log_errors"
UNMATCHED_TRACKS_PREFIX = "unmatched_tracks"
AMBIGUOUS_MATCHES_PREFIX = "ambiguous_matches"
EXPORT_FAILURES_PREFIX = "export_failures"

# Log format for file output (detailed with timestamp)
FILE_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
FILE_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Log format for console output (compact, tqdm-friendly)
CONSOLE_LOG_FORMAT = "%(levelname)s: %(message)s"


class Colors:
    """ANSI color codes for terminal output."""
    RESET = "\033[0m"
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    CYAN = "\033[36m"
    WHITE = "\033[37m"
    BOLD = "\033[1m"


class ColoredConsoleFormatter(logging.Formatter):
    """
    Formatter that adds colors to console output.

    Colors:
        - DEBUG: Blue
        - INFO: Green
        - WARNING: Yellow
        - ERROR: Red
        - CRITICAL: Bold Red
    """

    LEVEL_COLORS = {
        logging.DEBUG: Colors.BLUE,
        logging.INFO: Colors.GREEN,
        logging.WARNING: Colors.YELLOW,
        logging.ERROR: Colors.RED,
        logging.CRITICAL: Colors.BOLD + Colors.RED,
    }

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno, Colors.WHITE)
        colored_levelname = f"{color}{record.levelname}{Colors.RESET}"
        return f"{colored_levelname}: {record.getMessage()}"


class TqdmLoggingHandler(logging.Handler):
    """
    Logging handler that writes to console without breaking progress bars.

    Uses tqdm.write() which coordinates with active progress bars, so
    messages appear above the bar instead of tearing it.

    Attributes:
        stream: The output stream (defaults to sys.stderr).
    """

    def __init__(self, stream: TextIO = sys.stderr) -> None:
        super().__init__()
        self.stream = stream

    def emit(self, record: logging.LogRecord) -> None:
        try:
            msg = self.format(record)
            tqdm.write(msg, file=self.stream)
        except Exception:
            self.handleError(record)


class ReportHandler(logging.Handler):
    """
    Base class for handlers that turn tagged log records into report files.

    A report handler only reacts to records carrying its marker attribute
    (passed through the `extra` argument of the logging call). Every other
    record is ignored. Subclasses implement _format_entry().

    Attributes:
        marker: Name of the record attribute that selects records.
        report_path: Path to the report file.
        report_file: Open file handle (None until open() is called).
    """

    marker = ""

    def __init__(self, report_path: Path) -> None:
        super().__init__()
        self.report_path = report_path
        self.report_file: TextIO | None = None

    def open(self) -> None:
        """
        Open the report file for writing.

        Called by setup_logging() after handler is created.
        File is opened in write mode (overwrites existing content).
        """
        self.report_file = open(self.report_path, "w", encoding="utf-8")

    def emit(self, record: logging.LogRecord) -> None:
        if not hasattr(record, self.marker):
            return

        if self.report_file is None:
            return

        try:
            self.report_file.write(self._format_entry(record))
            self.report_file.write("\n")
            self.report_file.flush()
        except Exception:
            self.handleError(record)

    def _format_entry(self, record: logging.LogRecord) -> str:
        raise NotImplementedError

    def close(self) -> None:
        """
        Close the report file handle.

        Safe to call multiple times.
        """
        if self.report_file is not None:
            try:
                self.report_file.close()
            except OSError:
                pass
            self.report_file = None
        super().close()


class UnmatchedTrackHandler(ReportHandler):
    """
    Writes tracks that found no confident match to unmatched_tracks.log:

        Artist Name - Song Title
        Album: Album Name | 3:45 | Playlist: Road Trip
        https://open.spotify.com/track/xxxxx
        Reason: no candidate above threshold (best score 0.62)

    Usage:
        logger.warning(
            "No match",
            extra={
                'unmatched_track_name': 'Song Title',
                'unmatched_track_artist': 'Artist Name',
                'unmatched_track_album': 'Album Name',
                'unmatched_track_duration': '3:45',
                'unmatched_track_url': 'https://open.spotify.com/track/xxx',
                'unmatched_track_playlist': 'Road Trip',
                'unmatched_track_reason': 'no candidates'
            }
        )
    """

    marker = "unmatched_track_name"

    def _format_entry(self, record: logging.LogRecord) -> str:
        name = getattr(record, "unmatched_track_name", "Unknown")
        artist = getattr(record, "unmatched_track_artist", "Unknown")
        album = getattr(record, "unmatched_track_album", "")
        duration = getattr(record, "unmatched_track_duration", "")
        url = getattr(record, "unmatched_track_url", "")
        playlist = getattr(record, "unmatched_track_playlist", None)
        reason = getattr(record, "unmatched_track_reason", "")

        info = f"Album: {album} | {duration}"
        if playlist:
            info += f" | Playlist: {playlist}"
        return f"{artist} - {name}\n{info}\n{url}\nReason: {reason}\n"


class AmbiguousMatchHandler(ReportHandler):
    """
    Writes tracks with several near-equal candidates to ambiguous_matches.log
    so the user can review them:

        Artist Name - Song Title
        https://open.spotify.com/track/xxxxx
        Best: Song Title (Live) by Artist Name [Live Album] (score: 0.91)
        Alternatives:
          - Song Title by Artist Name [Studio Album] (score: 0.89)
        Not exported. Several candidates are too close to choose from.
    """

    marker = "ambiguous_track_name"

    def _format_entry(self, record: logging.LogRecord) -> str:
        name = getattr(record, "ambiguous_track_name", "Unknown")
        artist = getattr(record, "ambiguous_track_artist", "Unknown")
        url = getattr(record, "ambiguous_track_url", "")
        best = getattr(record, "ambiguous_best", "")
        score = getattr(record, "ambiguous_score", 0.0)
        alternatives = getattr(record, "ambiguous_alternatives", [])

        lines = [f"{artist} - {name}", url, f"Best: {best} (score: {score:.2f})"]
        if alternatives:
            lines.append("Alternatives:")
            for alt_label, alt_score in alternatives:
                lines.append(f"  - {alt_label} (score: {alt_score:.2f})")
        lines.append("Not exported. Several candidates are too close to choose from.\n")
        return "\n".join(lines)


class ExportFailureHandler(ReportHandler):
    """
    Writes failed destination writes to export_failures.log:

        [Road Trip] Artist Name - Song Title
        Failed to add tracks to playlist: HTTP 500
    """

    marker = "export_failed_track_name"

    def _format_entry(self, record: logging.LogRecord) -> str:
        name = getattr(record, "export_failed_track_name", "Unknown")
        artist = getattr(record, "export_failed_track_artist", "Unknown")
        playlist = getattr(record, "export_failed_playlist", "")
        reason = getattr(record, "export_failed_reason", "")
        return f"[{playlist}] {artist} - {name}\n{reason}\n"


class ErrorOnlyFilter(logging.Filter):
    """
    Filter that only allows ERROR and CRITICAL level records.

    Used by the error log file handler to exclude DEBUG, INFO, and WARNING.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno >= logging.ERROR


def setup_logging(output_dir: Path, debug: bool = False) -> None:
    """
    Configure the logging system for the application.

    This function should be called ONCE at application startup, after
    the configuration is loaded but before any other operations.

    Args:
        output_dir: Directory where log files will be created.
                    Logs are stored in a 'logs' subdirectory.
        debug: If True, the console also shows DEBUG messages
               (per-track match details).

    Behavior:
        1. Create output_dir/logs if it doesn't exist
        2. Generate timestamp for this run's log files
        3. Configure root logger level to DEBUG
        4. Console handler (TqdmLoggingHandler), INFO or DEBUG
        5. Full log file handler, DEBUG
        6. Error log file handler, filtered to ERROR+ by ErrorOnlyFilter
        7. Report handlers for unmatched tracks, ambiguous matches
           and export failures

    Thread Safety:
        This function is NOT thread-safe. Call it once from the main
        thread before starting any worker threads.
    """
    logs_dir = output_dir / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.handlers.clear()

    console_handler = TqdmLoggingHandler()
    console_handler.setLevel(logging.DEBUG if debug else logging.INFO)
    console_handler.setFormatter(ColoredConsoleFormatter())
    root_logger.addHandler(console_handler)

    full_handler = logging.FileHandler(
        logs_dir / f"{LOG_FULL_PREFIX}_{timestamp}.log", mode="w", encoding="utf-8"
    )
    full_handler.setLevel(logging.DEBUG)
    full_handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT, FILE_DATE_FORMAT))
    root_logger.addHandler(full_handler)

    error_handler = logging.FileHandler(
        logs_dir / f"{LOG_ERRORS_PREFIX}_{timestamp}.log", mode="w", encoding="utf-8"
    )
    error_handler.setLevel(logging.DEBUG)  # Filter handles the level restriction
    error_handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT, FILE_DATE_FORMAT))
    error_handler.addFilter(ErrorOnlyFilter())
    root_logger.addHandler(error_handler)

    for handler_class, prefix in (
        (UnmatchedTrackHandler, UNMATCHED_TRACKS_PREFIX),
        (AmbiguousMatchHandler, AMBIGUOUS_MATCHES_PREFIX),
        (ExportFailureHandler, EXPORT_FAILURES_PREFIX),
    ):
        report_handler = handler_class(logs_dir / f"{prefix}_{timestamp}.log")
        report_handler.open()
        root_logger.addHandler(report_handler)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a module.

    Args:
        name: The logger name, typically __name__ of the calling module.

    Returns:
        logging.Logger: A logger instance configured by setup_logging().

    Note:
        Loggers obtained before setup_logging() is called will have no
        handlers and will not produce output.
    """
    return logging.getLogger(name)


def format_matched_message(artist: str, name: str, strategy: str, score: float) -> str:
    """Format a 'Matched' message with colors."""
    return (
        f"{Colors.GREEN}Matched{Colors.RESET}: "
        f"{artist} - {name} "
        f"({Colors.CYAN}{strategy}{Colors.RESET}, score {score:.2f})"
    )


def format_ambiguous_message(artist: str, name: str, score: float) -> str:
    """Format an 'Ambiguous match' warning message with colors."""
    return (
        f"{Colors.YELLOW}Ambiguous match{Colors.RESET} for: "
        f"{artist} - {name} "
        f"(best score: {Colors.YELLOW}{score:.2f}{Colors.RESET})"
    )


def format_no_match_message(artist: str, name: str, reason: str) -> str:
    """Format a 'No match' message with colors."""
    return (
        f"{Colors.RED}No match{Colors.RESET}: "
        f"{artist} - {name} "
        f"({reason})"
    )


def format_export_summary(name: str, exported: int, skipped: int, failed: int) -> str:
    """
    Format the one-line summary printed after a playlist export.

    Args:
        name: Playlist name.
        exported: Number of songs written to Navidrome.
        skipped: Number of tracks not exported on purpose.
        failed: Number of tracks that could not be exported.
    """
    return (
        f"{name}: "
        f"exported {Colors.GREEN}{exported}{Colors.RESET}, "
        f"skipped {Colors.YELLOW}{skipped}{Colors.RESET}, "
        f"failed {Colors.RED}{failed}{Colors.RESET}"
    )


def log_unmatched_track(
    logger: logging.Logger,
    track_name: str,
    artist: str,
    album: str,
    duration: str,
    spotify_url: str,
    reason: str,
    playlist_name: str | None = None
) -> None:
    """
    Log a track that found no confident match.

    Logs a WARNING with the extra fields UnmatchedTrackHandler writes to
    unmatched_tracks.log.

    Example:
        log_unmatched_track(
            logger,
            track_name="Song Title",
            artist="Artist Name",
            album="Album Name",
            duration="3:45",
            spotify_url="https://open.spotify.com/track/xxx",
            reason="no candidates for artist",
            playlist_name="Road Trip"
        )
    """
    logger.warning(
        format_no_match_message(artist, track_name, reason),
        extra={
            "unmatched_track_name": track_name,
            "unmatched_track_artist": artist,
            "unmatched_track_album": album,
            "unmatched_track_duration": duration,
            "unmatched_track_url": spotify_url,
            "unmatched_track_playlist": playlist_name,
            "unmatched_track_reason": reason,
        }
    )


def log_ambiguous_match(
    logger: logging.Logger,
    track_name: str,
    artist: str,
    spotify_url: str,
    best_label: str,
    score: float,
    alternatives: list[tuple[str, float]]
) -> None:
    """
    Log a track whose best candidates were too close to pick one.

    Args:
        logger: The logger to use for the message.
        track_name: Spotify track title.
        artist: Spotify artist line.
        spotify_url: Spotify URL of the track.
        best_label: Human-readable label of the best candidate.
        score: Score of the best candidate.
        alternatives: (label, score) pairs of the other close candidates.
    """
    logger.warning(
        format_ambiguous_message(artist, track_name, score),
        extra={
            "ambiguous_track_name": track_name,
            "ambiguous_track_artist": artist,
            "ambiguous_track_url": spotify_url,
            "ambiguous_best": best_label,
            "ambiguous_score": score,
            "ambiguous_alternatives": alternatives,
        }
    )


def log_export_failure(
    logger: logging.Logger,
    playlist_name: str,
    track_name: str,
    artist: str,
    reason: str
) -> None:
    """
    Log a track that could not be written to Navidrome.

    Logs an ERROR with the extra fields ExportFailureHandler writes to
    export_failures.log.
    """
    logger.error(
        f"Export failed: {artist} - {track_name} ({reason})",
        extra={
            "export_failed_track_name": track_name,
            "export_failed_track_artist": artist,
            "export_failed_playlist": playlist_name,
            "export_failed_reason": reason,
        }
    )


def shutdown_logging() -> None:
    """
    Properly shut down the logging system.

    Flushes and closes every handler of the root logger and removes them.
    Typically called in a finally block.
    """
    root_logger = logging.getLogger()

    for handler in root_logger.handlers[:]:
        try:
            handler.flush()
            handler.close()
        except OSError:
            pass
        root_logger.removeHandler(handler)
