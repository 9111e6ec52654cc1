"""
Core module for spot-navidrome.

This module provides the foundational components used throughout the application:
    - exceptions: Custom exception classes for error handling
    - config: Configuration loading and validation
    - database: Thread-safe SQLite storage for export records
    - logger: Logging system with multiple outputs and report files
    - cancellation: Cooperative cancellation token
    - progress: Rich progress bars (imported directly from core.progress)

Usage:
    from spot_navidrome.core import (
        Config, load_config,
        Database,
        setup_logging, get_logger,
        SpotNavidromeError, ConfigError, DatabaseError
    )
"""

from spot_navidrome.core.cancellation import CancellationToken, check_cancelled
from spot_navidrome.core.config import (
    Config,
    ExportConfig,
    MatchingConfig,
    NavidromeConfig,
    OutputConfig,
    SpotifyConfig,
    load_config,
)
from spot_navidrome.core.database import Database
from spot_navidrome.core.exceptions import (
    ConfigError,
    DatabaseError,
    ExportCancelledError,
    ExportPreconditionError,
    NavidromeError,
    SpotifyError,
    SpotNavidromeError,
)
from spot_navidrome.core.logger import (
    get_logger,
    log_ambiguous_match,
    log_export_failure,
    log_unmatched_track,
    setup_logging,
    shutdown_logging,
)

__all__ = [
    # Cancellation
    "CancellationToken",
    "check_cancelled",
    # Config
    "Config",
    "SpotifyConfig",
    "NavidromeConfig",
    "MatchingConfig",
    "ExportConfig",
    "OutputConfig",
    "load_config",
    # Database
    "Database",
    # Exceptions
    "SpotNavidromeError",
    "ConfigError",
    "DatabaseError",
    "SpotifyError",
    "NavidromeError",
    "ExportPreconditionError",
    "ExportCancelledError",
    # Logger
    "setup_logging",
    "get_logger",
    "log_unmatched_track",
    "log_ambiguous_match",
    "log_export_failure",
    "shutdown_logging",
]
