"""
spot-navidrome: Export Spotify playlists to Navidrome.

This package matches the tracks of Spotify playlists against the songs
hosted on a Navidrome server and writes the result as Navidrome playlists
(or stars, for Liked Songs). Re-exports are differential: only tracks added
since the previous export are matched again.

Architecture:
    An export goes through two phases:

    MATCHING (matching/): Resolve each Spotify track to a Navidrome song
        - Look candidates up by primary artist (or by title)
        - Try ISRC, fuzzy and strict strategies in that order
        - Classify each track as matched, ambiguous or unmatched
        - Reuse cached outcomes of tracks matched by a previous export

    EXPORT (export/): Write the matches to Navidrome
        - create, append, overwrite or update a playlist
        - star the songs of Liked Songs
        - store an export descriptor in the playlist comment
        - persist the per-track outcomes in the export cache (cache/)

Modules:
    core/       - Configuration, database, logging, exceptions, cancellation
    catalog/    - Data models and the Spotify/Navidrome catalog interfaces
    matching/   - Similarity scoring, strategies, orchestrator, batch matcher
    cache/      - Export records and the differential engine
    export/     - Playlist and favorites exporters, export session, status
    spotify/    - Spotify API client (spotipy)
    navidrome/  - Navidrome API client (requests)
    utils/      - Small helpers
    cli.py      - Command-line interface

Usage:
    Command Line:
        spot-navidrome export --playlist "https://open.spotify.com/playlist/..."
        spot-navidrome export --all --liked
        spot-navidrome status

    Python API:
        from spot_navidrome.core import load_config, Database, setup_logging
        from spot_navidrome.cache import DatabaseExportStore
        from spot_navidrome.export import ExportSession
        from spot_navidrome.matching import MatchingOptions
        from spot_navidrome.navidrome import NavidromeClient
        from spot_navidrome.spotify import SpotifyClient

        config = load_config()
        setup_logging(config.output.directory)
        store = DatabaseExportStore(Database(config.output.database_path))

        spotify = SpotifyClient.from_config(config.spotify)
        navidrome = NavidromeClient.from_config(config.navidrome)
        navidrome.login()

        session = ExportSession(
            spotify, navidrome, store, MatchingOptions.from_config(config.matching)
        )
        for playlist in spotify.list_playlists():
            session.export_playlist(playlist)

Dependencies:
    - spotipy: Spotify API client
    - requests: Navidrome HTTP client
    - rapidfuzz: Levenshtein distance for fuzzy matching
    - click: CLI framework
    - rich-click: CLI colors
    - rich: Progress bars and tables
    - tqdm: Log output compatible with progress bars
    - pyyaml: Configuration file parsing
"""

__version__ = "0.1.0"
__author__ = "spot-navidrome"
__license__ = "MIT"

# Convenience imports for common usage
from spot_navidrome.core import (
    Config,
    ConfigError,
    Database,
    DatabaseError,
    ExportCancelledError,
    ExportPreconditionError,
    NavidromeError,
    SpotifyError,
    SpotNavidromeError,
    get_logger,
    load_config,
    setup_logging,
)
from spot_navidrome.export import ExportSession
from spot_navidrome.navidrome import NavidromeClient
from spot_navidrome.spotify import SpotifyClient

__all__ = [
    # Version
    "__version__",
    # Core
    "Config",
    "load_config",
    "Database",
    "setup_logging",
    "get_logger",
    # Exceptions
    "SpotNavidromeError",
    "ConfigError",
    "DatabaseError",
    "SpotifyError",
    "NavidromeError",
    "ExportPreconditionError",
    "ExportCancelledError",
    # Clients
    "SpotifyClient",
    "NavidromeClient",
    # Export
    "ExportSession",
]
