"""
Command-line interface for spot-navidrome.

This module implements the CLI using Click, providing the commands for
exporting Spotify playlists to a Navidrome server.
rich-click is used for the output colors.

Commands:
    spot-navidrome export --playlist <url>   Export one or more playlists
    spot-navidrome export --all              Export every playlist of the user
    spot-navidrome export --liked            Star the Liked Songs on Navidrome
    spot-navidrome status                    Show the export status of each playlist
    spot-navidrome forget <url|liked>        Drop the cached export of a playlist

Usage:
    # Export a playlist (differential on later runs)
    spot-navidrome export --playlist "https://open.spotify.com/playlist/..."

    # Export everything, 4 tracks matched in parallel
    spot-navidrome export --all --liked --concurrency 4

    # Look candidates up by title instead of artist
    spot-navidrome export --playlist 37i9dQZF1DXcBWIGoYBM5M --title-search

Configuration:
    The CLI reads config.yaml from the current directory (or --config) with:
    - Spotify API credentials
    - Navidrome URL, username and password
    - Matching and export options
    - Output directory for logs and the export cache

Interrupting:
    The first Ctrl-C cancels the export cooperatively: the current step
    finishes, progress already written to Navidrome is recorded, and the
    command exits with code 130. A second Ctrl-C aborts immediately.

Exit Codes:
    0 success, 1 configuration, 2 database, 3 Spotify, 4 Navidrome,
    5 other errors (or playlists that failed to export), 130 cancelled.
"""

import dataclasses
import signal
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator, Optional

import rich_click as click
from rich.console import Console
from rich.table import Table

# Configure rich-click for better help formatting
click.rich_click.USE_RICH_MARKUP = True
click.rich_click.SHOW_ARGUMENTS = True
click.rich_click.GROUP_ARGUMENTS_OPTIONS = True
click.rich_click.STYLE_ERRORS_SUGGESTION = "magenta italic"
click.rich_click.ERRORS_SUGGESTION = ""
click.rich_click.MAX_WIDTH = 100
click.rich_click.OPTION_GROUPS = {
    "spot-navidrome export": [
        {
            "name": "Input Sources",
            "options": ["--playlist", "--all", "--liked"],
        },
        {
            "name": "Matching Options",
            "options": ["--concurrency", "--title-search"],
        },
        {
            "name": "Advanced Options",
            "options": ["--config", "--debug"],
        },
    ],
}

from spot_navidrome import __version__
from spot_navidrome.cache import DatabaseExportStore
from spot_navidrome.core import (
    CancellationToken,
    Config,
    ConfigError,
    Database,
    DatabaseError,
    ExportCancelledError,
    NavidromeError,
    SpotifyError,
    SpotNavidromeError,
    get_logger,
    load_config,
    setup_logging,
    shutdown_logging,
)
from spot_navidrome.core.logger import format_export_summary
from spot_navidrome.core.progress import ExportProgressBar, MatchingProgressBar
from spot_navidrome.export import (
    FAVORITES_NAME,
    LIKED_SONGS_ID,
    ExportProgress,
    ExportSession,
    ExportState,
)
from spot_navidrome.matching import BatchProgress, CandidateSearchMode, MatchingOptions
from spot_navidrome.navidrome import NavidromeClient
from spot_navidrome.spotify import SpotifyClient
from spot_navidrome.utils import ensure_directory, extract_playlist_id

logger = get_logger(__name__)


# Name of the spotipy token cache inside the output directory
SPOTIFY_TOKEN_CACHE = ".spotify_token"


config_option = click.option(
    "--config", "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    metavar="<config.yaml>",
    help="Configuration file (default: ./config.yaml)"
)

debug_option = click.option(
    "--debug",
    is_flag=True,
    help="Show debug messages on the console"
)


@click.group(invoke_without_command=True)
@click.option(
    "--version",
    is_flag=True,
    help="Show version and exit."
)
@click.pass_context
def cli(ctx: click.Context, version: bool) -> None:
    """
    spot-navidrome: Export Spotify playlists to Navidrome.

    Matches every track of a Spotify playlist against the songs hosted on
    a Navidrome server and writes the result as a Navidrome playlist.
    Later runs only match the tracks added since the previous export.

    \b
    BASIC USAGE:
        spot-navidrome export --playlist "https://open.spotify.com/playlist/..."
        spot-navidrome export --all --liked
        spot-navidrome status
    """
    if version:
        click.echo(f"spot-navidrome {__version__}")
        ctx.exit(0)

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())
        ctx.exit(0)


# =============================================================================
# export
# =============================================================================

@cli.command()
@click.option(
    "--playlist", "playlist_refs",
    multiple=True,
    metavar="<spotify-url>",
    help="Spotify playlist URL or ID (repeatable)"
)
@click.option(
    "--all", "export_all",
    is_flag=True,
    help="Export every playlist of the user"
)
@click.option(
    "--liked",
    is_flag=True,
    help="Star the user's Liked Songs on Navidrome"
)
@click.option(
    "--concurrency",
    type=click.IntRange(min=1),
    default=None,
    help="Tracks matched in parallel (overrides config.yaml)"
)
@click.option(
    "--title-search",
    is_flag=True,
    help="Look candidates up by title instead of artist"
)
@config_option
@debug_option
def export(
    playlist_refs: tuple[str, ...],
    export_all: bool,
    liked: bool,
    concurrency: Optional[int],
    title_search: bool,
    config_path: Optional[Path],
    debug: bool
) -> None:
    """Export Spotify playlists (and Liked Songs) to Navidrome."""
    if not playlist_refs and not export_all and not liked:
        raise click.UsageError("Nothing to export: use --playlist, --all or --liked")
    if playlist_refs and export_all:
        raise click.UsageError("Cannot use both --playlist and --all")

    try:
        playlist_ids = [extract_playlist_id(ref) for ref in playlist_refs]
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--playlist") from e

    def run(config: Config, store: DatabaseExportStore) -> None:
        spotify = SpotifyClient.from_config(config.spotify, config.output.directory / SPOTIFY_TOKEN_CACHE)
        navidrome = _connect_navidrome(config)

        options = MatchingOptions.from_config(config.matching)
        if title_search:
            options = dataclasses.replace(options, candidate_search=CandidateSearchMode.TITLE)

        session = ExportSession(
            spotify,
            navidrome,
            store,
            options=options,
            concurrency=concurrency or config.matching.concurrency,
            skip_unmatched=config.export.skip_unmatched,
        )

        if export_all:
            playlists = spotify.list_playlists()
        else:
            playlists = [spotify.get_playlist(playlist_id) for playlist_id in playlist_ids]

        token = CancellationToken()
        with _cancel_on_interrupt(token):
            failures = _export_playlists(session, playlists, token)
            if liked:
                failures += _export_liked_songs(session, token)

        if failures:
            click.echo(f"{failures} export(s) failed, see the logs for details", err=True)
            sys.exit(5)

    _run_command(config_path, debug, run)


def _export_playlists(session: ExportSession, playlists: list, token: CancellationToken) -> int:
    failures = 0

    for index, playlist in enumerate(playlists, start=1):
        logger.info(f"[{index}/{len(playlists)}] {playlist.name}")
        display = _ProgressDisplay(playlist.name)
        try:
            result = session.export_playlist(
                playlist,
                token,
                on_match_progress=display.on_match_progress,
                on_export_progress=display.on_export_progress,
            )
        except (SpotifyError, NavidromeError) as e:
            if e.is_auth_error:
                raise
            logger.error(f"Failed to export '{playlist.name}': {e.message}")
            failures += 1
            continue
        finally:
            display.close()

        _print_playlist_result(result)

    return failures


def _export_liked_songs(session: ExportSession, token: CancellationToken) -> int:
    display = _ProgressDisplay(FAVORITES_NAME)
    try:
        result = session.export_liked_songs(
            token,
            on_match_progress=display.on_match_progress,
            on_export_progress=display.on_export_progress,
        )
    except (SpotifyError, NavidromeError) as e:
        if e.is_auth_error:
            raise
        logger.error(f"Failed to export {FAVORITES_NAME}: {e.message}")
        return 1
    finally:
        display.close()

    stats = result.export_result.statistics
    logger.info("=" * 60)
    logger.info(format_export_summary(FAVORITES_NAME, stats.starred, stats.skipped, stats.failed))
    logger.info(f"Matched:           {result.match_result.statistics.matched}/{result.match_result.statistics.total}")
    logger.info(f"Newly starred:     {stats.starred}")
    logger.info(f"Unstarred:         {result.unstarred}")
    logger.info("=" * 60)
    return 0


def _print_playlist_result(result) -> None:
    stats = result.export_result.statistics
    record_stats = result.record.statistics

    logger.info("=" * 60)
    logger.info(format_export_summary(result.playlist.name, stats.exported, stats.skipped, stats.failed))
    logger.info(f"Mode:              {result.mode.value}")
    if result.up_to_date:
        logger.info("Matching:          skipped (playlist unchanged)")
    logger.info(f"Matched:           {record_stats.matched}/{record_stats.total}")
    logger.info(f"Ambiguous:         {record_stats.ambiguous}")
    logger.info(f"Unmatched:         {record_stats.unmatched}")
    if stats.removed or stats.unchanged:
        logger.info(f"Removed:           {stats.removed}")
        logger.info(f"Unchanged:         {stats.unchanged}")
    for error in result.export_result.errors:
        logger.warning(f"  {error.artist_name} - {error.track_name}: {error.reason}")
    logger.info("=" * 60)


class _ProgressDisplay:
    """Matching bar followed by export bar for one export."""

    def __init__(self, description: str) -> None:
        self._description = description[:30]
        self._matching: MatchingProgressBar | None = None
        self._export: ExportProgressBar | None = None

    def on_match_progress(self, progress: BatchProgress) -> None:
        if self._matching is None:
            self._matching = MatchingProgressBar(progress.total, self._description)
            self._matching.start()
        self._matching.update(progress.current, progress.matched, progress.ambiguous, progress.unmatched)

    def on_export_progress(self, progress: ExportProgress) -> None:
        if self._matching is not None:
            self._matching.stop()
            self._matching = None
        if self._export is None:
            self._export = ExportProgressBar(progress.total, self._description)
            self._export.start()
        self._export.update(progress.current, progress.total, progress.status.value, progress.current_track)

    def close(self) -> None:
        for bar in (self._matching, self._export):
            if bar is not None:
                bar.stop()
        self._matching = None
        self._export = None


@contextmanager
def _cancel_on_interrupt(token: CancellationToken) -> Iterator[None]:
    """
    Turn the first Ctrl-C into a cancellation request.

    The second Ctrl-C falls back to the default handler (KeyboardInterrupt).
    """
    def handle(signum, frame) -> None:
        click.echo("\nCancelling... (press Ctrl-C again to abort)", err=True)
        token.cancel()
        signal.signal(signal.SIGINT, signal.default_int_handler)

    previous = signal.signal(signal.SIGINT, handle)
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)


# =============================================================================
# status
# =============================================================================

@cli.command()
@config_option
@debug_option
def status(config_path: Optional[Path], debug: bool) -> None:
    """Show the export status of every Spotify playlist."""

    def run(config: Config, store: DatabaseExportStore) -> None:
        spotify = SpotifyClient.from_config(config.spotify, config.output.directory / SPOTIFY_TOKEN_CACHE)
        navidrome = _connect_navidrome(config)
        session = ExportSession(spotify, navidrome, store)

        playlists = spotify.list_playlists()
        states = session.export_states(playlists)

        styles = {
            ExportState.EXPORTED: "green",
            ExportState.OUT_OF_SYNC: "yellow",
            ExportState.NONE: "dim",
        }

        table = Table(title="Export status")
        table.add_column("Playlist")
        table.add_column("Tracks", justify="right")
        table.add_column("On Navidrome", justify="right")
        table.add_column("Status")
        table.add_column("Last export")

        for playlist, state in zip(playlists, states):
            style = styles[state.status]
            table.add_row(
                playlist.name,
                str(playlist.track_count),
                "-" if state.destination_song_count is None else str(state.destination_song_count),
                f"[{style}]{state.status.value}[/{style}]",
                state.last_exported_at or "-",
            )

        liked_record = store.get(LIKED_SONGS_ID)
        if liked_record is not None:
            table.add_row(
                FAVORITES_NAME,
                str(liked_record.track_count),
                "-",
                "[green]starred[/green]",
                liked_record.exported_at,
            )

        Console().print(table)

    _run_command(config_path, debug, run)


# =============================================================================
# forget
# =============================================================================

@cli.command()
@click.argument("playlist", metavar="<spotify-url|liked>")
@config_option
@debug_option
def forget(playlist: str, config_path: Optional[Path], debug: bool) -> None:
    """
    Drop the cached export of a playlist.

    The next export matches every track again. The Navidrome playlist is
    kept and is found again through its comment.
    """
    if playlist.lower() in ("liked", LIKED_SONGS_ID):
        playlist_id = LIKED_SONGS_ID
    else:
        try:
            playlist_id = extract_playlist_id(playlist)
        except ValueError as e:
            raise click.BadParameter(str(e), param_hint="PLAYLIST") from e

    def run(config: Config, store: DatabaseExportStore) -> None:
        if store.delete(playlist_id):
            click.echo(f"Forgot the export of {playlist_id}")
        else:
            click.echo(f"No cached export for {playlist_id}")

    _run_command(config_path, debug, run)


# =============================================================================
# Shared workflow
# =============================================================================

def _connect_navidrome(config: Config) -> NavidromeClient:
    navidrome = NavidromeClient.from_config(config.navidrome)
    navidrome.login()
    return navidrome


def _run_command(
    config_path: Optional[Path],
    debug: bool,
    action: Callable[[Config, DatabaseExportStore], None]
) -> None:
    """
    Run a command body with configuration, logging and the export cache set up.

    Maps errors to exit codes and always shuts logging down.

    Raises:
        SystemExit: On fatal errors (with appropriate exit code).
    """
    store: DatabaseExportStore | None = None

    try:
        config = load_config(config_path)

        setup_logging(config.output.directory, debug)
        logger.debug(f"spot-navidrome {__version__} starting")

        ensure_directory(config.output.directory)
        store = DatabaseExportStore(Database(config.output.database_path))

        action(config, store)

    except ConfigError as e:
        click.echo(f"Configuration error: {e.message}", err=True)
        sys.exit(1)

    except DatabaseError as e:
        click.echo(f"Database error: {e.message}", err=True)
        logger.error(f"Database error: {e.message}", exc_info=True)
        sys.exit(2)

    except SpotifyError as e:
        click.echo(f"Spotify error: {e.message}", err=True)
        if e.is_auth_error:
            click.echo("Check client_id, client_secret and redirect_uri in config.yaml", err=True)
        logger.error(f"Spotify error: {e.message}", exc_info=True)
        sys.exit(3)

    except NavidromeError as e:
        click.echo(f"Navidrome error: {e.message}", err=True)
        if e.is_auth_error:
            click.echo("Check the navidrome username and password in config.yaml", err=True)
        logger.error(f"Navidrome error: {e.message}", exc_info=True)
        sys.exit(4)

    except ExportCancelledError:
        click.echo("Export cancelled", err=True)
        logger.info("Export cancelled by user")
        sys.exit(130)

    except SpotNavidromeError as e:
        click.echo(f"Error: {e.message}", err=True)
        logger.error(f"Error: {e.message}", exc_info=True)
        sys.exit(5)

    except KeyboardInterrupt:
        click.echo("\nInterrupted by user", err=True)
        logger.info("Interrupted by user")
        sys.exit(130)

    except Exception as e:
        click.echo(f"Unexpected error: {e}", err=True)
        logger.exception("Unexpected error")
        sys.exit(5)

    finally:
        if store is not None:
            store.close()
        shutdown_logging()


def main() -> None:
    """
    Entry point for the CLI.

    This function is called when running `spot-navidrome` from the command line.
    """
    cli()


if __name__ == "__main__":
    main()
