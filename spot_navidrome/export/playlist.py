"""
Playlist export to Navidrome.

Turns a list of TrackMatch into Navidrome playlist mutations. Each mode is
planned by a pure function (plan_export) and executed by PlaylistExporter.

Modes:
    create:    new playlist from all matched songs
    append:    add matched songs to an existing playlist
    overwrite: replace the membership of an existing playlist
    update:    differential update against the cached export record:
                 1. add matched tracks absent from the cache
                 2. remove entries of tracks that left the Spotify playlist,
                    located by position through their cached song id
                 3. rewrite the export descriptor in the playlist comment

Failure Handling:
    - Cancellation propagates as ExportCancelledError (no result)
    - Missing playlist id / cache in append, overwrite or update raises
      ExportPreconditionError
    - A failed membership write becomes an error entry; its tracks count as failed
    - Failed removals and descriptor writes are logged and ignored

Usage:
    from spot_navidrome.export.playlist import PlaylistExporter, ExportMode

    exporter = PlaylistExporter(navidrome_client)
    result = exporter.export_playlist("Road Trip", matches, ExportMode.CREATE)
"""

import time
from dataclasses import dataclass
from typing import Callable

from spot_navidrome.cache.records import PlaylistExportRecord
from spot_navidrome.catalog.base import DestinationCatalog
from spot_navidrome.catalog.descriptor import ExportDescriptor
from spot_navidrome.core.cancellation import CancellationToken, check_cancelled
from spot_navidrome.core.exceptions import ExportCancelledError, ExportPreconditionError
from spot_navidrome.core.logger import format_export_summary, get_logger, log_export_failure
from spot_navidrome.export.models import (
    ExportErrorEntry,
    ExportMode,
    ExportPhase,
    ExportProgress,
    ExportResult,
    PlaylistExportStatistics,
)
from spot_navidrome.matching.models import MatchStatus, TrackMatch


logger = get_logger(__name__)


ExportProgressCallback = Callable[[ExportProgress], None]


# =============================================================================
# PLANNING
# =============================================================================

@dataclass(frozen=True)
class ExportPlan:
    """
    Mutation plan of one playlist export.

    Attributes:
        mode: Export mode.
        playlist_id: Target playlist (None for create).
        to_add: Matched tracks whose songs are written.
        not_exported: Tracks in scope that are not matched.
        removed_song_ids: Cached song ids whose entries are removed (update).
        total: Tracks in scope (all matches; new tracks in update mode).
        unchanged: Tracks carried over from the cache (update mode).
    """

    mode: ExportMode
    playlist_id: str | None
    to_add: tuple[TrackMatch, ...]
    not_exported: tuple[TrackMatch, ...]
    removed_song_ids: tuple[str, ...] = ()
    total: int = 0
    unchanged: int = 0

    @property
    def add_song_ids(self) -> list[str]:
        return [match.candidate_song.id for match in self.to_add]


def plan_export(
    mode: ExportMode,
    matches: list[TrackMatch],
    existing_playlist_id: str | None = None,
    cached_record: PlaylistExportRecord | None = None
) -> ExportPlan:
    """
    Compute the mutation plan of an export without touching Navidrome.

    Args:
        mode: Export mode.
        matches: Matches of the current Spotify track list.
        existing_playlist_id: Target playlist for append/overwrite/update.
        cached_record: Previous export record (update mode).

    Returns:
        The ExportPlan.

    Raises:
        ExportPreconditionError: If append/overwrite lack existing_playlist_id,
                                 or update lacks the cached record or a
                                 playlist id (given or cached).
    """
    mode = ExportMode(mode)

    if mode is ExportMode.CREATE:
        return _plan_full(mode, None, matches)

    if mode in (ExportMode.APPEND, ExportMode.OVERWRITE):
        if not existing_playlist_id:
            raise ExportPreconditionError(
                f"existing_playlist_id is required for {mode.value} mode",
                details={"mode": mode.value}
            )
        return _plan_full(mode, existing_playlist_id, matches)

    if cached_record is None:
        raise ExportPreconditionError(
            "cached_record is required for update mode",
            details={"mode": mode.value}
        )

    playlist_id = existing_playlist_id or cached_record.destination_playlist_id
    if not playlist_id:
        raise ExportPreconditionError(
            "A playlist id is required for update mode",
            details={"mode": mode.value, "source_playlist_id": cached_record.source_playlist_id}
        )

    cached = cached_record.tracks
    new = [match for match in matches if match.source_track.id not in cached]
    current_ids = {match.source_track.id for match in matches}

    removed_song_ids = tuple(
        entry.destination_song_id
        for track_id, entry in cached.items()
        if track_id not in current_ids
        and entry.status is MatchStatus.MATCHED
        and entry.destination_song_id
    )

    return ExportPlan(
        mode=mode,
        playlist_id=playlist_id,
        to_add=tuple(match for match in new if match.is_matched),
        not_exported=tuple(match for match in new if not match.is_matched),
        removed_song_ids=removed_song_ids,
        total=len(new),
        unchanged=len(matches) - len(new),
    )


def _plan_full(mode: ExportMode, playlist_id: str | None, matches: list[TrackMatch]) -> ExportPlan:
    return ExportPlan(
        mode=mode,
        playlist_id=playlist_id,
        to_add=tuple(match for match in matches if match.is_matched),
        not_exported=tuple(match for match in matches if not match.is_matched),
        total=len(matches),
    )


def locate_entry_positions(membership: list[str], song_ids: list[str] | tuple[str, ...]) -> list[int]:
    """
    Find the playlist positions of songs to remove.

    Each song id claims the first occurrence in `membership` not claimed
    yet, so a song present twice is removed twice only when listed twice.
    Song ids not found are ignored.

    Returns:
        Sorted 0-based positions.

    Example:
        locate_entry_positions(["a", "b", "a"], ["a", "a"])  # [0, 2]
    """
    claimed: set[int] = set()
    positions: list[int] = []

    for song_id in song_ids:
        for index, entry in enumerate(membership):
            if entry == song_id and index not in claimed:
                claimed.add(index)
                positions.append(index)
                break

    return sorted(positions)


# =============================================================================
# EXECUTION
# =============================================================================

class PlaylistExporter:
    """
    Writes matches to Navidrome playlists.

    Attributes:
        _destination: Navidrome catalog receiving the writes.
    """

    def __init__(self, destination: DestinationCatalog) -> None:
        self._destination = destination

    def export_playlist(
        self,
        playlist_name: str,
        matches: list[TrackMatch],
        mode: ExportMode = ExportMode.CREATE,
        existing_playlist_id: str | None = None,
        skip_unmatched: bool = False,
        on_progress: ExportProgressCallback | None = None,
        token: CancellationToken | None = None,
        cached_record: PlaylistExportRecord | None = None,
        descriptor: ExportDescriptor | None = None
    ) -> ExportResult:
        """
        Export matches to a Navidrome playlist.

        Args:
            playlist_name: Name of the playlist (used by create).
            matches: Matches of the current Spotify track list, in order.
            mode: Export mode.
            existing_playlist_id: Target playlist for append/overwrite/update.
            skip_unmatched: Count unmatched tracks as skipped instead of failed.
            on_progress: Called with ExportProgress events.
            token: Cancellation token checked before each Navidrome write.
            cached_record: Previous export record (required by update).
            descriptor: Written to the playlist comment after the membership
                        change, with the playlist id filled in.

        Returns:
            ExportResult. statistics.total == exported + failed + skipped.

        Raises:
            ExportCancelledError: If the token fires.
            ExportPreconditionError: If the mode's requirements are not met.
        """
        start_time = time.monotonic()
        check_cancelled(token)

        plan = plan_export(mode, matches, existing_playlist_id, cached_record)
        run = _ExportRun(plan, on_progress)
        run.emit(ExportPhase.PREPARING, 0)

        if not plan.to_add:
            run.skipped = plan.total
        else:
            self._account_not_exported(run, playlist_name, skip_unmatched)
            check_cancelled(token)
            self._write_membership(run, playlist_name)

        if plan.mode is ExportMode.UPDATE:
            run.emit(ExportPhase.ADDED, run.exported)
            check_cancelled(token)
            run.removed = self._remove_entries(plan.playlist_id, plan.removed_song_ids)
            run.emit(ExportPhase.REMOVED, run.exported)

        if descriptor is not None and run.playlist_id:
            check_cancelled(token)
            self._write_descriptor(run.playlist_id, descriptor)
            run.emit(ExportPhase.METADATA_UPDATED, run.exported)

        success = run.failed == 0 and not run.errors
        final_phase = ExportPhase.COMPLETED if success or run.exported > 0 else ExportPhase.FAILED
        run.emit(final_phase, plan.total)

        logger.info(format_export_summary(playlist_name, run.exported, run.skipped, run.failed))

        return ExportResult(
            success=success,
            playlist_id=run.playlist_id,
            playlist_name=playlist_name,
            mode=plan.mode,
            statistics=PlaylistExportStatistics(
                total=plan.total,
                exported=run.exported,
                failed=run.failed,
                skipped=run.skipped,
                removed=run.removed,
                unchanged=plan.unchanged,
            ),
            errors=run.errors,
            duration=time.monotonic() - start_time,
            failed_track_ids=run.failed_track_ids,
        )

    def _account_not_exported(self, run: "_ExportRun", playlist_name: str, skip_unmatched: bool) -> None:
        if skip_unmatched:
            run.skipped += len(run.plan.not_exported)
            return

        for match in run.plan.not_exported:
            track = match.source_track
            reason = f"Track is {match.status.value}, not exported"
            run.failed += 1
            run.errors.append(ExportErrorEntry(track.title, track.artist_line, reason))
            log_export_failure(logger, playlist_name, track.title, track.artist_line, reason)

    def _write_membership(self, run: "_ExportRun", playlist_name: str) -> None:
        plan = run.plan
        song_ids = plan.add_song_ids

        try:
            if plan.mode is ExportMode.CREATE:
                run.playlist_id = self._destination.create_playlist(playlist_name, song_ids)
            elif plan.mode is ExportMode.OVERWRITE:
                self._destination.replace_playlist_membership(plan.playlist_id, song_ids)
            else:
                self._destination.update_playlist_membership(plan.playlist_id, song_ids, [])
            run.exported += len(song_ids)
        except ExportCancelledError:
            raise
        except Exception as e:
            reason = f"Failed to {plan.mode.value} playlist: {e}"
            logger.error(f"{playlist_name}: {reason}")
            run.failed += len(song_ids)
            run.errors.append(ExportErrorEntry("N/A", "N/A", reason))
            for match in plan.to_add:
                track = match.source_track
                run.failed_track_ids.append(track.id)
                log_export_failure(logger, playlist_name, track.title, track.artist_line, reason)

    def _remove_entries(self, playlist_id: str | None, song_ids: tuple[str, ...]) -> int:
        """Remove cached songs from the playlist by position (best-effort)."""
        if not playlist_id or not song_ids:
            return 0

        try:
            membership = self._destination.get_playlist_song_ids(playlist_id)
            positions = locate_entry_positions(membership, song_ids)
            missing = len(song_ids) - len(positions)
            if missing:
                logger.debug(f"{missing} removed song(s) not found in playlist {playlist_id}")
            if positions:
                self._destination.update_playlist_membership(playlist_id, [], positions)
            return len(positions)
        except ExportCancelledError:
            raise
        except Exception as e:
            logger.warning(f"Could not remove stale entries from playlist {playlist_id}: {e}")
            return 0

    def _write_descriptor(self, playlist_id: str, descriptor: ExportDescriptor) -> None:
        try:
            self._destination.write_playlist_descriptor(
                playlist_id, descriptor.with_destination(playlist_id)
            )
        except ExportCancelledError:
            raise
        except Exception as e:
            logger.warning(f"Could not update export descriptor of playlist {playlist_id}: {e}")


class _ExportRun:
    """Accumulators of one export_playlist() call."""

    def __init__(self, plan: ExportPlan, on_progress: ExportProgressCallback | None) -> None:
        self.plan = plan
        self.on_progress = on_progress
        self.playlist_id = plan.playlist_id
        self.exported = 0
        self.failed = 0
        self.skipped = 0
        self.removed = 0
        self.errors: list[ExportErrorEntry] = []
        self.failed_track_ids: list[str] = []

    def emit(self, status: ExportPhase, current: int) -> None:
        if self.on_progress is not None:
            self.on_progress(ExportProgress.create(current, self.plan.total, status))
