"""
Export session: one Spotify playlist (or Liked Songs) to Navidrome.

Ties together the export cache, the batch matcher and the exporters. The
export mode follows from what is already known about the playlist:

    1. Cached, unchanged and every track cached -> matches re-synthesized
       from the cache (no matching), update mode
    2. Cached with a Navidrome playlist id       -> differential matching,
       update mode
    3. A Navidrome playlist carries a descriptor for this Spotify playlist
       (cache lost)                              -> full matching, overwrite
    4. Otherwise                                 -> full matching, create

After the export the record is rebuilt and persisted. Tracks whose
Navidrome write failed are left out of it so the next run retries them.

Cancellation:
    Cancelling during matching persists nothing. Cancelling after the
    update's add step persists the record first (the added songs are already
    on Navidrome), then the error propagates.
"""

import hashlib
from dataclasses import dataclass
from typing import Callable

from spot_navidrome.cache.engine import (
    build_export_record,
    has_all_tracks,
    is_playlist_up_to_date,
    matches_from_record,
)
from spot_navidrome.cache.records import PlaylistExportRecord, now_iso
from spot_navidrome.cache.store import ExportStore
from spot_navidrome.catalog.base import DestinationCatalog, SourceCatalog
from spot_navidrome.catalog.descriptor import ExportDescriptor
from spot_navidrome.catalog.models import DestinationPlaylist, SourcePlaylist, SourceTrack
from spot_navidrome.core.cancellation import CancellationToken, check_cancelled
from spot_navidrome.core.exceptions import ExportCancelledError
from spot_navidrome.core.logger import get_logger
from spot_navidrome.export.favorites import FAVORITES_NAME, FavoritesExporter
from spot_navidrome.export.models import (
    ExportMode,
    ExportPhase,
    ExportProgress,
    ExportResult,
    FavoritesExportResult,
)
from spot_navidrome.export.playlist import PlaylistExporter
from spot_navidrome.export.status import (
    PlaylistExportState,
    find_exported_playlist,
    resolve_export_state,
)
from spot_navidrome.matching.batch import BatchMatcher, ProgressCallback
from spot_navidrome.matching.models import BatchResult, MatchStatus, TrackMatch
from spot_navidrome.matching.orchestrator import MatchingOptions, MatchingOrchestrator


logger = get_logger(__name__)


LIKED_SONGS_ID = "liked-songs"


ExportProgressCallback = Callable[[ExportProgress], None]


@dataclass(frozen=True)
class PlaylistSessionResult:
    """
    Outcome of ExportSession.export_playlist().

    Attributes:
        playlist: The Spotify playlist exported.
        mode: Export mode chosen for it.
        up_to_date: True when matching was skipped (unchanged snapshot).
        match_result: Batch matching result, None when up to date.
        export_result: Result of the playlist exporter.
        record: Export record persisted at the end.
    """

    playlist: SourcePlaylist
    mode: ExportMode
    up_to_date: bool
    match_result: BatchResult | None
    export_result: ExportResult
    record: PlaylistExportRecord


@dataclass(frozen=True)
class LikedSongsSessionResult:
    """
    Outcome of ExportSession.export_liked_songs().

    Attributes:
        match_result: Batch matching result (differential when cached).
        export_result: Result of starring the newly matched songs.
        unstarred: Songs unstarred because their tracks left Liked Songs.
        record: Export record persisted at the end.
    """

    match_result: BatchResult
    export_result: FavoritesExportResult
    unstarred: int
    record: PlaylistExportRecord


def liked_songs_fingerprint(tracks: list[SourceTrack]) -> str:
    """
    Snapshot id stand-in for Liked Songs.

    Spotify has no snapshot id for saved tracks; a hash of the ordered track
    ids changes whenever a track is liked or unliked.
    """
    digest = hashlib.sha1("\n".join(track.id for track in tracks).encode("utf-8"))
    return digest.hexdigest()[:16]


class ExportSession:
    """
    Exports Spotify playlists to Navidrome with differential re-exports.

    Example:
        session = ExportSession(spotify, navidrome, store, options)
        for playlist in spotify.list_playlists():
            result = session.export_playlist(playlist, token)
            print(result.export_result.statistics)

    Attributes:
        _source: Spotify catalog.
        _destination: Navidrome catalog.
        _store: Export cache.
        _skip_unmatched: Count unmatched tracks as skipped, not failed.
        _destination_playlists: Navidrome playlists, listed once per session
                                when a cache miss needs them.
    """

    def __init__(
        self,
        source: SourceCatalog,
        destination: DestinationCatalog,
        store: ExportStore,
        options: MatchingOptions | None = None,
        concurrency: int = 1,
        skip_unmatched: bool = True
    ) -> None:
        self._source = source
        self._destination = destination
        self._store = store
        self._skip_unmatched = skip_unmatched

        orchestrator = MatchingOrchestrator(destination, options)
        self._matcher = BatchMatcher(orchestrator, concurrency)
        self._playlist_exporter = PlaylistExporter(destination)
        self._favorites_exporter = FavoritesExporter(destination)
        self._destination_playlists: list[DestinationPlaylist] | None = None

    # =========================================================================
    # PLAYLISTS
    # =========================================================================

    def export_playlist(
        self,
        playlist: SourcePlaylist,
        token: CancellationToken | None = None,
        on_match_progress: ProgressCallback | None = None,
        on_export_progress: ExportProgressCallback | None = None
    ) -> PlaylistSessionResult:
        """
        Export one Spotify playlist, choosing the mode from the cache.

        Args:
            playlist: Spotify playlist to export.
            token: Cancellation token.
            on_match_progress: Batch matcher progress callback.
            on_export_progress: Exporter progress callback.

        Returns:
            PlaylistSessionResult with the persisted record.

        Raises:
            ExportCancelledError: If the token fires.
            SpotifyError / NavidromeError: If reading the playlist or
                                           searching Navidrome fails.
        """
        check_cancelled(token)

        previous = self._store.get(playlist.id)
        tracks = self._source.list_playlist_tracks(playlist.id)
        logger.info(f"Exporting '{playlist.name}' ({len(tracks)} tracks)")

        up_to_date = False
        match_result: BatchResult | None = None

        if previous is not None and previous.destination_playlist_id:
            mode = ExportMode.UPDATE
            existing_id: str | None = previous.destination_playlist_id
            cached = previous

            if is_playlist_up_to_date(previous, playlist.snapshot_id) and has_all_tracks(previous, tracks):
                logger.info(f"'{playlist.name}' is unchanged since its last export")
                up_to_date = True
                matches = matches_from_record(tracks, previous)
                new_matches: list[TrackMatch] = []
            else:
                match_result = self._matcher.match_tracks_differential(
                    tracks, previous.tracks, token, on_match_progress, playlist_name=playlist.name
                )
                matches = match_result.matches
                new_matches = match_result.new_matches
        else:
            cached = None
            linked = self._find_linked_playlist(playlist.id)
            if linked is not None:
                logger.info(f"Found Navidrome playlist '{linked.name}' exported from '{playlist.name}'")
                mode = ExportMode.OVERWRITE
                existing_id = linked.id
            else:
                mode = ExportMode.CREATE
                existing_id = None

            match_result = self._matcher.match_tracks(
                tracks, token, on_match_progress, playlist_name=playlist.name
            )
            matches = match_result.matches
            new_matches = match_result.new_matches

        exported_at = now_iso()
        descriptor = ExportDescriptor(
            source_playlist_id=playlist.id,
            source_snapshot_id=playlist.snapshot_id,
            destination_playlist_id=existing_id,
            exported_at=exported_at,
            track_count=len(tracks),
        )

        phases: dict[ExportPhase, ExportProgress] = {}

        def track_phases(progress: ExportProgress) -> None:
            phases[progress.status] = progress
            if on_export_progress is not None:
                on_export_progress(progress)

        try:
            export_result = self._playlist_exporter.export_playlist(
                playlist.name,
                matches,
                mode=mode,
                existing_playlist_id=existing_id,
                skip_unmatched=self._skip_unmatched,
                on_progress=track_phases,
                token=token,
                cached_record=cached,
                descriptor=descriptor,
            )
        except ExportCancelledError:
            if mode is ExportMode.UPDATE and ExportPhase.ADDED in phases:
                self._save_interrupted(playlist, tracks, new_matches, previous, existing_id, exported_at, phases)
            raise

        failed_ids = set(export_result.failed_track_ids)
        persisted = [match for match in new_matches if match.source_track.id not in failed_ids]
        complete = not failed_ids and export_result.playlist_id is not None

        record = build_export_record(
            source_playlist_id=playlist.id,
            snapshot_id=playlist.snapshot_id,
            playlist_name=playlist.name,
            source_tracks=tracks,
            new_matches=persisted,
            previous=cached,
            destination_playlist_id=export_result.playlist_id,
            complete=complete,
            exported_at=exported_at,
        )
        self._store.set(record)

        if not complete:
            logger.warning(f"'{playlist.name}' was exported partially, failed tracks are retried next run")

        return PlaylistSessionResult(
            playlist=playlist,
            mode=mode,
            up_to_date=up_to_date,
            match_result=match_result,
            export_result=export_result,
            record=record,
        )

    def _save_interrupted(
        self,
        playlist: SourcePlaylist,
        tracks: list[SourceTrack],
        new_matches: list[TrackMatch],
        previous: PlaylistExportRecord | None,
        destination_playlist_id: str | None,
        exported_at: str,
        phases: dict[ExportPhase, ExportProgress]
    ) -> None:
        # Nothing reached Navidrome when the add step exported no song
        if phases[ExportPhase.ADDED].current == 0:
            new_matches = []

        # Removals not done yet keep their entries so the next run removes them
        retained: list[str] = []
        if previous is not None and ExportPhase.REMOVED not in phases:
            current_ids = {track.id for track in tracks}
            retained = [track_id for track_id in previous.tracks if track_id not in current_ids]

        record = build_export_record(
            source_playlist_id=playlist.id,
            snapshot_id=playlist.snapshot_id,
            playlist_name=playlist.name,
            source_tracks=tracks,
            new_matches=new_matches,
            previous=previous,
            destination_playlist_id=destination_playlist_id,
            complete=False,
            exported_at=exported_at,
            retained_track_ids=retained,
        )
        self._store.set(record)
        logger.info(f"Export of '{playlist.name}' interrupted, progress saved")

    def _find_linked_playlist(self, source_playlist_id: str) -> DestinationPlaylist | None:
        if self._destination_playlists is None:
            self._destination_playlists = self._destination.list_playlists()
        return find_exported_playlist(source_playlist_id, self._destination_playlists)

    # =========================================================================
    # LIKED SONGS
    # =========================================================================

    def export_liked_songs(
        self,
        token: CancellationToken | None = None,
        on_match_progress: ProgressCallback | None = None,
        on_export_progress: ExportProgressCallback | None = None
    ) -> LikedSongsSessionResult:
        """
        Star the Navidrome songs matching the user's Liked Songs.

        Only tracks new since the cached export are matched and starred.
        Songs whose tracks were unliked on Spotify are unstarred, unless
        another liked track still maps to the same song.

        Raises:
            ExportCancelledError: If the token fires.
        """
        check_cancelled(token)

        previous = self._store.get(LIKED_SONGS_ID)
        tracks = self._source.list_saved_tracks()
        logger.info(f"Exporting {FAVORITES_NAME} ({len(tracks)} tracks)")

        if previous is not None:
            match_result = self._matcher.match_tracks_differential(
                tracks, previous.tracks, token, on_match_progress, playlist_name=FAVORITES_NAME
            )
        else:
            match_result = self._matcher.match_tracks(
                tracks, token, on_match_progress, playlist_name=FAVORITES_NAME
            )

        export_result = self._favorites_exporter.export_favorites(
            match_result.new_matches,
            skip_unmatched=self._skip_unmatched,
            on_progress=on_export_progress,
            token=token,
        )

        unstarred = 0
        if previous is not None:
            current_ids = {track.id for track in tracks}
            still_starred = {match.candidate_song.id for match in match_result.matches if match.is_matched}
            to_unstar = []
            for track_id, entry in previous.tracks.items():
                if track_id in current_ids or not entry.destination_song_id:
                    continue
                # Only songs this tool starred
                if entry.status is not MatchStatus.MATCHED:
                    continue
                if entry.destination_song_id in still_starred or entry.destination_song_id in to_unstar:
                    continue
                to_unstar.append(entry.destination_song_id)
            if to_unstar:
                unstarred = self._favorites_exporter.unstar_songs(to_unstar, token)
                logger.info(f"Unstarred {unstarred} song(s) no longer in {FAVORITES_NAME}")

        failed_ids = set(export_result.failed_track_ids)
        persisted = [match for match in match_result.new_matches if match.source_track.id not in failed_ids]

        record = build_export_record(
            source_playlist_id=LIKED_SONGS_ID,
            snapshot_id=liked_songs_fingerprint(tracks),
            playlist_name=FAVORITES_NAME,
            source_tracks=tracks,
            new_matches=persisted,
            previous=previous,
            destination_playlist_id=None,
            complete=not failed_ids,
        )
        self._store.set(record)

        return LikedSongsSessionResult(
            match_result=match_result,
            export_result=export_result,
            unstarred=unstarred,
            record=record,
        )

    # =========================================================================
    # STATUS
    # =========================================================================

    def export_states(self, playlists: list[SourcePlaylist]) -> list[PlaylistExportState]:
        """
        Export status of each playlist, in input order.

        Lists the Navidrome playlists once (fresh, not the session cache).
        """
        destination_playlists = self._destination.list_playlists()
        self._destination_playlists = destination_playlists
        return [
            resolve_export_state(playlist, destination_playlists, self._store.get(playlist.id))
            for playlist in playlists
        ]
