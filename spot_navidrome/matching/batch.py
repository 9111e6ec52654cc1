"""
Batch matching of Spotify track lists.

Drives the MatchingOrchestrator over a list of tracks, either fully or only
over the tracks missing from a previous export record (differential).

Concurrency:
    concurrency <= 1: tracks are matched one by one, one progress event each.
    concurrency > 1:  tracks are split into fixed-size chunks; the tracks of a
                      chunk are matched in parallel (ThreadPoolExecutor) and one
                      progress event is emitted per chunk. Output order always
                      equals input order.

Cancellation:
    The token is checked before each track (or chunk). When it fires,
    ExportCancelledError propagates; matches resolved before that point are
    kept in the caller's `collected` list.

Usage:
    from spot_navidrome.matching.batch import BatchMatcher

    matcher = BatchMatcher(orchestrator, concurrency=4)
    result = matcher.match_tracks_differential(tracks, record.tracks, token=token)
"""

import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable

from spot_navidrome.cache.records import TrackExportStatus
from spot_navidrome.catalog.models import SourceTrack
from spot_navidrome.core.cancellation import CancellationToken, check_cancelled
from spot_navidrome.core.logger import (
    format_matched_message,
    get_logger,
    log_ambiguous_match,
    log_unmatched_track,
)
from spot_navidrome.matching.models import (
    BatchProgress,
    BatchResult,
    MatchStatistics,
    MatchStatus,
    TrackMatch,
)
from spot_navidrome.matching.orchestrator import MatchingOrchestrator
from spot_navidrome.matching.similarity import AMBIGUITY_MARGIN, track_similarity
from spot_navidrome.utils import chunked, format_duration_ms


logger = get_logger(__name__)


ProgressCallback = Callable[[BatchProgress], None]


class _RunningCounts:
    """Running totals behind the progress events of one batch."""

    def __init__(self, total: int) -> None:
        self.total = total
        self.current = 0
        self.matched = 0
        self.ambiguous = 0
        self.unmatched = 0

    def add(self, match: TrackMatch) -> None:
        self.current += 1
        if match.status is MatchStatus.MATCHED:
            self.matched += 1
        elif match.status is MatchStatus.AMBIGUOUS:
            self.ambiguous += 1
        else:
            self.unmatched += 1

    def progress(
        self,
        current_track: SourceTrack | None = None,
        current_match: TrackMatch | None = None
    ) -> BatchProgress:
        percent = int(self.current * 100 / self.total + 0.5) if self.total else 100
        return BatchProgress(
            current=self.current,
            total=self.total,
            percent=percent,
            current_track=current_track,
            current_match=current_match,
            matched=self.matched,
            ambiguous=self.ambiguous,
            unmatched=self.unmatched,
        )


class BatchMatcher:
    """
    Matches lists of Spotify tracks against Navidrome.

    Attributes:
        _orchestrator: Resolves single tracks.
        _concurrency: Chunk size / worker count (1 = sequential).
    """

    def __init__(self, orchestrator: MatchingOrchestrator, concurrency: int = 1) -> None:
        self._orchestrator = orchestrator
        self._concurrency = max(1, concurrency)

    def match_tracks(
        self,
        tracks: list[SourceTrack],
        token: CancellationToken | None = None,
        on_progress: ProgressCallback | None = None,
        collected: list[TrackMatch] | None = None,
        playlist_name: str | None = None
    ) -> BatchResult:
        """
        Match every track of the list.

        Args:
            tracks: Spotify tracks in playlist order.
            token: Cancellation token checked before each track/chunk.
            on_progress: Called after each track (or chunk).
            collected: Caller-owned list that receives each match as soon as
                       it is resolved.
            playlist_name: Playlist name for the unmatched report.

        Returns:
            BatchResult with one match per track, in input order.

        Raises:
            ExportCancelledError: If the token fires.
        """
        start_time = time.monotonic()
        check_cancelled(token)
        counts = _RunningCounts(len(tracks))

        matches = self._run(tracks, counts, token, on_progress, collected, playlist_name)

        return BatchResult(
            matches=matches,
            statistics=MatchStatistics.from_matches(matches),
            new_tracks=list(tracks),
            new_matches=list(matches),
            duration=time.monotonic() - start_time,
        )

    def match_tracks_differential(
        self,
        tracks: list[SourceTrack],
        cached_tracks: dict[str, TrackExportStatus],
        token: CancellationToken | None = None,
        on_progress: ProgressCallback | None = None,
        collected: list[TrackMatch] | None = None,
        playlist_name: str | None = None
    ) -> BatchResult:
        """
        Match only the tracks missing from a previous export record.

        Cached tracks are re-synthesized from their cached fields without any
        Navidrome lookup. The remaining tracks go through the orchestrator.

        Args:
            tracks: Spotify tracks in playlist order.
            cached_tracks: Tracks map of the previous export record.
            token, on_progress, collected, playlist_name: As in match_tracks().

        Returns:
            BatchResult whose `matches` follow the input order and whose
            `new_tracks`/`new_matches` hold only the tracks matched in this run.
            One progress event covers the carried-over part.

        Raises:
            ExportCancelledError: If the token fires.
        """
        start_time = time.monotonic()
        check_cancelled(token)

        counts = _RunningCounts(len(tracks))
        merged: list[TrackMatch | None] = []
        new_positions: list[int] = []
        new_tracks: list[SourceTrack] = []

        for track in tracks:
            cached = cached_tracks.get(track.id)
            if cached is None:
                new_positions.append(len(merged))
                new_tracks.append(track)
                merged.append(None)
            else:
                carried = cached.to_track_match(track)
                counts.add(carried)
                merged.append(carried)

        if counts.current > 0:
            logger.debug(f"{counts.current} track(s) carried over from the export cache")
            if on_progress is not None:
                on_progress(counts.progress())

        new_matches = self._run(new_tracks, counts, token, on_progress, collected, playlist_name)

        for position, match in zip(new_positions, new_matches):
            merged[position] = match

        matches = [match for match in merged if match is not None]

        return BatchResult(
            matches=matches,
            statistics=MatchStatistics.from_matches(matches),
            new_tracks=new_tracks,
            new_matches=new_matches,
            duration=time.monotonic() - start_time,
        )

    def _run(
        self,
        tracks: list[SourceTrack],
        counts: _RunningCounts,
        token: CancellationToken | None,
        on_progress: ProgressCallback | None,
        collected: list[TrackMatch] | None,
        playlist_name: str | None
    ) -> list[TrackMatch]:
        matches: list[TrackMatch] = []

        def record(match: TrackMatch) -> None:
            matches.append(match)
            if collected is not None:
                collected.append(match)
            counts.add(match)
            self._log_match(match, playlist_name)

        if self._concurrency <= 1:
            for track in tracks:
                check_cancelled(token)
                match = self._orchestrator.match_track(track)
                record(match)
                if on_progress is not None:
                    on_progress(counts.progress(track, match))
            return matches

        with ThreadPoolExecutor(max_workers=self._concurrency) as executor:
            for chunk in chunked(tracks, self._concurrency):
                check_cancelled(token)
                chunk_matches = list(executor.map(self._orchestrator.match_track, chunk))
                for match in chunk_matches:
                    record(match)
                if on_progress is not None:
                    on_progress(counts.progress(chunk[-1], chunk_matches[-1]))

        return matches

    def _log_match(self, match: TrackMatch, playlist_name: str | None) -> None:
        track = match.source_track

        if match.status is MatchStatus.MATCHED:
            logger.debug(
                format_matched_message(
                    track.artist_line, track.title, match.match_strategy.value, match.match_score
                )
            )
            return

        if match.status is MatchStatus.AMBIGUOUS and match.candidate_song is not None:
            best = match.candidate_song
            alternatives = [
                (song.label, score)
                for song, score in (
                    (song, track_similarity(track, song))
                    for song in match.candidates
                    if song.id != best.id
                )
                if score >= match.match_score - AMBIGUITY_MARGIN
            ]
            log_ambiguous_match(
                logger,
                track_name=track.title,
                artist=track.artist_line,
                spotify_url=track.spotify_url,
                best_label=best.label,
                score=match.match_score,
                alternatives=alternatives,
            )
            return

        if match.candidate_song is not None:
            reason = (
                f"closest candidate {match.candidate_song.label} "
                f"scored {match.match_score:.2f}"
            )
        else:
            reason = "no candidates found"

        log_unmatched_track(
            logger,
            track_name=track.title,
            artist=track.artist_line,
            album=track.album,
            duration=format_duration_ms(track.duration_ms),
            spotify_url=track.spotify_url,
            reason=reason,
            playlist_name=playlist_name,
        )
