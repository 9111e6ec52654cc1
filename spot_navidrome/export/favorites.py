"""
Favorites export to Navidrome.

Liked Songs have no playlist container on Navidrome: each matched song is
starred individually. A failed star is recorded with its track context and
the export continues with the remaining tracks.
"""

import time
from typing import Callable

from spot_navidrome.catalog.base import DestinationCatalog
from spot_navidrome.core.cancellation import CancellationToken, check_cancelled
from spot_navidrome.core.exceptions import ExportCancelledError
from spot_navidrome.core.logger import format_export_summary, get_logger, log_export_failure
from spot_navidrome.export.models import (
    ExportErrorEntry,
    ExportPhase,
    ExportProgress,
    FavoritesExportResult,
    FavoritesExportStatistics,
)
from spot_navidrome.matching.models import TrackMatch


logger = get_logger(__name__)


FAVORITES_NAME = "Liked Songs"


class FavoritesExporter:
    """
    Stars matched songs on Navidrome.

    Example:
        exporter = FavoritesExporter(navidrome_client)
        result = exporter.export_favorites(matches, skip_unmatched=True)
        print(f"Starred {result.statistics.starred} songs")
    """

    def __init__(self, destination: DestinationCatalog) -> None:
        self._destination = destination

    def export_favorites(
        self,
        matches: list[TrackMatch],
        skip_unmatched: bool = False,
        on_progress: Callable[[ExportProgress], None] | None = None,
        token: CancellationToken | None = None
    ) -> FavoritesExportResult:
        """
        Star the song of every matched track.

        Args:
            matches: Matches to export.
            skip_unmatched: Count unmatched tracks as skipped instead of failed.
            on_progress: Called with "preparing", one "exporting" event per
                         song ("title - artist"), then "completed" or "failed".
            token: Cancellation token checked before each star.

        Returns:
            FavoritesExportResult. total == starred + failed + skipped.

        Raises:
            ExportCancelledError: If the token fires.
        """
        start_time = time.monotonic()
        check_cancelled(token)

        matched = [match for match in matches if match.is_matched]
        not_exported = [match for match in matches if not match.is_matched]
        total = len(matches)

        def emit(status: ExportPhase, current: int, current_track: str | None = None) -> None:
            if on_progress is not None:
                on_progress(ExportProgress.create(current, len(matched), status, current_track))

        emit(ExportPhase.PREPARING, 0)

        starred = failed = skipped = 0
        errors: list[ExportErrorEntry] = []
        failed_track_ids: list[str] = []

        if not matched:
            skipped = total
        else:
            for index, match in enumerate(matched, start=1):
                check_cancelled(token)
                track = match.source_track
                emit(ExportPhase.EXPORTING, index, f"{track.title} - {track.primary_artist or 'Unknown'}")

                try:
                    self._destination.star_song(match.candidate_song.id)
                    starred += 1
                except ExportCancelledError:
                    raise
                except Exception as e:
                    failed += 1
                    failed_track_ids.append(track.id)
                    errors.append(ExportErrorEntry(track.title, track.artist_line, str(e)))
                    log_export_failure(logger, FAVORITES_NAME, track.title, track.artist_line, str(e))

            if skip_unmatched:
                skipped += len(not_exported)
            else:
                for match in not_exported:
                    track = match.source_track
                    reason = f"Track is {match.status.value}, not starred"
                    failed += 1
                    errors.append(ExportErrorEntry(track.title, track.artist_line, reason))

        success = failed == 0 and not errors
        emit(ExportPhase.COMPLETED if success or starred > 0 else ExportPhase.FAILED, len(matched))

        logger.info(format_export_summary(FAVORITES_NAME, starred, skipped, failed))

        return FavoritesExportResult(
            success=success,
            statistics=FavoritesExportStatistics(
                total=total,
                starred=starred,
                failed=failed,
                skipped=skipped,
            ),
            errors=errors,
            duration=time.monotonic() - start_time,
            failed_track_ids=failed_track_ids,
        )

    def unstar_songs(self, song_ids: list[str], token: CancellationToken | None = None) -> int:
        """
        Remove the star from songs (best-effort).

        Returns:
            Number of songs unstarred. Failures are logged and skipped.

        Raises:
            ExportCancelledError: If the token fires.
        """
        unstarred = 0
        for song_id in song_ids:
            check_cancelled(token)
            try:
                self._destination.unstar_song(song_id)
                unstarred += 1
            except ExportCancelledError:
                raise
            except Exception as e:
                logger.warning(f"Could not unstar song {song_id}: {e}")
        return unstarred
