"""
Data models for the export phase.

Results and progress events of the playlist and favorites exporters.

Statistics invariant (both exporters):
    total == exported (or starred) + failed + skipped
"""

from dataclasses import dataclass, field
from enum import Enum


class ExportMode(str, Enum):
    """
    How a playlist is written to Navidrome.

    CREATE:    new playlist from all matched songs
    APPEND:    add matched songs to an existing playlist
    OVERWRITE: replace the membership of an existing playlist
    UPDATE:    add tracks new since the cached export, remove tracks that
               left the Spotify playlist
    """

    CREATE = "create"
    APPEND = "append"
    OVERWRITE = "overwrite"
    UPDATE = "update"


class ExportPhase(str, Enum):
    """Status reported by export progress events."""

    PREPARING = "preparing"
    EXPORTING = "exporting"
    ADDED = "added"
    REMOVED = "removed"
    METADATA_UPDATED = "metadata-updated"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class ExportProgress:
    """
    Progress event of an exporter.

    Attributes:
        current: Items done so far.
        total: Items of this export.
        percent: Integer percent (100 for an empty export).
        status: Current phase.
        current_track: "title - artist" of the song being starred, if any.
    """

    current: int
    total: int
    percent: int
    status: ExportPhase
    current_track: str | None = None

    @classmethod
    def create(
        cls,
        current: int,
        total: int,
        status: ExportPhase,
        current_track: str | None = None
    ) -> "ExportProgress":
        percent = int(current * 100 / total + 0.5) if total else 100
        if status is ExportPhase.PREPARING:
            percent = 0
        return cls(current=current, total=total, percent=percent, status=status, current_track=current_track)


@dataclass(frozen=True)
class ExportErrorEntry:
    """A failed write with its track context ("N/A" for whole-playlist failures)."""

    track_name: str
    artist_name: str
    reason: str


@dataclass(frozen=True)
class PlaylistExportStatistics:
    """
    Counts of a playlist export.

    Attributes:
        total: Tracks considered (all matches; tracks new since the cache in
               update mode).
        exported: Songs written to the playlist.
        failed: Tracks that could not be written, or unmatched tracks when
                unmatched tracks are not skipped.
        skipped: Unmatched tracks skipped on request, or every track when
                 nothing matched.
        removed: Playlist entries removed (update mode).
        unchanged: Tracks carried over untouched (update mode).
    """

    total: int = 0
    exported: int = 0
    failed: int = 0
    skipped: int = 0
    removed: int = 0
    unchanged: int = 0


@dataclass(frozen=True)
class ExportResult:
    """
    Result of PlaylistExporter.export_playlist().

    Attributes:
        success: True when no track failed and no error was recorded.
        playlist_id: Navidrome playlist ID (None if creation failed or was
                     not attempted).
        playlist_name: Playlist name.
        mode: Export mode used.
        statistics: Export counts.
        errors: Failed writes with track context.
        duration: Elapsed time in seconds.
        failed_track_ids: Spotify ids of matched tracks whose write failed.
                          The export cache leaves them out so they are retried.
    """

    success: bool
    playlist_id: str | None
    playlist_name: str
    mode: ExportMode
    statistics: PlaylistExportStatistics
    errors: list[ExportErrorEntry] = field(default_factory=list)
    duration: float = 0.0
    failed_track_ids: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class FavoritesExportStatistics:
    """Counts of a favorites export (total == starred + failed + skipped)."""

    total: int = 0
    starred: int = 0
    failed: int = 0
    skipped: int = 0


@dataclass(frozen=True)
class FavoritesExportResult:
    """
    Result of FavoritesExporter.export_favorites().

    Attributes:
        success: True when no track failed.
        statistics: Export counts.
        errors: Failed stars with track context.
        duration: Elapsed time in seconds.
        failed_track_ids: Spotify ids of matched tracks that could not be starred.
    """

    success: bool
    statistics: FavoritesExportStatistics
    errors: list[ExportErrorEntry] = field(default_factory=list)
    duration: float = 0.0
    failed_track_ids: list[str] = field(default_factory=list)
