"""
Export cache for spot-navidrome.

Persisted per-playlist records of match outcomes and the differential
engine that decides what changed between two exports.
"""

from spot_navidrome.cache.engine import (
    build_export_record,
    has_all_tracks,
    is_playlist_up_to_date,
    matches_from_record,
)
from spot_navidrome.cache.records import (
    PlaylistExportRecord,
    RecordStatistics,
    TrackExportStatus,
)
from spot_navidrome.cache.store import (
    DatabaseExportStore,
    ExportStore,
    MemoryExportStore,
)

__all__ = [
    "PlaylistExportRecord",
    "RecordStatistics",
    "TrackExportStatus",
    "is_playlist_up_to_date",
    "build_export_record",
    "matches_from_record",
    "has_all_tracks",
    "ExportStore",
    "MemoryExportStore",
    "DatabaseExportStore",
]
