"""
Export phase for spot-navidrome.

Writes matched tracks to Navidrome:
    - playlist: create/append/overwrite/update of Navidrome playlists
    - favorites: starring the songs of Liked Songs
    - status: export status of Spotify playlists
    - session: mode selection, differential re-exports and persistence
"""

from spot_navidrome.export.favorites import FAVORITES_NAME, FavoritesExporter
from spot_navidrome.export.models import (
    ExportErrorEntry,
    ExportMode,
    ExportPhase,
    ExportProgress,
    ExportResult,
    FavoritesExportResult,
    FavoritesExportStatistics,
    PlaylistExportStatistics,
)
from spot_navidrome.export.playlist import (
    ExportPlan,
    PlaylistExporter,
    locate_entry_positions,
    plan_export,
)
from spot_navidrome.export.session import (
    LIKED_SONGS_ID,
    ExportSession,
    LikedSongsSessionResult,
    PlaylistSessionResult,
)
from spot_navidrome.export.status import (
    ExportState,
    PlaylistExportState,
    find_exported_playlist,
    resolve_export_state,
)

__all__ = [
    "ExportMode",
    "ExportPhase",
    "ExportProgress",
    "ExportErrorEntry",
    "ExportResult",
    "PlaylistExportStatistics",
    "FavoritesExportResult",
    "FavoritesExportStatistics",
    "ExportPlan",
    "plan_export",
    "locate_entry_positions",
    "PlaylistExporter",
    "FAVORITES_NAME",
    "FavoritesExporter",
    "ExportState",
    "PlaylistExportState",
    "find_exported_playlist",
    "resolve_export_state",
    "LIKED_SONGS_ID",
    "ExportSession",
    "PlaylistSessionResult",
    "LikedSongsSessionResult",
]
