"""
Export status of Spotify playlists.

Cross-references a Spotify playlist with the Navidrome playlists (through
the descriptor stored in their comment) and with the local export cache:

    1. A Navidrome playlist whose descriptor names the Spotify playlist decides:
       EXPORTED when its snapshot id matches, OUT_OF_SYNC otherwise
    2. Otherwise the cached record decides the same way
    3. Otherwise the playlist was never exported (NONE)

The descriptor comes first so that exports survive a deleted cache.
"""

from dataclasses import dataclass
from enum import Enum

from spot_navidrome.cache.records import PlaylistExportRecord
from spot_navidrome.catalog.models import DestinationPlaylist, SourcePlaylist


class ExportState(str, Enum):
    NONE = "none"
    EXPORTED = "exported"
    OUT_OF_SYNC = "out-of-sync"


@dataclass(frozen=True)
class PlaylistExportState:
    """
    Export status of one Spotify playlist.

    Attributes:
        source_playlist_id: Spotify playlist ID.
        status: NONE, EXPORTED or OUT_OF_SYNC.
        destination_playlist_id: Navidrome playlist ID, when known.
        last_exported_at: ISO timestamp of the last export, when known.
        destination_song_count: Entries in the linked Navidrome playlist,
                                known only when found through its descriptor.
    """

    source_playlist_id: str
    status: ExportState
    destination_playlist_id: str | None = None
    last_exported_at: str | None = None
    destination_song_count: int | None = None


def find_exported_playlist(
    source_playlist_id: str,
    destination_playlists: list[DestinationPlaylist],
    preferred_id: str | None = None
) -> DestinationPlaylist | None:
    """
    Find the Navidrome playlist whose descriptor names a Spotify playlist.

    When several playlists carry the same source id, the one with
    `preferred_id` wins, otherwise the first one.
    """
    linked = [
        playlist for playlist in destination_playlists
        if playlist.descriptor is not None
        and playlist.descriptor.source_playlist_id == source_playlist_id
    ]
    if not linked:
        return None

    for playlist in linked:
        if playlist.id == preferred_id:
            return playlist
    return linked[0]


def resolve_export_state(
    playlist: SourcePlaylist,
    destination_playlists: list[DestinationPlaylist],
    record: PlaylistExportRecord | None
) -> PlaylistExportState:
    """Compute the export status of a Spotify playlist."""
    preferred_id = record.destination_playlist_id if record is not None else None
    linked = find_exported_playlist(playlist.id, destination_playlists, preferred_id)

    if linked is not None:
        descriptor = linked.descriptor
        in_sync = descriptor.source_snapshot_id == playlist.snapshot_id
        return PlaylistExportState(
            source_playlist_id=playlist.id,
            status=ExportState.EXPORTED if in_sync else ExportState.OUT_OF_SYNC,
            destination_playlist_id=linked.id,
            last_exported_at=descriptor.exported_at or None,
            destination_song_count=linked.song_count,
        )

    if record is not None:
        in_sync = record.source_snapshot_id == playlist.snapshot_id
        return PlaylistExportState(
            source_playlist_id=playlist.id,
            status=ExportState.EXPORTED if in_sync else ExportState.OUT_OF_SYNC,
            destination_playlist_id=record.destination_playlist_id,
            last_exported_at=record.exported_at or None,
        )

    return PlaylistExportState(source_playlist_id=playlist.id, status=ExportState.NONE)
