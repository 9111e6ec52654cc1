"""
Differential export engine.

Decides whether a playlist changed since its last export and builds the
record that replaces the previous one at the end of an export attempt.

Record Building:
    - Tracks still in the Spotify playlist keep their previous entry,
      unless they were matched again in this run
    - Newly matched tracks get a fresh entry
    - Tracks that left the Spotify playlist are dropped
    - Statistics are recomputed from the resulting tracks map
    - The current snapshot id is claimed only for complete exports, so an
      interrupted or partially failed export is retried on the next run
"""

from spot_navidrome.cache.records import (
    PlaylistExportRecord,
    RecordStatistics,
    TrackExportStatus,
    now_iso,
)
from spot_navidrome.catalog.models import SourceTrack
from spot_navidrome.matching.models import TrackMatch


def is_playlist_up_to_date(record: PlaylistExportRecord | None, snapshot_id: str) -> bool:
    """
    Check whether a playlist is unchanged since its last export.

    Returns:
        True iff a record exists and its snapshot id equals `snapshot_id`
        exactly (an empty id never equals a non-empty one).
    """
    if record is None:
        return False
    return record.source_snapshot_id == snapshot_id


def build_export_record(
    source_playlist_id: str,
    snapshot_id: str,
    playlist_name: str,
    source_tracks: list[SourceTrack],
    new_matches: list[TrackMatch],
    previous: PlaylistExportRecord | None,
    destination_playlist_id: str | None,
    complete: bool,
    exported_at: str | None = None,
    retained_track_ids: list[str] | None = None
) -> PlaylistExportRecord:
    """
    Build the record that replaces `previous` after an export attempt.

    Args:
        source_playlist_id: Spotify playlist ID (record key).
        snapshot_id: Current Spotify snapshot ID.
        playlist_name: Current playlist name.
        source_tracks: Current Spotify track list, in playlist order.
        new_matches: Matches resolved in this run. Entries for these tracks
                     replace previous ones.
        previous: Record read at the start of the export, if any.
        destination_playlist_id: Navidrome playlist ID after the export.
        complete: True when every current track has an outcome and every
                  Navidrome write succeeded.
        exported_at: Timestamp of the export (defaults to now).
        retained_track_ids: Previous entries kept although their tracks left
                            the Spotify playlist (their Navidrome entries were
                            not removed yet). Appended after the current tracks.

    Returns:
        The new PlaylistExportRecord. Tracks map ordered like `source_tracks`.
    """
    exported_at = exported_at or now_iso()

    new_entries = {
        match.source_track.id: TrackExportStatus.from_match(match, exported_at)
        for match in new_matches
    }
    previous_entries = previous.tracks if previous is not None else {}

    tracks: dict[str, TrackExportStatus] = {}
    for track in source_tracks:
        if track.id in tracks:
            continue
        if track.id in new_entries:
            tracks[track.id] = new_entries[track.id]
        elif track.id in previous_entries:
            tracks[track.id] = previous_entries[track.id]

    for track_id in retained_track_ids or []:
        if track_id in previous_entries and track_id not in tracks:
            tracks[track_id] = previous_entries[track_id]

    if complete:
        record_snapshot = snapshot_id
    else:
        record_snapshot = previous.source_snapshot_id if previous is not None else ""

    return PlaylistExportRecord(
        source_playlist_id=source_playlist_id,
        source_snapshot_id=record_snapshot,
        playlist_name=playlist_name,
        destination_playlist_id=destination_playlist_id,
        exported_at=exported_at,
        track_count=len(source_tracks),
        tracks=tracks,
        statistics=RecordStatistics.from_tracks(tracks),
    )


def matches_from_record(tracks: list[SourceTrack], record: PlaylistExportRecord) -> list[TrackMatch]:
    """
    Re-synthesize the matches of an up-to-date playlist from its record.

    Tracks without a cached entry are left out; callers use this only when
    every track is cached.
    """
    return [
        record.tracks[track.id].to_track_match(track)
        for track in tracks
        if track.id in record.tracks
    ]


def has_all_tracks(record: PlaylistExportRecord, tracks: list[SourceTrack]) -> bool:
    """Whether every track of the list has a cached entry."""
    return all(track.id in record.tracks for track in tracks)
