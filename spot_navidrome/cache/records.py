"""
Persisted export cache records.

One PlaylistExportRecord is kept per exported Spotify playlist (and one for
Liked Songs). It maps every Spotify track id to the outcome of its last
match (TrackExportStatus) and remembers the Spotify snapshot id it was built
from, which drives differential exports.

JSON shape (the format persisted by the stores):
    {
        "sourcePlaylistId": "37i9dQZF1DXcBWIGoYBM5M",
        "sourceSnapshotId": "MTY4OTk...",
        "playlistName": "Road Trip",
        "destinationPlaylistId": "b5d1c0a4-...",
        "exportedAt": "2024-01-15T10:30:00+00:00",
        "trackCount": 42,
        "tracks": {
            "4cOdK2wGLETKBW3PvgPWqT": {
                "sourceTrackId": "4cOdK2wGLETKBW3PvgPWqT",
                "destinationSongId": "2f1e...",
                "status": "matched",
                "matchStrategy": "fuzzy",
                "matchScore": 0.93,
                "matchedAt": "2024-01-15T10:29:58+00:00"
            }
        },
        "statistics": {"total": 42, "matched": 40, "unmatched": 1, "ambiguous": 1}
    }
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from spot_navidrome.catalog.models import CandidateSong, SourceTrack
from spot_navidrome.core.exceptions import DatabaseError
from spot_navidrome.matching.models import MatchStatus, MatchStrategyName, TrackMatch


def now_iso() -> str:
    """Current UTC time as an ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class TrackExportStatus:
    """
    Cached outcome of matching one Spotify track.

    On a differential export these entries are trusted verbatim: the track
    is not matched again.

    Attributes:
        source_track_id: Spotify track ID.
        destination_song_id: Navidrome song ID (None unless matched or a
                             diagnostic candidate existed).
        status: Match status.
        match_strategy: Strategy that produced the outcome.
        match_score: Confidence in [0, 1].
        matched_at: ISO timestamp of the match.
    """

    source_track_id: str
    destination_song_id: str | None
    status: MatchStatus
    match_strategy: MatchStrategyName
    match_score: float
    matched_at: str

    @classmethod
    def from_match(cls, match: TrackMatch, matched_at: str | None = None) -> "TrackExportStatus":
        song = match.candidate_song
        return cls(
            source_track_id=match.source_track.id,
            destination_song_id=song.id if song is not None else None,
            status=match.status,
            match_strategy=match.match_strategy,
            match_score=match.match_score,
            matched_at=matched_at or now_iso(),
        )

    def to_track_match(self, track: SourceTrack) -> TrackMatch:
        """
        Re-synthesize a TrackMatch from the cached fields.

        No Navidrome lookup happens; the song is rebuilt from its id and the
        Spotify track metadata.
        """
        song = (
            CandidateSong.from_cache(self.destination_song_id, track)
            if self.destination_song_id
            else None
        )
        return TrackMatch(
            source_track=track,
            candidate_song=song,
            match_strategy=self.match_strategy,
            match_score=self.match_score,
            status=self.status,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "sourceTrackId": self.source_track_id,
            "destinationSongId": self.destination_song_id,
            "status": self.status.value,
            "matchStrategy": self.match_strategy.value,
            "matchScore": self.match_score,
            "matchedAt": self.matched_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TrackExportStatus":
        """
        Parse an entry from its JSON shape.

        Raises:
            DatabaseError: If a required key is missing or has an invalid value.
        """
        try:
            return cls(
                source_track_id=str(data["sourceTrackId"]),
                destination_song_id=data.get("destinationSongId") or None,
                status=MatchStatus(data["status"]),
                match_strategy=MatchStrategyName(data.get("matchStrategy") or "none"),
                match_score=float(data.get("matchScore") or 0.0),
                matched_at=str(data.get("matchedAt") or ""),
            )
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise DatabaseError(
                f"Malformed track export status: {e}",
                details={"data": data}
            ) from e


@dataclass(frozen=True)
class RecordStatistics:
    """Counts over the tracks map of a record (never copied forward)."""

    total: int = 0
    matched: int = 0
    unmatched: int = 0
    ambiguous: int = 0

    @classmethod
    def from_tracks(cls, tracks: dict[str, TrackExportStatus]) -> "RecordStatistics":
        statuses = [entry.status for entry in tracks.values()]
        return cls(
            total=len(statuses),
            matched=statuses.count(MatchStatus.MATCHED),
            unmatched=statuses.count(MatchStatus.UNMATCHED),
            ambiguous=statuses.count(MatchStatus.AMBIGUOUS),
        )

    def to_dict(self) -> dict[str, int]:
        return {
            "total": self.total,
            "matched": self.matched,
            "unmatched": self.unmatched,
            "ambiguous": self.ambiguous,
        }


@dataclass(frozen=True)
class PlaylistExportRecord:
    """
    Export state of one Spotify playlist.

    Attributes:
        source_playlist_id: Spotify playlist ID (the record key).
        source_snapshot_id: Spotify snapshot ID the record is up to date with.
                            Empty when the last export was incomplete.
        playlist_name: Playlist name at the time of the export.
        destination_playlist_id: Navidrome playlist ID, when one exists.
        exported_at: ISO timestamp of the export.
        track_count: Number of Spotify tracks at the time of the export.
        tracks: Spotify track id -> cached outcome, in playlist order.
        statistics: Counts recomputed from `tracks`.
    """

    source_playlist_id: str
    source_snapshot_id: str
    playlist_name: str
    destination_playlist_id: str | None
    exported_at: str
    track_count: int
    tracks: dict[str, TrackExportStatus] = field(default_factory=dict)
    statistics: RecordStatistics = field(default_factory=RecordStatistics)

    def to_dict(self) -> dict[str, Any]:
        return {
            "sourcePlaylistId": self.source_playlist_id,
            "sourceSnapshotId": self.source_snapshot_id,
            "playlistName": self.playlist_name,
            "destinationPlaylistId": self.destination_playlist_id,
            "exportedAt": self.exported_at,
            "trackCount": self.track_count,
            "tracks": {track_id: entry.to_dict() for track_id, entry in self.tracks.items()},
            "statistics": self.statistics.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PlaylistExportRecord":
        """
        Parse a record from its JSON shape.

        Statistics are recomputed from the tracks map rather than trusted.

        Raises:
            DatabaseError: If the data is not a record.
        """
        if not isinstance(data, dict):
            raise DatabaseError(
                "Export record must be a JSON object",
                details={"type": type(data).__name__}
            )

        raw_tracks = data.get("tracks") or {}
        if not isinstance(raw_tracks, dict):
            raise DatabaseError(
                "Export record tracks must be a JSON object",
                details={"sourcePlaylistId": data.get("sourcePlaylistId")}
            )

        tracks = {
            str(track_id): TrackExportStatus.from_dict(entry)
            for track_id, entry in raw_tracks.items()
        }

        try:
            return cls(
                source_playlist_id=str(data["sourcePlaylistId"]),
                source_snapshot_id=str(data.get("sourceSnapshotId") or ""),
                playlist_name=str(data.get("playlistName") or ""),
                destination_playlist_id=data.get("destinationPlaylistId") or None,
                exported_at=str(data.get("exportedAt") or ""),
                track_count=int(data.get("trackCount") or 0),
                tracks=tracks,
                statistics=RecordStatistics.from_tracks(tracks),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise DatabaseError(
                f"Malformed export record: {e}",
                details={"keys": sorted(data)}
            ) from e
