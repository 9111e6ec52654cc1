"""
Data models shared by both catalogs.

This module defines immutable dataclasses for the two sides of an export:
the Spotify side (SourceTrack, SourcePlaylist) and the Navidrome side
(CandidateSong, DestinationPlaylist). Matching, caching and exporting all
work on these models and never on raw API dictionaries.

Design Decisions:
    - All dataclasses are frozen (immutable) to prevent accidental modification
    - Each model has a factory for the API response it is built from
    - Lists are stored as tuples so instances stay hashable

Usage:
    from spot_navidrome.catalog.models import SourceTrack, CandidateSong

    track = SourceTrack.from_spotify_api(item["track"])
    song = CandidateSong.from_native_api(song_data)
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from spot_navidrome.catalog.descriptor import ExportDescriptor


SPOTIFY_TRACK_URL = "https://open.spotify.com/track/{}"


@dataclass(frozen=True)
class SourceTrack:
    """
    Immutable representation of a Spotify track.

    Only the metadata needed for matching is kept: title, artists, album,
    duration and the optional ISRC.

    Attributes:
        id: Spotify track ID (22-character base62 string).
            Example: "4cOdK2wGLETKBW3PvgPWqT"

        title: Track title as it appears on Spotify.
               Example: "Bohemian Rhapsody - Remastered 2011"

        artists: All artist names, primary artist first.
                 Example: ("Calvin Harris", "Dua Lipa")

        album: Album name. Empty string when Spotify has none.

        duration_ms: Track duration in milliseconds.

        isrc: International Standard Recording Code, if Spotify has one.
              Example: "GBUM71029604"

    Example:
        track = SourceTrack.from_spotify_api(playlist_item["track"])
        print(f"{track.artist_line} - {track.title}")
    """

    id: str
    title: str
    artists: tuple[str, ...]
    album: str
    duration_ms: int
    isrc: str | None = None

    @property
    def primary_artist(self) -> str:
        """First credited artist, or empty string if there is none."""
        return self.artists[0] if self.artists else ""

    @property
    def artist_line(self) -> str:
        """All artists joined for display ("A, B")."""
        return ", ".join(self.artists)

    @property
    def spotify_url(self) -> str:
        return SPOTIFY_TRACK_URL.format(self.id)

    @classmethod
    def from_spotify_api(cls, track_data: dict[str, Any]) -> "SourceTrack":
        """
        Create a SourceTrack from a Spotify API track object.

        Args:
            track_data: The track object from the Spotify API. This is the
                        'track' field of a playlist item or saved-track item.

        Returns:
            SourceTrack: A new instance populated with the extracted data.

        Behavior:
            - Missing name becomes "" (the orchestrator reports it as unmatched)
            - Artists without a name are skipped
            - ISRC comes from external_ids.isrc and is None when absent or empty
        """
        artists = tuple(
            a["name"] for a in track_data.get("artists") or [] if a and a.get("name")
        )
        album_info = track_data.get("album") or {}
        isrc = (track_data.get("external_ids") or {}).get("isrc") or None

        return cls(
            id=track_data.get("id") or "",
            title=track_data.get("name") or "",
            artists=artists,
            album=album_info.get("name") or "",
            duration_ms=int(track_data.get("duration_ms") or 0),
            isrc=isrc,
        )


@dataclass(frozen=True)
class SourcePlaylist:
    """
    Immutable representation of a Spotify playlist header.

    Attributes:
        id: Spotify playlist ID.
        name: Playlist name.
        track_count: Number of items Spotify reports for the playlist.
        snapshot_id: Spotify's version identifier. It changes whenever the
                     playlist content changes and drives differential exports.
        owner_name: Display name of the playlist owner.
    """

    id: str
    name: str
    track_count: int
    snapshot_id: str
    owner_name: str = ""

    @classmethod
    def from_spotify_api(cls, playlist_data: dict[str, Any]) -> "SourcePlaylist":
        """
        Create a SourcePlaylist from a Spotify API playlist object.

        Works with both the simplified objects of current_user_playlists()
        and the full object of playlist().
        """
        tracks_info = playlist_data.get("tracks") or {}
        owner = playlist_data.get("owner") or {}

        return cls(
            id=playlist_data["id"],
            name=playlist_data.get("name") or "",
            track_count=int(tracks_info.get("total") or 0),
            snapshot_id=playlist_data.get("snapshot_id") or "",
            owner_name=owner.get("display_name") or owner.get("id") or "",
        )


@dataclass(frozen=True)
class CandidateSong:
    """
    Immutable representation of a song hosted on Navidrome.

    One of potentially many songs returned by a lookup by artist or by title.

    Attributes:
        id: Navidrome media file ID.
        title: Song title from the file tags.
        artist: Artist tag of the file (a single string, may hold
                collaboration credits such as "A feat. B").
        album: Album tag of the file.
        duration_seconds: Duration in seconds (Navidrome reports a float).
        isrc: ISRC tag of the file, if present.
    """

    id: str
    title: str
    artist: str
    album: str
    duration_seconds: float
    isrc: str | None = None

    @property
    def label(self) -> str:
        """Human-readable "Artist - Title" label used in logs and reports."""
        return f"{self.artist} - {self.title}"

    @classmethod
    def from_native_api(cls, song_data: dict[str, Any]) -> "CandidateSong":
        """
        Create a CandidateSong from a Navidrome native API song object.

        Navidrome reports ISRC either as a plain string or as a list of
        values (one per tag occurrence); the first value is kept.
        """
        isrc = song_data.get("isrc")
        if isinstance(isrc, (list, tuple)):
            isrc = isrc[0] if isrc else None
        if not isrc:
            tags = song_data.get("tags") or {}
            tag_values = tags.get("isrc") or []
            isrc = tag_values[0] if tag_values else None

        return cls(
            id=song_data["id"],
            title=song_data.get("title") or "",
            artist=song_data.get("artist") or "",
            album=song_data.get("album") or "",
            duration_seconds=float(song_data.get("duration") or 0),
            isrc=isrc or None,
        )

    @classmethod
    def from_cache(cls, song_id: str, track: SourceTrack) -> "CandidateSong":
        """
        Re-synthesize a song from a cached association.

        The cache only stores the Navidrome song id, so the remaining fields
        are taken from the Spotify track the song was matched to. This is
        enough for exporting, which only needs the id.
        """
        return cls(
            id=song_id,
            title=track.title,
            artist=track.primary_artist,
            album=track.album,
            duration_seconds=track.duration_ms / 1000,
            isrc=track.isrc,
        )


@dataclass(frozen=True)
class DestinationPlaylist:
    """
    Immutable representation of a Navidrome playlist.

    Attributes:
        id: Navidrome playlist ID.
        name: Playlist name.
        song_count: Number of entries in the playlist.
        comment: Raw playlist comment.
        descriptor: Export descriptor parsed from the comment, or None when
                    the playlist was not created by an export.
    """

    id: str
    name: str
    song_count: int = 0
    comment: str = ""
    descriptor: "ExportDescriptor | None" = None
