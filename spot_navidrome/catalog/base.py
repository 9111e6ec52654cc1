"""
Capability interfaces for the two catalogs.

The matching and export pipeline only talks to these abstract classes:
SpotifyClient implements SourceCatalog and NavidromeClient implements
DestinationCatalog. Tests substitute in-memory implementations.

Contract:
    - Failures raise (SpotifyError / NavidromeError for the real clients)
    - Successful writes return None
"""

from abc import ABC, abstractmethod

from spot_navidrome.catalog.descriptor import ExportDescriptor
from spot_navidrome.catalog.models import (
    CandidateSong,
    DestinationPlaylist,
    SourcePlaylist,
    SourceTrack,
)


class SourceCatalog(ABC):
    """Read-only access to the user's Spotify library."""

    @abstractmethod
    def list_playlists(self) -> list[SourcePlaylist]:
        """Return every playlist of the current user."""

    @abstractmethod
    def list_playlist_tracks(self, playlist_id: str) -> list[SourceTrack]:
        """Return all tracks of a playlist in playlist order (paginated internally)."""

    @abstractmethod
    def list_saved_tracks(self) -> list[SourceTrack]:
        """Return the user's Liked Songs, most recent first."""


class DestinationCatalog(ABC):
    """Read/write access to a Navidrome server."""

    # =========================================================================
    # Candidate lookup
    # =========================================================================

    @abstractmethod
    def find_candidates_by_artist(self, name: str) -> list[CandidateSong]:
        """Return all songs of the artist with this exact name (empty if unknown)."""

    @abstractmethod
    def find_candidates_by_title(self, title: str, limit: int) -> list[CandidateSong]:
        """Return at most `limit` songs whose title contains `title`."""

    # =========================================================================
    # Playlists
    # =========================================================================

    @abstractmethod
    def list_playlists(self) -> list[DestinationPlaylist]:
        """Return all playlists visible to the user, descriptors parsed."""

    @abstractmethod
    def get_playlist_song_ids(self, playlist_id: str) -> list[str]:
        """Return the song id of each playlist entry, in entry order."""

    @abstractmethod
    def create_playlist(self, name: str, song_ids: list[str]) -> str:
        """Create a playlist holding `song_ids` and return its id."""

    @abstractmethod
    def update_playlist_membership(
        self,
        playlist_id: str,
        add_ids: list[str],
        remove_positions: list[int]
    ) -> None:
        """
        Add songs and remove entries of a playlist.

        Args:
            playlist_id: Navidrome playlist ID.
            add_ids: Song ids appended at the end.
            remove_positions: 0-based entry positions, relative to the
                              membership before this call.
        """

    @abstractmethod
    def replace_playlist_membership(self, playlist_id: str, song_ids: list[str]) -> None:
        """Replace the full membership of a playlist."""

    @abstractmethod
    def read_playlist_descriptor(self, playlist_id: str) -> ExportDescriptor | None:
        """Return the export descriptor stored in the playlist comment, if any."""

    @abstractmethod
    def write_playlist_descriptor(self, playlist_id: str, descriptor: ExportDescriptor) -> None:
        """Store an export descriptor in the playlist comment."""

    # =========================================================================
    # Favorites
    # =========================================================================

    @abstractmethod
    def star_song(self, song_id: str) -> None:
        """Star (favorite) a song."""

    @abstractmethod
    def unstar_song(self, song_id: str) -> None:
        """Remove the star from a song."""
