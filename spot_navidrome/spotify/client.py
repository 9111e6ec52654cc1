"""
Spotify API client for spot-navidrome.

Wraps spotipy and exposes the user's library as a SourceCatalog: playlist
headers, playlist tracks and Liked Songs, with pagination handled here and
spotipy errors converted to SpotifyError.

Authentication:
    Playlists and Liked Songs belong to the current user, so the OAuth flow
    (SpotifyOAuth) is always used. The token is cached next to the export
    database so the browser is opened only once.

Usage:
    from spot_navidrome.spotify import SpotifyClient

    client = SpotifyClient.from_config(config.spotify, cache_path)
    for playlist in client.list_playlists():
        tracks = client.list_playlist_tracks(playlist.id)

Item Filtering:
    Playlist and saved-track items are skipped when they carry no track
    (removed from Spotify), when the track is a local file (no Spotify id)
    or when the item is a podcast episode.
"""

from pathlib import Path
from typing import Any

import spotipy
from spotipy.oauth2 import SpotifyOAuth, SpotifyOauthError

from spot_navidrome.catalog.base import SourceCatalog
from spot_navidrome.catalog.models import SourcePlaylist, SourceTrack
from spot_navidrome.core.config import SpotifyConfig
from spot_navidrome.core.exceptions import SpotifyError
from spot_navidrome.core.logger import get_logger


logger = get_logger(__name__)


OAUTH_SCOPE = "playlist-read-private user-library-read"

# Page sizes (Spotify API maximums)
PLAYLISTS_PAGE_SIZE = 50
PLAYLIST_ITEMS_PAGE_SIZE = 100
SAVED_TRACKS_PAGE_SIZE = 50


class SpotifyClient(SourceCatalog):
    """
    Spotify library access over a spotipy.Spotify instance.

    Attributes:
        _spotify: The underlying spotipy.Spotify instance.

    Rate Limiting:
        spotipy retries rate-limited requests on its own. When its retries
        are exhausted the error surfaces as SpotifyError(is_rate_limit=True).
    """

    def __init__(self, spotify_instance: spotipy.Spotify) -> None:
        self._spotify = spotify_instance

    @classmethod
    def from_config(cls, config: SpotifyConfig, cache_path: Path | None = None) -> "SpotifyClient":
        """
        Create a client authenticated through the OAuth flow.

        Args:
            config: Spotify credentials and redirect URI.
            cache_path: File where spotipy caches the OAuth token.

        Returns:
            A connected SpotifyClient.

        Raises:
            SpotifyError: If authentication fails (is_auth_error=True).
        """
        try:
            auth_manager = SpotifyOAuth(
                client_id=config.client_id,
                client_secret=config.client_secret,
                redirect_uri=config.redirect_uri,
                scope=OAUTH_SCOPE,
                cache_path=str(cache_path) if cache_path else None,
                open_browser=True
            )
            spotify_instance = spotipy.Spotify(auth_manager=auth_manager)

            # Fail early on bad credentials
            user = spotify_instance.current_user()
            logger.debug(f"Authenticated to Spotify as {user.get('display_name') or user.get('id')}")

            return cls(spotify_instance)

        except (spotipy.SpotifyException, SpotifyOauthError) as e:
            raise SpotifyError(
                f"Spotify authentication failed: {e}",
                details={"original_error": str(e)},
                is_auth_error=True
            ) from e

    # =========================================================================
    # Playlist Operations
    # =========================================================================

    def list_playlists(self) -> list[SourcePlaylist]:
        """
        Get every playlist of the current user (owned and followed).

        Raises:
            SpotifyError: If a page cannot be fetched.
        """
        playlists: list[SourcePlaylist] = []
        offset = 0

        while True:
            response = self._call(
                "fetch playlists",
                self._spotify.current_user_playlists,
                limit=PLAYLISTS_PAGE_SIZE,
                offset=offset
            )
            for item in response.get("items") or []:
                if item and item.get("id"):
                    playlists.append(SourcePlaylist.from_spotify_api(item))

            if response.get("next") is None:
                break
            offset += PLAYLISTS_PAGE_SIZE

        return playlists

    def get_playlist(self, playlist_id: str) -> SourcePlaylist:
        """
        Get the header of one playlist.

        Raises:
            SpotifyError: If the playlist does not exist or cannot be read.
        """
        response = self._call(
            "fetch playlist",
            self._spotify.playlist,
            playlist_id,
            fields="id,name,snapshot_id,owner(display_name),tracks(total)"
        )
        if not response:
            raise SpotifyError(f"Playlist not found: {playlist_id}", details={"playlist_id": playlist_id})
        return SourcePlaylist.from_spotify_api(response)

    def list_playlist_tracks(self, playlist_id: str) -> list[SourceTrack]:
        """
        Get the tracks of a playlist, in playlist order.

        Raises:
            SpotifyError: If a page cannot be fetched.
        """
        tracks: list[SourceTrack] = []
        offset = 0

        while True:
            response = self._call(
                "fetch playlist items",
                self._spotify.playlist_items,
                playlist_id,
                limit=PLAYLIST_ITEMS_PAGE_SIZE,
                offset=offset,
                additional_types=("track",)
            )
            tracks.extend(self._parse_items(response.get("items") or []))

            if response.get("next") is None:
                break
            offset += PLAYLIST_ITEMS_PAGE_SIZE

        logger.debug(f"Fetched {len(tracks)} tracks of playlist {playlist_id}")
        return tracks

    # =========================================================================
    # Library Operations
    # =========================================================================

    def list_saved_tracks(self) -> list[SourceTrack]:
        """
        Get the user's Liked Songs, most recently liked first.

        Raises:
            SpotifyError: If a page cannot be fetched.
        """
        tracks: list[SourceTrack] = []
        offset = 0

        while True:
            response = self._call(
                "fetch saved tracks",
                self._spotify.current_user_saved_tracks,
                limit=SAVED_TRACKS_PAGE_SIZE,
                offset=offset
            )
            tracks.extend(self._parse_items(response.get("items") or []))

            if response.get("next") is None:
                break
            offset += SAVED_TRACKS_PAGE_SIZE

        logger.debug(f"Fetched {len(tracks)} saved tracks")
        return tracks

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _parse_items(items: list[dict[str, Any] | None]) -> list[SourceTrack]:
        tracks = []
        for item in items:
            track_data = (item or {}).get("track")
            if not track_data:
                continue
            if track_data.get("is_local") or not track_data.get("id"):
                continue
            if track_data.get("type", "track") != "track":
                continue
            tracks.append(SourceTrack.from_spotify_api(track_data))
        return tracks

    def _call(self, action: str, method, *args, **kwargs) -> dict[str, Any]:
        """
        Call a spotipy method and convert its errors.

        Raises:
            SpotifyError: is_rate_limit for HTTP 429, is_auth_error for 401/403.
        """
        try:
            return method(*args, **kwargs) or {}
        except spotipy.SpotifyException as e:
            details = {"http_status": e.http_status, "original_error": str(e)}
            if e.http_status == 429:
                raise SpotifyError(
                    f"Rate limited while trying to {action}",
                    details=details,
                    is_rate_limit=True
                ) from e
            if e.http_status in (401, 403):
                raise SpotifyError(
                    f"Not authorized to {action}: {e.msg}",
                    details=details,
                    is_auth_error=True
                ) from e
            raise SpotifyError(f"Failed to {action}: {e.msg}", details=details) from e
