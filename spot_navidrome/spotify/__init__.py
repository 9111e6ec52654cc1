"""
Spotify integration for spot-navidrome.

Reads the current user's playlists and Liked Songs through spotipy.
"""

from spot_navidrome.spotify.client import OAUTH_SCOPE, SpotifyClient

__all__ = [
    "OAUTH_SCOPE",
    "SpotifyClient",
]
