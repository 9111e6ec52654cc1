"""
Utility functions for spot-navidrome.

This module provides common helpers used across the application:
    - Spotify URL/URI/ID parsing
    - Duration formatting
    - Fixed-size chunking for parallel batches
    - Path helpers

Usage:
    from spot_navidrome.utils import (
        extract_playlist_id,
        format_duration,
        chunked,
        ensure_directory
    )
"""

from pathlib import Path
from typing import Iterator, Sequence, TypeVar


T = TypeVar("T")


def ensure_directory(path: Path) -> Path:
    """
    Ensure a directory exists, creating it if necessary.

    Returns:
        The same path (for chaining).

    Raises:
        OSError: If directory cannot be created (permissions, etc.)
    """
    path.mkdir(parents=True, exist_ok=True)
    return path


def chunked(items: Sequence[T], size: int) -> Iterator[Sequence[T]]:
    """
    Split a sequence into consecutive chunks of at most `size` items.

    Examples:
        list(chunked([1, 2, 3, 4, 5], 2))  # [[1, 2], [3, 4], [5]]
    """
    if size < 1:
        raise ValueError(f"Chunk size must be positive, got {size}")
    for start in range(0, len(items), size):
        yield items[start:start + size]


def extract_spotify_id(url_or_id: str) -> str:
    """
    Extract Spotify ID from a URL or return ID as-is.

    Handles various Spotify URL formats:
        - https://open.spotify.com/playlist/ID
        - https://open.spotify.com/playlist/ID?si=xxx
        - spotify:playlist:ID
        - Just the ID

    Examples:
        extract_spotify_id("https://open.spotify.com/track/abc123?si=xyz")
        # Returns: "abc123"

        extract_spotify_id("spotify:track:abc123")
        # Returns: "abc123"
    """
    url_or_id = url_or_id.strip()

    # Handle spotify: URI format
    if url_or_id.startswith("spotify:"):
        return url_or_id.split(":")[-1]

    # Handle URL format
    if "spotify.com" in url_or_id:
        url_or_id = url_or_id.split("?")[0]
        return url_or_id.rstrip("/").split("/")[-1]

    return url_or_id


def extract_playlist_id(url_or_id: str) -> str:
    """
    Extract a playlist ID from a Spotify playlist URL, URI or bare ID.

    Raises:
        ValueError: If the value is a Spotify URL/URI of something other
                    than a playlist, or is empty.

    Examples:
        extract_playlist_id("https://open.spotify.com/playlist/37i9dQZF1DXcBWIGoYBM5M")
        # Returns: "37i9dQZF1DXcBWIGoYBM5M"
    """
    value = url_or_id.strip()
    is_reference = value.startswith("spotify:") or "spotify.com" in value
    if is_reference and "playlist" not in value:
        raise ValueError(f"Not a playlist URL: {url_or_id}")

    playlist_id = extract_spotify_id(value)
    if not playlist_id:
        raise ValueError(f"Empty playlist reference: {url_or_id!r}")
    return playlist_id


def format_duration(seconds: int) -> str:
    """
    Format duration in seconds to human-readable string.

    Examples:
        format_duration(225)   # "3:45"
        format_duration(3750)  # "1:02:30"
        format_duration(45)    # "0:45"
    """
    if seconds < 3600:
        minutes = seconds // 60
        secs = seconds % 60
        return f"{minutes}:{secs:02d}"
    else:
        hours = seconds // 3600
        minutes = (seconds % 3600) // 60
        secs = seconds % 60
        return f"{hours}:{minutes:02d}:{secs:02d}"


def format_duration_ms(duration_ms: int) -> str:
    """Format a Spotify duration in milliseconds (rounded to the second)."""
    return format_duration(int(round(duration_ms / 1000)))
