"""Test configuration and fixtures"""

import tempfile
from pathlib import Path

import pytest

from spot_navidrome.cache.store import MemoryExportStore
from spot_navidrome.catalog.base import DestinationCatalog, SourceCatalog
from spot_navidrome.catalog.descriptor import ExportDescriptor
from spot_navidrome.catalog.models import (
    CandidateSong,
    DestinationPlaylist,
    SourcePlaylist,
    SourceTrack,
)
from spot_navidrome.core.exceptions import NavidromeError


def make_track(
    track_id: str,
    title: str = "Song",
    artists: tuple[str, ...] = ("Artist",),
    album: str = "Album",
    duration_ms: int = 200000,
    isrc: str | None = None
) -> SourceTrack:
    return SourceTrack(
        id=track_id,
        title=title,
        artists=artists,
        album=album,
        duration_ms=duration_ms,
        isrc=isrc,
    )


def make_song(
    song_id: str,
    title: str = "Song",
    artist: str = "Artist",
    album: str = "Album",
    duration_seconds: float = 200.0,
    isrc: str | None = None
) -> CandidateSong:
    return CandidateSong(
        id=song_id,
        title=title,
        artist=artist,
        album=album,
        duration_seconds=duration_seconds,
        isrc=isrc,
    )


class FakeSourceCatalog(SourceCatalog):
    """In-memory Spotify library."""

    def __init__(self) -> None:
        self.playlists: dict[str, SourcePlaylist] = {}
        self.playlist_tracks: dict[str, list[SourceTrack]] = {}
        self.saved_tracks: list[SourceTrack] = []
        self.track_requests = 0

    def add_playlist(
        self,
        playlist_id: str,
        tracks: list[SourceTrack],
        snapshot_id: str = "snap-1",
        name: str = "Road Trip"
    ) -> SourcePlaylist:
        playlist = SourcePlaylist(
            id=playlist_id, name=name, track_count=len(tracks), snapshot_id=snapshot_id
        )
        self.playlists[playlist_id] = playlist
        self.playlist_tracks[playlist_id] = list(tracks)
        return playlist

    def list_playlists(self) -> list[SourcePlaylist]:
        return list(self.playlists.values())

    def list_playlist_tracks(self, playlist_id: str) -> list[SourceTrack]:
        self.track_requests += 1
        return list(self.playlist_tracks[playlist_id])

    def list_saved_tracks(self) -> list[SourceTrack]:
        return list(self.saved_tracks)


class FakeDestinationCatalog(DestinationCatalog):
    """
    In-memory Navidrome server.

    Records every lookup and write so tests can assert on the calls.
    Failures are injected with fail_writes / fail_star_ids, and
    after_write runs after each successful membership write.
    """

    def __init__(self, songs: list[CandidateSong] | None = None) -> None:
        self.songs: list[CandidateSong] = list(songs or [])
        self.memberships: dict[str, list[str]] = {}
        self.names: dict[str, str] = {}
        self.comments: dict[str, str] = {}
        self.starred: set[str] = set()

        self.artist_lookups: list[str] = []
        self.title_lookups: list[str] = []
        self.created: list[tuple[str, list[str]]] = []
        self.membership_updates: list[tuple[str, list[str], list[int]]] = []
        self.replacements: list[tuple[str, list[str]]] = []
        self.descriptor_writes: list[tuple[str, ExportDescriptor]] = []
        self.list_playlists_calls = 0
        self.unstarred: list[str] = []

        self.fail_writes = False
        self.fail_lookups = False
        self.fail_star_ids: set[str] = set()
        self.after_write = None
        self._next_id = 1

    def add_playlist(self, name: str, song_ids: list[str], comment: str = "") -> str:
        playlist_id = f"nd-{self._next_id}"
        self._next_id += 1
        self.names[playlist_id] = name
        self.memberships[playlist_id] = list(song_ids)
        self.comments[playlist_id] = comment
        return playlist_id

    def _check_write(self) -> None:
        if self.fail_writes:
            raise NavidromeError("HTTP 500", status_code=500)

    def _written(self) -> None:
        if self.after_write is not None:
            self.after_write()

    def find_candidates_by_artist(self, name: str) -> list[CandidateSong]:
        self.artist_lookups.append(name)
        if self.fail_lookups:
            raise NavidromeError("HTTP 503", status_code=503)
        return [song for song in self.songs if name.lower() in song.artist.lower()]

    def find_candidates_by_title(self, title: str, limit: int) -> list[CandidateSong]:
        self.title_lookups.append(title)
        if self.fail_lookups:
            raise NavidromeError("HTTP 503", status_code=503)
        return [song for song in self.songs if title.lower() in song.title.lower()][:limit]

    def list_playlists(self) -> list[DestinationPlaylist]:
        self.list_playlists_calls += 1
        return [
            DestinationPlaylist(
                id=playlist_id,
                name=self.names[playlist_id],
                song_count=len(entries),
                comment=self.comments.get(playlist_id, ""),
                descriptor=ExportDescriptor.from_comment(self.comments.get(playlist_id)),
            )
            for playlist_id, entries in self.memberships.items()
        ]

    def get_playlist_song_ids(self, playlist_id: str) -> list[str]:
        return list(self.memberships[playlist_id])

    def create_playlist(self, name: str, song_ids: list[str]) -> str:
        self._check_write()
        self.created.append((name, list(song_ids)))
        playlist_id = self.add_playlist(name, song_ids)
        self._written()
        return playlist_id

    def update_playlist_membership(
        self,
        playlist_id: str,
        add_ids: list[str],
        remove_positions: list[int]
    ) -> None:
        self._check_write()
        self.membership_updates.append((playlist_id, list(add_ids), list(remove_positions)))
        current = self.memberships[playlist_id]
        kept = [song_id for index, song_id in enumerate(current) if index not in set(remove_positions)]
        self.memberships[playlist_id] = kept + list(add_ids)
        self._written()

    def replace_playlist_membership(self, playlist_id: str, song_ids: list[str]) -> None:
        self._check_write()
        self.replacements.append((playlist_id, list(song_ids)))
        self.memberships[playlist_id] = list(song_ids)
        self._written()

    def read_playlist_descriptor(self, playlist_id: str) -> ExportDescriptor | None:
        return ExportDescriptor.from_comment(self.comments.get(playlist_id))

    def write_playlist_descriptor(self, playlist_id: str, descriptor: ExportDescriptor) -> None:
        self.descriptor_writes.append((playlist_id, descriptor))
        self.comments[playlist_id] = descriptor.to_comment()

    def star_song(self, song_id: str) -> None:
        if song_id in self.fail_star_ids:
            raise NavidromeError(f"Song not found: {song_id}")
        self.starred.add(song_id)

    def unstar_song(self, song_id: str) -> None:
        self.unstarred.append(song_id)
        self.starred.discard(song_id)


@pytest.fixture
def temp_dir():
    """Create temporary directory for tests"""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)


@pytest.fixture
def source():
    """Empty in-memory Spotify library"""
    return FakeSourceCatalog()


@pytest.fixture
def destination():
    """Empty in-memory Navidrome server"""
    return FakeDestinationCatalog()


@pytest.fixture
def store():
    """In-memory export cache"""
    return MemoryExportStore()


@pytest.fixture
def sample_track_data():
    """Sample Spotify track object"""
    return {
        'id': '4cOdK2wGLETKBW3PvgPWqT',
        'name': 'Bohemian Rhapsody - Remastered 2011',
        'type': 'track',
        'is_local': False,
        'artists': [{'id': 'artist_123', 'name': 'Queen'}],
        'album': {'id': 'album_123', 'name': 'A Night At The Opera'},
        'duration_ms': 354320,
        'external_ids': {'isrc': 'GBUM71029604'},
    }


@pytest.fixture
def sample_song_data():
    """Sample Navidrome native API song object"""
    return {
        'id': 'c4e1a7d2',
        'title': 'Bohemian Rhapsody',
        'artist': 'Queen',
        'album': 'A Night at the Opera',
        'duration': 354.32,
        'isrc': ['GBUM71029604'],
    }
