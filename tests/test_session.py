"""Test export sessions (playlist and Liked Songs)"""

import pytest

from conftest import make_song, make_track
from spot_navidrome.cache.records import PlaylistExportRecord, RecordStatistics
from spot_navidrome.catalog.descriptor import ExportDescriptor
from spot_navidrome.catalog.models import SourcePlaylist
from spot_navidrome.core.cancellation import CancellationToken
from spot_navidrome.core.exceptions import ExportCancelledError
from spot_navidrome.export.models import ExportMode
from spot_navidrome.export.session import (
    LIKED_SONGS_ID,
    ExportSession,
    liked_songs_fingerprint,
)
from spot_navidrome.export.status import ExportState
from spot_navidrome.matching.models import MatchStatus


NAMES = ["Alpha", "Bravo", "Charlie", "Delta"]


def library_track(name: str):
    return make_track(f"t-{name}", title=name, artists=(f"{name} Band",))


def library_song(name: str):
    return make_song(f"s-{name}", title=name, artist=f"{name} Band")


@pytest.fixture
def library(destination):
    """Navidrome server holding one song per name"""
    destination.songs = [library_song(name) for name in NAMES]
    return destination


@pytest.fixture
def session(source, library, store):
    return ExportSession(source, library, store)


class TestPlaylistExport:
    """Test playlist export scenarios"""

    def test_first_export_creates_playlist(self, source, library, store, session):
        """A playlist never exported is matched fully and created"""
        playlist = source.add_playlist("pl-1", [library_track("Alpha"), library_track("Bravo")])

        result = session.export_playlist(playlist)

        assert result.mode is ExportMode.CREATE
        assert library.created == [("Road Trip", ["s-Alpha", "s-Bravo"])]
        saved = store.get("pl-1")
        assert saved.source_snapshot_id == "snap-1"
        assert saved.destination_playlist_id == result.export_result.playlist_id
        assert list(saved.tracks) == ["t-Alpha", "t-Bravo"]
        descriptor = library.read_playlist_descriptor(saved.destination_playlist_id)
        assert descriptor.source_playlist_id == "pl-1"
        assert descriptor.source_snapshot_id == "snap-1"

    def test_unchanged_playlist_is_not_matched(self, source, library, session):
        """Re-exporting an unchanged playlist needs no lookup"""
        playlist = source.add_playlist("pl-1", [library_track("Alpha"), library_track("Bravo")])
        session.export_playlist(playlist)
        lookups = len(library.artist_lookups)

        result = session.export_playlist(playlist)

        assert result.up_to_date
        assert result.mode is ExportMode.UPDATE
        assert result.match_result is None
        assert len(library.artist_lookups) == lookups
        assert result.export_result.success
        assert result.export_result.statistics.exported == 0
        assert len(library.created) == 1

    def test_changed_playlist_is_differential(self, source, library, store, session):
        """Only new tracks are matched, removed tracks leave the playlist"""
        playlist = source.add_playlist("pl-1", [library_track("Alpha"), library_track("Bravo")])
        first = session.export_playlist(playlist)
        playlist_id = first.export_result.playlist_id
        library.artist_lookups.clear()

        changed = source.add_playlist(
            "pl-1", [library_track("Alpha"), library_track("Charlie")], snapshot_id="snap-2"
        )
        result = session.export_playlist(changed)

        assert result.mode is ExportMode.UPDATE
        assert library.artist_lookups == ["Charlie Band"]
        assert library.memberships[playlist_id] == ["s-Alpha", "s-Charlie"]
        assert result.export_result.statistics.removed == 1
        saved = store.get("pl-1")
        assert saved.source_snapshot_id == "snap-2"
        assert list(saved.tracks) == ["t-Alpha", "t-Charlie"]

    def test_deleted_cache_overwrites_linked_playlist(self, source, library, session):
        """A Navidrome playlist carrying the descriptor is overwritten, not duplicated"""
        descriptor = ExportDescriptor("pl-1", "snap-0", None, "2024-01-01T00:00:00+00:00", 1)
        playlist_id = library.add_playlist("Road Trip", ["s-Delta"], comment=descriptor.to_comment())
        playlist = source.add_playlist("pl-1", [library_track("Alpha")])

        result = session.export_playlist(playlist)

        assert result.mode is ExportMode.OVERWRITE
        assert library.created == []
        assert library.memberships[playlist_id] == ["s-Alpha"]
        assert result.record.destination_playlist_id == playlist_id

    def test_failed_create_is_retried(self, source, library, store, session):
        """A failed write leaves the record incomplete and the tracks unmatched in cache"""
        playlist = source.add_playlist("pl-1", [library_track("Alpha")])
        library.fail_writes = True

        result = session.export_playlist(playlist)

        assert not result.export_result.success
        saved = store.get("pl-1")
        assert saved.source_snapshot_id == ""
        assert saved.tracks == {}

        library.fail_writes = False
        retried = session.export_playlist(playlist)

        assert retried.mode is ExportMode.CREATE
        assert retried.export_result.success
        assert store.get("pl-1").source_snapshot_id == "snap-1"

    def test_cancel_after_add_saves_progress(self, source, library, store, session):
        """Songs added before cancellation are remembered, pending removals too"""
        playlist = source.add_playlist("pl-1", [library_track("Alpha"), library_track("Bravo")])
        playlist_id = session.export_playlist(playlist).export_result.playlist_id

        changed = source.add_playlist(
            "pl-1", [library_track("Alpha"), library_track("Charlie")], snapshot_id="snap-2"
        )
        token = CancellationToken()
        library.after_write = token.cancel

        with pytest.raises(ExportCancelledError):
            session.export_playlist(changed, token)

        saved = store.get("pl-1")
        assert saved.source_snapshot_id == "snap-1"
        assert list(saved.tracks) == ["t-Alpha", "t-Charlie", "t-Bravo"]
        assert library.memberships[playlist_id] == ["s-Alpha", "s-Bravo", "s-Charlie"]

        library.after_write = None
        library.artist_lookups.clear()
        result = session.export_playlist(changed, CancellationToken())

        assert library.artist_lookups == []
        assert result.export_result.statistics.exported == 0
        assert result.export_result.statistics.removed == 1
        assert library.memberships[playlist_id] == ["s-Alpha", "s-Charlie"]
        assert list(store.get("pl-1").tracks) == ["t-Alpha", "t-Charlie"]

    def test_cancel_during_matching_saves_nothing(self, source, library, store, session):
        """Cancelling before any write leaves the cache untouched"""
        playlist = source.add_playlist("pl-1", [library_track("Alpha")])
        token = CancellationToken()
        token.cancel()

        with pytest.raises(ExportCancelledError):
            session.export_playlist(playlist, token)

        assert store.get("pl-1") is None
        assert library.created == []


class TestLikedSongs:
    """Test Liked Songs export"""

    def test_first_export_stars(self, source, library, store, session):
        """Liked Songs are starred and cached under a fixed key"""
        source.saved_tracks = [library_track("Alpha"), library_track("Bravo")]

        result = session.export_liked_songs()

        assert library.starred == {"s-Alpha", "s-Bravo"}
        assert result.export_result.statistics.starred == 2
        saved = store.get(LIKED_SONGS_ID)
        assert saved.source_snapshot_id == liked_songs_fingerprint(source.saved_tracks)
        assert saved.destination_playlist_id is None

    def test_differential_star_and_unstar(self, source, library, session):
        """New likes are starred, removed likes unstarred"""
        source.saved_tracks = [library_track("Alpha"), library_track("Bravo")]
        session.export_liked_songs()
        library.artist_lookups.clear()

        source.saved_tracks = [library_track("Charlie"), library_track("Alpha")]
        result = session.export_liked_songs()

        assert library.artist_lookups == ["Charlie Band"]
        assert library.starred == {"s-Alpha", "s-Charlie"}
        assert library.unstarred == ["s-Bravo"]
        assert result.unstarred == 1
        assert result.export_result.statistics.total == 1

    def test_song_still_liked_is_not_unstarred(self, source, library, session):
        """A song still matched by another liked track keeps its star"""
        duplicate = make_track("t-Alpha-2", title="Alpha", artists=("Alpha Band",))
        source.saved_tracks = [library_track("Alpha"), duplicate]
        session.export_liked_songs()

        source.saved_tracks = [duplicate]
        result = session.export_liked_songs()

        assert library.unstarred == []
        assert result.unstarred == 0
        assert library.starred == {"s-Alpha"}

    def test_unmatched_track_never_unstars(self, source, library, store, session):
        """Unliking a track that was never matched leaves the server's stars alone"""
        library.songs.append(make_song(
            "s-user-fav", title="Completely Other Tune", artist="Echo Band",
            album="Other Record", duration_seconds=420.0,
        ))
        library.starred.add("s-user-fav")
        echoes = make_track("t-Echoes", title="Echoes", artists=("Echo Band",))
        source.saved_tracks = [library_track("Alpha"), echoes]
        session.export_liked_songs()
        cached = store.get(LIKED_SONGS_ID).tracks["t-Echoes"]
        assert cached.status is MatchStatus.UNMATCHED
        assert cached.destination_song_id == "s-user-fav"

        source.saved_tracks = [library_track("Alpha")]
        result = session.export_liked_songs()

        assert library.unstarred == []
        assert result.unstarred == 0
        assert "s-user-fav" in library.starred

    def test_fingerprint(self):
        """The fingerprint follows the track list"""
        tracks = [library_track("Alpha"), library_track("Bravo")]

        assert liked_songs_fingerprint(tracks) == liked_songs_fingerprint(list(tracks))
        assert liked_songs_fingerprint(tracks) != liked_songs_fingerprint(tracks[:1])
        assert len(liked_songs_fingerprint(tracks)) == 16


class TestExportStates:
    """Test export status reporting"""

    def test_states(self, library, store, session):
        """Descriptor first, then cache, then never exported"""
        in_sync = SourcePlaylist("pl-1", "One", 1, "snap-1")
        cached_only = SourcePlaylist("pl-2", "Two", 1, "snap-9")
        never = SourcePlaylist("pl-3", "Three", 1, "snap-1")

        descriptor = ExportDescriptor("pl-1", "snap-1", None, "2024-01-01T00:00:00+00:00", 1)
        linked_id = library.add_playlist("One", ["s-Alpha"], comment=descriptor.to_comment())
        store.set(PlaylistExportRecord(
            source_playlist_id="pl-2",
            source_snapshot_id="snap-1",
            playlist_name="Two",
            destination_playlist_id="nd-99",
            exported_at="2024-01-02T00:00:00+00:00",
            track_count=1,
            tracks={},
            statistics=RecordStatistics(),
        ))

        states = session.export_states([in_sync, cached_only, never])

        assert [s.status for s in states] == [ExportState.EXPORTED, ExportState.OUT_OF_SYNC, ExportState.NONE]
        assert states[0].destination_playlist_id == linked_id
        assert states[0].last_exported_at == "2024-01-01T00:00:00+00:00"
        assert states[0].destination_song_count == 1
        assert states[1].destination_song_count is None
        assert states[1].destination_playlist_id == "nd-99"
        assert states[2].destination_playlist_id is None
