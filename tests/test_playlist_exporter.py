"""Test the playlist exporter"""

import pytest

from conftest import make_song, make_track
from spot_navidrome.cache.records import (
    PlaylistExportRecord,
    RecordStatistics,
    TrackExportStatus,
)
from spot_navidrome.catalog.descriptor import ExportDescriptor
from spot_navidrome.core.cancellation import CancellationToken
from spot_navidrome.core.exceptions import ExportCancelledError, ExportPreconditionError
from spot_navidrome.export.models import ExportMode, ExportPhase
from spot_navidrome.export.playlist import PlaylistExporter, locate_entry_positions, plan_export
from spot_navidrome.matching.models import MatchStatus, MatchStrategyName, TrackMatch


def matched(track_id, song_id):
    return TrackMatch(
        make_track(track_id, title=f"Title {track_id}"), make_song(song_id),
        MatchStrategyName.FUZZY, 0.95, MatchStatus.MATCHED,
    )


def unmatched(track_id):
    return TrackMatch.unmatched(make_track(track_id, title=f"Title {track_id}"))


def cached_record(entries, destination="nd-1"):
    tracks = {
        track_id: TrackExportStatus(
            track_id, song_id, MatchStatus.MATCHED if song_id else MatchStatus.UNMATCHED,
            MatchStrategyName.FUZZY if song_id else MatchStrategyName.NONE,
            1.0 if song_id else 0.0, "2024-01-01T00:00:00+00:00",
        )
        for track_id, song_id in entries
    }
    return PlaylistExportRecord(
        source_playlist_id="pl-1",
        source_snapshot_id="snap-1",
        playlist_name="Road Trip",
        destination_playlist_id=destination,
        exported_at="2024-01-01T00:00:00+00:00",
        track_count=len(tracks),
        tracks=tracks,
        statistics=RecordStatistics.from_tracks(tracks),
    )


DESCRIPTOR = ExportDescriptor("pl-1", "snap-2", None, "2024-05-01T12:00:00+00:00", 3)


def assert_totals(result):
    stats = result.statistics
    assert stats.total == stats.exported + stats.failed + stats.skipped


class TestCreate:
    """Test create mode"""

    def test_create_with_skipped_unmatched(self, destination):
        """Matched songs are written in order, unmatched ones skipped"""
        matches = [matched("t1", "s1"), unmatched("t2"), matched("t3", "s3")]

        result = PlaylistExporter(destination).export_playlist(
            "Road Trip", matches, ExportMode.CREATE, skip_unmatched=True, descriptor=DESCRIPTOR
        )

        assert destination.created == [("Road Trip", ["s1", "s3"])]
        assert result.success
        assert result.playlist_id == "nd-1"
        assert result.statistics.exported == 2
        assert result.statistics.skipped == 1
        assert result.statistics.failed == 0
        assert_totals(result)

    def test_descriptor_written_with_playlist_id(self, destination):
        """The descriptor gets the new playlist id"""
        PlaylistExporter(destination).export_playlist(
            "Road Trip", [matched("t1", "s1")], descriptor=DESCRIPTOR
        )

        playlist_id, written = destination.descriptor_writes[0]
        assert playlist_id == "nd-1"
        assert written.destination_playlist_id == "nd-1"
        assert written.source_playlist_id == "pl-1"

    def test_unmatched_as_failures(self, destination):
        """Without skipping, unmatched tracks are failed with a reason"""
        matches = [matched("t1", "s1"), unmatched("t2")]

        result = PlaylistExporter(destination).export_playlist(
            "Road Trip", matches, skip_unmatched=False
        )

        assert not result.success
        assert result.statistics.exported == 1
        assert result.statistics.failed == 1
        assert result.errors[0].track_name == "Title t2"
        assert result.errors[0].reason == "Track is unmatched, not exported"
        assert_totals(result)

    def test_nothing_matched(self, destination):
        """Nothing to add creates nothing and skips everything"""
        result = PlaylistExporter(destination).export_playlist(
            "Road Trip", [unmatched("t1"), unmatched("t2")], skip_unmatched=False
        )

        assert destination.created == []
        assert result.playlist_id is None
        assert result.statistics.skipped == 2
        assert result.success
        assert_totals(result)

    def test_write_failure(self, destination):
        """A failed write fails every song of the batch"""
        destination.fail_writes = True
        events = []

        result = PlaylistExporter(destination).export_playlist(
            "Road Trip", [matched("t1", "s1"), matched("t2", "s2")], on_progress=events.append
        )

        assert not result.success
        assert result.statistics.failed == 2
        assert result.statistics.exported == 0
        assert result.errors[0].track_name == "N/A"
        assert result.errors[0].reason.startswith("Failed to create playlist")
        assert result.failed_track_ids == ["t1", "t2"]
        assert events[-1].status is ExportPhase.FAILED
        assert_totals(result)

    def test_progress_events(self, destination):
        """Preparing starts at 0% and completed ends at 100%"""
        events = []

        PlaylistExporter(destination).export_playlist(
            "Road Trip", [matched("t1", "s1")], on_progress=events.append
        )

        assert events[0].status is ExportPhase.PREPARING
        assert events[0].percent == 0
        assert events[-1].status is ExportPhase.COMPLETED
        assert events[-1].percent == 100


class TestExistingPlaylist:
    """Test append, overwrite and update modes"""

    def test_preconditions(self, destination):
        """Modes on an existing playlist need their inputs"""
        exporter = PlaylistExporter(destination)

        with pytest.raises(ExportPreconditionError):
            exporter.export_playlist("Road Trip", [], ExportMode.APPEND)
        with pytest.raises(ExportPreconditionError):
            exporter.export_playlist("Road Trip", [], ExportMode.OVERWRITE)
        with pytest.raises(ExportPreconditionError):
            exporter.export_playlist("Road Trip", [], ExportMode.UPDATE, existing_playlist_id="nd-1")
        with pytest.raises(ExportPreconditionError):
            exporter.export_playlist(
                "Road Trip", [], ExportMode.UPDATE, cached_record=cached_record([], destination=None)
            )

    def test_append(self, destination):
        """Append adds songs after the existing entries"""
        playlist_id = destination.add_playlist("Road Trip", ["s0"])

        result = PlaylistExporter(destination).export_playlist(
            "Road Trip", [matched("t1", "s1")], ExportMode.APPEND, existing_playlist_id=playlist_id
        )

        assert destination.memberships[playlist_id] == ["s0", "s1"]
        assert result.playlist_id == playlist_id
        assert result.mode is ExportMode.APPEND

    def test_overwrite(self, destination):
        """Overwrite replaces the membership"""
        playlist_id = destination.add_playlist("Road Trip", ["s0", "s9"])

        PlaylistExporter(destination).export_playlist(
            "Road Trip", [matched("t1", "s1"), matched("t2", "s2")],
            ExportMode.OVERWRITE, existing_playlist_id=playlist_id,
        )

        assert destination.replacements == [(playlist_id, ["s1", "s2"])]
        assert destination.memberships[playlist_id] == ["s1", "s2"]

    def test_update_adds_and_removes(self, destination):
        """Update adds new tracks and removes tracks gone from Spotify"""
        playlist_id = destination.add_playlist("Road Trip", ["s1", "s2"])
        cache = cached_record([("t1", "s1"), ("t2", "s2")], destination=playlist_id)
        matches = [matched("t1", "s1"), matched("t3", "s3")]
        events = []

        result = PlaylistExporter(destination).export_playlist(
            "Road Trip", matches, ExportMode.UPDATE, cached_record=cache,
            on_progress=events.append, descriptor=DESCRIPTOR,
        )

        assert destination.memberships[playlist_id] == ["s1", "s3"]
        assert destination.membership_updates == [
            (playlist_id, ["s3"], []),
            (playlist_id, [], [1]),
        ]
        assert result.statistics.total == 1
        assert result.statistics.exported == 1
        assert result.statistics.removed == 1
        assert result.statistics.unchanged == 1
        assert [e.status for e in events] == [
            ExportPhase.PREPARING,
            ExportPhase.ADDED,
            ExportPhase.REMOVED,
            ExportPhase.METADATA_UPDATED,
            ExportPhase.COMPLETED,
        ]
        assert_totals(result)

    def test_update_without_changes(self, destination):
        """An unchanged playlist is not written"""
        playlist_id = destination.add_playlist("Road Trip", ["s1"])
        cache = cached_record([("t1", "s1")], destination=playlist_id)

        result = PlaylistExporter(destination).export_playlist(
            "Road Trip", [matched("t1", "s1")], ExportMode.UPDATE, cached_record=cache
        )

        assert destination.membership_updates == []
        assert result.success
        assert result.statistics.total == 0
        assert result.statistics.unchanged == 1

    def test_update_keeps_unmatched_removals_out(self, destination):
        """Removed tracks that were never matched remove nothing"""
        playlist_id = destination.add_playlist("Road Trip", ["s1"])
        cache = cached_record([("t1", "s1"), ("t2", None)], destination=playlist_id)

        plan = plan_export(ExportMode.UPDATE, [matched("t1", "s1")], cached_record=cache)

        assert plan.removed_song_ids == ()
        assert plan.playlist_id == playlist_id


    def test_update_cancelled_before_removal(self, destination):
        """Cancelling after the add step stops before removing anything"""
        playlist_id = destination.add_playlist("Road Trip", ["s1", "s2"])
        cache = cached_record([("t1", "s1"), ("t2", "s2")], destination=playlist_id)
        token = CancellationToken()
        destination.after_write = token.cancel
        events = []

        with pytest.raises(ExportCancelledError):
            PlaylistExporter(destination).export_playlist(
                "Road Trip", [matched("t1", "s1"), matched("t3", "s3")], ExportMode.UPDATE,
                cached_record=cache, on_progress=events.append, token=token, descriptor=DESCRIPTOR,
            )

        assert destination.membership_updates == [(playlist_id, ["s3"], [])]
        assert destination.memberships[playlist_id] == ["s1", "s2", "s3"]
        assert destination.descriptor_writes == []
        assert events[-1].status is ExportPhase.ADDED

    def test_update_cancelled_before_metadata(self, destination):
        """Cancelling after the removal step leaves the descriptor unwritten"""
        playlist_id = destination.add_playlist("Road Trip", ["s1", "s2"])
        cache = cached_record([("t1", "s1"), ("t2", "s2")], destination=playlist_id)
        token = CancellationToken()

        def cancel_after_removal(event):
            if event.status is ExportPhase.REMOVED:
                token.cancel()

        with pytest.raises(ExportCancelledError):
            PlaylistExporter(destination).export_playlist(
                "Road Trip", [matched("t1", "s1")], ExportMode.UPDATE, cached_record=cache,
                on_progress=cancel_after_removal, token=token, descriptor=DESCRIPTOR,
            )

        assert destination.memberships[playlist_id] == ["s1"]
        assert destination.descriptor_writes == []

class TestLocateEntryPositions:
    """Test removal position lookup"""

    def test_duplicates(self):
        """Each listed song claims one occurrence"""
        assert locate_entry_positions(["a", "b", "a"], ["a", "a"]) == [0, 2]
        assert locate_entry_positions(["a", "b", "a"], ["a"]) == [0]

    def test_missing(self):
        """Unknown songs are ignored"""
        assert locate_entry_positions(["a", "b"], ["x", "b"]) == [1]
        assert locate_entry_positions([], ["a"]) == []
