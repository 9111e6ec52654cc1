"""Test the matching orchestrator"""

from unittest.mock import Mock

import pytest

from conftest import FakeDestinationCatalog, make_song, make_track
from spot_navidrome.core.config import MatchingConfig
from spot_navidrome.core.exceptions import ExportCancelledError
from spot_navidrome.matching.models import (
    MatchStatistics,
    MatchStatus,
    MatchStrategyName,
    TrackMatch,
)
from spot_navidrome.matching.orchestrator import (
    CandidateSearchMode,
    MatchingOptions,
    MatchingOrchestrator,
    get_ambiguous_matches,
    get_match_statistics,
    get_matched_tracks,
    get_unmatched_tracks,
)
from spot_navidrome.matching.strategies import StrictStrategy


FAR_SONG = make_song("far", title="Completely Different", artist="Artist Other Band",
                     album="Other", duration_seconds=100.0)


class TestMatchTrack:
    """Test strategy ordering and fallback"""

    def test_isrc_first(self):
        """An ISRC match is returned before any other strategy runs"""
        tagged = make_song("s2", title="Different Name", isrc="GBUM71029604")
        destination = FakeDestinationCatalog([make_song("s1"), tagged])
        track = make_track("t1", isrc="GBUM71029604")

        match = MatchingOrchestrator(destination).match_track(track)

        assert match.status is MatchStatus.MATCHED
        assert match.match_strategy is MatchStrategyName.ISRC
        assert match.candidate_song == tagged
        assert match.match_score == 1.0

    def test_fuzzy_match(self):
        """Suffix variants are matched by the fuzzy strategy"""
        destination = FakeDestinationCatalog([make_song("s1", title="Song - 2011 Remaster"), FAR_SONG])

        match = MatchingOrchestrator(destination).match_track(make_track("t1"))

        assert match.is_matched
        assert match.match_strategy is MatchStrategyName.FUZZY
        assert match.candidate_song.id == "s1"

    def test_live_suffix_matched_by_fuzzy(self):
        """A "(Live)" title fails strict equality but matches by fuzzy score"""
        track = make_track("t1", title="Song (Live)", artists=("Band",), duration_ms=180000)
        song = make_song("s1", title="Song", artist="Band", duration_seconds=180.0)
        destination = FakeDestinationCatalog([song])

        assert not StrictStrategy().evaluate(track, [song]).matched

        match = MatchingOrchestrator(destination).match_track(track)

        assert match.status is MatchStatus.MATCHED
        assert match.match_strategy is MatchStrategyName.FUZZY
        assert match.candidate_song == song
        assert match.match_score >= 0.85

    def test_strict_when_fuzzy_disabled(self):
        """Strict matching runs when fuzzy is disabled"""
        destination = FakeDestinationCatalog([make_song("s1")])
        options = MatchingOptions(enable_fuzzy=False)

        match = MatchingOrchestrator(destination, options).match_track(make_track("t1"))

        assert match.is_matched
        assert match.match_strategy is MatchStrategyName.STRICT

    def test_ambiguous(self):
        """Two equally good candidates give an ambiguous result"""
        first = make_song("s1", title="Song (Live)")
        second = make_song("s2", title="Song [Live]")
        destination = FakeDestinationCatalog([first, second])

        match = MatchingOrchestrator(destination).match_track(make_track("t1"))

        assert match.status is MatchStatus.AMBIGUOUS
        assert match.match_strategy is MatchStrategyName.FUZZY
        assert match.candidate_song == first
        assert not match.is_matched

    def test_unmatched_keeps_closest_candidate(self):
        """An unmatched track reports the closest candidate"""
        destination = FakeDestinationCatalog([FAR_SONG])

        match = MatchingOrchestrator(destination).match_track(make_track("t1"))

        assert match.status is MatchStatus.UNMATCHED
        assert match.candidate_song == FAR_SONG
        assert match.match_strategy is MatchStrategyName.FUZZY
        assert 0.0 < match.match_score < 0.8

    def test_no_candidates(self):
        """No candidates gives an unmatched result without song"""
        match = MatchingOrchestrator(FakeDestinationCatalog()).match_track(make_track("t1"))

        assert match.status is MatchStatus.UNMATCHED
        assert match.candidate_song is None
        assert match.match_strategy is MatchStrategyName.NONE

    def test_all_strategies_disabled(self):
        """Disabling everything leaves every track unmatched"""
        destination = FakeDestinationCatalog([make_song("s1")])
        options = MatchingOptions(enable_isrc=False, enable_fuzzy=False, enable_strict=False)

        match = MatchingOrchestrator(destination, options).match_track(make_track("t1"))

        assert match == TrackMatch.unmatched(make_track("t1"))

    def test_blank_title(self):
        """A track without title is unmatched without any lookup"""
        destination = FakeDestinationCatalog([make_song("s1")])

        match = MatchingOrchestrator(destination).match_track(make_track("t1", title="  "))

        assert match.status is MatchStatus.UNMATCHED
        assert destination.artist_lookups == []

    def test_lookup_error_is_unmatched(self):
        """A failing lookup only affects the current track"""
        destination = FakeDestinationCatalog([make_song("s1")])
        destination.fail_lookups = True

        match = MatchingOrchestrator(destination).match_track(make_track("t1"))

        assert match.status is MatchStatus.UNMATCHED
        assert match.match_score == 0.0

    def test_cancellation_propagates(self):
        """Cancellation is never turned into an unmatched result"""
        destination = FakeDestinationCatalog()
        destination.find_candidates_by_artist = Mock(side_effect=ExportCancelledError())

        with pytest.raises(ExportCancelledError):
            MatchingOrchestrator(destination).match_track(make_track("t1"))


class TestFindCandidates:
    """Test candidate lookup"""

    def test_artist_mode_uses_primary_artist(self):
        """Only the first artist is looked up"""
        destination = FakeDestinationCatalog()
        track = make_track("t1", artists=("Calvin Harris", "Dua Lipa"))

        MatchingOrchestrator(destination).find_candidates(track)

        assert destination.artist_lookups == ["Calvin Harris"]

    def test_artist_mode_without_artist(self):
        """No artist means no candidates and no lookup"""
        destination = FakeDestinationCatalog([make_song("s1")])

        assert MatchingOrchestrator(destination).find_candidates(make_track("t1", artists=())) == []
        assert destination.artist_lookups == []

    def test_limit(self):
        """Candidates are capped at max_search_results"""
        destination = FakeDestinationCatalog([make_song(f"s{i}") for i in range(5)])
        options = MatchingOptions(max_search_results=3)

        candidates = MatchingOrchestrator(destination, options).find_candidates(make_track("t1"))

        assert [song.id for song in candidates] == ["s0", "s1", "s2"]

    def test_title_mode_stripped_then_full(self):
        """Title lookups try the stripped title, then the full title"""
        destination = FakeDestinationCatalog()
        options = MatchingOptions(candidate_search=CandidateSearchMode.TITLE)

        candidates = MatchingOrchestrator(destination, options).find_candidates(
            make_track("t1", title="Song - Live")
        )

        assert candidates == []
        assert destination.title_lookups == ["Song", "Song - Live"]

    def test_title_mode_segments(self):
        """Medley titles fall back to each "/" segment"""
        beta = make_song("s1", title="Beta")
        destination = FakeDestinationCatalog([beta])
        options = MatchingOptions(candidate_search=CandidateSearchMode.TITLE)

        candidates = MatchingOrchestrator(destination, options).find_candidates(
            make_track("t1", title="Alpha / Beta")
        )

        assert candidates == [beta]
        assert destination.title_lookups == ["Alpha", "Alpha / Beta", "Alpha", "Beta"]

    def test_options_from_config(self):
        """Options mirror the matching config section"""
        options = MatchingOptions.from_config(
            MatchingConfig(enable_strict=False, fuzzy_threshold=0.7, candidate_search="title")
        )
        assert not options.enable_strict
        assert options.fuzzy_threshold == 0.7
        assert options.candidate_search is CandidateSearchMode.TITLE


class TestMatchHelpers:
    """Test match list helpers"""

    def _matches(self):
        song = make_song("s1")
        return [
            TrackMatch(make_track("t1"), song, MatchStrategyName.ISRC, 1.0, MatchStatus.MATCHED),
            TrackMatch(make_track("t2"), song, MatchStrategyName.FUZZY, 0.9, MatchStatus.AMBIGUOUS),
            TrackMatch.unmatched(make_track("t3")),
            TrackMatch(make_track("t4"), song, MatchStrategyName.FUZZY, 0.95, MatchStatus.MATCHED),
        ]

    def test_statistics(self):
        """Counts add up and strategies count matched tracks only"""
        stats = get_match_statistics(self._matches())

        assert stats.total == 4
        assert stats.total == stats.matched + stats.ambiguous + stats.unmatched
        assert stats.matched == 2
        assert stats.by_strategy == {"isrc": 1, "fuzzy": 1, "strict": 0, "none": 0}

    def test_empty_statistics(self):
        """Every strategy key is present even without matches"""
        stats = MatchStatistics.from_matches([])
        assert stats.total == 0
        assert set(stats.by_strategy) == {"isrc", "fuzzy", "strict", "none"}

    def test_filters(self):
        """Ambiguous tracks count as not exported"""
        matches = self._matches()

        assert [m.source_track.id for m in get_ambiguous_matches(matches)] == ["t2"]
        assert [t.id for t in get_unmatched_tracks(matches)] == ["t2", "t3"]
        assert [(t.id, s.id, strategy) for t, s, strategy in get_matched_tracks(matches)] == [
            ("t1", "s1", MatchStrategyName.ISRC),
            ("t4", "s1", MatchStrategyName.FUZZY),
        ]
