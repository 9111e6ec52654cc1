"""Test matching strategies"""

from conftest import make_song, make_track
from spot_navidrome.matching.models import MatchStrategyName
from spot_navidrome.matching.strategies import (
    FuzzyStrategy,
    IsrcStrategy,
    StrictStrategy,
    strict_normalize,
)


class TestIsrcStrategy:
    """Test identifier matching"""

    def test_applies_only_with_isrc(self):
        """Tracks without ISRC are not handled"""
        strategy = IsrcStrategy()
        assert strategy.applies_to(make_track("t1", isrc="GBUM71029604"))
        assert not strategy.applies_to(make_track("t1"))

    def test_exact_isrc(self):
        """A candidate with the same ISRC wins"""
        track = make_track("t1", isrc="GBUM71029604")
        other = make_song("s1", duration_seconds=200.0)
        tagged = make_song("s2", duration_seconds=260.0, isrc="GBUM71029604")

        result = IsrcStrategy().evaluate(track, [other, tagged])

        assert result.matched
        assert result.song == tagged
        assert result.score == 1.0
        assert result.strategy is MatchStrategyName.ISRC

    def test_single_duration_match(self):
        """Without ISRC tags, the only candidate within 2 seconds is accepted"""
        track = make_track("t1", duration_ms=200000, isrc="GBUM71029604")
        close = make_song("s1", duration_seconds=201.0)
        far = make_song("s2", duration_seconds=250.0)

        result = IsrcStrategy().evaluate(track, [far, close])

        assert result.matched
        assert result.song == close

    def test_several_duration_matches(self):
        """Two candidates within tolerance are not decided by duration"""
        track = make_track("t1", duration_ms=200000, isrc="GBUM71029604")
        candidates = [make_song("s1", duration_seconds=199.5), make_song("s2", duration_seconds=200.5)]

        result = IsrcStrategy().evaluate(track, candidates)

        assert not result.matched
        assert result.song is None

    def test_tolerance_is_strict(self):
        """A difference of exactly 2 seconds is outside the tolerance"""
        track = make_track("t1", duration_ms=200000, isrc="GBUM71029604")
        result = IsrcStrategy().evaluate(track, [make_song("s1", duration_seconds=202.0)])
        assert not result.matched


class TestStrictStrategy:
    """Test exact normalized matching"""

    def test_strict_normalize(self):
        """Only letters, digits and single spaces remain"""
        assert strict_normalize("T.N.T.") == "tnt"
        assert strict_normalize("  AC/DC   Live ") == "acdc live"

    def test_punctuation_insensitive(self):
        """Punctuation differences still match"""
        track = make_track("t1", title="T.N.T.", artists=("AC/DC",))
        song = make_song("s1", title="TNT", artist="ACDC")

        result = StrictStrategy().evaluate(track, [song])

        assert result.matched
        assert result.song == song
        assert result.strategy is MatchStrategyName.STRICT

    def test_all_artists_joined(self):
        """The track side joins every artist"""
        track = make_track("t1", title="Get Lucky", artists=("Daft Punk", "Pharrell Williams"))
        song = make_song("s1", title="Get Lucky", artist="Daft Punk, Pharrell Williams")

        assert StrictStrategy().evaluate(track, [song]).matched

    def test_no_artist(self):
        """A track without artist never matches"""
        track = make_track("t1", artists=())
        assert not StrictStrategy().evaluate(track, [make_song("s1", artist="")]).matched


class TestFuzzyStrategy:
    """Test similarity matching"""

    def test_unique_match(self):
        """One candidate above threshold is matched"""
        track = make_track("t1", title="Song - Remastered 2011")
        song = make_song("s1")

        result = FuzzyStrategy().evaluate(track, [song])

        assert result.matched
        assert not result.ambiguous
        assert result.song == song
        assert result.strategy is MatchStrategyName.FUZZY

    def test_ambiguous(self):
        """Close runner-up makes the result ambiguous, not matched"""
        first = make_song("s1", title="Song (Live)")
        second = make_song("s2", title="Song [Live]")

        result = FuzzyStrategy().evaluate(make_track("t1"), [first, second])

        assert not result.matched
        assert result.ambiguous
        assert result.song == first
        assert result.candidates == (first, second)

    def test_custom_ambiguity_margin(self):
        """A narrower margin lets a slightly better candidate win"""
        first = make_song("s1")
        second = make_song("s2", duration_seconds=201.5)

        assert FuzzyStrategy().evaluate(make_track("t1"), [first, second]).ambiguous

        result = FuzzyStrategy(ambiguity_margin=0.01).evaluate(make_track("t1"), [first, second])

        assert result.matched
        assert result.song == first

    def test_below_threshold_reports_closest(self):
        """The closest candidate is kept for diagnostics"""
        far = make_song("s1", title="Completely Different", artist="Other Band",
                        album="Other", duration_seconds=100.0)

        result = FuzzyStrategy().evaluate(make_track("t1"), [far])

        assert not result.matched
        assert not result.ambiguous
        assert result.song == far
        assert 0.0 < result.score < 0.8

    def test_no_candidates(self):
        """No candidates gives no song"""
        result = FuzzyStrategy().evaluate(make_track("t1"), [])
        assert not result.matched
        assert result.song is None
        assert result.score == 0.0
