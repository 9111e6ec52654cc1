"""
Data models for track matching.

This module defines the outcome of matching one Spotify track against the
Navidrome library (TrackMatch), the statistics over a list of outcomes, and
the progress/result objects of the batch matcher.

Usage:
    from spot_navidrome.matching.models import TrackMatch, MatchStatus

    if match.status is MatchStatus.MATCHED:
        song_ids.append(match.candidate_song.id)
"""

from dataclasses import dataclass, field
from enum import Enum

from spot_navidrome.catalog.models import CandidateSong, SourceTrack


class MatchStatus(str, Enum):
    """
    Outcome class of a match.

    Only MATCHED tracks are exported. AMBIGUOUS and UNMATCHED may still carry
    a diagnostic candidate, but the status governs behavior.
    """

    MATCHED = "matched"
    AMBIGUOUS = "ambiguous"
    UNMATCHED = "unmatched"


class MatchStrategyName(str, Enum):
    """Strategy that produced a match (NONE when no strategy applied)."""

    ISRC = "isrc"
    FUZZY = "fuzzy"
    STRICT = "strict"
    NONE = "none"


@dataclass(frozen=True)
class TrackMatch:
    """
    Result of matching one Spotify track.

    Created once per track per matching run and never modified afterwards.
    Consumed by the exporters and by the export cache.

    Attributes:
        source_track: The Spotify track that was matched.
        candidate_song: The selected Navidrome song. Set for every MATCHED
                        result; for AMBIGUOUS/UNMATCHED it is the best
                        diagnostic candidate, if any.
        match_strategy: Strategy that produced the result.
        match_score: Confidence in [0, 1].
        status: MATCHED, AMBIGUOUS or UNMATCHED.
        candidates: Alternative candidates considered by the strategy
                    (fuzzy results ranked best first).
    """

    source_track: SourceTrack
    candidate_song: CandidateSong | None
    match_strategy: MatchStrategyName
    match_score: float
    status: MatchStatus
    candidates: tuple[CandidateSong, ...] = ()

    @property
    def is_matched(self) -> bool:
        return self.status is MatchStatus.MATCHED and self.candidate_song is not None

    @classmethod
    def unmatched(cls, track: SourceTrack) -> "TrackMatch":
        """Create an UNMATCHED result with no candidate and score 0."""
        return cls(
            source_track=track,
            candidate_song=None,
            match_strategy=MatchStrategyName.NONE,
            match_score=0.0,
            status=MatchStatus.UNMATCHED,
        )


@dataclass(frozen=True)
class MatchStatistics:
    """
    Counts over a list of matches.

    Invariant: total == matched + ambiguous + unmatched.
    by_strategy counts MATCHED results only, keyed by strategy value
    ("isrc", "fuzzy", "strict", "none").
    """

    total: int = 0
    matched: int = 0
    ambiguous: int = 0
    unmatched: int = 0
    by_strategy: dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_matches(cls, matches: list[TrackMatch]) -> "MatchStatistics":
        by_strategy = {strategy.value: 0 for strategy in MatchStrategyName}
        matched = ambiguous = unmatched = 0

        for match in matches:
            if match.status is MatchStatus.MATCHED:
                matched += 1
                by_strategy[match.match_strategy.value] += 1
            elif match.status is MatchStatus.AMBIGUOUS:
                ambiguous += 1
            else:
                unmatched += 1

        return cls(
            total=len(matches),
            matched=matched,
            ambiguous=ambiguous,
            unmatched=unmatched,
            by_strategy=by_strategy,
        )


@dataclass(frozen=True)
class BatchProgress:
    """
    Progress event emitted by the batch matcher after each unit of work.

    Attributes:
        current: Tracks processed so far (carried-over cache entries included).
        total: Tracks in the whole input list.
        percent: Integer percent, monotonically non-decreasing.
        current_track: Last track processed, when known.
        current_match: Most recent resolved match, when known.
        matched: Running count of MATCHED results.
        ambiguous: Running count of AMBIGUOUS results.
        unmatched: Running count of UNMATCHED results.
    """

    current: int
    total: int
    percent: int
    current_track: SourceTrack | None = None
    current_match: TrackMatch | None = None
    matched: int = 0
    ambiguous: int = 0
    unmatched: int = 0


@dataclass(frozen=True)
class BatchResult:
    """
    Result of a batch matching run.

    Attributes:
        matches: One match per input track, in input order.
        statistics: Statistics over `matches`.
        new_tracks: Tracks resolved by the orchestrator in this run (all tracks
                    for a full run, only the uncached ones for a differential run).
        new_matches: Matches of `new_tracks`, in input order.
        duration: Elapsed time in seconds.
    """

    matches: list[TrackMatch]
    statistics: MatchStatistics
    new_tracks: list[SourceTrack]
    new_matches: list[TrackMatch]
    duration: float
