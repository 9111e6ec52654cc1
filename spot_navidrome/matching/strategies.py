"""
Match strategies.

Three independent resolvers, each evaluating a Spotify track against the
same candidate set fetched once by the orchestrator:

    1. IsrcStrategy:   identical ISRC, or a single candidate within 2 seconds
    2. StrictStrategy: normalized artist and title exactly equal
    3. FuzzyStrategy:  weighted track_similarity() with ambiguity detection

Strategies never touch the network. They return a StrategyResult and leave
classification (matched / ambiguous / unmatched) to the orchestrator.
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass

from spot_navidrome.catalog.models import CandidateSong, SourceTrack
from spot_navidrome.matching.models import MatchStrategyName
from spot_navidrome.matching.similarity import AMBIGUITY_MARGIN, find_best_match


# Maximum duration difference (seconds, exclusive) for the duration fallback
ISRC_DURATION_TOLERANCE_SECONDS = 2


@dataclass(frozen=True)
class StrategyResult:
    """
    Verdict of one strategy for one track.

    Attributes:
        strategy: Strategy that produced the verdict.
        matched: True when the strategy accepts `song` as the match.
        ambiguous: True when several candidates were too close to pick one.
        song: Selected (or best diagnostic) candidate, if any.
        score: Confidence in [0, 1].
        candidates: Ranked candidates considered by the strategy.
    """

    strategy: MatchStrategyName
    matched: bool
    ambiguous: bool = False
    song: CandidateSong | None = None
    score: float = 0.0
    candidates: tuple[CandidateSong, ...] = ()

    @classmethod
    def no_match(cls, strategy: MatchStrategyName) -> "StrategyResult":
        return cls(strategy=strategy, matched=False)


class MatchStrategy(ABC):
    """Base class of the match strategies."""

    name: MatchStrategyName

    def applies_to(self, track: SourceTrack) -> bool:
        """Whether the strategy can say anything about this track."""
        return True

    @abstractmethod
    def evaluate(self, track: SourceTrack, candidates: list[CandidateSong]) -> StrategyResult:
        """Evaluate the candidates for one track."""


class IsrcStrategy(MatchStrategy):
    """
    Identifier-strength matching.

    Only applies to tracks that carry an ISRC. A candidate with the same ISRC
    is an authoritative match. Failing that, when exactly one candidate's
    duration is strictly within 2 seconds of the track duration, that
    candidate is accepted at the same strength (covers libraries without
    ISRC tags).
    """

    name = MatchStrategyName.ISRC

    def applies_to(self, track: SourceTrack) -> bool:
        return bool(track.isrc)

    def evaluate(self, track: SourceTrack, candidates: list[CandidateSong]) -> StrategyResult:
        if not track.isrc:
            return StrategyResult.no_match(self.name)

        for song in candidates:
            if song.isrc == track.isrc:
                return StrategyResult(strategy=self.name, matched=True, song=song, score=1.0)

        track_seconds = track.duration_ms / 1000
        within_tolerance = [
            song for song in candidates
            if abs(song.duration_seconds - track_seconds) < ISRC_DURATION_TOLERANCE_SECONDS
        ]
        if len(within_tolerance) == 1:
            return StrategyResult(
                strategy=self.name, matched=True, song=within_tolerance[0], score=1.0
            )

        return StrategyResult.no_match(self.name)


def strict_normalize(text: str) -> str:
    """Lowercase, keep only [a-z0-9] and whitespace, collapse whitespace."""
    text = re.sub(r"[^a-z0-9\s]", "", text.lower())
    return " ".join(text.split())


class StrictStrategy(MatchStrategy):
    """
    Exact equality after strict normalization.

    The track side uses all artists joined by a space. The first candidate
    whose normalized artist and title both equal the track's is accepted.
    """

    name = MatchStrategyName.STRICT

    def evaluate(self, track: SourceTrack, candidates: list[CandidateSong]) -> StrategyResult:
        artist = strict_normalize(" ".join(track.artists))
        title = strict_normalize(track.title)

        if not artist or not title:
            return StrategyResult.no_match(self.name)

        for song in candidates:
            if strict_normalize(song.artist) == artist and strict_normalize(song.title) == title:
                return StrategyResult(strategy=self.name, matched=True, song=song, score=1.0)

        return StrategyResult.no_match(self.name)


class FuzzyStrategy(MatchStrategy):
    """
    Weighted similarity matching.

    Scores each candidate with track_similarity(), keeps scores at or above
    the threshold and flags the result as ambiguous when a runner-up scores
    within `ambiguity_margin` of the best. When no candidate reaches the
    threshold, the closest one is still returned (not matched) so unmatched
    reports can show what was found.
    """

    name = MatchStrategyName.FUZZY

    def __init__(self, threshold: float = 0.8, ambiguity_margin: float = AMBIGUITY_MARGIN) -> None:
        self.threshold = threshold
        self.ambiguity_margin = ambiguity_margin

    def evaluate(self, track: SourceTrack, candidates: list[CandidateSong]) -> StrategyResult:
        result = find_best_match(track, candidates, self.threshold, self.ambiguity_margin)

        if result.best_match is None:
            if result.closest is None:
                return StrategyResult.no_match(self.name)
            return StrategyResult(
                strategy=self.name,
                matched=False,
                song=result.closest.song,
                score=result.closest.score,
            )

        best = result.best_match
        ambiguous = result.has_ambiguous

        return StrategyResult(
            strategy=self.name,
            matched=not ambiguous,
            ambiguous=ambiguous,
            song=best.song,
            score=best.score,
            candidates=tuple(item.song for item in result.matches),
        )
