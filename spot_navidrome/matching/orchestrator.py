"""
Per-track matching orchestrator.

Runs the match strategies in priority order over a candidate set fetched
once per track from Navidrome, and classifies the outcome.

Resolution Order:
    1. ISRC (authoritative, short-circuits)
    2. Fuzzy (short-circuits when unambiguous; ambiguous verdicts are recorded)
    3. Strict (short-circuits on exact equality)
    4. Fallback: the recorded verdict with the highest score supplies the
       diagnostic candidate; AMBIGUOUS if any verdict was ambiguous,
       UNMATCHED otherwise

A failure while resolving one track (network error, malformed data) degrades
that track to UNMATCHED and never aborts the caller's batch. Cancellation is
the only exception that propagates.

Usage:
    from spot_navidrome.matching.orchestrator import MatchingOrchestrator, MatchingOptions

    orchestrator = MatchingOrchestrator(navidrome_client, MatchingOptions())
    match = orchestrator.match_track(track)
"""

from dataclasses import dataclass
from enum import Enum

from spot_navidrome.catalog.base import DestinationCatalog
from spot_navidrome.catalog.models import CandidateSong, SourceTrack
from spot_navidrome.core.config import MatchingConfig
from spot_navidrome.core.exceptions import ExportCancelledError
from spot_navidrome.core.logger import get_logger
from spot_navidrome.matching.models import (
    MatchStatistics,
    MatchStatus,
    MatchStrategyName,
    TrackMatch,
)
from spot_navidrome.matching.similarity import strip_title_suffix
from spot_navidrome.matching.strategies import (
    FuzzyStrategy,
    IsrcStrategy,
    StrategyResult,
    StrictStrategy,
)


logger = get_logger(__name__)


class CandidateSearchMode(str, Enum):
    """How candidate songs are looked up on Navidrome."""

    ARTIST = "artist"
    TITLE = "title"


@dataclass(frozen=True)
class MatchingOptions:
    """
    Options of the matching orchestrator.

    Attributes:
        enable_isrc: Run the ISRC strategy.
        enable_fuzzy: Run the fuzzy strategy.
        enable_strict: Run the strict strategy.
        fuzzy_threshold: Minimum fuzzy score for a candidate to be kept.
        max_search_results: Cap on candidates per track.
        candidate_search: Lookup by primary artist (default) or by title.
    """

    enable_isrc: bool = True
    enable_fuzzy: bool = True
    enable_strict: bool = True
    fuzzy_threshold: float = 0.8
    max_search_results: int = 500
    candidate_search: CandidateSearchMode = CandidateSearchMode.ARTIST

    @classmethod
    def from_config(cls, config: MatchingConfig) -> "MatchingOptions":
        return cls(
            enable_isrc=config.enable_isrc,
            enable_fuzzy=config.enable_fuzzy,
            enable_strict=config.enable_strict,
            fuzzy_threshold=config.fuzzy_threshold,
            max_search_results=config.max_search_results,
            candidate_search=CandidateSearchMode(config.candidate_search),
        )


class MatchingOrchestrator:
    """
    Resolves one Spotify track to a Navidrome song.

    Attributes:
        _destination: Navidrome catalog used for candidate lookups.
        _options: Matching options.

    Thread Safety:
        match_track() keeps no state between calls and may be called from
        several threads at once, provided the destination catalog allows it.
    """

    def __init__(self, destination: DestinationCatalog, options: MatchingOptions | None = None) -> None:
        self._destination = destination
        self._options = options or MatchingOptions()
        self._isrc = IsrcStrategy()
        self._fuzzy = FuzzyStrategy(threshold=self._options.fuzzy_threshold)
        self._strict = StrictStrategy()

    @property
    def options(self) -> MatchingOptions:
        return self._options

    def match_track(self, track: SourceTrack) -> TrackMatch:
        """
        Find the Navidrome song matching a Spotify track.

        Args:
            track: The Spotify track to resolve.

        Returns:
            TrackMatch with status MATCHED, AMBIGUOUS or UNMATCHED.

        Raises:
            ExportCancelledError: Propagated unchanged. Every other exception
                                  becomes an UNMATCHED result for this track.
        """
        if not track.title or not track.title.strip():
            logger.warning(f"Track {track.id or '<no id>'} has no title, skipping match")
            return TrackMatch.unmatched(track)

        try:
            return self._resolve(track)
        except ExportCancelledError:
            raise
        except Exception as e:
            logger.error(f"Error matching {track.artist_line} - {track.title}: {e}")
            return TrackMatch.unmatched(track)

    def _resolve(self, track: SourceTrack) -> TrackMatch:
        candidates = self.find_candidates(track)
        logger.debug(
            f"{len(candidates)} candidate(s) for {track.artist_line} - {track.title}"
        )

        recorded: list[StrategyResult] = []

        if self._options.enable_isrc and self._isrc.applies_to(track):
            result = self._isrc.evaluate(track, candidates)
            if result.matched:
                return self._to_match(track, result, MatchStatus.MATCHED)

        if self._options.enable_fuzzy:
            result = self._fuzzy.evaluate(track, candidates)
            recorded.append(result)
            if result.matched:
                return self._to_match(track, result, MatchStatus.MATCHED)

        if self._options.enable_strict:
            result = self._strict.evaluate(track, candidates)
            recorded.append(result)
            if result.matched:
                return self._to_match(track, result, MatchStatus.MATCHED)

        if not recorded:
            return TrackMatch.unmatched(track)

        best = recorded[0]
        for result in recorded[1:]:
            if result.score > best.score:
                best = result

        status = (
            MatchStatus.AMBIGUOUS
            if any(result.ambiguous for result in recorded)
            else MatchStatus.UNMATCHED
        )

        return TrackMatch(
            source_track=track,
            candidate_song=best.song,
            match_strategy=best.strategy if best.song is not None else MatchStrategyName.NONE,
            match_score=max(best.score, 0.0),
            status=status,
            candidates=best.candidates,
        )

    def _to_match(self, track: SourceTrack, result: StrategyResult, status: MatchStatus) -> TrackMatch:
        return TrackMatch(
            source_track=track,
            candidate_song=result.song,
            match_strategy=result.strategy,
            match_score=result.score,
            status=status,
            candidates=result.candidates,
        )

    # =========================================================================
    # Candidate lookup
    # =========================================================================

    def find_candidates(self, track: SourceTrack) -> list[CandidateSong]:
        """
        Fetch the candidate songs of a track from Navidrome.

        Artist mode returns the songs of the primary artist (none when the
        track has no artist). Title mode searches the suffix-stripped title,
        then the full title, then each "/"-separated segment.

        Returns:
            At most max_search_results songs, de-duplicated by id.
        """
        limit = self._options.max_search_results

        if self._options.candidate_search is CandidateSearchMode.TITLE:
            return self._find_candidates_by_title(track.title, limit)

        artist = track.primary_artist
        if not artist:
            return []
        return self._destination.find_candidates_by_artist(artist)[:limit]

    def _find_candidates_by_title(self, title: str, limit: int) -> list[CandidateSong]:
        queries: list[str] = []
        stripped = strip_title_suffix(title)
        if stripped:
            queries.append(stripped)
        if title.strip() and title.strip() not in queries:
            queries.append(title.strip())

        for query in queries:
            songs = self._destination.find_candidates_by_title(query, limit)
            if songs:
                return songs[:limit]

        if "/" not in title:
            return []

        found: dict[str, CandidateSong] = {}
        for segment in title.split("/"):
            query = strip_title_suffix(segment)
            if not query:
                continue
            for song in self._destination.find_candidates_by_title(query, limit):
                found.setdefault(song.id, song)
            if len(found) >= limit:
                break

        return list(found.values())[:limit]


# =============================================================================
# MATCH LIST HELPERS
# =============================================================================

def get_match_statistics(matches: list[TrackMatch]) -> MatchStatistics:
    """Count matched/ambiguous/unmatched tracks and matched tracks per strategy."""
    return MatchStatistics.from_matches(matches)


def get_ambiguous_matches(matches: list[TrackMatch]) -> list[TrackMatch]:
    return [m for m in matches if m.status is MatchStatus.AMBIGUOUS]


def get_unmatched_tracks(matches: list[TrackMatch]) -> list[SourceTrack]:
    """Tracks that will not be exported (unmatched and ambiguous)."""
    return [
        m.source_track for m in matches
        if m.status in (MatchStatus.UNMATCHED, MatchStatus.AMBIGUOUS)
    ]


def get_matched_tracks(matches: list[TrackMatch]) -> list[tuple[SourceTrack, CandidateSong, MatchStrategyName]]:
    """(track, song, strategy) for every MATCHED track that carries a song."""
    return [
        (m.source_track, m.candidate_song, m.match_strategy)
        for m in matches
        if m.is_matched
    ]
