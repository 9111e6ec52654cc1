"""
Track matching for spot-navidrome.

Resolves Spotify tracks to songs hosted on Navidrome:
    - similarity: pure scoring functions
    - strategies: ISRC, strict and fuzzy resolvers
    - orchestrator: per-track resolution and match list helpers
    - batch: full and differential matching of track lists
      (imported from spot_navidrome.matching.batch)
"""

from spot_navidrome.matching.models import (
    BatchProgress,
    BatchResult,
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

__all__ = [
    "MatchStatus",
    "MatchStrategyName",
    "TrackMatch",
    "MatchStatistics",
    "BatchProgress",
    "BatchResult",
    "CandidateSearchMode",
    "MatchingOptions",
    "MatchingOrchestrator",
    "get_match_statistics",
    "get_ambiguous_matches",
    "get_unmatched_tracks",
    "get_matched_tracks",
]
