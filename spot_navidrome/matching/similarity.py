"""
Similarity scoring between Spotify tracks and Navidrome songs.

Pure, deterministic functions. Every score is a float in [0, 1].

Scoring Algorithm:
    1. Normalize both sides (lowercase, strip diacritics and punctuation)
    2. Field-specific cleanup:
         - title:  strip "(...)"/" - ..." suffix annotations and live markers
         - artist: strip collaboration markers (feat, ft, &, x, vs, ...)
         - album:  strip soundtrack/volume/disc boilerplate
    3. Edit-distance similarity per field (rapidfuzz Levenshtein)
    4. Weighted composite: artist 0.25, title 0.35, duration 0.25, album 0.15
    5. Exact-title floor (0.85 or 0.75) and corroboration bonuses (cap 0.95)

Dependencies:
    - rapidfuzz: Levenshtein edit distance

Usage:
    from spot_navidrome.matching.similarity import track_similarity, find_best_match

    score = track_similarity(track, song)
    result = find_best_match(track, candidates, threshold=0.8)
"""

import re
import unicodedata
from dataclasses import dataclass

from rapidfuzz.distance import Levenshtein

from spot_navidrome.catalog.models import CandidateSong, SourceTrack


# =============================================================================
# NORMALIZATION TABLES
# =============================================================================

# Trailing "(...)"/"[...]" annotation, or everything from the first separator
TITLE_SUFFIX_PATTERN = re.compile(r"[(\[].*?[)\]]\s*$|[-–—~/].*$")

# Removed from titles (case-insensitive, anywhere in the string)
LIVE_INDICATORS = (
    " (live)",
    "- live",
    " [live]",
    " live",
    "(live)",
    "-live",
    "[live]",
    "live",
)

# Removed from artist names (case-insensitive, anywhere in the string)
COLLABORATION_INDICATORS = (
    "feat", "feat.", "ft", "ft.",
    "with", " x ",
    " and ", " & ",
    " vs ", " versus ",
    " presents ", " presenting ",
    " pres. ", " pres ",
    " prod ", " produced by ",
    "DJ ",
)

# Removed from album names (case-insensitive, anywhere in the string)
SOUNDTRACK_WORDS = (
    "original", "sound", "track", "ost", " soundtrack", "score",
    "complete", "vol", "volume", " disc ", "disk",
)

# Duration difference (ms) below which similarity stays >= 0.9
DURATION_THRESHOLD_MS = 3000

# Duration difference (ms) at which similarity reaches 0
DURATION_ZERO_MS = 60000

# Album token overlap is a weaker signal than title/artist
ALBUM_OVERLAP_WEIGHT = 0.8

# Scores within this distance of the best fuzzy score make the match ambiguous
AMBIGUITY_MARGIN = 0.05


def _compile_word_patterns(words: tuple[str, ...]) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(re.escape(word), re.IGNORECASE) for word in words)


_LIVE_PATTERNS = _compile_word_patterns(LIVE_INDICATORS)
_COLLABORATION_PATTERNS = _compile_word_patterns(COLLABORATION_INDICATORS)
_SOUNDTRACK_PATTERNS = _compile_word_patterns(SOUNDTRACK_WORDS)


def _remove_words(text: str, patterns: tuple[re.Pattern[str], ...]) -> str:
    for pattern in patterns:
        text = pattern.sub(" ", text)
    return text


# =============================================================================
# STRING SIMILARITY
# =============================================================================

def normalize_text(text: str) -> str:
    """
    Normalize text for comparison.

    Lowercase, decompose Unicode and drop combining marks (diacritics),
    remove everything that is neither a word character nor whitespace,
    collapse whitespace and trim.

    Example:
        normalize_text("Beyoncé  - Halo!")  # "beyonce halo"
    """
    text = unicodedata.normalize("NFD", text.lower())
    text = "".join(ch for ch in text if not unicodedata.combining(ch))
    text = re.sub(r"[^\w\s]", "", text)
    return " ".join(text.split())


def levenshtein(a: str, b: str) -> int:
    """Classic edit distance (insertions, deletions, substitutions)."""
    return Levenshtein.distance(a, b)


def _normalized_similarity(a: str, b: str) -> float:
    """Edit-distance similarity of two already normalized strings."""
    if a == b:
        return 1.0

    max_length = max(len(a), len(b))
    if max_length == 0:
        return 1.0

    return 1.0 - levenshtein(a, b) / max_length


def string_similarity(a: str, b: str) -> float:
    """
    Similarity of two strings after normalize_text().

    Returns 1.0 when both normalize to the same string, including when both
    normalize to empty. Symmetric in its arguments.
    """
    return _normalized_similarity(normalize_text(a), normalize_text(b))


# =============================================================================
# FIELD SIMILARITY
# =============================================================================

def strip_title_suffix(title: str) -> str:
    """
    Remove a trailing bracketed annotation or a separator suffix.

    Example:
        strip_title_suffix("Song (Remastered 2011)")  # "Song"
        strip_title_suffix("Song - Radio Edit")       # "Song"
        strip_title_suffix("Song A / Song B")         # "Song A"
    """
    return TITLE_SUFFIX_PATTERN.sub("", title, count=1).strip()


def normalize_title(title: str) -> str:
    """
    Normalize a track title for comparison.

    Strips the suffix annotation (keeping the full title when stripping would
    leave nothing), removes live markers, then applies normalize_text().
    """
    stripped = strip_title_suffix(title) or title
    return normalize_text(_remove_words(stripped.lower(), _LIVE_PATTERNS))


def title_similarity(a: str, b: str) -> float:
    return _normalized_similarity(normalize_title(a), normalize_title(b))


def normalize_artist(name: str) -> str:
    """Remove collaboration markers, then apply normalize_text()."""
    return normalize_text(_remove_words(name.lower(), _COLLABORATION_PATTERNS))


def artist_similarity(a: str, b: str) -> float:
    return _normalized_similarity(normalize_artist(a), normalize_artist(b))


def normalize_album(name: str) -> str:
    """Remove soundtrack/volume/disc boilerplate, then apply normalize_text()."""
    return normalize_text(_remove_words(name.lower(), _SOUNDTRACK_PATTERNS))


def album_similarity(a: str, b: str) -> float:
    """
    Token-overlap similarity of two album names.

    Returns:
        1.0 when the normalized names are equal, 0.0 when either side has no
        tokens, otherwise 0.8 * (source tokens contained in, or containing,
        some destination token) / max(token counts).
    """
    normalized_a = normalize_album(a)
    normalized_b = normalize_album(b)

    if normalized_a == normalized_b:
        return 1.0

    parts_a = normalized_a.split()
    parts_b = normalized_b.split()
    if not parts_a or not parts_b:
        return 0.0

    overlapping = sum(
        1 for part in parts_a
        if any(part in other or other in part for other in parts_b)
    )
    return ALBUM_OVERLAP_WEIGHT * overlapping / max(len(parts_a), len(parts_b))


def duration_similarity(duration_ms: float, duration_seconds: float) -> float:
    """
    Similarity of a Spotify duration (ms) and a Navidrome duration (seconds).

    Differences under 3 seconds score between 0.9 and 1.0; beyond that the
    score degrades linearly to 0 at a 60-second difference.
    """
    diff = abs(duration_ms - duration_seconds * 1000)

    if diff < DURATION_THRESHOLD_MS:
        return max(1.0 - diff / DURATION_THRESHOLD_MS, 0.9)

    return 1.0 - min(diff / DURATION_ZERO_MS, 1.0)


# =============================================================================
# TRACK SIMILARITY
# =============================================================================

def track_similarity(track: SourceTrack, song: CandidateSong) -> float:
    """
    Composite similarity of a Spotify track and a Navidrome song.

    Args:
        track: Spotify track. All of its artists are compared, joined by a space.
        song: Navidrome candidate song.

    Returns:
        Score in [0, 1].

    Behavior:
        - Base: 0.25 artist + 0.35 title + 0.25 duration + 0.15 album
        - Exact title (after normalize_title): reweighted score floored at 0.85
          when artist >= 0.3, else at 0.75
        - Otherwise +0.1 when duration >= 0.9, and +0.05 when album >= 0.8 with
          title >= 0.6 or artist >= 0.4, each capped at 0.95
    """
    artist = artist_similarity(" ".join(track.artists), song.artist)
    title = title_similarity(track.title, song.title)
    duration = duration_similarity(track.duration_ms, song.duration_seconds)
    album = album_similarity(track.album, song.album)

    if title == 1.0:
        if artist >= 0.3:
            return max(artist * 0.2 + title * 0.4 + duration * 0.3 + album * 0.1, 0.85)
        return max(artist * 0.15 + title * 0.45 + duration * 0.3 + album * 0.1, 0.75)

    score = artist * 0.25 + title * 0.35 + duration * 0.25 + album * 0.15

    if duration >= 0.9:
        score = min(score + 0.1, 0.95)

    if album >= 0.8 and (title >= 0.6 or artist >= 0.4):
        score = min(score + 0.05, 0.95)

    return score


@dataclass(frozen=True)
class ScoredCandidate:
    """A candidate song with its track_similarity() score."""

    song: CandidateSong
    score: float


@dataclass(frozen=True)
class FuzzyMatchResult:
    """
    Result of find_best_match().

    Attributes:
        matches: Candidates scoring at or above the threshold, best first.
        has_ambiguous: True when another kept score lies within the
                       ambiguity margin of the best.
        close_alternatives: Those other kept candidates.
        best_match: Highest-scoring kept candidate, or None.
        closest: Highest-scoring candidate regardless of the threshold
                 (diagnostics for unmatched tracks), or None without candidates.
    """

    matches: tuple[ScoredCandidate, ...] = ()
    has_ambiguous: bool = False
    best_match: ScoredCandidate | None = None
    closest: ScoredCandidate | None = None
    close_alternatives: tuple[ScoredCandidate, ...] = ()


def find_best_match(
    track: SourceTrack,
    candidates: list[CandidateSong],
    threshold: float = 0.8,
    ambiguity_margin: float = AMBIGUITY_MARGIN
) -> FuzzyMatchResult:
    """
    Score every candidate and select the best one above the threshold.

    Args:
        track: Spotify track to match.
        candidates: Navidrome songs to score.
        threshold: Minimum score for a candidate to be kept.
        ambiguity_margin: Kept scores this close to the best make it ambiguous.

    Returns:
        FuzzyMatchResult. Ties keep candidate order (stable sort).

    Example:
        result = find_best_match(track, candidates)
        if result.best_match and not result.has_ambiguous:
            song = result.best_match.song
    """
    if not candidates:
        return FuzzyMatchResult()

    scored = sorted(
        (ScoredCandidate(song=song, score=track_similarity(track, song)) for song in candidates),
        key=lambda item: item.score,
        reverse=True,
    )
    kept = tuple(item for item in scored if item.score >= threshold)

    if not kept:
        return FuzzyMatchResult(closest=scored[0])

    best = kept[0]
    close = tuple(item for item in kept[1:] if item.score >= best.score - ambiguity_margin)

    return FuzzyMatchResult(
        matches=kept,
        has_ambiguous=len(close) > 0,
        best_match=best,
        closest=best,
        close_alternatives=close,
    )
