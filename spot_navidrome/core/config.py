"""
Configuration management for spot-navidrome.

This module handles loading, validating, and providing access to the
application configuration stored in config.yaml.

The configuration file contains:
    - Spotify API credentials (client_id, client_secret, redirect_uri)
    - Navidrome server URL and credentials
    - Matching behavior (enabled strategies, fuzzy threshold, concurrency)
    - Export behavior (how unmatched tracks are counted)
    - Output directory for logs and the export cache database

Configuration File Location:
    By default config.yaml is read from the current working directory.
    A different file can be passed with --config.

Example config.yaml:
    spotify:
      client_id: "your_client_id_here"
      client_secret: "your_client_secret_here"
      redirect_uri: "http://127.0.0.1:8888/callback"

    navidrome:
      url: "http://localhost:4533"
      username: "admin"
      password: "secret"

    matching:
      enable_isrc: true
      enable_fuzzy: true
      enable_strict: true
      fuzzy_threshold: 0.8
      max_search_results: 500
      candidate_search: artist   # or "title"
      concurrency: 4

    export:
      skip_unmatched: true

    output:
      directory: "~/.spot-navidrome"
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from spot_navidrome.core.exceptions import ConfigError


# Default configuration file name (current working directory)
CONFIG_FILENAME = "config.yaml"

DEFAULT_REDIRECT_URI = "http://127.0.0.1:8888/callback"
DEFAULT_FUZZY_THRESHOLD = 0.8
DEFAULT_MAX_SEARCH_RESULTS = 500
CANDIDATE_SEARCH_MODES = ("artist", "title")


@dataclass(frozen=True)
class SpotifyConfig:
    """
    Spotify API credentials configuration.

    These credentials are obtained from the Spotify Developer Dashboard:
    https://developer.spotify.com/dashboard

    Attributes:
        client_id: The Spotify application client ID.
        client_secret: The Spotify application client secret.
        redirect_uri: OAuth redirect URI registered for the application.
                      User authentication is always needed because playlists
                      and Liked Songs are read from the current user's library.
    """
    client_id: str
    client_secret: str
    redirect_uri: str = DEFAULT_REDIRECT_URI


@dataclass(frozen=True)
class NavidromeConfig:
    """
    Navidrome server configuration.

    Attributes:
        url: Base URL of the Navidrome server, without a trailing slash.
             Example: "http://localhost:4533"
        username: Navidrome user that will own the exported playlists.
        password: Password of that user.
    """
    url: str
    username: str
    password: str


@dataclass(frozen=True)
class MatchingConfig:
    """
    Track matching configuration.

    Attributes:
        enable_isrc: Try ISRC (and single-duration) matching first.
        enable_fuzzy: Try weighted similarity matching.
        enable_strict: Try exact normalized artist/title matching.
        fuzzy_threshold: Minimum similarity (0..1) for a fuzzy match.
        max_search_results: Maximum number of candidate songs per track.
        candidate_search: "artist" looks candidates up by primary artist,
                          "title" by the track title.
        concurrency: Number of tracks matched in parallel. 1 = sequential.
    """
    enable_isrc: bool = True
    enable_fuzzy: bool = True
    enable_strict: bool = True
    fuzzy_threshold: float = DEFAULT_FUZZY_THRESHOLD
    max_search_results: int = DEFAULT_MAX_SEARCH_RESULTS
    candidate_search: str = "artist"
    concurrency: int = 1


@dataclass(frozen=True)
class ExportConfig:
    """
    Export behavior configuration.

    Attributes:
        skip_unmatched: If True, tracks without a confident match are counted
                        as skipped. If False they are counted as failed and
                        listed in the export errors.
    """
    skip_unmatched: bool = True


@dataclass(frozen=True)
class OutputConfig:
    """
    Output directory configuration.

    Attributes:
        directory: Absolute path of the directory holding logs/ and the
                   export cache database. ~ is expanded.
    """
    directory: Path

    @property
    def database_path(self) -> Path:
        """Path of the SQLite export cache."""
        return self.directory / "export_cache.db"


@dataclass(frozen=True)
class Config:
    """
    Complete application configuration.

    This is the main configuration object that aggregates all configuration
    sections. It is created by load_config() and should be treated as
    immutable (frozen dataclass).

    Attributes:
        spotify: Spotify API credentials.
        navidrome: Navidrome server settings.
        matching: Matching behavior settings.
        export: Export behavior settings.
        output: Output directory settings.

    Example:
        config = load_config()
        print(f"Exporting to: {config.navidrome.url}")
        print(f"Matching {config.matching.concurrency} tracks at a time")
    """
    spotify: SpotifyConfig
    navidrome: NavidromeConfig
    matching: MatchingConfig
    export: ExportConfig
    output: OutputConfig


def load_config(config_path: Path | None = None) -> Config:
    """
    Load and validate configuration from config.yaml.

    This function reads the YAML configuration file, validates all required
    fields are present and have valid values, expands paths, and returns
    a frozen Config object.

    Args:
        config_path: Optional explicit path to config file.
                     If None, looks for config.yaml in current working directory.

    Returns:
        Config: A frozen dataclass containing all configuration values.

    Raises:
        ConfigError: If the config file is not found, has invalid YAML syntax,
                     is missing required fields, or contains invalid values.

    Behavior:
        1. Locate config file (explicit path or CWD/config.yaml)
        2. Read and parse YAML content
        3. Validate structure (required sections exist)
        4. Parse spotify, navidrome and output sections
        5. Parse matching and export sections with defaults
        6. Create and return frozen Config object
    """
    if config_path is None:
        config_path = Path.cwd() / CONFIG_FILENAME

    if not config_path.exists():
        raise ConfigError(
            f"Configuration file not found: {config_path}",
            details={"file_path": str(config_path)}
        )

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            content = f.read()
    except IOError as e:
        raise ConfigError(
            f"Failed to read configuration file: {e}",
            details={"file_path": str(config_path), "original_error": str(e)}
        ) from e

    try:
        raw_config = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigError(
            f"Invalid YAML syntax in configuration file: {e}",
            details={"file_path": str(config_path), "original_error": str(e)}
        ) from e

    if not isinstance(raw_config, dict):
        raise ConfigError(
            "Configuration file must contain a YAML dictionary",
            details={"file_path": str(config_path)}
        )

    _validate_config(raw_config)

    return Config(
        spotify=_parse_spotify_config(raw_config["spotify"]),
        navidrome=_parse_navidrome_config(raw_config["navidrome"]),
        matching=_parse_matching_config(_optional_section(raw_config, "matching")),
        export=_parse_export_config(_optional_section(raw_config, "export")),
        output=_parse_output_config(raw_config["output"]),
    )


def _validate_config(raw_config: dict[str, Any]) -> None:
    """
    Validate that the required sections exist and are dictionaries.

    Args:
        raw_config: Dictionary parsed from config.yaml.

    Raises:
        ConfigError: If a required section is missing or not a dictionary.
    """
    required_sections = ["spotify", "navidrome", "output"]

    for section in required_sections:
        if section not in raw_config:
            raise ConfigError(
                f"Missing required section: '{section}'",
                details={"missing_section": section}
            )

        if not isinstance(raw_config[section], dict):
            raise ConfigError(
                f"Section '{section}' must be a dictionary",
                details={"section": section}
            )


def _optional_section(raw_config: dict[str, Any], name: str) -> dict[str, Any] | None:
    section = raw_config.get(name)
    if section is not None and not isinstance(section, dict):
        raise ConfigError(
            f"Section '{name}' must be a dictionary",
            details={"section": name}
        )
    return section


def _require_string(section: dict[str, Any], section_name: str, key: str) -> str:
    value = section.get(key, "")
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(
            f"'{section_name}.{key}' must be a non-empty string",
            details={"field": f"{section_name}.{key}"}
        )
    return value.strip()


def _parse_spotify_config(spotify_section: dict[str, Any]) -> SpotifyConfig:
    """
    Parse and validate the Spotify configuration section.

    Args:
        spotify_section: The 'spotify' section from config.yaml.

    Returns:
        SpotifyConfig: Validated Spotify credentials.

    Raises:
        ConfigError: If client_id or client_secret is missing or empty.
    """
    redirect_uri = spotify_section.get("redirect_uri", DEFAULT_REDIRECT_URI)
    if not isinstance(redirect_uri, str) or not redirect_uri.strip():
        raise ConfigError(
            "'spotify.redirect_uri' must be a non-empty string",
            details={"field": "spotify.redirect_uri"}
        )

    return SpotifyConfig(
        client_id=_require_string(spotify_section, "spotify", "client_id"),
        client_secret=_require_string(spotify_section, "spotify", "client_secret"),
        redirect_uri=redirect_uri.strip()
    )


def _parse_navidrome_config(navidrome_section: dict[str, Any]) -> NavidromeConfig:
    """
    Parse and validate the Navidrome configuration section.

    The trailing slash of the URL is removed so endpoint paths can be
    appended directly.

    Raises:
        ConfigError: If url, username or password is missing, or if the URL
                     does not start with http:// or https://.
    """
    url = _require_string(navidrome_section, "navidrome", "url").rstrip("/")
    if not url.startswith(("http://", "https://")):
        raise ConfigError(
            "'navidrome.url' must start with http:// or https://",
            details={"field": "navidrome.url", "value": url}
        )

    return NavidromeConfig(
        url=url,
        username=_require_string(navidrome_section, "navidrome", "username"),
        password=_require_string(navidrome_section, "navidrome", "password")
    )


def _parse_matching_config(matching_section: dict[str, Any] | None) -> MatchingConfig:
    """
    Parse and validate the matching configuration section.

    Applies defaults if the section is missing or fields are not specified.

    Raises:
        ConfigError: If a flag is not a boolean, fuzzy_threshold is outside
                     0..1, a count is not a positive integer, or
                     candidate_search is not "artist" or "title".
    """
    if matching_section is None:
        return MatchingConfig()

    defaults = MatchingConfig()
    values: dict[str, Any] = {}

    for flag in ("enable_isrc", "enable_fuzzy", "enable_strict"):
        raw = matching_section.get(flag)
        if raw is None:
            continue
        if not isinstance(raw, bool):
            raise ConfigError(
                f"'matching.{flag}' must be true or false",
                details={"field": f"matching.{flag}", "value": raw}
            )
        values[flag] = raw

    raw_threshold = matching_section.get("fuzzy_threshold")
    if raw_threshold is not None:
        if isinstance(raw_threshold, bool) or not isinstance(raw_threshold, (int, float)) \
                or not 0 <= raw_threshold <= 1:
            raise ConfigError(
                "'matching.fuzzy_threshold' must be a number between 0 and 1",
                details={"field": "matching.fuzzy_threshold", "value": raw_threshold}
            )
        values["fuzzy_threshold"] = float(raw_threshold)

    for count in ("max_search_results", "concurrency"):
        raw = matching_section.get(count)
        if raw is None:
            continue
        if isinstance(raw, bool) or not isinstance(raw, int) or raw < 1:
            raise ConfigError(
                f"'matching.{count}' must be a positive integer",
                details={"field": f"matching.{count}", "value": raw}
            )
        values[count] = raw

    raw_mode = matching_section.get("candidate_search")
    if raw_mode is not None:
        if raw_mode not in CANDIDATE_SEARCH_MODES:
            raise ConfigError(
                "'matching.candidate_search' must be 'artist' or 'title'",
                details={"field": "matching.candidate_search", "value": raw_mode}
            )
        values["candidate_search"] = raw_mode

    return MatchingConfig(
        enable_isrc=values.get("enable_isrc", defaults.enable_isrc),
        enable_fuzzy=values.get("enable_fuzzy", defaults.enable_fuzzy),
        enable_strict=values.get("enable_strict", defaults.enable_strict),
        fuzzy_threshold=values.get("fuzzy_threshold", defaults.fuzzy_threshold),
        max_search_results=values.get("max_search_results", defaults.max_search_results),
        candidate_search=values.get("candidate_search", defaults.candidate_search),
        concurrency=values.get("concurrency", defaults.concurrency)
    )


def _parse_export_config(export_section: dict[str, Any] | None) -> ExportConfig:
    """Parse the optional export section."""
    if export_section is None:
        return ExportConfig()

    skip_unmatched = export_section.get("skip_unmatched", True)
    if not isinstance(skip_unmatched, bool):
        raise ConfigError(
            "'export.skip_unmatched' must be true or false",
            details={"field": "export.skip_unmatched", "value": skip_unmatched}
        )
    return ExportConfig(skip_unmatched=skip_unmatched)


def _parse_output_config(output_section: dict[str, Any]) -> OutputConfig:
    """
    Parse and validate the output configuration section.

    Expands ~ to home directory and converts to absolute Path.
    Does NOT create the directory (that happens at startup in the CLI).

    Raises:
        ConfigError: If directory is missing or empty.
    """
    directory = _require_string(output_section, "output", "directory")
    return OutputConfig(directory=Path(directory).expanduser().resolve())
