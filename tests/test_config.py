"""Test configuration loading"""

from pathlib import Path

import pytest

from spot_navidrome.core.config import DEFAULT_REDIRECT_URI, load_config
from spot_navidrome.core.exceptions import ConfigError


MINIMAL_CONFIG = """
spotify:
  client_id: "abc"
  client_secret: "def"
navidrome:
  url: "http://localhost:4533/"
  username: "admin"
  password: "secret"
output:
  directory: "{directory}"
"""


def write_config(temp_dir: Path, content: str) -> Path:
    path = temp_dir / "config.yaml"
    path.write_text(content, encoding="utf-8")
    return path


class TestLoadConfig:
    """Test load_config"""

    def test_minimal(self, temp_dir):
        """Optional sections get their defaults"""
        path = write_config(temp_dir, MINIMAL_CONFIG.format(directory=temp_dir / "out"))

        config = load_config(path)

        assert config.spotify.client_id == "abc"
        assert config.spotify.redirect_uri == DEFAULT_REDIRECT_URI
        assert config.navidrome.url == "http://localhost:4533"
        assert config.matching.fuzzy_threshold == 0.8
        assert config.matching.candidate_search == "artist"
        assert config.matching.concurrency == 1
        assert config.export.skip_unmatched is True
        assert config.output.database_path == (temp_dir / "out").resolve() / "export_cache.db"

    def test_matching_section(self, temp_dir):
        """Matching options are read and validated"""
        content = MINIMAL_CONFIG.format(directory=temp_dir) + """
matching:
  enable_isrc: false
  fuzzy_threshold: 0.7
  max_search_results: 100
  candidate_search: title
  concurrency: 4
export:
  skip_unmatched: false
"""
        config = load_config(write_config(temp_dir, content))

        assert config.matching.enable_isrc is False
        assert config.matching.enable_fuzzy is True
        assert config.matching.fuzzy_threshold == 0.7
        assert config.matching.max_search_results == 100
        assert config.matching.candidate_search == "title"
        assert config.matching.concurrency == 4
        assert config.export.skip_unmatched is False

    def test_missing_file(self, temp_dir):
        """A missing file raises ConfigError"""
        with pytest.raises(ConfigError):
            load_config(temp_dir / "nope.yaml")

    def test_invalid_yaml(self, temp_dir):
        """Broken YAML raises ConfigError"""
        with pytest.raises(ConfigError):
            load_config(write_config(temp_dir, "spotify: [unclosed"))

    def test_missing_section(self, temp_dir):
        """Required sections are enforced"""
        content = MINIMAL_CONFIG.format(directory=temp_dir).replace("navidrome:", "other:")
        with pytest.raises(ConfigError) as exc_info:
            load_config(write_config(temp_dir, content))
        assert "navidrome" in exc_info.value.message

    @pytest.mark.parametrize("extra", [
        "matching:\n  fuzzy_threshold: 1.5\n",
        "matching:\n  concurrency: 0\n",
        "matching:\n  candidate_search: album\n",
        "matching:\n  enable_strict: \"yes\"\n",
        "export:\n  skip_unmatched: 1\n",
    ])
    def test_invalid_values(self, temp_dir, extra):
        """Out-of-range values raise ConfigError"""
        content = MINIMAL_CONFIG.format(directory=temp_dir) + extra
        with pytest.raises(ConfigError):
            load_config(write_config(temp_dir, content))

    def test_invalid_url(self, temp_dir):
        """The Navidrome URL needs a scheme"""
        content = MINIMAL_CONFIG.format(directory=temp_dir).replace("http://localhost:4533/", "localhost:4533")
        with pytest.raises(ConfigError):
            load_config(write_config(temp_dir, content))
