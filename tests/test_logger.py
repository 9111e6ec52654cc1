"""Test logging setup and report files"""

import pytest

from spot_navidrome.core.logger import (
    get_logger,
    log_ambiguous_match,
    log_export_failure,
    log_unmatched_track,
    setup_logging,
    shutdown_logging,
)


@pytest.fixture
def logs_dir(temp_dir):
    """Logging configured into a temporary directory"""
    setup_logging(temp_dir)
    yield temp_dir / "logs"
    shutdown_logging()


def read_report(logs_dir, prefix):
    [path] = logs_dir.glob(f"{prefix}_*.log")
    return path.read_text(encoding="utf-8")


class TestReports:
    """Test report files"""

    def test_files_created(self, logs_dir):
        """Every log file is created at setup"""
        prefixes = {path.name.rsplit("_", 2)[0] for path in logs_dir.glob("*.log")}
        assert prefixes == {
            "log_full", "log_errors", "unmatched_tracks", "ambiguous_matches", "export_failures",
        }

    def test_unmatched_report(self, logs_dir):
        """Unmatched tracks are written with their context"""
        log_unmatched_track(
            get_logger("test"), "Halo", "Beyonce", "I Am... Sasha Fierce", "4:21",
            "https://open.spotify.com/track/x", "no candidates", playlist_name="Road Trip",
        )

        report = read_report(logs_dir, "unmatched_tracks")
        assert "Beyonce - Halo" in report
        assert "Playlist: Road Trip" in report
        assert "Reason: no candidates" in report
        assert read_report(logs_dir, "ambiguous_matches") == ""

    def test_ambiguous_report(self, logs_dir):
        """Ambiguous matches list their alternatives"""
        log_ambiguous_match(
            get_logger("test"), "Creep", "Radiohead", "https://open.spotify.com/track/y",
            "Radiohead - Creep", 0.93, [("Radiohead - Creep (Live)", 0.91)],
        )

        report = read_report(logs_dir, "ambiguous_matches")
        assert "Best: Radiohead - Creep (score: 0.93)" in report
        assert "  - Radiohead - Creep (Live) (score: 0.91)" in report

    def test_export_failure_goes_to_error_log(self, logs_dir):
        """Export failures reach both the report and the error log"""
        log_export_failure(get_logger("test"), "Road Trip", "Halo", "Beyonce", "HTTP 500")

        assert "[Road Trip] Beyonce - Halo" in read_report(logs_dir, "export_failures")
        assert "HTTP 500" in read_report(logs_dir, "log_errors")
