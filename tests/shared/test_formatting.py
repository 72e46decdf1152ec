"""Tests for shared utilities."""

import logging

from photo_triage.shared import format_percent, setup_logging


class TestFormatPercent:
    """Tests for format_percent."""

    def test_formats_fraction(self):
        assert format_percent(0.0) == "0%"
        assert format_percent(0.42) == "42%"
        assert format_percent(1.0) == "100%"

    def test_clamps_out_of_range(self):
        assert format_percent(-0.5) == "0%"
        assert format_percent(3.0) == "100%"


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_levels(self, monkeypatch):
        """Test verbose and quiet select the root level."""
        calls = []
        monkeypatch.setattr(logging, "basicConfig", lambda **kw: calls.append(kw))

        setup_logging()
        setup_logging(verbose=True)
        setup_logging(quiet=True, verbose=True)

        assert [c["level"] for c in calls] == [
            logging.INFO,
            logging.DEBUG,
            logging.WARNING,
        ]
