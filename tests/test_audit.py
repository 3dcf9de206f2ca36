"""
Tests for the file audit logger.

Tests cover the reading log layouts, headers, size and daily rotation,
retention cleanup, JSON events and failure handling.
"""

import json
import os
import time
from datetime import timedelta
from pathlib import Path
from unittest.mock import patch

import pytest

from thermotracker.config import AppConfig
from thermotracker.components.audit import (
    FileAuditLogger,
    HUMAN_READABLE_HEADER,
    SEPARATOR_LINE,
    TAB_SEPARATED_HEADER,
    pad_field,
    status_label
)
from thermotracker.models import AlertType
from thermotracker.utils import utc_now


@pytest.fixture
def audit_logger(sample_config):
    """Audit logger writing into the temporary log directory."""
    logger = FileAuditLogger(sample_config)
    yield logger
    logger.close()


def _lines(path: Path):
    return path.read_text(encoding="utf-8").splitlines()


class TestFileAuditLogger:
    """Test suite for FileAuditLogger."""

    def test_init_creates_file_with_header(self, sample_config, audit_logger):
        """Test that a new daily file starts with the header."""
        expected_name = f"Sensor_Readings_{utc_now():%Y%m%d}.txt"

        assert audit_logger.current_log_file_path.name == expected_name
        assert _lines(audit_logger.current_log_file_path) == [HUMAN_READABLE_HEADER, SEPARATOR_LINE]
        assert Path(sample_config.file_logging.log_directory).is_dir()

    def test_header_not_repeated_on_reopen(self, sample_config, audit_logger, make_reading):
        """Test that reopening an existing file does not duplicate the header."""
        audit_logger.log_reading(make_reading(23.0))
        second = FileAuditLogger(sample_config)
        second.log_reading(make_reading(23.5))
        second.close()

        lines = _lines(audit_logger.current_log_file_path)
        assert lines.count(HUMAN_READABLE_HEADER) == 1
        assert len(lines) == 4

    def test_log_reading_human_readable(self, audit_logger, make_reading):
        """Test the fixed-width reading line."""
        audit_logger.log_reading(make_reading(23.5))

        line = _lines(audit_logger.current_log_file_path)[-1]
        columns = [c.strip() for c in line.split(" | ")]

        assert columns == ["2026-10-19 12:00:00", "Sensor 1", "Server Room A", "23.50°C", "VALID", "NORMAL"]
        assert audit_logger.stats["readings_logged"] == 1

    def test_human_readable_columns_align_with_header(self, audit_logger, make_reading):
        """Test that entry separators line up with the header separators."""
        audit_logger.log_reading(make_reading(23.5))

        line = _lines(audit_logger.current_log_file_path)[-1]
        header_bars = [i for i, c in enumerate(HUMAN_READABLE_HEADER) if c == "|"]
        line_bars = [i for i, c in enumerate(line) if c == "|"]

        assert line_bars == header_bars

    def test_log_reading_tab_separated(self, config_data, make_reading):
        """Test the tab-separated reading line."""
        config_data["file_logging"]["use_human_readable_format"] = False
        logger = FileAuditLogger(AppConfig(**config_data))

        logger.log_reading(make_reading(
            999.99, sensor_name="Rack\tSensor", is_valid=False, is_faulty=True, alert_type=AlertType.FAULT
        ))
        lines = _lines(logger.current_log_file_path)
        logger.close()

        assert lines[0] == TAB_SEPARATED_HEADER
        assert lines[1].split("\t") == [
            "2026-10-19 12:00:00", "Rack Sensor", "Server Room A", "999.99", "FAULTY", "Fault"
        ]

    def test_no_header(self, config_data, make_reading):
        """Test that headers can be disabled."""
        config_data["file_logging"]["include_header"] = False
        logger = FileAuditLogger(AppConfig(**config_data))

        logger.log_reading(make_reading(23.0))
        lines = _lines(logger.current_log_file_path)
        entry_count = logger.get_current_entry_count()
        logger.close()

        assert len(lines) == 1
        assert entry_count == 1

    @pytest.mark.parametrize("overrides,expected", [
        ({"is_faulty": True, "is_valid": False}, "FAULTY"),
        ({"is_spike": True, "is_valid": False}, "SPIKE"),
        ({"is_valid": False}, "INVALID"),
        ({"is_anomaly": True}, "ANOMALY"),
        ({}, "VALID"),
    ])
    def test_status_label(self, make_reading, overrides, expected):
        """Test status precedence."""
        assert status_label(make_reading(23.0, **overrides)) == expected

    def test_pad_field(self):
        """Test fixed-width padding and truncation."""
        assert pad_field("abc", 5) == "abc  "
        assert pad_field("", 3) == "   "
        assert pad_field("A very long sensor name here", 10) == "A very ..."

    def test_size_rotation_repeats_header(self, config_data, make_reading):
        """Test that size-based rotation starts each file with the header."""
        config_data["file_logging"]["max_file_size_mb"] = 0.0005
        logger = FileAuditLogger(AppConfig(**config_data))

        for _ in range(20):
            logger.log_reading(make_reading(23.0))

        current = logger.current_log_file_path
        rotated = current.with_name(current.name + ".1")
        log_files = logger.get_log_files()
        logger.close()

        assert rotated.exists()
        assert _lines(current)[0] == HUMAN_READABLE_HEADER
        assert _lines(rotated)[:2] == [HUMAN_READABLE_HEADER, SEPARATOR_LINE]
        assert current.stat().st_size <= 0.0005 * 1024 * 1024 + 200
        assert len(log_files) > 1

    def test_rotation_disabled(self, config_data, make_reading):
        """Test that disabling rotation keeps a single file."""
        config_data["file_logging"]["max_file_size_mb"] = 0.0005
        config_data["file_logging"]["enable_rotation"] = False
        logger = FileAuditLogger(AppConfig(**config_data))

        for _ in range(20):
            logger.log_reading(make_reading(23.0))
        log_files = logger.get_log_files()
        entry_count = logger.get_current_entry_count()
        logger.close()

        assert len(log_files) == 1
        assert entry_count == 20

    def test_daily_file_switch(self, audit_logger, make_reading):
        """Test that a date change opens a new daily file with a header."""
        first_path = audit_logger.current_log_file_path
        tomorrow = utc_now() + timedelta(days=1)

        with patch("thermotracker.components.audit.utc_now", return_value=tomorrow):
            audit_logger.log_reading(make_reading(23.0))

        assert audit_logger.current_log_file_path != first_path
        assert audit_logger.current_log_file_path.name == f"Sensor_Readings_{tomorrow:%Y%m%d}.txt"
        assert _lines(audit_logger.current_log_file_path)[0] == HUMAN_READABLE_HEADER
        assert len(_lines(first_path)) == 2

    def test_record_event_writes_json(self, sample_config, audit_logger):
        """Test structured event records."""
        audit_logger.record_event("fault_injected", "Sensor 1")
        audit_logger.record_event("spike_detected", "Sensor 2", temperature=35.5)

        events_path = Path(sample_config.file_logging.log_directory) / "audit_events.log"
        payloads = [json.loads(line.split(" | ", 2)[2]) for line in _lines(events_path)]

        assert payloads[0] == {"action": "fault_injected", "sensor": "Sensor 1"}
        assert payloads[1] == {"action": "spike_detected", "sensor": "Sensor 2", "meta": {"temperature": 35.5}}
        assert audit_logger.stats["events_recorded"] == 2

    def test_event_metadata_falls_back_to_str(self, sample_config, audit_logger):
        """Test that non-JSON metadata is serialised as text."""
        audit_logger.record_event("sensor_started", "Sensor 1", at=utc_now())

        events_path = Path(sample_config.file_logging.log_directory) / "audit_events.log"
        payload = json.loads(_lines(events_path)[-1].split(" | ", 2)[2])

        assert isinstance(payload["meta"]["at"], str)

    def test_events_do_not_reach_reading_log(self, audit_logger):
        """Test that the two trails stay separate."""
        audit_logger.record_event("fault_injected", "Sensor 1")

        assert audit_logger.get_current_entry_count() == 0

    def test_get_logging_info(self, audit_logger, make_reading):
        """Test the logging snapshot used by the dashboard."""
        for temperature in (22.5, 23.0, 23.5):
            audit_logger.log_reading(make_reading(temperature))

        info = audit_logger.get_logging_info()

        assert info.current_file_entry_count == 3
        assert info.total_log_files == 1
        assert info.current_log_file_size_bytes > 0
        assert info.format == "Human-readable"
        assert info.current_log_file_path.endswith(audit_logger.current_log_file_path.name)

    def test_clean_old_log_files(self, sample_config, audit_logger):
        """Test retention cleanup of old reading files."""
        log_dir = Path(sample_config.file_logging.log_directory)
        old_file = log_dir / "Sensor_Readings_20200101.txt"
        recent_file = log_dir / "Sensor_Readings_20200102.txt"
        old_file.write_text("old\n")
        recent_file.write_text("recent\n")
        ten_days_ago = time.time() - 10 * 24 * 3600
        os.utime(old_file, (ten_days_ago, ten_days_ago))

        deleted = audit_logger.clean_old_log_files()

        assert deleted == 1
        assert not old_file.exists()
        assert recent_file.exists()
        assert audit_logger.current_log_file_path.exists()

    def test_write_failure_is_not_raised(self, audit_logger, make_reading):
        """Test that a failed write is logged and counted, not raised."""
        with patch.object(audit_logger, "format_entry", side_effect=OSError("disk full")):
            audit_logger.log_reading(make_reading(23.0))

        assert audit_logger.stats["write_failures"] == 1
        assert audit_logger.stats["readings_logged"] == 0
