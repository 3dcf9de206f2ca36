"""
File audit log for the temperature sensor simulator.

Two append-only trails are kept under ``file_logging.log_directory``:

* a daily reading log (``Sensor_Readings_YYYYMMDD.txt`` by default), one line
  per finished reading in a fixed-width or tab-separated layout, rotated by
  size with the column header repeated at the top of every new file;
* an events file with one JSON payload per fault, spike or lifecycle event.

Write failures are reported through the diagnostic logger and never raised,
so a full disk cannot stop the simulation loop.
"""

import json
import logging
import os
import threading
import time
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, List, Optional

from thermotracker.components.base import AuditSink
from thermotracker.config import AppConfig
from thermotracker.models import AlertType, FileLoggingInfo, Reading
from thermotracker.utils import get_logger, utc_now, AuditLogError


# Column widths of the human-readable layout
SENSOR_NAME_WIDTH = 25
LOCATION_WIDTH = 16
TEMPERATURE_WIDTH = 11
STATUS_WIDTH = 8
ALERT_TYPE_WIDTH = 11

HUMAN_READABLE_HEADER = (
    "Timestamp           | Sensor Name                 | Location         | Temperature | Status   | Alert Type"
)
SEPARATOR_LINE = "-" * 110
TAB_SEPARATED_HEADER = "Timestamp\tSensorName\tLocation\tTemperature\tStatus\tAlertType"

ALERT_DISPLAY = {
    AlertType.NONE: "NORMAL",
    AlertType.THRESHOLD: "THRESHOLD",
    AlertType.ANOMALY: "ANOMALY",
    AlertType.SPIKE: "SPIKE",
    AlertType.FAULT: "FAULT",
}


def status_label(reading: Reading) -> str:
    """Single status word for a reading, most severe condition first."""
    if reading.is_faulty:
        return "FAULTY"
    if reading.is_spike:
        return "SPIKE"
    if not reading.is_valid:
        return "INVALID"
    if reading.is_anomaly:
        return "ANOMALY"
    return "VALID"


def pad_field(value: Optional[str], width: int) -> str:
    """Left-align a value in a fixed-width column, truncating with '...'."""
    if not value:
        return " " * width
    if len(value) > width:
        return value[:width - 3] + "..."
    return value.ljust(width)


def escape_field(value: Optional[str]) -> str:
    """Strip characters that would break a tab-separated line."""
    if not value:
        return ""
    return value.replace("\t", " ").replace("\r", " ").replace("\n", " ")


class HeaderRotatingFileHandler(RotatingFileHandler):
    """
    A RotatingFileHandler that writes a column header to every new file,
    both when the file is first created and after each rollover.
    """

    def __init__(self, filename: str, header_lines: List[str], max_bytes: int = 0, backup_count: int = 0):
        self.header_lines = header_lines
        super().__init__(filename, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8")
        if os.path.getsize(self.baseFilename) == 0:
            self._write_header()

    def _write_header(self) -> None:
        if not self.header_lines:
            return
        if self.stream is None:
            self.stream = self._open()
        for line in self.header_lines:
            self.stream.write(line + self.terminator)
        self.stream.flush()

    def doRollover(self):
        """Rotate the file, then start the fresh file with the header."""
        super().doRollover()
        self._write_header()


class FileAuditLogger(AuditSink):
    """Concrete audit sink writing readings and events to rotating files."""

    def __init__(self, config: AppConfig):
        """
        Initialize the audit logger and open today's reading log.

        Args:
            config: Application configuration
        """
        self.config = config
        self.settings = config.file_logging
        self.logger = get_logger(__name__)
        self.log_directory = Path(self.settings.log_directory)

        self._lock = threading.Lock()
        self._handler: Optional[HeaderRotatingFileHandler] = None
        self.current_log_file_path = self._log_file_path_for_today()

        # Audit statistics
        self.stats: Dict[str, int] = {
            "readings_logged": 0,
            "events_recorded": 0,
            "write_failures": 0,
            "files_deleted": 0
        }

        # Per-instance loggers keep handlers of different directories apart
        self._reading_log = logging.getLogger(f"thermotracker.audit.readings.{id(self):x}")
        self._reading_log.setLevel(logging.INFO)
        self._reading_log.propagate = False

        self._event_log = logging.getLogger(f"thermotracker.audit.events.{id(self):x}")
        self._event_log.setLevel(logging.INFO)
        self._event_log.propagate = False

        try:
            self.log_directory.mkdir(parents=True, exist_ok=True)
            self._open_reading_file(self.current_log_file_path)
            event_handler = RotatingFileHandler(
                filename=str(self.log_directory / self.settings.events_file_name),
                maxBytes=self._max_bytes(),
                backupCount=self.settings.backup_count,
                encoding="utf-8",
            )
        except OSError as e:
            raise AuditLogError(f"Failed to open audit log in {self.log_directory}: {str(e)}") from e

        event_handler.setFormatter(logging.Formatter(
            fmt="%(asctime)sZ | %(levelname)s | %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S",
        ))
        self._event_log.addHandler(event_handler)

        self.logger.info(f"File logging initialized. Log directory: {self.log_directory}")

    @property
    def header_lines(self) -> List[str]:
        if not self.settings.include_header:
            return []
        if self.settings.use_human_readable_format:
            return [HUMAN_READABLE_HEADER, SEPARATOR_LINE]
        return [TAB_SEPARATED_HEADER]

    def _max_bytes(self) -> int:
        if not self.settings.enable_rotation:
            return 0
        return int(self.settings.max_file_size_mb * 1024 * 1024)

    def _log_file_path_for_today(self) -> Path:
        file_name = self.settings.log_file_name.replace("{date}", utc_now().strftime("%Y%m%d"))
        return self.log_directory / file_name

    def _open_reading_file(self, path: Path) -> None:
        if self._handler is not None:
            self._reading_log.removeHandler(self._handler)
            self._handler.close()

        self._handler = HeaderRotatingFileHandler(
            str(path),
            header_lines=self.header_lines,
            max_bytes=self._max_bytes(),
            backup_count=self.settings.backup_count,
        )
        self._handler.setFormatter(logging.Formatter("%(message)s"))
        self._reading_log.addHandler(self._handler)
        self.current_log_file_path = path

    def format_entry(self, reading: Reading) -> str:
        """Render one reading as a log line in the configured layout."""
        timestamp = reading.timestamp.strftime(self.settings.timestamp_format)
        status = status_label(reading)

        if self.settings.use_human_readable_format:
            return " | ".join([
                timestamp,
                pad_field(reading.sensor_name, SENSOR_NAME_WIDTH) + "  ",
                pad_field(reading.sensor_location, LOCATION_WIDTH),
                pad_field(f"{reading.temperature:.2f}°C", TEMPERATURE_WIDTH),
                pad_field(status, STATUS_WIDTH),
                pad_field(ALERT_DISPLAY[reading.alert_type], ALERT_TYPE_WIDTH),
            ])

        return "\t".join([
            timestamp,
            escape_field(reading.sensor_name),
            escape_field(reading.sensor_location),
            f"{reading.temperature:.2f}",
            status,
            reading.alert_type.value,
        ])

    def log_reading(self, reading: Reading) -> None:
        """
        Append a reading to today's log file.

        Switches to a new daily file when the date changes. Errors are logged
        and swallowed.
        """
        try:
            with self._lock:
                today_path = self._log_file_path_for_today()
                if today_path != self.current_log_file_path:
                    self._open_reading_file(today_path)
                    self.logger.info(f"Rotated to new daily log file: {today_path}")

                self._reading_log.info(self.format_entry(reading))

            self.stats["readings_logged"] += 1
            self.logger.debug(f"Logged reading to file: {reading.sensor_name}")
        except (OSError, ValueError) as e:
            self.stats["write_failures"] += 1
            self.logger.error(f"Failed to log sensor reading to file for sensor {reading.sensor_name}: {str(e)}")

    def record_event(self, action: str, sensor_name: str, **metadata: Any) -> None:
        """
        Append a structured event to the events file.

        Args:
            action: Event name, e.g. ``fault_injected``
            sensor_name: Sensor the event concerns
            **metadata: Additional context, serialised with ``str`` if needed
        """
        payload: Dict[str, Any] = {
            "action": action,
            "sensor": sensor_name,
        }
        if metadata:
            payload["meta"] = metadata

        try:
            self._event_log.info(json.dumps(payload, default=str))
            self.stats["events_recorded"] += 1
        except (OSError, ValueError, TypeError) as e:
            self.stats["write_failures"] += 1
            self.logger.error(f"Failed to record '{action}' event for {sensor_name}: {str(e)}")

    def get_log_files(self) -> List[Path]:
        """Reading log files (current and rotated), newest first."""
        prefix = self.settings.log_file_name.split("{date}")[0]
        files = [
            p for p in self.log_directory.iterdir()
            if p.is_file() and p.name.startswith(prefix) and p.name != self.settings.events_file_name
        ]
        return sorted(files, key=lambda p: p.stat().st_mtime, reverse=True)

    def clean_old_log_files(self) -> int:
        """
        Delete reading log files last modified before the retention window.

        Returns:
            Number of files deleted
        """
        cutoff = time.time() - self.settings.retention_days * 24 * 3600
        deleted = 0

        for path in self.get_log_files():
            if path == self.current_log_file_path:
                continue
            try:
                if path.stat().st_mtime < cutoff:
                    path.unlink()
                    deleted += 1
                    self.logger.info(f"Deleted old log file: {path}")
            except OSError as e:
                self.logger.warning(f"Failed to clean old log file {path}: {str(e)}")

        self.stats["files_deleted"] += deleted
        return deleted

    def get_current_entry_count(self) -> int:
        """Reading lines in the current file, header excluded."""
        path = self.current_log_file_path
        if not path.exists():
            return 0
        with open(path, "r", encoding="utf-8") as f:
            line_count = sum(1 for line in f if line.strip())
        return max(0, line_count - len(self.header_lines))

    def get_logging_info(self) -> FileLoggingInfo:
        """Snapshot of the reading log for the dashboard."""
        path = self.current_log_file_path
        try:
            size = path.stat().st_size if path.exists() else 0
            log_files = [str(p) for p in self.get_log_files()]
            entry_count = self.get_current_entry_count()
        except OSError as e:
            self.logger.warning(f"Failed to inspect log files: {str(e)}")
            size, log_files, entry_count = 0, [], 0

        return FileLoggingInfo(
            current_log_file_path=str(path.resolve()),
            current_log_file_size_bytes=size,
            total_log_files=len(log_files),
            log_files=log_files,
            current_file_entry_count=entry_count,
            format="Human-readable" if self.settings.use_human_readable_format else "Tab-separated"
        )

    def close(self) -> None:
        """Flush and close both log files."""
        for log in (self._reading_log, self._event_log):
            for handler in list(log.handlers):
                log.removeHandler(handler)
                handler.close()
        self._handler = None
        self.logger.info(
            f"Audit log closed ({self.stats['readings_logged']} readings, "
            f"{self.stats['events_recorded']} events)"
        )
