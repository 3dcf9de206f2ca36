"""
Terminal dashboard for the temperature sensor simulator.

Renders the latest reading of every online sensor as a pandas table, followed
by running statistics over the in-memory history and the state of the
reading audit log.
"""

import os
from typing import Dict, List, Mapping, Optional, Sequence

import pandas as pd

from thermotracker.config import AppConfig
from thermotracker.models import AlertType, FileLoggingInfo, Reading, Sensor
from thermotracker.utils import get_logger, utc_now


RULE_WIDTH = 110

ALERT_LABELS = {
    AlertType.NONE: "NORMAL",
    AlertType.THRESHOLD: "THRESHOLD",
    AlertType.ANOMALY: "ANOMALY",
    AlertType.SPIKE: "SPIKE",
    AlertType.FAULT: "FAULT",
}


def temperature_band(temperature: float) -> str:
    """Label a temperature with its display band."""
    if temperature < 20:
        return "COLD"
    if temperature < 22:
        return "COOL"
    if temperature <= 24:
        return "NORMAL"
    if temperature <= 26:
        return "WARM"
    return "HOT"


def format_file_size(size_bytes: int) -> str:
    if size_bytes < 1024:
        return f"{size_bytes} B"
    if size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    return f"{size_bytes / (1024 * 1024):.1f} MB"


class TerminalDashboard:
    """Plain-text dashboard printed once per tick."""

    def __init__(self, config: AppConfig):
        self.config = config
        self.fixed_range = config.temperature_range
        self.logger = get_logger(__name__)

    def sensor_table(self, sensors: Sequence[Sensor], history: Mapping[str, Sequence[Reading]]) -> pd.DataFrame:
        """
        Latest reading per online sensor.

        Args:
            sensors: Known sensors in display order
            history: In-memory readings per sensor name, oldest first

        Returns:
            DataFrame with one row per displayed sensor
        """
        rows = []
        for sensor in sensors:
            if sensor.status == "Offline":
                continue
            readings = history.get(sensor.name) or []
            if not readings:
                continue

            latest = readings[-1]
            rows.append({
                "Sensor": sensor.name,
                "Location": sensor.location,
                "Temperature": f"{latest.temperature:.2f}°C",
                "Band": temperature_band(latest.temperature),
                "Status": "VALID" if latest.is_valid else "INVALID",
                "Smoothed": f"{latest.smoothed_value:.2f}°C",
                "Quality": latest.quality_score,
                "Alerts": ALERT_LABELS[latest.alert_type],
            })

        return pd.DataFrame(rows, columns=[
            "Sensor", "Location", "Temperature", "Band", "Status", "Smoothed", "Quality", "Alerts"
        ])

    def statistics(self, sensors: Sequence[Sensor], history: Mapping[str, Sequence[Reading]]) -> Dict[str, float]:
        """Counts over the in-memory history of all sensors."""
        readings: List[Reading] = [r for s in sensors for r in history.get(s.name, [])]
        total = len(readings)
        valid = sum(1 for r in readings if r.is_valid)

        return {
            "total": total,
            "valid": valid,
            "validity_rate": (valid / total * 100) if total > 0 else 0.0,
            "anomalies": sum(1 for r in readings if r.is_anomaly),
            "spikes": sum(1 for r in readings if r.is_spike),
            "faults": sum(1 for r in readings if r.is_faulty),
            "sensors": len(sensors),
        }

    def render(
        self,
        sensors: Sequence[Sensor],
        history: Mapping[str, Sequence[Reading]],
        logging_info: Optional[FileLoggingInfo] = None
    ) -> str:
        """
        Build the full dashboard text.

        Args:
            sensors: Known sensors in display order
            history: In-memory readings per sensor name, oldest first
            logging_info: Optional audit log snapshot

        Returns:
            Dashboard as a multi-line string
        """
        fixed = f"{self.fixed_range.min}-{self.fixed_range.max}°C"
        lines = [
            " Temperature Sensor Dashboard ".center(RULE_WIDTH, "="),
            f"Fixed Validation Range: {fixed}",
            "",
        ]

        table = self.sensor_table(sensors, history)
        if table.empty:
            lines.append("No sensor readings yet.")
        else:
            lines.append(table.to_string(index=False))
        lines.append("")

        stats = self.statistics(sensors, history)
        lines.extend([
            " Statistics ".center(RULE_WIDTH, "-"),
            (
                f"Total: {stats['total']}   "
                f"Valid: {stats['valid']} ({stats['validity_rate']:.1f}%)   "
                f"Anomalies: {stats['anomalies']}   "
                f"Spikes: {stats['spikes']}"
            ),
            (
                f"Faults: {stats['faults']}   "
                f"Sensors: {stats['sensors']}   "
                f"Update: {utc_now():%H:%M:%S}   "
                f"Fixed Range: {fixed}"
            ),
            "",
        ])

        if logging_info is not None:
            lines.extend([
                " File Logging ".center(RULE_WIDTH, "-"),
                f"Current File: {os.path.basename(logging_info.current_log_file_path)}",
                f"File Size: {format_file_size(logging_info.current_log_file_size_bytes)}",
                f"Entries: {logging_info.current_file_entry_count}",
                f"Total Files: {logging_info.total_log_files}",
                f"Format: {logging_info.format}",
                "",
            ])

        lines.append(" Press Ctrl+C to exit ".center(RULE_WIDTH, "="))
        return "\n".join(lines)

    def display(
        self,
        sensors: Sequence[Sensor],
        history: Mapping[str, Sequence[Reading]],
        logging_info: Optional[FileLoggingInfo] = None
    ) -> None:
        """Clear the terminal and print the dashboard."""
        output = self.render(sensors, history, logging_info)
        self.logger.debug(f"Dashboard refreshed for {len(sensors)} sensors")
        # ANSI clear screen + cursor home
        print("\033[2J\033[H", end="")
        print(output, flush=True)
