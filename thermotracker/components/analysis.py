"""
History analysis component for the temperature sensor simulator.

Smooths a sensor's recent readings into a rolling average and flags
statistical outliers with a two-sigma test over the same window. Only clean
history (valid, not faulty, not spike) contributes to either statistic.
"""

from typing import Dict, List, Sequence

import numpy as np

from thermotracker.components.base import AnalysisComponent
from thermotracker.config import AppConfig
from thermotracker.models import Reading
from thermotracker.utils import get_logger


MIN_ANOMALY_SAMPLES = 5
ANOMALY_SIGMA = 2.0


def clean_temperatures(readings: Sequence[Reading]) -> List[float]:
    """Temperatures of readings that are valid and neither faulty nor spikes."""
    return [
        r.temperature for r in readings
        if not r.is_faulty and not r.is_spike and r.is_valid
    ]


class HistoryAnalysisComponent(AnalysisComponent):
    """Concrete implementation of smoothing and z-score anomaly detection."""

    def __init__(self, config: AppConfig):
        """
        Initialize analysis component.

        Args:
            config: Application configuration
        """
        super().__init__(config)
        self.logger = get_logger(__name__)

        # Analysis statistics
        self.stats: Dict[str, int] = {
            "readings_smoothed": 0,
            "anomaly_checks": 0,
            "anomalies_detected": 0,
            "insufficient_history": 0
        }

    def execute(self, current: Reading, recent: Sequence[Reading]) -> bool:
        """Detect an anomaly; see detect_anomaly()."""
        return self.detect_anomaly(current, recent)

    def smooth(self, history: Sequence[Reading]) -> float:
        """
        Rolling average of the clean readings in a history window.

        Args:
            history: Recent readings in any order

        Returns:
            Mean temperature rounded to 2 decimals, or 0.0 if no clean reading
        """
        self.stats["readings_smoothed"] += 1
        values = clean_temperatures(history)
        if not values:
            return 0.0
        return round(float(np.mean(values)), 2)

    def detect_anomaly(self, current: Reading, recent: Sequence[Reading]) -> bool:
        """
        Decide whether the current reading is an outlier.

        Faults and spikes are always anomalous. Otherwise at least five clean
        recent readings are required; the reading is anomalous when it lies
        more than two population standard deviations from their mean.

        Args:
            current: Newly simulated reading
            recent: Recent readings of the same sensor

        Returns:
            True if the reading is anomalous
        """
        self.stats["anomaly_checks"] += 1

        if current.is_faulty or current.is_spike:
            self.stats["anomalies_detected"] += 1
            return True

        values = np.asarray(clean_temperatures(recent), dtype=float)
        if len(values) < MIN_ANOMALY_SAMPLES:
            self.stats["insufficient_history"] += 1
            self.logger.debug(
                f"   Cannot test {current.sensor_name} for anomalies: only {len(values)} clean readings"
            )
            return False

        mean = values.mean()
        std_dev = np.sqrt(values.var())  # population variance (ddof=0)
        is_anomaly = bool(abs(current.temperature - mean) > ANOMALY_SIGMA * std_dev)

        if is_anomaly:
            self.stats["anomalies_detected"] += 1
            self.logger.info(
                f"   Anomaly on {current.sensor_name}: {current.temperature}°C vs mean {mean:.2f}°C "
                f"(std {std_dev:.3f})"
            )
        return is_anomaly

    def _log_analysis_summary(self) -> None:
        """Log analysis statistics."""
        self.logger.info("=== Analysis Summary ===")
        for key, value in self.stats.items():
            self.logger.info(f"{key.replace('_', ' ').title()}: {value}")
