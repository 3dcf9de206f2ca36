"""
Reading validation component for the temperature sensor simulator.

Applies the dual-range validation policy: readings are checked either against
the process-wide fixed temperature band or against the producing sensor's own
hard bounds, selected by ``use_fixed_range_as_primary``. Also owns the
threshold ("exceeded") check and the 0-100 quality score, which share the same
range resolution.
"""

import math
from decimal import Decimal
from typing import Dict, Optional, Tuple

from thermotracker.components.base import ValidationComponent
from thermotracker.config import AppConfig
from thermotracker.models import Reading, Sensor
from thermotracker.utils import get_logger


KNOWN_BAD_SCORE = 10


def is_rounded_to_cents(temperature: float) -> bool:
    """True if the value carries no more than 2 decimal places."""
    return round(temperature, 2) == temperature


class ReadingValidationComponent(ValidationComponent):
    """Concrete implementation of the dual-range validation policy."""

    def __init__(self, config: AppConfig):
        """
        Initialize validation component.

        Args:
            config: Application configuration
        """
        super().__init__(config)
        self.logger = get_logger(__name__)
        self.fixed_range = self.config.temperature_range

        # Validation statistics
        self.stats: Dict[str, int] = {
            "readings_validated": 0,
            "valid_readings": 0,
            "rejected_fault_or_spike": 0,
            "rejected_precision": 0,
            "rejected_range": 0
        }

    def execute(self, reading: Reading, sensor: Sensor) -> bool:
        """Validate a reading; see validate()."""
        return self.validate(reading, sensor)

    def validate(self, reading: Reading, sensor: Sensor) -> bool:
        """
        Validate a reading against the configured range policy.

        Spikes and faults are never valid, even when numerically in range.

        Args:
            reading: Reading to validate
            sensor: Sensor that produced the reading

        Returns:
            True if the reading is valid
        """
        self.stats["readings_validated"] += 1

        if reading.is_faulty or reading.is_spike:
            self.stats["rejected_fault_or_spike"] += 1
            return False

        if not is_rounded_to_cents(reading.temperature):
            self.stats["rejected_precision"] += 1
            self.logger.warning(
                f"Temperature value {reading.temperature} is not properly rounded to 2 decimal places "
                f"for sensor {reading.sensor_name}"
            )
            return False

        if self.fixed_range.use_fixed_range_as_primary:
            low, high = self.fixed_range.min, self.fixed_range.max
        else:
            low, high = sensor.min_value, sensor.max_value

        is_valid = low <= reading.temperature <= high
        if is_valid:
            self.stats["valid_readings"] += 1
        else:
            self.stats["rejected_range"] += 1
        return is_valid

    def threshold_bounds(
        self,
        sensor: Sensor,
        custom_min: Optional[float] = None,
        custom_max: Optional[float] = None
    ) -> Tuple[float, float]:
        """
        Resolve the band used by the threshold check.

        In fixed-range mode the fixed band always wins and custom bounds are
        ignored; otherwise custom bounds override the sensor's normal band.
        """
        if self.fixed_range.use_fixed_range_as_primary:
            return self.fixed_range.min, self.fixed_range.max

        low = custom_min if custom_min is not None else sensor.normal_min
        high = custom_max if custom_max is not None else sensor.normal_max
        return low, high

    def check_threshold(
        self,
        reading: Reading,
        sensor: Sensor,
        custom_min: Optional[float] = None,
        custom_max: Optional[float] = None
    ) -> bool:
        """
        Check whether a reading falls OUTSIDE the threshold band.

        Args:
            reading: Reading to check
            sensor: Sensor that produced the reading
            custom_min: Optional lower bound (secondary mode only)
            custom_max: Optional upper bound (secondary mode only)

        Returns:
            True if the threshold is exceeded
        """
        low, high = self.threshold_bounds(sensor, custom_min, custom_max)
        return reading.temperature < low or reading.temperature > high

    def calculate_quality_score(self, reading: Reading, sensor: Sensor) -> int:
        """
        Score a reading's trustworthiness from 0 to 100.

        Known-bad readings (fault or spike) score 10, other invalid readings
        score 0. Valid readings lose up to 50 points (and more past the band
        edge) with their distance from the fixed band's midpoint.

        Args:
            reading: Reading with ``is_valid`` already resolved
            sensor: Sensor that produced the reading

        Returns:
            Quality score clamped to [0, 100]
        """
        if reading.is_faulty or reading.is_spike:
            return KNOWN_BAD_SCORE
        if not reading.is_valid:
            return 0

        # Decimal keeps 23.70 - 23.00 at exactly 0.70
        low, high = Decimal(str(self.fixed_range.min)), Decimal(str(self.fixed_range.max))
        midpoint = (low + high) / 2
        max_deviation = (high - low) / 2
        deviation = abs(Decimal(str(reading.temperature)) - midpoint)
        score = 100 - math.floor(deviation / max_deviation * 50)
        return max(0, min(100, score))

    def _log_validation_summary(self) -> None:
        """Log validation statistics."""
        self.logger.info("=== Validation Summary ===")
        for key, value in self.stats.items():
            self.logger.info(f"{key.replace('_', ' ').title()}: {value}")

        if self.stats["readings_validated"] > 0:
            validity = (self.stats["valid_readings"] / self.stats["readings_validated"]) * 100
            self.logger.info(f"Validity Rate: {validity:.1f}%")
