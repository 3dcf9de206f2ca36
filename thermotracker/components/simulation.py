"""
Sensor simulation component for the temperature sensor simulator.

Generates one physically plausible reading per sensor per call, injecting total
failures and transient spikes with the sensor's configured probabilities, then
validates, flags and scores the reading. Also owns the fault lifecycle
operations that force a sensor's persistent fault flag.
"""

import threading
from contextlib import nullcontext
from typing import Dict, Optional

import numpy as np

from thermotracker.components.base import AuditSink, SimulationComponent
from thermotracker.components.validation import ReadingValidationComponent
from thermotracker.config import AppConfig
from thermotracker.models import (
    AlertFlags,
    MAX_TEMPERATURE,
    MIN_TEMPERATURE,
    Reading,
    Sensor,
    resolve_alert_type
)
from thermotracker.utils import get_logger, utc_now


SPIKE_OFFSET = 5.0
SPIKE_MAX_MAGNITUDE = 10.0


def clamp_temperature(value: float) -> float:
    """Bound a temperature to the storable [-99.99, 999.99] range."""
    return max(MIN_TEMPERATURE, min(MAX_TEMPERATURE, value))


class SensorSimulationComponent(SimulationComponent):
    """Concrete implementation of the probabilistic reading generator."""

    def __init__(
        self,
        config: AppConfig,
        validator: Optional[ReadingValidationComponent] = None,
        audit_sink: Optional[AuditSink] = None,
        rng: Optional[np.random.Generator] = None
    ):
        """
        Initialize simulation component.

        Args:
            config: Application configuration
            validator: Validation policy; one is built from config if omitted
            audit_sink: Optional receiver for fault/spike and lifecycle events
            rng: Shared random generator; seeded from config if omitted
        """
        super().__init__(config)
        self.logger = get_logger(__name__)
        self.validator = validator or ReadingValidationComponent(config)
        self.audit_sink = audit_sink

        # Shared across callers that don't bring their own generator
        self._rng = rng if rng is not None else np.random.default_rng(self.config.simulation.seed)
        self._rng_lock = threading.Lock()

        # Simulation statistics
        self.stats: Dict[str, int] = {
            "readings_generated": 0,
            "faults_simulated": 0,
            "spikes_simulated": 0,
            "normal_readings": 0,
            "threshold_alerts": 0
        }

    def execute(self, sensor: Sensor, rng: Optional[np.random.Generator] = None) -> Reading:
        """Simulate one reading; see simulate()."""
        return self.simulate(sensor, rng)

    def simulate(self, sensor: Sensor, rng: Optional[np.random.Generator] = None) -> Reading:
        """
        Produce one reading for a sensor.

        The probabilistic fault roll only marks the returned reading; the
        sensor's own ``is_faulty`` flag is changed exclusively by the lifecycle
        operations.

        Args:
            sensor: Sensor to simulate
            rng: Optional generator for this call (per worker or seeded tests);
                the component's shared generator is used under a lock otherwise

        Returns:
            Validated, flagged and scored reading
        """
        generator = rng if rng is not None else self._rng
        guard = self._rng_lock if rng is None else nullcontext()

        with guard:
            temperature, is_faulty, is_spike, event = self._generate_temperature(sensor, generator)

        if event is not None:
            action, metadata = event
            self._record(action, sensor.name, **metadata)

        reading = Reading(
            sensor_id=sensor.id,
            sensor_name=sensor.name,
            sensor_location=sensor.location,
            temperature=temperature,
            timestamp=utc_now(),
            is_faulty=is_faulty,
            is_spike=is_spike
        )

        is_valid = self.validator.validate(reading, sensor)
        threshold_exceeded = self.validator.check_threshold(reading, sensor)
        is_anomaly = is_spike or is_faulty or threshold_exceeded
        alert_type = resolve_alert_type(AlertFlags(
            is_faulty=is_faulty,
            is_spike=is_spike,
            threshold_exceeded=threshold_exceeded,
            is_anomaly=is_anomaly
        ))

        reading = reading.model_copy(update={
            "is_valid": is_valid,
            "is_anomaly": is_anomaly,
            "alert_type": alert_type
        })
        reading = reading.model_copy(update={
            "quality_score": self.validator.calculate_quality_score(reading, sensor)
        })

        self.stats["readings_generated"] += 1
        if threshold_exceeded and not (is_faulty or is_spike):
            self.stats["threshold_alerts"] += 1

        return reading

    def _generate_temperature(self, sensor: Sensor, rng: np.random.Generator):
        """
        Draw the raw temperature and its fault/spike flags.

        Returns:
            Tuple of (temperature, is_faulty, is_spike, event) where event is an
            (action, metadata) pair to record once the generator is released, or None
        """
        is_faulty = sensor.is_faulty
        event = None

        # Step 1: Fault roll (only for sensors not already forced faulty)
        if not is_faulty and rng.random() < sensor.fault_probability:
            is_faulty = True
            self.logger.warning(f"Injecting fault into sensor: {sensor.name}")
            event = ("fault_simulated", {})

        # Step 2: Failed sensor reports an extreme boundary value
        if is_faulty:
            self.stats["faults_simulated"] += 1
            temperature = MAX_TEMPERATURE if rng.random() < 0.5 else MIN_TEMPERATURE
            return temperature, True, False, event

        # Step 3: Spike roll
        if rng.random() < sensor.spike_probability:
            magnitude = rng.random() * SPIKE_MAX_MAGNITUDE
            if rng.random() < 0.5:
                temperature = min(sensor.max_value + SPIKE_OFFSET + magnitude, MAX_TEMPERATURE)
            else:
                temperature = max(sensor.min_value - SPIKE_OFFSET - magnitude, MIN_TEMPERATURE)
            temperature = round(temperature, 2)

            self.stats["spikes_simulated"] += 1
            self.logger.warning(f"Temperature spike detected on sensor: {sensor.name} - {temperature}°C")
            return temperature, False, True, ("spike_detected", {"temperature": temperature})

        # Step 4: Normal reading with noise around the normal band
        base_temp = sensor.normal_min + rng.random() * (sensor.normal_max - sensor.normal_min)
        noise = (rng.random() - 0.5) * 2.0 * sensor.noise_range
        temperature = clamp_temperature(round(base_temp + noise, 2))

        self.stats["normal_readings"] += 1
        return temperature, False, False, None

    def inject_fault(self, sensor: Sensor) -> None:
        """Force the sensor into the failed state."""
        sensor.is_faulty = True
        self.logger.warning(f"Manually injected fault into sensor: {sensor.name}")
        self._record("fault_injected", sensor.name)

    def clear_fault(self, sensor: Sensor) -> None:
        """Return the sensor to normal operation."""
        sensor.is_faulty = False
        self.logger.info(f"Cleared fault from sensor: {sensor.name}")
        self._record("fault_cleared", sensor.name)

    def shutdown_sensor(self, sensor: Sensor) -> None:
        """Shut the sensor down; it reports failure values until started."""
        sensor.is_faulty = True
        self.logger.info(f"Sensor {sensor.name} has been shut down")
        self._record("sensor_shutdown", sensor.name)

    def start_sensor(self, sensor: Sensor) -> None:
        """Start a shut-down sensor."""
        sensor.is_faulty = False
        self.logger.info(f"Sensor {sensor.name} has been started")
        self._record("sensor_started", sensor.name)

    def _record(self, action: str, sensor_name: str, **metadata) -> None:
        if self.audit_sink is None:
            return
        try:
            self.audit_sink.record_event(action, sensor_name, **metadata)
        except Exception as e:
            # The audit trail must never break a simulation tick
            self.logger.error(f"Failed to record '{action}' event for {sensor_name}: {str(e)}")

    def _log_simulation_summary(self) -> None:
        """Log simulation statistics."""
        self.logger.info("=== Simulation Summary ===")
        for key, value in self.stats.items():
            self.logger.info(f"{key.replace('_', ' ').title()}: {value}")

        if self.stats["readings_generated"] > 0:
            normal_rate = (self.stats["normal_readings"] / self.stats["readings_generated"]) * 100
            self.logger.info(f"Normal Reading Rate: {normal_rate:.1f}%")
