"""
Abstract base classes for simulator components.

These define the interfaces the orchestrator wires together, so each stage
(simulation, validation, analysis, storage, audit) can be swapped for a test
double through dependency injection.
"""

from abc import ABC, abstractmethod
from datetime import timedelta
from typing import Any, List, Optional, Sequence

import numpy as np

from thermotracker.config import AppConfig
from thermotracker.models import Reading, Sensor


class EngineComponent(ABC):
    """Base class for all simulator components."""

    def __init__(self, config: AppConfig):
        """Initialize component with application configuration."""
        self.config = config

    @abstractmethod
    def execute(self, *args, **kwargs) -> Any:
        """Execute the component's main functionality."""
        pass


class SimulationComponent(EngineComponent):
    """Abstract base for reading generators."""

    @abstractmethod
    def execute(self, sensor: Sensor, rng: Optional[np.random.Generator] = None) -> Reading:
        """
        Produce one reading for a sensor.

        Args:
            sensor: Sensor to simulate
            rng: Optional random generator for this call

        Returns:
            A fully validated and scored reading
        """
        pass


class ValidationComponent(EngineComponent):
    """Abstract base for reading validation policies."""

    @abstractmethod
    def execute(self, reading: Reading, sensor: Sensor) -> bool:
        """
        Decide whether a reading is valid for its sensor.

        Args:
            reading: Reading to validate
            sensor: Sensor that produced it

        Returns:
            True if the reading is valid
        """
        pass


class AnalysisComponent(EngineComponent):
    """Abstract base for history-based anomaly analysis."""

    @abstractmethod
    def execute(self, current: Reading, recent: Sequence[Reading]) -> bool:
        """
        Decide whether the current reading is anomalous given recent history.

        Args:
            current: Newly simulated reading
            recent: Recent stored readings of the same sensor

        Returns:
            True if the reading is anomalous
        """
        pass


class StorageComponent(EngineComponent):
    """Abstract base for reading persistence."""

    @abstractmethod
    def execute(self, reading: Reading) -> int:
        """
        Persist a finished reading.

        Args:
            reading: Reading to store

        Returns:
            Identifier assigned to the stored reading
        """
        pass

    @abstractmethod
    def get_recent_readings(self, sensor_id: int, count: int) -> List[Reading]:
        """Most recent readings of a sensor, newest first, at most ``count``."""
        pass

    def register_sensor(self, sensor: Sensor) -> None:
        """Record a sensor's identity (optional for stores without a sensor table)."""

    def mark_sensor_offline(self, sensor_name: str) -> None:
        """Record that a sensor was dropped from configuration."""

    def clean_old_data(self, older_than: timedelta) -> int:
        """Delete readings older than the given age; returns the number removed."""
        return 0


class AuditSink(ABC):
    """Receives structured events from the engine and orchestrator."""

    @abstractmethod
    def record_event(self, action: str, sensor_name: str, **metadata: Any) -> None:
        """
        Record one event.

        Args:
            action: Event name, e.g. ``fault_injected``
            sensor_name: Sensor the event concerns
            **metadata: Additional JSON-serialisable context
        """
        pass

    def log_reading(self, reading: Reading) -> None:
        """Append a finished reading to the audit trail (optional)."""
