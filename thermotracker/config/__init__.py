"""Configuration models and loaders for the ThermoTracker simulator."""

from .models import (
    AppConfig,
    SensorConfig,
    TemperatureRangeSettings,
    SimulationSettings,
    FileLoggingSettings,
    DatabaseSettings,
    load_sensor_configs
)
from .watcher import SensorConfigWatcher

__all__ = [
    "AppConfig",
    "SensorConfig",
    "TemperatureRangeSettings",
    "SimulationSettings",
    "FileLoggingSettings",
    "DatabaseSettings",
    "load_sensor_configs",
    "SensorConfigWatcher"
]
