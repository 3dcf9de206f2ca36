"""Data models for the ThermoTracker sensor simulator."""

from .data import (
    AlertType,
    AlertFlags,
    ALERT_PRECEDENCE,
    resolve_alert_type,
    Sensor,
    Reading,
    SensorAlert,
    SensorStatistics,
    OverallStatistics,
    FileLoggingInfo,
    MIN_TEMPERATURE,
    MAX_TEMPERATURE
)

__all__ = [
    "AlertType",
    "AlertFlags",
    "ALERT_PRECEDENCE",
    "resolve_alert_type",
    "Sensor",
    "Reading",
    "SensorAlert",
    "SensorStatistics",
    "OverallStatistics",
    "FileLoggingInfo",
    "MIN_TEMPERATURE",
    "MAX_TEMPERATURE"
]
