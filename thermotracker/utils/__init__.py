"""Utility modules for the ThermoTracker sensor simulator."""

from .logging import setup_logging, get_logger
from .exceptions import (
    ThermoTrackerError,
    ConfigurationError,
    SimulationError,
    StorageError,
    AuditLogError
)
from .time import utc_now

__all__ = [
    "setup_logging",
    "get_logger",
    "ThermoTrackerError",
    "ConfigurationError",
    "SimulationError",
    "StorageError",
    "AuditLogError",
    "utc_now"
]
