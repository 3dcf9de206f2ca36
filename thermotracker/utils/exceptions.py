"""
Custom exceptions for the ThermoTracker sensor simulator.

These provide specific error types that can be caught and handled appropriately
by the engine, its collaborators and the orchestrator.
"""


class ThermoTrackerError(Exception):
    """Base exception for all ThermoTracker errors."""
    pass


class ConfigurationError(ThermoTrackerError):
    """Raised when configuration is invalid or missing."""
    pass


class SimulationError(ThermoTrackerError):
    """Raised when a sensor reading cannot be produced."""
    pass


class StorageError(ThermoTrackerError):
    """Raised when reading persistence or a history query fails."""
    pass


class AuditLogError(ThermoTrackerError):
    """Raised when the audit log cannot be initialised."""
    pass
