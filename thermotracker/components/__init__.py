"""Simulator components for temperature sensor reading generation and processing."""

from .base import (
    EngineComponent,
    SimulationComponent,
    ValidationComponent,
    AnalysisComponent,
    StorageComponent,
    AuditSink
)

from .validation import ReadingValidationComponent
from .simulation import SensorSimulationComponent
from .analysis import HistoryAnalysisComponent
from .storage import DuckDBReadingStore
from .audit import FileAuditLogger
from .dashboard import TerminalDashboard

__all__ = [
    "EngineComponent",
    "SimulationComponent",
    "ValidationComponent",
    "AnalysisComponent",
    "StorageComponent",
    "AuditSink",
    "ReadingValidationComponent",
    "SensorSimulationComponent",
    "HistoryAnalysisComponent",
    "DuckDBReadingStore",
    "FileAuditLogger",
    "TerminalDashboard"
]
