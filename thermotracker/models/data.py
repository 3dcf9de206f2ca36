"""
Pydantic models for data structures used throughout the simulator.

These models ensure type safety and validation for data flowing between the
engine, the reading store, the audit log and the dashboard.
"""

from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from thermotracker.config.models import SensorConfig
from thermotracker.utils.time import utc_now


MIN_TEMPERATURE = -99.99
MAX_TEMPERATURE = 999.99


class AlertType(str, Enum):
    """Alert raised by a single reading."""
    NONE = "None"
    THRESHOLD = "Threshold"
    ANOMALY = "Anomaly"
    SPIKE = "Spike"
    FAULT = "Fault"


class AlertFlags(BaseModel):
    """Predicates an alert type is resolved from."""
    model_config = ConfigDict(frozen=True)

    is_faulty: bool = False
    is_spike: bool = False
    threshold_exceeded: bool = False
    is_anomaly: bool = False


# Highest priority first; the first matching predicate wins.
ALERT_PRECEDENCE: List[Tuple[AlertType, Callable[[AlertFlags], bool]]] = [
    (AlertType.FAULT, lambda f: f.is_faulty),
    (AlertType.SPIKE, lambda f: f.is_spike),
    (AlertType.THRESHOLD, lambda f: f.threshold_exceeded),
    (AlertType.ANOMALY, lambda f: f.is_anomaly),
]


def resolve_alert_type(flags: AlertFlags) -> AlertType:
    """Return the single alert type for a reading's flags."""
    for alert_type, predicate in ALERT_PRECEDENCE:
        if predicate(flags):
            return alert_type
    return AlertType.NONE


class Sensor(BaseModel):
    """Runtime state of one simulated sensor."""
    model_config = ConfigDict(validate_assignment=True)

    id: int = Field(..., description="Sensor identifier assigned at startup")
    name: str = Field(..., description="Unique sensor name")
    location: str = Field(..., description="Physical location label")
    min_value: float = Field(..., description="Hard lower bound")
    max_value: float = Field(..., description="Hard upper bound")
    normal_min: float = Field(..., description="Lower edge of the normal band")
    normal_max: float = Field(..., description="Upper edge of the normal band")
    noise_range: float = Field(..., description="Maximum absolute noise")
    fault_probability: float = Field(..., description="Per-reading failure probability")
    spike_probability: float = Field(..., description="Per-reading spike probability")
    is_faulty: bool = Field(False, description="Fault forced by a lifecycle operation")
    is_online: bool = Field(True, description="False once the sensor is dropped from config")
    created_at: datetime = Field(default_factory=utc_now, description="Creation timestamp (UTC)")
    last_reading_time: Optional[datetime] = Field(None, description="Timestamp of the latest reading")
    total_readings: int = Field(0, description="Readings produced since startup")
    error_count: int = Field(0, description="Ticks in which this sensor's pipeline failed")
    last_temperature: Optional[float] = Field(None, description="Temperature of the latest reading")

    @classmethod
    def from_config(cls, sensor_id: int, config: SensorConfig) -> "Sensor":
        """Create a healthy, online sensor from its configuration."""
        return cls(id=sensor_id, **config.model_dump())

    def apply_config(self, config: SensorConfig) -> None:
        """Refresh calibration from a reloaded config, keeping identity and fault state."""
        for field_name, value in config.model_dump().items():
            setattr(self, field_name, value)
        self.is_online = True

    @property
    def status(self) -> str:
        if not self.is_online:
            return "Offline"
        return "Faulty" if self.is_faulty else "Online"


class Reading(BaseModel):
    """One simulated temperature observation plus its derived flags and scores."""
    model_config = ConfigDict(frozen=True)

    id: Optional[int] = Field(None, description="Row id assigned by the reading store")
    sensor_id: int = Field(..., description="Identifier of the producing sensor")
    sensor_name: str = Field(..., description="Sensor name (denormalized)")
    sensor_location: str = Field(..., description="Sensor location (denormalized)")
    temperature: float = Field(..., ge=MIN_TEMPERATURE, le=MAX_TEMPERATURE, description="Temperature in °C, 2 decimals")
    timestamp: datetime = Field(default_factory=utc_now, description="Reading timestamp (UTC)")
    is_valid: bool = Field(False, description="Passed the validation policy")
    is_anomaly: bool = Field(False, description="Flagged as anomalous")
    is_spike: bool = Field(False, description="Injected spike")
    is_faulty: bool = Field(False, description="Produced by a failed sensor")
    alert_type: AlertType = Field(AlertType.NONE, description="Highest-precedence alert")
    smoothed_value: float = Field(0.0, description="Rolling average of recent valid readings")
    quality_score: int = Field(100, ge=0, le=100, description="Confidence in the reading (0-100)")
    notes: Optional[str] = Field(None, description="Free-form annotation")


class SensorAlert(BaseModel):
    """Alert view of a stored reading."""
    sensor_name: str
    location: str
    timestamp: datetime
    temperature: float
    alert_type: AlertType = AlertType.NONE
    message: str = ""


class SensorStatistics(BaseModel):
    """Aggregate statistics for one sensor over a time window."""
    sensor_name: str = Field(..., description="Sensor name")
    total_readings: int = Field(0, description="Readings in the window")
    valid_readings: int = Field(0, description="Valid readings")
    anomaly_readings: int = Field(0, description="Anomalous readings")
    spike_readings: int = Field(0, description="Spike readings")
    fault_readings: int = Field(0, description="Faulty readings")
    average_temperature: float = Field(0.0, description="Mean temperature")
    min_temperature: float = Field(0.0, description="Lowest temperature")
    max_temperature: float = Field(0.0, description="Highest temperature")


class OverallStatistics(BaseModel):
    """Aggregate statistics across all sensors over a time window."""
    total_sensors: int = 0
    total_readings: int = 0
    total_anomalies: int = 0
    total_spikes: int = 0
    total_faults: int = 0
    overall_average_temperature: float = 0.0


class FileLoggingInfo(BaseModel):
    """Snapshot of the reading audit log for the dashboard."""
    current_log_file_path: str = ""
    current_log_file_size_bytes: int = 0
    total_log_files: int = 0
    log_files: List[str] = Field(default_factory=list)
    current_file_entry_count: int = 0
    format: str = ""
