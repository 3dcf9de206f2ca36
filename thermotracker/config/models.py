"""
Pydantic models for simulator configuration.

These models provide type-safe parsing and validation of the YAML configuration
files: the application settings in config/default.yaml and the sensor
definitions in config/sensors.yml. A sensor definition that breaks one of its
bounds is a fatal startup error.
"""

from pathlib import Path
from typing import Any, Dict, List, Optional, Union
import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator
)
from pydantic.alias_generators import to_camel

from thermotracker.utils.exceptions import ConfigurationError


PROJECT_ROOT = Path(__file__).parent.parent.parent


def _resolve_project_path(value: Any) -> Any:
    """Convert a relative path to an absolute path under the project root."""
    if isinstance(value, (str, Path)):
        if str(value) == ":memory:":
            return str(value)
        path = Path(value)
        if not path.is_absolute():
            path = (PROJECT_ROOT / path).resolve()
        return str(path)
    return value


class SensorConfig(BaseModel):
    """Static calibration parameters for one simulated sensor."""
    model_config = ConfigDict(
        # sensors.yml uses camelCase keys (minValue, normalMin, ...)
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra='forbid',
        allow_inf_nan=False
    )

    name: str = Field(..., description="Unique sensor name")
    location: str = Field(..., description="Physical location label")
    min_value: float = Field(..., description="Hard lower bound of the sensor")
    max_value: float = Field(..., description="Hard upper bound of the sensor")
    normal_min: float = Field(22.0, description="Lower edge of the normal operating band")
    normal_max: float = Field(24.0, description="Upper edge of the normal operating band")
    noise_range: float = Field(0.5, description="Maximum absolute noise added to normal readings")
    fault_probability: float = Field(0.01, description="Per-reading probability of a total failure")
    spike_probability: float = Field(0.005, description="Per-reading probability of a spike")

    @field_validator('name')
    @classmethod
    def name_not_blank(cls, v):
        if not v or not v.strip():
            raise ValueError("Sensor name cannot be empty")
        return v

    @field_validator('location')
    @classmethod
    def location_not_blank(cls, v):
        if not v or not v.strip():
            raise ValueError("Sensor location cannot be empty")
        return v

    @field_validator('noise_range')
    @classmethod
    def noise_not_negative(cls, v):
        if v < 0:
            raise ValueError("Noise range cannot be negative")
        return v

    @field_validator('fault_probability')
    @classmethod
    def fault_probability_in_unit_interval(cls, v):
        if v < 0 or v > 1:
            raise ValueError("Fault probability must be between 0 and 1")
        return v

    @field_validator('spike_probability')
    @classmethod
    def spike_probability_in_unit_interval(cls, v):
        if v < 0 or v > 1:
            raise ValueError("Spike probability must be between 0 and 1")
        return v

    @model_validator(mode='after')
    def check_bounds(self) -> "SensorConfig":
        if self.min_value >= self.max_value:
            raise ValueError("MinValue must be less than MaxValue")
        if self.normal_min < self.min_value or self.normal_max > self.max_value:
            raise ValueError("Normal range must be within min/max range")
        return self


class AppInfo(BaseModel):
    """Basic application metadata."""
    name: str = Field("ThermoTracker", description="Application name")
    version: str = Field("1.0.0", description="Application version")


class TemperatureRangeSettings(BaseModel):
    """Process-wide fixed validation band."""
    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    min: float = Field(22.0, description="Fixed range lower bound")
    max: float = Field(24.0, description="Fixed range upper bound")
    use_fixed_range_as_primary: bool = Field(
        True, description="Validate against the fixed range instead of the sensor's own bounds"
    )

    @model_validator(mode='after')
    def check_order(self) -> "TemperatureRangeSettings":
        if self.min >= self.max:
            raise ValueError("Fixed range min must be less than max")
        return self


class SimulationSettings(BaseModel):
    """Tick cadence and history sizes."""
    update_interval_ms: int = Field(2000, gt=0, description="Milliseconds between ticks")
    data_history_size: int = Field(50, gt=0, description="Readings kept in memory per sensor for the dashboard")
    recent_history_count: int = Field(10, gt=0, description="Stored readings used for smoothing and anomaly detection")
    seed: Optional[int] = Field(None, description="Seed for the shared random generator")


class FileLoggingSettings(BaseModel):
    """Reading audit log file configuration."""
    log_directory: str = Field("logs", validate_default=True, description="Directory for reading and event logs")
    log_file_name: str = Field("Sensor_Readings_{date}.txt", description="Daily file name, {date} becomes YYYYMMDD")
    events_file_name: str = Field("audit_events.log", description="File receiving JSON audit events")
    max_file_size_mb: float = Field(10, gt=0, description="Size at which the reading log rotates")
    backup_count: int = Field(5, ge=1, description="Rotated reading files kept per day")
    retention_days: int = Field(7, ge=0, description="Age after which log files are deleted")
    enable_rotation: bool = Field(True, description="Enable size-based rotation")
    include_header: bool = Field(True, description="Write a column header to new files")
    timestamp_format: str = Field("%Y-%m-%d %H:%M:%S", description="strftime format of the timestamp column")
    use_human_readable_format: bool = Field(True, description="Fixed-width columns instead of tab-separated")

    @field_validator('log_directory', mode='before')
    @classmethod
    def resolve_log_directory(cls, v):
        """Convert relative paths to absolute paths."""
        return _resolve_project_path(v)


class DatabaseSettings(BaseModel):
    """DuckDB reading store configuration."""
    path: str = Field("data/thermotracker.duckdb", validate_default=True, description="DuckDB database file or :memory:")
    retention_days: Optional[int] = Field(None, ge=1, description="Purge stored readings older than this at startup")

    @field_validator('path', mode='before')
    @classmethod
    def resolve_db_path(cls, v):
        """Convert relative paths to absolute paths."""
        return _resolve_project_path(v)


class PathSettings(BaseModel):
    """File system paths."""
    sensors_file: str = Field("config/sensors.yml", validate_default=True, description="YAML file with sensor definitions")

    @field_validator('sensors_file', mode='before')
    @classmethod
    def resolve_paths(cls, v):
        """Convert relative paths to absolute paths."""
        return _resolve_project_path(v)


class LoggingSettings(BaseModel):
    """Diagnostic logging configuration."""
    level: str = Field("INFO", description="Root log level")
    log_file: Optional[str] = Field(None, description="Optional diagnostic log file")

    @field_validator('log_file', mode='before')
    @classmethod
    def resolve_log_file(cls, v):
        """Convert relative paths to absolute paths."""
        return _resolve_project_path(v)


class AppConfig(BaseModel):
    """Complete simulator configuration model."""
    model_config = ConfigDict(extra='forbid')

    app: AppInfo = Field(default_factory=AppInfo, description="Application metadata")
    temperature_range: TemperatureRangeSettings = Field(
        default_factory=TemperatureRangeSettings, description="Fixed validation band"
    )
    simulation: SimulationSettings = Field(default_factory=SimulationSettings, description="Simulation cadence")
    file_logging: FileLoggingSettings = Field(default_factory=FileLoggingSettings, description="Reading audit log")
    database: DatabaseSettings = Field(default_factory=DatabaseSettings, description="Reading store")
    paths: PathSettings = Field(default_factory=PathSettings, description="File system paths")
    logging: LoggingSettings = Field(default_factory=LoggingSettings, description="Diagnostic logging")

    @classmethod
    def from_yaml(cls, config_path: Union[str, Path]) -> "AppConfig":
        """Load configuration from YAML file."""
        config_path = Path(config_path)
        if not config_path.exists():
            raise ConfigurationError(f"Configuration file not found: {config_path}")

        try:
            with open(config_path, 'r', encoding="utf-8") as f:
                config_data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Failed to parse configuration file '{config_path}': {e}") from e
        except (OSError, UnicodeDecodeError) as e:
            raise ConfigurationError(f"Failed to read configuration file '{config_path}': {e}") from e

        if not isinstance(config_data, dict):
            raise ConfigurationError(f"Invalid YAML structure in '{config_path}': expected a mapping of sections")

        try:
            return cls(**config_data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration in {config_path}: {_first_error(e)}") from e


def _first_error(error: ValidationError) -> str:
    """Render the first pydantic error as 'field: message'."""
    first = error.errors()[0]
    message = first["msg"]
    if message.startswith("Value error, "):
        message = message[len("Value error, "):]
    location = ".".join(str(part) for part in first["loc"])
    return f"{location}: {message}" if location else message


def load_sensor_configs(file_path: Union[str, Path]) -> List[SensorConfig]:
    """
    Load and validate sensor definitions from a YAML file.

    The document must have a top-level ``sensors`` list.

    Args:
        file_path: Path to the sensors YAML file

    Returns:
        Validated sensor configurations in file order

    Raises:
        ConfigurationError: If the file is missing, malformed, or any sensor
            violates its bounds
    """
    file_path = Path(file_path)
    if not file_path.exists():
        raise ConfigurationError(f"YAML configuration file not found: {file_path}")

    try:
        with open(file_path, 'r', encoding="utf-8") as f:
            document = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Failed to parse configuration file '{file_path}': {e}") from e
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigurationError(f"Failed to read configuration file '{file_path}': {e}") from e

    if not isinstance(document, dict) or "sensors" not in document:
        raise ConfigurationError(f"Invalid YAML structure in '{file_path}': 'sensors' key not found")

    entries: List[Dict[str, Any]] = document["sensors"] or []
    configs: List[SensorConfig] = []
    seen_names = set()

    for index, entry in enumerate(entries):
        label = entry.get("name") if isinstance(entry, dict) else None
        label = label or f"#{index + 1}"
        try:
            config = SensorConfig.model_validate(entry)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration for sensor '{label}': {_first_error(e)}") from e

        if config.name in seen_names:
            raise ConfigurationError(f"Duplicate sensor name: {config.name}")
        seen_names.add(config.name)
        configs.append(config)

    return configs
