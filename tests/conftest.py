"""
Pytest configuration and shared fixtures for testing.

Provides common test fixtures and setup for all test modules.
"""

import tempfile
import pytest
from pathlib import Path
from datetime import datetime

import yaml

from thermotracker.config import AppConfig, SensorConfig
from thermotracker.models import AlertType, Reading, Sensor
from thermotracker.components import DuckDBReadingStore


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmp_dir:
        yield Path(tmp_dir)


@pytest.fixture
def config_data(temp_dir):
    """Raw configuration dictionary with temporary paths."""
    return {
        "app": {
            "name": "ThermoTracker Test",
            "version": "1.0.0"
        },
        "temperature_range": {
            "min": 22.0,
            "max": 24.0,
            "use_fixed_range_as_primary": True
        },
        "simulation": {
            "update_interval_ms": 10,
            "data_history_size": 5,
            "recent_history_count": 10,
            "seed": 42
        },
        "file_logging": {
            "log_directory": str(temp_dir / "logs"),
            "log_file_name": "Sensor_Readings_{date}.txt",
            "events_file_name": "audit_events.log",
            "max_file_size_mb": 10,
            "backup_count": 3,
            "retention_days": 7,
            "enable_rotation": True,
            "include_header": True,
            "use_human_readable_format": True
        },
        "database": {
            "path": ":memory:"
        },
        "paths": {
            "sensors_file": str(temp_dir / "sensors.yml")
        },
        "logging": {
            "level": "DEBUG"
        }
    }


@pytest.fixture
def sample_config(config_data):
    """Create a test configuration with temporary paths."""
    return AppConfig(**config_data)


@pytest.fixture
def secondary_config(config_data):
    """Configuration validating against each sensor's own bounds."""
    config_data["temperature_range"]["use_fixed_range_as_primary"] = False
    return AppConfig(**config_data)


@pytest.fixture
def make_sensor():
    """Factory for sensors with quiet defaults (no faults, no spikes)."""
    def _make_sensor(sensor_id: int = 1, **overrides) -> Sensor:
        values = {
            "name": f"Sensor {sensor_id}",
            "location": "Server Room A",
            "min_value": 18.0,
            "max_value": 28.0,
            "normal_min": 22.0,
            "normal_max": 24.0,
            "noise_range": 0.5,
            "fault_probability": 0.0,
            "spike_probability": 0.0
        }
        values.update(overrides)
        return Sensor(id=sensor_id, **values)

    return _make_sensor


@pytest.fixture
def make_reading():
    """Factory for readings; valid and unflagged unless overridden."""
    def _make_reading(temperature: float = 23.0, **overrides) -> Reading:
        values = {
            "sensor_id": 1,
            "sensor_name": "Sensor 1",
            "sensor_location": "Server Room A",
            "temperature": temperature,
            "timestamp": datetime(2026, 10, 19, 12, 0, 0),
            "is_valid": True,
            "alert_type": AlertType.NONE
        }
        values.update(overrides)
        return Reading(**values)

    return _make_reading


@pytest.fixture
def store(sample_config):
    """In-memory reading store."""
    reading_store = DuckDBReadingStore(sample_config)
    yield reading_store
    reading_store.close()


@pytest.fixture
def sensor_entries():
    """Sensor definitions as they appear in sensors.yml (camelCase keys)."""
    return [
        {
            "name": "Data Center Sensor 1",
            "location": "Server Room A",
            "minValue": 18.0,
            "maxValue": 28.0,
            "normalMin": 22.0,
            "normalMax": 24.0,
            "noiseRange": 0.5,
            "faultProbability": 0.0,
            "spikeProbability": 0.0
        },
        {
            "name": "Data Center Sensor 2",
            "location": "Server Room B",
            "minValue": 18.0,
            "maxValue": 28.0,
            "normalMin": 22.0,
            "normalMax": 24.0,
            "noiseRange": 0.5,
            "faultProbability": 0.0,
            "spikeProbability": 0.0
        }
    ]


@pytest.fixture
def write_sensors_file():
    """Factory writing sensor definitions to a YAML file."""
    def _write(path: Path, entries) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w') as f:
            yaml.safe_dump({"sensors": entries}, f, sort_keys=False)
        return path

    return _write


@pytest.fixture
def sensors_file(sample_config, sensor_entries, write_sensors_file):
    """Sensors YAML file at the configured path."""
    return write_sensors_file(Path(sample_config.paths.sensors_file), sensor_entries)


@pytest.fixture
def sensor_configs(sensor_entries):
    """Validated sensor configurations."""
    return [SensorConfig.model_validate(entry) for entry in sensor_entries]
