"""
Comprehensive tests for the DuckDB reading store.

Tests cover persistence, history queries, alert and statistics queries,
retention cleanup and error handling.
"""

import pytest
import pandas as pd
from datetime import timedelta

from thermotracker.components.storage import DuckDBReadingStore
from thermotracker.models import AlertType, SensorStatistics
from thermotracker.utils import utc_now
from thermotracker.utils.exceptions import StorageError


def _minutes_ago(minutes: float):
    return utc_now() - timedelta(minutes=minutes)


class TestDuckDBReadingStore:
    """Test suite for DuckDBReadingStore."""

    def test_init(self, sample_config, store):
        """Test component initialization."""
        assert store.config == sample_config
        assert store.logger is not None
        assert store.database == ":memory:"
        assert store.stats["readings_stored"] == 0

    def test_file_database_creates_parent_directory(self, sample_config, temp_dir):
        """Test opening a database file in a new directory."""
        db_path = temp_dir / "data" / "readings.duckdb"

        file_store = DuckDBReadingStore(sample_config, database=str(db_path))
        file_store.close()

        assert db_path.exists()

    def test_store_reading_returns_increasing_ids(self, store, make_reading):
        """Test that each stored reading gets a new row id."""
        first = store.store_reading(make_reading(23.0))
        second = store.execute(make_reading(23.5))

        assert second > first
        assert store.stats["readings_stored"] == 2

    def test_round_trip_preserves_fields(self, store, make_reading):
        """Test that a stored reading reads back unchanged."""
        original = make_reading(
            23.45,
            timestamp=_minutes_ago(1),
            is_anomaly=True,
            alert_type=AlertType.ANOMALY,
            smoothed_value=23.12,
            quality_score=73,
            notes="calibration check"
        )
        row_id = store.store_reading(original)

        loaded = store.get_recent_readings(original.sensor_id, 1)[0]

        assert loaded.id == row_id
        assert loaded.temperature == 23.45
        assert loaded.alert_type == AlertType.ANOMALY
        assert loaded.smoothed_value == 23.12
        assert loaded.quality_score == 73
        assert loaded.is_anomaly is True
        assert loaded.notes == "calibration check"
        assert loaded.timestamp == original.timestamp

    def test_boundary_temperatures(self, store, make_reading):
        """Test that failure boundary values are stored exactly."""
        store.store_reading(make_reading(999.99, is_faulty=True, is_valid=False, timestamp=_minutes_ago(2)))
        store.store_reading(make_reading(-99.99, is_faulty=True, is_valid=False, timestamp=_minutes_ago(1)))

        temperatures = [r.temperature for r in store.get_recent_readings(1, 10)]

        assert temperatures == [-99.99, 999.99]

    def test_get_recent_readings_newest_first_and_truncated(self, store, make_reading):
        """Test ordering, truncation and sensor filtering of recent history."""
        for minutes, temperature in [(5, 22.5), (4, 22.6), (3, 22.7), (2, 22.8), (1, 22.9)]:
            store.store_reading(make_reading(temperature, timestamp=_minutes_ago(minutes)))
        store.store_reading(make_reading(30.0, sensor_id=2, sensor_name="Sensor 2", timestamp=_minutes_ago(0)))

        recent = store.get_recent_readings(1, 3)

        assert [r.temperature for r in recent] == [22.9, 22.8, 22.7]
        assert all(r.sensor_id == 1 for r in recent)

    def test_get_recent_readings_unknown_sensor(self, store):
        """Test that an unknown sensor has no history."""
        assert store.get_recent_readings(99, 10) == []

    def test_get_history_oldest_first_within_window(self, store, make_reading):
        """Test the time-window history query."""
        store.store_reading(make_reading(22.0, timestamp=_minutes_ago(120)))
        store.store_reading(make_reading(22.5, timestamp=_minutes_ago(30)))
        store.store_reading(make_reading(23.0, timestamp=_minutes_ago(10)))

        history = store.get_history("Sensor 1", timedelta(hours=1))

        assert [r.temperature for r in history] == [22.5, 23.0]

    def test_get_readings_by_date_range(self, store, make_reading):
        """Test the inclusive date range query."""
        start, end = _minutes_ago(60), _minutes_ago(10)
        store.store_reading(make_reading(22.0, timestamp=start))
        store.store_reading(make_reading(22.5, timestamp=_minutes_ago(30)))
        store.store_reading(make_reading(23.0, timestamp=end))
        store.store_reading(make_reading(23.5, timestamp=_minutes_ago(5)))

        readings = store.get_readings_by_date_range("Sensor 1", start, end)

        assert [r.temperature for r in readings] == [22.0, 22.5, 23.0]

    def test_get_anomalies_and_faulty_readings(self, store, make_reading):
        """Test the anomaly and fault queries."""
        store.store_reading(make_reading(23.0, timestamp=_minutes_ago(4)))
        store.store_reading(make_reading(25.0, is_valid=False, alert_type=AlertType.THRESHOLD, timestamp=_minutes_ago(3)))
        store.store_reading(make_reading(
            35.0, is_valid=False, is_spike=True, is_anomaly=True, alert_type=AlertType.SPIKE, timestamp=_minutes_ago(2)
        ))
        store.store_reading(make_reading(
            999.99, is_valid=False, is_faulty=True, is_anomaly=True, alert_type=AlertType.FAULT, timestamp=_minutes_ago(1)
        ))

        anomalies = store.get_anomalies(timedelta(hours=1))
        faulty = store.get_faulty_readings(timedelta(hours=1))

        assert [r.temperature for r in anomalies] == [999.99, 35.0, 25.0]
        assert [r.temperature for r in faulty] == [999.99, 35.0]

    def test_get_recent_alerts(self, store, make_reading):
        """Test alert views of alerting readings."""
        store.store_reading(make_reading(23.0, timestamp=_minutes_ago(3)))
        store.store_reading(make_reading(25.0, is_valid=False, alert_type=AlertType.THRESHOLD, timestamp=_minutes_ago(2)))
        store.store_reading(make_reading(
            999.99, is_valid=False, is_faulty=True, alert_type=AlertType.FAULT, timestamp=_minutes_ago(1)
        ))

        alerts = store.get_recent_alerts(10)

        assert len(alerts) == 2
        assert alerts[0].alert_type == AlertType.FAULT
        assert alerts[0].location == "Server Room A"
        assert alerts[0].message == "Sensor Sensor 1 reported Fault alert with temperature 999.99°C"
        assert alerts[1].message == "Sensor Sensor 1 reported Threshold alert with temperature 25.00°C"

    def test_get_sensor_statistics(self, store, make_reading):
        """Test per-sensor aggregate statistics."""
        store.store_reading(make_reading(22.0, timestamp=_minutes_ago(3)))
        store.store_reading(make_reading(24.0, timestamp=_minutes_ago(2)))
        store.store_reading(make_reading(35.0, is_valid=False, is_spike=True, is_anomaly=True, timestamp=_minutes_ago(1)))

        stats = store.get_sensor_statistics("Sensor 1", timedelta(hours=1))

        assert isinstance(stats, SensorStatistics)
        assert stats.total_readings == 3
        assert stats.valid_readings == 2
        assert stats.spike_readings == 1
        assert stats.anomaly_readings == 1
        assert stats.fault_readings == 0
        assert stats.average_temperature == 27.0
        assert stats.min_temperature == 22.0
        assert stats.max_temperature == 35.0

    def test_get_sensor_statistics_empty(self, store):
        """Test statistics for a sensor without readings."""
        stats = store.get_sensor_statistics("Nobody", timedelta(hours=1))

        assert stats.total_readings == 0
        assert stats.average_temperature == 0.0

    def test_get_overall_statistics(self, store, make_reading):
        """Test fleet-wide aggregate statistics."""
        store.store_reading(make_reading(22.0, timestamp=_minutes_ago(2)))
        store.store_reading(make_reading(
            24.0, sensor_id=2, sensor_name="Sensor 2", is_faulty=True, is_anomaly=True, timestamp=_minutes_ago(1)
        ))

        overall = store.get_overall_statistics(timedelta(hours=1))

        assert overall.total_sensors == 2
        assert overall.total_readings == 2
        assert overall.total_faults == 1
        assert overall.total_anomalies == 1
        assert overall.overall_average_temperature == 23.0

    def test_clean_old_data(self, store, make_reading):
        """Test retention cleanup."""
        store.store_reading(make_reading(22.0, timestamp=utc_now() - timedelta(days=10)))
        store.store_reading(make_reading(22.5, timestamp=utc_now() - timedelta(days=8)))
        store.store_reading(make_reading(23.0, timestamp=_minutes_ago(1)))

        removed = store.clean_old_data(timedelta(days=7))

        assert removed == 2
        assert [r.temperature for r in store.get_recent_readings(1, 10)] == [23.0]
        assert store.clean_old_data(timedelta(days=7)) == 0

    def test_register_sensor_and_mark_offline(self, store, make_sensor):
        """Test the sensor identity table."""
        sensor = make_sensor()
        store.register_sensor(sensor)
        store.register_sensor(make_sensor(2))

        sensor.location = "Rack 9"
        store.register_sensor(sensor)
        store.mark_sensor_offline("Sensor 2")

        rows = store.get_registered_sensors()

        assert [r["name"] for r in rows] == ["Sensor 1", "Sensor 2"]
        assert rows[0]["location"] == "Rack 9"
        assert rows[0]["is_online"] is True
        assert rows[1]["is_online"] is False

    def test_readings_frame(self, store, make_reading):
        """Test exporting stored readings as a DataFrame."""
        store.store_reading(make_reading(22.0, timestamp=_minutes_ago(2)))
        store.store_reading(make_reading(23.0, sensor_id=2, sensor_name="Sensor 2", timestamp=_minutes_ago(1)))

        frame = store.readings_frame()
        single = store.readings_frame("Sensor 2")

        assert isinstance(frame, pd.DataFrame)
        assert len(frame) == 2
        assert "quality_score" in frame.columns
        assert list(single["sensor_name"]) == ["Sensor 2"]

    def test_error_handling_after_close(self, sample_config, make_reading):
        """Test that database failures surface as StorageError."""
        closed_store = DuckDBReadingStore(sample_config)
        closed_store.close()

        with pytest.raises(StorageError):
            closed_store.store_reading(make_reading(23.0))

        with pytest.raises(StorageError):
            closed_store.get_recent_readings(1, 10)

    def test_storage_summary(self, store, make_reading):
        """Test storage statistics logging."""
        store.store_reading(make_reading(23.0))
        store.get_recent_readings(1, 5)

        store._log_storage_summary()

        assert store.stats["history_queries"] == 1
