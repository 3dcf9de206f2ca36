"""
Reading storage component for the temperature sensor simulator.

Persists finished readings in DuckDB and answers the history and statistics
queries used by the smoother, the anomaly detector and the dashboard.
"""

from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import duckdb
import pandas as pd

from thermotracker.components.base import StorageComponent
from thermotracker.config import AppConfig
from thermotracker.models import (
    AlertType,
    OverallStatistics,
    Reading,
    Sensor,
    SensorAlert,
    SensorStatistics
)
from thermotracker.utils import get_logger, utc_now, StorageError


READING_COLUMNS = [
    "id", "sensor_id", "sensor_name", "sensor_location", "temperature", "timestamp",
    "is_valid", "is_anomaly", "is_spike", "is_faulty", "alert_type",
    "smoothed_value", "quality_score", "notes"
]

SCHEMA_STATEMENTS = [
    "CREATE SEQUENCE IF NOT EXISTS sensor_readings_id_seq START 1",
    """
    CREATE TABLE IF NOT EXISTS sensors (
        name VARCHAR PRIMARY KEY,
        id INTEGER NOT NULL,
        location VARCHAR NOT NULL,
        is_online BOOLEAN NOT NULL,
        created_at TIMESTAMP NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS sensor_readings (
        id BIGINT PRIMARY KEY DEFAULT nextval('sensor_readings_id_seq'),
        sensor_id INTEGER NOT NULL,
        sensor_name VARCHAR NOT NULL,
        sensor_location VARCHAR NOT NULL,
        temperature DECIMAL(5, 2) NOT NULL,
        timestamp TIMESTAMP NOT NULL,
        is_valid BOOLEAN NOT NULL,
        is_anomaly BOOLEAN NOT NULL,
        is_spike BOOLEAN NOT NULL,
        is_faulty BOOLEAN NOT NULL,
        alert_type VARCHAR NOT NULL,
        smoothed_value DECIMAL(5, 2) NOT NULL,
        quality_score INTEGER NOT NULL,
        notes VARCHAR
    )
    """
]


def _as_float(value: Any) -> float:
    """DuckDB returns DECIMAL columns as Decimal and empty aggregates as None."""
    return float(value) if value is not None else 0.0


class DuckDBReadingStore(StorageComponent):
    """Concrete implementation of reading persistence on DuckDB."""

    def __init__(self, config: AppConfig, database: Optional[str] = None):
        """
        Initialize storage component and create the schema.

        Args:
            config: Application configuration
            database: Override for ``config.database.path`` (e.g. ':memory:')

        Raises:
            StorageError: If the database cannot be opened
        """
        super().__init__(config)
        self.logger = get_logger(__name__)
        self.database = database or self.config.database.path

        # Storage statistics
        self.stats: Dict[str, int] = {
            "readings_stored": 0,
            "history_queries": 0,
            "sensors_registered": 0,
            "readings_purged": 0
        }

        try:
            if self.database != ":memory:":
                Path(self.database).parent.mkdir(parents=True, exist_ok=True)
            self.conn = duckdb.connect(self.database)
            for statement in SCHEMA_STATEMENTS:
                self.conn.execute(statement)
        except (duckdb.Error, OSError) as e:
            self.logger.error(f"Failed to open reading store {self.database}: {str(e)}")
            raise StorageError(f"Failed to open reading store: {str(e)}") from e

        self.logger.info(f"Reading store initialized at {self.database}")

    def execute(self, reading: Reading) -> int:
        """Store a reading; see store_reading()."""
        return self.store_reading(reading)

    def store_reading(self, reading: Reading) -> int:
        """
        Persist a finished reading.

        Args:
            reading: Reading to store

        Returns:
            Row id of the stored reading

        Raises:
            StorageError: If the insert fails
        """
        columns = READING_COLUMNS[1:]
        placeholders = ", ".join("?" for _ in columns)
        values = [
            reading.sensor_id,
            reading.sensor_name,
            reading.sensor_location,
            reading.temperature,
            reading.timestamp,
            reading.is_valid,
            reading.is_anomaly,
            reading.is_spike,
            reading.is_faulty,
            reading.alert_type.value,
            reading.smoothed_value,
            reading.quality_score,
            reading.notes
        ]

        try:
            row_id = self.conn.execute(
                f"INSERT INTO sensor_readings ({', '.join(columns)}) VALUES ({placeholders}) RETURNING id",
                values
            ).fetchone()[0]
        except duckdb.Error as e:
            self.logger.error(f"Error storing sensor data for sensor {reading.sensor_name}: {str(e)}")
            raise StorageError(f"Failed to store reading: {str(e)}") from e

        self.stats["readings_stored"] += 1
        return int(row_id)

    def register_sensor(self, sensor: Sensor) -> None:
        """Insert or refresh a sensor's identity row."""
        try:
            self.conn.execute(
                """
                INSERT INTO sensors (name, id, location, is_online, created_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT (name) DO UPDATE SET
                    location = excluded.location,
                    is_online = excluded.is_online
                """,
                [sensor.name, sensor.id, sensor.location, sensor.is_online, sensor.created_at]
            )
        except duckdb.Error as e:
            raise StorageError(f"Failed to register sensor {sensor.name}: {str(e)}") from e

        self.stats["sensors_registered"] += 1

    def mark_sensor_offline(self, sensor_name: str) -> None:
        """Flag a sensor as offline; its history is kept."""
        try:
            self.conn.execute("UPDATE sensors SET is_online = false WHERE name = ?", [sensor_name])
        except duckdb.Error as e:
            raise StorageError(f"Failed to mark sensor {sensor_name} offline: {str(e)}") from e

    def get_registered_sensors(self) -> List[Dict[str, Any]]:
        """All sensor identity rows ordered by id."""
        rows = self._query("SELECT id, name, location, is_online, created_at FROM sensors ORDER BY id")
        return [
            {"id": r[0], "name": r[1], "location": r[2], "is_online": r[3], "created_at": r[4]}
            for r in rows
        ]

    def get_recent_readings(self, sensor_id: int, count: int) -> List[Reading]:
        """
        Most recent readings of a sensor.

        Args:
            sensor_id: Sensor identifier
            count: Maximum number of readings

        Returns:
            Readings ordered newest first
        """
        self.stats["history_queries"] += 1
        return self._select_readings(
            "WHERE sensor_id = ? ORDER BY timestamp DESC, id DESC LIMIT ?",
            [sensor_id, count]
        )

    def get_history(self, sensor_name: str, duration: timedelta) -> List[Reading]:
        """Readings of a sensor within the last ``duration``, oldest first."""
        start_time = utc_now() - duration
        return self._select_readings(
            "WHERE sensor_name = ? AND timestamp >= ? ORDER BY timestamp, id",
            [sensor_name, start_time]
        )

    def get_readings_by_date_range(self, sensor_name: str, start: datetime, end: datetime) -> List[Reading]:
        """Readings of a sensor with start <= timestamp <= end, oldest first."""
        return self._select_readings(
            "WHERE sensor_name = ? AND timestamp >= ? AND timestamp <= ? ORDER BY timestamp, id",
            [sensor_name, start, end]
        )

    def get_anomalies(self, duration: timedelta) -> List[Reading]:
        """Anomalous or alerting readings within the window, newest first."""
        start_time = utc_now() - duration
        return self._select_readings(
            "WHERE timestamp >= ? AND (is_anomaly OR alert_type <> ?) ORDER BY timestamp DESC, id DESC",
            [start_time, AlertType.NONE.value]
        )

    def get_faulty_readings(self, duration: timedelta) -> List[Reading]:
        """Faulty or spike readings within the window, newest first."""
        start_time = utc_now() - duration
        return self._select_readings(
            "WHERE timestamp >= ? AND (is_faulty OR is_spike) ORDER BY timestamp DESC, id DESC",
            [start_time]
        )

    def get_recent_alerts(self, count: int) -> List[SensorAlert]:
        """The latest ``count`` readings that raised an alert."""
        readings = self._select_readings(
            "WHERE alert_type <> ? ORDER BY timestamp DESC, id DESC LIMIT ?",
            [AlertType.NONE.value, count]
        )
        return [
            SensorAlert(
                sensor_name=r.sensor_name,
                location=r.sensor_location,
                timestamp=r.timestamp,
                temperature=r.temperature,
                alert_type=r.alert_type,
                message=(
                    f"Sensor {r.sensor_name} reported {r.alert_type.value} alert "
                    f"with temperature {r.temperature:.2f}°C"
                )
            )
            for r in readings
        ]

    def get_sensor_statistics(self, sensor_name: str, duration: timedelta) -> SensorStatistics:
        """Aggregate statistics for one sensor over the window."""
        start_time = utc_now() - duration
        row = self._query(
            """
            SELECT
                COUNT(*) as total_readings,
                COALESCE(SUM(CASE WHEN is_valid THEN 1 ELSE 0 END), 0) as valid_readings,
                COALESCE(SUM(CASE WHEN is_anomaly THEN 1 ELSE 0 END), 0) as anomaly_readings,
                COALESCE(SUM(CASE WHEN is_spike THEN 1 ELSE 0 END), 0) as spike_readings,
                COALESCE(SUM(CASE WHEN is_faulty THEN 1 ELSE 0 END), 0) as fault_readings,
                AVG(temperature) as average_temperature,
                MIN(temperature) as min_temperature,
                MAX(temperature) as max_temperature
            FROM sensor_readings
            WHERE sensor_name = ? AND timestamp >= ?
            """,
            [sensor_name, start_time]
        )[0]

        return SensorStatistics(
            sensor_name=sensor_name,
            total_readings=int(row[0]),
            valid_readings=int(row[1]),
            anomaly_readings=int(row[2]),
            spike_readings=int(row[3]),
            fault_readings=int(row[4]),
            average_temperature=round(_as_float(row[5]), 2),
            min_temperature=_as_float(row[6]),
            max_temperature=_as_float(row[7])
        )

    def get_overall_statistics(self, duration: timedelta) -> OverallStatistics:
        """Aggregate statistics across all sensors over the window."""
        start_time = utc_now() - duration
        row = self._query(
            """
            SELECT
                COUNT(DISTINCT sensor_name) as total_sensors,
                COUNT(*) as total_readings,
                COALESCE(SUM(CASE WHEN is_anomaly THEN 1 ELSE 0 END), 0) as total_anomalies,
                COALESCE(SUM(CASE WHEN is_spike THEN 1 ELSE 0 END), 0) as total_spikes,
                COALESCE(SUM(CASE WHEN is_faulty THEN 1 ELSE 0 END), 0) as total_faults,
                AVG(temperature) as overall_average_temperature
            FROM sensor_readings
            WHERE timestamp >= ?
            """,
            [start_time]
        )[0]

        return OverallStatistics(
            total_sensors=int(row[0]),
            total_readings=int(row[1]),
            total_anomalies=int(row[2]),
            total_spikes=int(row[3]),
            total_faults=int(row[4]),
            overall_average_temperature=round(_as_float(row[5]), 2)
        )

    def clean_old_data(self, older_than: timedelta) -> int:
        """
        Delete readings older than the given age.

        Returns:
            Number of readings removed
        """
        cutoff_time = utc_now() - older_than
        count = self._query("SELECT COUNT(*) FROM sensor_readings WHERE timestamp < ?", [cutoff_time])[0][0]

        if count > 0:
            try:
                self.conn.execute("DELETE FROM sensor_readings WHERE timestamp < ?", [cutoff_time])
            except duckdb.Error as e:
                raise StorageError(f"Failed to clean old readings: {str(e)}") from e
            self.stats["readings_purged"] += count
            self.logger.info(f"Cleaned {count} old sensor data records older than {cutoff_time}")

        return int(count)

    def readings_frame(self, sensor_name: Optional[str] = None) -> pd.DataFrame:
        """
        Stored readings as a DataFrame (utility method for analysis and reports).

        Args:
            sensor_name: Optional sensor filter

        Returns:
            Readings ordered by timestamp
        """
        sql = f"SELECT {', '.join(READING_COLUMNS)} FROM sensor_readings"
        params: List[Any] = []
        if sensor_name:
            sql += " WHERE sensor_name = ?"
            params.append(sensor_name)
        sql += " ORDER BY timestamp, id"

        try:
            return self.conn.execute(sql, params).df()
        except duckdb.Error as e:
            raise StorageError(f"Failed to query stored readings: {str(e)}") from e

    def close(self) -> None:
        """Close the database connection."""
        self.conn.close()
        self.logger.info(f"Reading store closed ({self.stats['readings_stored']} readings stored this session)")

    def _query(self, sql: str, params: Optional[Sequence[Any]] = None) -> List[tuple]:
        try:
            return self.conn.execute(sql, list(params or [])).fetchall()
        except duckdb.Error as e:
            self.logger.error(f"Reading store query failed: {str(e)}")
            raise StorageError(f"Reading store query failed: {str(e)}") from e

    def _select_readings(self, clause: str, params: Sequence[Any]) -> List[Reading]:
        rows = self._query(f"SELECT {', '.join(READING_COLUMNS)} FROM sensor_readings {clause}", params)
        readings = []
        for row in rows:
            record = dict(zip(READING_COLUMNS, row))
            record["temperature"] = _as_float(record["temperature"])
            record["smoothed_value"] = _as_float(record["smoothed_value"])
            record["alert_type"] = AlertType(record["alert_type"])
            readings.append(Reading(**record))
        return readings

    def _log_storage_summary(self) -> None:
        """Log storage statistics."""
        self.logger.info("=== Storage Summary ===")
        for key, value in self.stats.items():
            self.logger.info(f"{key.replace('_', ' ').title()}: {value}")
        self.logger.info(f"Database: {self.database}")
