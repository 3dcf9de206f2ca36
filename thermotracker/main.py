"""
Main orchestrator for the temperature sensor simulator.

Each tick runs, for every online sensor in order:
simulate -> recent history -> smooth -> detect anomaly -> store -> audit
and then redraws the dashboard. The sensors file is polled between ticks so
sensors can be added, recalibrated or dropped while the simulator runs.
"""

import argparse
import time
from collections import deque
from datetime import timedelta
from pathlib import Path
from typing import Deque, Dict, List, Optional, Sequence

from thermotracker.config import AppConfig, SensorConfig, SensorConfigWatcher, load_sensor_configs
from thermotracker.models import AlertFlags, Reading, Sensor, resolve_alert_type
from thermotracker.components import (
    DuckDBReadingStore,
    FileAuditLogger,
    HistoryAnalysisComponent,
    ReadingValidationComponent,
    SensorSimulationComponent,
    StorageComponent,
    AuditSink,
    TerminalDashboard
)
from thermotracker.utils import (
    setup_logging,
    get_logger,
    utc_now,
    ConfigurationError,
    SimulationError,
    ThermoTrackerError
)


class ThermoTrackerApp:
    """Main orchestrator that coordinates all simulator components."""

    def __init__(self, config: AppConfig):
        """
        Initialize the simulator with configuration.

        Args:
            config: Application configuration loaded from YAML
        """
        self.config = config
        self.logger = get_logger(__name__)

        # Components will be injected (dependency injection pattern)
        self.engine: Optional[SensorSimulationComponent] = None
        self.validator: Optional[ReadingValidationComponent] = None
        self.analyzer: Optional[HistoryAnalysisComponent] = None
        self.store: Optional[StorageComponent] = None
        self.audit: Optional[AuditSink] = None
        self.dashboard: Optional[TerminalDashboard] = None
        self.watcher: Optional[SensorConfigWatcher] = None

        self.sensors: Dict[str, Sensor] = {}
        self.history: Dict[str, Deque[Reading]] = {}
        self._next_sensor_id = 1
        self.tick_count = 0

    def set_components(
        self,
        engine: SensorSimulationComponent,
        validator: ReadingValidationComponent,
        analyzer: HistoryAnalysisComponent,
        store: StorageComponent,
        audit: Optional[AuditSink] = None,
        dashboard: Optional[TerminalDashboard] = None,
        watcher: Optional[SensorConfigWatcher] = None
    ):
        """
        Set simulator components (dependency injection).

        Args:
            engine: Reading generator and fault lifecycle owner
            validator: Validation and threshold policy
            analyzer: Smoother and anomaly detector
            store: Reading persistence
            audit: Optional audit trail
            dashboard: Optional terminal dashboard
            watcher: Optional sensors file watcher
        """
        self.engine = engine
        self.validator = validator
        self.analyzer = analyzer
        self.store = store
        self.audit = audit
        self.dashboard = dashboard
        self.watcher = watcher

    def _require_components(self) -> None:
        if not all([self.engine, self.validator, self.analyzer, self.store]):
            raise SimulationError("Engine, validator, analyzer and store must be set before running")

    def initialize_sensors(self, configs: Sequence[SensorConfig]) -> List[Sensor]:
        """
        Create one sensor per configuration, replacing any existing fleet.

        Args:
            configs: Validated sensor configurations

        Returns:
            The created sensors in configuration order
        """
        self._require_components()
        self.sensors = {}
        self.history = {}
        for sensor_config in configs:
            self._add_sensor(sensor_config)

        self.logger.info(f"Initialized {len(self.sensors)} sensors")
        return list(self.sensors.values())

    def _add_sensor(self, sensor_config: SensorConfig) -> Sensor:
        sensor = Sensor.from_config(self._next_sensor_id, sensor_config)
        self._next_sensor_id += 1
        self.sensors[sensor.name] = sensor
        self.history[sensor.name] = deque(maxlen=self.config.simulation.data_history_size)
        self.store.register_sensor(sensor)
        self.logger.info(f"Initialized sensor: {sensor.name} at {sensor.location}")
        return sensor

    def sync_sensors(self, configs: Sequence[SensorConfig]) -> Dict[str, List[str]]:
        """
        Reconcile the running fleet with reloaded configurations by name.

        New names create sensors, known names are recalibrated in place
        (keeping id and fault flag) and names no longer present are marked
        offline. Sensors are never deleted.

        Returns:
            Sensor names grouped under 'added', 'updated' and 'offline'
        """
        self._require_components()
        changes: Dict[str, List[str]] = {"added": [], "updated": [], "offline": []}
        configured = {c.name: c for c in configs}

        for name, sensor_config in configured.items():
            sensor = self.sensors.get(name)
            if sensor is None:
                self._add_sensor(sensor_config)
                changes["added"].append(name)
            else:
                sensor.apply_config(sensor_config)
                self.store.register_sensor(sensor)
                changes["updated"].append(name)

        for name, sensor in self.sensors.items():
            if name not in configured and sensor.is_online:
                sensor.is_online = False
                self.store.mark_sensor_offline(name)
                self._record("sensor_offline", name)
                changes["offline"].append(name)

        self.logger.info(
            f"Sensor configurations updated: {len(changes['added'])} added, "
            f"{len(changes['updated'])} updated, {len(changes['offline'])} offline"
        )
        return changes

    def process_sensor(self, sensor: Sensor) -> Reading:
        """
        Run the full per-sensor pipeline once.

        Args:
            sensor: Online sensor to sample

        Returns:
            The stored reading with its row id, smoothed value and final alert
        """
        self._require_components()

        # Step 1: Simulate, validate and score
        reading = self.engine.simulate(sensor)

        # Step 2: Recent stored history for smoothing and anomaly detection
        recent = self.store.get_recent_readings(sensor.id, self.config.simulation.recent_history_count)

        # Step 3: Smooth and detect
        smoothed = self.analyzer.smooth(recent)
        is_anomaly = reading.is_anomaly or self.analyzer.detect_anomaly(reading, recent)
        alert_type = resolve_alert_type(AlertFlags(
            is_faulty=reading.is_faulty,
            is_spike=reading.is_spike,
            threshold_exceeded=self.validator.check_threshold(reading, sensor),
            is_anomaly=is_anomaly
        ))
        reading = reading.model_copy(update={
            "smoothed_value": smoothed,
            "is_anomaly": is_anomaly,
            "alert_type": alert_type
        })

        # Step 4: Persist
        row_id = self.store.execute(reading)
        reading = reading.model_copy(update={"id": row_id})

        # Step 5: Audit trail
        if self.audit is not None:
            self.audit.log_reading(reading)

        self.history[sensor.name].append(reading)
        sensor.total_readings += 1
        sensor.last_reading_time = reading.timestamp
        sensor.last_temperature = reading.temperature
        return reading

    def tick(self) -> List[Reading]:
        """
        Sample every online sensor once.

        A failure in one sensor's pipeline is logged and counted against that
        sensor; the remaining sensors are still processed.

        Returns:
            Readings produced in this tick
        """
        self._require_components()

        if self.watcher is not None:
            configs = self.watcher.poll()
            if configs is not None:
                try:
                    self.sync_sensors(configs)
                except ThermoTrackerError as e:
                    self.logger.error(f"Failed to apply reloaded sensor configuration: {str(e)}")

        readings = []
        for sensor in list(self.sensors.values()):
            if not sensor.is_online:
                continue
            try:
                readings.append(self.process_sensor(sensor))
            except (ThermoTrackerError, OSError, ValueError) as e:
                sensor.error_count += 1
                self.logger.error(f"Error processing sensor {sensor.name}: {str(e)}")

        self.tick_count += 1
        return readings

    def get_sensor(self, name: str) -> Sensor:
        """Look up a sensor by name."""
        try:
            return self.sensors[name]
        except KeyError:
            raise SimulationError(f"Unknown sensor: {name}") from None

    def inject_fault(self, name: str) -> None:
        self.engine.inject_fault(self.get_sensor(name))

    def clear_fault(self, name: str) -> None:
        self.engine.clear_fault(self.get_sensor(name))

    def shutdown_sensor(self, name: str) -> None:
        self.engine.shutdown_sensor(self.get_sensor(name))

    def start_sensor(self, name: str) -> None:
        self.engine.start_sensor(self.get_sensor(name))

    def _record(self, action: str, sensor_name: str, **metadata) -> None:
        if self.audit is None:
            return
        try:
            self.audit.record_event(action, sensor_name, **metadata)
        except (ThermoTrackerError, OSError) as e:
            self.logger.error(f"Failed to record '{action}' event for {sensor_name}: {str(e)}")

    def run_maintenance(self) -> None:
        """Purge stored readings and log files past their retention windows."""
        retention_days = self.config.database.retention_days
        if retention_days:
            removed = self.store.clean_old_data(timedelta(days=retention_days))
            self.logger.info(f"Removed {removed} readings older than {retention_days} days")

        if isinstance(self.audit, FileAuditLogger):
            self.audit.clean_old_log_files()

    def refresh_dashboard(self) -> None:
        if self.dashboard is None:
            return
        logging_info = self.audit.get_logging_info() if isinstance(self.audit, FileAuditLogger) else None
        self.dashboard.display(list(self.sensors.values()), self.history, logging_info)

    def run(self, max_ticks: Optional[int] = None) -> int:
        """
        Run ticks at the configured interval until interrupted.

        Args:
            max_ticks: Stop after this many ticks (run forever if None)

        Returns:
            Number of ticks completed
        """
        self._require_components()
        interval = self.config.simulation.update_interval_ms / 1000.0
        completed = 0

        self.logger.info(
            f"Starting simulation: {len(self.sensors)} sensors, update interval "
            f"{self.config.simulation.update_interval_ms} ms"
        )
        self.logger.info(
            f"Fixed temperature validation range: "
            f"{self.config.temperature_range.min}-{self.config.temperature_range.max}°C"
        )
        self.run_maintenance()

        try:
            while max_ticks is None or completed < max_ticks:
                started = time.time()
                self.tick()
                self.refresh_dashboard()
                completed += 1

                if max_ticks is not None and completed >= max_ticks:
                    break
                time.sleep(max(0.0, interval - (time.time() - started)))
        except KeyboardInterrupt:
            self.logger.info("Interrupted, shutting down")

        return completed

    def shutdown(self) -> None:
        """Log component summaries and release files and connections."""
        if isinstance(self.engine, SensorSimulationComponent):
            self.engine._log_simulation_summary()
        if isinstance(self.validator, ReadingValidationComponent):
            self.validator._log_validation_summary()
        if isinstance(self.analyzer, HistoryAnalysisComponent):
            self.analyzer._log_analysis_summary()

        if isinstance(self.store, DuckDBReadingStore):
            self.store._log_storage_summary()
            self.store.close()
        if isinstance(self.audit, FileAuditLogger):
            self.audit.close()


def build_app(config: AppConfig, with_dashboard: bool = True) -> ThermoTrackerApp:
    """Create an app wired with the default components."""
    app = ThermoTrackerApp(config)

    audit = FileAuditLogger(config)
    validator = ReadingValidationComponent(config)
    engine = SensorSimulationComponent(config, validator=validator, audit_sink=audit)
    analyzer = HistoryAnalysisComponent(config)
    store = DuckDBReadingStore(config)
    dashboard = TerminalDashboard(config) if with_dashboard else None
    watcher = SensorConfigWatcher(config.paths.sensors_file)

    app.set_components(engine, validator, analyzer, store, audit, dashboard, watcher)
    return app


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="thermotracker",
        description="Simulate a fleet of temperature sensors with live validation and anomaly detection."
    )
    parser.add_argument("--config", default="config/default.yaml", help="Application configuration YAML")
    parser.add_argument("--sensors", default=None, help="Sensor definitions YAML (overrides paths.sensors_file)")
    parser.add_argument("--ticks", type=int, default=None, help="Stop after this many ticks")
    parser.add_argument("--seed", type=int, default=None, help="Seed for reproducible simulation")
    parser.add_argument("--log-level", default=None, help="Override logging.level")
    parser.add_argument("--no-dashboard", action="store_true", help="Do not draw the terminal dashboard")
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point for the simulator."""
    args = parse_args(argv)

    try:
        config = AppConfig.from_yaml(Path(args.config))
        overrides = {}
        if args.seed is not None:
            overrides["simulation"] = config.simulation.model_copy(update={"seed": args.seed})
        if args.sensors is not None:
            overrides["paths"] = config.paths.model_copy(update={"sensors_file": str(Path(args.sensors).resolve())})
        if args.log_level is not None:
            overrides["logging"] = config.logging.model_copy(update={"level": args.log_level})
        if overrides:
            config = config.model_copy(update=overrides)

        # The dashboard redraws the whole terminal, so console logs only without it
        setup_logging(
            level=config.logging.level,
            log_file=config.logging.log_file,
            console=args.no_dashboard
        )
        logger = get_logger(__name__)

        sensor_configs = load_sensor_configs(config.paths.sensors_file)
    except ConfigurationError as e:
        print(f"Configuration error: {e}")
        return 1

    logger.info(f"Starting {config.app.name} v{config.app.version} at {utc_now():%Y-%m-%d %H:%M:%S} UTC")

    try:
        app = build_app(config, with_dashboard=not args.no_dashboard)
    except ThermoTrackerError as e:
        logger.error(f"Failed to initialize simulator: {e}")
        return 1

    try:
        app.initialize_sensors(sensor_configs)
        ticks = app.run(max_ticks=args.ticks)
    finally:
        app.shutdown()

    print(f"\n📊 Simulation Summary:")
    print(f"   Ticks completed: {ticks}")
    print(f"   Sensors: {len(app.sensors)}")
    for sensor in app.sensors.values():
        print(
            f"   {sensor.name}: {sensor.total_readings} readings, "
            f"{sensor.error_count} errors, status {sensor.status}"
        )

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
