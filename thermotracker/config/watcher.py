"""
Polling watcher for the sensor definition file.

The orchestrator calls poll() once per tick. When the file's modification
signature changes the definitions are reloaded and handed back so the caller
can resynchronise its sensors; a broken edit is logged and ignored so the
running fleet keeps its last good configuration.
"""

from pathlib import Path
from typing import List, Optional, Tuple, Union

from thermotracker.config.models import SensorConfig, load_sensor_configs
from thermotracker.utils import get_logger, ConfigurationError


class SensorConfigWatcher:
    """Detects changes to the sensors YAML file by polling its mtime and size."""

    def __init__(self, file_path: Union[str, Path]):
        """
        Initialize the watcher and record the file's current signature.

        Args:
            file_path: Sensors YAML file to watch
        """
        self.file_path = Path(file_path)
        self.logger = get_logger(__name__)
        self._signature = self._read_signature()

        self.stats = {
            "polls": 0,
            "changes_detected": 0,
            "reload_failures": 0
        }

        self.logger.info(f"Watching {self.file_path.resolve()} for changes...")

    def _read_signature(self) -> Optional[Tuple[int, int]]:
        try:
            stat = self.file_path.stat()
        except FileNotFoundError:
            return None
        return stat.st_mtime_ns, stat.st_size

    def has_changed(self) -> bool:
        """Whether the file differs from the last observed signature."""
        return self._read_signature() != self._signature

    def poll(self) -> Optional[List[SensorConfig]]:
        """
        Reload sensor definitions if the file changed since the last poll.

        Returns:
            The new configurations, or None when nothing changed or the
            reload failed
        """
        self.stats["polls"] += 1
        signature = self._read_signature()
        if signature == self._signature:
            return None

        self._signature = signature
        self.stats["changes_detected"] += 1
        self.logger.info(f"Detected change in {self.file_path}. Reloading...")

        try:
            configs = load_sensor_configs(self.file_path)
        except ConfigurationError as e:
            self.stats["reload_failures"] += 1
            self.logger.error(f"Failed to reload sensor configuration: {e}")
            return None

        self.logger.info(f"Reloaded {len(configs)} sensor definitions")
        return configs
