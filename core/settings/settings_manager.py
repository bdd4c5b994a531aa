"""
Settings manager implementation for the image feed.

Uses QSettings for persistent storage, always in INI format on an explicit
file so the location is the same on every platform. Keys use dot notation
(e.g. 'cache.memory_max_mb').
"""
from typing import Any, Callable, Dict, List, Optional
import os
import threading
from pathlib import Path

from PySide6.QtCore import QObject, QSettings, Signal

from core.constants import sizes, timing
from core.logging.logger import get_logger, is_verbose_logging

logger = get_logger('SettingsManager')

SETTINGS_ENV_VAR = "CATFINDER_SETTINGS"
DEFAULT_SETTINGS_FILE = Path.home() / ".catfinder" / "settings.ini"


def default_settings() -> Dict[str, Any]:
    """Return a fresh copy of the default settings map."""
    return {
        # Memory tier
        'cache.memory_max_mb': sizes.MEMORY_CACHE_MAX_MB,
        'cache.memory_max_items': sizes.MEMORY_CACHE_MAX_ITEMS,
        # Disk tier ('' means the platform cache directory)
        'cache.disk_max_mb': sizes.DISK_CACHE_MAX_MB,
        'cache.disk_dir': '',
        # Lookahead buffer
        'deck.lookahead_depth': sizes.LOOKAHEAD_DEPTH,
        'deck.max_fill_attempts': sizes.FILL_MAX_ATTEMPTS,
        'deck.size_hint': sizes.DEFAULT_SIZE_HINT,
        # Network
        'network.fetch_timeout': timing.FETCH_TIMEOUT_SECONDS,
        'network.discovery_timeout': timing.DISCOVERY_TIMEOUT_SECONDS,
        'discovery.endpoint': 'https://cataas.com/cat?json=true',
        # Decision store / favorites export ('' means next to settings file)
        'store.path': '',
        'export.favorites_path': '',
    }


class SettingsManager(QObject):
    """
    Centralized settings management for the image feed.

    Thread-safe with change notifications. Values read back from the INI
    file come out as strings, so callers use the typed getters.
    """

    # Signal emitted when settings change
    settings_changed = Signal(str, object)  # key, new_value

    def __init__(self, path: Optional[Path] = None):
        """
        Initialize the settings manager.

        Args:
            path: INI file backing the settings. Falls back to the
                CATFINDER_SETTINGS environment variable, then
                ~/.catfinder/settings.ini.
        """
        super().__init__()

        env_path = os.getenv(SETTINGS_ENV_VAR)
        if path is not None:
            self._path = Path(path)
        elif env_path:
            self._path = Path(env_path)
        else:
            self._path = DEFAULT_SETTINGS_FILE

        self._settings = QSettings(str(self._path), QSettings.Format.IniFormat)
        self._lock = threading.RLock()
        self._change_handlers: Dict[str, List[Callable[[Any, Any], None]]] = {}

        if self._settings.status() != QSettings.Status.NoError:
            logger.warning("Settings file %s could not be parsed; using defaults", self._path)

        self._set_defaults()

        logger.info("SettingsManager initialized (%s)", self._path)

    @property
    def path(self) -> Path:
        return self._path

    def _set_defaults(self) -> None:
        """Set default values if not already present."""
        with self._lock:
            for key, value in default_settings().items():
                if not self._settings.contains(key):
                    self._settings.setValue(key, value)

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a setting value.

        Args:
            key: Setting key in dot notation (e.g., 'deck.lookahead_depth')
            default: Default value if key not found

        Returns:
            Setting value or default
        """
        with self._lock:
            return self._settings.value(key, default)

    @staticmethod
    def to_bool(value: Any, default: bool = False) -> bool:
        """Normalize a stored setting value to bool.

        Accepts common string forms ("true", "1", "yes", "on") as True and
        ("false", "0", "no", "off") as False.
        """
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            v = value.strip().lower()
            if v in ("true", "1", "yes", "on"):
                return True
            if v in ("false", "0", "no", "off"):
                return False
            return default
        if value is None:
            return default
        return bool(value)

    def get_bool(self, key: str, default: bool = False) -> bool:
        """Convenience wrapper around get() that normalizes to bool."""
        return self.to_bool(self.get(key, default), default)

    def get_int(self, key: str, default: int = 0) -> int:
        """Convenience wrapper around get() that normalizes to int."""
        raw = self.get(key, default)
        try:
            return int(float(raw)) if isinstance(raw, str) else int(raw)
        except (TypeError, ValueError):
            logger.debug("Setting %s=%r is not an int, using %s", key, raw, default)
            return default

    def get_float(self, key: str, default: float = 0.0) -> float:
        """Convenience wrapper around get() that normalizes to float."""
        raw = self.get(key, default)
        try:
            return float(raw)
        except (TypeError, ValueError):
            logger.debug("Setting %s=%r is not a float, using %s", key, raw, default)
            return default

    def get_path(self, key: str) -> Optional[Path]:
        """Return a path setting, or None when unset/empty."""
        raw = self.get(key, '')
        if not raw:
            return None
        return Path(str(raw)).expanduser()

    def set(self, key: str, value: Any) -> None:
        """
        Set a setting value.

        Args:
            key: Setting key in dot notation
            value: Value to set
        """
        with self._lock:
            old_value = self._settings.value(key)
            self._settings.setValue(key, value)

            self.settings_changed.emit(key, value)

            for handler in list(self._change_handlers.get(key, ())):
                try:
                    handler(value, old_value)
                except Exception as e:
                    logger.error(f"Error in change handler for {key}: {e}")

        if is_verbose_logging():
            logger.debug("Setting changed: %s: %r -> %r", key, old_value, value)
        else:
            logger.debug("Setting changed: %s", key)

    def save(self) -> None:
        """Force save settings to persistent storage."""
        with self._lock:
            self._settings.sync()
            status = self._settings.status()
        if status != QSettings.Status.NoError:
            logger.warning("Failed to save settings to %s (%s)", self._path, status)
        else:
            logger.debug("Settings saved")

    def load(self) -> None:
        """Load settings from persistent storage."""
        # QSettings loads automatically, but we can force sync
        with self._lock:
            self._settings.sync()
        logger.debug("Settings loaded")

    def on_changed(self, key: str, handler: Callable[[Any, Any], None]) -> None:
        """
        Register a handler for when a specific setting changes.

        Args:
            key: Setting key to watch
            handler: Callback function(new_value, old_value)
        """
        with self._lock:
            self._change_handlers.setdefault(key, []).append(handler)

        logger.debug(f"Registered change handler for {key}")

    def reset_to_defaults(self) -> None:
        """Reset all settings to default values."""
        with self._lock:
            self._settings.clear()
            for key, value in default_settings().items():
                self._settings.setValue(key, value)
            self._settings.sync()
        logger.info("Settings reset to defaults")
        self.settings_changed.emit('*', None)  # Signal that all changed

    def get_all_keys(self) -> List[str]:
        """Get all setting keys."""
        with self._lock:
            return sorted(self._settings.allKeys())

    def contains(self, key: str) -> bool:
        """Check if a setting key exists."""
        with self._lock:
            return self._settings.contains(key)

    def remove(self, key: str) -> None:
        """Remove a setting key."""
        with self._lock:
            self._settings.remove(key)
        logger.debug(f"Removed setting: {key}")

    def clear(self) -> None:
        """Clear all settings (use with caution)."""
        with self._lock:
            self._settings.clear()
        logger.warning("All settings cleared")
