# src/a11ygraph/managers/config_manager.py
import json
import logging
from typing import Any, Dict, Optional

from a11ygraph.utils.path_utils import PathUtils

logger = logging.getLogger(__name__)


class ConfigManager:
    """
    Singleton holding the analysis configuration.

    Loaded from the package's settings.json; values can be changed in memory
    with dotted keys. The analysis core never reads it directly: sessions get
    plain values through SessionSettings.from_config().
    """
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(ConfigManager, cls).__new__(cls)
            cls._instance._initialize()
        return cls._instance

    def _initialize(self):
        self._config: Dict[str, Any] = {}
        self.reset()
        logger.debug("ConfigManager initialized.")

    def get_all(self) -> Dict[str, Any]:
        return self._config

    def get_nested(self, key_path: str, default: Optional[Any] = None) -> Any:
        """
        Retrieves a nested value, e.g. 'completeness.fragment_penalty'.
        Returns `default` when any part of the path is missing.
        """
        value = self._config
        for key in key_path.split('.'):
            if not isinstance(value, dict):
                return default
            value = value.get(key)
        return value if value is not None else default

    def set_nested(self, key_path: str, value: Any) -> bool:
        """
        Sets a nested value in memory, e.g. ('analysis.workers', '8').
        The new value is cast to the type of the value it replaces when possible.
        """
        keys = key_path.split('.')
        d = self._config
        for key in keys[:-1]:
            d = d.setdefault(key, {})
            if not isinstance(d, dict):
                logger.error("Cannot set value: '%s' is not a section.", key)
                return False

        original_value = d.get(keys[-1])
        if original_value is not None:
            value = self._cast_like(original_value, value, key_path)

        d[keys[-1]] = value
        logger.info("Configuration updated: %s = %s", key_path, value)
        return True

    @staticmethod
    def _cast_like(original: Any, value: Any, key_path: str) -> Any:
        # bool('false') is True, so booleans get their own parsing
        if isinstance(original, bool) and isinstance(value, str):
            lowered = value.strip().lower()
            if lowered in ("true", "1", "yes", "on"):
                return True
            if lowered in ("false", "0", "no", "off"):
                return False
        elif isinstance(original, (list, dict)) and isinstance(value, str):
            try:
                return json.loads(value)
            except json.JSONDecodeError:
                pass
        else:
            try:
                return type(original)(value)
            except (ValueError, TypeError):
                pass
        logger.warning("Could not cast new value for '%s' to type %s. Storing as given.",
                       key_path, type(original).__name__)
        return value

    def reset(self):
        """Reloads the configuration from settings.json, discarding in-memory changes."""
        config_path = PathUtils.get_settings_file()
        if not config_path.exists():
            logger.warning("settings.json not found at %s. Using empty config.", config_path)
            self._config = {}
            return
        try:
            with open(config_path, "r", encoding="utf-8") as f:
                self._config = json.load(f)
            logger.info("Configuration has been (re)loaded from settings.json.")
        except (OSError, json.JSONDecodeError) as e:
            logger.error("Failed to load settings.json: %s", e, exc_info=True)
            self._config = {}


config_manager = ConfigManager()
