# src/defpatch/core/managers/config_manager.py
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from defpatch.core.errors import ConfigurationError
from defpatch.core.utils.path_utils import PathUtils

logger = logging.getLogger(__name__)

_TRUE_WORDS = ("1", "true", "yes", "on")


def _deep_merge(base: Dict[str, Any], extra: Dict[str, Any]) -> Dict[str, Any]:
    """Merges `extra` into `base` in place; nested sections merge, everything else is replaced."""
    for key, value in extra.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
    return base


def _coerce(key_path: str, current: Any, value: Any) -> Any:
    """Casts a new value to the type of the value it replaces, when there is one."""
    if current is None or not isinstance(value, str):
        return value
    try:
        if isinstance(current, bool):
            return value.strip().lower() in _TRUE_WORDS
        if isinstance(current, list):
            return [part.strip() for part in value.split(",") if part.strip()]
        if isinstance(current, dict):
            return json.loads(value)
        return type(current)(value)
    except (ValueError, TypeError):
        logger.warning(
            "Could not cast new value for '%s' to type %s. Storing as given.",
            key_path, type(current).__name__
        )
        return value


class ConfigManager:
    """
    A singleton holding the engine settings.

    The bundled settings.json provides every default; a user settings file
    can be layered on top with load_overrides(), and single keys can be
    changed in memory with set_nested().
    """
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(ConfigManager, cls).__new__(cls)
            cls._instance._initialize()
        return cls._instance

    def _initialize(self):
        self._config: Dict[str, Any] = {}
        self._overrides: List[Path] = []
        self.reset()
        logger.debug("ConfigManager initialized.")

    def get_all(self) -> Dict[str, Any]:
        return self._config

    @property
    def overrides(self) -> List[Path]:
        """User settings files applied since the last reset, in order."""
        return list(self._overrides)

    def get_nested(self, key_path: str, default: Optional[Any] = None) -> Any:
        """
        Retrieves a value by dotted path, e.g. 'engine.extensions_tag'.
        Missing keys and null values give `default`.
        """
        node: Any = self._config
        for key in key_path.split('.'):
            if not isinstance(node, dict) or key not in node:
                return default
            node = node[key]
        return default if node is None else node

    def set_nested(self, key_path: str, value: Any) -> bool:
        """
        Sets a value in the in-memory configuration, e.g. ('document.list_tags', 'li,entry').
        String input is cast to the type of the existing value.
        """
        *parents, leaf = key_path.split('.')
        section = self._config
        for key in parents:
            section = section.setdefault(key, {})
            if not isinstance(section, dict):
                logger.error("Cannot set '%s': '%s' is not a section.", key_path, key)
                return False

        section[leaf] = _coerce(key_path, section.get(leaf), value)
        logger.debug("Configuration updated: %s = %r", key_path, section[leaf])
        return True

    def load_overrides(self, path: Union[str, Path]) -> None:
        """
        Layers a user settings file over the current configuration.

        Raises:
            ConfigurationError: If the file cannot be read or is not a JSON object.
        """
        path = Path(path)
        try:
            with open(path, "r", encoding="utf-8") as f:
                extra = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(str(path), str(e)) from e
        if not isinstance(extra, dict):
            raise ConfigurationError(str(path), "top level must be a JSON object")

        _deep_merge(self._config, extra)
        self._overrides.append(path)
        logger.info("Applied settings overrides from %s", path)

    def reset(self):
        """Reloads the bundled settings.json and drops all overrides."""
        self._overrides = []
        config_path = PathUtils.get_settings_file()
        try:
            if not config_path.exists():
                logger.warning("settings.json not found at %s. Using empty config.", config_path)
                self._config = {}
                return
            with open(config_path, "r", encoding="utf-8") as f:
                self._config = json.load(f)
            logger.debug("Configuration has been (re)loaded from %s.", config_path)
        except Exception as e:
            logger.error("Failed to load settings.json: %s", e, exc_info=True)
            self._config = {}


# The global singleton instance used across the package.
config_manager = ConfigManager()
