import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import webfarm.settings as default_settings

log = logging.getLogger(__name__)


class MergedSettings:
    """
    A singleton class that merges default settings with JSON/env overrides.

    This class provides a unified, attribute-based access point for the
    worker host configuration. It follows a clear precedence:
    1. Base values from `settings.py`.
    2. Overrides from `.env` file (handled by `python-dotenv` in settings.py).
    3. Overrides from `overrides.json` for settings in `MODIFIABLE_SETTINGS`.
    """

    def __init__(self, overrides_path: Optional[Path] = None) -> None:
        """
        Initializes the settings object by loading defaults and overrides.

        :param overrides_path: Optional path replacing `OVERRIDES_JSON_PATH`.
        """
        self.OVERRIDES_JSON_PATH: Path = overrides_path or default_settings.OVERRIDES_JSON_PATH

        self._load_defaults()
        self._load_overrides()

    def _load_defaults(self) -> None:
        """Loads all uppercase attributes from the settings.py module as defaults."""
        for key in dir(default_settings):
            if key.isupper() and key != "OVERRIDES_JSON_PATH":
                setattr(self, key, getattr(default_settings, key))

    def _read_overrides_file(self) -> Dict[str, Any]:
        """Returns the raw contents of `overrides.json`, or an empty dict if it is missing or invalid."""
        if not self.OVERRIDES_JSON_PATH.exists():
            return {}

        try:
            with self.OVERRIDES_JSON_PATH.open('r') as f:
                overrides = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            log.error(f"Failed to load or parse overrides file '{self.OVERRIDES_JSON_PATH}': {e}")
            return {}

        if not isinstance(overrides, dict):
            log.error(f"Overrides file '{self.OVERRIDES_JSON_PATH}' must contain a JSON object. Ignoring.")
            return {}
        return overrides

    def _apply(self, key: str, value: Any) -> None:
        original_value = getattr(self, key)
        if isinstance(original_value, Path):
            setattr(self, key, Path(value))
        else:
            setattr(self, key, value)
        log.debug(f"Overridden setting: {key} = {value}")

    def _load_overrides(self) -> None:
        """
        Loads and applies settings from the `overrides.json` file.

        Only keys listed in `MODIFIABLE_SETTINGS` are applied.
        """
        overrides = self._read_overrides_file()
        if not overrides:
            return

        log.info(f"Loading runtime configuration overrides from {self.OVERRIDES_JSON_PATH}")
        for key, value in overrides.items():
            if not hasattr(self, key):
                log.warning(f"Override setting '{key}' not found in default settings. Ignoring.")
                continue
            if key not in self.MODIFIABLE_SETTINGS:
                log.warning(f"Attempted to override non-modifiable setting '{key}'. Ignoring.")
                continue
            self._apply(key, value)

    def as_dict(self) -> Dict[str, Any]:
        """Returns every effective setting as a dictionary."""
        return {key: getattr(self, key) for key in dir(self) if key.isupper()}

    def save_overrides(self, overrides_to_save: Dict[str, Any]) -> bool:
        """
        Merges the provided settings into the overrides JSON file and applies them.

        Keys that are not in `MODIFIABLE_SETTINGS` are dropped before writing.
        Overrides already in the file for other keys are kept.

        :param overrides_to_save: A dictionary of settings to persist.
        :return: True if the file was written.
        """
        filtered_overrides = {
            key: value
            for key, value in overrides_to_save.items()
            if key in self.MODIFIABLE_SETTINGS
        }

        if not filtered_overrides:
            log.warning("No modifiable settings provided to save.")
            return False

        merged = {
            key: value
            for key, value in self._read_overrides_file().items()
            if key in self.MODIFIABLE_SETTINGS
        }
        merged.update(filtered_overrides)

        try:
            self.OVERRIDES_JSON_PATH.parent.mkdir(parents=True, exist_ok=True)
            with self.OVERRIDES_JSON_PATH.open('w') as f:
                json.dump(merged, f, indent=4)
            log.info(f"Configuration overrides saved to {self.OVERRIDES_JSON_PATH}")
        except IOError as e:
            log.error(f"Failed to write to overrides file '{self.OVERRIDES_JSON_PATH}': {e}")
            return False

        for key, value in filtered_overrides.items():
            self._apply(key, value)
        return True


# Create a singleton instance to be imported by other modules
effective_settings = MergedSettings()
