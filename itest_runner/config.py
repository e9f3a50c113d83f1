import json
import logging
import shlex
from pathlib import Path
from typing import Any, Dict, Optional

import itest_runner.settings as default_settings

log = logging.getLogger(__name__)


class MergedSettings:
    """
    Merges the default settings with JSON overrides.

    Precedence:
    1. Base values from `settings.py`.
    2. Overrides from the `.env` file (handled by `python-dotenv` in settings.py).
    3. Overrides from the overrides JSON file for keys in `MODIFIABLE_SETTINGS`.
    """

    def __init__(self, overrides_path: Optional[Path] = None) -> None:
        self.OVERRIDES_JSON_PATH: Path = Path(overrides_path or default_settings.OVERRIDES_JSON_PATH)

        self._load_defaults()
        self._load_overrides()

    def _load_defaults(self) -> None:
        """Loads all uppercase attributes from the settings module as defaults."""
        for key in dir(default_settings):
            if key.isupper() and key != "OVERRIDES_JSON_PATH":
                setattr(self, key, getattr(default_settings, key))

    def _coerce(self, key: str, value: Any) -> Any:
        """Converts an override to the type of the default value it replaces."""
        original_value = getattr(self, key)
        if isinstance(original_value, bool):
            return str(value).lower() in ('true', '1', 't', 'yes', 'y')
        if isinstance(original_value, Path):
            return Path(value)
        if isinstance(original_value, list):
            return value if isinstance(value, list) else shlex.split(str(value))
        if original_value is not None:
            return type(original_value)(value)
        return value

    def _load_overrides(self) -> None:
        """
        Loads and applies settings from the overrides file.

        Only keys listed in `MODIFIABLE_SETTINGS` are applied.
        """
        if not self.OVERRIDES_JSON_PATH.exists():
            return

        try:
            with self.OVERRIDES_JSON_PATH.open('r') as f:
                overrides = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            log.error(f"Failed to load or parse overrides file '{self.OVERRIDES_JSON_PATH}': {e}")
            return

        log.info(f"Loading runtime configuration overrides from {self.OVERRIDES_JSON_PATH}")
        for key, value in overrides.items():
            if not hasattr(self, key):
                log.warning(f"Override setting '{key}' not found in default settings. Ignoring.")
                continue
            if key not in self.MODIFIABLE_SETTINGS:
                log.warning(f"Attempted to override non-modifiable setting '{key}'. Ignoring.")
                continue
            try:
                setattr(self, key, self._coerce(key, value))
                log.debug(f"Overridden setting: {key} = {value}")
            except (ValueError, TypeError) as e:
                log.error(f"Could not convert value '{value}' for key '{key}'. Error: {e}")

    def as_dict(self) -> Dict[str, Any]:
        """Returns every setting as a plain dictionary."""
        return {key: getattr(self, key) for key in dir(self) if key.isupper()}


# Create a singleton instance to be imported by other modules
effective_settings = MergedSettings()
