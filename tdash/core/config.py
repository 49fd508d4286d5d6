import json
from dataclasses import dataclass, fields, replace
from tdash.common.logger import log
from tdash.common.setup import PATHS


#region === Helpers and Paths ===

SETTINGS_PATH = PATHS.current / "settings.json"

# Default values for every settings key. Anything missing from settings.json is filled in from here.
_SETTINGS_DEFAULTS = {
    "base_url": "http://127.0.0.1:3000",
    "status_endpoint": "/timers/api/status",
    "start_endpoint": "/timers/start",
    "pause_endpoint": "/timers/pause",
    "stop_endpoint": "/timers/stop",
    "bonus_endpoint": "/timers/bonus",
    "update_interval_ms": 10000,
    "tick_interval_ms": 1000,
    "request_timeout_ms": 15000,
    "notice_ms": 4000,
    "font": "Calibri",
    "size": "Regular",
}

# Interval-like keys have to be positive ints, or the QTimers would spin.
_POSITIVE_INT_KEYS = ("update_interval_ms", "tick_interval_ms", "request_timeout_ms", "notice_ms")

# Helper to return a truly fresh, default settings dict.
def build_default_settings():
    return dict(_SETTINGS_DEFAULTS)

# Whether a value is acceptable for a settings key: positive ints for the interval keys, strings for the rest.
def _is_valid_value(key, value):
    if key in _POSITIVE_INT_KEYS:
        return not isinstance(value, bool) and isinstance(value, int) and value > 0
    return isinstance(value, str)

#endregion === Helpers and Paths ===

#region === Settings object ===

# Typed view of the settings dict, handed to the dashboard at init.
@dataclass(frozen=True)
class DashboardConfig:
    base_url: str = _SETTINGS_DEFAULTS["base_url"]
    status_endpoint: str = _SETTINGS_DEFAULTS["status_endpoint"]
    start_endpoint: str = _SETTINGS_DEFAULTS["start_endpoint"]
    pause_endpoint: str = _SETTINGS_DEFAULTS["pause_endpoint"]
    stop_endpoint: str = _SETTINGS_DEFAULTS["stop_endpoint"]
    bonus_endpoint: str = _SETTINGS_DEFAULTS["bonus_endpoint"]
    update_interval_ms: int = _SETTINGS_DEFAULTS["update_interval_ms"]
    tick_interval_ms: int = _SETTINGS_DEFAULTS["tick_interval_ms"]
    request_timeout_ms: int = _SETTINGS_DEFAULTS["request_timeout_ms"]
    notice_ms: int = _SETTINGS_DEFAULTS["notice_ms"]
    font: str = _SETTINGS_DEFAULTS["font"]
    size: str = _SETTINGS_DEFAULTS["size"]

    @staticmethod
    def from_settings(settings: dict):
        known = {f.name for f in fields(DashboardConfig)}
        return DashboardConfig(**{k: v for k, v in settings.items() if k in known})

    # Returns a copy with the given options layered on top. Unknown keys and invalid values are ignored, keeping the
    # current value, with a warning.
    def merged(self, options=None):
        if not options:
            return self
        known = {f.name for f in fields(DashboardConfig)}
        unknown = sorted(set(options) - known)
        if unknown:
            log.warning(f"Ignoring unknown dashboard options: {', '.join(unknown)}")
        invalid = sorted(k for k, v in options.items() if k in known and not _is_valid_value(k, v))
        if invalid:
            log.warning(f"Ignoring invalid values for dashboard options: {', '.join(invalid)}")
        return replace(self, **{k: v for k, v in options.items() if k in known and k not in invalid})

#endregion === Settings object ===

#region === Saving and Loading Settings ===

# Checks a loaded settings dict against the defaults, returning the names of every key that had to be defaulted.
def _validate_settings(settings):
    defaulted_values = set()
    for key, default in _SETTINGS_DEFAULTS.items():
        if key not in settings:
            defaulted_values.add(key)
            settings[key] = default
        elif not _is_valid_value(key, settings[key]):
            defaulted_values.add(key)
            settings[key] = default
    return defaulted_values

# Loads settings.json, filling defaults for anything missing or invalid. A missing file is written out fresh so users
# have something to edit.
def load_settings(path=None):
    path = path or SETTINGS_PATH
    try:
        if not path.exists():
            settings = build_default_settings()
            save_settings(settings, path)
            log.info(f"No existing settings.json found, wrote fresh defaults to '{path}'.")
            return settings

        with open(path, "r", encoding="utf-8") as f:
            settings = json.load(f)
        if not isinstance(settings, dict):
            raise TypeError(f"settings.json must hold an object, got {type(settings).__name__}")

        defaulted_values = _validate_settings(settings)
        if defaulted_values:
            log.warning(f"Loaded settings from '{path}', but with missing or invalid values that were defaulted: {', '.join(sorted(defaulted_values))}")
        else:
            log.info(f"Successfully loaded settings from '{path}'.")
        return settings
    # Fall back to defaults in case of error, but warn in log
    except (json.JSONDecodeError, OSError, TypeError):
        log.warning("Ran into an error while trying to load settings.json, falling back to defaults.",exc_info=True)
        return build_default_settings()

# Write the given settings to disk
def save_settings(settings, path=None):
    path = path or SETTINGS_PATH
    with open(path, "w", encoding="utf-8") as f:
        json.dump(settings, f, indent=2)
    log.info(f"Successfully saved settings to '{path}'")

def load_config(path=None, options=None):
    return DashboardConfig.from_settings(load_settings(path)).merged(options)

#endregion === Saving and Loading Settings ===
