import os
import yaml
from typing import Any, Dict, List, Optional, Sequence, Union

# Default configuration values
DEFAULT_CONFIG: Dict[str, Any] = {
    "log_level": "INFO",
    "threads": 1,
    "pool_type": "thread",
    "chunk_lines": 50000,
    "ignore_level": 4,
    # The header command keeps every reference path name unless told otherwise
    "header_ignore_level": 0,
    "skip": [],
    "sort_key": None,
    "reverse": False,
    "strict": False,
    "on_malformed": "drop",
    "duplicate_policy": "first",
    "node_key": "auto",
    "progress": False,
}

LOG_LEVELS: List[str] = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

# Allowed values for enumerated settings
CHOICES: Dict[str, Sequence[str]] = {
    "pool_type": ("thread", "process"),
    "on_malformed": ("drop", "keep"),
    "duplicate_policy": ("first", "error"),
    "node_key": ("auto", "chrom", "pos"),
}


class ConfigurationError(Exception):
    """Raised when a configuration file or setting cannot be used."""
    pass


def parse_skip(value: Union[None, str, Sequence[str]]) -> List[str]:
    """Accept a comma-separated string or a list; empty entries are dropped."""
    if value is None:
        return []
    if isinstance(value, str):
        items = value.split(',')
    else:
        items = list(value)
    return [str(item).strip() for item in items if str(item).strip()]


class Config:
    """
    Run settings for every gfaligner command.

    Settings are layered: built-in defaults, then an optional YAML file, then
    explicit overrides (command-line values). ``None`` overrides are ignored so
    unset options fall through to the file or the defaults.
    """

    def __init__(self):
        self._settings: Dict[str, Any] = DEFAULT_CONFIG.copy()
        self._settings["skip"] = []

    def load(self, config_file: Optional[str] = None,
             overrides: Optional[Dict[str, Any]] = None) -> "Config":
        """
        Loads configuration from a YAML file and explicit overrides, then validates.

        Raises:
            ConfigurationError: If the file is missing or unparsable, or a value is invalid.
        """
        # File layer
        if config_file:
            if not os.path.exists(config_file):
                raise ConfigurationError(f"Config file not found: {config_file}")
            try:
                with open(config_file, 'r') as f:
                    file_config = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Error parsing config file {config_file}: {e}")
            except OSError as e:
                raise ConfigurationError(f"Error reading config file {config_file}: {e}")
            if file_config:
                if not isinstance(file_config, dict):
                    raise ConfigurationError(f"Config file {config_file} must contain a mapping, "
                                             f"got {type(file_config).__name__}")
                self._apply(file_config, source=config_file)

        # Command-line layer; None means "not given"
        if overrides:
            self._apply({k: v for k, v in overrides.items() if v is not None}, source="command line")

        self._validate()
        return self

    def _apply(self, values: Dict[str, Any], source: str):
        unknown = sorted(k for k in values if k not in DEFAULT_CONFIG)
        if unknown:
            raise ConfigurationError(f"Unknown configuration keys in {source}: {', '.join(unknown)}")
        self._settings.update(values)

    def _validate(self):
        s = self._settings
        s["skip"] = parse_skip(s.get("skip"))

        level = str(s.get("log_level", "")).upper()
        if level not in LOG_LEVELS:
            raise ConfigurationError(f"log_level must be one of {', '.join(LOG_LEVELS)}, got {s.get('log_level')!r}")
        s["log_level"] = level

        for key, low, high in (("ignore_level", 0, 5), ("header_ignore_level", 0, 5),
                               ("threads", 1, None), ("chunk_lines", 1, None)):
            value = s.get(key)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ConfigurationError(f"{key} must be an integer, got {value!r}")
            if value < low or (high is not None and value > high):
                allowed = f"{low}-{high}" if high is not None else f">= {low}"
                raise ConfigurationError(f"{key} must be {allowed}, got {value}")

        for key, allowed in CHOICES.items():
            value = s.get(key)
            if isinstance(value, str):
                value = value.lower()
                s[key] = value
            if value not in allowed:
                raise ConfigurationError(f"{key} must be one of {', '.join(allowed)}, got {value!r}")

        for key in ("reverse", "strict", "progress"):
            if not isinstance(s.get(key), bool):
                raise ConfigurationError(f"{key} must be true or false, got {s.get(key)!r}")

    def get(self, key: str, default: Any = None) -> Any:
        """Return one setting; lists are copied."""
        value = self._settings.get(key, default)
        return list(value) if isinstance(value, list) else value

    def get_all(self) -> Dict[str, Any]:
        """Return a copy of every setting."""
        settings = self._settings.copy()
        settings["skip"] = list(settings["skip"])
        return settings


def load_config(config_file: Optional[str] = None, **overrides: Any) -> Config:
    """Build and validate a Config in one call."""
    return Config().load(config_file, overrides)
