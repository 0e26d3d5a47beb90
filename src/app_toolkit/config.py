"""
Configuration management.

All configuration for the store is defined here; no other module should
invent config keys.

Key invariants:
- The store file always lives at {data_root}/{app_name}/{app_name}.db
- The busy timeout is the default deadline for every connection
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

VALID_JOURNAL_MODES = ("DELETE", "TRUNCATE", "PERSIST", "MEMORY", "WAL", "OFF")


class ConfigValidationError(Exception):
    """Raised when configuration validation fails."""

    pass


@dataclass
class StoreConfig:
    """SQLite store configuration.

    - app_name: Name of the application directory (and of the .db file).
      None means the running script's name.
    - data_root: Parent directory for application directories. None means
      the platform's local application data directory.
    """

    app_name: str | None = None
    data_root: Path | None = None
    # sqlite3 busy timeout applied to every connection (seconds)
    busy_timeout_seconds: float = 5.0
    # Enforce FOREIGN KEY constraints on every connection
    foreign_keys: bool = True
    # Journal mode applied when the store is initialized
    journal_mode: str = "WAL"


@dataclass
class Config:
    """Application configuration."""

    store: StoreConfig = field(default_factory=StoreConfig)
    log_level: str = "INFO"

    def validate(self) -> list[str]:
        """Validate configuration consistency.

        Returns:
            List of validation errors (empty if valid)
        """
        errors: list[str] = []

        if self.store.busy_timeout_seconds < 0:
            errors.append("store.busy_timeout_seconds must be >= 0")
        if self.store.journal_mode.upper() not in VALID_JOURNAL_MODES:
            errors.append(
                f"store.journal_mode must be one of {', '.join(VALID_JOURNAL_MODES)}"
            )
        if self.store.app_name is not None and not self.store.app_name.strip():
            errors.append("store.app_name must not be blank")
        if logging.getLevelName(self.log_level.upper()) not in (
            logging.DEBUG,
            logging.INFO,
            logging.WARNING,
            logging.ERROR,
            logging.CRITICAL,
        ):
            errors.append(f"log_level '{self.log_level}' is not a logging level")

        return errors


def _optional_str(value: object, key: str) -> str | None:
    """Return a YAML scalar that must be a string (or absent)."""
    if value is None or isinstance(value, str):
        return value
    raise ConfigValidationError(f"{key} must be a string, got {value!r}")


def _number(value: object, key: str) -> float:
    """Return a YAML or environment value that must be a number."""
    if isinstance(value, bool):
        raise ConfigValidationError(f"{key} must be a number, got {value!r}")
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise ConfigValidationError(f"{key} must be a number, got {value!r}") from e


def load_config(config_path: Path) -> Config:
    """
    Load configuration from YAML file.

    Environment variables can override config values:
    - APP_TOOLKIT_APP_NAME
    - APP_TOOLKIT_DATA_ROOT
    - APP_TOOLKIT_BUSY_TIMEOUT (seconds)
    - APP_TOOLKIT_LOG_LEVEL

    Raises:
        ConfigValidationError: If the resulting configuration is invalid
    """
    if config_path.exists():
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
    else:
        data = {}

    if not isinstance(data, dict):
        raise ConfigValidationError(f"{config_path} must contain a mapping")
    store_data = data.get("store", {}) or {}
    if not isinstance(store_data, dict):
        raise ConfigValidationError("store must be a mapping")

    data_root = os.environ.get(
        "APP_TOOLKIT_DATA_ROOT", _optional_str(store_data.get("data_root"), "store.data_root")
    )

    busy_timeout_env = os.environ.get("APP_TOOLKIT_BUSY_TIMEOUT", "")
    if busy_timeout_env:
        busy_timeout = _number(busy_timeout_env, "APP_TOOLKIT_BUSY_TIMEOUT")
    else:
        busy_timeout = _number(
            store_data.get("busy_timeout_seconds", 5.0), "store.busy_timeout_seconds"
        )

    foreign_keys = store_data.get("foreign_keys", True)
    if not isinstance(foreign_keys, bool):
        raise ConfigValidationError(
            f"store.foreign_keys must be true or false, got {foreign_keys!r}"
        )

    journal_mode = _optional_str(store_data.get("journal_mode"), "store.journal_mode") or "WAL"

    store = StoreConfig(
        app_name=os.environ.get(
            "APP_TOOLKIT_APP_NAME", _optional_str(store_data.get("app_name"), "store.app_name")
        ),
        data_root=Path(data_root).expanduser() if data_root else None,
        busy_timeout_seconds=busy_timeout,
        foreign_keys=foreign_keys,
        journal_mode=journal_mode.upper(),
    )

    config = Config(
        store=store,
        log_level=os.environ.get(
            "APP_TOOLKIT_LOG_LEVEL", _optional_str(data.get("log_level"), "log_level") or "INFO"
        ),
    )

    errors = config.validate()
    if errors:
        raise ConfigValidationError("; ".join(errors))

    return config


def create_default_config(config_path: Path) -> None:
    """Create a default configuration file."""
    default_config = """# app-toolkit store configuration
#
# The store file lives at {data_root}/{app_name}/{app_name}.db

store:
  app_name: null              # Defaults to the running script's name
  data_root: null             # Defaults to the local application data directory
  busy_timeout_seconds: 5.0   # How long a connection waits on a locked database
  foreign_keys: true          # Enforce FOREIGN KEY constraints
  journal_mode: "WAL"         # DELETE, TRUNCATE, PERSIST, MEMORY, WAL or OFF

log_level: "INFO"
"""

    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, "w") as f:
        f.write(default_config)
