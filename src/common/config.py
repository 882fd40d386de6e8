"""Shared configuration utilities."""

import os
import threading
from pathlib import Path
from typing import Callable, Generic, Mapping, TypeVar

import yaml

T = TypeVar('T')


def find_config_path(
    config_name: str | None,
    config_dir: Path,
    default_name: str = "prod",
    env_var: str | None = None,
) -> Path:
    """Find config file path, checking env var and defaults.

    Args:
        config_name: Name of config (without .yaml) or None for default
        config_dir: Directory containing config files
        default_name: Default config name if config_name is None
        env_var: Environment variable to check for config name

    Returns:
        Path to the config file

    Raises:
        FileNotFoundError: If config file doesn't exist
    """
    if config_name is None:
        config_name = os.environ.get(env_var, default_name) if env_var else default_name

    config_path = config_dir / f"{config_name}.yaml"
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    return config_path


def load_yaml(path: Path) -> dict:
    """Load YAML file and return dict (empty dict for an empty file)."""
    with open(path) as f:
        return yaml.safe_load(f) or {}


def first_env(environ: Mapping[str, str], *keys: str, default: str | None = None) -> str | None:
    """Return the first non-empty value among ``keys``, else ``default``."""
    for key in keys:
        value = environ.get(key)
        if value:
            return value
    return default


class ConfigSingleton(Generic[T]):
    """Generic config singleton manager.

    Provides get/set/reset pattern for managing a global config instance.
    Loading is guarded by a lock so concurrent first calls load only once.

    Example:
        >>> def load_my_config() -> MyConfig:
        ...     return MyConfig(...)
        >>> _manager = ConfigSingleton(load_my_config)
        >>> get_config = _manager.get
        >>> set_config = _manager.set
        >>> reset_config = _manager.reset
    """

    def __init__(self, loader: Callable[[], T] | None = None):
        self._config: T | None = None
        self._loader = loader
        self._lock = threading.Lock()

    def get(self) -> T:
        """Get the config, loading it lazily if needed."""
        with self._lock:
            if self._config is None:
                if self._loader is None:
                    raise RuntimeError("No config loaded and no loader set")
                self._config = self._loader()
            return self._config

    def set(self, config: T) -> None:
        """Set the config directly."""
        with self._lock:
            self._config = config

    def reset(self) -> None:
        """Reset the config, forcing reload on next get()."""
        with self._lock:
            self._config = None
