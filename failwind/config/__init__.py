"""
Failwind Deps Configuration - TOML-based configuration management.

This module provides:
- Loading of `deps.toml` with validation against DEPS_SCHEMA
- Platform (XDG) defaults for all paths
- Programmatic overrides which take precedence over the file

Example usage:
    from failwind.config import load_config

    config = load_config(overrides={"job": {"n_threads": 4}})
    print(config.job.timeout)      # 30000
    print(config.path.opt_dir)     # .../failwind/site/opt

Example `deps.toml`:
    silent = false

    [job]
    n_threads = 4
    timeout = 30000

    [path]
    package = "~/.local/share/failwind/site"
"""

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from failwind.config.schema import (
    DEPS_SCHEMA,
    ValidationError,
    generate_default_config,
    validate_config,
)
from failwind.config.toml_handler import TOMLError, flatten, read_toml


class ConfigError(Exception):
    """Base exception for config API errors."""

    pass


def _xdg_home(env_var: str, fallback: str) -> Path:
    if value := os.environ.get(env_var):
        return Path(value)
    return Path.home() / fallback


def default_config_path() -> Path:
    """
    Get path to user configuration file.

    Returns:
        Path to ~/.config/failwind/deps.toml (or XDG equivalent)
    """
    return _xdg_home("XDG_CONFIG_HOME", ".config") / "failwind" / "deps.toml"


def default_paths() -> dict[str, Path]:
    """Platform default for every `path.*` option."""
    config_dir = _xdg_home("XDG_CONFIG_HOME", ".config") / "failwind"
    return {
        "path.package": _xdg_home("XDG_DATA_HOME", ".local/share") / "failwind" / "site",
        "path.snapshot": config_dir / "deps-snap",
        "path.log": _xdg_home("XDG_STATE_HOME", ".local/state") / "failwind" / "deps.log",
        "path.spec": config_dir / "plugins.toml",
    }


@dataclass(frozen=True)
class JobConfig:
    """
    Parameters of CLI jobs.

    Attributes:
        n_threads: Maximum number of parallel jobs (0 for default)
        timeout: Timeout (in ms) for each job before force quit
    """

    n_threads: int = 0
    timeout: int = 30000


@dataclass(frozen=True)
class PathConfig:
    """
    Paths describing where to store data.

    Attributes:
        package: Directory with plugins, stored in its "opt" subdirectory
        snapshot: Default file path for a snapshot
        log: Log file
        spec: File with declared plugin specifications
    """

    package: Path
    snapshot: Path
    log: Path
    spec: Path

    @property
    def opt_dir(self) -> Path:
        return self.package / "opt"


@dataclass(frozen=True)
class DepsConfig:
    """Resolved configuration of failwind.deps."""

    job: JobConfig
    path: PathConfig
    silent: bool = False


def load_config(
    config_file: Path | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> DepsConfig:
    """
    Load configuration.

    Precedence: schema defaults < config file < overrides.

    Args:
        config_file: Path to TOML config file (default: default_config_path()).
            A missing file is not an error.
        overrides: Option values, either nested ({"job": {"timeout": 1}})
            or dotted ({"job.timeout": 1})

    Returns:
        Resolved DepsConfig

    Raises:
        ConfigError: If file can not be read or any value is invalid
    """
    config_file = config_file or default_config_path()

    values = generate_default_config(DEPS_SCHEMA)
    try:
        if config_file.exists():
            file_values = flatten(read_toml(config_file))
            validate_config(file_values, DEPS_SCHEMA)
            values.update(file_values)

        if overrides:
            override_values = {
                key: str(value) if isinstance(value, Path) else value
                for key, value in flatten(overrides).items()
            }
            validate_config(override_values, DEPS_SCHEMA)
            values.update(override_values)
    except (TOMLError, ValidationError) as e:
        raise ConfigError(f"Invalid configuration: {e}") from e

    defaults = default_paths()
    paths = {
        key: Path(values[key]).expanduser() if values[key] else defaults[key]
        for key in defaults
    }

    return DepsConfig(
        job=JobConfig(
            n_threads=values["job.n_threads"],
            timeout=values["job.timeout"],
        ),
        path=PathConfig(
            package=paths["path.package"],
            snapshot=paths["path.snapshot"],
            log=paths["path.log"],
            spec=paths["path.spec"],
        ),
        silent=values["silent"],
    )


__all__ = [
    "ConfigError",
    "DepsConfig",
    "JobConfig",
    "PathConfig",
    "default_config_path",
    "default_paths",
    "load_config",
]
