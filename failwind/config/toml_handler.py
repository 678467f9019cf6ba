"""
TOML File I/O Handler.

This module provides TOML parsing and writing for configuration and
plugin declaration files.

Key features:
- Parse TOML files using tomllib (Python 3.11+)
- Flatten nested tables into dotted option names
- Generate default config TOML (with descriptive comments) using tomlkit
"""

import tomllib
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import tomlkit

from failwind.config.schema import ConfigField


class TOMLError(Exception):
    """Base exception for TOML-related errors."""

    pass


def read_toml(file_path: Path) -> dict[str, Any]:
    """
    Read and parse a TOML file.

    Args:
        file_path: Path to the TOML file

    Returns:
        Parsed TOML data as dictionary

    Raises:
        TOMLError: If file cannot be read or parsed
    """
    try:
        with open(file_path, "rb") as f:
            return tomllib.load(f)
    except FileNotFoundError as e:
        raise TOMLError(f"TOML file not found: {file_path}") from e
    except tomllib.TOMLDecodeError as e:
        raise TOMLError(f"Failed to parse TOML file {file_path}: {e}") from e
    except OSError as e:
        raise TOMLError(f"Failed to read TOML file {file_path}: {e}") from e


def write_text(file_path: Path, content: str) -> None:
    """
    Write TOML text to a file, creating parent directories.

    Raises:
        TOMLError: If file cannot be written
    """
    try:
        file_path.parent.mkdir(parents=True, exist_ok=True)
        with open(file_path, "w", encoding="utf-8") as f:
            f.write(content)
    except OSError as e:
        raise TOMLError(f"Failed to write TOML file {file_path}: {e}") from e


def flatten(data: Mapping[str, Any], prefix: str = "") -> dict[str, Any]:
    """
    Flatten nested tables into dotted keys.

    Example:
        flatten({"job": {"timeout": 10}}) == {"job.timeout": 10}
    """
    result: dict[str, Any] = {}
    for key, value in data.items():
        full_key = f"{prefix}{key}"
        if isinstance(value, Mapping):
            result.update(flatten(value, prefix=f"{full_key}."))
        else:
            result[full_key] = value
    return result


def generate_toml_from_schema(
    schema: Mapping[str, ConfigField], config_data: Mapping[str, Any] | None = None
) -> str:
    """
    Generate TOML content from schema with descriptive comments.

    Args:
        schema: Schema dictionary (dotted field name -> ConfigField)
        config_data: Flat configuration data (default: schema defaults)

    Returns:
        TOML string with comments
    """
    config_data = config_data or {}
    doc = tomlkit.document()
    doc.add(tomlkit.comment("Configuration for failwind.deps"))
    doc.add(tomlkit.nl())

    # Top-level keys have to precede tables
    ordered = sorted(schema.items(), key=lambda item: "." in item[0])
    tables: dict[str, Any] = {}

    for key, field in ordered:
        container: Any = doc
        name = key
        if "." in key:
            table_name, name = key.split(".", 1)
            container = tables.setdefault(table_name, tomlkit.table())

        if field.description:
            container.add(tomlkit.comment(field.description))
        constraints = []
        if field.min is not None:
            constraints.append(f"min: {field.min}")
        if field.max is not None:
            constraints.append(f"max: {field.max}")
        if constraints:
            container.add(tomlkit.comment(f"Constraints: {', '.join(constraints)}"))

        container.add(name, config_data.get(key, field.default))
        container.add(tomlkit.nl())

    for table_name, table in tables.items():
        doc.add(table_name, table)

    return tomlkit.dumps(doc)
