"""
Configuration Schema.

This module declares the recognized configuration options and validates
values against them.

Key features:
- Type-safe field definitions with min/max constraints
- Dotted option names mirroring TOML tables ("job.timeout")
- Rejection of unknown options
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any


class SchemaError(Exception):
    """Base exception for schema-related errors."""

    pass


class ValidationError(SchemaError):
    """Raised when value validation fails."""

    pass


@dataclass(frozen=True)
class ConfigField:
    """
    Represents a configuration field with type and constraints.

    Attributes:
        type_: The expected type of the field value
        default: Default value for the field
        description: Human-readable description
        min: Minimum value (for numbers)
        max: Maximum value (for numbers)
    """

    type_: type
    default: Any
    description: str = ""
    min: Any = None
    max: Any = None

    def __post_init__(self):
        """Validate field definition."""
        if not _is_instance(self.default, self.type_):
            raise SchemaError(
                f"Default value {self.default!r} does not match type {self.type_.__name__}"
            )
        if (self.min is not None or self.max is not None) and self.type_ not in (
            int,
            float,
        ):
            raise SchemaError(
                f"min/max constraints only supported for int, float. Got {self.type_.__name__}"
            )

    def validate(self, value: Any) -> None:
        """
        Validate a value against this field's constraints.

        Args:
            value: The value to validate

        Raises:
            ValidationError: If validation fails
        """
        if not _is_instance(value, self.type_):
            raise ValidationError(
                f"Expected type {self.type_.__name__}, got {type(value).__name__}"
            )

        if self.min is not None and value < self.min:
            raise ValidationError(f"Value {value} is less than minimum {self.min}")
        if self.max is not None and value > self.max:
            raise ValidationError(f"Value {value} is greater than maximum {self.max}")


def _is_instance(value: Any, type_: type) -> bool:
    # bool is an int subclass, but `n_threads = true` is a mistake
    if isinstance(value, bool) and type_ is not bool:
        return False
    return isinstance(value, type_)


# Empty path means "use platform default" (see failwind.config.default_paths)
DEPS_SCHEMA: dict[str, ConfigField] = {
    "silent": ConfigField(bool, False, "Whether to disable showing non-error feedback"),
    "job.n_threads": ConfigField(
        int, 0, "Number of parallel jobs. 0 means 80% of available cores", min=0
    ),
    "job.timeout": ConfigField(
        int, 30000, "Timeout (in ms) for each job before force quit", min=1
    ),
    "path.package": ConfigField(
        str, "", "Directory with plugins (stored in its 'opt' subdirectory)"
    ),
    "path.snapshot": ConfigField(str, "", "Default file path for a snapshot"),
    "path.log": ConfigField(str, "", "Log file"),
    "path.spec": ConfigField(str, "", "File with declared plugin specifications"),
}


def validate_config(config: Mapping[str, Any], schema: Mapping[str, ConfigField]) -> None:
    """
    Validate a flat (dotted keys) configuration against a schema.

    Args:
        config: The configuration dictionary to validate
        schema: The schema dictionary (field_name -> ConfigField)

    Raises:
        ValidationError: If validation fails
    """
    for key in config:
        if key not in schema:
            raise ValidationError(f"Unknown configuration field: {key}")

    for key, value in config.items():
        try:
            schema[key].validate(value)
        except ValidationError as e:
            raise ValidationError(f"Field '{key}': {e}") from e


def generate_default_config(schema: Mapping[str, ConfigField]) -> dict[str, Any]:
    """
    Generate a default flat configuration from a schema.

    Args:
        schema: The schema dictionary (field_name -> ConfigField)

    Returns:
        A dictionary with default values for all fields
    """
    return {key: field.default for key, field in schema.items()}
