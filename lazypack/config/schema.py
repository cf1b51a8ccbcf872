"""
Settings Schema.

This module declares the ``[settings]`` table of a lazypack config file.

Key features:
- Type-safe field definitions with constraints
- Partial validation (missing keys take defaults, unknown keys are rejected)
- Settings dataclass consumed by the manager and the CLI
"""

from dataclasses import dataclass, fields
from typing import Any

from lazypack.errors import LazyPackError


class SchemaError(LazyPackError):
    """Raised when a schema field is declared incorrectly."""

    pass


class ValidationError(SchemaError):
    """Raised when a config value fails validation."""

    pass


@dataclass
class ConfigField:
    """
    Represents a configuration field with type and constraints.

    Attributes:
        type_: The expected type of the field value
        default: Default value for the field
        description: Human-readable description
        min: Minimum value (numbers only)
        max: Maximum value (numbers only)
        choices: List of allowed values (optional)
    """

    type_: type
    default: Any
    description: str = ""
    min: Any = None
    max: Any = None
    choices: list[Any] | None = None

    def __post_init__(self):
        if not isinstance(self.default, self.type_):
            raise SchemaError(
                f"Default value {self.default!r} does not match type {self.type_.__name__}"
            )
        if (self.min is not None or self.max is not None) and self.type_ not in (int, float):
            raise SchemaError(
                f"min/max constraints only supported for int, float. Got {self.type_.__name__}"
            )
        if self.choices is not None and self.default not in self.choices:
            raise SchemaError(
                f"Default value {self.default!r} not in choices {self.choices}"
            )

    def validate(self, value: Any) -> None:
        """
        Validate a value against this field's constraints.

        Raises:
            ValidationError: If validation fails
        """
        # bool is an int subclass; keep them apart
        if not isinstance(value, self.type_) or (
            self.type_ is int and isinstance(value, bool)
        ):
            raise ValidationError(
                f"Expected type {self.type_.__name__}, got {type(value).__name__}"
            )

        if self.choices is not None and value not in self.choices:
            raise ValidationError(
                f"Value {value!r} not in allowed choices {self.choices}"
            )

        if self.min is not None and value < self.min:
            raise ValidationError(f"Value {value} is less than minimum {self.min}")
        if self.max is not None and value > self.max:
            raise ValidationError(f"Value {value} is greater than maximum {self.max}")


SETTINGS_SCHEMA: dict[str, ConfigField] = {
    "auto_install": ConfigField(
        bool, True, "Install missing units when they are added"
    ),
    "parallel_install": ConfigField(
        bool, True, "Let the installer process several units at once"
    ),
    "git_timeout": ConfigField(
        int, 60, "Timeout in seconds for each installer command", min=1, max=3600
    ),
    "log_level": ConfigField(
        str,
        "INFO",
        "Logging level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    ),
    "install_dir": ConfigField(
        str, "~/.local/share/lazypack", "Directory holding installed units"
    ),
    "ecosystem": ConfigField(
        str, "nvim", "Name stripped from unit ids (foo.nvim / nvim-foo -> foo)"
    ),
}


@dataclass
class Settings:
    """Validated ``[settings]`` values."""

    auto_install: bool = True
    parallel_install: bool = True
    git_timeout: int = 60
    log_level: str = "INFO"
    install_dir: str = "~/.local/share/lazypack"
    ecosystem: str = "nvim"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Settings":
        """
        Build settings from a (possibly partial) ``[settings]`` table.

        Raises:
            ValidationError: On unknown keys or invalid values
        """
        validate_settings(data)
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


def validate_settings(
    data: dict[str, Any], schema: dict[str, ConfigField] = SETTINGS_SCHEMA
) -> None:
    """
    Validate a settings table against a schema.

    Raises:
        ValidationError: If validation fails
    """
    for key in data:
        if key not in schema:
            raise ValidationError(f"Unknown setting: {key}")

    for name, config_field in schema.items():
        if name not in data:
            continue
        try:
            config_field.validate(data[name])
        except ValidationError as e:
            raise ValidationError(f"Setting '{name}': {e}") from e
