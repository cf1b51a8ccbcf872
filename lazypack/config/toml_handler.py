"""
TOML File I/O Handler.

This module provides TOML parsing and writing with comment preservation.

Key features:
- Parse TOML files using tomllib (Python 3.11+)
- Write TOML files using tomlkit (preserves comments and formatting)
- Generate a commented default config from the settings schema
"""

import tomllib
from pathlib import Path
from typing import Any

import tomlkit

from lazypack.config.schema import SETTINGS_SCHEMA, ConfigField
from lazypack.errors import LazyPackError


class TOMLError(LazyPackError):
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


def write_toml(file_path: Path, data: dict[str, Any] | tomlkit.TOMLDocument) -> None:
    """
    Write data to a TOML file using tomlkit (preserves formatting).

    Args:
        file_path: Path to the TOML file
        data: Data or tomlkit document to write

    Raises:
        TOMLError: If file cannot be written
    """
    try:
        file_path.parent.mkdir(parents=True, exist_ok=True)

        with open(file_path, "w", encoding="utf-8") as f:
            tomlkit.dump(data, f)
    except OSError as e:
        raise TOMLError(f"Failed to write TOML file {file_path}: {e}") from e


def generate_default_config(
    schema: dict[str, ConfigField] = SETTINGS_SCHEMA,
) -> tomlkit.TOMLDocument:
    """
    Generate a default config document with descriptive comments.

    Returns:
        tomlkit document with a ``[settings]`` table, an empty ``[hooks]``
        table, and an example ``units`` array
    """
    doc = tomlkit.document()
    doc.add(tomlkit.comment("lazypack configuration"))
    doc.add(tomlkit.nl())

    # Top-level keys must come before the first table
    units = tomlkit.array()
    units.multiline(True)
    units.append("nvim-lua/plenary.nvim")
    doc.add(tomlkit.comment("Strings, tables with src, or [locator, {options}] arrays"))
    doc.add("units", units)
    doc.add(tomlkit.nl())

    settings = tomlkit.table()
    for name, config_field in schema.items():
        if config_field.description:
            settings.add(tomlkit.comment(config_field.description))

        constraints = []
        if config_field.min is not None:
            constraints.append(f"min: {config_field.min}")
        if config_field.max is not None:
            constraints.append(f"max: {config_field.max}")
        if config_field.choices is not None:
            constraints.append(f"choices: {config_field.choices}")
        if constraints:
            settings.add(tomlkit.comment(f"Constraints: {', '.join(constraints)}"))

        settings.add(name, config_field.default)
    doc.add("settings", settings)

    hooks = tomlkit.table()
    hooks.add(tomlkit.comment("Scripts run around installs and updates, e.g."))
    hooks.add(tomlkit.comment('post_install = "scripts/post_install.sh"'))
    doc.add("hooks", hooks)

    return doc
