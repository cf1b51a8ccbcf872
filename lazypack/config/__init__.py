"""
Lazypack Configuration - TOML-based configuration loading.

This module provides:
- Loading a config file into settings, hook scripts, and unit entries
- Default config generation

Example config:
    units = [
        "nvim-lua/plenary.nvim",
        { src = "nvim-telescope/telescope.nvim", cmd = "Telescope", dependencies = ["plenary"] },
    ]

    [settings]
    git_timeout = 120

    [hooks]
    post_install = "scripts/post_install.sh"
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from lazypack.config.schema import Settings, ValidationError
from lazypack.config.toml_handler import generate_default_config, read_toml, write_toml
from lazypack.errors import LazyPackError
from lazypack.unit.hooks import HookDispatcher, HookType, script_hook

DEFAULT_CONFIG_FILE = Path("lazypack.toml")


class ConfigError(LazyPackError):
    """Raised when a config file has an invalid structure."""

    pass


@dataclass
class PackConfig:
    """
    Parsed configuration file.

    Attributes:
        settings: Validated settings
        hooks: Hook type -> script path (relative paths resolved against the file)
        units: Raw unit entries, normalized later by the manager
    """

    settings: Settings = field(default_factory=Settings)
    hooks: dict[HookType, Path] = field(default_factory=dict)
    units: list[Any] = field(default_factory=list)

    def build_hooks(self) -> HookDispatcher:
        """Hook dispatcher running the configured scripts."""
        dispatcher = HookDispatcher()
        for hook, script in self.hooks.items():
            dispatcher.register(hook, script_hook(script, timeout=self.settings.git_timeout))
        return dispatcher


def load_config(config_file: Path = DEFAULT_CONFIG_FILE) -> PackConfig:
    """
    Load a config file.

    Args:
        config_file: Path to the TOML config file

    Returns:
        PackConfig

    Raises:
        TOMLError: If the file cannot be read or parsed
        ConfigError: If the structure is invalid
        ValidationError: If a setting is invalid
    """
    data = read_toml(config_file)
    return parse_config(data, base_dir=config_file.parent)


def parse_config(data: dict[str, Any], base_dir: Path = Path(".")) -> PackConfig:
    """
    Build a PackConfig from parsed TOML data.

    Raises:
        ConfigError: If the structure is invalid
        ValidationError: If a setting is invalid
    """
    unknown = set(data) - {"settings", "hooks", "units"}
    if unknown:
        raise ConfigError(f"Unknown top-level keys: {', '.join(sorted(unknown))}")

    settings_data = data.get("settings", {})
    if not isinstance(settings_data, dict):
        raise ConfigError("'settings' must be a table")
    settings = Settings.from_dict(settings_data)

    hooks_data = data.get("hooks", {})
    if not isinstance(hooks_data, dict):
        raise ConfigError("'hooks' must be a table")
    hooks: dict[HookType, Path] = {}
    for name, script in hooks_data.items():
        try:
            hook = HookType(name)
        except ValueError as e:
            raise ConfigError(f"Unknown hook: {name}") from e
        if not isinstance(script, str):
            raise ConfigError(f"Hook '{name}' must be a script path")
        path = Path(script).expanduser()
        hooks[hook] = path if path.is_absolute() else base_dir / path

    units = data.get("units", [])
    if not isinstance(units, list):
        raise ConfigError("'units' must be an array")

    return PackConfig(settings=settings, hooks=hooks, units=units)


def write_default_config(config_file: Path = DEFAULT_CONFIG_FILE) -> None:
    """
    Write a commented default config file.

    Raises:
        ConfigError: If the file already exists
        TOMLError: If the file cannot be written
    """
    if config_file.exists():
        raise ConfigError(f"Config file already exists: {config_file}")
    write_toml(config_file, generate_default_config())


__all__ = [
    "ConfigError",
    "DEFAULT_CONFIG_FILE",
    "PackConfig",
    "ValidationError",
    "load_config",
    "parse_config",
    "write_default_config",
]
