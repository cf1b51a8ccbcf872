"""
lpm commands.

Shared setup: every command loads the config file and builds a manager
over the configured units.
"""

import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Any

from lazypack.config import load_config
from lazypack.core.host import LocalHost
from lazypack.unit.installer import GitInstaller
from lazypack.unit.manager import AddResult, PackManager


def build_manager(args: Any) -> tuple[PackManager, AddResult]:
    """
    Load the config file and register its units.

    Installation never happens implicitly here; commands call the installer
    operations they need.

    Args:
        args: Parsed command-line arguments

    Returns:
        Tuple of (manager, result of adding the configured units)
    """
    config = load_config(args.config)
    if not args.verbose:
        logging.getLogger("lazypack").setLevel(config.settings.log_level)

    settings = replace(config.settings, auto_install=False)
    manager = PackManager(
        installer=GitInstaller(Path(settings.install_dir).expanduser()),
        sink=LocalHost(),
        hooks=config.build_hooks(),
        settings=settings,
    )
    result = manager.add_units(config.units, load=getattr(args, "load", False))

    for error in result.errors:
        print(f"Warning: {error}", file=sys.stderr)

    return manager, result


__all__ = ["build_manager"]
