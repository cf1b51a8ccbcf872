"""
lpm install command (-S, -Sy).

Install configured units that are missing on disk, optionally updating
everything afterwards.
"""

import sys
from typing import Any

from lpm.commands import build_manager


def install_command(args: Any) -> int:
    """
    Execute install command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    if args.targets:
        print(
            "Error: -S installs every missing configured unit; add targets to the config",
            file=sys.stderr,
        )
        return 1

    manager, _ = build_manager(args)

    if args.refresh:
        installed = manager.sync_all()
    else:
        installed = manager.install_missing()

    if installed:
        print(f"Installed: {', '.join(installed)}")
    else:
        print("No missing units")
    if args.refresh:
        print("Updated all units")

    return 0
