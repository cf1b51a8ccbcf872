"""
lpm remove command (-R).

Remove installed units that are no longer configured or are disabled.
"""

import sys
from typing import Any

from lpm.commands import build_manager


def remove_command(args: Any) -> int:
    """
    Execute remove command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    if args.targets:
        print(
            "Error: -R removes unused units; remove targets from the config instead",
            file=sys.stderr,
        )
        return 1

    manager, _ = build_manager(args)
    removed = manager.remove_unused()

    if removed:
        print(f"Removed: {', '.join(removed)}")
    else:
        print("No units to clean")
    return 0
