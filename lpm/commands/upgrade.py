"""
lpm upgrade command (-U).

Update some or all installed units.
"""

import sys
from typing import Any

from lpm.commands import build_manager


def upgrade_command(args: Any) -> int:
    """
    Execute upgrade command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    manager, _ = build_manager(args)

    unknown = [t for t in args.targets if t not in manager.registry]
    if unknown:
        print(f"Error: Unknown unit(s): {', '.join(unknown)}", file=sys.stderr)
        return 1

    manager.update_units(args.targets or None)
    print(f"Updated {', '.join(args.targets) if args.targets else 'all units'}")
    return 0
