"""
lpm init command (--init).

Write a commented default config file.
"""

from typing import Any

from lazypack.config import write_default_config


def init_command(args: Any) -> int:
    """
    Execute init command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    write_default_config(args.config)
    print(f"Wrote {args.config}")
    return 0
