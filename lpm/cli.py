"""
lpm CLI - Lazypack Package Manager.

Pacman-style interface over a lazypack config file.

Usage:
    lpm -Q                       Show unit status
    lpm -Qi <unit>               Show unit details
    lpm -S                       Install missing units
    lpm -Sy                      Install missing units, then update all
    lpm -U [unit...]             Update unit(s)
    lpm -R                       Remove units no longer configured
    lpm --init                   Write a default config file
"""

import argparse
import logging
import sys
from pathlib import Path

from lazypack.config import DEFAULT_CONFIG_FILE
from lazypack.errors import LazyPackError


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser with pacman-style flags."""
    parser = argparse.ArgumentParser(
        prog="lpm",
        description="Lazypack Package Manager - Pacman-style unit manager",
        add_help=False,
    )

    # Operation flags (mutually exclusive)
    ops = parser.add_mutually_exclusive_group()
    ops.add_argument("-S", "--sync", action="store_true", help="Install missing units")
    ops.add_argument("-R", "--remove", action="store_true", help="Remove unused units")
    ops.add_argument("-U", "--upgrade", action="store_true", help="Update unit(s)")
    ops.add_argument("-Q", "--query", action="store_true", help="Show unit status")
    ops.add_argument("--init", action="store_true", help="Write a default config")
    ops.add_argument("-h", "--help", action="store_true", help="Show help")

    # Sub-flags
    parser.add_argument("-y", "--refresh", action="store_true", help="Also update (-Sy)")
    parser.add_argument("-i", "--info", action="store_true", help="Show details (-Qi)")

    # Common options
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=DEFAULT_CONFIG_FILE,
        help=f"Config file (default: {DEFAULT_CONFIG_FILE})",
    )
    parser.add_argument(
        "--load", action="store_true", help="Activate eager units before reporting"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")

    parser.add_argument("targets", nargs="*", help="Unit ids")

    return parser


def print_help():
    """Print help message."""
    help_text = """
lpm - Lazypack Package Manager

Usage:
    lpm -Q                       Show unit status
    lpm -Qi <unit>               Show unit details
    lpm -S                       Install missing units
    lpm -Sy                      Install missing units, then update all
    lpm -U [unit...]             Update unit(s)
    lpm -R                       Remove units no longer configured
    lpm --init                   Write a default config file

Options:
    -c, --config <file>          Config file (default: lazypack.toml)
    --load                       Activate eager units before reporting
    -v, --verbose                Verbose output
    -h, --help                   Show this help
"""
    print(help_text.strip())


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def main(argv: list[str] | None = None) -> int:
    """Main entry point for lpm CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    try:
        if args.help or not (
            args.sync or args.remove or args.upgrade or args.query or args.init
        ):
            print_help()
            return 0

        if args.init:
            from lpm.commands.init import init_command

            return init_command(args)

        elif args.sync:
            from lpm.commands.install import install_command

            return install_command(args)

        elif args.remove:
            from lpm.commands.remove import remove_command

            return remove_command(args)

        elif args.upgrade:
            from lpm.commands.upgrade import upgrade_command

            return upgrade_command(args)

        elif args.query:
            from lpm.commands.query import query_command

            return query_command(args)

    except LazyPackError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return 130
    except Exception as e:
        print(f"Unexpected error: {e}", file=sys.stderr)
        if args.verbose:
            import traceback

            traceback.print_exc()
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
