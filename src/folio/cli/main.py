#!/usr/bin/env python3
"""Main entry point for the folio CLI."""

import argparse
import logging
import sys

from rich.logging import RichHandler

from ..config import load_settings


def configure_logging(level: str) -> None:
    """Send log records to stderr through rich.

    Args:
        level: Logging level name (e.g. "WARNING", "DEBUG").
    """
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(show_path=False)],
        force=True,
    )


def main(argv: list[str] | None = None):
    """Parse CLI arguments and dispatch to the appropriate subcommand.

    Args:
        argv: Arguments to parse. Defaults to ``sys.argv[1:]``.

    Returns:
        int: Exit code (0 for success, non-zero for errors).
    """
    parser = argparse.ArgumentParser(
        prog="folio",
        description="folio - daily evolution of an investment portfolio kept in a workbook",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  folio prices portfolio.xlsx                 Generate a price sheet per symbol
  folio prices portfolio.xlsx --delete        Delete the price sheets
  folio evolution portfolio.xlsx              Write the Evolutions sheet
  folio evolution portfolio.xlsx --last 30    Also show the last 30 days
        """,
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Show debug logging",
    )

    subparsers = parser.add_subparsers(
        title="commands",
        dest="command",
        help="Available commands",
    )

    # Import subcommand modules and register them
    from .prices import register_subcommand as register_prices
    from .evolution import register_subcommand as register_evolution
    from .version import register_subcommand as register_version

    register_prices(subparsers)
    register_evolution(subparsers)
    register_version(subparsers)

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    settings = load_settings()
    configure_logging("DEBUG" if args.verbose else settings.log_level)
    args.settings = settings

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
