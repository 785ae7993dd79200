#!/usr/bin/env python3
"""Prices subcommand - Generate or delete the per-symbol price sheets."""

from rich.console import Console

from ..exceptions import FolioError
from ..pricingdata import YFinancePricingDataManager
from ..workbook import load_workbook, save_workbook
from ..workflows import delete_price_sheets, generate_price_sheets


def register_subcommand(subparsers):
    """Register the prices subcommand with the argument parser.

    Args:
        subparsers: The argparse subparsers action to add the command to.
    """
    parser = subparsers.add_parser(
        "prices",
        help="Generate historical price sheets",
        description=(
            "Create one sheet per symbol found in the Transactions sheet (and per index) "
            "holding its daily closes from the first transaction date until today."
        ),
    )
    parser.add_argument(
        "workbook",
        nargs="?",
        help="Path to the portfolio workbook (default: $FOLIO_WORKBOOK or portfolio.xlsx)",
    )
    parser.add_argument(
        "--no-indexes",
        action="store_true",
        help="Skip the symbols listed in the Indexes sheet",
    )
    parser.add_argument(
        "--no-cache",
        action="store_true",
        help="Bypass cache and fetch fresh pricing data",
    )
    parser.add_argument(
        "--delete",
        action="store_true",
        help="Delete the price sheets instead of generating them",
    )
    parser.set_defaults(func=run)


def run(args):
    """Generate (or delete) the price sheets and save the workbook.

    Args:
        args: Parsed argparse namespace with workbook, no_indexes, no_cache,
            delete and settings attributes.

    Returns:
        int: Exit code (0 for success, 1 for errors).
    """
    console = Console()
    workbook_path = args.workbook or args.settings.workbook_path

    try:
        workbook = load_workbook(workbook_path)
        if args.delete:
            symbols = delete_price_sheets(workbook, include_indexes=not args.no_indexes)
            action = "Deleted"
        else:
            pricing_manager = YFinancePricingDataManager(
                force_cache_refresh=args.no_cache,
                cache_dir=args.settings.cache_dir,
            )
            symbols = generate_price_sheets(
                workbook, pricing_manager, include_indexes=not args.no_indexes
            )
            action = "Generated"
        save_workbook(workbook, workbook_path)
    except (FolioError, FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    if symbols:
        console.print(f"[green]{action} price sheets for: {', '.join(symbols)}[/green]")
    else:
        console.print("[yellow]No price sheets changed.[/yellow]")
    return 0
