#!/usr/bin/env python3
"""Evolution subcommand - Compute the daily evolution and write the Evolutions sheet."""

from datetime import date
from decimal import Decimal

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..evolution import EVOLUTION_HEADERS, EvolutionRow
from ..exceptions import FolioError
from ..workbook import EVOLUTIONS_SHEET, load_workbook, read_indexes, save_workbook
from ..workflows import generate_daily_evolution


def format_percentage(value: Decimal | None, precision: int = 2) -> str:
    """Format a fraction as a percentage string.

    Args:
        value: Fraction to format (e.g. 0.05 becomes "5.00%").
        precision: Number of decimal places in the output.

    Returns:
        Formatted percentage string, or "N/A" if value is None.
    """
    if value is None:
        return "N/A"
    return f"{value * 100:.{precision}f}%"


def format_currency(value: Decimal | None, symbol: str = "$", precision: int = 2) -> str:
    """Format a monetary amount with symbol and thousands separators.

    Returns:
        Formatted currency string, or "N/A" if value is None.
    """
    if value is None:
        return "N/A"
    return f"{symbol}{value:,.{precision}f}"


def _colored_gain(row: EvolutionRow) -> str:
    gain_str = f"{format_currency(row.gain)} ({format_percentage(row.gain_percentage)})"
    if row.gain >= 0:
        return f"[green]{gain_str}[/green]"
    return f"[red]{gain_str}[/red]"


def register_subcommand(subparsers):
    """Register the evolution subcommand with the argument parser.

    Args:
        subparsers: The argparse subparsers action to add the command to.
    """
    parser = subparsers.add_parser(
        "evolution",
        help="Generate the daily evolution of the portfolio",
        description=(
            "Compute invested money, cash, market value and gain for every day since "
            "the first transaction and write them to the Evolutions sheet."
        ),
    )
    parser.add_argument(
        "workbook",
        nargs="?",
        help="Path to the portfolio workbook (default: $FOLIO_WORKBOOK or portfolio.xlsx)",
    )
    parser.add_argument(
        "--end-date",
        type=date.fromisoformat,
        default=None,
        help="Last day to value, as YYYY-MM-DD (default: today)",
    )
    parser.add_argument(
        "--last",
        type=int,
        default=10,
        help="Number of most recent rows to display (default: 10, 0 to hide)",
    )
    parser.set_defaults(func=run)


def run(args):
    """Compute the evolution, save the workbook and display the latest rows.

    Args:
        args: Parsed argparse namespace with workbook, end_date, last and
            settings attributes.

    Returns:
        int: Exit code (0 for success, 1 for errors).
    """
    console = Console()
    workbook_path = args.workbook or args.settings.workbook_path

    try:
        workbook = load_workbook(workbook_path)
        rows = generate_daily_evolution(workbook, end_date=args.end_date)
        indexes = read_indexes(workbook)
        save_workbook(workbook, workbook_path)
    except (FolioError, FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    if not rows:
        console.print(f"[yellow]No fully priced days; {EVOLUTIONS_SHEET} only has its header.[/yellow]")
        return 0

    if args.last > 0:
        table = Table(title=f"Daily Evolution (last {min(args.last, len(rows))} of {len(rows)} days)")
        for header in EVOLUTION_HEADERS:
            table.add_column(header, justify="left" if header == "Date" else "right")
        for index in indexes:
            table.add_column(index.name, style="cyan", justify="right")

        for row in rows[-args.last:]:
            table.add_row(
                row.row_date.isoformat(),
                format_currency(row.invested_money),
                format_currency(row.cash),
                format_currency(row.market_value),
                format_currency(row.portfolio_value),
                format_currency(row.gain),
                format_percentage(row.gain_percentage),
                *(format_currency(value, symbol="") for value in row.index_values),
            )
        console.print(table)

    latest = rows[-1]
    console.print(
        Panel(
            f"[bold]Portfolio Value on {latest.row_date.isoformat()}: "
            f"{format_currency(latest.portfolio_value)}[/bold]\n"
            f"Invested: {format_currency(latest.invested_money)}   Gain: {_colored_gain(latest)}",
            title="Summary",
        )
    )
    console.print(f"[green]Wrote {len(rows)} rows to the {EVOLUTIONS_SHEET} sheet of {workbook_path}[/green]")
    return 0
