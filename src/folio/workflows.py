"""The workbook-level actions: provisioning price sheets and generating the evolution table."""

import logging
from datetime import date
from decimal import Decimal

from openpyxl import Workbook

from .evolution import EvolutionRow, calculate_daily_evolution
from .portfolio import extract_first_transaction_date, extract_symbols
from .pricingdata import PricingDataManager
from .workbook import (
    provision_price_sheet,
    read_indexes,
    read_price_series,
    read_transactions,
    remove_price_sheet,
    write_evolution_table,
)

logger = logging.getLogger(__name__)


def _symbols_to_price(workbook: Workbook, include_indexes: bool) -> list[str]:
    """Transaction symbols, followed by index symbols not already listed."""
    symbols = extract_symbols(read_transactions(workbook))
    if include_indexes:
        for index in read_indexes(workbook):
            if index.symbol not in symbols:
                symbols.append(index.symbol)
    return symbols


def generate_price_sheets(
    workbook: Workbook,
    pricing_manager: PricingDataManager,
    include_indexes: bool = True,
    until_date: date | None = None
) -> list[str]:
    """
    Generate a price sheet for each symbol found in the transactions.

    Each sheet holds the symbol's daily closes from the first transaction
    date until today. Index symbols get a sheet too unless include_indexes
    is False.

    Returns:
        The symbols whose sheets were created or refreshed.
    """
    first_date = extract_first_transaction_date(read_transactions(workbook))
    if first_date is None:
        logger.warning("No transactions, no price sheets to generate")
        return []

    symbols = _symbols_to_price(workbook, include_indexes)
    for symbol in symbols:
        provision_price_sheet(workbook, symbol, first_date, pricing_manager, until_date)
    return symbols


def delete_price_sheets(workbook: Workbook, include_indexes: bool = False) -> list[str]:
    """Delete the price sheets of all symbols found in the transactions.

    Returns:
        The symbols whose sheets existed and were removed.
    """
    return [
        symbol
        for symbol in _symbols_to_price(workbook, include_indexes)
        if remove_price_sheet(workbook, symbol)
    ]


def generate_daily_evolution(workbook: Workbook, end_date: date | None = None) -> list[EvolutionRow]:
    """
    Compute the daily evolution of the portfolio and write it to the Evolutions sheet.

    Prices are read from the symbols' price sheets, which must have been
    generated beforehand.

    Args:
        workbook: The portfolio workbook.
        end_date: Last day to value. Defaults to today.

    Returns:
        The rows written to the sheet.
    """
    transactions = read_transactions(workbook)
    indexes = read_indexes(workbook)

    prices_by_symbol: dict[str, dict[date, Decimal]] = {}
    for symbol in extract_symbols(transactions) + [index.symbol for index in indexes]:
        if symbol not in prices_by_symbol:
            prices_by_symbol[symbol] = read_price_series(workbook, symbol)

    rows = calculate_daily_evolution(transactions, prices_by_symbol, indexes, end_date)
    write_evolution_table(workbook, rows, indexes)
    return rows
