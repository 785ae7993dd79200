"""Reading and writing the portfolio workbook.

The workbook holds the transaction log, the list of tracked indexes, one
sheet of daily closing prices per symbol and the generated evolution table.
Every input sheet has a header row and ends at the first row whose first
cell is empty.
"""

import logging
import os
from datetime import date
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Iterator, Sequence

from openpyxl import Workbook, load_workbook as _openpyxl_load_workbook
from openpyxl.worksheet.worksheet import Worksheet

from .dates import is_empty_cell, to_date
from .evolution import EvolutionRow, MarketIndex, evolution_headers
from .exceptions import FolioError, InvalidTransactionError, MissingSheetError
from .portfolio import Transaction, TransactionType, sort_transactions
from .pricingdata import PricingDataManager

logger = logging.getLogger(__name__)

TRANSACTIONS_SHEET = "Transactions"
INDEXES_SHEET = "Indexes"
EVOLUTIONS_SHEET = "Evolutions"
RESERVED_SHEETS = (TRANSACTIONS_SHEET, INDEXES_SHEET, EVOLUTIONS_SHEET)

TRANSACTION_HEADERS = ["Date", "Type", "Symbol", "Amount", "Shares"]
INDEX_HEADERS = ["Name", "Symbol"]
PRICE_HEADERS = ["Date", "Close"]

PRICE_DATE_FORMAT = "dd/mm/yyyy"
PRICE_NUMBER_FORMAT = "#.###"
GAIN_PERCENTAGE_FORMAT = "0.00%"


def _create_empty_workbook() -> Workbook:
    """Create a workbook with empty Transactions and Indexes sheets."""
    wb = Workbook()
    ws = wb.active
    assert ws is not None
    ws.title = TRANSACTIONS_SHEET
    ws.append(TRANSACTION_HEADERS)
    wb.create_sheet(INDEXES_SHEET).append(INDEX_HEADERS)
    return wb


def load_workbook(file_path: str | os.PathLike, create_if_missing: bool = False) -> Workbook:
    """
    Open the portfolio workbook.

    Args:
        file_path: Path to the .xlsx file.
        create_if_missing: If True and the file doesn't exist, return a new
            workbook with empty Transactions and Indexes sheets instead of
            failing. The file is only written by ``save_workbook``.

    Returns:
        The loaded workbook.

    Raises:
        FileNotFoundError: If the file doesn't exist and create_if_missing is False.
    """
    if not os.path.exists(file_path):
        if create_if_missing:
            return _create_empty_workbook()
        raise FileNotFoundError(f"Portfolio workbook not found: {file_path}")
    return _openpyxl_load_workbook(file_path)


def save_workbook(workbook: Workbook, file_path: str | os.PathLike) -> None:
    """Write the workbook to disk, creating parent directories as needed."""
    Path(file_path).parent.mkdir(parents=True, exist_ok=True)
    workbook.save(file_path)


def _check_price_sheet_name(symbol: str) -> None:
    if symbol in RESERVED_SHEETS:
        raise FolioError(f"Symbol '{symbol}' clashes with the {symbol} sheet")


def _replace_sheet(workbook: Workbook, sheet_name: str) -> Worksheet:
    """Return an empty sheet with the given name.

    An existing sheet is replaced at the same position; otherwise the new
    sheet is appended after the last one. The sheet becomes the active one.
    """
    if sheet_name in workbook.sheetnames:
        existing = workbook[sheet_name]
        position = workbook.index(existing)
        workbook.remove(existing)
        ws = workbook.create_sheet(sheet_name, position)
    else:
        ws = workbook.create_sheet(sheet_name)
    workbook.active = ws
    return ws


def _iter_data_rows(ws: Worksheet, width: int) -> Iterator[tuple[int, tuple[Any, ...]]]:
    """Yield (row number, values) for each data row, stopping at the first empty first cell."""
    for row_number, values in enumerate(
        ws.iter_rows(min_row=2, max_col=width, values_only=True), start=2
    ):
        if is_empty_cell(values[0]):
            break
        yield row_number, values


def _to_decimal(value: Any) -> Decimal | None:
    """Convert a numeric cell to Decimal; blank cells give None."""
    if is_empty_cell(value):
        return None
    if isinstance(value, bool):
        raise ValueError(f"Not a number: {value!r}")
    try:
        return Decimal(str(value).strip())
    except InvalidOperation as e:
        raise ValueError(f"Not a number: {value!r}") from e


def _parse_transaction(row_number: int, values: tuple[Any, ...]) -> Transaction:
    raw_date, raw_type, raw_symbol, raw_amount, raw_shares = values

    try:
        transaction_date = to_date(raw_date)
        transaction_type = TransactionType(str(raw_type).strip().upper())
        amount = _to_decimal(raw_amount)
        shares = _to_decimal(raw_shares)
    except ValueError as e:
        raise InvalidTransactionError(str(e), row_number) from e

    if amount is None:
        raise InvalidTransactionError("Missing amount", row_number)

    symbol = None if is_empty_cell(raw_symbol) else str(raw_symbol).strip()
    if transaction_type.moves_shares:
        if symbol is None:
            raise InvalidTransactionError(f"{transaction_type.value} without a symbol", row_number)
        if shares is None:
            raise InvalidTransactionError(f"{transaction_type.value} without shares", row_number)
    else:
        shares = None

    return Transaction(
        transaction_date=transaction_date,
        transaction_type=transaction_type,
        amount=amount,
        symbol=symbol,
        shares=shares,
    )


def read_transactions(workbook: Workbook) -> list[Transaction]:
    """
    Read the transaction log, ordered by date ascending.

    Expected columns: Date, Type (BUY, SELL, DEPOSIT, WITHDRAWAL), Symbol,
    Amount (signed cash flow), Shares (signed share change, BUY/SELL only).

    Raises:
        MissingSheetError: If the workbook has no Transactions sheet.
        InvalidTransactionError: If a row cannot be interpreted.
    """
    if TRANSACTIONS_SHEET not in workbook.sheetnames:
        raise MissingSheetError(f"Workbook has no '{TRANSACTIONS_SHEET}' sheet")

    ws = workbook[TRANSACTIONS_SHEET]
    transactions = [
        _parse_transaction(row_number, values)
        for row_number, values in _iter_data_rows(ws, len(TRANSACTION_HEADERS))
    ]
    logger.debug("Read %d transactions", len(transactions))
    return sort_transactions(transactions)


def read_indexes(workbook: Workbook) -> list[MarketIndex]:
    """Read the tracked indexes (name, symbol). A missing sheet means no indexes."""
    if INDEXES_SHEET not in workbook.sheetnames:
        return []

    indexes: list[MarketIndex] = []
    for row_number, (name, symbol) in _iter_data_rows(workbook[INDEXES_SHEET], len(INDEX_HEADERS)):
        if is_empty_cell(symbol):
            logger.warning("Index '%s' on row %d has no symbol, ignoring it", name, row_number)
            continue
        indexes.append(MarketIndex(name=str(name).strip(), symbol=str(symbol).strip()))
    return indexes


def read_price_series(workbook: Workbook, symbol: str) -> dict[date, Decimal]:
    """
    Read a symbol's daily closing prices from its price sheet.

    Rows without a close are skipped. A symbol without a price sheet has an
    empty series. So does a symbol named after a Transactions, Indexes or
    Evolutions sheet.
    """
    if symbol in RESERVED_SHEETS:
        logger.warning("Symbol %s clashes with the %s sheet, it has no prices", symbol, symbol)
        return {}
    if symbol not in workbook.sheetnames:
        logger.warning("No price sheet for %s", symbol)
        return {}

    prices: dict[date, Decimal] = {}
    for row_number, (raw_date, raw_close) in _iter_data_rows(workbook[symbol], len(PRICE_HEADERS)):
        try:
            close = _to_decimal(raw_close)
            price_date = to_date(raw_date)
        except ValueError as e:
            logger.warning("Skipping row %d of price sheet %s: %s", row_number, symbol, e)
            continue
        if close is not None:
            prices[price_date] = close
    return prices


def write_evolution_table(
    workbook: Workbook,
    rows: Sequence[EvolutionRow],
    indexes: Sequence[MarketIndex] = ()
) -> Worksheet:
    """
    Replace (or create) the Evolutions sheet with the given rows.

    The header is 'Date', 'Invested Money', 'Cash', 'Market Value',
    'Portfolio Value', 'Gain', 'Gain Percentage' followed by one column per
    index. Undefined values (gain percentage before any deposit, missing
    index prices) are left blank.
    """
    ws = _replace_sheet(workbook, EVOLUTIONS_SHEET)
    ws.append(evolution_headers(indexes))
    for row in rows:
        ws.append(row.as_list())

    gain_percentage_column = 7
    for (cell,) in ws.iter_rows(min_row=2, min_col=gain_percentage_column, max_col=gain_percentage_column):
        cell.number_format = GAIN_PERCENTAGE_FORMAT

    logger.info("Wrote %d rows to %s", len(rows), EVOLUTIONS_SHEET)
    return ws


def provision_price_sheet(
    workbook: Workbook,
    symbol: str,
    from_date: date,
    pricing_manager: PricingDataManager,
    until_date: date | None = None
) -> Worksheet:
    """
    Create (or refresh) the price sheet of a symbol.

    The sheet is named after the symbol and holds one row per trading day
    from from_date until until_date (today by default).

    Raises:
        FolioError: If the symbol is the name of a Transactions, Indexes or
            Evolutions sheet.
    """
    _check_price_sheet_name(symbol)
    if until_date is None:
        until_date = date.today()

    prices = pricing_manager.get_price_series(symbol, from_date, until_date)

    ws = _replace_sheet(workbook, symbol)
    ws.append(PRICE_HEADERS)
    for price_date in sorted(prices):
        ws.append([price_date, prices[price_date]])

    for date_cell, close_cell in ws.iter_rows(min_row=2, max_col=2):
        date_cell.number_format = PRICE_DATE_FORMAT
        close_cell.number_format = PRICE_NUMBER_FORMAT

    logger.info("Provisioned %s with %d prices from %s", symbol, len(prices), from_date)
    return ws


def remove_price_sheet(workbook: Workbook, symbol: str) -> bool:
    """Delete the price sheet of a symbol. Returns False if there was none."""
    _check_price_sheet_name(symbol)
    if symbol not in workbook.sheetnames:
        return False
    workbook.remove(workbook[symbol])
    # openpyxl keeps the old active index, which may now be out of range
    workbook.active = 0
    logger.info("Removed price sheet %s", symbol)
    return True
