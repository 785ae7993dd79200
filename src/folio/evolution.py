"""Daily evolution of a portfolio's value.

Projects the dated portfolio snapshots across a continuous calendar, valuing
holdings against each day's closing prices. A day is emitted only when every
open position has a price for it.
"""

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable, Mapping, Sequence

import pandas as pd

from .dates import iter_days
from .portfolio import (
    PortfolioSnapshot,
    Transaction,
    compute_portfolio_by_transaction_date,
    extract_first_transaction_date,
)

logger = logging.getLogger(__name__)

PriceSeries = Mapping[date, Decimal]

EVOLUTION_HEADERS = [
    "Date",
    "Invested Money",
    "Cash",
    "Market Value",
    "Portfolio Value",
    "Gain",
    "Gain Percentage",
]


@dataclass(frozen=True)
class MarketIndex:
    """A benchmark tracked alongside the portfolio, valued but never held."""
    name: str
    symbol: str


@dataclass(frozen=True)
class EvolutionRow:
    """Valuation of the portfolio on a single day."""
    row_date: date
    invested_money: Decimal
    cash: Decimal
    market_value: Decimal
    portfolio_value: Decimal
    gain: Decimal
    gain_percentage: Decimal | None  # None while nothing has been invested
    index_values: tuple[Decimal | None, ...] = ()

    def as_list(self) -> list:
        """Return the row in output-table column order."""
        return [
            self.row_date,
            self.invested_money,
            self.cash,
            self.market_value,
            self.portfolio_value,
            self.gain,
            self.gain_percentage,
            *self.index_values,
        ]


def is_fully_priced(
    snapshot: PortfolioSnapshot,
    prices_by_symbol: Mapping[str, PriceSeries],
    day: date
) -> bool:
    """Return True if every open position has a closing price on the given day.

    A symbol with no price series at all counts as unpriced.
    """
    for symbol in snapshot.open_positions():
        if prices_by_symbol.get(symbol, {}).get(day) is None:
            return False
    return True


def calculate_market_value(
    snapshot: PortfolioSnapshot,
    prices_by_symbol: Mapping[str, PriceSeries],
    day: date
) -> Decimal:
    """Sum shares times closing price over the open positions.

    The caller must check ``is_fully_priced`` first.
    """
    market_value = Decimal("0")
    for symbol, shares in snapshot.open_positions().items():
        market_value += shares * prices_by_symbol[symbol][day]
    return market_value


def build_evolution_row(
    day: date,
    snapshot: PortfolioSnapshot,
    market_value: Decimal,
    index_values: tuple[Decimal | None, ...] = ()
) -> EvolutionRow:
    """Derive portfolio value, gain and gain percentage for one day."""
    portfolio_value = market_value + snapshot.cash
    gain = portfolio_value - snapshot.invested
    gain_percentage = gain / snapshot.invested if snapshot.invested != 0 else None

    return EvolutionRow(
        row_date=day,
        invested_money=snapshot.invested,
        cash=snapshot.cash,
        market_value=market_value,
        portfolio_value=portfolio_value,
        gain=gain,
        gain_percentage=gain_percentage,
        index_values=index_values,
    )


def project_evolution(
    snapshots_by_date: Mapping[date, PortfolioSnapshot],
    prices_by_symbol: Mapping[str, PriceSeries],
    indexes: Sequence[MarketIndex],
    first_date: date,
    last_date: date
) -> list[EvolutionRow]:
    """
    Compute the portfolio's valuation for each day within a date range.

    The most recent snapshot is carried forward over days without
    transactions; days before the first snapshot are valued as an empty
    portfolio. Days on which any open position lacks a closing price are
    skipped entirely. Index prices are attached to every emitted row, with
    None where an index has no price for that day.

    Args:
        snapshots_by_date: Snapshot effective at the end of each transaction date.
        prices_by_symbol: Closing prices per symbol (holdings and indexes).
        indexes: Benchmarks whose prices are reported alongside each row.
        first_date: The first day to value (inclusive).
        last_date: The last day to value (inclusive), usually today.

    Returns:
        Evolution rows in ascending date order. Empty if first_date is
        after last_date.
    """
    rows: list[EvolutionRow] = []
    skipped_days = 0
    snapshot = PortfolioSnapshot()

    for day in iter_days(first_date, last_date):
        snapshot = snapshots_by_date.get(day, snapshot)

        if not is_fully_priced(snapshot, prices_by_symbol, day):
            logger.debug("Skipping %s: missing price for an open position", day)
            skipped_days += 1
            continue

        market_value = calculate_market_value(snapshot, prices_by_symbol, day)
        index_values = tuple(
            prices_by_symbol.get(index.symbol, {}).get(day) for index in indexes
        )
        rows.append(build_evolution_row(day, snapshot, market_value, index_values))

    if skipped_days:
        logger.info(
            "Skipped %d of %d days with incomplete pricing",
            skipped_days,
            len(rows) + skipped_days,
        )
    return rows


def calculate_daily_evolution(
    transactions: Iterable[Transaction],
    prices_by_symbol: Mapping[str, PriceSeries],
    indexes: Sequence[MarketIndex] = (),
    end_date: date | None = None
) -> list[EvolutionRow]:
    """
    Compute the daily evolution of a portfolio from its transaction log.

    Args:
        transactions: The transaction log, in any order.
        prices_by_symbol: Closing prices per symbol (holdings and indexes).
        indexes: Benchmarks reported alongside each row.
        end_date: The last day to value. Defaults to today.

    Returns:
        Evolution rows from the first transaction date to end_date.
        Empty if there are no transactions.
    """
    transactions = list(transactions)
    first_date = extract_first_transaction_date(transactions)
    if first_date is None:
        return []
    if end_date is None:
        end_date = date.today()

    snapshots_by_date = compute_portfolio_by_transaction_date(transactions)
    return project_evolution(snapshots_by_date, prices_by_symbol, indexes, first_date, end_date)


def evolution_headers(indexes: Sequence[MarketIndex]) -> list[str]:
    """Return the output table's header row, including one column per index."""
    return EVOLUTION_HEADERS + [index.name for index in indexes]


def evolution_to_dataframe(rows: Sequence[EvolutionRow], indexes: Sequence[MarketIndex] = ()) -> pd.DataFrame:
    """Render evolution rows as a DataFrame with the output table's headers."""
    return pd.DataFrame([row.as_list() for row in rows], columns=evolution_headers(indexes))
