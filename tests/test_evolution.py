"""Tests for projecting portfolio snapshots into a daily evolution."""

from datetime import date
from decimal import Decimal

import pytest

from folio.evolution import (
    EvolutionRow,
    MarketIndex,
    calculate_daily_evolution,
    evolution_to_dataframe,
    is_fully_priced,
    project_evolution,
)
from folio.portfolio import (
    PortfolioSnapshot,
    Transaction,
    TransactionType,
    compute_portfolio_by_transaction_date,
)

DAY1 = date(2024, 3, 4)
DAY2 = date(2024, 3, 5)
DAY3 = date(2024, 3, 6)


def _deposit_and_buy() -> list[Transaction]:
    """DEPOSIT 1000 then BUY 10 X for -500, both on DAY1."""
    return [
        Transaction(DAY1, TransactionType.DEPOSIT, Decimal("1000")),
        Transaction(DAY1, TransactionType.BUY, Decimal("-500"), "X", Decimal("10")),
    ]


def test_deposit_only_scenario():
    """A lone deposit is worth exactly what was invested, with zero gain."""
    txns = [Transaction(DAY1, TransactionType.DEPOSIT, Decimal("1000"))]

    rows = calculate_daily_evolution(txns, {}, end_date=DAY1)

    assert rows == [
        EvolutionRow(
            row_date=DAY1,
            invested_money=Decimal("1000"),
            cash=Decimal("1000"),
            market_value=Decimal("0"),
            portfolio_value=Decimal("1000"),
            gain=Decimal("0"),
            gain_percentage=Decimal("0"),
        )
    ]


def test_holding_valued_at_next_day_close():
    """
    DEPOSIT 1000 and BUY 10 X for -500 on day 1, X closes at 60 on day 2.

    Day 1 has no X price, so only day 2 is emitted:
    cash 500 + 10 * 60 = 1100, gain 100, gain percentage 0.1.
    """
    prices = {"X": {DAY2: Decimal("60")}}

    rows = calculate_daily_evolution(_deposit_and_buy(), prices, end_date=DAY2)

    assert [row.row_date for row in rows] == [DAY2]
    row = rows[0]
    assert row.cash == Decimal("500")
    assert row.market_value == Decimal("600")
    assert row.portfolio_value == Decimal("1100")
    assert row.gain == Decimal("100")
    assert row.gain_percentage == Decimal("0.1")


def test_missing_price_drops_day_and_carry_forward_resumes():
    """A day without a close for X is skipped; the next priced day uses the carried snapshot."""
    prices = {"X": {DAY1: Decimal("50"), DAY3: Decimal("55")}}

    rows = calculate_daily_evolution(_deposit_and_buy(), prices, end_date=DAY3)

    assert [row.row_date for row in rows] == [DAY1, DAY3]
    assert rows[1].invested_money == Decimal("1000")
    assert rows[1].cash == Decimal("500")
    assert rows[1].market_value == Decimal("550")
    assert rows[1].gain == Decimal("50")


def test_completeness_gate_requires_every_open_position():
    """One unpriced holding excludes the day even when the others are priced."""
    txns = [
        Transaction(DAY1, TransactionType.DEPOSIT, Decimal("1000")),
        Transaction(DAY1, TransactionType.BUY, Decimal("-100"), "A", Decimal("1")),
        Transaction(DAY1, TransactionType.BUY, Decimal("-100"), "B", Decimal("1")),
    ]
    prices = {
        "A": {DAY1: Decimal("100"), DAY2: Decimal("101")},
        "B": {DAY1: Decimal("100")},
    }

    rows = calculate_daily_evolution(txns, prices, end_date=DAY2)

    assert [row.row_date for row in rows] == [DAY1]


def test_symbol_without_series_excludes_held_days_only():
    """A symbol with no price series blocks days it is held, not days after it is sold."""
    txns = [
        Transaction(DAY1, TransactionType.DEPOSIT, Decimal("100")),
        Transaction(DAY1, TransactionType.BUY, Decimal("-50"), "GONE", Decimal("5")),
        Transaction(DAY3, TransactionType.SELL, Decimal("50"), "GONE", Decimal("-5")),
    ]

    rows = calculate_daily_evolution(txns, {}, end_date=DAY3)

    assert [row.row_date for row in rows] == [DAY3]
    assert rows[0].cash == Decimal("100")
    assert rows[0].market_value == Decimal("0")


def test_carry_forward_over_days_without_transactions():
    """Days with no transaction reuse the most recent snapshot."""
    txns = [
        Transaction(DAY1, TransactionType.DEPOSIT, Decimal("300")),
        Transaction(DAY3, TransactionType.DEPOSIT, Decimal("200")),
    ]

    rows = calculate_daily_evolution(txns, {}, end_date=date(2024, 3, 7))

    assert [(row.row_date, row.invested_money, row.cash) for row in rows] == [
        (DAY1, Decimal("300"), Decimal("300")),
        (DAY2, Decimal("300"), Decimal("300")),
        (DAY3, Decimal("500"), Decimal("500")),
        (date(2024, 3, 7), Decimal("500"), Decimal("500")),
    ]


def test_derived_fields_identity():
    """portfolio_value = market_value + cash and gain = portfolio_value - invested on every row."""
    prices = {"X": {DAY1: Decimal("49.5"), DAY2: Decimal("60.25"), DAY3: Decimal("47.125")}}

    rows = calculate_daily_evolution(_deposit_and_buy(), prices, end_date=DAY3)

    assert len(rows) == 3
    for row in rows:
        assert row.portfolio_value == row.market_value + row.cash
        assert row.gain == row.portfolio_value - row.invested_money


def test_days_before_first_snapshot_are_empty_portfolio():
    """Starting the walk before the first transaction yields all-zero rows."""
    snapshots = compute_portfolio_by_transaction_date(
        [Transaction(DAY2, TransactionType.DEPOSIT, Decimal("10"))]
    )

    rows = project_evolution(snapshots, {}, [], DAY1, DAY2)

    assert rows[0].row_date == DAY1
    assert rows[0].portfolio_value == Decimal("0")
    assert rows[0].gain_percentage is None
    assert rows[1].invested_money == Decimal("10")


def test_gain_percentage_undefined_without_capital():
    """Buying without any deposit leaves gain percentage undefined (None)."""
    txns = [Transaction(DAY1, TransactionType.BUY, Decimal("-20"), "X", Decimal("2"))]

    rows = calculate_daily_evolution(txns, {"X": {DAY1: Decimal("11")}}, end_date=DAY1)

    assert rows[0].gain == Decimal("2")
    assert rows[0].gain_percentage is None


def test_index_values_have_no_completeness_gate():
    """Missing index prices become None without excluding the row."""
    txns = [Transaction(DAY1, TransactionType.DEPOSIT, Decimal("1000"))]
    indexes = [MarketIndex("S&P 500", "^GSPC"), MarketIndex("Nasdaq", "^IXIC")]
    prices = {"^GSPC": {DAY1: Decimal("5100.5")}}

    rows = calculate_daily_evolution(txns, prices, indexes, end_date=DAY2)

    assert [row.index_values for row in rows] == [
        (Decimal("5100.5"), None),
        (None, None),
    ]


def test_first_date_after_last_date_is_empty():
    """An inverted range gives no rows."""
    snapshots = {DAY1: PortfolioSnapshot(invested=Decimal("1"), cash=Decimal("1"))}

    assert project_evolution(snapshots, {}, [], DAY3, DAY1) == []


def test_empty_log_is_empty_evolution():
    """No transactions, no rows."""
    assert calculate_daily_evolution([], {}, end_date=DAY3) == []


def test_short_position_counts_in_completeness_gate():
    """A negative share count is an open position that needs a price."""
    snapshot = PortfolioSnapshot(holdings={"X": Decimal("-3")})

    assert not is_fully_priced(snapshot, {}, DAY1)
    assert is_fully_priced(snapshot, {"X": {DAY1: Decimal("9")}}, DAY1)


def test_evolution_to_dataframe_headers():
    """The DataFrame has the output table's headers plus one column per index."""
    txns = [Transaction(DAY1, TransactionType.DEPOSIT, Decimal("1000"))]
    indexes = [MarketIndex("S&P 500", "^GSPC")]
    rows = calculate_daily_evolution(txns, {}, indexes, end_date=DAY2)

    df = evolution_to_dataframe(rows, indexes)

    assert list(df.columns) == [
        "Date", "Invested Money", "Cash", "Market Value",
        "Portfolio Value", "Gain", "Gain Percentage", "S&P 500",
    ]
    assert len(df) == 2
    assert df["Portfolio Value"].iloc[1] == Decimal("1000")


@pytest.mark.parametrize("shares", ["0", "0.000"])
def test_zero_share_holding_needs_no_price(shares):
    """Holdings with zero shares are not valued and not gated."""
    snapshot = PortfolioSnapshot(cash=Decimal("5"), holdings={"X": Decimal(shares)})

    rows = project_evolution({DAY1: snapshot}, {}, [], DAY1, DAY1)

    assert len(rows) == 1
    assert rows[0].market_value == Decimal("0")
