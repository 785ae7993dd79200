import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Iterable, Mapping

from .exceptions import InvalidTransactionError

logger = logging.getLogger(__name__)


class TransactionType(Enum):
    """Enumeration of supported portfolio transaction types."""

    BUY = "BUY"
    SELL = "SELL"
    DEPOSIT = "DEPOSIT"
    WITHDRAWAL = "WITHDRAWAL"

    @property
    def moves_shares(self) -> bool:
        """True for the types that change a holding's share count."""
        return self in (TransactionType.BUY, TransactionType.SELL)

    @property
    def moves_capital(self) -> bool:
        """True for the types that change the net capital contributed."""
        return self in (TransactionType.DEPOSIT, TransactionType.WITHDRAWAL)


@dataclass(frozen=True)
class Transaction:
    """A single recorded portfolio event.

    ``amount`` is the signed cash-flow effect for every type: the cash paid
    (negative) or received (positive) by a BUY/SELL, or the cash moved by a
    DEPOSIT/WITHDRAWAL. ``shares`` is the signed change in share count and is
    only set for BUY/SELL.
    """

    transaction_date: date
    transaction_type: TransactionType
    amount: Decimal
    symbol: str | None = None
    shares: Decimal | None = None

    def __repr__(self):
        return (
            f"Transaction(date={self.transaction_date}, type={self.transaction_type.value}, "
            f"symbol={self.symbol}, amount={self.amount}, shares={self.shares})"
        )


@dataclass(frozen=True)
class PortfolioSnapshot:
    """The portfolio's state as of a point in the transaction history.

    Attributes:
        invested: Net capital contributed (deposits minus withdrawals).
        cash: Free cash, i.e. the running sum of every transaction amount.
        holdings: Share count per symbol. Symbols stay present once
            introduced, even after their count returns to zero.
    """

    invested: Decimal = Decimal("0")
    cash: Decimal = Decimal("0")
    holdings: Mapping[str, Decimal] = field(default_factory=dict)

    def __post_init__(self):
        # Own a read-only copy of the holdings
        object.__setattr__(self, "holdings", MappingProxyType(dict(self.holdings)))

    def apply(self, transaction: Transaction) -> "PortfolioSnapshot":
        """Return the snapshot that results from folding in one transaction.

        The receiver is left untouched.

        Raises:
            InvalidTransactionError: If a required field is missing.
        """
        if transaction.amount is None:
            raise InvalidTransactionError(f"Missing amount: {transaction}")

        holdings = self.holdings
        if transaction.transaction_type.moves_shares:
            if not transaction.symbol:
                raise InvalidTransactionError(f"Missing symbol: {transaction}")
            if transaction.shares is None:
                raise InvalidTransactionError(f"Missing shares: {transaction}")
            updated = dict(self.holdings)
            updated[transaction.symbol] = updated.get(transaction.symbol, Decimal("0")) + transaction.shares
            holdings = updated

        invested = self.invested
        if transaction.transaction_type.moves_capital:
            invested = invested + transaction.amount

        return PortfolioSnapshot(
            invested=invested,
            cash=self.cash + transaction.amount,
            holdings=holdings,
        )

    def open_positions(self) -> dict[str, Decimal]:
        """Return the holdings with a non-zero share count."""
        return {symbol: shares for symbol, shares in self.holdings.items() if shares != 0}


def sort_transactions(transactions: Iterable[Transaction]) -> list[Transaction]:
    """Sort transactions ascending by date.

    The sort is stable, so transactions sharing a date keep their input order.
    """
    return sorted(transactions, key=lambda t: t.transaction_date)


def compute_portfolio_by_transaction_date(
    transactions: Iterable[Transaction]
) -> dict[date, PortfolioSnapshot]:
    """
    Compute the composition of the portfolio on each day of transaction.

    Transactions are folded in date order starting from an empty portfolio.
    After each one, the resulting snapshot is stored under the transaction's
    date; when several transactions share a date only the snapshot after the
    last of them is kept.

    Args:
        transactions: The transaction log, in any order.

    Returns:
        A dictionary mapping each transaction date to the snapshot effective
        at the end of that date. Empty if there are no transactions.

    Raises:
        InvalidTransactionError: If a transaction is missing a required field.
    """
    portfolio_by_date: dict[date, PortfolioSnapshot] = {}
    snapshot = PortfolioSnapshot()

    for txn in sort_transactions(transactions):
        snapshot = snapshot.apply(txn)
        portfolio_by_date[txn.transaction_date] = snapshot

    logger.debug("Built %d portfolio snapshots", len(portfolio_by_date))
    return portfolio_by_date


def extract_symbols(transactions: Iterable[Transaction]) -> list[str]:
    """Return the distinct, non-empty symbols in the order first encountered."""
    symbols: dict[str, None] = {}
    for txn in transactions:
        if txn.symbol:
            symbols.setdefault(txn.symbol, None)
    return list(symbols)


def extract_first_transaction_date(transactions: Iterable[Transaction]) -> date | None:
    """Return the earliest transaction date, or None if there are no transactions."""
    sorted_transactions = sort_transactions(transactions)
    if not sorted_transactions:
        return None
    return sorted_transactions[0].transaction_date
