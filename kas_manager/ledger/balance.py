"""
Balance Aggregation

Pure functions over the cached transaction and account lists.
Nothing here talks to storage; pages recompute these on every render.

Transactions and account balances are tracked in parallel. The account
total is NOT reconciled against the transaction totals.
"""

from typing import Iterable, TypeVar

from pydantic import BaseModel, computed_field

from kas_manager.models.entities import Account, Transaction, TransactionType


T = TypeVar("T", bound=Transaction)

SURPLUS = "✅ Surplus"
DEFICIT = "⚠️ Defisit"


class Balance(BaseModel):
    """Income, expense and their difference for a set of transactions."""

    income: int = 0
    expense: int = 0

    @computed_field
    @property
    def net(self) -> int:
        return self.income - self.expense


def calculate_balance(transactions: Iterable[Transaction]) -> Balance:
    """Sum income and expense amounts."""
    income = 0
    expense = 0
    for t in transactions:
        if t.type == TransactionType.INCOME:
            income += t.amount
        elif t.type == TransactionType.EXPENSE:
            expense += t.amount
    return Balance(income=income, expense=expense)


def total_account_balance(accounts: Iterable[Account]) -> int:
    """Sum of all account balances. Can be negative."""
    return sum(a.balance for a in accounts)


def transactions_in_month(
    transactions: Iterable[T],
    year: int,
    month: int,
) -> list[T]:
    """Transactions whose transaction_date falls in the given year and 1-based month."""
    return [
        t for t in transactions
        if t.transaction_date.year == year and t.transaction_date.month == month
    ]


def balance_indicator(amount: int) -> str:
    """Surplus when the amount is zero or more, Defisit otherwise."""
    return SURPLUS if amount >= 0 else DEFICIT
