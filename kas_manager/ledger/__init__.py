"""Balance aggregation package."""

from kas_manager.ledger.balance import (
    DEFICIT,
    SURPLUS,
    Balance,
    balance_indicator,
    calculate_balance,
    total_account_balance,
    transactions_in_month,
)

__all__ = [
    "DEFICIT",
    "SURPLUS",
    "Balance",
    "balance_indicator",
    "calculate_balance",
    "total_account_balance",
    "transactions_in_month",
]
