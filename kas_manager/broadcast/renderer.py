"""
Broadcast Message Renderer

Builds the WhatsApp message posted to the house group at the end of a
month: who paid, what was spent, the recurring dues and the cash balance.

The transactions passed in must already be filtered to the month being
reported (see ledger.transactions_in_month). Rendering is pure; sharing is
done by the UI through the wa.me link.
"""

from typing import Iterable
from urllib.parse import quote

from pydantic import BaseModel

from kas_manager.formatting import format_rupiah, format_short_rupiah, month_name
from kas_manager.ledger.balance import calculate_balance
from kas_manager.models.entities import (
    Category,
    CategoryType,
    TransactionType,
    TransactionWithRelations,
)


WHATSAPP_SHARE_URL = "https://wa.me/?text="
FALLBACK_NAME = "Lainnya"
ELECTRICITY_KEYWORD = "listrik"


class BroadcastStats(BaseModel):
    """Counts and totals shown next to the message preview."""

    income_count: int = 0
    expense_count: int = 0
    total_income: int = 0
    total_expense: int = 0


def broadcast_stats(transactions: Iterable[TransactionWithRelations]) -> BroadcastStats:
    transactions = list(transactions)
    balance = calculate_balance(transactions)
    return BroadcastStats(
        income_count=sum(1 for t in transactions if t.type == TransactionType.INCOME),
        expense_count=sum(1 for t in transactions if t.type == TransactionType.EXPENSE),
        total_income=balance.income,
        total_expense=balance.expense,
    )


def _dues_lines(categories: list[Category]) -> list[str]:
    lines = []
    for index, category in enumerate(categories, start=1):
        if category.default_per_person:
            per_person = f"{format_short_rupiah(category.default_per_person)}/org"
        else:
            per_person = "-"
        lines.append(f"{index}. {category.name} {per_person}")
    return lines


def render_broadcast(
    transactions: Iterable[TransactionWithRelations],
    categories: Iterable[Category],
    current_balance: int,
    year: int,
    month: int,
    app_url: str,
) -> str:
    """
    Render the monthly broadcast message.

    Sections, each followed by a blank line:
    1. App link and title
    2. Income received (omitted when there is none)
    3. Money spent (omitted when there is none)
    4. Electricity dues, then other dues (each omitted when empty)
    5. Month summary and current cash balance

    Args:
        transactions: The month's transactions, with relations joined
        categories: All categories; only expense ones are listed
        current_balance: Sum of account balances
        year: Reported year
        month: Reported month, 1-based
        app_url: Link put on the first line

    Returns:
        The message text, WhatsApp markup (*bold*) included
    """
    transactions = list(transactions)
    income = [t for t in transactions if t.type == TransactionType.INCOME]
    expense = [t for t in transactions if t.type == TransactionType.EXPENSE]
    balance = calculate_balance(transactions)
    name = month_name(month)

    message = f"{app_url}\n\n"
    message += f"*Iuran {name} {year}*\n\n"

    if income:
        items = [
            f"{t.resident.name if t.resident else FALLBACK_NAME} {format_short_rupiah(t.amount)}"
            for t in income
        ]
        message += "*Uang Diterima:*\n"
        message += " + ".join(items) + "\n"
        message += f"Total: {format_rupiah(balance.income)}\n\n"

    if expense:
        items = [
            f"{format_short_rupiah(t.amount)} ({t.category.name if t.category else FALLBACK_NAME})"
            for t in expense
        ]
        message += "*Uang Keluar:*\n"
        message += " + ".join(items) + "\n"
        message += f"Total: {format_rupiah(balance.expense)}\n\n"

    expense_categories = [c for c in categories if c.type == CategoryType.EXPENSE]
    electricity = [c for c in expense_categories if ELECTRICITY_KEYWORD in c.name.lower()]
    others = [c for c in expense_categories if ELECTRICITY_KEYWORD not in c.name.lower()]

    for heading, group in (("Iuran Listrik", electricity), ("Iuran Lain-lain", others)):
        if group:
            message += f"*{heading}:*\n"
            message += "\n".join(_dues_lines(group)) + "\n\n"

    sign = "+" if balance.net >= 0 else ""
    message += f"*Ringkasan {name}:*\n"
    message += f"Pemasukan: {format_rupiah(balance.income)}\n"
    message += f"Pengeluaran: {format_rupiah(balance.expense)}\n"
    message += f"Selisih: {sign}{format_rupiah(balance.net)}\n\n"
    message += f"*Saldo Kas Saat Ini: {format_rupiah(current_balance)}*"

    return message


def whatsapp_share_url(message: str) -> str:
    """wa.me deep link that opens WhatsApp with the message pre-filled."""
    return WHATSAPP_SHARE_URL + quote(message, safe="!~*'()")
