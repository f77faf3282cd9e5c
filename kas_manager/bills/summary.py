"""
Monthly Dues Summary

Totals and the resident x category grid shown on the dues page.
"""

from typing import Iterable, Optional

from pydantic import BaseModel, Field, computed_field

from kas_manager.models.entities import (
    Category,
    MonthlyBill,
    MonthlyBillWithRelations,
    Resident,
)


class BillSummary(BaseModel):
    """Totals over one month's bills."""

    total_due: int = 0
    total_paid: int = 0
    paid_count: int = 0
    unpaid_count: int = 0

    @computed_field
    @property
    def outstanding(self) -> int:
        return self.total_due - self.total_paid


def summarize_bills(bills: Iterable[MonthlyBill]) -> BillSummary:
    """Sum amount_due and amount_paid, and count paid and unpaid bills."""
    summary = BillSummary()
    for bill in bills:
        summary.total_due += bill.amount_due
        summary.total_paid += bill.amount_paid
        if bill.is_paid:
            summary.paid_count += 1
        else:
            summary.unpaid_count += 1
    return summary


class ResidentDues(BaseModel):
    """One row of the dues grid: a resident and their bill per category."""

    resident: Resident
    cells: list[tuple[Category, Optional[MonthlyBillWithRelations]]] = Field(
        default_factory=list
    )

    @property
    def total_due(self) -> int:
        return sum(bill.amount_due for _, bill in self.cells if bill is not None)

    @property
    def all_paid(self) -> bool:
        bills = [bill for _, bill in self.cells if bill is not None]
        return bool(bills) and all(bill.is_paid for bill in bills)


def bills_by_resident(
    residents: Iterable[Resident],
    expense_categories: Iterable[Category],
    bills: Iterable[MonthlyBillWithRelations],
) -> list[ResidentDues]:
    """
    Arrange bills in a resident x category grid.

    A cell is None when the resident has no bill for that category yet,
    e.g. a resident added after the month was generated.
    """
    categories = list(expense_categories)
    by_key = {(b.resident_id, b.category_id): b for b in bills}

    return [
        ResidentDues(
            resident=resident,
            cells=[(c, by_key.get((resident.id, c.id))) for c in categories],
        )
        for resident in residents
    ]
