"""
Monthly Bill Generation

Every resident owes one bill per expense category per month. Generation
fills in whatever (resident, category) pairs are still missing for a month,
using the category's default_per_person as the amount due.

CONCURRENCY: generation is check-then-insert. A generator serializes its
own runs per (year, month); the app builds one generator per session, so
this covers repeated clicks in one session only. Across sessions the
storage layer is the guard: it refuses a batch whose
(year, month, resident, category) key already exists.
"""

import asyncio
from datetime import datetime
from typing import Iterable, Optional
from uuid import UUID

import structlog
from pydantic import BaseModel, ConfigDict, Field

from kas_manager.audit import AuditLogger
from kas_manager.models.entities import (
    Category,
    CategoryType,
    MonthlyBill,
    MonthlyBillWithRelations,
    NewMonthlyBill,
    Resident,
)
from kas_manager.services.storage.interface import MonthlyBillStorageInterface


logger = structlog.get_logger(__name__)


class GenerationResult(BaseModel):
    """Outcome of one generate() call."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    year: int
    month: int
    created: list[MonthlyBill] = Field(default_factory=list)
    bills: list[MonthlyBillWithRelations] = Field(
        default_factory=list,
        description="All bills of the month after generation"
    )

    @property
    def created_count(self) -> int:
        return len(self.created)


def plan_missing_bills(
    year: int,
    month: int,
    residents: Iterable[Resident],
    categories: Iterable[Category],
    existing_bills: Iterable[MonthlyBill],
) -> list[NewMonthlyBill]:
    """
    Bills to create so every resident has one per expense category.

    Income categories are ignored. Existing bills of other months are
    ignored too, only (resident_id, category_id) pairs of this
    (year, month) count as present.
    """
    expense_categories = [c for c in categories if c.type == CategoryType.EXPENSE]
    present = {
        (b.resident_id, b.category_id)
        for b in existing_bills
        if b.year == year and b.month == month
    }

    planned = []
    for resident in residents:
        for category in expense_categories:
            if (resident.id, category.id) in present:
                continue
            planned.append(NewMonthlyBill(
                year=year,
                month=month,
                resident_id=resident.id,
                category_id=category.id,
                amount_due=category.default_per_person or 0,
            ))
            present.add((resident.id, category.id))
    return planned


class BillGenerator:
    """
    Creates and updates monthly bills.

    Flow for generate():
    1. Read the month's current bills
    2. Plan the missing (resident x expense category) pairs
    3. Batch-insert them in one request (skipped when nothing is missing)
    4. Re-read the month
    """

    def __init__(
        self,
        storage: MonthlyBillStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._audit_logger = audit_logger
        self._locks: dict[tuple[int, int], asyncio.Lock] = {}

    def _lock_for(self, year: int, month: int) -> asyncio.Lock:
        key = (year, month)
        if key not in self._locks:
            self._locks[key] = asyncio.Lock()
        return self._locks[key]

    async def fetch_bills(self, year: int, month: int) -> list[MonthlyBillWithRelations]:
        """Bills of one month, joined with resident and category."""
        return await self._storage.list_for_month(year, month)

    async def generate(
        self,
        year: int,
        month: int,
        residents: Iterable[Resident],
        categories: Iterable[Category],
        correlation_id: Optional[UUID] = None,
    ) -> GenerationResult:
        """
        Make sure every resident has a bill for every expense category.

        Raises:
            DuplicateError: If another writer created some of the bills
                between the check and the insert
            StorageError: If reading or inserting fails
        """
        async with self._lock_for(year, month):
            existing = await self._storage.list_for_month(year, month)
            planned = plan_missing_bills(year, month, residents, categories, existing)

            if not planned:
                logger.info("bills_up_to_date", year=year, month=month)
                return GenerationResult(year=year, month=month, bills=existing)

            created = await self._storage.create_many(planned)
            bills = await self._storage.list_for_month(year, month)

        logger.info("bills_generated", year=year, month=month, created=len(created))
        if self._audit_logger:
            await self._audit_logger.log_bills_generated(
                year=year,
                month=month,
                created=len(created),
                correlation_id=correlation_id,
            )
        return GenerationResult(year=year, month=month, created=created, bills=bills)

    async def toggle_paid(
        self,
        bill: MonthlyBill,
        now: Optional[datetime] = None,
        correlation_id: Optional[UUID] = None,
    ) -> MonthlyBillWithRelations:
        """
        Flip a bill between unpaid and paid.

        Unpaid -> Paid: amount_paid = amount_due, paid_at = now
        Paid -> Unpaid: amount_paid = 0, paid_at cleared
        """
        target = bill.toggled(now)
        updated = await self._storage.update(bill.id, target.payment_fields())

        if self._audit_logger:
            await self._audit_logger.log_bill_payment_changed(
                bill_id=bill.id,
                is_paid=updated.is_paid,
                amount_paid=updated.amount_paid,
                correlation_id=correlation_id,
            )
        return updated
