"""Tests for monthly bill generation, payment toggling and summaries."""

import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from kas_manager.bills import (
    BillGenerator,
    bills_by_resident,
    plan_missing_bills,
    summarize_bills,
)
from kas_manager.models.entities import (
    CategoryType,
    MonthlyBill,
    NewCategory,
    NewMonthlyBill,
    NewResident,
)
from kas_manager.services.storage import DuplicateError


PAID_AT = datetime(2025, 1, 20, 10, 0, tzinfo=timezone.utc)


async def seed(backend):
    """Two residents, two expense categories and one income category."""
    budi = await backend.residents.create(NewResident(name="Budi"))
    sari = await backend.residents.create(NewResident(name="Sari"))
    listrik = await backend.categories.create(
        NewCategory(name="Listrik", type=CategoryType.EXPENSE, default_per_person=50000)
    )
    wifi = await backend.categories.create(
        NewCategory(name="Wifi", type=CategoryType.EXPENSE)
    )
    await backend.categories.create(
        NewCategory(name="Iuran", type=CategoryType.INCOME, default_per_person=100000)
    )
    residents = await backend.residents.list_all()
    categories = await backend.categories.list_all()
    return residents, categories, (budi, sari, listrik, wifi)


class TestPlanMissingBills:
    """Tests for the pure planning step."""

    def test_one_bill_per_resident_and_expense_category(self, budi, listrik):
        """Each resident gets one bill per expense category at its default."""
        planned = plan_missing_bills(2025, 1, [budi], [listrik], [])

        assert planned == [NewMonthlyBill(
            year=2025,
            month=1,
            resident_id="r-budi",
            category_id="c-listrik",
            amount_due=50000,
        )]

    @pytest.mark.asyncio
    async def test_single_resident_single_category(self, backend):
        """One resident and one category give one unpaid bill at the default amount."""
        budi = await backend.residents.create(NewResident(name="Budi"))
        listrik = await backend.categories.create(
            NewCategory(name="Listrik", type=CategoryType.EXPENSE, default_per_person=15000)
        )

        result = await BillGenerator(backend.monthly_bills).generate(2025, 1, [budi], [listrik])

        [bill] = result.bills
        assert bill.amount_due == 15000
        assert bill.is_paid is False
        assert bill.amount_paid == 0

    def test_income_categories_are_ignored(self, budi, iuran):
        """Income categories never produce bills."""
        assert plan_missing_bills(2025, 1, [budi], [iuran], []) == []

    def test_missing_default_means_zero_due(self, budi, wifi):
        """A category without a default per person bills zero."""
        planned = plan_missing_bills(2025, 1, [budi], [wifi], [])
        assert planned[0].amount_due == 0

    def test_existing_pairs_are_skipped(self, budi, sari, listrik, wifi):
        """Pairs that already have a bill this month are not planned again."""
        existing = [MonthlyBill(
            id="b-1",
            year=2025,
            month=1,
            resident_id="r-budi",
            category_id="c-listrik",
            amount_due=50000,
        )]

        planned = plan_missing_bills(2025, 1, [budi, sari], [listrik, wifi], existing)

        assert {(b.resident_id, b.category_id) for b in planned} == {
            ("r-budi", "c-wifi"),
            ("r-sari", "c-listrik"),
            ("r-sari", "c-wifi"),
        }

    def test_other_months_do_not_count(self, budi, listrik):
        """A bill from another month does not satisfy this month."""
        december = MonthlyBill(
            id="b-1",
            year=2024,
            month=12,
            resident_id="r-budi",
            category_id="c-listrik",
        )
        assert len(plan_missing_bills(2025, 1, [budi], [listrik], [december])) == 1


class TestBillGenerator:
    """Tests for BillGenerator over the in-memory backend."""

    @pytest.mark.asyncio
    async def test_generate_creates_cross_product(self, backend, mock_audit_logger):
        """First generation creates every resident and expense category pair."""
        residents, categories, _ = await seed(backend)
        generator = BillGenerator(backend.monthly_bills, mock_audit_logger)

        result = await generator.generate(2025, 1, residents, categories)

        assert result.created_count == 4
        assert len(result.bills) == 4
        assert all(not bill.is_paid for bill in result.bills)
        assert all(bill.resident is not None and bill.category is not None for bill in result.bills)
        mock_audit_logger.log_bills_generated.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_generate_is_idempotent(self, backend):
        """A second run for the same month inserts nothing."""
        residents, categories, _ = await seed(backend)
        generator = BillGenerator(backend.monthly_bills)
        await generator.generate(2025, 1, residents, categories)

        backend.monthly_bills.create_many = AsyncMock()
        second = await generator.generate(2025, 1, residents, categories)

        assert second.created_count == 0
        assert len(second.bills) == 4
        backend.monthly_bills.create_many.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_new_resident_gets_only_missing_bills(self, backend):
        """A resident added later only gets their own bills."""
        residents, categories, _ = await seed(backend)
        generator = BillGenerator(backend.monthly_bills)
        await generator.generate(2025, 1, residents, categories)

        await backend.residents.create(NewResident(name="Andi"))
        residents = await backend.residents.list_all()
        result = await generator.generate(2025, 1, residents, categories)

        assert result.created_count == 2
        assert len(result.bills) == 6

    @pytest.mark.asyncio
    async def test_concurrent_generation_does_not_duplicate(self, backend):
        """Two overlapping runs for one month create each bill once."""
        residents, categories, _ = await seed(backend)
        generator = BillGenerator(backend.monthly_bills)

        results = await asyncio.gather(
            generator.generate(2025, 1, residents, categories),
            generator.generate(2025, 1, residents, categories),
        )

        assert sorted(r.created_count for r in results) == [0, 4]
        assert len(await generator.fetch_bills(2025, 1)) == 4

    @pytest.mark.asyncio
    async def test_other_session_with_stale_view_is_refused(self, backend):
        """A second session's generator is stopped by storage, not by the first's lock."""
        residents, categories, _ = await seed(backend)
        first = BillGenerator(backend.monthly_bills)
        second = BillGenerator(backend.monthly_bills)
        await first.generate(2025, 1, residents, categories)

        # second session read the month before the first one inserted
        backend.monthly_bills.list_for_month = AsyncMock(return_value=[])
        with pytest.raises(DuplicateError):
            await second.generate(2025, 1, residents, categories)
        del backend.monthly_bills.list_for_month

        assert len(await first.fetch_bills(2025, 1)) == 4

    @pytest.mark.asyncio
    async def test_months_are_independent(self, backend):
        """Generating February leaves January untouched."""
        residents, categories, _ = await seed(backend)
        generator = BillGenerator(backend.monthly_bills)

        await generator.generate(2025, 1, residents, categories)
        february = await generator.generate(2025, 2, residents, categories)

        assert february.created_count == 4
        assert len(await generator.fetch_bills(2025, 1)) == 4

    @pytest.mark.asyncio
    async def test_storage_rejects_duplicate_keys(self, backend):
        """Storage refuses a bill whose key already exists."""
        _, _, (budi, _, listrik, _) = await seed(backend)
        bill = NewMonthlyBill(year=2025, month=1, resident_id=budi.id, category_id=listrik.id)

        await backend.monthly_bills.create_many([bill])

        with pytest.raises(DuplicateError):
            await backend.monthly_bills.create_many([bill])
        assert len(await backend.monthly_bills.list_for_month(2025, 1)) == 1

    @pytest.mark.asyncio
    async def test_storage_rejects_duplicates_within_batch(self, backend):
        """Storage refuses a batch that repeats a key."""
        _, _, (budi, _, listrik, _) = await seed(backend)
        bill = NewMonthlyBill(year=2025, month=1, resident_id=budi.id, category_id=listrik.id)

        with pytest.raises(DuplicateError):
            await backend.monthly_bills.create_many([bill, bill])

    @pytest.mark.asyncio
    async def test_toggle_paid_and_back(self, backend, mock_audit_logger):
        """Toggling marks a bill paid in full, toggling again clears it."""
        residents, categories, (budi, _, listrik, _) = await seed(backend)
        generator = BillGenerator(backend.monthly_bills, mock_audit_logger)
        result = await generator.generate(2025, 1, residents, categories)
        bill = next(
            b for b in result.bills
            if b.resident_id == budi.id and b.category_id == listrik.id
        )

        paid = await generator.toggle_paid(bill, now=PAID_AT)
        assert paid.is_paid is True
        assert paid.amount_paid == 50000
        assert paid.paid_at == PAID_AT
        assert paid.resident.name == "Budi"

        unpaid = await generator.toggle_paid(paid)
        assert unpaid.is_paid is False
        assert unpaid.amount_paid == 0
        assert unpaid.paid_at is None

        calls = mock_audit_logger.log_bill_payment_changed.await_args_list
        assert [c.kwargs["is_paid"] for c in calls] == [True, False]


class TestBillSummary:
    """Tests for totals and the resident grid."""

    @pytest.mark.asyncio
    async def test_summary_totals(self, backend):
        """Totals split the month into paid and outstanding."""
        residents, categories, (budi, _, listrik, _) = await seed(backend)
        generator = BillGenerator(backend.monthly_bills)
        result = await generator.generate(2025, 1, residents, categories)
        bill = next(
            b for b in result.bills
            if b.resident_id == budi.id and b.category_id == listrik.id
        )
        await generator.toggle_paid(bill, now=PAID_AT)

        summary = summarize_bills(await generator.fetch_bills(2025, 1))

        assert summary.total_due == 100000
        assert summary.total_paid == 50000
        assert summary.outstanding == 50000
        assert summary.paid_count == 1
        assert summary.unpaid_count == 3

    def test_empty_summary(self):
        """A month with no bills has zero totals."""
        summary = summarize_bills([])
        assert summary.total_due == 0
        assert summary.outstanding == 0

    @pytest.mark.asyncio
    async def test_grid_has_empty_cells_for_missing_bills(self, backend):
        """Residents without bills still get a row of empty cells."""
        residents, categories, _ = await seed(backend)
        generator = BillGenerator(backend.monthly_bills)
        result = await generator.generate(2025, 1, residents, categories)

        await backend.residents.create(NewResident(name="Andi"))
        residents = await backend.residents.list_all()
        expense_categories = [c for c in categories if c.type == CategoryType.EXPENSE]

        grid = bills_by_resident(residents, expense_categories, result.bills)

        assert [row.resident.name for row in grid] == ["Andi", "Budi", "Sari"]
        assert [bill for _, bill in grid[0].cells] == [None, None]
        assert [c.name for c, _ in grid[1].cells] == ["Listrik", "Wifi"]
        assert grid[1].total_due == 50000
        assert grid[1].all_paid is False
