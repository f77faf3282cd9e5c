"""
In-Memory Storage Implementation

Keeps every collection in a Python dict. Used when Google Sheets is not
configured (demo mode, data is lost on restart) and in tests.

It follows the same contracts as the Google Sheets backend: generated ids,
created_at timestamps, display ordering, joins and the monthly-bill
uniqueness check.
"""

from typing import Any, Optional
from uuid import uuid4

from pydantic import BaseModel, ValidationError

from kas_manager.models.entities import (
    Account,
    Category,
    MonthlyBill,
    MonthlyBillWithRelations,
    NewMonthlyBill,
    Resident,
    Transaction,
    TransactionWithRelations,
    account_order,
    name_order,
    sort_transactions,
    utc_now,
)
from kas_manager.services.storage.interface import (
    AccountStorageInterface,
    CategoryStorageInterface,
    DuplicateError,
    MonthlyBillStorageInterface,
    NotFoundError,
    ResidentStorageInterface,
    StorageBackend,
    StorageError,
    TransactionStorageInterface,
    find_duplicate_bill_keys,
    join_bills,
    join_transactions,
    patchable_fields,
)


class InMemoryCollection:
    """Shared dict-backed CRUD. Subclasses pick the row model and ordering."""

    row_model: type[BaseModel] = BaseModel

    def __init__(self):
        self._rows: dict[str, BaseModel] = {}

    def _ordered(self, rows: list) -> list:
        return rows

    def _insert(self, new: BaseModel) -> BaseModel:
        row = self.row_model.model_validate({
            **new.model_dump(),
            "id": str(uuid4()),
            "created_at": utc_now(),
        })
        self._rows[row.id] = row
        return row

    def _patch(self, row_id: str, fields: dict[str, Any]) -> BaseModel:
        current = self._rows.get(row_id)
        if current is None:
            raise NotFoundError(f"{self.name} row not found: {row_id}")
        try:
            row = self.row_model.model_validate({
                **current.to_record(),
                **patchable_fields(fields),
            })
        except ValidationError as e:
            raise StorageError(f"Invalid update for {self.name} row {row_id}: {e}")
        self._rows[row_id] = row
        return row

    async def list_all(self) -> list:
        return self._ordered(list(self._rows.values()))

    async def get_by_id(self, row_id: str) -> Optional[BaseModel]:
        return self._rows.get(row_id)

    async def create(self, new: BaseModel) -> BaseModel:
        return self._insert(new)

    async def update(self, row_id: str, fields: dict[str, Any]) -> BaseModel:
        return self._patch(row_id, fields)

    async def delete(self, row_id: str) -> bool:
        return self._rows.pop(row_id, None) is not None


class InMemoryResidentStorage(InMemoryCollection, ResidentStorageInterface):
    row_model = Resident

    def _ordered(self, rows: list) -> list:
        return sorted(rows, key=name_order)


class InMemoryCategoryStorage(InMemoryCollection, CategoryStorageInterface):
    row_model = Category

    def _ordered(self, rows: list) -> list:
        return sorted(rows, key=name_order)


class InMemoryAccountStorage(InMemoryCollection, AccountStorageInterface):
    row_model = Account

    def _ordered(self, rows: list) -> list:
        return sorted(rows, key=account_order)


class InMemoryTransactionStorage(InMemoryCollection, TransactionStorageInterface):
    """Transactions joined against the resident and category collections."""

    row_model = Transaction

    def __init__(
        self,
        residents: InMemoryResidentStorage,
        categories: InMemoryCategoryStorage,
    ):
        super().__init__()
        self._residents = residents
        self._categories = categories

    async def _join(self, rows: list[Transaction]) -> list[TransactionWithRelations]:
        return join_transactions(
            rows,
            await self._residents.list_all(),
            await self._categories.list_all(),
        )

    async def list_all(self) -> list[TransactionWithRelations]:
        return await self._join(sort_transactions(list(self._rows.values())))

    async def get_by_id(self, row_id: str) -> Optional[TransactionWithRelations]:
        row = self._rows.get(row_id)
        if row is None:
            return None
        return (await self._join([row]))[0]

    async def create(self, new) -> TransactionWithRelations:
        return (await self._join([self._insert(new)]))[0]

    async def update(self, row_id: str, fields: dict[str, Any]) -> TransactionWithRelations:
        return (await self._join([self._patch(row_id, fields)]))[0]


class InMemoryMonthlyBillStorage(InMemoryCollection, MonthlyBillStorageInterface):
    """Monthly bills joined against the resident and category collections."""

    row_model = MonthlyBill

    def __init__(
        self,
        residents: InMemoryResidentStorage,
        categories: InMemoryCategoryStorage,
    ):
        super().__init__()
        self._residents = residents
        self._categories = categories

    async def _join(self, rows: list[MonthlyBill]) -> list[MonthlyBillWithRelations]:
        return join_bills(
            rows,
            await self._residents.list_all(),
            await self._categories.list_all(),
        )

    async def list_all(self) -> list[MonthlyBillWithRelations]:
        rows = sorted(self._rows.values(), key=lambda b: (b.year, b.month, b.created_at))
        return await self._join(rows)

    async def get_by_id(self, row_id: str) -> Optional[MonthlyBillWithRelations]:
        row = self._rows.get(row_id)
        if row is None:
            return None
        return (await self._join([row]))[0]

    async def create(self, new: NewMonthlyBill) -> MonthlyBillWithRelations:
        created = await self.create_many([new])
        return (await self._join(created))[0]

    async def update(self, row_id: str, fields: dict[str, Any]) -> MonthlyBillWithRelations:
        return (await self._join([self._patch(row_id, fields)]))[0]

    async def list_for_month(self, year: int, month: int) -> list[MonthlyBillWithRelations]:
        return [
            bill for bill in await self.list_all()
            if bill.year == year and bill.month == month
        ]

    async def create_many(self, new_bills: list[NewMonthlyBill]) -> list[MonthlyBill]:
        duplicates = find_duplicate_bill_keys(new_bills, list(self._rows.values()))
        if duplicates:
            raise DuplicateError(f"Bills already exist for: {duplicates}")
        return [self._insert(bill) for bill in new_bills]


def create_in_memory_backend() -> StorageBackend:
    """Build a fresh, empty in-memory backend."""
    residents = InMemoryResidentStorage()
    categories = InMemoryCategoryStorage()
    return StorageBackend(
        residents=residents,
        categories=categories,
        accounts=InMemoryAccountStorage(),
        transactions=InMemoryTransactionStorage(residents, categories),
        monthly_bills=InMemoryMonthlyBillStorage(residents, categories),
        description="In-memory (demo, not persisted)",
    )
