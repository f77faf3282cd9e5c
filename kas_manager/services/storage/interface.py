"""
Abstract Storage Interface

One repository per table, grouped in a StorageBackend. The Google Sheets
backend is the hosted one; the in-memory backend serves tests and demo mode.

Repositories only list, get, create, update and delete, plus the two
monthly-bill operations the dues page needs.
"""

from abc import ABC, abstractmethod
from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel

from kas_manager.models.entities import (
    Account,
    Category,
    MonthlyBill,
    MonthlyBillWithRelations,
    NewAccount,
    NewCategory,
    NewMonthlyBill,
    NewResident,
    NewTransaction,
    Resident,
    TransactionWithRelations,
)


RowT = TypeVar("RowT", bound=BaseModel)
NewT = TypeVar("NewT", bound=BaseModel)

# Never patched through update()
READ_ONLY_FIELDS = frozenset({"id", "created_at"})


class CollectionStorageInterface(ABC, Generic[RowT, NewT]):
    """
    Abstract repository for one backend collection.

    Any storage implementation (Google Sheets, in-memory, SQL...)
    must implement these methods.
    """

    #: Collection (table) name, used in logs and error messages
    name: str = ""

    @abstractmethod
    async def list_all(self) -> list[RowT]:
        """
        List every row, in the collection's display order.

        Raises:
            StorageError: If the backend read fails
        """
        pass

    @abstractmethod
    async def get_by_id(self, row_id: str) -> Optional[RowT]:
        """
        Retrieve a row by its id.

        Returns:
            The row if found, None otherwise
        """
        pass

    @abstractmethod
    async def create(self, new: NewT) -> RowT:
        """
        Insert one row.

        Returns:
            The persisted row, including generated id and created_at

        Raises:
            StorageError: If insert fails
        """
        pass

    @abstractmethod
    async def update(self, row_id: str, fields: dict[str, Any]) -> RowT:
        """
        Patch a row.

        Args:
            row_id: The row's id
            fields: Columns to change (id and created_at are ignored)

        Returns:
            The updated row

        Raises:
            NotFoundError: If the row doesn't exist
            StorageError: If update fails
        """
        pass

    @abstractmethod
    async def delete(self, row_id: str) -> bool:
        """
        Delete a row by id.

        Returns:
            True if a row was deleted, False if none matched
        """
        pass


class ResidentStorageInterface(CollectionStorageInterface[Resident, NewResident]):
    """Residents, ordered by name."""
    name = "residents"


class CategoryStorageInterface(CollectionStorageInterface[Category, NewCategory]):
    """Categories, ordered by name."""
    name = "categories"


class AccountStorageInterface(CollectionStorageInterface[Account, NewAccount]):
    """Accounts, ordered by type then name."""
    name = "accounts"


class TransactionStorageInterface(
    CollectionStorageInterface[TransactionWithRelations, NewTransaction]
):
    """
    Transactions, newest first, joined with their resident and category.
    """
    name = "transactions"


class MonthlyBillStorageInterface(
    CollectionStorageInterface[MonthlyBillWithRelations, NewMonthlyBill]
):
    """
    Monthly bills, joined with their resident and category.

    At most one bill may exist per (year, month, resident_id, category_id).
    """
    name = "monthly_bills"

    @abstractmethod
    async def list_for_month(
        self,
        year: int,
        month: int,
    ) -> list[MonthlyBillWithRelations]:
        """
        List the bills of one month.

        Raises:
            StorageError: If the backend read fails
        """
        pass

    @abstractmethod
    async def create_many(
        self,
        new_bills: list[NewMonthlyBill],
    ) -> list[MonthlyBill]:
        """
        Insert several bills in one request.

        Raises:
            DuplicateError: If a bill's (year, month, resident, category)
                key already exists or repeats within the batch.
                Nothing is inserted in that case.
            StorageError: If insert fails
        """
        pass


class StorageBackend:
    """The five repositories of one backend."""

    def __init__(
        self,
        residents: ResidentStorageInterface,
        categories: CategoryStorageInterface,
        accounts: AccountStorageInterface,
        transactions: TransactionStorageInterface,
        monthly_bills: MonthlyBillStorageInterface,
        description: str = "",
    ):
        self.residents = residents
        self.categories = categories
        self.accounts = accounts
        self.transactions = transactions
        self.monthly_bills = monthly_bills
        self.description = description


# =============================================================================
# Shared helpers
# =============================================================================

def join_transactions(
    transactions: list,
    residents: list[Resident],
    categories: list[Category],
) -> list[TransactionWithRelations]:
    """Attach resident and category rows. Dangling ids join to None."""
    residents_by_id = {r.id: r for r in residents}
    categories_by_id = {c.id: c for c in categories}

    return [
        TransactionWithRelations.model_validate({
            **t.to_record(),
            "resident": residents_by_id.get(t.resident_id) if t.resident_id else None,
            "category": categories_by_id.get(t.category_id) if t.category_id else None,
        })
        for t in transactions
    ]


def join_bills(
    bills: list[MonthlyBill],
    residents: list[Resident],
    categories: list[Category],
) -> list[MonthlyBillWithRelations]:
    """Attach resident and category rows to bills."""
    residents_by_id = {r.id: r for r in residents}
    categories_by_id = {c.id: c for c in categories}

    return [
        MonthlyBillWithRelations(
            **{name: getattr(bill, name) for name in MonthlyBill.model_fields},
            resident=residents_by_id.get(bill.resident_id),
            category=categories_by_id.get(bill.category_id),
        )
        for bill in bills
    ]


def find_duplicate_bill_keys(
    new_bills: list[NewMonthlyBill],
    existing: list[MonthlyBill],
) -> list[tuple[int, int, str, str]]:
    """Keys of new_bills that already exist or repeat within the batch."""
    seen = {bill.key for bill in existing}
    duplicates = []
    for bill in new_bills:
        if bill.key in seen:
            duplicates.append(bill.key)
        seen.add(bill.key)
    return duplicates


def patchable_fields(fields: dict[str, Any]) -> dict[str, Any]:
    """Drop the columns update() must never touch."""
    return {k: v for k, v in fields.items() if k not in READ_ONLY_FIELDS}


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
