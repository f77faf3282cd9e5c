"""
Cached Collection Clients

Each client wraps one storage repository and keeps a session-scoped copy
of its rows, so pages can render from memory and only go back to the
backend on refresh or write.

ERROR HANDLING:
- refresh() never raises. A failed fetch is logged, surfaced as
  client.error, and the previous cache is kept.
- create/update/delete log the failure and re-raise. The caller decides
  what to show the user.
"""

import bisect
from typing import Any, Callable, Generic, Optional, TypeVar

import structlog
from pydantic import BaseModel

from kas_manager.audit import AuditLogger
from kas_manager.ledger.balance import transactions_in_month
from kas_manager.models.entities import (
    Account,
    AccountType,
    Category,
    CategoryType,
    NewAccount,
    NewCategory,
    NewResident,
    NewTransaction,
    Resident,
    TransactionType,
    TransactionWithRelations,
    account_order,
    name_order,
)
from kas_manager.services.storage.interface import (
    AccountStorageInterface,
    CategoryStorageInterface,
    CollectionStorageInterface,
    ResidentStorageInterface,
    TransactionStorageInterface,
)


RowT = TypeVar("RowT", bound=BaseModel)
NewT = TypeVar("NewT", bound=BaseModel)

DEFAULT_ERROR_MESSAGE = "Terjadi kesalahan"


class CollectionClient(Generic[RowT, NewT]):
    """
    List/create/update/delete against one collection, mirrored in a cache.

    Subclasses choose where a created row lands in the cache by
    overriding _insert_cached (sorted by default).
    """

    #: Sort key for the cache; None keeps insertion order
    order_key: Optional[Callable[[Any], Any]] = None

    def __init__(
        self,
        storage: CollectionStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._audit_logger = audit_logger
        self._logger = structlog.get_logger(__name__).bind(collection=storage.name)
        self._items: list[RowT] = []
        self._generation = 0
        self.error: Optional[str] = None
        self.is_loading = False
        self.loaded = False

    @property
    def name(self) -> str:
        return self._storage.name

    @property
    def items(self) -> list[RowT]:
        """A copy of the cached rows, in display order."""
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def get(self, row_id: str) -> Optional[RowT]:
        """Look up a cached row by id."""
        for item in self._items:
            if item.id == row_id:
                return item
        return None

    async def refresh(self) -> list[RowT]:
        """
        Fetch every row and replace the cache.

        On failure the error message is kept in self.error and the
        previous cache is returned unchanged. A response that arrives after
        a newer refresh was started is discarded.
        """
        self._generation += 1
        generation = self._generation
        self.is_loading = True
        try:
            rows = await self._storage.list_all()
        except Exception as e:
            message = str(e) or DEFAULT_ERROR_MESSAGE
            self._logger.error("fetch_failed", error=message)
            if self._audit_logger:
                await self._audit_logger.log_fetch_failed(
                    entity_type=self.name,
                    error_message=message,
                )
            if generation == self._generation:
                self.error = message
                self.is_loading = False
            return self.items

        if generation != self._generation:
            self._logger.debug("stale_fetch_discarded", generation=generation)
            return self.items

        self._items = list(rows)
        self.error = None
        self.is_loading = False
        self.loaded = True
        return self.items

    async def create(self, new: NewT) -> RowT:
        """
        Insert a row and add it to the cache.

        Raises whatever the storage raised.
        """
        try:
            row = await self._storage.create(new)
        except Exception as e:
            await self._write_failed("create", e)
            raise

        self._insert_cached(row)
        if self._audit_logger:
            await self._audit_logger.log_row_created(
                entity_type=self.name,
                entity_id=row.id,
                summary=self._summary(row),
            )
        return row

    async def update(self, row_id: str, fields: dict[str, Any]) -> RowT:
        """Patch a row and replace the cached entry."""
        try:
            row = await self._storage.update(row_id, fields)
        except Exception as e:
            await self._write_failed("update", e, row_id)
            raise

        self._replace_cached(row)
        if self._audit_logger:
            await self._audit_logger.log_row_updated(
                entity_type=self.name,
                entity_id=row_id,
                fields=sorted(fields),
            )
        return row

    async def delete(self, row_id: str) -> None:
        """Delete a row and drop it from the cache."""
        try:
            await self._storage.delete(row_id)
        except Exception as e:
            await self._write_failed("delete", e, row_id)
            raise

        self._items = [item for item in self._items if item.id != row_id]
        if self._audit_logger:
            await self._audit_logger.log_row_deleted(
                entity_type=self.name,
                entity_id=row_id,
            )

    def _insert_cached(self, row: RowT) -> None:
        if self.order_key is None:
            self._items.append(row)
            return
        key = self.order_key
        keys = [key(item) for item in self._items]
        self._items.insert(bisect.bisect_right(keys, key(row)), row)

    def _replace_cached(self, row: RowT) -> None:
        self._items = [row if item.id == row.id else item for item in self._items]
        if self.order_key is not None:
            # a rename can move the row
            self._items.sort(key=self.order_key)

    def _summary(self, row: RowT) -> str:
        return getattr(row, "name", row.id)

    async def _write_failed(
        self,
        operation: str,
        error: Exception,
        row_id: Optional[str] = None,
    ) -> None:
        self._logger.error(
            "write_failed",
            operation=operation,
            row_id=row_id,
            error=str(error),
        )
        if self._audit_logger:
            await self._audit_logger.log_write_failed(
                entity_type=self.name,
                operation=operation,
                error_message=str(error),
                entity_id=row_id,
            )


class ResidentClient(CollectionClient[Resident, NewResident]):
    """Residents, kept sorted by name."""

    order_key = staticmethod(name_order)

    def __init__(
        self,
        storage: ResidentStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        super().__init__(storage, audit_logger)


class CategoryClient(CollectionClient[Category, NewCategory]):
    """Categories, kept sorted by name."""

    order_key = staticmethod(name_order)

    def __init__(
        self,
        storage: CategoryStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        super().__init__(storage, audit_logger)

    def of_type(self, category_type: CategoryType) -> list[Category]:
        return [c for c in self._items if c.type == category_type]

    def expense_categories(self) -> list[Category]:
        """Expense categories; these are the templates for monthly dues."""
        return self.of_type(CategoryType.EXPENSE)

    def income_categories(self) -> list[Category]:
        return self.of_type(CategoryType.INCOME)


class AccountClient(CollectionClient[Account, NewAccount]):
    """Accounts, kept sorted by type then name."""

    order_key = staticmethod(account_order)

    def __init__(
        self,
        storage: AccountStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        super().__init__(storage, audit_logger)

    async def update_balance(self, account_id: str, new_balance: int) -> Account:
        """Set an account's balance by hand."""
        return await self.update(account_id, {"balance": new_balance})

    def by_type(self, account_type: AccountType) -> list[Account]:
        return [a for a in self._items if a.type == account_type]


class TransactionClient(CollectionClient[TransactionWithRelations, NewTransaction]):
    """
    Transactions, newest first.

    A created transaction is prepended to the cache rather than sorted in,
    so the row the user just entered shows up on top.
    """

    def __init__(
        self,
        storage: TransactionStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        super().__init__(storage, audit_logger)

    def _insert_cached(self, row: TransactionWithRelations) -> None:
        self._items.insert(0, row)

    def _summary(self, row: TransactionWithRelations) -> str:
        return f"{row.type.value} {row.amount} on {row.transaction_date.isoformat()}"

    def recent(self, limit: int = 5) -> list[TransactionWithRelations]:
        return self._items[:limit]

    def in_month(
        self,
        year: int,
        month: int,
        transaction_type: Optional[TransactionType] = None,
    ) -> list[TransactionWithRelations]:
        """Cached transactions dated in the given calendar month."""
        return [
            t for t in transactions_in_month(self._items, year, month)
            if transaction_type is None or t.type == transaction_type
        ]
