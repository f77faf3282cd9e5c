"""
Main Orchestrator for Kas Manager

This module ties together all the components and defines the
end-to-end flows for:
1. Transactions (income / expense with optional receipt → save)
2. Monthly dues (load → generate missing bills → toggle paid)
3. Broadcast (month's transactions → message → share link)

DESIGN DECISION: Pages talk to the flows and the cached clients only.
Flows own the cross-component rules:
- A receipt that fails to upload never blocks saving the expense
- Bill generation reads residents and categories from the caches
- Every write is audited
"""

from datetime import date
from typing import Optional
from uuid import UUID

import structlog
from pydantic import BaseModel, ConfigDict, Field

from kas_manager.audit import AuditLogger, create_correlation_id
from kas_manager.bills import (
    BillGenerator,
    BillSummary,
    GenerationResult,
    ResidentDues,
    bills_by_resident,
    summarize_bills,
)
from kas_manager.broadcast import (
    BroadcastStats,
    broadcast_stats,
    render_broadcast,
    whatsapp_share_url,
)
from kas_manager.clients import (
    AccountClient,
    CategoryClient,
    CollectionClient,
    ResidentClient,
    TransactionClient,
)
from kas_manager.config import get_settings
from kas_manager.ledger import total_account_balance
from kas_manager.models.entities import (
    MonthlyBill,
    MonthlyBillWithRelations,
    NewTransaction,
    TransactionType,
    TransactionWithRelations,
)
from kas_manager.services.receipts import CloudinaryReceiptStorage, ReceiptUploadError
from kas_manager.services.storage import (
    GoogleSheetsClient,
    StorageBackend,
    create_google_sheets_backend,
    create_in_memory_backend,
)


logger = structlog.get_logger(__name__)


class ReceiptFile(BaseModel):
    """An uploaded receipt image as received from the form."""

    content: bytes
    filename: str = Field(..., min_length=1)


class MonthEntries(BaseModel):
    """One month's transactions of one type and their total."""

    transactions: list[TransactionWithRelations] = Field(default_factory=list)
    total: int = 0


class BroadcastResult(BaseModel):
    """Rendered broadcast plus what the page shows beside it."""

    message: str
    stats: BroadcastStats
    share_url: str


class TransactionFlow:
    """
    Records and removes income and expenses.

    Flow for an expense with a receipt:
    1. Upload the receipt image
    2. On failure, log it and continue without a receipt
    3. Save the transaction (with receipt_url when the upload worked)
    """

    def __init__(
        self,
        transactions: TransactionClient,
        receipt_storage: Optional[CloudinaryReceiptStorage] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._transactions = transactions
        self._receipt_storage = receipt_storage
        self._audit_logger = audit_logger

    async def record_income(
        self,
        amount: int,
        resident_id: Optional[str] = None,
        transaction_date: Optional[date] = None,
        description: Optional[str] = None,
        account_id: Optional[str] = None,
    ) -> TransactionWithRelations:
        """Save money received, usually a resident's contribution."""
        new = NewTransaction(
            type=TransactionType.INCOME,
            amount=amount,
            resident_id=resident_id,
            account_id=account_id,
            description=description or None,
            transaction_date=transaction_date or date.today(),
        )
        return await self._transactions.create(new)

    async def record_expense(
        self,
        amount: int,
        category_id: Optional[str] = None,
        transaction_date: Optional[date] = None,
        description: Optional[str] = None,
        account_id: Optional[str] = None,
        receipt: Optional[ReceiptFile] = None,
        correlation_id: Optional[UUID] = None,
    ) -> TransactionWithRelations:
        """
        Save money spent, with an optional receipt image.

        Raises:
            StorageError: If the transaction itself cannot be saved
        """
        correlation_id = correlation_id or create_correlation_id()
        receipt_url = None
        if receipt is not None:
            receipt_url = await self._upload_receipt(receipt, correlation_id)

        new = NewTransaction(
            type=TransactionType.EXPENSE,
            amount=amount,
            category_id=category_id,
            account_id=account_id,
            description=description or None,
            receipt_url=receipt_url,
            transaction_date=transaction_date or date.today(),
        )
        return await self._transactions.create(new)

    async def _upload_receipt(
        self,
        receipt: ReceiptFile,
        correlation_id: UUID,
    ) -> Optional[str]:
        if self._receipt_storage is None:
            logger.warning("receipt_storage_not_configured", filename=receipt.filename)
            return None

        try:
            url = await self._receipt_storage.upload_receipt(receipt.content, receipt.filename)
        except ReceiptUploadError as e:
            logger.warning("receipt_upload_failed", filename=receipt.filename, error=str(e))
            if self._audit_logger:
                await self._audit_logger.log_receipt_upload_failed(
                    filename=receipt.filename,
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            return None

        if self._audit_logger:
            await self._audit_logger.log_receipt_uploaded(
                path=receipt.filename,
                url=url,
                correlation_id=correlation_id,
            )
        return url

    async def delete_transaction(self, transaction_id: str) -> None:
        await self._transactions.delete(transaction_id)

    def month_entries(
        self,
        year: int,
        month: int,
        transaction_type: TransactionType,
    ) -> MonthEntries:
        """Cached transactions of one type in a month, with their sum."""
        rows = self._transactions.in_month(year, month, transaction_type)
        return MonthEntries(transactions=rows, total=sum(t.amount for t in rows))


class MonthlyDuesFlow:
    """
    Monthly bills page logic.

    Residents and expense categories come from the session caches, so
    they should be refreshed before generating.
    """

    def __init__(
        self,
        generator: BillGenerator,
        residents: ResidentClient,
        categories: CategoryClient,
    ):
        self._generator = generator
        self._residents = residents
        self._categories = categories

    async def load(self, year: int, month: int) -> list[MonthlyBillWithRelations]:
        return await self._generator.fetch_bills(year, month)

    async def generate(self, year: int, month: int) -> GenerationResult:
        """Create the month's missing bills."""
        return await self._generator.generate(
            year,
            month,
            residents=self._residents.items,
            categories=self._categories.items,
            correlation_id=create_correlation_id(),
        )

    async def toggle_paid(self, bill: MonthlyBill) -> MonthlyBillWithRelations:
        return await self._generator.toggle_paid(
            bill,
            correlation_id=create_correlation_id(),
        )

    def summary(self, bills: list[MonthlyBill]) -> BillSummary:
        return summarize_bills(bills)

    def grid(self, bills: list[MonthlyBillWithRelations]) -> list[ResidentDues]:
        """Residents x expense categories, for the dues table."""
        return bills_by_resident(
            self._residents.items,
            self._categories.expense_categories(),
            bills,
        )


class BroadcastFlow:
    """
    Builds the monthly broadcast from the session caches.

    Flow:
    1. Filter cached transactions to the selected month
    2. Sum account balances for the cash line
    3. Render the message and the wa.me link
    """

    def __init__(
        self,
        transactions: TransactionClient,
        categories: CategoryClient,
        accounts: AccountClient,
        app_url: Optional[str] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._transactions = transactions
        self._categories = categories
        self._accounts = accounts
        self._app_url = app_url or get_settings().app.app_url
        self._audit_logger = audit_logger

    async def build(self, year: int, month: int) -> BroadcastResult:
        month_transactions = self._transactions.in_month(year, month)
        stats = broadcast_stats(month_transactions)
        message = render_broadcast(
            month_transactions,
            self._categories.items,
            current_balance=total_account_balance(self._accounts.items),
            year=year,
            month=month,
            app_url=self._app_url,
        )

        if self._audit_logger:
            await self._audit_logger.log_broadcast_generated(
                year=year,
                month=month,
                income_count=stats.income_count,
                expense_count=stats.expense_count,
            )

        return BroadcastResult(
            message=message,
            stats=stats,
            share_url=whatsapp_share_url(message),
        )


class AppComponents(BaseModel):
    """Everything one UI session needs."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    backend: StorageBackend
    residents: ResidentClient
    categories: CategoryClient
    accounts: AccountClient
    transactions: TransactionClient
    transaction_flow: TransactionFlow
    dues_flow: MonthlyDuesFlow
    broadcast_flow: BroadcastFlow

    @property
    def clients(self) -> list[CollectionClient]:
        return [self.residents, self.categories, self.accounts, self.transactions]

    async def refresh_all(self) -> dict[str, Optional[str]]:
        """
        Reload every collection.

        Returns:
            Collection name → error message (None when the fetch worked)
        """
        errors = {}
        for client in self.clients:
            await client.refresh()
            errors[client.name] = client.error
        return errors


def create_storage_backend(use_storage: bool = True) -> StorageBackend:
    """
    Pick the storage backend.

    Args:
        use_storage: Whether to try Google Sheets.
                    Set to False for demo mode and tests.

    Returns:
        The Google Sheets backend when it connects, else an in-memory one
    """
    if use_storage:
        try:
            client = GoogleSheetsClient()
            client.get_spreadsheet()
            return create_google_sheets_backend(client)
        except Exception as e:
            # Storage not configured - continue in demo mode
            logger.warning("storage_not_configured", error=str(e))

    return create_in_memory_backend()


def create_receipt_storage() -> Optional[CloudinaryReceiptStorage]:
    """Cloudinary receipt storage, or None when it is not configured."""
    try:
        return CloudinaryReceiptStorage()
    except Exception as e:
        logger.warning("receipt_storage_not_configured", error=str(e))
        return None


def create_app_components(
    backend: Optional[StorageBackend] = None,
    receipt_storage: Optional[CloudinaryReceiptStorage] = None,
    audit_logger: Optional[AuditLogger] = None,
) -> AppComponents:
    """
    Factory function to create one session's clients and flows.

    Args:
        backend: Repositories to use (in-memory when omitted)
        receipt_storage: Where expense receipts go (receipts disabled when omitted)
        audit_logger: Activity logger (a local one when omitted)
    """
    backend = backend or create_in_memory_backend()
    audit_logger = audit_logger or AuditLogger()

    residents = ResidentClient(backend.residents, audit_logger)
    categories = CategoryClient(backend.categories, audit_logger)
    accounts = AccountClient(backend.accounts, audit_logger)
    transactions = TransactionClient(backend.transactions, audit_logger)

    return AppComponents(
        backend=backend,
        residents=residents,
        categories=categories,
        accounts=accounts,
        transactions=transactions,
        transaction_flow=TransactionFlow(transactions, receipt_storage, audit_logger),
        dues_flow=MonthlyDuesFlow(
            BillGenerator(backend.monthly_bills, audit_logger),
            residents,
            categories,
        ),
        broadcast_flow=BroadcastFlow(
            transactions,
            categories,
            accounts,
            audit_logger=audit_logger,
        ),
    )
