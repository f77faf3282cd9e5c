"""
Google Sheets Storage Implementation

Each table is one worksheet with a header row. Every value is written as a
string (RAW input) and parsed back through the pydantic models, so the
treasurer can read and fix the cash book directly in Sheets.

Sheets has no unique constraints, joins or ordering. Uniqueness of
monthly bills is checked before appending; joins and sorting happen in
Python after reading.
"""

from typing import Any, Optional
from uuid import uuid4

import gspread
import structlog
from google.oauth2.service_account import Credentials
from pydantic import BaseModel, ValidationError
from tenacity import retry, stop_after_attempt, wait_exponential

from kas_manager.config import get_settings
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
    ConnectionError,
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


logger = structlog.get_logger(__name__)


# Column layouts, one worksheet per table
RESIDENT_COLUMNS = [
    "id",
    "name",
    "default_monthly_amount",
    "room_type",
    "floor",
    "created_at",
]

CATEGORY_COLUMNS = [
    "id",
    "name",
    "type",
    "default_per_person",
    "created_at",
]

ACCOUNT_COLUMNS = [
    "id",
    "name",
    "type",
    "provider",
    "account_number",
    "balance",
    "icon",
    "created_at",
]

TRANSACTION_COLUMNS = [
    "id",
    "type",
    "amount",
    "resident_id",
    "category_id",
    "account_id",
    "description",
    "receipt_url",
    "transaction_date",
    "created_at",
]

MONTHLY_BILL_COLUMNS = [
    "id",
    "year",
    "month",
    "resident_id",
    "category_id",
    "amount_due",
    "amount_paid",
    "is_paid",
    "paid_at",
    "created_at",
]


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and gets-or-creates the worksheets.
    Only the connection is retried; reads and writes are not.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._worksheets: dict[str, gspread.Worksheet] = {}
        self._settings = get_settings().google_sheets

    @property
    def settings(self):
        return self._settings

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_worksheet(self, title: str, columns: list[str]) -> gspread.Worksheet:
        """Get or create a worksheet, writing the header row on creation."""
        if title not in self._worksheets:
            spreadsheet = self.get_spreadsheet()
            try:
                sheet = spreadsheet.worksheet(title)
            except gspread.WorksheetNotFound:
                sheet = spreadsheet.add_worksheet(
                    title=title,
                    rows=1000,
                    cols=len(columns),
                )
                sheet.append_row(columns)
            self._worksheets[title] = sheet
        return self._worksheets[title]


class GoogleSheetsCollection:
    """
    One table stored as one worksheet.

    Rows are matched by the id in column A. Subclasses set the column
    layout, the row model, the sheet-name setting and the ordering.
    """

    columns: list[str] = []
    row_model: type[BaseModel] = BaseModel
    sheet_setting: str = ""

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _sheet(self) -> gspread.Worksheet:
        title = getattr(self._client.settings, self.sheet_setting)
        return self._client.get_worksheet(title, self.columns)

    def _ordered(self, rows: list) -> list:
        return rows

    def _record_to_row(self, record: dict[str, Any]) -> list[str]:
        """Convert a flat record to a spreadsheet row."""
        return [
            "" if record.get(column) is None else str(record[column])
            for column in self.columns
        ]

    def _row_to_record(self, row: list) -> dict[str, Optional[str]]:
        """Convert a spreadsheet row to a flat record. Empty cells become None."""
        def safe_get(index: int) -> Optional[str]:
            try:
                return row[index] if row[index] != "" else None
            except IndexError:
                return None

        return {column: safe_get(i) for i, column in enumerate(self.columns)}

    def _parse(self, row: list) -> BaseModel:
        return self.row_model.model_validate(self._row_to_record(row))

    def _read_rows(self) -> list:
        """All well-formed rows. Malformed ones are skipped with a warning."""
        sheet = self._sheet()
        all_rows = sheet.get_all_values()[1:]  # Skip header

        rows = []
        for row in all_rows:
            if not row or not row[0]:  # Skip empty rows
                continue
            try:
                rows.append(self._parse(row))
            except ValidationError as e:
                logger.warning(
                    "malformed_row_skipped",
                    table=self.name,
                    row_id=row[0],
                    error=str(e),
                )
        return rows

    def _find_row(self, sheet: gspread.Worksheet, row_id: str) -> tuple[int, list]:
        """Return (1-based sheet row number, raw row) for an id."""
        all_rows = sheet.get_all_values()
        for idx, row in enumerate(all_rows[1:], start=2):  # Row 1 is the header
            if row and row[0] == row_id:
                return idx, row
        raise NotFoundError(f"{self.name} row not found: {row_id}")

    def _new_row(self, new: BaseModel) -> BaseModel:
        return self.row_model.model_validate({
            **new.model_dump(),
            "id": str(uuid4()),
            "created_at": utc_now(),
        })

    def _insert(self, new: BaseModel) -> BaseModel:
        try:
            row = self._new_row(new)
            self._sheet().append_row(
                self._record_to_row(row.to_record()),
                value_input_option="RAW",
            )
            return row
        except Exception as e:
            raise StorageError(f"Failed to insert {self.name} row: {e}")

    def _patch(self, row_id: str, fields: dict[str, Any]) -> BaseModel:
        try:
            sheet = self._sheet()
            idx, raw = self._find_row(sheet, row_id)
            current = self._parse(raw)
            row = self.row_model.model_validate({
                **current.to_record(),
                **patchable_fields(fields),
            })
            sheet.update(
                range_name=f"A{idx}",
                values=[self._record_to_row(row.to_record())],
                value_input_option="RAW",
            )
            return row
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update {self.name} row: {e}")

    async def list_all(self) -> list:
        try:
            return self._ordered(self._read_rows())
        except Exception as e:
            raise StorageError(f"Failed to list {self.name}: {e}")

    async def get_by_id(self, row_id: str) -> Optional[BaseModel]:
        try:
            sheet = self._sheet()
            _, raw = self._find_row(sheet, row_id)
            return self._parse(raw)
        except NotFoundError:
            return None
        except Exception as e:
            raise StorageError(f"Failed to get {self.name} row: {e}")

    async def create(self, new: BaseModel) -> BaseModel:
        return self._insert(new)

    async def update(self, row_id: str, fields: dict[str, Any]) -> BaseModel:
        return self._patch(row_id, fields)

    async def delete(self, row_id: str) -> bool:
        try:
            sheet = self._sheet()
            idx, _ = self._find_row(sheet, row_id)
            sheet.delete_rows(idx)
            return True
        except NotFoundError:
            return False
        except Exception as e:
            raise StorageError(f"Failed to delete {self.name} row: {e}")


class GoogleSheetsResidentStorage(GoogleSheetsCollection, ResidentStorageInterface):
    columns = RESIDENT_COLUMNS
    row_model = Resident
    sheet_setting = "residents_sheet_name"

    def _ordered(self, rows: list) -> list:
        return sorted(rows, key=name_order)


class GoogleSheetsCategoryStorage(GoogleSheetsCollection, CategoryStorageInterface):
    columns = CATEGORY_COLUMNS
    row_model = Category
    sheet_setting = "categories_sheet_name"

    def _ordered(self, rows: list) -> list:
        return sorted(rows, key=name_order)


class GoogleSheetsAccountStorage(GoogleSheetsCollection, AccountStorageInterface):
    columns = ACCOUNT_COLUMNS
    row_model = Account
    sheet_setting = "accounts_sheet_name"

    def _ordered(self, rows: list) -> list:
        return sorted(rows, key=account_order)


class GoogleSheetsTransactionStorage(GoogleSheetsCollection, TransactionStorageInterface):
    """
    Transactions worksheet.

    Rows are joined with the residents and categories worksheets after
    reading, the way a relational select-with-join would return them.
    """

    columns = TRANSACTION_COLUMNS
    row_model = Transaction
    sheet_setting = "transactions_sheet_name"

    def __init__(
        self,
        client: Optional[GoogleSheetsClient] = None,
        residents: Optional[GoogleSheetsResidentStorage] = None,
        categories: Optional[GoogleSheetsCategoryStorage] = None,
    ):
        super().__init__(client)
        self._residents = residents or GoogleSheetsResidentStorage(self._client)
        self._categories = categories or GoogleSheetsCategoryStorage(self._client)

    def _join(self, rows: list[Transaction]) -> list[TransactionWithRelations]:
        return join_transactions(
            rows,
            self._residents._read_rows(),
            self._categories._read_rows(),
        )

    async def list_all(self) -> list[TransactionWithRelations]:
        try:
            return self._join(sort_transactions(self._read_rows()))
        except Exception as e:
            raise StorageError(f"Failed to list {self.name}: {e}")

    async def get_by_id(self, row_id: str) -> Optional[TransactionWithRelations]:
        row = await super().get_by_id(row_id)
        if row is None:
            return None
        return self._join([row])[0]

    async def create(self, new) -> TransactionWithRelations:
        row = self._insert(new)
        try:
            return self._join([row])[0]
        except Exception as e:
            raise StorageError(f"Transaction saved but could not be reloaded: {e}")

    async def update(self, row_id: str, fields: dict[str, Any]) -> TransactionWithRelations:
        row = self._patch(row_id, fields)
        try:
            return self._join([row])[0]
        except Exception as e:
            raise StorageError(f"Transaction updated but could not be reloaded: {e}")


class GoogleSheetsMonthlyBillStorage(GoogleSheetsCollection, MonthlyBillStorageInterface):
    """
    Monthly bills worksheet.

    The (year, month, resident, category) uniqueness check reads the sheet
    right before the batch append; it is not atomic with the append.
    """

    columns = MONTHLY_BILL_COLUMNS
    row_model = MonthlyBill
    sheet_setting = "monthly_bills_sheet_name"

    def __init__(
        self,
        client: Optional[GoogleSheetsClient] = None,
        residents: Optional[GoogleSheetsResidentStorage] = None,
        categories: Optional[GoogleSheetsCategoryStorage] = None,
    ):
        super().__init__(client)
        self._residents = residents or GoogleSheetsResidentStorage(self._client)
        self._categories = categories or GoogleSheetsCategoryStorage(self._client)

    def _join(self, rows: list[MonthlyBill]) -> list[MonthlyBillWithRelations]:
        return join_bills(
            rows,
            self._residents._read_rows(),
            self._categories._read_rows(),
        )

    async def list_all(self) -> list[MonthlyBillWithRelations]:
        try:
            rows = sorted(self._read_rows(), key=lambda b: (b.year, b.month, b.created_at))
            return self._join(rows)
        except Exception as e:
            raise StorageError(f"Failed to list {self.name}: {e}")

    async def get_by_id(self, row_id: str) -> Optional[MonthlyBillWithRelations]:
        row = await super().get_by_id(row_id)
        if row is None:
            return None
        return self._join([row])[0]

    async def create(self, new: NewMonthlyBill) -> MonthlyBillWithRelations:
        created = await self.create_many([new])
        return self._join(created)[0]

    async def update(self, row_id: str, fields: dict[str, Any]) -> MonthlyBillWithRelations:
        row = self._patch(row_id, fields)
        return self._join([row])[0]

    async def list_for_month(self, year: int, month: int) -> list[MonthlyBillWithRelations]:
        try:
            rows = [
                bill for bill in self._read_rows()
                if bill.year == year and bill.month == month
            ]
            rows.sort(key=lambda b: b.created_at)
            return self._join(rows)
        except Exception as e:
            raise StorageError(f"Failed to list bills for {year}-{month:02d}: {e}")

    async def create_many(self, new_bills: list[NewMonthlyBill]) -> list[MonthlyBill]:
        if not new_bills:
            return []

        try:
            existing = self._read_rows()
        except Exception as e:
            raise StorageError(f"Failed to check existing bills: {e}")

        duplicates = find_duplicate_bill_keys(new_bills, existing)
        if duplicates:
            raise DuplicateError(f"Bills already exist for: {duplicates}")

        try:
            bills = [self._new_row(new) for new in new_bills]
            self._sheet().append_rows(
                [self._record_to_row(bill.to_record()) for bill in bills],
                value_input_option="RAW",
            )
            return bills
        except Exception as e:
            raise StorageError(f"Failed to insert bills: {e}")


def create_google_sheets_backend(
    client: Optional[GoogleSheetsClient] = None,
) -> StorageBackend:
    """Build the repositories over one shared spreadsheet client."""
    client = client or GoogleSheetsClient()
    residents = GoogleSheetsResidentStorage(client)
    categories = GoogleSheetsCategoryStorage(client)
    return StorageBackend(
        residents=residents,
        categories=categories,
        accounts=GoogleSheetsAccountStorage(client),
        transactions=GoogleSheetsTransactionStorage(client, residents, categories),
        monthly_bills=GoogleSheetsMonthlyBillStorage(client, residents, categories),
        description=f"Google Sheets ({client.settings.spreadsheet_id})",
    )
