"""
Core Data Models for Kas Manager

Every row that comes back from the backend is parsed into one of these
models, and every row we send is produced by one of them. They are designed to:
1. Enforce the few local checks we do (names present, amounts positive)
2. Be serializable to flat records for the spreadsheet backend
3. Keep derived fields (bill payment) impossible to get out of sync

Row models (Resident, Category, ...) carry the id and created_at assigned by
storage. The New* models carry only what the user typed in a form.
"""

from datetime import date, datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    model_validator,
)


# =============================================================================
# ENUMS
# =============================================================================

class RoomType(str, Enum):
    """Room type of a resident."""
    AC = "ac"
    NON_AC = "non-ac"


class Floor(str, Enum):
    """Which floor the resident's room is on."""
    ATAS = "atas"
    BAWAH = "bawah"


class CategoryType(str, Enum):
    """Whether a category classifies income or expense."""
    INCOME = "income"
    EXPENSE = "expense"


class TransactionType(str, Enum):
    """
    Direction of a transaction.

    Amounts are always positive; the sign is conveyed by the type.
    """
    INCOME = "income"
    EXPENSE = "expense"


class AccountType(str, Enum):
    """Kind of account a balance is held in."""
    EWALLET = "ewallet"
    BANK = "bank"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# BASE ROW
# =============================================================================

class Row(BaseModel):
    """A row persisted by the backend."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(
        ...,
        min_length=1,
        description="Backend-generated identifier"
    )
    created_at: datetime = Field(
        default_factory=utc_now,
        description="When the row was inserted"
    )

    def to_record(self) -> dict[str, Any]:
        """Flat, JSON-compatible record as stored by the backend."""
        return self.model_dump(mode="json")


# =============================================================================
# RESIDENTS
# =============================================================================

class NewResident(BaseModel):
    """Form input for a new resident."""
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=100)
    default_monthly_amount: int = Field(
        default=0,
        ge=0,
        description="Usual monthly contribution in Rupiah"
    )
    room_type: RoomType = RoomType.NON_AC
    floor: Floor = Floor.BAWAH


class Resident(NewResident, Row):
    """A resident of the house."""


# =============================================================================
# CATEGORIES
# =============================================================================

class NewCategory(BaseModel):
    """Form input for a new category."""
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=100)
    type: CategoryType
    default_per_person: Optional[int] = Field(
        default=None,
        ge=0,
        description="Default due per resident, used when generating monthly bills"
    )


class Category(NewCategory, Row):
    """
    A transaction category.

    Expense categories double as the template for recurring dues.
    """


# =============================================================================
# ACCOUNTS
# =============================================================================

class NewAccount(BaseModel):
    """Form input for a new account."""
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=100)
    type: AccountType
    provider: str = Field(..., min_length=1, max_length=100)
    account_number: Optional[str] = Field(default=None, max_length=50)
    balance: int = Field(
        default=0,
        description="Current balance in Rupiah, can be negative"
    )
    icon: Optional[str] = Field(default=None, max_length=20)


class Account(NewAccount, Row):
    """
    A bank or e-wallet account.

    The balance is maintained by hand. It is NOT derived from transactions.
    """


# =============================================================================
# TRANSACTIONS
# =============================================================================

class NewTransaction(BaseModel):
    """Form input for a new income or expense."""
    model_config = ConfigDict(str_strip_whitespace=True)

    type: TransactionType
    amount: int = Field(
        ...,
        gt=0,
        description="Amount in Rupiah, always positive"
    )
    resident_id: Optional[str] = Field(
        default=None,
        description="Set for income attributed to a resident"
    )
    category_id: Optional[str] = Field(
        default=None,
        description="Set for expense classification"
    )
    account_id: Optional[str] = None
    description: Optional[str] = Field(default=None, max_length=500)
    receipt_url: Optional[str] = Field(
        default=None,
        description="Proof image, expenses only"
    )
    transaction_date: date = Field(default_factory=date.today)

    @model_validator(mode='after')
    def validate_receipt_owner(self) -> 'NewTransaction':
        if self.receipt_url and self.type != TransactionType.EXPENSE:
            raise ValueError("Only expenses can have a receipt attached")
        return self


class Transaction(Row):
    """An income or expense as stored."""

    type: TransactionType
    amount: int = Field(..., gt=0)
    resident_id: Optional[str] = None
    category_id: Optional[str] = None
    account_id: Optional[str] = None
    description: Optional[str] = None
    receipt_url: Optional[str] = None
    transaction_date: date


class TransactionWithRelations(Transaction):
    """A transaction joined with its resident and category rows."""

    resident: Optional[Resident] = None
    category: Optional[Category] = None

    def to_record(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude={"resident", "category"})


# =============================================================================
# MONTHLY BILLS
# =============================================================================

class Unpaid(BaseModel):
    """Bill has not been paid."""
    status: Literal["unpaid"] = "unpaid"


class Paid(BaseModel):
    """Bill was paid in full at paid_at."""
    status: Literal["paid"] = "paid"
    paid_at: datetime


BillPayment = Annotated[Union[Unpaid, Paid], Field(discriminator="status")]

_as_bool = TypeAdapter(bool)


class NewMonthlyBill(BaseModel):
    """A bill to be created for one resident and one expense category."""

    year: int = Field(..., ge=2000, le=2100)
    month: int = Field(..., ge=1, le=12)
    resident_id: str = Field(..., min_length=1)
    category_id: str = Field(..., min_length=1)
    amount_due: int = Field(default=0, ge=0)

    @property
    def key(self) -> tuple[int, int, str, str]:
        """Composite key: at most one bill per (year, month, resident, category)."""
        return (self.year, self.month, self.resident_id, self.category_id)


class MonthlyBill(NewMonthlyBill, Row):
    """
    A resident's due for one expense category in one month.

    Payment is a tagged variant (Unpaid | Paid).
    is_paid, amount_paid and paid_at are derived from it, so a bill can
    never be "paid" with amount_paid 0 or "unpaid" with a paid_at.
    Partial payments are not supported.
    """

    payment: BillPayment = Field(default_factory=Unpaid)

    @model_validator(mode='before')
    @classmethod
    def payment_from_flat_fields(cls, data: Any) -> Any:
        """Accept the flat is_paid / amount_paid / paid_at storage columns."""
        if not isinstance(data, dict) or "payment" in data:
            return data

        data = dict(data)
        is_paid = data.pop("is_paid", None)
        paid_at = data.pop("paid_at", None)
        data.pop("amount_paid", None)

        if is_paid is not None and _as_bool.validate_python(is_paid):
            # Legacy rows may be marked paid without a timestamp
            data["payment"] = {
                "status": "paid",
                "paid_at": paid_at or data.get("created_at") or utc_now(),
            }
        else:
            data["payment"] = {"status": "unpaid"}
        return data

    @property
    def is_paid(self) -> bool:
        return isinstance(self.payment, Paid)

    @property
    def amount_paid(self) -> int:
        return self.amount_due if self.is_paid else 0

    @property
    def paid_at(self) -> Optional[datetime]:
        return self.payment.paid_at if isinstance(self.payment, Paid) else None

    def payment_fields(self) -> dict[str, Any]:
        """The flat payment columns, as sent to the backend on update."""
        return {
            "is_paid": self.is_paid,
            "amount_paid": self.amount_paid,
            "paid_at": self.paid_at,
        }

    def toggled(self, now: Optional[datetime] = None) -> "MonthlyBill":
        """Return a copy flipped between Unpaid and Paid."""
        if self.is_paid:
            payment = Unpaid()
        else:
            payment = Paid(paid_at=now or utc_now())
        return self.model_copy(update={"payment": payment})

    def to_record(self) -> dict[str, Any]:
        record = self.model_dump(
            mode="json",
            exclude={"payment", "resident", "category"},
        )
        record.update(
            is_paid=self.is_paid,
            amount_paid=self.amount_paid,
            paid_at=self.paid_at.isoformat() if self.paid_at else None,
        )
        return record


class MonthlyBillWithRelations(MonthlyBill):
    """A monthly bill joined with its resident and category rows."""

    resident: Optional[Resident] = None
    category: Optional[Category] = None


# =============================================================================
# ORDERING
# =============================================================================

def name_order(row: Union[Resident, Category]) -> tuple[str, str]:
    """Residents and categories are listed by name."""
    return (row.name.casefold(), row.id)


def account_order(account: Account) -> tuple[str, str, str]:
    """Accounts are listed by type, then name."""
    return (account.type.value, account.name.casefold(), account.id)


def sort_transactions(transactions: list) -> list:
    """Newest transaction_date first, then newest created_at first."""
    return sorted(
        transactions,
        key=lambda t: (t.transaction_date, t.created_at),
        reverse=True,
    )
