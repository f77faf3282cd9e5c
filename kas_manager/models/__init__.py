"""
Data Models Package

This package contains all Pydantic models used in Kas Manager.
All rows flowing between the backend and the app conform to these schemas.
"""

from kas_manager.models.entities import (
    Account,
    AccountType,
    BillPayment,
    Category,
    CategoryType,
    Floor,
    MonthlyBill,
    MonthlyBillWithRelations,
    NewAccount,
    NewCategory,
    NewMonthlyBill,
    NewResident,
    NewTransaction,
    Paid,
    Resident,
    RoomType,
    Row,
    Transaction,
    TransactionType,
    TransactionWithRelations,
    Unpaid,
    account_order,
    name_order,
    sort_transactions,
)
from kas_manager.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Entity models
    "Account",
    "AccountType",
    "BillPayment",
    "Category",
    "CategoryType",
    "Floor",
    "MonthlyBill",
    "MonthlyBillWithRelations",
    "NewAccount",
    "NewCategory",
    "NewMonthlyBill",
    "NewResident",
    "NewTransaction",
    "Paid",
    "Resident",
    "RoomType",
    "Row",
    "Transaction",
    "TransactionType",
    "TransactionWithRelations",
    "Unpaid",
    # Ordering
    "account_order",
    "name_order",
    "sort_transactions",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
