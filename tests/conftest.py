"""Pytest configuration and fixtures."""

import os
from datetime import date, datetime, timezone
from unittest.mock import AsyncMock

import pytest

# Set test environment variables before importing settings
os.environ.setdefault("CLOUDINARY_CLOUD_NAME", "test-cloud")
os.environ.setdefault("CLOUDINARY_API_KEY", "test-key")
os.environ.setdefault("CLOUDINARY_API_SECRET", "test-secret")
os.environ.setdefault("GOOGLE_SHEETS_CREDENTIALS_PATH", "credentials.json")
os.environ.setdefault("GOOGLE_SHEETS_SPREADSHEET_ID", "test-spreadsheet")
os.environ.setdefault("APP_URL", "https://kas-sigmafam.vercel.app")

from kas_manager.models.entities import (  # noqa: E402
    Category,
    CategoryType,
    Resident,
    TransactionType,
    TransactionWithRelations,
)
from kas_manager.services.storage import create_in_memory_backend  # noqa: E402


CREATED_AT = datetime(2025, 1, 1, 8, 0, tzinfo=timezone.utc)


@pytest.fixture
def backend():
    """Fresh in-memory storage backend."""
    return create_in_memory_backend()


@pytest.fixture
def mock_audit_logger():
    """AuditLogger stand-in that records calls."""
    return AsyncMock()


@pytest.fixture
def budi():
    return Resident(id="r-budi", name="Budi", default_monthly_amount=100000, created_at=CREATED_AT)


@pytest.fixture
def sari():
    return Resident(id="r-sari", name="Sari", default_monthly_amount=150000, created_at=CREATED_AT)


@pytest.fixture
def listrik():
    return Category(
        id="c-listrik",
        name="Listrik",
        type=CategoryType.EXPENSE,
        default_per_person=50000,
        created_at=CREATED_AT,
    )


@pytest.fixture
def wifi():
    return Category(
        id="c-wifi",
        name="Wifi",
        type=CategoryType.EXPENSE,
        default_per_person=None,
        created_at=CREATED_AT,
    )


@pytest.fixture
def iuran():
    return Category(
        id="c-iuran",
        name="Iuran Bulanan",
        type=CategoryType.INCOME,
        created_at=CREATED_AT,
    )


def make_transaction(
    transaction_id: str,
    transaction_type: TransactionType,
    amount: int,
    transaction_date: date = date(2025, 1, 10),
    resident: Resident = None,
    category: Category = None,
    created_at: datetime = CREATED_AT,
) -> TransactionWithRelations:
    """Build a joined transaction row."""
    return TransactionWithRelations(
        id=transaction_id,
        type=transaction_type,
        amount=amount,
        resident_id=resident.id if resident else None,
        category_id=category.id if category else None,
        transaction_date=transaction_date,
        created_at=created_at,
        resident=resident,
        category=category,
    )


@pytest.fixture
def transaction_factory():
    return make_transaction
