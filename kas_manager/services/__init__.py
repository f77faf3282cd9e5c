"""Services package."""

from kas_manager.services.receipts import (
    CloudinaryReceiptStorage,
    InvalidReceiptImageError,
    ReceiptUploadError,
)
from kas_manager.services.storage import (
    AccountStorageInterface,
    CategoryStorageInterface,
    CollectionStorageInterface,
    ConnectionError,
    DuplicateError,
    GoogleSheetsClient,
    MonthlyBillStorageInterface,
    NotFoundError,
    ResidentStorageInterface,
    StorageBackend,
    StorageError,
    TransactionStorageInterface,
    create_google_sheets_backend,
    create_in_memory_backend,
)

__all__ = [
    # Receipt services
    "CloudinaryReceiptStorage",
    "InvalidReceiptImageError",
    "ReceiptUploadError",
    # Storage services
    "AccountStorageInterface",
    "CategoryStorageInterface",
    "CollectionStorageInterface",
    "ConnectionError",
    "DuplicateError",
    "GoogleSheetsClient",
    "MonthlyBillStorageInterface",
    "NotFoundError",
    "ResidentStorageInterface",
    "StorageBackend",
    "StorageError",
    "TransactionStorageInterface",
    "create_google_sheets_backend",
    "create_in_memory_backend",
]
