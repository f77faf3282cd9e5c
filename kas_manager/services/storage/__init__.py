"""
Storage Services Package

Provides abstract repository interfaces and concrete implementations.
Google Sheets is the hosted backend; the in-memory backend serves the
unconfigured demo mode and the tests.
"""

from kas_manager.services.storage.interface import (
    AccountStorageInterface,
    CategoryStorageInterface,
    CollectionStorageInterface,
    ConnectionError,
    DuplicateError,
    MonthlyBillStorageInterface,
    NotFoundError,
    ResidentStorageInterface,
    StorageBackend,
    StorageError,
    TransactionStorageInterface,
)
from kas_manager.services.storage.memory import create_in_memory_backend
from kas_manager.services.storage.google_sheets import (
    GoogleSheetsClient,
    create_google_sheets_backend,
)

__all__ = [
    # Interfaces
    "AccountStorageInterface",
    "CategoryStorageInterface",
    "CollectionStorageInterface",
    "MonthlyBillStorageInterface",
    "ResidentStorageInterface",
    "StorageBackend",
    "TransactionStorageInterface",
    # Exceptions
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # Backends
    "GoogleSheetsClient",
    "create_google_sheets_backend",
    "create_in_memory_backend",
]
