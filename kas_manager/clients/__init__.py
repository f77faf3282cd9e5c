"""Session-cached clients over the storage repositories."""

from kas_manager.clients.collections import (
    DEFAULT_ERROR_MESSAGE,
    AccountClient,
    CategoryClient,
    CollectionClient,
    ResidentClient,
    TransactionClient,
)

__all__ = [
    "DEFAULT_ERROR_MESSAGE",
    "AccountClient",
    "CategoryClient",
    "CollectionClient",
    "ResidentClient",
    "TransactionClient",
]
