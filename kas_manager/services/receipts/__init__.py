"""Receipt image storage package."""

from kas_manager.services.receipts.cloudinary_service import (
    CloudinaryReceiptStorage,
    InvalidReceiptImageError,
    ReceiptUploadError,
)

__all__ = [
    "CloudinaryReceiptStorage",
    "InvalidReceiptImageError",
    "ReceiptUploadError",
]
