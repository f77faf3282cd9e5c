"""
Expense receipts on Cloudinary.

A receipt is optional evidence for an expense. The upload returns a
public HTTPS URL which is stored on the transaction row, so nothing
else about the image has to be kept.

Files are checked before upload (size, extension, Pillow can open
them) and stored as {folder}/{epoch_millis}.{ext}. Callers catch
ReceiptUploadError and save the expense without a receipt.
"""

import time
from io import BytesIO
from typing import Optional

import cloudinary
import cloudinary.exceptions
import cloudinary.uploader
from PIL import Image, UnidentifiedImageError

from kas_manager.config import get_settings


class ReceiptUploadError(Exception):
    """Failed to store a receipt image."""
    pass


class InvalidReceiptImageError(ReceiptUploadError):
    """File is not an image we accept."""
    pass


class CloudinaryReceiptStorage:
    """
    Stores expense receipt images on Cloudinary.

    Flow:
    1. Receive raw image bytes and the original filename
    2. Validate size, extension and that Pillow can read it
    3. Upload with a generated {folder}/{timestamp} public id
    4. Return the secure URL
    """

    def __init__(self):
        self._settings = get_settings().cloudinary
        self._app_settings = get_settings().app
        self._configured = False

    def _configure(self):
        """Configure Cloudinary SDK."""
        if not self._configured:
            cloudinary.config(
                cloud_name=self._settings.cloud_name,
                api_key=self._settings.api_key,
                api_secret=self._settings.api_secret,
                secure=True,
            )
            self._configured = True

    @staticmethod
    def file_extension(filename: str) -> str:
        """Lower-cased extension without the dot ('' when there is none)."""
        if "." not in filename:
            return ""
        return filename.rsplit(".", 1)[-1].lower()

    def build_receipt_path(self, filename: str, now: Optional[float] = None) -> str:
        """
        Generate the storage path for a receipt.

        Format: {folder}/{epoch_millis}.{ext}
        """
        timestamp = int((now if now is not None else time.time()) * 1000)
        return f"{self._settings.folder}/{timestamp}.{self.file_extension(filename)}"

    def validate_image(self, image_bytes: bytes, filename: str) -> None:
        """
        Reject files we don't want to store.

        Raises:
            InvalidReceiptImageError: Too large, wrong extension or not an image
        """
        max_bytes = self._app_settings.max_upload_size_bytes
        if len(image_bytes) > max_bytes:
            raise InvalidReceiptImageError(
                f"Receipt is too large ({len(image_bytes)} bytes, "
                f"maximum {self._app_settings.max_upload_size_mb} MB)"
            )

        extension = self.file_extension(filename)
        allowed = self._app_settings.supported_formats_list
        if extension not in allowed:
            raise InvalidReceiptImageError(
                f"Unsupported receipt format: {extension or 'none'}. Allowed: {allowed}"
            )

        try:
            with Image.open(BytesIO(image_bytes)) as img:
                img.verify()
        except (UnidentifiedImageError, OSError, SyntaxError) as e:
            raise InvalidReceiptImageError(f"File is not a readable image: {e}")

    async def upload_receipt(self, image_bytes: bytes, filename: str) -> str:
        """
        Upload a receipt image.

        Args:
            image_bytes: Raw image bytes
            filename: Original filename, used for the extension

        Returns:
            Public URL of the stored image

        Raises:
            InvalidReceiptImageError: If the file is rejected
            ReceiptUploadError: If the upload fails
        """
        self.validate_image(image_bytes, filename)
        self._configure()

        path = self.build_receipt_path(filename)
        public_id, extension = path.rsplit(".", 1)

        try:
            result = cloudinary.uploader.upload(
                image_bytes,
                public_id=public_id,
                format=extension,
                resource_type="image",
                overwrite=False,
            )
        except cloudinary.exceptions.Error as e:
            raise ReceiptUploadError(f"Cloudinary error: {e}")
        except Exception as e:
            raise ReceiptUploadError(f"Failed to upload receipt: {e}")

        url = result.get("secure_url", result.get("url", ""))
        if not url:
            raise ReceiptUploadError("No URL returned from Cloudinary")

        return url
