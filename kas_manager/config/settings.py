"""
Settings for the shared-house cash book.

Every external service gets its own settings class with an env prefix.
The service classes are only instantiated when a service is first used,
so the app starts in demo mode (in-memory storage, no receipts) when
Google Sheets or Cloudinary credentials are missing.
"""

from functools import lru_cache
from pathlib import Path
import warnings

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _env(prefix: str = "") -> SettingsConfigDict:
    return SettingsConfigDict(
        env_prefix=prefix,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


class CloudinarySettings(BaseSettings):
    """Receipt photo hosting."""

    model_config = _env("CLOUDINARY_")

    cloud_name: str
    api_key: str
    api_secret: str
    folder: str = Field(default="receipts", description="Folder receipts are uploaded into")


class GoogleSheetsSettings(BaseSettings):
    """Spreadsheet used as the database, one worksheet per table."""

    model_config = _env("GOOGLE_SHEETS_")

    credentials_path: str = Field(..., description="Service account JSON key file")
    spreadsheet_id: str

    residents_sheet_name: str = "residents"
    categories_sheet_name: str = "categories"
    transactions_sheet_name: str = "transactions"
    accounts_sheet_name: str = "accounts"
    monthly_bills_sheet_name: str = "monthly_bills"

    @field_validator("credentials_path")
    @classmethod
    def warn_missing_key_file(cls, v: str) -> str:
        # The key may be mounted after startup, so only warn.
        if not Path(v).exists():
            warnings.warn(f"Service account key not found at {v}")
        return v


class AppSettings(BaseSettings):
    """Behaviour of the app itself."""

    model_config = _env()

    app_environment: str = "development"
    debug_mode: bool = False

    app_url: str = Field(
        default="https://kas-sigmafam.vercel.app",
        description="First line of the WhatsApp broadcast",
    )

    max_upload_size_mb: int = Field(default=5, ge=1, le=50)
    supported_image_formats: str = Field(
        default="jpg,jpeg,png,webp",
        description="Comma-separated receipt extensions",
    )

    recent_transactions_limit: int = Field(default=5, ge=1, le=50)
    year_options: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Years offered by the month picker, counting back from the current one",
    )

    @property
    def supported_formats_list(self) -> list[str]:
        return [
            ext.strip().lower().lstrip(".")
            for ext in self.supported_image_formats.split(",")
            if ext.strip()
        ]

    @property
    def max_upload_size_bytes(self) -> int:
        return self.max_upload_size_mb * 1024 * 1024


class Settings:
    """Entry point; each property reads the environment on access."""

    @property
    def cloudinary(self) -> CloudinarySettings:
        return CloudinarySettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Try to load every settings section.

    Returns {section: loaded} plus a {section}_error message for each
    section that failed, which the settings page shows as-is.
    """
    settings = get_settings()
    sections = {
        "google_sheets": lambda: settings.google_sheets,
        "cloudinary": lambda: settings.cloudinary,
        "app": lambda: settings.app,
    }

    results: dict[str, bool] = {}
    for name, load in sections.items():
        try:
            load()
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)
        else:
            results[name] = True
    return results
