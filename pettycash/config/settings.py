"""
Configuration Management for Petty Cash Ledger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Remote services (Google Sheets, Cloudinary, Gemini) are optional:
when their settings are missing the ledger runs in local-only mode.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class CloudinarySettings(BaseSettings):
    """Cloudinary attachment storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="CLOUDINARY_",
        extra="ignore"
    )

    cloud_name: str = Field(
        ...,
        description="Cloudinary cloud name"
    )
    api_key: str = Field(
        ...,
        description="Cloudinary API key"
    )
    api_secret: str = Field(
        ...,
        description="Cloudinary API secret"
    )
    attachment_folder: str = Field(
        default="receipts",
        description="Folder that holds attachment images"
    )


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets remote ledger configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Path to Google service account credentials JSON"
    )
    spreadsheet_id: str = Field(
        ...,
        description="ID of the Google Sheets spreadsheet to use"
    )

    # Worksheets acting as remote tables
    books_sheet_name: str = Field(
        default="books",
        description="Name of the worksheet for books"
    )
    transactions_sheet_name: str = Field(
        default="transactions",
        description="Name of the worksheet for transactions"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v


class GeminiSettings(BaseSettings):
    """Gemini LLM configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GEMINI_",
        extra="ignore"
    )

    # Optional: the AI features degrade to placeholders without it
    api_key: Optional[str] = Field(
        default=None,
        description="Gemini API key"
    )
    model_name: str = Field(
        default="gemini-2.5-flash",
        description="Gemini model to use"
    )
    max_tokens: int = Field(
        default=1024,
        ge=100,
        le=8192,
        description="Maximum tokens in response"
    )
    temperature: float = Field(
        default=0.2,
        ge=0.0,
        le=1.0,
        description="Model temperature (lower = more deterministic)"
    )


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix="PETTYCASH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Local cache
    cache_dir: str = Field(
        default="~/.pettycash",
        description="Directory holding the local cache files"
    )
    default_book_id: str = Field(
        default="default-book",
        description="Well-known id of the synthesized default book"
    )
    default_book_name: str = Field(
        default="Main Cashbook",
        description="Name of the synthesized default book"
    )

    # Attachment preparation
    max_attachment_dimension: int = Field(
        default=800,
        ge=100,
        le=4096,
        description="Longest side of an attachment image in pixels"
    )
    attachment_jpeg_quality: int = Field(
        default=60,
        ge=10,
        le=95,
        description="JPEG quality used when re-encoding attachments"
    )

    @property
    def cache_path(self) -> Path:
        """Get the cache directory as an expanded path."""
        return Path(self.cache_dir).expanduser()


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Sub-settings are loaded lazily to allow partial configuration

    @property
    def cloudinary(self) -> CloudinarySettings:
        return CloudinarySettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def gemini(self) -> GeminiSettings:
        return GeminiSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    for name in ("cloudinary", "google_sheets", "gemini", "app"):
        try:
            _ = getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    # Gemini loads without a key, but is unusable
    if results.get("gemini") and not settings.gemini.api_key:
        results["gemini"] = False
        results["gemini_error"] = "GEMINI_API_KEY is not set"

    return results
