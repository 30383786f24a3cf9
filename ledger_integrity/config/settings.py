"""
Configuration Management for the Ledger Integrity Engine

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Validation thresholds, audit retention and storage locations are read
once and validated at startup.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets storage configuration."""

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

    # Sheet names within the spreadsheet
    transactions_sheet_name: str = Field(
        default="Transactions",
        description="Name of the sheet for transaction records"
    )
    change_log_sheet_name: str = Field(
        default="ChangeLog",
        description="Name of the sheet for field-level change logs"
    )
    merchants_sheet_name: str = Field(
        default="Merchants",
        description="Name of the sheet for the merchant directory"
    )
    ignored_sheet_name: str = Field(
        default="IgnoredFingerprints",
        description="Name of the sheet for user-ignored fingerprints"
    )
    quarantine_sheet_name: str = Field(
        default="Quarantine",
        description="Name of the sheet for low-confidence candidates"
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


class LedgerSettings(BaseSettings):
    """
    Main engine settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )

    # Validation thresholds
    future_tolerance_ms: int = Field(
        default=60 * 60 * 1000,
        ge=0,
        description="How far in the future a timestamp may be before it is flagged"
    )
    max_age_years: int = Field(
        default=10,
        ge=1,
        description="How old a timestamp may be before it is flagged"
    )
    ignore_category_name: str = Field(
        default="Ignore",
        description="Category whose transactions may have a blank merchant"
    )

    # Audit retention
    audit_keep_count: int = Field(
        default=100,
        ge=1,
        description="Change log entries kept per transaction"
    )
    audit_queue_size: int = Field(
        default=1000,
        ge=0,
        description="Pending audit batches before producers drop (0 = unbounded)"
    )

    # Acceptance
    quarantine_threshold: float = Field(
        default=0.0,
        ge=0.0,
        le=1.0,
        description="Candidates below this confidence are quarantined (0 disables)"
    )

    @property
    def max_age_ms(self) -> int:
        return self.max_age_years * 365 * 24 * 60 * 60 * 1000


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

    # Note: These are loaded lazily to allow partial configuration

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def ledger(self) -> LedgerSettings:
        return LedgerSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
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

    try:
        _ = settings.google_sheets
        results["google_sheets"] = True
    except Exception as e:
        results["google_sheets"] = False
        results["google_sheets_error"] = str(e)

    try:
        _ = settings.ledger
        results["ledger"] = True
    except Exception as e:
        results["ledger"] = False
        results["ledger_error"] = str(e)

    return results
