"""
Configuration Management for fintrack

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
The aggregation core needs none of it; only storage, validation and
logging read settings.
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
    categories_sheet_name: str = Field(
        default="Categories",
        description="Name of the sheet for categories"
    )
    transactions_sheet_name: str = Field(
        default="Transactions",
        description="Name of the sheet for transactions"
    )
    audit_sheet_name: str = Field(
        default="AuditLog",
        description="Name of the sheet for audit logs"
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


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix="FINTRACK_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Minimum level for local structured logs"
    )

    # Validation thresholds
    max_amount_sanity: int = Field(
        default=10_000_000,
        ge=1,
        description="Amounts above this are flagged for review (smallest currency unit)"
    )
    future_date_tolerance_days: int = Field(
        default=0,
        ge=0,
        description="How many days in the future an entry date can be"
    )

    # Display
    currency_symbol: str = Field(
        default="₹",
        max_length=3,
        description="Symbol prefixed to amounts in descriptions"
    )


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

    # Loaded lazily so the app runs with only partial configuration

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

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

    Returns a dict of {setting_name: is_valid}, plus a
    "<name>_error" entry for every failing section.
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
        _ = settings.app
        results["app"] = True
    except Exception as e:
        results["app"] = False
        results["app_error"] = str(e)

    return results
