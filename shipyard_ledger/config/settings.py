"""
Configuration Management for Shipyard Ledger

Typed settings read from LEDGER_, GOOGLE_SHEETS_ and plain environment
variables (plus an optional .env file).

The two policy switches that the business has not settled yet
(project reopen, continuity enforcement) live here rather than in code.
"""

from decimal import Decimal
from functools import lru_cache
from pathlib import Path

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LedgerSettings(BaseSettings):
    """Statement engine policy and limits."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    allow_project_reopen: bool = Field(
        default=False,
        description="Allow CLOSED project statements to be reopened"
    )
    enforce_balance_continuity: bool = Field(
        default=True,
        description="Reject a previous balance that breaks the chain of closed periods"
    )
    currency: str = Field(
        default="TRY",
        min_length=3,
        max_length=3,
        description="Currency code shown next to amounts"
    )
    max_line_amount: Decimal = Field(
        default=Decimal("100000000"),
        gt=0,
        description="Largest amount accepted on a single statement line"
    )
    dashboard_trend_months: int = Field(
        default=6,
        ge=1,
        le=36,
        description="Number of calendar months in dashboard trend series"
    )
    transaction_retry_attempts: int = Field(
        default=2,
        ge=1,
        le=5,
        description="Attempts for an operation that hits a transaction conflict"
    )


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets document store configuration."""

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
    documents_sheet_name: str = Field(
        default="Documents",
        description="Name of the sheet holding ledger documents"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """A missing key file only warns; it may be mounted after start-up."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v


class AppSettings(BaseSettings):
    """Runtime environment and local log output."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

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
        description="Minimum level for local logs"
    )
    log_json: bool = Field(
        default=True,
        description="Render local logs as JSON (console rendering otherwise)"
    )


class Settings(BaseSettings):
    """Entry point to the per-concern settings groups."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # each group is built on access, so a missing Sheets config only fails its own group

    @property
    def ledger(self) -> LedgerSettings:
        return LedgerSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """Process-wide settings; get_settings.cache_clear() forces a re-read."""
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Startup check of every settings group.

    Returns:
        {group: ok} plus "{group}_error" messages for the groups that failed
    """
    results = {}

    settings = get_settings()

    for name in ("ledger", "google_sheets", "app"):
        try:
            _ = getattr(settings, name)
            results[name] = True
        except ValidationError as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
