"""
Settings for cashflow, read from the environment and an optional .env file.

Each external service has its own prefixed settings class. The storage
backend is checked before any session starts; a missing backend raises
ConfigError, which the UI shows as a blocking error.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigError(Exception):
    """Backend configuration is missing or invalid."""
    pass


class GoogleSheetsSettings(BaseSettings):
    """Where transactions are stored (GOOGLE_SHEETS_*)."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Path to Google service account credentials JSON"
    )
    spreadsheet_id: str = Field(
        ...,
        description="ID of the spreadsheet holding all collections"
    )

    # New collection worksheets are created with this many rows
    worksheet_rows: int = Field(
        default=1000,
        ge=10,
        description="Initial row count for new collection worksheets"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Only warn: the key file may be mounted after import."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Service account key not found at {v}; "
                "the Sheets backend will fail to connect without it."
            )
        return v


class GeminiSettings(BaseSettings):
    """Advice model settings (GEMINI_*)."""

    model_config = SettingsConfigDict(
        env_prefix="GEMINI_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    api_key: str = Field(
        ...,
        description="API key for the advice model"
    )
    model_name: str = Field(
        default="gemini-2.0-flash",
        description="Model name passed to GenerativeModel"
    )
    max_tokens: int = Field(
        default=1024,
        ge=100,
        le=8192,
        description="Upper bound on advice length in tokens"
    )
    temperature: float = Field(
        default=0.7,
        ge=0.0,
        le=1.0,
        description="Model temperature (advice benefits from some variety)"
    )
    request_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Timeout for a single advice request"
    )


class AppSettings(BaseSettings):
    """Namespace, backend choice and display options (APP_*)."""

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    environment: str = Field(
        default="development",
        description="Deployment name, e.g. development or production"
    )
    debug_mode: bool = Field(
        default=False,
        description="Show raw audit event details on the settings page"
    )
    log_level: str = Field(
        default="INFO",
        description="Minimum level for structured logs"
    )

    # Storage
    namespace: str = Field(
        default="default-app-id",
        min_length=1,
        description="Application namespace prefixing every collection path"
    )
    storage_backend: Literal["sheets", "memory"] = Field(
        default="sheets",
        description="Which transaction store to use"
    )
    poll_interval_seconds: float = Field(
        default=5.0,
        ge=0.5,
        le=300.0,
        description="How often live subscriptions re-read a collection"
    )

    # Presentation
    currency_symbol: str = Field(
        default="₹",
        description="Symbol prefixed to every displayed amount"
    )
    advice_region: str = Field(
        default="India",
        description="Region mentioned in the advice prompt"
    )


class Settings(BaseSettings):
    """Entry point to every settings group."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Each group is built on access so one missing service does not block the rest

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
    """Process-wide settings; tests reset them with get_settings.cache_clear()."""
    return Settings()


def load_backend_settings() -> AppSettings:
    """
    Load the settings a session cannot start without.

    The app settings are always required. Google Sheets settings are
    required unless the in-memory backend was selected.

    Raises:
        ConfigError: If anything required is missing or invalid
    """
    settings = get_settings()

    try:
        app_settings = settings.app
    except ValidationError as e:
        raise ConfigError(f"Invalid application settings: {e}") from e

    if app_settings.storage_backend == "sheets":
        try:
            _ = settings.google_sheets
        except ValidationError as e:
            raise ConfigError(
                "Storage backend config missing. Set GOOGLE_SHEETS_CREDENTIALS_PATH "
                "and GOOGLE_SHEETS_SPREADSHEET_ID, or APP_STORAGE_BACKEND=memory."
            ) from e

    return app_settings


def validate_all_settings() -> dict[str, bool]:
    """
    Check each settings group independently for the settings page.

    Maps group name to whether it loaded; a failed group also gets a
    "<name>_error" entry with the validation message.
    """
    settings = get_settings()
    results = {}

    for name in ("google_sheets", "gemini", "app"):
        try:
            getattr(settings, name)
        except ValidationError as e:
            results[name] = False
            results[f"{name}_error"] = str(e)
        else:
            results[name] = True

    return results
