from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables / .env file."""

    # Application config
    APP_NAME: str = "Kos Air Quality Monitor"
    DEBUG: bool = False
    CORS_ORIGINS: list[str] = ["*"]

    # Live telemetry
    STALE_AFTER_SECONDS: float = 30
    LOG_CAPACITY: int = 50
    LOG_READ_LIMIT: int = 20
    DISPLAY_TIMEZONE: str = "Asia/Jakarta"  # log and "last update" display strings

    # Google Sheets archive
    SPREADSHEET_ID: str = "1Cl3v9gd8esOjG5CigdGmeFeK_9ik_Llf9LclvS_R03c"
    SHEET_NAME: str = "Sheet1"
    ARCHIVE_POLL_ENABLED: bool = True
    ARCHIVE_POLL_SECONDS: float = 5  # ~300 for an archival-only deployment
    ARCHIVE_TIMEOUT_SECONDS: float = 10
    ARCHIVE_DISPLAY_LIMIT: int = 10

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


@lru_cache
def get_settings() -> Settings:
    """Cached settings singleton."""
    return Settings()
