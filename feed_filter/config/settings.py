from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from pathlib import Path

# Define the root directory of the feed_filter package
SERVICE_ROOT_DIR = Path(__file__).parent.parent.resolve()
# Path to the repository root (two levels up from this settings.py)
PROJECT_ROOT_DIR = SERVICE_ROOT_DIR.parent


class Settings(BaseSettings):
    # Application settings
    APP_NAME: str = "FeedFilter"
    APP_VERSION: str = "0.1.0"

    # Logging configuration path (can be overridden by env var)
    LOGGING_CONFIG_PATH: str = str(SERVICE_ROOT_DIR / "config" / "logging_config.yaml")
    LOG_LEVEL: str = "INFO"

    # Persistent store used by the CLI
    STORE_PATH: str = str(PROJECT_ROOT_DIR / "data" / "feed_filter_store.json")

    # Scoring service
    SCORING_MODEL: str = "llama3.2:3b"
    # None leaves the scoring call timeout to the transport
    RELAY_TIMEOUT_SECONDS: Optional[float] = None
    HEALTH_CHECK_TIMEOUT_SECONDS: float = 3.0
    NEUTRAL_SCORE: int = Field(default=50, ge=0, le=100)
    # Fallback scores are retried on every pass unless this is enabled
    CACHE_FALLBACK_SCORES: bool = False

    # Scheduler timings
    DEBOUNCE_SECONDS: float = 0.5
    INITIAL_RUN_DELAY_SECONDS: float = 2.0
    NAVIGATION_DELAY_SECONDS: float = 1.0

    # Ledger settings
    VIEW_TTL_DAYS: int = 30
    OVEREXPOSURE_THRESHOLD: int = 3

    model_config = SettingsConfigDict(
        env_file=str(PROJECT_ROOT_DIR / ".env"),  # Load variables from project root .env
        env_file_encoding='utf-8',
        extra='ignore'
    )


# Instantiate settings
settings = Settings()
