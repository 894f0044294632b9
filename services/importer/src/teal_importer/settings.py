"""Importer configuration loaded from environment variables."""

from pydantic import field_validator
from pydantic_settings import BaseSettings

from teal_shared.atproto.constants import DEFAULT_PDS_URL, MAX_LIST_RECORDS_LIMIT


class ImporterSettings(BaseSettings):
    """Importer configuration."""

    # Account
    ATPROTO_IDENTIFIER: str = ""
    ATPROTO_APP_PASSWORD: str = ""
    ATPROTO_PDS_URL: str = DEFAULT_PDS_URL

    # Destination collection
    RECORD_TYPE: str = "fm.teal.alpha.feed.play"

    # Batch sizing
    SMALL_DATASET_THRESHOLD: int = 50
    MIN_RECORDS_FOR_SCALING: int = 100
    BASE_BATCH_SIZE: int = 5
    MAX_BATCH_SIZE: int = 50
    SCALING_FACTOR: float = 1.5

    # Pacing (seconds)
    DEFAULT_BATCH_DELAY_SECONDS: float = 0.5
    SAFE_BATCH_DELAY_SECONDS: float = 1.5
    DAY_PAUSE_SECONDS: float = 24 * 60 * 60
    DELETE_PAUSE_SECONDS: float = 0.1

    # Write quota
    DAILY_WRITE_LIMIT: int = 10_000

    # Listing
    LIST_PAGE_SIZE: int = MAX_LIST_RECORDS_LIMIT

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "text"

    model_config = {"env_prefix": ""}

    @field_validator(
        "SMALL_DATASET_THRESHOLD",
        "MIN_RECORDS_FOR_SCALING",
        "BASE_BATCH_SIZE",
        "MAX_BATCH_SIZE",
        "SCALING_FACTOR",
        "DEFAULT_BATCH_DELAY_SECONDS",
        "DAILY_WRITE_LIMIT",
        "LIST_PAGE_SIZE",
    )
    @classmethod
    def _must_be_positive(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("must be positive")
        return value

    @field_validator("DAY_PAUSE_SECONDS", "DELETE_PAUSE_SECONDS", "SAFE_BATCH_DELAY_SECONDS")
    @classmethod
    def _must_not_be_negative(cls, value: float) -> float:
        if value < 0:
            raise ValueError("must not be negative")
        return value

    @field_validator("MAX_BATCH_SIZE")
    @classmethod
    def _max_batch_floor(cls, value: int) -> int:
        if value < 3:
            raise ValueError("must be at least 3")
        return value

    @field_validator("LOG_FORMAT")
    @classmethod
    def _known_log_format(cls, value: str) -> str:
        if value not in ("text", "json"):
            raise ValueError("must be 'text' or 'json'")
        return value
