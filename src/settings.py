"""Centralized settings for pricewatch.

Uses pydantic-settings to load from environment variables (prefixed
PRICEWATCH_) or a .env file.
"""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings

from src.logging_config import LogFormat, LoggingConfig, LogLevel
from src.watchlist.config import (
    MAX_ITEMS_PER_WATCHLIST,
    MAX_NAME_LENGTH,
    MAX_NOTE_LENGTH,
    MAX_WATCHLISTS,
    MIN_NAME_LENGTH,
    WatchlistConfig,
)
from src.watchlist.sharing import ShareApiConfig


class Settings(BaseSettings):
    """pricewatch settings loaded from environment variables."""

    # --- Share server ---
    api_base_url: str = "http://localhost:8080/api/v1"
    request_timeout: float = 30.0

    # --- Storage ---
    data_dir: Path = Path("data")
    state_file: str = "watchlists.json"
    legacy_favorites_file: str = "favorites.json"

    # --- Watchlist limits ---
    max_watchlists: int = MAX_WATCHLISTS
    max_items_per_watchlist: int = MAX_ITEMS_PER_WATCHLIST
    min_name_length: int = MIN_NAME_LENGTH
    max_name_length: int = MAX_NAME_LENGTH
    max_note_length: int = MAX_NOTE_LENGTH

    # --- Logging ---
    log_level: LogLevel = LogLevel.INFO
    log_format: LogFormat = LogFormat.CONSOLE

    model_config = {
        "env_prefix": "PRICEWATCH_",
        "env_file": ".env",
        "extra": "ignore",
    }

    @property
    def state_path(self) -> Path:
        return self.data_dir / self.state_file

    @property
    def legacy_favorites_path(self) -> Path:
        return self.data_dir / self.legacy_favorites_file

    def watchlist_config(self) -> WatchlistConfig:
        return WatchlistConfig(
            max_watchlists=self.max_watchlists,
            max_items_per_watchlist=self.max_items_per_watchlist,
            min_name_length=self.min_name_length,
            max_name_length=self.max_name_length,
            max_note_length=self.max_note_length,
        )

    def share_api_config(self) -> ShareApiConfig:
        return ShareApiConfig(base_url=self.api_base_url, request_timeout=self.request_timeout)

    def logging_config(self) -> LoggingConfig:
        return LoggingConfig(level=self.log_level, format=self.log_format)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings singleton."""
    return Settings()
