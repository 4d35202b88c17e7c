"""
MealMate - Configuration and settings.

Settings are read from the environment (and .env). Device-local user
preferences such as notification toggles are NOT settings; they live in
local storage (see mealmate.notifications.settings).
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class MealMateSettings(BaseSettings):
    """
    Process-wide settings.

    Supabase credentials are optional so that the planner, scheduler and
    query engine can be used without a configured store (tests, CLI preview).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Supabase (meal documents)
    supabase_url: str | None = None
    supabase_anon_key: str | None = None
    meals_table: str = "meals"

    # Cloudinary (meal photos)
    cloudinary_cloud_name: str = "dfwzzxgja"
    cloudinary_upload_preset: str = "my_preset"
    upload_timeout_seconds: float = 30.0

    # Local device storage (notification settings + reminder indexes)
    storage_path: Path = Path("~/.mealmate/storage.json")

    # IANA zone for reminder wall-clock times; None = system local zone
    timezone: str | None = None

    # Application
    mealmate_env: Literal["development", "staging", "production"] = "development"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    @property
    def is_development(self) -> bool:
        return self.mealmate_env == "development"

    @property
    def upload_url(self) -> str:
        return f"https://api.cloudinary.com/v1_1/{self.cloudinary_cloud_name}/image/upload"

    @property
    def resolved_storage_path(self) -> Path:
        return self.storage_path.expanduser()


@lru_cache
def get_settings() -> MealMateSettings:
    """Get cached settings instance."""
    return MealMateSettings()


class _SettingsProxy:
    """Lazy proxy for settings to avoid loading .env at import time."""

    _instance: MealMateSettings | None = None

    def __getattr__(self, name: str):
        if self._instance is None:
            self._instance = get_settings()
        return getattr(self._instance, name)


settings = _SettingsProxy()
