"""Application settings via pydantic-settings."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables with ACADEMY_ prefix."""

    model_config = SettingsConfigDict(
        env_prefix="ACADEMY_",
        env_file=".env",
        case_sensitive=False,
    )

    # --- Core ---
    app_version: str = "0.1.0"
    debug: bool = False
    environment: str = "development"
    database_url: str = ""  # empty -> in-memory store
    redis_url: str = ""  # empty -> no pub/sub fan-out
    redis_max_connections: int = 20
    log_level: str = "INFO"
    log_format: str = "json"

    # --- Clock ---
    # Single reference timezone for "today", streak days and weekend bonus.
    timezone: str = "Europe/Minsk"

    # --- Progression ---
    history_limit: int = 50
    default_xp_per_level: int = 1000
    default_xp_multiplier: float = 1.2
    default_skill_value: int = 1

    # --- Startup ---
    seed_defaults: bool = True


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
