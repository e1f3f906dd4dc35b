from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings, overridable through environment variables or `.env`."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    PROJECT_NAME: str = "Campus Events API"
    DATABASE_URL: str = "sqlite:///./data/events.db"
    REDIS_URL: str = "redis://localhost:6379/0"

    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    # Event dates are entered and stored as wall-clock time on campus
    TIMEZONE: str = "Asia/Jakarta"

    CORS_ORIGINS: list[str] = ["*"]

    REGISTRATION_LOCK_TIMEOUT: int = 10
    REGISTRATION_LOCK_WAIT: int = 5

    REMINDER_TICK_SECONDS: int = 60
    REMINDER_LEAD_HOURS: int = 24
    REMINDER_WINDOW_MINUTES: int = 15


@lru_cache
def get_settings() -> Settings:
    return Settings()
