from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "Budgey Breakdown"
    database_url: str = "postgresql+asyncpg://postgres:postgres@db:5432/budgey"
    page_size: int = 20
    month_limit: int = 12
    max_sessions: int = 1000
    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    return Settings()
