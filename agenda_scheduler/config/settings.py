from functools import lru_cache
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_name: str = "AgendaScheduler"
    debug: bool = True
    database_url: str = "sqlite:///./agenda_scheduler.db"
    redis_url: str = "redis://localhost:6379/0"
    job_store_backend: str = Field("memory", pattern="^(memory|redis)$")
    job_ttl_seconds: int = 24 * 3600

    # Used when a project has no settings of its own, or ignores its hours
    default_start_of_day: str = "09:00"
    default_end_of_day: str = "17:00"
    default_lunch_time: str = "12:00-13:00"
    default_timezone: str = "UTC"
    default_working_days: List[str] = ["monday", "tuesday", "wednesday", "thursday", "friday"]
    default_project_length_days: int = 30
    default_item_duration_minutes: int = 60

    warn_on_curriculum_truncation: bool = False


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
