import os
from functools import lru_cache
from typing import Optional

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    timezone: str = Field("UTC", alias="STUDYPLAN_TIMEZONE")
    days_ahead: int = Field(14, ge=1, le=90, alias="STUDYPLAN_DAYS_AHEAD")
    max_reviews_per_day: int = Field(10, ge=1, alias="STUDYPLAN_MAX_REVIEWS_PER_DAY")
    default_retention_rate: float = Field(0.8, ge=0.0, le=1.0, alias="STUDYPLAN_DEFAULT_RETENTION_RATE")
    plan_owner: Optional[str] = Field(None, alias="STUDYPLAN_PLAN_OWNER")

    class Config:
        env_file = os.getenv("ENV_FILE", ".env")
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache
def get_settings() -> Settings:
    try:
        return Settings()  # type: ignore[arg-type]
    except ValidationError as exc:
        raise RuntimeError(f"Invalid study planner configuration: {exc}") from exc
