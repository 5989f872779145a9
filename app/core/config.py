from functools import lru_cache
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    # ─────────── APP ───────────
    app_name: str = "Phase Tracker - Project Execution Workflows"
    environment: str = "dev"
    log_level: str = "INFO"

    # ─────────── API ───────────
    api_prefix: str = "/api/v1"
    request_id_header: str = "X-Request-Id"

    # ─────────── DATABASE ───────────
    database_url: str

    # ─────────── JWT / AUTH ───────────
    jwt_secret_key: str
    jwt_algorithm: str = "HS256"
    jwt_access_token_minutes: int = 1440  # 24 hours

    # ─────────── TIMER / WORK LOGS ───────────
    work_log_hours_precision: int = Field(2, ge=0, le=2)  # work_logs.hours is Numeric(10, 2)
    timer_description_min_length: int = 3
    timer_description_max_length: int = 1000


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
