"""Application configuration managed via environment variables."""
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "Monthly Planner Backend"
    debug: bool = False
    log_level: str = "INFO"
    database_url: str = "postgresql+psycopg2://planner@localhost:5432/monthly_planner"

    # Model provider (OpenAI-compatible, OpenRouter by default)
    openrouter_api_key: str | None = None
    openai_base_url: str = "https://openrouter.ai/api/v1"
    ai_model: str = "anthropic/claude-3.5-sonnet"
    ai_request_timeout_s: float = 60.0

    opik_enabled: bool = False
    opik_api_key: str | None = None
    opik_project: str = "monthly-planner"

    scheduler_enabled: bool = False
    scheduler_timezone: str = "UTC"
    cache_cleanup_interval_minutes: int = 5

    rate_limit_daily: int = 20
    rate_limit_monthly: int = 300
    rate_limit_plan: int = 5
    rate_limit_briefing: int = 10
    rate_limit_reschedule: int = 5

    cache_ttl_plan_s: float = 2 * 60 * 60
    cache_ttl_briefing_s: float = 30 * 60
    cache_ttl_reschedule_s: float = 60 * 60
    cache_ttl_user_context_s: float = 15 * 60


@lru_cache
def get_settings() -> Settings:
    """Return a cached Settings instance."""
    return Settings()


settings = get_settings()
