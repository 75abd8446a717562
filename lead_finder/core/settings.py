"""
Centralized runtime settings (environment variables / .env).
"""
# @file purpose: Centralized settings using Pydantic Settings.

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="LF_", env_file=".env", extra="ignore")

    headless: bool = True
    request_timeout_seconds: int = 30
    log_level: str = "INFO"

    # strategy execution timings
    step_delay_ms: int = 1000
    click_settle_ms: int = 500
    click_delay_ms: int = 1000
    wait_for_timeout_ms: int = 5000
    poll_interval_ms: int = 200
    max_html_size: int = 50_000

    # external services
    openrouter_api_key: str | None = None
    openrouter_model: str = "openrouter/openai/gpt-4o-mini"
    google_token: str | None = None
    sheet_id: str | None = None

    data_dir: Path = Path(".lead_finder")
    base_url: str = "https://www.linkedin.com"


settings = Settings()
