from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    environment: str = "dev"
    base_url: str = "http://localhost:8000"

    database_url: str = "sqlite:///./yibaoxiao.db"

    ai_base_url: str = "https://api.openai.com/v1"
    ai_api_key: str | None = None
    ai_model: str = "gpt-4o-mini"
    ai_timeout_seconds: float = 60.0
    ai_max_images: int = 10
    recognition_cache_enabled: bool = True

    default_user_name: str = ""
    loan_match_min_score: int = 20


settings = Settings()
