from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    # Application
    app_name: str = "ExamCraft"
    debug: bool = False

    # Supabase (persistence collaborator, optional)
    supabase_url: str = ""
    supabase_service_key: str = ""

    # LLM provider
    llm_provider: str = "openai"
    openai_api_key: str = ""
    gemini_api_key: str = ""
    llm_model: str = "gpt-4o-mini"
    llm_timeout_seconds: float = 60.0

    # Outbound throttle + retry
    rate_limit_calls: int = 5
    rate_limit_window_seconds: float = 60.0
    retry_max: int = 3
    retry_base_delay_seconds: float = 2.0

    # Grading
    essay_pass_score: int = 85
    essay_fallback_threshold: float = 0.7
    similarity_threshold: float = 0.85

    # Telemetry
    enable_telemetry_db: bool = False

    # CORS
    frontend_url: str = "http://localhost:5173"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache
def get_settings() -> Settings:
    return Settings()
