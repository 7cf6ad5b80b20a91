"""
Application settings and configuration management.

Uses pydantic-settings for environment variable loading.
"""

from functools import lru_cache

from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _split_csv(raw: str) -> list[str]:
    return [item.strip() for item in raw.split(",") if item.strip()]


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "MockLoop"
    app_version: str = "0.1.0"
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"

    # Provider chain - priority order, comma-separated provider ids
    provider_order_str: str = Field(
        default="openrouter,groq,gemini",
        validation_alias="provider_order",
    )

    # OpenRouter (OpenAI-compatible chat completions)
    openrouter_api_keys_str: str = Field(default="", validation_alias="openrouter_api_keys")
    openrouter_endpoint: str = "https://openrouter.ai/api/v1/chat/completions"
    openrouter_model: str = "mistralai/mistral-7b-instruct"

    # Groq (OpenAI-compatible chat completions)
    groq_api_keys_str: str = Field(default="", validation_alias="groq_api_keys")
    groq_endpoint: str = "https://api.groq.com/openai/v1/chat/completions"
    groq_model: str = "llama-3.3-70b-versatile"

    # Gemini (generateContent)
    gemini_api_keys_str: str = Field(default="", validation_alias="gemini_api_keys")
    gemini_endpoint: str = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
    gemini_model: str = "gemini-2.5-flash-lite"

    # Generation parameters
    temperature: float = 0.7
    max_tokens: int = 1000
    request_timeout_seconds: float = 30.0

    # Langfuse observability
    langfuse_enabled: bool = True
    langfuse_public_key: str = ""
    langfuse_secret_key: str = ""
    langfuse_base_url: str = "https://cloud.langfuse.com"

    # TTS configuration
    tts_voice: str = "en-US-GuyNeural"
    tts_words_per_minute: int = 150

    # Interview settings
    default_duration_minutes: int = 30
    max_follow_ups_per_question: int = 2
    stuck_threshold: int = 3
    stuck_score: int = 50
    low_score_feedback_threshold: int = 50
    coding_problem_limit: int = 2
    conversational_turn_limit: int = 6
    solved_score_threshold: int = 60

    # Timing (seconds)
    tick_interval_seconds: float = 1.0
    first_question_delay_seconds: float = 2.0
    follow_up_delay_seconds: float = 0.5
    narration_chunk_pause_seconds: float = 0.5
    narration_cancel_repeats: int = 3

    # Result handling
    weak_areas_path: str = "data/weak_areas.json"
    persistence_url: str = ""
    persistence_timeout_seconds: float = 10.0

    # CORS - stored as comma-separated string in env
    cors_origins_str: str = Field(
        default="http://localhost:3000,http://localhost:8000",
        validation_alias="cors_origins"
    )

    @computed_field
    @property
    def cors_origins(self) -> list[str]:
        """Parse CORS origins from comma-separated string."""
        return _split_csv(self.cors_origins_str)

    @computed_field
    @property
    def provider_order(self) -> list[str]:
        """Provider ids in priority order."""
        return [p.lower() for p in _split_csv(self.provider_order_str)]

    @computed_field
    @property
    def openrouter_api_keys(self) -> list[str]:
        return _split_csv(self.openrouter_api_keys_str)

    @computed_field
    @property
    def groq_api_keys(self) -> list[str]:
        return _split_csv(self.groq_api_keys_str)

    @computed_field
    @property
    def gemini_api_keys(self) -> list[str]:
        return _split_csv(self.gemini_api_keys_str)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
