from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    - environment: runtime environment (development/staging/production)
    - llm_provider: which LLM backend generates card content
    - cards_db_path: where the card collection is persisted
    """

    environment: str = Field(
        default="development",
        description="Runtime environment",
    )
    llm_provider: str = Field(
        default="openai",
        description="LLM service provider (openai | local)",
    )
    llm_model: str = Field(
        default="gpt-4o-mini",
        description="LLM model name used for card generation",
    )

    # --- LLM call timeout / retries ---
    llm_timeout_ms: int = Field(
        default=20000,
        description="Per-attempt timeout for LLM calls (ms)",
    )
    llm_max_retries: int = Field(
        default=1,
        description="Max attempts for LLM calls",
    )
    llm_max_tokens: int = Field(
        default=1800,
        description="Max tokens for LLM completion output",
    )
    llm_temperature: float = Field(
        default=0.4,
        ge=0.0,
        le=1.0,
        description="Sampling temperature for card generation",
    )

    # --- API Keys ---
    openai_api_key: str | None = Field(default=None, description="OpenAI API Key")

    # --- Speech ---
    tts_model: str = Field(
        default="gpt-4o-mini-tts",
        description="Text-to-speech model",
    )
    tts_voice: str = Field(
        default="alloy",
        description="Default voice for text-to-speech",
    )

    # --- Card store ---
    cards_db_path: str = Field(
        default=".data/cards.sqlite3",
        description="Path to the card SQLite database",
    )
    seed_on_empty: bool = Field(
        default=True,
        description="Insert the starter card when the collection is empty",
    )
    review_stats_recent_limit: int = Field(
        default=5,
        description="Number of recently reviewed cards returned by the stats endpoint",
    )

    # --- Operations ---
    sentry_dsn: str | None = Field(default=None, description="Sentry DSN (enable if set)")

    # --- Strict mode ---
    strict_mode: bool = Field(
        default=False,
        description="Fail fast on missing/invalid configuration",
    )

    # - env_file: read .env
    # - extra: ignore unrelated keys in .env
    # - case_sensitive: env var names are case-insensitive
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        case_sensitive=False,
    )


settings = Settings()
