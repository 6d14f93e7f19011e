"""
Application configuration via pydantic-settings.

Loads values from .env file with sensible defaults for local development.
Use ``get_settings()`` to obtain the cached singleton instance.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Civics quiz settings loaded from environment / .env file.

    All settings can be overridden via environment variables or a `.env` file.
    Field names map directly to env var names (case-insensitive).

    Attributes:
        gateway_provider: Conversation backend ("responses" or "assistants").
        stt_provider: Speech-to-text backend ("openai" or "local").
        vector_store_id: Knowledge corpus the quiz agent searches.
        mic_policy: "keep_open" or "release_per_turn".
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Silently ignore unrecognized env vars
    )

    # --- OpenAI ---
    openai_api_key: str = ""
    openai_base_url: str | None = None  # None = official endpoint
    quiz_model: str = "gpt-4o"

    # --- Inference gateway ---
    # "responses" chains response ids, "assistants" polls runs on a thread
    quiz_gateway_provider: str = "responses"
    quiz_vector_store_id: str = "vs_697bfe2441908191a6e27ed1418c43ef"
    quiz_agent_name: str = "Citizen Quiz AI"
    quiz_agent_app_tag: str = "citizen-quiz"  # metadata.app on provisioned assistants
    quiz_run_poll_interval: float = 0.5  # seconds between run status checks
    quiz_run_timeout: float = 120.0  # give up on a run after this many seconds

    # --- Speech ---
    quiz_tts_model: str = "tts-1"
    quiz_tts_voice: str = "alloy"
    quiz_tts_format: str = "mp3"
    quiz_stt_provider: str = "openai"  # "openai" = hosted whisper-1, "local" = faster-whisper
    quiz_stt_model: str = "whisper-1"
    whisper_model: str = "base"  # faster-whisper model size for the local provider
    whisper_default_language: str = "en"

    # --- Audio devices ---
    quiz_mic_policy: str = "keep_open"
    quiz_sample_rate: int = 16000
    quiz_channels: int = 1
    # First entry the local libsndfile can write wins; WAV is the fallback
    quiz_preferred_encodings: list[str] = ["OGG/OPUS", "OGG/VORBIS", "FLAC/PCM_16"]

    # --- Application ---
    app_host: str = "0.0.0.0"  # Bind address for the FastAPI server
    app_port: int = 8000
    api_base_url: str = "http://localhost:8000"  # Used by the terminal client
    cors_origins: list[str] = ["http://localhost:3000"]
    log_level: str = "INFO"  # Python logging level


@lru_cache
def get_settings() -> Settings:
    """Return a cached Settings singleton.

    Uses ``functools.lru_cache`` so the .env file is read only once.
    Subsequent calls return the same ``Settings`` instance.

    Returns:
        Settings: The application-wide configuration object.
    """
    return Settings()
