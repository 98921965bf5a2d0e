"""Application configuration via environment variables."""

from pydantic_settings import BaseSettings
from typing import Optional

APP_VERSION = "0.1.0"


class Settings(BaseSettings):
    # Vendor credentials (may also be stored through the settings API)
    gemini_api_key: Optional[str] = None
    elevenlabs_api_key: Optional[str] = None

    # Summarization
    gemini_model: str = "gemini-2.0-flash-lite"
    gemini_api_base: str = "https://generativelanguage.googleapis.com/v1beta"

    # Speech synthesis
    elevenlabs_voice_id: str = "9BWtsMINqrJLrRacOk9x"
    elevenlabs_model_id: str = "eleven_flash_v2_5"
    elevenlabs_api_base: str = "https://api.elevenlabs.io/v1"

    # File storage
    uploads_dir: str = "uploads"
    audio_dir: str = "uploads/audio"
    audio_ttl_hours: int = 0
    max_upload_bytes: int = 10 * 1024 * 1024
    max_upload_files: int = 10

    # Job store
    job_store_backend: str = "memory"  # "memory" or "supabase"
    supabase_url: str = ""
    supabase_service_role_key: str = ""

    # Job processing
    collaborator_timeout_seconds: float = 120.0
    max_concurrent_jobs: int = 4
    poll_interval_seconds: float = 2.0

    # Server
    port: int = 5000
    log_level: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
