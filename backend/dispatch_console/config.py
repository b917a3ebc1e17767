"""
RAPID Dispatch Console - Configuration Management

Centralized configuration using Pydantic Settings.
All secrets and environment-specific values are loaded from environment variables.
"""

from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Hierarchy (highest to lowest priority):
    1. Environment variables
    2. .env file
    3. Default values
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # --- Application ---
    app_env: str = "development"
    app_debug: bool = True
    app_log_level: str = "INFO"
    log_json_format: bool = False

    # --- Server ---
    backend_host: str = "0.0.0.0"
    backend_port: int = 8000
    allowed_origins: str = "http://localhost:3000,http://127.0.0.1:3000"

    # --- Collaborator Selection ---
    # "dummy" = deterministic local stand-ins (default, no network)
    # "openai" = OpenAI API (requires OPENAI_API_KEY)
    classifier_backend: str = "dummy"
    transcription_backend: str = "dummy"
    synthesis_backend: str = "dummy"
    # "none" = live capture unsupported on this console
    # "dummy" = scripted recognizer (demo / testing)
    # "microphone" = sounddevice capture + energy gate + transcription
    recognizer_backend: str = "none"
    # "dummy" = record buffers only; "sounddevice" = real output device
    audio_output_backend: str = "dummy"

    # --- OpenAI ---
    openai_api_key: Optional[str] = None
    openai_base_url: Optional[str] = None
    openai_timeout_seconds: float = 30.0
    classifier_model: str = "gpt-4o-mini"
    transcription_model: str = "gpt-4o-mini-transcribe"
    tts_model: str = "gpt-4o-mini-tts"
    tts_voice: str = "onyx"

    # --- Dispatcher Voice Playback ---
    # Synthesized speech is raw s16le PCM at a fixed format
    playback_sample_rate: int = 24000
    playback_channels: int = 1

    # --- Simulated Playback ---
    simulation_initial_delay_seconds: float = 0.3
    simulation_min_line_delay_seconds: float = 1.5
    simulation_max_line_delay_seconds: float = 3.0

    # --- Analysis Triggers ---
    # Scripted sources request a classification every N transcript lines
    analysis_checkpoint_interval: int = 2

    # --- Console ---
    console_log_max_entries: int = 50
    archive_notice_delay_seconds: float = 4.0
    max_consoles: int = 16

    # --- Live Capture (energy gate) ---
    microphone_sample_rate: int = 16000
    microphone_frame_ms: int = 20
    vad_calibration_ms: int = 1200
    vad_energy_floor_dbfs: float = -60.0
    vad_energy_offset_db: float = 12.0
    vad_min_speech_ms: int = 400
    vad_max_silence_ms: int = 700
    vad_max_segment_seconds: float = 12.0

    # --- Privacy ---
    anonymize_logs: bool = True  # If True, transcript text never reaches process logs

    @property
    def allowed_origins_list(self) -> List[str]:
        """Parse comma-separated origins into list."""
        return [origin.strip() for origin in self.allowed_origins.split(",")]


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings instance.

    Use dependency injection in routes:
        settings: Settings = Depends(get_settings)
    """
    return Settings()

