from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_env: str = "dev"
    log_level: str = "INFO"

    runtime_data_dir: str = "data/teacher_aid"

    llm_provider: str = "gemini"
    llm_model: str = "gemini-2.5-flash"
    tts_model: str = "gemini-2.5-flash-preview-tts"
    tts_voice_name: str = "Kore"
    gemini_api_key: str = ""
    gemini_api_url: str = ""
    llm_timeout_seconds: float = 30.0
    llm_temperature: float = 0.4
    breaker_failure_threshold: int = 4
    breaker_recovery_seconds: float = 30.0

    analysis_min_new_messages: int = 3
    strategy_context_messages: int = 5

    audio_output_enabled: bool = True
    audio_sample_rate: int = 24000
    audio_channels: int = 1
    local_tts_binary: str = "espeak-ng"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


settings = Settings()
