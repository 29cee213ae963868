from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_ANALYSIS_PROMPT = (
    "Please analyze these images and provide a detailed JSON response with your findings. "
    "Include any relevant information about objects, people, scenes, text, colors, "
    "or other elements in the images."
)

DEFAULT_RUN_INSTRUCTIONS = (
    "Analyze the uploaded images and provide a comprehensive JSON response. "
    "Structure your analysis with keys for 'objects', 'scene', 'colors', 'text', "
    "and any other relevant attributes. Be detailed but structured."
)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    app_name: str = "assistant-image-analysis"
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "info"
    log_format: str = "console"
    cors_origins: list[str] = ["*"]

    max_upload_bytes: int = 10 * 1024 * 1024
    allowed_media_prefix: str = "image/"
    upload_purpose: str = "assistants"
    max_concurrent_uploads: int = 5

    openai_base_url: str | None = None
    openai_timeout: float = 60.0
    openai_max_retries: int = 2

    run_poll_interval: float = 1.0
    run_poll_timeout: float = 600.0

    analysis_prompt: str = DEFAULT_ANALYSIS_PROMPT
    run_instructions: str = DEFAULT_RUN_INSTRUCTIONS


settings = Settings()
