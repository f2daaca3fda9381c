"""Application configuration using Pydantic Settings."""

from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # API Security
    api_key: str = "dev-secret"

    # OpenAI
    openai_api_key: str = ""
    openai_assistant_model: str = "gpt-4o"
    assistant_description: str = "Documentation"
    assistant_instructions_template: str = (
        "You are a documentation assistant, you have been loaded with documentation from "
        "{site_url}, return everything in an markdown format."
    )

    # Crawling
    batch_size: int = 25
    request_timeout: float = 30.0
    user_agent: str = "SiteKB-Bot/1.0"

    # Site registry
    registry_path: str = "data/registry.json"
    registry_namespace: str = "knowledge-bases"

    # Uploads and runs
    upload_poll_interval: float = 2.0
    upload_timeout_seconds: float = 600.0
    run_poll_interval: float = 1.0
    run_timeout_seconds: Optional[float] = None
    message_limit: int = 10

    # Logging
    log_level: str = "INFO"


# Global settings instance
settings = Settings()
