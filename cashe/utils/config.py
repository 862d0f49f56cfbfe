"""Configuration module for the Cashé NLP bot."""

import os
from typing import List
from pydantic import Field
from pydantic_settings import BaseSettings
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application Configuration
    app_name: str = Field(default="Cashé Bot", alias="APP_NAME")
    app_version: str = Field(default="1.0.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # FastAPI Configuration
    api_host: str = Field(default="127.0.0.1", alias="API_HOST")
    api_port: int = Field(default=8000, alias="API_PORT")
    api_reload: bool = Field(default=True, alias="API_RELOAD")
    api_key: str = Field(default="", alias="API_KEY")
    rate_limit: str = Field(default="60/minute", alias="RATE_LIMIT")
    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://127.0.0.1:8000"],
        alias="CORS_ORIGINS"
    )

    # Storage: "mongodb" for production, "memory" for the CLI and tests
    storage_backend: str = Field(default="mongodb", alias="STORAGE_BACKEND")
    mongodb_url: str = Field(default="mongodb://localhost:27017", alias="MONGODB_URL")
    mongodb_database: str = Field(default="cashe", alias="MONGODB_DATABASE")

    # LLM fallback (Groq, OpenAI-compatible endpoint)
    groq_api_key: str = Field(default="", alias="GROQ_API_KEY")
    llm_base_url: str = Field(default="https://api.groq.com/openai/v1", alias="LLM_BASE_URL")
    llm_model: str = Field(default="llama-3.1-8b-instant", alias="LLM_MODEL")
    llm_temperature: float = Field(default=0.1, alias="LLM_TEMPERATURE")
    llm_max_tokens: int = Field(default=500, alias="LLM_MAX_TOKENS")
    llm_timeout_seconds: float = Field(default=8.0, alias="LLM_TIMEOUT_SECONDS")

    # Conversation
    state_ttl_minutes: int = Field(default=10, alias="STATE_TTL_MINUTES")
    timezone: str = Field(default="America/Argentina/Buenos_Aires", alias="TIMEZONE")
    default_currency: str = Field(default="ARS", alias="DEFAULT_CURRENCY")

    # Logging
    log_file: str = Field(default="logs/app.log", alias="LOG_FILE")
    log_rotation: str = Field(default="10 MB", alias="LOG_ROTATION")
    log_retention: str = Field(default="30 days", alias="LOG_RETENTION")

    model_config = {
        "env_file": ".env",
        "case_sensitive": False,
        "extra": "ignore"
    }

    @property
    def llm_configured(self) -> bool:
        """Whether an API key for the LLM fallback is present."""
        return bool(self.groq_api_key) and self.groq_api_key != "your_groq_api_key_here"


# Create global settings instance
try:
    settings = Settings()
except Exception as e:
    print(f"Warning: Could not load all settings from environment: {e}")
    print("Using default settings. Please configure your .env file.")
    settings = Settings(_env_file=None)

# Ensure logs directory exists
try:
    log_dir = os.path.dirname(settings.log_file)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
except OSError as e:
    print(f"Warning: Could not create logs directory: {e}")
