"""AI Configuration module for the LLM fallback parser."""

from typing import Optional
from openai import AsyncOpenAI
from cashe.utils.config import settings
from cashe.utils.logger import get_logger

logger = get_logger("ai_config")

_ai_client: Optional[AsyncOpenAI] = None
_ai_enabled = False
_ai_model: Optional[str] = None


def initialize_ai_services():
    """Initialize the Groq client based on configuration."""
    global _ai_client, _ai_enabled, _ai_model

    if not settings.llm_configured:
        logger.warning("GROQ_API_KEY not configured - LLM fallback will be disabled")
        logger.info("Set GROQ_API_KEY in .env file to enable the LLM fallback")
        _ai_enabled = False
        _ai_client = None
        _ai_model = None
        return

    try:
        _ai_client = AsyncOpenAI(
            api_key=settings.groq_api_key,
            base_url=settings.llm_base_url,
            timeout=settings.llm_timeout_seconds,
            max_retries=0,
        )
        _ai_enabled = True
        _ai_model = settings.llm_model
        logger.info(f"LLM fallback enabled with model: {settings.llm_model}")
    except Exception as e:
        logger.error(f"Failed to initialize LLM client: {e}")
        _ai_enabled = False
        _ai_client = None
        _ai_model = None


def get_ai_client() -> Optional[AsyncOpenAI]:
    """Get the initialized AI client."""
    if _ai_client is None:
        initialize_ai_services()
    return _ai_client


def get_ai_model() -> Optional[str]:
    """Get the configured AI model."""
    if _ai_model is None:
        initialize_ai_services()
    return _ai_model


def is_ai_enabled() -> bool:
    """Check if the LLM fallback is enabled."""
    if _ai_client is None:
        initialize_ai_services()
    return _ai_enabled


# Initialize AI services on module import
initialize_ai_services()
