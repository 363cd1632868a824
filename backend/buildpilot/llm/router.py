"""
LLM Router

Model tier routing and provider factory.
Decides which model to use based on task weight.
"""
from enum import Enum
from typing import Optional
import logging

from .base import LLMProvider
from .openai_provider import OpenAIProvider
from .gemini_provider import GeminiProvider
from ..config import Settings, settings as default_settings

logger = logging.getLogger(__name__)


class ModelTier(str, Enum):
    """Model tiers based on cost and capability."""
    CHEAP = "cheap"   # Rolling memory digests
    MID = "mid"       # Conversational answers
    HEAVY = "heavy"   # File generation


# Singleton provider instance
_provider_instance: Optional[LLMProvider] = None


def get_llm_provider(settings: Optional[Settings] = None) -> LLMProvider:
    """
    Get or create the LLM provider instance.

    Provider is selected based on LLM_PROVIDER environment variable.
    Uses singleton pattern to reuse connections.
    """
    global _provider_instance
    cfg = settings or default_settings

    if _provider_instance is None:
        cfg.validate_provider_key()

        if cfg.llm_provider == "openai":
            logger.info("Initializing OpenAI provider")
            _provider_instance = OpenAIProvider(cfg)
        elif cfg.llm_provider == "gemini":
            logger.info("Initializing Gemini provider")
            _provider_instance = GeminiProvider(cfg)
        else:
            raise ValueError(f"Unknown LLM provider: {cfg.llm_provider}")

    return _provider_instance


def get_image_provider(settings: Optional[Settings] = None) -> Optional[LLMProvider]:
    """
    Provider used for mockup images.

    Image generation is OpenAI-only, so a Gemini text setup can still
    produce mockups when an OpenAI key is configured alongside it.
    """
    cfg = settings or default_settings
    if cfg.llm_provider == "openai":
        return get_llm_provider(cfg)
    if cfg.openai_api_key:
        return OpenAIProvider(cfg)
    return None


def get_model_for_tier(tier: ModelTier, settings: Optional[Settings] = None) -> str:
    """
    Get the model name for a given tier.

    Uses configured models based on provider.
    """
    return (settings or default_settings).get_model(tier.value)


# Task to tier mapping
TASK_TIERS = {
    # Cheap tier tasks
    "memory_summary": ModelTier.CHEAP,

    # Mid tier tasks
    "chat_response": ModelTier.MID,

    # Heavy tier tasks
    "file_generation": ModelTier.HEAVY,
}


def get_tier_for_task(task: str) -> ModelTier:
    """Get the appropriate tier for a given task."""
    return TASK_TIERS.get(task, ModelTier.MID)


def get_model_for_task(task: str, settings: Optional[Settings] = None) -> str:
    """Get the model name for a given task."""
    tier = get_tier_for_task(task)
    return get_model_for_tier(tier, settings)
