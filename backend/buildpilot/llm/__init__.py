# LLM Providers
from .base import (
    LLMProvider,
    LLMError,
    LLMRateLimitError,
    LLMInvalidResponseError,
    LLMConfigurationError,
    GeneratedImage,
)
from .openai_provider import OpenAIProvider
from .gemini_provider import GeminiProvider
from .router import get_llm_provider, get_image_provider, ModelTier, get_model_for_task

__all__ = [
    "LLMProvider",
    "LLMError",
    "LLMRateLimitError",
    "LLMInvalidResponseError",
    "LLMConfigurationError",
    "GeneratedImage",
    "OpenAIProvider",
    "GeminiProvider",
    "get_llm_provider",
    "get_image_provider",
    "ModelTier",
    "get_model_for_task",
]
