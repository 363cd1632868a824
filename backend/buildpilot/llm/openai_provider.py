"""
OpenAI LLM Provider

Implementation using OpenAI's Chat Completions and Images APIs.
"""
from typing import Optional
import logging

from openai import AsyncOpenAI
from tenacity import retry, stop_after_attempt, wait_exponential

from .base import LLMProvider, LLMError, LLMRateLimitError, LLMConfigurationError, GeneratedImage
from ..config import Settings, settings as default_settings

logger = logging.getLogger(__name__)


class OpenAIProvider(LLMProvider):
    """
    OpenAI API implementation.

    Supports:
    - gpt-4o for file generation and chat
    - gpt-4o-mini for rolling memory summaries
    - gpt-image-1 (with a fallback model) for mockups
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or default_settings
        if not self.settings.openai_api_key:
            raise LLMConfigurationError("OPENAI_API_KEY is required for OpenAI provider")
        self.client = AsyncOpenAI(api_key=self.settings.openai_api_key)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        reraise=True,
    )
    async def generate_text(
        self,
        prompt: str,
        model: str,
        max_tokens: int = 2048,
        temperature: float = 0.7,
        system_prompt: Optional[str] = None,
        json_mode: bool = False,
    ) -> str:
        """Generate text using OpenAI Chat Completions API."""
        try:
            messages = []
            if system_prompt:
                messages.append({"role": "system", "content": system_prompt})
            messages.append({"role": "user", "content": prompt})

            kwargs = {}
            if json_mode:
                kwargs["response_format"] = {"type": "json_object"}

            response = await self.client.chat.completions.create(
                model=model,
                messages=messages,
                max_tokens=max_tokens,
                temperature=temperature,
                **kwargs,
            )

            return response.choices[0].message.content or ""

        except Exception as e:
            if "rate_limit" in str(e).lower():
                raise LLMRateLimitError(f"OpenAI rate limit: {e}")
            raise LLMError(f"OpenAI error: {e}")

    @retry(
        stop=stop_after_attempt(2),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        reraise=True,
    )
    async def generate_image(
        self,
        prompt: str,
        model: str,
        size: str = "1024x1024",
    ) -> GeneratedImage:
        """Generate an image using OpenAI Images API."""
        try:
            response = await self.client.images.generate(
                model=model,
                prompt=prompt,
                size=size,
            )
        except Exception as e:
            if "rate_limit" in str(e).lower():
                raise LLMRateLimitError(f"OpenAI rate limit: {e}")
            raise LLMError(f"OpenAI image error: {e}")

        first = response.data[0] if response.data else None
        if first is None:
            raise LLMError("Image API returned no image data.")

        return GeneratedImage(
            url=getattr(first, "url", None) or None,
            b64_json=getattr(first, "b64_json", None) or None,
        )
